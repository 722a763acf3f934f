"""Health check endpoint."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text

from supportdesk.infrastructure.api.dependencies import SupportServices, get_services

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request, services: SupportServices = Depends(get_services)):
    """Check API and database connectivity."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        db_status = "not configured"
    else:
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            db_status = "connected"
        except Exception as e:
            db_status = f"error: {e}"

    return {
        "status": "degraded" if db_status.startswith("error") else "ok",
        "database": db_status,
        "queue_size": len(services.queue),
        "connections": len(services.connections),
        "service": "SupportDesk - ticket queue and live chat",
    }
