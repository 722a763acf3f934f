"""Queue status endpoint for engineers."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from supportdesk.domain.errors import ForbiddenError
from supportdesk.domain.value_objects.identity import Identity
from supportdesk.infrastructure.api.dependencies import SupportServices, get_identity, get_services

router = APIRouter(prefix="/queue", tags=["queue"])


@router.get("/status")
async def queue_status(
    identity: Identity = Depends(get_identity),
    services: SupportServices = Depends(get_services),
):
    """Same snapshot the periodic ``queue-update`` broadcast carries."""
    if not identity.is_engineer:
        raise ForbiddenError("Only engineers can view queue status")
    return services.queue.status().to_dict()
