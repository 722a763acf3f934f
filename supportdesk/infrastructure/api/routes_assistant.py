"""AI assistant over HTTP, rate limited per user."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from supportdesk.domain.errors import ForbiddenError, NotFoundError
from supportdesk.domain.policies.ticket_lifecycle import can_view
from supportdesk.domain.value_objects.identity import Identity
from supportdesk.infrastructure.api.dependencies import SupportServices, get_identity, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["assistant"])


class AssistantRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    ticket_id: int = Field(alias="ticketId")


@router.post("/message")
async def ask_assistant(
    body: AssistantRequest,
    identity: Identity = Depends(get_identity),
    services: SupportServices = Depends(get_services),
):
    """Answer a question about one of the caller's tickets."""
    remaining = services.assistant_limiter.hit(identity.user_id)

    ticket = await services.tickets.get_by_id(body.ticket_id)
    if ticket is None:
        raise NotFoundError("Ticket not found")
    actor = await services.participants.resolve(identity)
    if not can_view(ticket, actor):
        raise ForbiddenError("You do not have access to this ticket")

    reply = await services.assistant.execute(body.message)
    logger.info(
        "AI reply for ticket %s to user %s (fallback=%s, %d requests left)",
        ticket.id, identity.user_id, reply.fallback, remaining,
    )
    return {
        **reply.to_dict(),
        "ticketId": ticket.id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
