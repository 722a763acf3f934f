"""Dashboard summary for the calling user's tickets."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from supportdesk.domain.value_objects.enums import TicketStatus
from supportdesk.domain.value_objects.identity import Identity
from supportdesk.infrastructure.api.dependencies import SupportServices, get_identity, get_services

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats")
async def dashboard_stats(
    identity: Identity = Depends(get_identity),
    services: SupportServices = Depends(get_services),
):
    """Counts over the caller's own tickets (clients) or assigned tickets (engineers).

    ``openTickets`` includes tickets in progress.
    """
    scope = await services.participants.ticket_scope(identity)
    counts = await services.tickets.count_by_status(**scope)
    return {
        "totalTickets": sum(counts.values()),
        "openTickets": counts.get(TicketStatus.OPEN, 0) + counts.get(TicketStatus.IN_PROGRESS, 0),
        "resolvedTickets": counts.get(TicketStatus.RESOLVED, 0),
        "closedTickets": counts.get(TicketStatus.CLOSED, 0),
    }
