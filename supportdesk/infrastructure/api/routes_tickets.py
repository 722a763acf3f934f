"""Ticket endpoints — creation, listings, detail, assignment, status and chat."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from supportdesk.application.serializers import serialize_message, serialize_ticket
from supportdesk.domain.errors import ForbiddenError, NotFoundError
from supportdesk.domain.policies.ticket_lifecycle import can_view
from supportdesk.domain.value_objects.enums import Role, TicketPriority, TicketStatus
from supportdesk.domain.value_objects.identity import Identity
from supportdesk.infrastructure.api.dependencies import SupportServices, get_identity, get_services

router = APIRouter(prefix="/tickets", tags=["tickets"])

RECENT_LIMIT = 5


class CreateTicketRequest(BaseModel):
    subject: str
    description: str
    category: str
    priority: TicketPriority = TicketPriority.MEDIUM


class StatusChangeRequest(BaseModel):
    status: TicketStatus


class PostMessageRequest(BaseModel):
    content: str


def _require(identity: Identity, role: Role, message: str) -> None:
    if identity.role != role:
        raise ForbiddenError(message)


@router.post("", status_code=201)
async def create_ticket(
    body: CreateTicketRequest,
    identity: Identity = Depends(get_identity),
    services: SupportServices = Depends(get_services),
):
    ticket = await services.lifecycle.create_ticket(
        identity, body.subject, body.description, body.category, body.priority
    )
    return serialize_ticket(ticket)


@router.get("/mine")
async def my_tickets(
    identity: Identity = Depends(get_identity),
    services: SupportServices = Depends(get_services),
):
    """Tickets opened by the calling client, newest first."""
    _require(identity, Role.CLIENT, "Only clients have their own tickets")
    client = await services.participants.client_for(identity)
    tickets = await services.tickets.get_for_client(client.id)
    return {"total": len(tickets), "tickets": [serialize_ticket(t) for t in tickets]}


@router.get("/recent")
async def recent_tickets(
    identity: Identity = Depends(get_identity),
    services: SupportServices = Depends(get_services),
):
    """The caller's five newest tickets, for the dashboard."""
    scope = await services.participants.ticket_scope(identity)
    tickets = await services.tickets.get_recent(**scope, limit=RECENT_LIMIT)
    return {"total": len(tickets), "tickets": [serialize_ticket(t, include_messages=False) for t in tickets]}


@router.get("/assigned")
async def assigned_tickets(
    identity: Identity = Depends(get_identity),
    services: SupportServices = Depends(get_services),
):
    """Tickets held by the calling engineer, newest first."""
    _require(identity, Role.ENGINEER, "Only engineers have assigned tickets")
    engineer = await services.participants.engineer_for(identity)
    tickets = await services.tickets.get_for_engineer(engineer.id)
    return {"total": len(tickets), "tickets": [serialize_ticket(t) for t in tickets]}


@router.get("/available")
async def available_tickets(
    identity: Identity = Depends(get_identity),
    services: SupportServices = Depends(get_services),
):
    """Open tickets nobody has taken yet, oldest first."""
    _require(identity, Role.ENGINEER, "Only engineers can browse available tickets")
    tickets = await services.tickets.get_open_unassigned()
    return {
        "total": len(tickets),
        "tickets": [serialize_ticket(t, include_messages=False) for t in tickets],
    }


@router.get("/{ticket_id}")
async def get_ticket(
    ticket_id: int,
    identity: Identity = Depends(get_identity),
    services: SupportServices = Depends(get_services),
):
    ticket = await services.tickets.get_by_id(ticket_id)
    if ticket is None:
        raise NotFoundError("Ticket not found")

    actor = await services.participants.resolve(identity)
    if not can_view(ticket, actor):
        raise ForbiddenError("You do not have access to this ticket")
    return serialize_ticket(ticket)


@router.post("/{ticket_id}/assign")
async def assign_ticket(
    ticket_id: int,
    identity: Identity = Depends(get_identity),
    services: SupportServices = Depends(get_services),
):
    ticket = await services.lifecycle.assign(ticket_id, identity)
    return serialize_ticket(ticket)


@router.patch("/{ticket_id}/status")
async def change_status(
    ticket_id: int,
    body: StatusChangeRequest,
    identity: Identity = Depends(get_identity),
    services: SupportServices = Depends(get_services),
):
    ticket = await services.lifecycle.change_status(ticket_id, identity, body.status)
    return serialize_ticket(ticket)


@router.post("/{ticket_id}/messages", status_code=201)
async def post_message(
    ticket_id: int,
    body: PostMessageRequest,
    identity: Identity = Depends(get_identity),
    services: SupportServices = Depends(get_services),
):
    message = await services.router.execute(identity, ticket_id, body.content)
    return serialize_message(message)
