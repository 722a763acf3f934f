"""TicketLifecyclePolicy — legal status transitions and who may invoke them.

    open ──assign──▶ in-progress ──resolve──▶ resolved ──close──▶ closed

There are no backward transitions. The reachability check runs before the
actor check, so an undefined transition is always reported as invalid-state
whoever asks for it.
"""

from __future__ import annotations

from supportdesk.domain.entities.ticket import Ticket
from supportdesk.domain.errors import ForbiddenError, InvalidStateError
from supportdesk.domain.value_objects.enums import TicketStatus
from supportdesk.domain.value_objects.identity import Participant

TRANSITIONS: dict[TicketStatus, frozenset[TicketStatus]] = {
    TicketStatus.OPEN: frozenset({TicketStatus.IN_PROGRESS}),
    TicketStatus.IN_PROGRESS: frozenset({TicketStatus.RESOLVED}),
    TicketStatus.RESOLVED: frozenset({TicketStatus.CLOSED}),
    TicketStatus.CLOSED: frozenset(),
}


def can_transition(current: TicketStatus, target: TicketStatus) -> bool:
    return target in TRANSITIONS[current]


def check_transition(ticket: Ticket, target: TicketStatus, actor: Participant) -> None:
    """Raise unless *actor* may move *ticket* to *target*.

    Raises:
        InvalidStateError: target is not reachable from the current status,
            or the ticket is already assigned when assignment is requested.
        ForbiddenError: the transition exists but *actor* fails its guard.
    """
    if not can_transition(ticket.status, target):
        raise InvalidStateError(
            f"Cannot move ticket {ticket.id} from '{ticket.status.value}' to '{target.value}'"
        )

    if target == TicketStatus.IN_PROGRESS:
        if not actor.is_engineer:
            raise ForbiddenError("Only engineers can take tickets")
        if ticket.is_assigned():
            raise InvalidStateError(f"Ticket {ticket.id} is already assigned")
        return

    if target == TicketStatus.RESOLVED:
        # The owning client may end the chat by leaving it.
        if actor.is_engineer and ticket.is_assigned_to(actor.record_id):
            return
        if actor.is_client and ticket.is_owned_by(actor.record_id):
            return
        raise ForbiddenError("You are not assigned to this ticket")

    if target == TicketStatus.CLOSED:
        if actor.is_engineer and ticket.is_assigned_to(actor.record_id):
            return
        raise ForbiddenError("Only the assigned engineer can close this ticket")


def is_participant(ticket: Ticket, actor: Participant) -> bool:
    """True if *actor* is the owning client or the assigned engineer."""
    if actor.is_client:
        return ticket.is_owned_by(actor.record_id)
    return ticket.is_assigned_to(actor.record_id)


def can_view(ticket: Ticket, actor: Participant) -> bool:
    """Participants see their ticket; any engineer may preview one still up for grabs."""
    if is_participant(ticket, actor):
        return True
    return actor.is_engineer and ticket.status == TicketStatus.OPEN and not ticket.is_assigned()
