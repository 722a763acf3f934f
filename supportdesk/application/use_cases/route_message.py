"""RouteMessageUseCase — authorized chat between a ticket's client and engineer."""

from __future__ import annotations

import logging

from supportdesk.application.events import OutboundEvent
from supportdesk.application.ports.ticket_repo import TicketRepository
from supportdesk.application.serializers import serialize_message
from supportdesk.application.services.connection_registry import ConnectionRegistry
from supportdesk.application.services.keyed_locks import KeyedLocks
from supportdesk.application.services.participants import ParticipantResolver
from supportdesk.domain.entities.ticket import Message
from supportdesk.domain.errors import (
    ForbiddenError,
    NotFoundError,
    SessionEndedError,
    ValidationError,
)
from supportdesk.domain.policies.ticket_lifecycle import is_participant
from supportdesk.domain.value_objects.identity import Identity

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGE_LENGTH = 2000


class RouteMessageUseCase:
    """Validates, persists and relays one chat message.

    Everything runs under the ticket's lock, so messages of
    one ticket are stored and delivered in the order they were accepted.
    """

    def __init__(
        self,
        ticket_repo: TicketRepository,
        participants: ParticipantResolver,
        connections: ConnectionRegistry,
        locks: KeyedLocks,
        max_length: int = DEFAULT_MAX_MESSAGE_LENGTH,
    ):
        self._tickets = ticket_repo
        self._participants = participants
        self._connections = connections
        self._locks = locks
        self._max_length = max_length

    async def execute(self, sender: Identity, ticket_id: int, text: str) -> Message:
        async with self._locks.hold(ticket_id):
            ticket = await self._tickets.get_by_id(ticket_id)
            if ticket is None:
                raise NotFoundError("Ticket not found")

            try:
                actor = await self._participants.resolve(sender)
            except NotFoundError:
                # No client/engineer profile means no seat on any ticket.
                actor = None
            if actor is None or not is_participant(ticket, actor):
                logger.warning("User %s tried to message ticket %s", sender.user_id, ticket_id)
                raise ForbiddenError("You do not have permission to message on this ticket")

            if not ticket.is_chat_open():
                raise SessionEndedError(f"The chat for ticket {ticket_id} has ended")

            content = self._validate(text)

            message = await self._tickets.append_message(
                Message(
                    id=None,
                    ticket_id=ticket.id,
                    sender_id=actor.record_id,
                    sender_role=actor.role,
                    sender_name=actor.name,
                    content=content,
                )
            )

            if actor.is_client:
                counterpart = await self._participants.user_of_engineer(ticket.assigned_engineer_id)
            else:
                counterpart = await self._participants.user_of_client(ticket.client_id)

            payload = {"ticketId": ticket.id, "message": serialize_message(message)}
            delivered = await self._connections.send(
                counterpart, OutboundEvent.TICKET_MESSAGE_RECEIVED.value, payload
            )
            await self._connections.send(
                sender.user_id, OutboundEvent.TICKET_MESSAGE_RECEIVED.value, payload
            )

        logger.debug(
            "Message %s on ticket %s from %s (counterpart %s)",
            message.id, ticket_id, actor.role.value,
            "online" if delivered else "offline",
        )
        return message

    def _validate(self, text: str | None) -> str:
        content = (text or "").strip()
        if not content:
            raise ValidationError("Message content cannot be empty")
        if len(content) > self._max_length:
            raise ValidationError(f"Message content must be at most {self._max_length} characters")
        return content
