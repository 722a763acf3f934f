"""TicketLifecycleUseCase — applies status transitions and tells everyone who cares.

Guards live in the ticket lifecycle policy; this use case adds the per-ticket
lock, the capacity bookkeeping through QueueManager, persistence and the
broadcasts that let clients reflect state without polling.
"""

from __future__ import annotations

import logging

from supportdesk.application.events import OutboundEvent
from supportdesk.application.ports.ticket_repo import TicketRepository
from supportdesk.application.serializers import serialize_ticket
from supportdesk.application.services.connection_registry import ConnectionRegistry
from supportdesk.application.services.keyed_locks import KeyedLocks
from supportdesk.application.services.participants import ParticipantResolver
from supportdesk.application.services.queue_manager import QueueManager
from supportdesk.domain.entities.client import Client
from supportdesk.domain.entities.engineer import Engineer
from supportdesk.domain.entities.ticket import Ticket
from supportdesk.domain.errors import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from supportdesk.domain.policies.ticket_lifecycle import check_transition
from supportdesk.domain.value_objects.enums import Role, TicketPriority, TicketStatus
from supportdesk.domain.value_objects.identity import Identity, Participant

logger = logging.getLogger(__name__)

MAX_SUBJECT_LENGTH = 200


class TicketLifecycleUseCase:
    def __init__(
        self,
        ticket_repo: TicketRepository,
        participants: ParticipantResolver,
        queue: QueueManager,
        connections: ConnectionRegistry,
        locks: KeyedLocks,
    ):
        self._tickets = ticket_repo
        self._participants = participants
        self._queue = queue
        self._connections = connections
        self._locks = locks

    async def create_ticket(
        self,
        identity: Identity,
        subject: str,
        description: str,
        category: str,
        priority: TicketPriority = TicketPriority.MEDIUM,
    ) -> Ticket:
        """Open a ticket for the calling client and offer it to idle engineers."""
        if not identity.is_client:
            raise ForbiddenError("Only clients can create tickets")
        subject, description, category = (
            (subject or "").strip(), (description or "").strip(), (category or "").strip()
        )
        if not subject or not description or not category:
            raise ValidationError("Subject, description and category are required")
        if len(subject) > MAX_SUBJECT_LENGTH:
            raise ValidationError(f"Subject must be at most {MAX_SUBJECT_LENGTH} characters")

        client = await self._participants.client_for(identity)
        ticket = await self._tickets.save(
            Ticket(
                id=None,
                subject=subject,
                description=description,
                category=category,
                client_id=client.id,
                priority=priority,
            )
        )
        logger.info("Ticket %s opened by client %s", ticket.id, client.id)
        await self._connections.broadcast(
            OutboundEvent.NEW_TICKET_AVAILABLE.value,
            {"ticket": serialize_ticket(ticket, include_messages=False)},
            role=Role.ENGINEER,
            predicate=self._is_idle,
        )
        return ticket

    async def assign(self, ticket_id: int, identity: Identity) -> Ticket:
        """An engineer takes an open ticket directly (open → in-progress)."""
        actor = await self._participants.resolve(identity)

        async with self._locks.hold(ticket_id):
            ticket = await self._load(ticket_id)
            check_transition(ticket, TicketStatus.IN_PROGRESS, actor)
            client = await self._participants.client_by_id(ticket.client_id)
            await self._queue.assign_to(client, actor.record_id, ticket_id=ticket.id)
            await self._persist_start(ticket, client, actor.record_id)

        logger.info("Ticket %s assigned to engineer %s", ticket.id, actor.record_id)
        await self._announce(ticket, OutboundEvent.TICKET_UPDATED)
        return ticket

    async def start_matched(self, ticket_id: int, client: Client, engineer: Engineer) -> Ticket:
        """Move a ticket to in-progress after the queue reserved a slot for it.

        The slot is given back if the ticket can no longer be started.
        """
        actor = Participant(Role.ENGINEER, engineer.id, engineer.user_id, engineer.name)
        async with self._locks.hold(ticket_id):
            try:
                ticket = await self._load(ticket_id)
                check_transition(ticket, TicketStatus.IN_PROGRESS, actor)
            except Exception:
                await self._queue.release(client.id, engineer.id)
                raise
            await self._persist_start(ticket, client, engineer.id)

        logger.info("Ticket %s matched to engineer %s from the queue", ticket.id, engineer.id)
        await self._announce(ticket, OutboundEvent.TICKET_UPDATED)
        return ticket

    async def resolve(self, ticket_id: int, identity: Identity) -> Ticket:
        """End the chat (in-progress → resolved) and free the engineer's slot.

        The assigned engineer resolves; the owning client may do the same by
        leaving the chat.
        """
        actor = await self._participants.resolve(identity)
        async with self._locks.hold(ticket_id):
            ticket = await self._load(ticket_id)
            check_transition(ticket, TicketStatus.RESOLVED, actor)
            ticket.status = TicketStatus.RESOLVED
            ticket.touch()
            await self._tickets.update(ticket)
            await self._queue.release(ticket.client_id, ticket.assigned_engineer_id)

        logger.info("Ticket %s resolved by %s %s", ticket.id, actor.role.value, actor.record_id)
        await self._announce(ticket, OutboundEvent.TICKET_RESOLVED)
        return ticket

    async def close(self, ticket_id: int, identity: Identity) -> Ticket:
        """Archive a resolved ticket (resolved → closed)."""
        actor = await self._participants.resolve(identity)
        async with self._locks.hold(ticket_id):
            ticket = await self._load(ticket_id)
            check_transition(ticket, TicketStatus.CLOSED, actor)
            ticket.status = TicketStatus.CLOSED
            ticket.touch()
            await self._tickets.update(ticket)

        logger.info("Ticket %s closed", ticket.id)
        await self._announce(ticket, OutboundEvent.TICKET_UPDATED)
        return ticket

    async def change_status(self, ticket_id: int, identity: Identity, target: TicketStatus) -> Ticket:
        if target == TicketStatus.IN_PROGRESS:
            return await self.assign(ticket_id, identity)
        if target == TicketStatus.RESOLVED:
            return await self.resolve(ticket_id, identity)
        if target == TicketStatus.CLOSED:
            return await self.close(ticket_id, identity)
        raise InvalidStateError("Tickets cannot be reopened")

    # ── Internals ────────────────────────────────────────────────────

    async def _load(self, ticket_id: int) -> Ticket:
        ticket = await self._tickets.get_by_id(ticket_id)
        if ticket is None:
            raise NotFoundError("Ticket not found")
        return ticket

    async def _persist_start(self, ticket: Ticket, client: Client, engineer_id: int) -> None:
        ticket.assigned_engineer_id = engineer_id
        ticket.status = TicketStatus.IN_PROGRESS
        ticket.touch()
        try:
            await self._tickets.update(ticket)
        except Exception:
            logger.warning("Could not persist assignment of ticket %s; releasing slot", ticket.id)
            await self._queue.release(client.id, engineer_id)
            raise

    def _is_idle(self, identity: Identity) -> bool:
        return identity.user_id in self._queue.idle_user_ids()

    async def _announce(self, ticket: Ticket, event: OutboundEvent) -> None:
        payload = {"ticket": serialize_ticket(ticket)}
        client_user = await self._participants.user_of_client(ticket.client_id)
        engineer_user = await self._participants.user_of_engineer(ticket.assigned_engineer_id)
        events = [OutboundEvent.TICKET_UPDATED]
        if event != OutboundEvent.TICKET_UPDATED:
            events.append(event)
        for name in events:
            await self._connections.send(client_user, name.value, payload)
            await self._connections.send(engineer_user, name.value, payload)

        participants = {client_user, engineer_user}
        idle = self._queue.idle_user_ids() - participants
        await self._connections.broadcast(
            OutboundEvent.TICKET_UPDATED.value,
            {"ticket": serialize_ticket(ticket, include_messages=False)},
            role=Role.ENGINEER,
            predicate=lambda identity: identity.user_id in idle,
        )
