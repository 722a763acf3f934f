"""EventDispatcher — turns inbound connection events into use-case calls.

Transport agnostic: the WebSocket endpoint (or a test) hands over an
authenticated identity, an event name and its payload. Business errors are
answered with a single ``error`` event to the originating connection and never
close it. Disconnects arrive through the same object as an explicit event.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from supportdesk.application.events import InboundEvent, OutboundEvent
from supportdesk.application.ports.ticket_repo import TicketRepository
from supportdesk.application.serializers import serialize_client, serialize_engineer
from supportdesk.application.services.connection_registry import Connection, ConnectionRegistry
from supportdesk.application.services.participants import ParticipantResolver
from supportdesk.application.services.queue_manager import QueueManager
from supportdesk.application.use_cases.ask_assistant import AskAssistantUseCase
from supportdesk.application.use_cases.route_message import RouteMessageUseCase
from supportdesk.application.use_cases.ticket_lifecycle import TicketLifecycleUseCase
from supportdesk.domain.entities.client import Client
from supportdesk.domain.entities.engineer import Engineer
from supportdesk.domain.entities.ticket import Ticket
from supportdesk.domain.errors import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    SupportDeskError,
    ValidationError,
)
from supportdesk.domain.value_objects.enums import Role, TicketStatus
from supportdesk.domain.value_objects.identity import Identity

logger = logging.getLogger(__name__)

ASSIGNED_NOTICE = "You have been connected to a support engineer!"
UNMATCHED_NOTICE = "Your ticket could not be started with an engineer. Please join the queue again."

# ── Inbound payloads ────────────────────────────────────────────────


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class JoinQueuePayload(_Payload):
    ticket_id: int | None = Field(default=None, alias="ticketId")


class TicketRefPayload(_Payload):
    ticket_id: int = Field(alias="ticketId")


class TicketMessagePayload(TicketRefPayload):
    content: str = ""


class AssistantPayload(_Payload):
    content: str = ""


Handler = Callable[[Identity, dict], Awaitable[None]]


class EventDispatcher:
    def __init__(
        self,
        queue: QueueManager,
        lifecycle: TicketLifecycleUseCase,
        router: RouteMessageUseCase,
        assistant: AskAssistantUseCase,
        connections: ConnectionRegistry,
        participants: ParticipantResolver,
        ticket_repo: TicketRepository,
    ):
        self._queue = queue
        self._lifecycle = lifecycle
        self._router = router
        self._assistant = assistant
        self._connections = connections
        self._participants = participants
        self._tickets = ticket_repo
        self._handlers: dict[str, Handler] = {
            InboundEvent.JOIN_QUEUE.value: self._join_queue,
            InboundEvent.SEND_TICKET_MESSAGE.value: self._send_ticket_message,
            InboundEvent.RESOLVE_TICKET.value: self._resolve_ticket,
            InboundEvent.LEAVE_CHAT.value: self._leave_chat,
            InboundEvent.CLOSE_TICKET.value: self._close_ticket,
            InboundEvent.ENGINEER_AVAILABLE.value: self._engineer_available,
            InboundEvent.ENGINEER_AWAY.value: self._engineer_away,
            InboundEvent.GET_QUEUE_STATUS.value: self._get_queue_status,
            InboundEvent.SEND_MESSAGE.value: self._send_message,
        }

    # ── Connection lifecycle ─────────────────────────────────────────

    async def connect(self, connection: Connection) -> None:
        self._connections.register(connection)
        identity = connection.identity
        logger.info("Connected: user %s (%s)", identity.user_id, identity.role.value)

    async def disconnect(self, identity: Identity, connection: Connection | None = None) -> None:
        """Forget the connection and take a waiting client out of the queue."""
        if not self._connections.unregister(identity.user_id, connection):
            # A newer connection of the same user is still live.
            return
        logger.info("Disconnected: user %s (%s)", identity.user_id, identity.role.value)
        if not identity.is_client:
            return
        try:
            client = await self._participants.client_for(identity)
            if await self._queue.remove(client.id):
                await self._announce_positions()
        except NotFoundError:
            return
        except Exception:
            logger.exception("Error removing user %s from queue on disconnect", identity.user_id)

    async def dispatch(self, identity: Identity, event: str, data: dict | None = None) -> None:
        handler = self._handlers.get(event)
        if handler is None:
            await self._reply_error(identity, ValidationError(f"Unknown event '{event}'"))
            return
        try:
            await handler(identity, data or {})
        except SupportDeskError as e:
            logger.info("Rejected '%s' from user %s: %s (%s)", event, identity.user_id, e.message, e.code)
            await self._reply_error(identity, e)
        except PydanticValidationError:
            await self._reply_error(identity, ValidationError(f"Invalid payload for '{event}'"))
        except Exception:
            logger.exception("Error handling '%s' for user %s", event, identity.user_id)
            await self._connections.send(
                identity.user_id,
                OutboundEvent.ERROR.value,
                {"message": f"Failed to process '{event}'. Please try again.", "code": "internal"},
            )

    # ── Handlers ─────────────────────────────────────────────────────

    async def _join_queue(self, identity: Identity, data: dict) -> None:
        self._require(identity, Role.CLIENT, "Only clients can join the support queue")
        payload = JoinQueuePayload.model_validate(data)
        client = await self._participants.client_for(identity)
        ticket = await self._ticket_to_queue_for(client, payload.ticket_id)

        result = await self._queue.try_assign(client, ticket.id)
        if not result.assigned:
            await self._connections.send(
                identity.user_id,
                OutboundEvent.QUEUE_POSITION.value,
                {"position": result.position, "ticketId": result.ticket_id},
            )
            return

        await self._lifecycle.start_matched(ticket.id, client, result.engineer)
        await self._announce_match(client, result.engineer, ticket.id)

    async def _engineer_available(self, identity: Identity, data: dict) -> None:
        self._require(identity, Role.ENGINEER, "Only engineers can set availability")
        engineer = await self._participants.engineer_for(identity)
        engineer = await self._queue.set_availability(engineer.id, True)

        entry = await self._queue.on_engineer_available(engineer.id)
        if entry is None:
            await self._connections.send(
                identity.user_id, OutboundEvent.QUEUE_UPDATE.value, self._queue.status().to_dict()
            )
            return

        await self._announce_positions()
        if entry.ticket_id is not None:
            try:
                await self._lifecycle.start_matched(entry.ticket_id, entry.client, engineer)
            except Exception as e:
                # The client already left the wait-list; tell it to rejoin.
                await self._connections.send(
                    entry.client.user_id,
                    OutboundEvent.ERROR.value,
                    {
                        "message": UNMATCHED_NOTICE,
                        "code": getattr(e, "code", "internal"),
                        "ticketId": entry.ticket_id,
                    },
                )
                raise
        await self._announce_match(entry.client, self._queue.engineer(engineer.id) or engineer, entry.ticket_id)

    async def _engineer_away(self, identity: Identity, data: dict) -> None:
        self._require(identity, Role.ENGINEER, "Only engineers can set availability")
        engineer = await self._participants.engineer_for(identity)
        engineer = await self._queue.set_availability(engineer.id, False)
        await self._connections.send(
            identity.user_id, OutboundEvent.AVAILABILITY.value, {"isAvailable": engineer.is_available}
        )

    async def _send_ticket_message(self, identity: Identity, data: dict) -> None:
        payload = TicketMessagePayload.model_validate(data)
        await self._router.execute(identity, payload.ticket_id, payload.content)

    async def _resolve_ticket(self, identity: Identity, data: dict) -> None:
        self._require(identity, Role.ENGINEER, "Only engineers can resolve tickets")
        payload = TicketRefPayload.model_validate(data)
        await self._lifecycle.resolve(payload.ticket_id, identity)

    async def _leave_chat(self, identity: Identity, data: dict) -> None:
        self._require(identity, Role.CLIENT, "Only clients can leave a chat")
        payload = TicketRefPayload.model_validate(data)
        await self._lifecycle.resolve(payload.ticket_id, identity)

    async def _close_ticket(self, identity: Identity, data: dict) -> None:
        self._require(identity, Role.ENGINEER, "Only engineers can close tickets")
        payload = TicketRefPayload.model_validate(data)
        await self._lifecycle.close(payload.ticket_id, identity)

    async def _get_queue_status(self, identity: Identity, data: dict) -> None:
        self._require(identity, Role.ENGINEER, "Only engineers can view queue status")
        await self._connections.send(
            identity.user_id, OutboundEvent.QUEUE_UPDATE.value, self._queue.status().to_dict()
        )

    async def _send_message(self, identity: Identity, data: dict) -> None:
        self._require(identity, Role.CLIENT, "Only clients can send messages to AI")
        payload = AssistantPayload.model_validate(data)
        reply = await self._assistant.execute(payload.content)
        await self._connections.send(identity.user_id, OutboundEvent.AI_RESPONSE.value, reply.to_dict())

    # ── Helpers ──────────────────────────────────────────────────────

    @staticmethod
    def _require(identity: Identity, role: Role, message: str) -> None:
        if identity.role != role:
            raise ForbiddenError(message)

    async def _ticket_to_queue_for(self, client: Client, ticket_id: int | None) -> Ticket:
        if ticket_id is None:
            ticket = await self._tickets.get_oldest_open_for_client(client.id)
            if ticket is None:
                raise ValidationError("Create a ticket before joining the queue")
            return ticket

        ticket = await self._tickets.get_by_id(ticket_id)
        if ticket is None:
            raise NotFoundError("Ticket not found")
        if not ticket.is_owned_by(client.id):
            raise ForbiddenError("You do not own this ticket")
        if ticket.status != TicketStatus.OPEN or ticket.is_assigned():
            raise InvalidStateError(f"Ticket {ticket_id} is not waiting for an engineer")
        return ticket

    async def _announce_match(self, client: Client, engineer: Engineer, ticket_id: int | None) -> None:
        await self._connections.send(
            client.user_id,
            OutboundEvent.ENGINEER_ASSIGNED.value,
            {"engineer": serialize_engineer(engineer), "ticketId": ticket_id, "message": ASSIGNED_NOTICE},
        )
        await self._connections.send(
            engineer.user_id,
            OutboundEvent.CLIENT_ASSIGNED.value,
            {"client": serialize_client(client), "ticketId": ticket_id},
        )

    async def _announce_positions(self) -> None:
        for entry in self._queue.waiting():
            await self._connections.send(
                entry.client.user_id,
                OutboundEvent.QUEUE_POSITION.value,
                {"position": entry.position, "ticketId": entry.ticket_id},
            )

    async def _reply_error(self, identity: Identity, error: SupportDeskError) -> None:
        await self._connections.send(
            identity.user_id, OutboundEvent.ERROR.value, {"message": error.message, "code": error.code}
        )
