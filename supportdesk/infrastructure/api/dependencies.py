"""FastAPI dependency injection — wires adapters into use cases.

One SupportServices instance is built per application and kept on
``app.state``.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Header, HTTPException, Request

from supportdesk.adapters.auth.jwt_tokens import decode_session_token
from supportdesk.application.ports.client_repo import ClientRepository
from supportdesk.application.ports.engineer_repo import EngineerRepository
from supportdesk.application.ports.reply_port import ReplyGeneratorPort
from supportdesk.application.ports.ticket_repo import TicketRepository
from supportdesk.application.services.connection_registry import ConnectionRegistry
from supportdesk.application.services.keyed_locks import KeyedLocks
from supportdesk.application.services.participants import ParticipantResolver
from supportdesk.application.services.queue_manager import QueueManager
from supportdesk.application.services.rate_limiter import SlidingWindowRateLimiter
from supportdesk.application.use_cases.ask_assistant import AskAssistantUseCase
from supportdesk.application.use_cases.broadcast_queue import QueueStatusBroadcaster
from supportdesk.application.use_cases.handle_event import EventDispatcher
from supportdesk.application.use_cases.route_message import RouteMessageUseCase
from supportdesk.application.use_cases.ticket_lifecycle import TicketLifecycleUseCase
from supportdesk.domain.errors import AuthenticationError
from supportdesk.domain.value_objects.identity import Identity


@dataclass
class SupportServices:
    clients: ClientRepository
    engineers: EngineerRepository
    tickets: TicketRepository
    participants: ParticipantResolver
    queue: QueueManager
    connections: ConnectionRegistry
    lifecycle: TicketLifecycleUseCase
    router: RouteMessageUseCase
    assistant: AskAssistantUseCase
    assistant_limiter: SlidingWindowRateLimiter
    broadcaster: QueueStatusBroadcaster
    dispatcher: EventDispatcher

    async def seed(self) -> int:
        """Rebuild the capacity registry from the store."""
        in_progress = await self.tickets.get_in_progress()
        pairs = [
            (t.client_id, t.assigned_engineer_id)
            for t in in_progress
            if t.assigned_engineer_id is not None
        ]
        return await self.queue.seed(pairs)


def build_services(
    client_repo: ClientRepository,
    engineer_repo: EngineerRepository,
    ticket_repo: TicketRepository,
    reply_generator: ReplyGeneratorPort,
    broadcast_interval: float = 10.0,
    max_message_length: int = 2000,
    assistant_rate_limit: int = 20,
    assistant_rate_window: float = 900.0,
) -> SupportServices:
    connections = ConnectionRegistry()
    locks = KeyedLocks()
    participants = ParticipantResolver(client_repo, engineer_repo)
    queue = QueueManager(engineer_repo, client_repo)
    lifecycle = TicketLifecycleUseCase(ticket_repo, participants, queue, connections, locks)
    router = RouteMessageUseCase(ticket_repo, participants, connections, locks, max_length=max_message_length)
    assistant = AskAssistantUseCase(reply_generator, max_length=max_message_length)
    broadcaster = QueueStatusBroadcaster(queue, connections, interval=broadcast_interval)
    dispatcher = EventDispatcher(
        queue=queue,
        lifecycle=lifecycle,
        router=router,
        assistant=assistant,
        connections=connections,
        participants=participants,
        ticket_repo=ticket_repo,
    )
    return SupportServices(
        clients=client_repo,
        engineers=engineer_repo,
        tickets=ticket_repo,
        participants=participants,
        queue=queue,
        connections=connections,
        lifecycle=lifecycle,
        router=router,
        assistant=assistant,
        assistant_limiter=SlidingWindowRateLimiter(
            assistant_rate_limit,
            assistant_rate_window,
            message="Too many AI requests, please try again later",
        ),
        broadcaster=broadcaster,
        dispatcher=dispatcher,
    )


def get_services(request: Request) -> SupportServices:
    return request.app.state.services


def get_identity(authorization: str | None = Header(default=None)) -> Identity:
    try:
        return decode_session_token(authorization)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=401, detail=e.message, headers={"WWW-Authenticate": "Bearer"}
        ) from e

