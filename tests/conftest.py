"""Pytest configuration, in-memory port fakes and shared fixtures."""

from __future__ import annotations

import dataclasses
from collections import Counter

import jwt
import pytest

from supportdesk.application.ports.client_repo import ClientRepository
from supportdesk.application.ports.engineer_repo import EngineerRepository
from supportdesk.application.ports.reply_port import ReplyGeneratorPort
from supportdesk.application.ports.ticket_repo import TicketRepository
from supportdesk.application.services.connection_registry import Connection
from supportdesk.domain.entities.client import Client
from supportdesk.domain.entities.engineer import Engineer
from supportdesk.domain.entities.ticket import Ticket
from supportdesk.domain.errors import UpstreamUnavailableError
from supportdesk.domain.value_objects.enums import Role, TicketStatus
from supportdesk.domain.value_objects.identity import Identity
from supportdesk.infrastructure.api.dependencies import build_services

TEST_SECRET = "test-secret"

# ─── In-memory fakes ────────────────────────────────────────────────
# Reads hand out copies, like rows loaded by a fresh session would be.


class InMemoryClientRepository(ClientRepository):
    def __init__(self):
        self.rows: dict[int, Client] = {}
        self.fail_queue_updates = False

    async def save(self, client):
        client.id = len(self.rows) + 1
        self.rows[client.id] = dataclasses.replace(client)
        return client

    async def get_by_id(self, client_id):
        row = self.rows.get(client_id)
        return dataclasses.replace(row) if row else None

    async def get_by_user(self, user_id):
        row = next((c for c in self.rows.values() if c.user_id == user_id), None)
        return dataclasses.replace(row) if row else None

    async def update_queue_state(self, client_id, *, queue_position, in_queue, assigned_engineer_id):
        if self.fail_queue_updates:
            raise RuntimeError("client store unavailable")
        row = self.rows[client_id]
        row.queue_position = queue_position
        row.in_queue = in_queue
        row.assigned_engineer_id = assigned_engineer_id

    async def clear_queue_flags(self):
        cleared = 0
        for row in self.rows.values():
            if row.in_queue:
                row.in_queue = False
                row.queue_position = 0
                cleared += 1
        return cleared


class InMemoryEngineerRepository(EngineerRepository):
    def __init__(self):
        self.rows: dict[int, Engineer] = {}
        self.refuse_increments = False

    async def save(self, engineer):
        engineer.id = len(self.rows) + 1
        self.rows[engineer.id] = dataclasses.replace(
            engineer, specializations=set(engineer.specializations)
        )
        return engineer

    async def get_by_id(self, engineer_id):
        row = self.rows.get(engineer_id)
        return self._copy(row) if row else None

    async def get_by_user(self, user_id):
        row = next((e for e in self.rows.values() if e.user_id == user_id), None)
        return self._copy(row) if row else None

    async def get_all(self):
        return [self._copy(e) for e in self.rows.values()]

    async def adjust_load(self, engineer_id, delta):
        row = self.rows.get(engineer_id)
        if row is None:
            return False
        if delta > 0:
            if self.refuse_increments or row.current_load + delta > row.capacity:
                return False
            row.current_load += delta
        else:
            row.current_load = max(row.current_load + delta, 0)
        return True

    async def set_availability(self, engineer_id, available):
        self.rows[engineer_id].is_available = available

    @staticmethod
    def _copy(engineer):
        return dataclasses.replace(engineer, specializations=set(engineer.specializations))


class InMemoryTicketRepository(TicketRepository):
    def __init__(self):
        self.rows: dict[int, Ticket] = {}
        self._message_ids = 0
        self.fail_updates = False

    async def save(self, ticket):
        ticket.id = len(self.rows) + 1
        self.rows[ticket.id] = self._copy(ticket)
        return ticket

    async def get_by_id(self, ticket_id):
        row = self.rows.get(ticket_id)
        return self._copy(row) if row else None

    async def update(self, ticket):
        if self.fail_updates:
            raise RuntimeError("ticket store unavailable")
        row = self.rows[ticket.id]
        row.status = ticket.status
        row.assigned_engineer_id = ticket.assigned_engineer_id
        row.updated_at = ticket.updated_at
        return ticket

    async def append_message(self, message):
        self._message_ids += 1
        stored = dataclasses.replace(message, id=self._message_ids)
        row = self.rows[message.ticket_id]
        row.messages.append(stored)
        row.updated_at = stored.created_at
        return stored

    async def get_for_client(self, client_id):
        found = [t for t in self.rows.values() if t.client_id == client_id]
        return [self._copy(t) for t in reversed(found)]

    async def get_for_engineer(self, engineer_id):
        found = [t for t in self.rows.values() if t.assigned_engineer_id == engineer_id]
        return [self._copy(t) for t in reversed(found)]

    async def get_open_unassigned(self):
        return [
            self._copy(t) for t in self.rows.values()
            if t.status == TicketStatus.OPEN and t.assigned_engineer_id is None
        ]

    async def get_oldest_open_for_client(self, client_id):
        return next(
            (
                self._copy(t) for t in self.rows.values()
                if t.client_id == client_id
                and t.status == TicketStatus.OPEN
                and t.assigned_engineer_id is None
            ),
            None,
        )

    async def get_in_progress(self):
        return [self._copy(t) for t in self.rows.values() if t.status == TicketStatus.IN_PROGRESS]

    async def get_recent(self, *, client_id=None, engineer_id=None, limit=5):
        found = [t for t in reversed(list(self.rows.values())) if self._in_scope(t, client_id, engineer_id)]
        return [self._copy(t) for t in found[:limit]]

    async def count_by_status(self, *, client_id=None, engineer_id=None):
        counts = Counter(t.status for t in self.rows.values() if self._in_scope(t, client_id, engineer_id))
        return dict(counts)

    @staticmethod
    def _in_scope(ticket, client_id, engineer_id):
        if client_id is not None and ticket.client_id != client_id:
            return False
        return engineer_id is None or ticket.assigned_engineer_id == engineer_id

    @staticmethod
    def _copy(ticket):
        return dataclasses.replace(ticket, messages=list(ticket.messages))


class FakeReplyGenerator(ReplyGeneratorPort):
    def __init__(self, answer: str = "Try restarting the app.", fail: bool = False):
        self.answer = answer
        self.fail = fail
        self.prompts: list[str] = []

    async def generate_reply(self, message):
        self.prompts.append(message)
        if self.fail:
            raise UpstreamUnavailableError("AI assistant is unavailable")
        return self.answer


class FakeConnection(Connection):
    """Records every event sent to it."""

    def __init__(self, identity: Identity, broken: bool = False):
        super().__init__(identity)
        self.sent: list[tuple[str, dict]] = []
        self.broken = broken

    async def send(self, event, payload):
        if self.broken:
            raise ConnectionError("socket closed")
        self.sent.append((event, payload))

    def events(self, name: str) -> list[dict]:
        return [payload for event, payload in self.sent if event == name]

    def names(self) -> list[str]:
        return [event for event, _ in self.sent]


# ─── World builder ──────────────────────────────────────────────────


class World:
    """In-memory stores wired into a full set of services."""

    def __init__(self, reply: FakeReplyGenerator | None = None, max_message_length: int = 2000):
        self.clients = InMemoryClientRepository()
        self.engineers = InMemoryEngineerRepository()
        self.tickets = InMemoryTicketRepository()
        self.reply = reply or FakeReplyGenerator()
        self.services = build_services(
            client_repo=self.clients,
            engineer_repo=self.engineers,
            ticket_repo=self.tickets,
            reply_generator=self.reply,
            broadcast_interval=10.0,
            max_message_length=max_message_length,
        )

    @property
    def queue(self):
        return self.services.queue

    @property
    def dispatcher(self):
        return self.services.dispatcher

    async def add_client(self, user_id: str, name: str | None = None) -> tuple[Identity, Client]:
        name = name or user_id.title()
        client = await self.clients.save(Client(id=None, user_id=user_id, name=name))
        return Identity(user_id=user_id, role=Role.CLIENT, name=name), client

    async def add_engineer(
        self, user_id: str, capacity: int = 5, available: bool = True, name: str | None = None
    ) -> tuple[Identity, Engineer]:
        name = name or user_id.title()
        engineer = await self.engineers.save(
            Engineer(id=None, user_id=user_id, name=name, capacity=capacity, is_available=available)
        )
        await self.queue.add_or_update_engineer(engineer)
        return Identity(user_id=user_id, role=Role.ENGINEER, name=name), engineer

    async def open_ticket(self, identity: Identity, subject: str = "Cannot log in") -> Ticket:
        return await self.services.lifecycle.create_ticket(
            identity, subject, "The password is rejected.", "account"
        )

    async def connect(self, identity: Identity, broken: bool = False) -> FakeConnection:
        connection = FakeConnection(identity, broken=broken)
        await self.dispatcher.connect(connection)
        return connection

    def stored_engineer(self, engineer_id: int) -> Engineer:
        return self.engineers.rows[engineer_id]

    def stored_ticket(self, ticket_id: int) -> Ticket:
        return self.tickets.rows[ticket_id]


@pytest.fixture
def world():
    return World()


@pytest.fixture
def make_token():
    def _make(user_id: str, role: str, name: str = "", secret: str = TEST_SECRET, **claims) -> str:
        payload = {"sub": user_id, "role": role, "name": name, **claims}
        return jwt.encode(payload, secret, algorithm="HS256")

    return _make


@pytest.fixture(autouse=True)
def _session_secret(monkeypatch):
    from supportdesk.config import settings

    monkeypatch.setattr(settings, "jwt_secret", TEST_SECRET)
    monkeypatch.setattr(settings, "jwt_algorithm", "HS256")


@pytest.fixture
def make_connection():
    def _make(user_id: str, role: Role = Role.CLIENT, broken: bool = False) -> FakeConnection:
        return FakeConnection(Identity(user_id=user_id, role=role), broken=broken)

    return _make


@pytest.fixture
def reply_generator():
    return FakeReplyGenerator()
