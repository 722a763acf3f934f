"""SQLAlchemy repository implementations.

Repositories are shared by long-lived services (the queue manager, the chat
router), so each one holds a session factory and runs every call in its own
short transaction. A single call is therefore atomic on its own rows.
"""

from __future__ import annotations

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from supportdesk.adapters.persistence.models import (
    ClientModel,
    EngineerModel,
    TicketMessageModel,
    TicketModel,
)
from supportdesk.application.ports.client_repo import ClientRepository
from supportdesk.application.ports.engineer_repo import EngineerRepository
from supportdesk.application.ports.ticket_repo import TicketRepository
from supportdesk.domain.entities.client import Client
from supportdesk.domain.entities.engineer import Engineer
from supportdesk.domain.entities.ticket import Message, Ticket
from supportdesk.domain.value_objects.enums import Role, TicketPriority, TicketStatus

SessionFactory = async_sessionmaker[AsyncSession]

# ─── Mappers ─────────────────────────────────────────────────────────


def _client_to_domain(m: ClientModel) -> Client:
    return Client(
        id=m.id,
        user_id=m.user_id,
        name=m.name,
        queue_position=m.queue_position,
        assigned_engineer_id=m.assigned_engineer_id,
        in_queue=m.in_queue,
    )


def _engineer_to_domain(m: EngineerModel) -> Engineer:
    return Engineer(
        id=m.id,
        user_id=m.user_id,
        name=m.name,
        capacity=m.capacity,
        current_load=m.current_load,
        is_available=m.is_available,
        specializations=set(m.specializations) if m.specializations else set(),
    )


def _message_to_domain(m: TicketMessageModel) -> Message:
    return Message(
        id=m.id,
        ticket_id=m.ticket_id,
        sender_id=m.sender_id,
        sender_role=Role(m.sender_role),
        sender_name=m.sender_name,
        content=m.content,
        created_at=m.created_at,
    )


def _ticket_to_domain(m: TicketModel) -> Ticket:
    return Ticket(
        id=m.id,
        subject=m.subject,
        description=m.description,
        category=m.category,
        client_id=m.client_id,
        priority=TicketPriority(m.priority),
        status=TicketStatus(m.status),
        assigned_engineer_id=m.assigned_engineer_id,
        messages=[_message_to_domain(msg) for msg in m.messages],
        created_at=m.created_at,
        updated_at=m.updated_at,
    )


def _scoped(stmt, client_id: int | None, engineer_id: int | None):
    if client_id is not None:
        stmt = stmt.where(TicketModel.client_id == client_id)
    if engineer_id is not None:
        stmt = stmt.where(TicketModel.assigned_engineer_id == engineer_id)
    return stmt


# ─── Repositories ────────────────────────────────────────────────────


class SqlClientRepository(ClientRepository):
    def __init__(self, session_factory: SessionFactory):
        self._sf = session_factory

    async def save(self, client: Client) -> Client:
        async with self._sf.begin() as s:
            m = ClientModel(
                user_id=client.user_id,
                name=client.name,
                queue_position=client.queue_position,
                in_queue=client.in_queue,
                assigned_engineer_id=client.assigned_engineer_id,
            )
            s.add(m)
            await s.flush()
            client.id = m.id
        return client

    async def get_by_id(self, client_id: int) -> Client | None:
        async with self._sf() as s:
            m = await s.get(ClientModel, client_id)
            return _client_to_domain(m) if m else None

    async def get_by_user(self, user_id: str) -> Client | None:
        async with self._sf() as s:
            result = await s.execute(select(ClientModel).where(ClientModel.user_id == user_id))
            m = result.scalar_one_or_none()
            return _client_to_domain(m) if m else None

    async def update_queue_state(
        self,
        client_id: int,
        *,
        queue_position: int,
        in_queue: bool,
        assigned_engineer_id: int | None,
    ) -> None:
        async with self._sf.begin() as s:
            await s.execute(
                update(ClientModel)
                .where(ClientModel.id == client_id)
                .values(
                    queue_position=queue_position,
                    in_queue=in_queue,
                    assigned_engineer_id=assigned_engineer_id,
                )
            )

    async def clear_queue_flags(self) -> int:
        async with self._sf.begin() as s:
            result = await s.execute(
                update(ClientModel)
                .where(ClientModel.in_queue.is_(True))
                .values(queue_position=0, in_queue=False)
            )
            return result.rowcount or 0


class SqlEngineerRepository(EngineerRepository):
    def __init__(self, session_factory: SessionFactory):
        self._sf = session_factory

    async def save(self, engineer: Engineer) -> Engineer:
        async with self._sf.begin() as s:
            m = EngineerModel(
                user_id=engineer.user_id,
                name=engineer.name,
                capacity=engineer.capacity,
                current_load=engineer.current_load,
                is_available=engineer.is_available,
                specializations=sorted(engineer.specializations),
            )
            s.add(m)
            await s.flush()
            engineer.id = m.id
        return engineer

    async def get_by_id(self, engineer_id: int) -> Engineer | None:
        async with self._sf() as s:
            m = await s.get(EngineerModel, engineer_id)
            return _engineer_to_domain(m) if m else None

    async def get_by_user(self, user_id: str) -> Engineer | None:
        async with self._sf() as s:
            result = await s.execute(select(EngineerModel).where(EngineerModel.user_id == user_id))
            m = result.scalar_one_or_none()
            return _engineer_to_domain(m) if m else None

    async def get_all(self) -> list[Engineer]:
        async with self._sf() as s:
            result = await s.execute(select(EngineerModel).order_by(EngineerModel.id))
            return [_engineer_to_domain(m) for m in result.scalars()]

    async def adjust_load(self, engineer_id: int, delta: int) -> bool:
        stmt = update(EngineerModel).where(EngineerModel.id == engineer_id)
        if delta > 0:
            # Conditional write: the row only changes while a slot is free.
            stmt = stmt.where(EngineerModel.current_load + delta <= EngineerModel.capacity).values(
                current_load=EngineerModel.current_load + delta
            )
        else:
            stmt = stmt.values(current_load=func.greatest(EngineerModel.current_load + delta, 0))
        async with self._sf.begin() as s:
            result = await s.execute(stmt)
            return (result.rowcount or 0) > 0

    async def set_availability(self, engineer_id: int, available: bool) -> None:
        async with self._sf.begin() as s:
            await s.execute(
                update(EngineerModel)
                .where(EngineerModel.id == engineer_id)
                .values(is_available=available)
            )


class SqlTicketRepository(TicketRepository):
    def __init__(self, session_factory: SessionFactory):
        self._sf = session_factory

    async def save(self, ticket: Ticket) -> Ticket:
        async with self._sf.begin() as s:
            m = TicketModel(
                subject=ticket.subject,
                description=ticket.description,
                priority=ticket.priority.value,
                status=ticket.status.value,
                category=ticket.category,
                client_id=ticket.client_id,
                assigned_engineer_id=ticket.assigned_engineer_id,
                created_at=ticket.created_at,
                updated_at=ticket.updated_at,
            )
            s.add(m)
            await s.flush()
            ticket.id = m.id
        return ticket

    async def get_by_id(self, ticket_id: int) -> Ticket | None:
        async with self._sf() as s:
            result = await s.execute(
                select(TicketModel)
                .options(selectinload(TicketModel.messages))
                .where(TicketModel.id == ticket_id)
            )
            m = result.scalar_one_or_none()
            return _ticket_to_domain(m) if m else None

    async def update(self, ticket: Ticket) -> Ticket:
        async with self._sf.begin() as s:
            await s.execute(
                update(TicketModel)
                .where(TicketModel.id == ticket.id)
                .values(
                    status=ticket.status.value,
                    assigned_engineer_id=ticket.assigned_engineer_id,
                    updated_at=ticket.updated_at,
                )
            )
        return ticket

    async def append_message(self, message: Message) -> Message:
        async with self._sf.begin() as s:
            m = TicketMessageModel(
                ticket_id=message.ticket_id,
                sender_id=message.sender_id,
                sender_role=message.sender_role.value,
                sender_name=message.sender_name,
                content=message.content,
                created_at=message.created_at,
            )
            s.add(m)
            await s.execute(
                update(TicketModel)
                .where(TicketModel.id == message.ticket_id)
                .values(updated_at=message.created_at)
            )
            await s.flush()
            return Message(
                id=m.id,
                ticket_id=message.ticket_id,
                sender_id=message.sender_id,
                sender_role=message.sender_role,
                sender_name=message.sender_name,
                content=message.content,
                created_at=message.created_at,
            )

    async def get_for_client(self, client_id: int) -> list[Ticket]:
        return await self._list(
            select(TicketModel)
            .where(TicketModel.client_id == client_id)
            .order_by(TicketModel.created_at.desc())
        )

    async def get_for_engineer(self, engineer_id: int) -> list[Ticket]:
        return await self._list(
            select(TicketModel)
            .where(TicketModel.assigned_engineer_id == engineer_id)
            .order_by(TicketModel.created_at.desc())
        )

    async def get_open_unassigned(self) -> list[Ticket]:
        return await self._list(
            select(TicketModel)
            .where(
                TicketModel.status == TicketStatus.OPEN.value,
                TicketModel.assigned_engineer_id.is_(None),
            )
            .order_by(TicketModel.created_at)
        )

    async def get_oldest_open_for_client(self, client_id: int) -> Ticket | None:
        tickets = await self._list(
            select(TicketModel)
            .where(
                TicketModel.client_id == client_id,
                TicketModel.status == TicketStatus.OPEN.value,
                TicketModel.assigned_engineer_id.is_(None),
            )
            .order_by(TicketModel.created_at, TicketModel.id)
            .limit(1)
        )
        return tickets[0] if tickets else None

    async def get_in_progress(self) -> list[Ticket]:
        return await self._list(
            select(TicketModel)
            .where(TicketModel.status == TicketStatus.IN_PROGRESS.value)
            .order_by(TicketModel.id)
        )

    async def get_recent(
        self, *, client_id: int | None = None, engineer_id: int | None = None, limit: int = 5
    ) -> list[Ticket]:
        stmt = _scoped(select(TicketModel), client_id, engineer_id)
        return await self._list(
            stmt.order_by(TicketModel.created_at.desc(), TicketModel.id.desc()).limit(limit)
        )

    async def count_by_status(
        self, *, client_id: int | None = None, engineer_id: int | None = None
    ) -> dict[TicketStatus, int]:
        stmt = _scoped(
            select(TicketModel.status, func.count(TicketModel.id)), client_id, engineer_id
        ).group_by(TicketModel.status)
        async with self._sf() as s:
            result = await s.execute(stmt)
            return {TicketStatus(status): count for status, count in result.all()}

    async def _list(self, stmt) -> list[Ticket]:
        async with self._sf() as s:
            result = await s.execute(stmt.options(selectinload(TicketModel.messages)))
            return [_ticket_to_domain(m) for m in result.scalars()]
