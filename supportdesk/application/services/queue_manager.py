"""QueueManager — FIFO wait-list of clients matched against engineer capacity.

One instance per process, constructed explicitly and injected into the
handlers that need it. Every mutating operation runs under a single
asyncio.Lock, so "check capacity" and "increment load" are one atomic step.
Store writes happen before the in-memory counters change; when a write fails
the registry is left untouched.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

from supportdesk.application.ports.client_repo import ClientRepository
from supportdesk.application.ports.engineer_repo import EngineerRepository
from supportdesk.application.services.capacity_registry import CapacityRegistry
from supportdesk.domain.entities.client import Client
from supportdesk.domain.entities.engineer import Engineer
from supportdesk.domain.errors import CapacityExceededError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass
class QueueEntry:
    """A waiting client and the ticket it is waiting on."""

    client: Client
    ticket_id: int | None
    position: int = 0


@dataclass
class AssignmentResult:
    assigned: bool
    client: Client
    engineer: Engineer | None = None
    position: int | None = None
    ticket_id: int | None = None


@dataclass
class QueueStatus:
    size: int
    clients: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"size": self.size, "clients": [dict(c) for c in self.clients]}


class QueueManager:
    def __init__(
        self,
        engineer_repo: EngineerRepository,
        client_repo: ClientRepository,
        registry: CapacityRegistry | None = None,
    ):
        self._engineers = engineer_repo
        self._clients = client_repo
        self._registry = registry if registry is not None else CapacityRegistry()
        self._waiting: list[QueueEntry] = []
        # (client_id, engineer_id) -> number of active assignments between them
        self._active: Counter[tuple[int, int]] = Counter()
        self._lock = asyncio.Lock()

    # ── Startup ──────────────────────────────────────────────────────

    async def seed(self, active_pairs: Iterable[tuple[int, int]] = ()) -> int:
        """Load every engineer from the store and rebuild active assignments.

        Clients still flagged as queued belong to connections of a previous
        process, so their queue state is cleared rather than restored.
        """
        engineers = await self._engineers.get_all()
        stale = await self._clients.clear_queue_flags()
        async with self._lock:
            for engineer in engineers:
                self._registry.upsert(engineer)
            self._active.clear()
            for pair in active_pairs:
                self._active[pair] += 1
        if stale:
            logger.info("Cleared queue state of %d clients from a previous run", stale)
        logger.info("Initialized %d engineers", len(engineers))
        return len(engineers)

    # ── Mutations ────────────────────────────────────────────────────

    async def add_or_update_engineer(self, engineer: Engineer) -> None:
        async with self._lock:
            self._registry.upsert(engineer)

    async def try_assign(self, client: Client, ticket_id: int | None = None) -> AssignmentResult:
        """Match *client* to the first engineer with a free slot, or queue it.

        A client that is already waiting keeps its place. The wait-list is
        FIFO among waiting clients only: a slot freed without a following
        ``on_engineer_available`` goes to the next client that calls this,
        even while others are queued.
        """
        async with self._lock:
            existing = self._entry_for(client.id)
            if existing is not None:
                return AssignmentResult(
                    assigned=False,
                    client=existing.client,
                    position=existing.position,
                    ticket_id=existing.ticket_id,
                )

            for candidate in self._registry.candidates():
                if await self._commit_assignment(client, candidate.id):
                    logger.info("Client %s assigned to engineer %s", client.id, candidate.id)
                    return AssignmentResult(
                        assigned=True,
                        client=client,
                        engineer=self._copy(candidate.id),
                        ticket_id=ticket_id,
                    )

            position = len(self._waiting) + 1
            await self._clients.update_queue_state(
                client.id,
                queue_position=position,
                in_queue=True,
                assigned_engineer_id=client.assigned_engineer_id,
            )
            client.queue_position = position
            client.in_queue = True
            self._waiting.append(QueueEntry(client=client, ticket_id=ticket_id, position=position))
            logger.info("Client %s queued at position %d", client.id, position)
            return AssignmentResult(assigned=False, client=client, position=position, ticket_id=ticket_id)

    async def on_engineer_available(self, engineer_id: int) -> QueueEntry | None:
        """Hand the longest-waiting client to *engineer_id*.

        Returns the matched entry, or None when nobody is waiting.
        """
        async with self._lock:
            if await self._known(engineer_id) is None:
                raise NotFoundError(f"Engineer {engineer_id} is not registered")
            if not self._waiting:
                return None
            if not self._registry.has_capacity(engineer_id):
                raise CapacityExceededError(f"Engineer {engineer_id} has no free slot")

            head = self._waiting[0]
            if not await self._commit_assignment(head.client, engineer_id):
                raise CapacityExceededError(f"Engineer {engineer_id} has no free slot")

            self._waiting.pop(0)
            head.position = 0
            await self._renumber()
            logger.info(
                "Dequeued client %s for engineer %s (%d still waiting)",
                head.client.id, engineer_id, len(self._waiting),
            )
            return head

    async def assign_to(
        self, client: Client, engineer_id: int, ticket_id: int | None = None
    ) -> Engineer:
        """Reserve a slot of a specific engineer for *client*.

        This is the capacity check behind direct ticket assignment. If the
        client was queued for the same ticket it leaves the wait-list.
        """
        async with self._lock:
            engineer = await self._known(engineer_id)
            if engineer is None:
                raise NotFoundError(f"Engineer {engineer_id} is not registered")
            if not engineer.is_available:
                raise CapacityExceededError("Engineer is not accepting tickets")
            if engineer.current_load >= engineer.capacity:
                raise CapacityExceededError("Engineer at capacity")

            entry = self._entry_for(client.id)
            leaves_queue = entry is not None and entry.ticket_id == ticket_id
            keep_position = entry.position if entry is not None and not leaves_queue else 0

            if not await self._commit_assignment(client, engineer_id, queue_position=keep_position):
                raise CapacityExceededError("Engineer at capacity")

            if leaves_queue:
                self._waiting.remove(entry)
                await self._renumber()
            return self._copy(engineer_id)

    async def release(self, client_id: int, engineer_id: int) -> bool:
        """Give back the slot *engineer_id* holds for *client_id*.

        Releasing a pair without an active assignment is a no-op, so a
        repeated release never drives the load below zero.
        """
        async with self._lock:
            pair = (client_id, engineer_id)
            if self._active[pair] <= 0:
                logger.debug("No active assignment between client %s and engineer %s", *pair)
                return False

            await self._engineers.adjust_load(engineer_id, -1)
            self._active[pair] -= 1
            if self._active[pair] <= 0:
                del self._active[pair]
            self._registry.decrement(engineer_id)

            position, in_queue = self._queue_state(client_id)
            await self._clients.update_queue_state(
                client_id,
                queue_position=position,
                in_queue=in_queue,
                assigned_engineer_id=self._remaining_engineer(client_id),
            )
            logger.info("Released client %s from engineer %s", client_id, engineer_id)
            return True

    async def remove(self, client_id: int) -> bool:
        """Drop a waiting client (e.g. on disconnect) and close the gap."""
        async with self._lock:
            entry = self._entry_for(client_id)
            if entry is None:
                return False
            await self._clients.update_queue_state(
                client_id,
                queue_position=0,
                in_queue=False,
                assigned_engineer_id=entry.client.assigned_engineer_id,
            )
            self._waiting.remove(entry)
            entry.client.queue_position = 0
            entry.client.in_queue = False
            await self._renumber()
            logger.info("Removed client %s from queue", client_id)
            return True

    async def set_availability(self, engineer_id: int, available: bool) -> Engineer:
        async with self._lock:
            if await self._known(engineer_id) is None:
                raise NotFoundError(f"Engineer {engineer_id} is not registered")
            await self._engineers.set_availability(engineer_id, available)
            self._registry.set_availability(engineer_id, available)
            return self._copy(engineer_id)

    # ── Reads ────────────────────────────────────────────────────────

    def position(self, client_id: int) -> int | None:
        entry = self._entry_for(client_id)
        return entry.position if entry is not None else None

    def waiting(self) -> list[QueueEntry]:
        return list(self._waiting)

    def engineer(self, engineer_id: int) -> Engineer | None:
        if engineer_id not in self._registry:
            return None
        return self._copy(engineer_id)

    def idle_user_ids(self) -> set[str]:
        """Identities of engineers that are available and have a free slot."""
        return {e.user_id for e in self._registry.candidates()}

    def status(self) -> QueueStatus:
        return QueueStatus(
            size=len(self._waiting),
            clients=[
                {"id": e.client.id, "name": e.client.name, "position": e.position}
                for e in self._waiting
            ],
        )

    def __len__(self) -> int:
        return len(self._waiting)

    # ── Internals (lock held) ───────────────────────────────────────

    async def _commit_assignment(
        self, client: Client, engineer_id: int, queue_position: int = 0
    ) -> bool:
        if not await self._engineers.adjust_load(engineer_id, 1):
            logger.warning(
                "Store refused a load increment for engineer %s; refreshing its snapshot",
                engineer_id,
            )
            await self._refresh(engineer_id)
            return False
        try:
            await self._clients.update_queue_state(
                client.id,
                queue_position=queue_position,
                in_queue=queue_position > 0,
                assigned_engineer_id=engineer_id,
            )
        except Exception:
            await self._engineers.adjust_load(engineer_id, -1)
            raise

        self._registry.increment(engineer_id)
        self._active[(client.id, engineer_id)] += 1
        client.assigned_engineer_id = engineer_id
        client.queue_position = queue_position
        client.in_queue = queue_position > 0
        return True

    async def _refresh(self, engineer_id: int) -> None:
        fresh = await self._engineers.get_by_id(engineer_id)
        if fresh is not None:
            self._registry.upsert(fresh)

    async def _known(self, engineer_id: int) -> Engineer | None:
        """Registry entry for *engineer_id*; engineers created after seeding are loaded on first use."""
        if engineer_id not in self._registry:
            await self._refresh(engineer_id)
        return self._registry.get(engineer_id)

    async def _renumber(self) -> None:
        for index, entry in enumerate(self._waiting, start=1):
            entry.position = index
            entry.client.queue_position = index
        waiting = list(self._waiting)
        results = await asyncio.gather(
            *(
                self._clients.update_queue_state(
                    e.client.id,
                    queue_position=e.position,
                    in_queue=True,
                    assigned_engineer_id=e.client.assigned_engineer_id,
                )
                for e in waiting
            ),
            return_exceptions=True,
        )
        for entry, result in zip(waiting, results):
            if isinstance(result, Exception):
                # In-memory order stays authoritative; the next renumber retries.
                logger.warning(
                    "Could not persist queue position %d for client %s: %s",
                    entry.position, entry.client.id, result,
                )

    def _entry_for(self, client_id: int | None) -> QueueEntry | None:
        return next((e for e in self._waiting if e.client.id == client_id), None)

    def _queue_state(self, client_id: int) -> tuple[int, bool]:
        entry = self._entry_for(client_id)
        return (entry.position, True) if entry is not None else (0, False)

    def _remaining_engineer(self, client_id: int) -> int | None:
        return next((eid for (cid, eid), n in self._active.items() if cid == client_id and n > 0), None)

    def _copy(self, engineer_id: int) -> Engineer:
        engineer = self._registry.get(engineer_id)
        return dataclasses.replace(engineer, specializations=set(engineer.specializations))
