"""ConnectionRegistry — live connections keyed by authenticated identity.

Delivery is best effort: a missing or broken connection is logged and
reported as ``False``, never raised to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

from supportdesk.domain.value_objects.enums import Role
from supportdesk.domain.value_objects.identity import Identity

logger = logging.getLogger(__name__)


class Connection(ABC):
    """A live, authenticated, bidirectional channel tied to one identity."""

    def __init__(self, identity: Identity):
        self.identity = identity

    @abstractmethod
    async def send(self, event: str, payload: dict) -> None:
        ...


class ConnectionRegistry:
    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}

    def register(self, connection: Connection) -> Connection | None:
        """Register *connection*; the last connection of an identity wins.

        Returns the connection it replaced, if any.
        """
        user_id = connection.identity.user_id
        previous = self._connections.get(user_id)
        self._connections[user_id] = connection
        if previous is not None and previous is not connection:
            logger.info("User %s reconnected; replacing previous connection", user_id)
        return previous

    def unregister(self, user_id: str, connection: Connection | None = None) -> bool:
        """Forget the connection of *user_id*.

        When *connection* is given, only that exact handle is removed, so a
        late disconnect of an old socket cannot evict a newer one.
        """
        current = self._connections.get(user_id)
        if current is None:
            return False
        if connection is not None and current is not connection:
            return False
        del self._connections[user_id]
        return True

    def get(self, user_id: str) -> Connection | None:
        return self._connections.get(user_id)

    def is_connected(self, user_id: str) -> bool:
        return user_id in self._connections

    async def send(self, user_id: str | None, event: str, payload: dict) -> bool:
        if user_id is None:
            return False
        connection = self._connections.get(user_id)
        if connection is None:
            return False
        return await self._deliver(connection, event, payload)

    async def broadcast(
        self,
        event: str,
        payload: dict,
        role: Role | None = None,
        predicate: Callable[[Identity], bool] | None = None,
    ) -> int:
        """Send to every matching connection concurrently.

        Returns the number of successful deliveries.
        """
        targets = [
            c for c in list(self._connections.values())
            if (role is None or c.identity.role == role)
            and (predicate is None or predicate(c.identity))
        ]
        if not targets:
            return 0
        results = await asyncio.gather(*(self._deliver(c, event, payload) for c in targets))
        return sum(1 for ok in results if ok)

    async def _deliver(self, connection: Connection, event: str, payload: dict) -> bool:
        try:
            await connection.send(event, payload)
            return True
        except Exception as e:
            logger.warning(
                "Failed to deliver '%s' to user %s: %s",
                event, connection.identity.user_id, e,
            )
            return False

    def __len__(self) -> int:
        return len(self._connections)
