"""Port interface for client persistence."""

from abc import ABC, abstractmethod

from supportdesk.domain.entities.client import Client


class ClientRepository(ABC):
    @abstractmethod
    async def save(self, client: Client) -> Client:
        ...

    @abstractmethod
    async def get_by_id(self, client_id: int) -> Client | None:
        ...

    @abstractmethod
    async def get_by_user(self, user_id: str) -> Client | None:
        """Find the client profile behind a session identity."""
        ...

    @abstractmethod
    async def update_queue_state(
        self,
        client_id: int,
        *,
        queue_position: int,
        in_queue: bool,
        assigned_engineer_id: int | None,
    ) -> None:
        ...

    @abstractmethod
    async def clear_queue_flags(self) -> int:
        """Reset every client's queue position and in-queue flag.

        Returns the number of clients that were marked as queued.
        """
        ...
