"""Port interface for engineer persistence."""

from abc import ABC, abstractmethod

from supportdesk.domain.entities.engineer import Engineer


class EngineerRepository(ABC):
    @abstractmethod
    async def save(self, engineer: Engineer) -> Engineer:
        ...

    @abstractmethod
    async def get_by_id(self, engineer_id: int) -> Engineer | None:
        ...

    @abstractmethod
    async def get_by_user(self, user_id: str) -> Engineer | None:
        """Find the engineer profile behind a session identity."""
        ...

    @abstractmethod
    async def get_all(self) -> list[Engineer]:
        """All engineers ordered by id (registration order)."""
        ...

    @abstractmethod
    async def adjust_load(self, engineer_id: int, delta: int) -> bool:
        """Atomically add *delta* to the engineer's load.

        An increment must only apply while ``current_load < capacity``; a
        decrement is floored at zero. Returns False when the store refused
        the change.
        """
        ...

    @abstractmethod
    async def set_availability(self, engineer_id: int, available: bool) -> None:
        ...
