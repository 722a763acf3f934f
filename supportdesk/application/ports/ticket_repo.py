"""Port interface for ticket persistence."""

from abc import ABC, abstractmethod

from supportdesk.domain.entities.ticket import Message, Ticket
from supportdesk.domain.value_objects.enums import TicketStatus


class TicketRepository(ABC):
    @abstractmethod
    async def save(self, ticket: Ticket) -> Ticket:
        ...

    @abstractmethod
    async def get_by_id(self, ticket_id: int) -> Ticket | None:
        """Return the ticket with its messages in insertion order."""
        ...

    @abstractmethod
    async def update(self, ticket: Ticket) -> Ticket:
        """Persist status, assignment and timestamps (not messages)."""
        ...

    @abstractmethod
    async def append_message(self, message: Message) -> Message:
        """Append *message* to its ticket and return it with an id."""
        ...

    @abstractmethod
    async def get_for_client(self, client_id: int) -> list[Ticket]:
        ...

    @abstractmethod
    async def get_for_engineer(self, engineer_id: int) -> list[Ticket]:
        ...

    @abstractmethod
    async def get_open_unassigned(self) -> list[Ticket]:
        ...

    @abstractmethod
    async def get_oldest_open_for_client(self, client_id: int) -> Ticket | None:
        ...

    @abstractmethod
    async def get_in_progress(self) -> list[Ticket]:
        ...

    @abstractmethod
    async def get_recent(
        self, *, client_id: int | None = None, engineer_id: int | None = None, limit: int = 5
    ) -> list[Ticket]:
        """Newest tickets first, optionally scoped to a client or an engineer."""
        ...

    @abstractmethod
    async def count_by_status(
        self, *, client_id: int | None = None, engineer_id: int | None = None
    ) -> dict[TicketStatus, int]:
        """Ticket counts per status; statuses without tickets may be missing."""
        ...
