"""Ticket entity — a unit of support work with an append-only chat history."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from supportdesk.domain.value_objects.enums import Role, TicketPriority, TicketStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Message:
    """One chat line. The sender role is fixed when the message is appended."""

    id: int | None
    ticket_id: int
    sender_id: int
    sender_role: Role
    sender_name: str
    content: str
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Ticket:
    id: int | None
    subject: str
    description: str
    category: str
    client_id: int
    priority: TicketPriority = TicketPriority.MEDIUM
    status: TicketStatus = TicketStatus.OPEN
    assigned_engineer_id: int | None = None
    messages: list[Message] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def is_assigned(self) -> bool:
        return self.assigned_engineer_id is not None

    def is_chat_open(self) -> bool:
        return self.status not in (TicketStatus.RESOLVED, TicketStatus.CLOSED)

    def is_owned_by(self, client_id: int) -> bool:
        return self.client_id == client_id

    def is_assigned_to(self, engineer_id: int) -> bool:
        return self.assigned_engineer_id is not None and self.assigned_engineer_id == engineer_id

    def touch(self) -> None:
        self.updated_at = utcnow()
