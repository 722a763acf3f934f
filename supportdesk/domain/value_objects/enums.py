"""Domain enums — pure Python, no external dependencies."""

from enum import Enum


class Role(str, Enum):
    CLIENT = "client"
    ENGINEER = "engineer"


class TicketStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
