"""Event names exchanged with connected clients and engineers."""

from enum import Enum


class InboundEvent(str, Enum):
    JOIN_QUEUE = "join-queue"
    SEND_TICKET_MESSAGE = "send-ticket-message"
    RESOLVE_TICKET = "resolve-ticket"
    LEAVE_CHAT = "leave-chat"
    CLOSE_TICKET = "close-ticket"
    ENGINEER_AVAILABLE = "engineer-available"
    ENGINEER_AWAY = "engineer-away"
    GET_QUEUE_STATUS = "get-queue-status"
    SEND_MESSAGE = "send-message"


class OutboundEvent(str, Enum):
    QUEUE_POSITION = "queue-position"
    ENGINEER_ASSIGNED = "engineer-assigned"
    CLIENT_ASSIGNED = "client-assigned"
    TICKET_MESSAGE_RECEIVED = "ticket-message-received"
    TICKET_UPDATED = "ticket-updated"
    TICKET_RESOLVED = "ticket-resolved"
    NEW_TICKET_AVAILABLE = "new-ticket-available"
    QUEUE_UPDATE = "queue-update"
    AVAILABILITY = "availability"
    AI_RESPONSE = "ai-response"
    ERROR = "error"
