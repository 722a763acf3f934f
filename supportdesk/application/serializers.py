"""Plain-dict views of domain objects for event payloads and API responses."""

from __future__ import annotations

from supportdesk.domain.entities.client import Client
from supportdesk.domain.entities.engineer import Engineer
from supportdesk.domain.entities.ticket import Message, Ticket


def serialize_message(m: Message) -> dict:
    return {
        "id": m.id,
        "ticket_id": m.ticket_id,
        "sender_id": m.sender_id,
        "sender_role": m.sender_role.value,
        "sender_name": m.sender_name,
        "content": m.content,
        "created_at": m.created_at.isoformat() if m.created_at else None,
    }


def serialize_ticket(t: Ticket, include_messages: bool = True) -> dict:
    data = {
        "id": t.id,
        "subject": t.subject,
        "description": t.description,
        "category": t.category,
        "priority": t.priority.value,
        "status": t.status.value,
        "client_id": t.client_id,
        "assigned_engineer_id": t.assigned_engineer_id,
        "created_at": t.created_at.isoformat() if t.created_at else None,
        "updated_at": t.updated_at.isoformat() if t.updated_at else None,
    }
    if include_messages:
        data["messages"] = [serialize_message(m) for m in t.messages]
    return data


def serialize_engineer(e: Engineer) -> dict:
    return {
        "id": e.id,
        "name": e.name,
        "capacity": e.capacity,
        "current_load": e.current_load,
        "is_available": e.is_available,
        "specializations": sorted(e.specializations),
    }


def serialize_client(c: Client) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "queue_position": c.queue_position,
        "in_queue": c.in_queue,
        "assigned_engineer_id": c.assigned_engineer_id,
    }
