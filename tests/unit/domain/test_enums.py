"""Tests for domain enums."""

from supportdesk.domain.value_objects.enums import Role, TicketPriority, TicketStatus


def test_ticket_status_values():
    assert TicketStatus.OPEN.value == "open"
    assert TicketStatus.IN_PROGRESS.value == "in-progress"
    assert TicketStatus.RESOLVED.value == "resolved"
    assert TicketStatus.CLOSED.value == "closed"


def test_priority_values():
    assert [p.value for p in TicketPriority] == ["low", "medium", "high"]


def test_roles_are_plain_strings():
    assert Role("client") is Role.CLIENT
    assert Role.ENGINEER == "engineer"
