"""Tests for domain entities."""

import dataclasses

import pytest

from supportdesk.domain.entities.engineer import Engineer
from supportdesk.domain.entities.ticket import Message, Ticket
from supportdesk.domain.value_objects.enums import Role, TicketPriority, TicketStatus
from supportdesk.domain.value_objects.identity import Identity, Participant


def _ticket(**kw) -> Ticket:
    defaults = dict(id=1, subject="VPN drops", description="Every hour", category="network", client_id=7)
    defaults.update(kw)
    return Ticket(**defaults)


class TestEngineer:
    def test_defaults(self):
        e = Engineer(id=1, user_id="u1", name="Eve")
        assert e.capacity == 5
        assert e.current_load == 0
        assert e.is_available
        assert e.has_capacity()

    def test_full_engineer_has_no_capacity(self):
        e = Engineer(id=1, user_id="u1", name="Eve", capacity=2, current_load=2)
        assert not e.has_capacity()

    def test_away_engineer_has_no_capacity(self):
        e = Engineer(id=1, user_id="u1", name="Eve", is_available=False)
        assert not e.has_capacity()

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            Engineer(id=1, user_id="u1", name="Eve", capacity=0)

    def test_load_cannot_be_negative(self):
        with pytest.raises(ValueError):
            Engineer(id=1, user_id="u1", name="Eve", current_load=-1)


class TestTicket:
    def test_defaults(self):
        t = _ticket()
        assert t.status == TicketStatus.OPEN
        assert t.priority == TicketPriority.MEDIUM
        assert not t.is_assigned()
        assert t.messages == []

    def test_ownership_and_assignment(self):
        t = _ticket(assigned_engineer_id=3)
        assert t.is_owned_by(7)
        assert not t.is_owned_by(8)
        assert t.is_assigned_to(3)
        assert not t.is_assigned_to(4)

    @pytest.mark.parametrize(
        "status,open_",
        [
            (TicketStatus.OPEN, True),
            (TicketStatus.IN_PROGRESS, True),
            (TicketStatus.RESOLVED, False),
            (TicketStatus.CLOSED, False),
        ],
    )
    def test_chat_open_until_resolved(self, status, open_):
        assert _ticket(status=status).is_chat_open() is open_

    def test_touch_moves_updated_at(self):
        t = _ticket()
        before = t.updated_at
        t.touch()
        assert t.updated_at >= before


def test_message_is_immutable():
    m = Message(id=1, ticket_id=1, sender_id=2, sender_role=Role.CLIENT, sender_name="Carl", content="hi")
    with pytest.raises(dataclasses.FrozenInstanceError):
        m.content = "edited"


def test_identity_and_participant_roles():
    assert Identity("u1", Role.CLIENT).is_client
    assert Participant(Role.ENGINEER, 4, "u2", "Eve").is_engineer
