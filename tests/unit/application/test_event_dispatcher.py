"""End-to-end flows through EventDispatcher with in-memory fakes."""

from __future__ import annotations

import pytest

from supportdesk.domain.value_objects.enums import TicketStatus


@pytest.mark.asyncio
async def test_join_queue_matches_idle_engineer(world):
    engineer_id, engineer = await world.add_engineer("e1", name="Eve")
    client_id, client = await world.add_client("c1", name="Carl")
    engineer_conn = await world.connect(engineer_id)
    client_conn = await world.connect(client_id)
    ticket = await world.open_ticket(client_id)

    await world.dispatcher.dispatch(client_id, "join-queue", {"ticketId": ticket.id})

    assigned = client_conn.events("engineer-assigned")[0]
    assert assigned["engineer"]["name"] == "Eve"
    assert assigned["ticketId"] == ticket.id
    matched = engineer_conn.events("client-assigned")[0]
    assert matched["client"]["id"] == client.id
    assert world.stored_ticket(ticket.id).status == TicketStatus.IN_PROGRESS
    assert world.stored_ticket(ticket.id).assigned_engineer_id == engineer.id
    assert world.stored_engineer(engineer.id).current_load == 1
    assert client_conn.events("error") == []


@pytest.mark.asyncio
async def test_join_queue_without_ticket_id_uses_oldest_open_ticket(world):
    await world.add_engineer("e1")
    client_id, _ = await world.add_client("c1")
    client_conn = await world.connect(client_id)
    first = await world.open_ticket(client_id, subject="First")
    await world.open_ticket(client_id, subject="Second")

    await world.dispatcher.dispatch(client_id, "join-queue", {})

    assert client_conn.events("engineer-assigned")[0]["ticketId"] == first.id


@pytest.mark.asyncio
async def test_join_queue_without_open_ticket(world):
    client_id, _ = await world.add_client("c1")
    client_conn = await world.connect(client_id)

    await world.dispatcher.dispatch(client_id, "join-queue", {})

    assert client_conn.events("error")[0]["code"] == "validation"


@pytest.mark.asyncio
async def test_full_engineer_queues_then_dequeues_on_availability(world):
    engineer_id, engineer = await world.add_engineer("e1", capacity=1)
    c1, _ = await world.add_client("c1")
    c2, _ = await world.add_client("c2")
    engineer_conn = await world.connect(engineer_id)
    c1_conn = await world.connect(c1)
    c2_conn = await world.connect(c2)
    t1 = await world.open_ticket(c1)
    t2 = await world.open_ticket(c2)

    await world.dispatcher.dispatch(c1, "join-queue", {"ticketId": t1.id})
    await world.dispatcher.dispatch(c2, "join-queue", {"ticketId": t2.id})
    assert c2_conn.events("queue-position") == [{"position": 1, "ticketId": t2.id}]

    await world.dispatcher.dispatch(engineer_id, "resolve-ticket", {"ticketId": t1.id})
    assert c1_conn.events("ticket-resolved")
    await world.dispatcher.dispatch(engineer_id, "engineer-available", {})

    assert c2_conn.events("engineer-assigned")[0]["ticketId"] == t2.id
    assert world.stored_ticket(t2.id).status == TicketStatus.IN_PROGRESS
    assert world.stored_engineer(engineer.id).current_load == 1
    assert len(world.queue) == 0
    assert engineer_conn.events("error") == []


@pytest.mark.asyncio
async def test_dequeued_client_hears_when_its_ticket_cannot_start(world):
    engineer_id, engineer = await world.add_engineer("e1", capacity=1)
    c1, _ = await world.add_client("c1")
    c2, _ = await world.add_client("c2")
    engineer_conn = await world.connect(engineer_id)
    c2_conn = await world.connect(c2)
    t1 = await world.open_ticket(c1)
    t2 = await world.open_ticket(c2)
    await world.dispatcher.dispatch(c1, "join-queue", {"ticketId": t1.id})
    await world.dispatcher.dispatch(c2, "join-queue", {"ticketId": t2.id})
    await world.dispatcher.dispatch(engineer_id, "resolve-ticket", {"ticketId": t1.id})

    world.tickets.fail_updates = True
    await world.dispatcher.dispatch(engineer_id, "engineer-available", {})

    notice = c2_conn.events("error")[-1]
    assert notice["ticketId"] == t2.id
    assert notice["code"] == "internal"
    assert c2_conn.events("engineer-assigned") == []
    assert engineer_conn.events("error")
    assert world.stored_engineer(engineer.id).current_load == 0
    assert len(world.queue) == 0


@pytest.mark.asyncio
async def test_engineer_available_with_nobody_waiting_sends_queue_update(world):
    engineer_id, _ = await world.add_engineer("e1", available=False)
    conn = await world.connect(engineer_id)

    await world.dispatcher.dispatch(engineer_id, "engineer-available", {})

    assert conn.events("queue-update") == [{"size": 0, "clients": []}]
    assert world.queue.engineer(1).is_available


@pytest.mark.asyncio
async def test_engineer_away(world):
    engineer_id, engineer = await world.add_engineer("e1")
    conn = await world.connect(engineer_id)

    await world.dispatcher.dispatch(engineer_id, "engineer-away", {})

    assert conn.events("availability") == [{"isAvailable": False}]
    assert not world.stored_engineer(engineer.id).is_available
    assert world.queue.idle_user_ids() == set()


@pytest.mark.asyncio
async def test_engineer_registered_after_startup_joins_on_first_use(world):
    from supportdesk.domain.entities.engineer import Engineer
    from supportdesk.domain.value_objects.enums import Role
    from supportdesk.domain.value_objects.identity import Identity

    late = await world.engineers.save(Engineer(id=None, user_id="late", name="Lee"))
    identity = Identity("late", Role.ENGINEER)
    conn = await world.connect(identity)

    await world.dispatcher.dispatch(identity, "engineer-away", {})

    assert world.queue.engineer(late.id) is not None
    assert conn.events("error") == []


@pytest.mark.asyncio
async def test_chat_over_events(world):
    engineer_id, _ = await world.add_engineer("e1")
    client_id, _ = await world.add_client("c1")
    engineer_conn = await world.connect(engineer_id)
    client_conn = await world.connect(client_id)
    ticket = await world.open_ticket(client_id)
    await world.dispatcher.dispatch(client_id, "join-queue", {"ticketId": ticket.id})

    await world.dispatcher.dispatch(
        client_id, "send-ticket-message", {"ticketId": ticket.id, "content": "Hello"}
    )
    await world.dispatcher.dispatch(
        engineer_id, "send-ticket-message", {"ticketId": ticket.id, "content": "Hi, checking"}
    )

    seen_by_client = [p["message"]["content"] for p in client_conn.events("ticket-message-received")]
    seen_by_engineer = [p["message"]["content"] for p in engineer_conn.events("ticket-message-received")]
    assert seen_by_client == ["Hello", "Hi, checking"]
    assert seen_by_engineer == ["Hello", "Hi, checking"]


@pytest.mark.asyncio
async def test_leave_chat_and_close(world):
    engineer_id, engineer = await world.add_engineer("e1")
    client_id, _ = await world.add_client("c1")
    await world.connect(engineer_id)
    client_conn = await world.connect(client_id)
    ticket = await world.open_ticket(client_id)
    await world.dispatcher.dispatch(client_id, "join-queue", {"ticketId": ticket.id})

    await world.dispatcher.dispatch(client_id, "leave-chat", {"ticketId": ticket.id})
    await world.dispatcher.dispatch(engineer_id, "close-ticket", {"ticketId": ticket.id})

    assert world.stored_ticket(ticket.id).status == TicketStatus.CLOSED
    assert world.stored_engineer(engineer.id).current_load == 0
    assert client_conn.events("ticket-updated")[-1]["ticket"]["status"] == "closed"


@pytest.mark.asyncio
async def test_disconnect_takes_client_out_of_queue(world):
    await world.add_engineer("e1", capacity=1)
    c1, _ = await world.add_client("c1")
    c2, client2 = await world.add_client("c2")
    c3, client3 = await world.add_client("c3")
    await world.connect(c1)
    c2_conn = await world.connect(c2)
    c3_conn = await world.connect(c3)
    for identity in (c1, c2, c3):
        ticket = await world.open_ticket(identity)
        await world.dispatcher.dispatch(identity, "join-queue", {"ticketId": ticket.id})
    assert world.queue.position(client3.id) == 2

    await world.dispatcher.disconnect(c2, c2_conn)

    assert world.queue.position(client2.id) is None
    assert world.queue.position(client3.id) == 1
    assert c3_conn.events("queue-position")[-1]["position"] == 1
    assert not world.services.connections.is_connected("c2")


@pytest.mark.asyncio
async def test_stale_disconnect_is_ignored(world):
    await world.add_engineer("e1", capacity=1)
    c1, _ = await world.add_client("c1")
    c2, client2 = await world.add_client("c2")
    await world.connect(c1)
    old = await world.connect(c2)
    for identity in (c1, c2):
        ticket = await world.open_ticket(identity)
        await world.dispatcher.dispatch(identity, "join-queue", {"ticketId": ticket.id})
    await world.connect(c2)

    await world.dispatcher.disconnect(c2, old)

    assert world.queue.position(client2.id) == 1
    assert world.services.connections.is_connected("c2")


@pytest.mark.asyncio
async def test_get_queue_status(world):
    engineer_id, _ = await world.add_engineer("e1")
    conn = await world.connect(engineer_id)

    await world.dispatcher.dispatch(engineer_id, "get-queue-status", {})

    assert conn.events("queue-update") == [{"size": 0, "clients": []}]


@pytest.mark.asyncio
async def test_send_message_to_assistant(world):
    client_id, _ = await world.add_client("c1")
    conn = await world.connect(client_id)

    await world.dispatcher.dispatch(client_id, "send-message", {"content": "My wifi is slow"})

    assert conn.events("ai-response") == [{"response": "Try restarting the app.", "fallback": False}]
    assert world.reply.prompts == ["My wifi is slow"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "role,event,data,code",
    [
        ("engineer", "join-queue", {}, "forbidden"),
        ("client", "resolve-ticket", {"ticketId": 1}, "forbidden"),
        ("client", "get-queue-status", {}, "forbidden"),
        ("engineer", "send-message", {"content": "hi"}, "forbidden"),
        ("client", "send-ticket-message", {"content": "no ticket id"}, "validation"),
        ("client", "send-ticket-message", {"ticketId": 42, "content": "hi"}, "not-found"),
        ("client", "teleport", {}, "validation"),
    ],
)
async def test_errors_go_back_to_sender_only(world, role, event, data, code):
    if role == "client":
        identity, _ = await world.add_client("u1")
    else:
        identity, _ = await world.add_engineer("u1")
    bystander, _ = await world.add_engineer("e9")
    conn = await world.connect(identity)
    bystander_conn = await world.connect(bystander)

    await world.dispatcher.dispatch(identity, event, data)

    errors = conn.events("error")
    assert len(errors) == 1
    assert errors[0]["code"] == code
    assert bystander_conn.events("error") == []


@pytest.mark.asyncio
async def test_connection_stays_usable_after_error(world):
    client_id, _ = await world.add_client("c1")
    conn = await world.connect(client_id)

    await world.dispatcher.dispatch(client_id, "send-message", {"content": ""})
    await world.dispatcher.dispatch(client_id, "send-message", {"content": "hello"})

    assert conn.names() == ["error", "ai-response"]
