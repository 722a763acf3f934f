"""Tests for QueueStatusBroadcaster."""

import asyncio

import pytest

from supportdesk.application.use_cases.broadcast_queue import QueueStatusBroadcaster


@pytest.mark.asyncio
async def test_snapshot_goes_to_engineers_only(world):
    engineer_id, _ = await world.add_engineer("e1", capacity=1)
    c1, client1 = await world.add_client("c1")
    _, client2 = await world.add_client("c2", name="Cleo")
    engineer_conn = await world.connect(engineer_id)
    client_conn = await world.connect(c1)
    await world.queue.try_assign(client1)
    await world.queue.try_assign(client2)

    delivered = await world.services.broadcaster.broadcast_once()

    assert delivered == 1
    assert engineer_conn.events("queue-update") == [
        {"size": 1, "clients": [{"id": client2.id, "name": "Cleo", "position": 1}]}
    ]
    assert client_conn.events("queue-update") == []


@pytest.mark.asyncio
async def test_periodic_broadcast_runs_until_stopped(world):
    engineer_id, _ = await world.add_engineer("e1")
    conn = await world.connect(engineer_id)
    broadcaster = QueueStatusBroadcaster(world.queue, world.services.connections, interval=0.01)

    broadcaster.start()
    assert broadcaster.running
    await asyncio.sleep(0.05)
    await broadcaster.stop()

    assert not broadcaster.running
    ticks = len(conn.events("queue-update"))
    assert ticks >= 1
    await asyncio.sleep(0.03)
    assert len(conn.events("queue-update")) == ticks


def test_interval_must_be_positive(world):
    with pytest.raises(ValueError):
        QueueStatusBroadcaster(world.queue, world.services.connections, interval=0)
