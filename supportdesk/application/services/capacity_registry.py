"""CapacityRegistry — in-memory mirror of each engineer's load vs. capacity.

The registry is not synchronized on its own; QueueManager is its only writer
and holds its lock around every mutation.
"""

from __future__ import annotations

import dataclasses

from supportdesk.domain.entities.engineer import Engineer
from supportdesk.domain.policies.engineer_selection import available_in_order


class CapacityRegistry:
    def __init__(self) -> None:
        # dict keeps insertion order, which is the first-fit order
        self._engineers: dict[int, Engineer] = {}

    def upsert(self, engineer: Engineer) -> None:
        if engineer.id is None:
            raise ValueError("Cannot register an engineer without an id")
        snapshot = dataclasses.replace(engineer, specializations=set(engineer.specializations))
        self._engineers[engineer.id] = snapshot

    def get(self, engineer_id: int) -> Engineer | None:
        return self._engineers.get(engineer_id)

    def candidates(self) -> list[Engineer]:
        return available_in_order(self._engineers.values())

    def has_capacity(self, engineer_id: int) -> bool:
        engineer = self._engineers.get(engineer_id)
        return engineer is not None and engineer.has_capacity()

    def increment(self, engineer_id: int) -> None:
        engineer = self._engineers[engineer_id]
        if engineer.current_load >= engineer.capacity:
            raise RuntimeError(f"Engineer {engineer_id} is already at capacity")
        engineer.current_load += 1

    def decrement(self, engineer_id: int) -> None:
        engineer = self._engineers.get(engineer_id)
        if engineer is not None and engineer.current_load > 0:
            engineer.current_load -= 1

    def set_availability(self, engineer_id: int, available: bool) -> None:
        self._engineers[engineer_id].is_available = available

    def __contains__(self, engineer_id: object) -> bool:
        return engineer_id in self._engineers

    def __len__(self) -> int:
        return len(self._engineers)
