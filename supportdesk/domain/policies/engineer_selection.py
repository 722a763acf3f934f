"""EngineerSelectionPolicy — first-fit order over engineers as they registered."""

from __future__ import annotations

from collections.abc import Iterable

from supportdesk.domain.entities.engineer import Engineer


def available_in_order(candidates: Iterable[Engineer]) -> list[Engineer]:
    """Engineers that are available and under capacity, in registration order.

    No load balancing: the earliest engineer with a free slot comes first,
    however busy it already is.
    """
    return [e for e in candidates if e.has_capacity()]
