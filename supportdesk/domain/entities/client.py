"""Client entity — a requester seeking support."""

from dataclasses import dataclass


@dataclass
class Client:
    id: int | None
    user_id: str
    name: str
    queue_position: int = 0
    assigned_engineer_id: int | None = None
    in_queue: bool = False
