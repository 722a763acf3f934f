"""Engineer entity — a responder bounded by capacity."""

from dataclasses import dataclass, field


@dataclass
class Engineer:
    id: int | None
    user_id: str
    name: str
    capacity: int = 5
    current_load: int = 0
    is_available: bool = True
    specializations: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError("Engineer capacity must be at least 1")
        if self.current_load < 0:
            raise ValueError("Engineer load cannot be negative")

    def has_capacity(self) -> bool:
        return self.is_available and self.current_load < self.capacity
