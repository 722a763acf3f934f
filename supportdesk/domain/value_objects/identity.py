"""Identity and Participant — who is acting, and in which role."""

from dataclasses import dataclass

from supportdesk.domain.value_objects.enums import Role


@dataclass(frozen=True)
class Identity:
    """Decoded session credential, trusted by every authorization check."""

    user_id: str
    role: Role
    name: str = ""

    @property
    def is_client(self) -> bool:
        return self.role == Role.CLIENT

    @property
    def is_engineer(self) -> bool:
        return self.role == Role.ENGINEER


@dataclass(frozen=True)
class Participant:
    """An identity resolved to its Client or Engineer record.

    ``role`` tags which record ``record_id`` points at, so nothing downstream
    has to probe both tables to find out.
    """

    role: Role
    record_id: int
    user_id: str
    name: str

    @property
    def is_client(self) -> bool:
        return self.role == Role.CLIENT

    @property
    def is_engineer(self) -> bool:
        return self.role == Role.ENGINEER
