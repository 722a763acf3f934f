"""Resolve a session identity to its Client or Engineer record."""

from __future__ import annotations

from supportdesk.application.ports.client_repo import ClientRepository
from supportdesk.application.ports.engineer_repo import EngineerRepository
from supportdesk.domain.entities.client import Client
from supportdesk.domain.entities.engineer import Engineer
from supportdesk.domain.errors import NotFoundError
from supportdesk.domain.value_objects.enums import Role
from supportdesk.domain.value_objects.identity import Identity, Participant


class ParticipantResolver:
    def __init__(self, client_repo: ClientRepository, engineer_repo: EngineerRepository):
        self._clients = client_repo
        self._engineers = engineer_repo

    async def client_for(self, identity: Identity) -> Client:
        client = await self._clients.get_by_user(identity.user_id)
        if client is None:
            raise NotFoundError("Client profile not found")
        return client

    async def engineer_for(self, identity: Identity) -> Engineer:
        engineer = await self._engineers.get_by_user(identity.user_id)
        if engineer is None:
            raise NotFoundError("Engineer profile not found")
        return engineer

    async def resolve(self, identity: Identity) -> Participant:
        """Look the identity up in the table its role names, and only there."""
        if identity.role == Role.CLIENT:
            client = await self.client_for(identity)
            return Participant(Role.CLIENT, client.id, client.user_id, client.name)
        engineer = await self.engineer_for(identity)
        return Participant(Role.ENGINEER, engineer.id, engineer.user_id, engineer.name)

    async def user_of_client(self, client_id: int) -> str | None:
        client = await self._clients.get_by_id(client_id)
        return client.user_id if client is not None else None

    async def user_of_engineer(self, engineer_id: int | None) -> str | None:
        if engineer_id is None:
            return None
        engineer = await self._engineers.get_by_id(engineer_id)
        return engineer.user_id if engineer is not None else None

    async def client_by_id(self, client_id: int) -> Client:
        client = await self._clients.get_by_id(client_id)
        if client is None:
            raise NotFoundError(f"Client {client_id} not found")
        return client

    async def ticket_scope(self, identity: Identity) -> dict[str, int]:
        """Repository filter selecting the tickets *identity* is party to."""
        actor = await self.resolve(identity)
        if actor.is_client:
            return {"client_id": actor.record_id}
        return {"engineer_id": actor.record_id}
