"""Port interface for the AI assistant reply generator."""

from abc import ABC, abstractmethod


class ReplyGeneratorPort(ABC):
    @abstractmethod
    async def generate_reply(self, message: str) -> str:
        """Return the assistant's answer to a client message.

        Raises UpstreamUnavailableError when the provider cannot answer.
        """
        ...
