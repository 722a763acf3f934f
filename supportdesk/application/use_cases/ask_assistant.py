"""AskAssistantUseCase — AI reply to a client, degraded to a canned answer on failure."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from supportdesk.application.ports.reply_port import ReplyGeneratorPort
from supportdesk.domain.errors import UpstreamUnavailableError, ValidationError

logger = logging.getLogger(__name__)

FALLBACK_RESPONSES = [
    "I understand your concern. Let me help you with that.",
    "I'm here to assist you. Can you provide more details about your issue?",
    "Let me walk you through the solution step by step.",
    "Thank you for reaching out. I'll do my best to help you solve this problem.",
    "That sounds frustrating. Let's work together to find a solution.",
    "I can definitely help you with that. Here are some options:",
]

HANDOFF_HINT = " If you need more detailed assistance, I can connect you with a human agent."


@dataclass
class AssistantReply:
    response: str
    fallback: bool = False

    def to_dict(self) -> dict:
        return {"response": self.response, "fallback": self.fallback}


class AskAssistantUseCase:
    def __init__(self, generator: ReplyGeneratorPort, max_length: int = 2000, rng: random.Random | None = None):
        self._generator = generator
        self._max_length = max_length
        self._rng = rng or random.Random()

    async def execute(self, message: str) -> AssistantReply:
        content = (message or "").strip()
        if not content:
            raise ValidationError("Message content cannot be empty")
        if len(content) > self._max_length:
            raise ValidationError(f"Message content must be at most {self._max_length} characters")

        try:
            answer = await self._generator.generate_reply(content)
        except UpstreamUnavailableError as e:
            logger.warning("AI reply unavailable, using fallback: %s", e)
            return AssistantReply(response=self._fallback(), fallback=True)
        return AssistantReply(response=answer)

    def _fallback(self) -> str:
        return self._rng.choice(FALLBACK_RESPONSES) + HANDOFF_HINT
