"""OpenAI adapter — implements ReplyGeneratorPort with any OpenAI-compatible API."""

from __future__ import annotations

import logging

from openai import AsyncOpenAI, OpenAIError

from supportdesk.application.ports.reply_port import ReplyGeneratorPort
from supportdesk.config import settings
from supportdesk.domain.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are a helpful AI assistant for a support ticket system. You provide clear,
concise and helpful responses to user queries. You specialize in technical
support, troubleshooting and general assistance.

Guidelines:
- Be friendly and professional.
- Provide step-by-step solutions when appropriate.
- If you can't solve an issue, suggest escalating to a human engineer.
- Keep responses concise but informative.
- Use bullet points or numbered lists for complex solutions."""


class OpenAIReplyAdapter(ReplyGeneratorPort):
    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ):
        key = settings.openai_api_key if api_key is None else api_key
        self._model = model or settings.openai_model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._client = (
            AsyncOpenAI(api_key=key, base_url=base_url or settings.openai_base_url, timeout=30.0)
            if key
            else None
        )
        if self._client is None:
            logger.warning("OPENAI_API_KEY not set, assistant replies will use fallbacks")

    @property
    def configured(self) -> bool:
        return self._client is not None

    async def generate_reply(self, message: str) -> str:
        if self._client is None:
            raise UpstreamUnavailableError("AI assistant is not configured")
        try:
            completion = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": message},
                ],
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except OpenAIError as e:
            logger.error("AI reply request failed: %s", e)
            raise UpstreamUnavailableError("AI assistant is unavailable") from e

        content = completion.choices[0].message.content if completion.choices else None
        if not content or not content.strip():
            raise UpstreamUnavailableError("AI assistant returned an empty reply")
        return content.strip()
