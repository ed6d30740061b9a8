"""AI coach relay: validate, translate, classify, invoke, respond."""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

from gainsgate.adapters.openai_compat.mapper import decode_messages, extract_reply_text, to_upstream_messages
from gainsgate.config.settings import settings
from gainsgate.core.classifier import is_structured_plan_request, token_budget
from gainsgate.core.credentials import CredentialProvider
from gainsgate.core.errors import (
    CallableError,
    FailedPreconditionError,
    InternalError,
    InvalidArgumentError,
    UnauthenticatedError,
)
from gainsgate.core.models import CallerIdentity, ChatReply, OutgoingChatRequest
from gainsgate.observability.logging import log_event
from gainsgate.util.logger import logger


class ChatInvoker(Protocol):
    async def complete(self, request: OutgoingChatRequest, api_key: str) -> dict[str, Any]: ...


def _extract_messages(data: Any) -> list[Any]:
    messages = data.get("messages") if isinstance(data, dict) else None
    if not isinstance(messages, list):
        raise InvalidArgumentError()
    return messages


class AiChatRelay:
    """Stateless per call; one instance serves every invocation."""

    def __init__(
        self,
        invoker: ChatInvoker,
        credentials: CredentialProvider,
        *,
        model: str | None = None,
        temperature: float | None = None,
        deadline_seconds: float | None = None,
    ) -> None:
        self._invoker = invoker
        self._credentials = credentials
        self.model = model or settings.chat_model
        self.temperature = settings.chat_temperature if temperature is None else temperature
        self.deadline_seconds = settings.invocation_timeout_seconds if deadline_seconds is None else deadline_seconds

    async def handle(self, data: Any, caller: CallerIdentity | None) -> ChatReply:
        if caller is None:
            raise UnauthenticatedError()
        raw_messages = _extract_messages(data)

        try:
            api_key = self._credentials.get()
            logger.info("config check has_api_key=%s", bool(api_key))
            if not api_key:
                raise FailedPreconditionError()

            messages = decode_messages(raw_messages)
            upstream_messages = to_upstream_messages(messages)
            structured = is_structured_plan_request(messages)
            request = OutgoingChatRequest(
                model=self.model,
                messages=upstream_messages,
                temperature=self.temperature,
                max_tokens=token_budget(structured),
            )

            body = await asyncio.wait_for(
                self._invoker.complete(request, api_key),
                timeout=self.deadline_seconds,
            )
            reply = ChatReply(text=extract_reply_text(body))
        except CallableError:
            raise
        except Exception as exc:
            logger.error(
                "ai chat failed uid=%s error_type=%s error=%s cause=%r",
                caller.uid,
                type(exc).__name__,
                str(exc) or type(exc).__name__,
                exc.__cause__,
                exc_info=True,
            )
            raise InternalError() from exc

        log_event(
            "ai_chat",
            outcome="ok",
            uid=caller.uid,
            messages=len(upstream_messages),
            structured=structured,
            max_tokens=request.max_tokens,
        )
        return reply
