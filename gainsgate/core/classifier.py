"""Structured plan request detection.

Only plain-text messages are scanned. Mixed text/image messages never count,
even when a text part asks for a JSON plan; clients that attach a photo to a
plan request get the conversational budget.
"""

from __future__ import annotations

from typing import Iterable

from gainsgate.config.settings import settings
from gainsgate.core.models import IncomingMessage, TextContent


PLAN_KEYWORDS = ("workout plan", "meal plan", "dietary plan")
STRUCTURED_MARKER = "JSON"


def _asks_for_structured_plan(text: str) -> bool:
    if STRUCTURED_MARKER not in text:
        return False
    return any(keyword in text for keyword in PLAN_KEYWORDS)


def is_structured_plan_request(messages: Iterable[IncomingMessage]) -> bool:
    for message in messages:
        if isinstance(message.content, TextContent) and _asks_for_structured_plan(message.content.text):
            return True
    return False


def token_budget(structured: bool) -> int:
    if structured:
        return settings.structured_max_tokens
    return settings.conversational_max_tokens
