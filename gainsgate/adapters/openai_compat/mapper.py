"""Callable payload <-> chat-completion schema mapping."""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from gainsgate.core.errors import MessageFormatError
from gainsgate.core.models import (
    ImagePart,
    IncomingMessage,
    PartsContent,
    TextContent,
    TextPart,
)


FALLBACK_REPLY = "I couldn't generate a response. Try again."


def _image_url_of(part: dict[str, Any]) -> Any:
    nested = part.get("image_url")
    if isinstance(nested, dict):
        return nested.get("url")
    if isinstance(nested, str):
        return nested
    return part.get("url")


def _decode_part(part: Any, position: str) -> TextPart | ImagePart:
    if not isinstance(part, dict):
        raise MessageFormatError(f"{position}: content part must be an object")
    ptype = part.get("type")
    if ptype == "text":
        text = part.get("text")
        if not isinstance(text, str):
            raise MessageFormatError(f"{position}: text part is missing text")
        return TextPart(text=text)
    if ptype == "image_url":
        url = _image_url_of(part)
        if not isinstance(url, str):
            raise MessageFormatError(f"{position}: image_url part is missing url")
        return ImagePart(url=url)
    raise MessageFormatError(f"{position}: unsupported content part type {ptype!r}")


def _decode_content(content: Any, position: str) -> TextContent | PartsContent:
    if isinstance(content, str):
        return TextContent(text=content)
    if isinstance(content, list):
        parts = [_decode_part(part, f"{position}.content[{idx}]") for idx, part in enumerate(content)]
        return PartsContent(parts=parts)
    raise MessageFormatError(f"{position}: content must be a string or a list of parts")


def decode_messages(raw_messages: list[Any]) -> list[IncomingMessage]:
    """Parse caller messages into the tagged content union; all-or-nothing."""

    decoded: list[IncomingMessage] = []
    for idx, item in enumerate(raw_messages):
        position = f"messages[{idx}]"
        if not isinstance(item, dict):
            raise MessageFormatError(f"{position}: message must be an object")
        content = _decode_content(item.get("content"), position)
        try:
            decoded.append(IncomingMessage(role=item.get("role"), content=content))
        except ValidationError as exc:
            raise MessageFormatError(f"{position}: invalid role {item.get('role')!r}") from exc
    return decoded


def _to_upstream_part(part: TextPart | ImagePart) -> dict[str, Any]:
    if isinstance(part, TextPart):
        return {"type": "text", "text": part.text}
    if isinstance(part, ImagePart):
        return {"type": "image_url", "image_url": {"url": part.url}}
    raise MessageFormatError(f"unsupported content part {type(part).__name__}")


def to_upstream_message(message: IncomingMessage) -> dict[str, Any]:
    content = message.content
    if isinstance(content, TextContent):
        return {"role": message.role, "content": content.text}
    if isinstance(content, PartsContent):
        return {"role": message.role, "content": [_to_upstream_part(part) for part in content.parts]}
    raise MessageFormatError(f"unsupported message content {type(content).__name__}")


def to_upstream_messages(messages: list[IncomingMessage]) -> list[dict[str, Any]]:
    return [to_upstream_message(message) for message in messages]


def _flatten_reply_content(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        chunks = []
        for part in content:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                chunks.append(part["text"])
        return "".join(chunks)
    return ""


def extract_reply_text(upstream_body: dict[str, Any]) -> str:
    choices = upstream_body.get("choices")
    if not isinstance(choices, list) or not choices:
        return FALLBACK_REPLY
    first = choices[0]
    if not isinstance(first, dict):
        return FALLBACK_REPLY
    message = first.get("message")
    if not isinstance(message, dict):
        return FALLBACK_REPLY
    text = _flatten_reply_content(message.get("content"))
    return text or FALLBACK_REPLY
