"""Callable-protocol routes: ``{"data": ...}`` in, ``{"result": ...}`` or ``{"error": ...}`` out."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from gainsgate.adapters.openai_compat.upstream import ChatCompletionInvoker
from gainsgate.config.settings import settings
from gainsgate.core.auth import build_token_verifier, resolve_caller
from gainsgate.core.credentials import EnvCredentialProvider
from gainsgate.core.errors import CallableError
from gainsgate.core.relay import AiChatRelay
from gainsgate.observability.logging import log_event
from gainsgate.util.logger import logger


router = APIRouter()
relay = AiChatRelay(
    invoker=ChatCompletionInvoker(),
    credentials=EnvCredentialProvider(settings.upstream_api_key_env),
)
token_verifier = build_token_verifier()

_DEBUG_REQUEST_BODY_MAX_CHARS = 4000
_DEBUG_HEADERS_REDACT = frozenset({"authorization", "cookie"})
_DATA_URL_RE = re.compile(r"^data:([\w.+-]+/[\w.+-]+)[^,]*,", re.I)
_LONG_URL_CHARS = 256


def _elide_url(value: str) -> str:
    matched = _DATA_URL_RE.match(value)
    if matched:
        return f"data:{matched.group(1)};<{len(value)} chars>"
    if len(value) > _LONG_URL_CHARS:
        return f"{value[:_LONG_URL_CHARS]}...<{len(value)} chars>"
    return value


def _sanitize_payload_for_log(value: Any) -> Any:
    """Deep copy of the callable body with image URLs shortened."""
    if isinstance(value, dict):
        sanitized: dict[str, Any] = {}
        for key, item in value.items():
            if key == "url" and isinstance(item, str):
                sanitized[key] = _elide_url(item)
            else:
                sanitized[key] = _sanitize_payload_for_log(item)
        return sanitized
    if isinstance(value, list):
        return [_sanitize_payload_for_log(item) for item in value]
    return value


def _log_request_if_debug(request: Request, payload: Any) -> None:
    if not logger.isEnabledFor(logging.DEBUG):
        return
    headers_safe = {}
    for k, v in request.headers.items():
        key_lower = k.lower()
        if key_lower in _DEBUG_HEADERS_REDACT or "key" in key_lower or "token" in key_lower:
            headers_safe[k] = "***"
        else:
            headers_safe[k] = v
    try:
        body_str = json.dumps(_sanitize_payload_for_log(payload), ensure_ascii=False, indent=2)
    except (TypeError, ValueError):
        body_str = str(payload)
    logger.debug(
        "incoming callable method=%s path=%s headers=%s body_size=%d",
        request.method,
        request.url.path,
        headers_safe,
        len(body_str),
    )
    if settings.log_full_request_body:
        logger.debug("incoming callable body:\n%s", body_str[:_DEBUG_REQUEST_BODY_MAX_CHARS])


async def _read_callable_data(request: Request) -> Any:
    try:
        body = await request.json()
    except Exception:
        logger.debug("callable body is not valid json path=%s", request.url.path)
        return None
    if not isinstance(body, dict):
        return None
    return body.get("data")


def _error_response(exc: CallableError) -> JSONResponse:
    return JSONResponse(status_code=exc.http_status, content=exc.to_payload())


@router.post("/aiChat")
async def ai_chat(request: Request):
    data = await _read_callable_data(request)
    _log_request_if_debug(request, data)
    caller = resolve_caller(request.headers, token_verifier)
    try:
        reply = await relay.handle(data, caller)
    except CallableError as exc:
        log_event("ai_chat", outcome="error", status=exc.status, uid=caller.uid if caller else None)
        return _error_response(exc)
    return JSONResponse(content={"result": reply.to_result()})
