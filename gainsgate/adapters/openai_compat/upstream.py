"""
Chat-completion upstream: pooled HTTP client and the single forward call.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Mapping
from urllib.parse import urlparse, urlunparse

import httpx

from gainsgate.config.settings import settings
from gainsgate.core.errors import UpstreamError
from gainsgate.core.models import OutgoingChatRequest
from gainsgate.util.logger import logger


CHAT_COMPLETIONS_PATH = "/chat/completions"

_upstream_async_client: httpx.AsyncClient | None = None
_upstream_client_lock: Any = None


def _upstream_http_limits() -> httpx.Limits:
    return httpx.Limits(
        max_connections=max(10, int(settings.upstream_max_connections)),
        max_keepalive_connections=max(5, int(settings.upstream_max_keepalive_connections)),
    )


def _upstream_http_timeout() -> httpx.Timeout:
    timeout = float(settings.upstream_timeout_seconds)
    return httpx.Timeout(connect=timeout, read=timeout, write=timeout, pool=timeout)


async def _get_upstream_async_client() -> httpx.AsyncClient:
    global _upstream_async_client, _upstream_client_lock
    if _upstream_async_client is not None:
        return _upstream_async_client
    if _upstream_client_lock is None:
        _upstream_client_lock = asyncio.Lock()
    async with _upstream_client_lock:
        if _upstream_async_client is None:
            _upstream_async_client = httpx.AsyncClient(
                http2=False,
                timeout=_upstream_http_timeout(),
                limits=_upstream_http_limits(),
            )
    return _upstream_async_client


async def close_upstream_async_client() -> None:
    global _upstream_async_client
    if _upstream_async_client is not None:
        await _upstream_async_client.aclose()
        _upstream_async_client = None


def _normalize_upstream_base(raw_base: str) -> str:
    candidate = raw_base.strip()
    parsed = urlparse(candidate)
    if parsed.scheme not in {"http", "https"}:
        raise ValueError("invalid_upstream_scheme")
    if not parsed.netloc:
        raise ValueError("invalid_upstream_host")
    if parsed.query or parsed.fragment:
        raise ValueError("invalid_upstream_query_fragment")
    cleaned_path = parsed.path.rstrip("/")
    return urlunparse((parsed.scheme, parsed.netloc, cleaned_path, "", "", ""))


def _decode_json_or_text(body: bytes) -> dict[str, Any] | str:
    text = body.decode("utf-8", errors="replace")
    if not text:
        return ""
    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
        return text
    except json.JSONDecodeError:
        return text


def _safe_error_detail(payload: dict[str, Any] | str) -> str:
    if isinstance(payload, str):
        return payload[:600]
    error = payload.get("error")
    if isinstance(error, str):
        return error[:600]
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"][:600]
    return json.dumps(payload, ensure_ascii=False)[:600]


async def _forward_json(
    client: httpx.AsyncClient,
    url: str,
    payload: dict[str, Any],
    headers: Mapping[str, str],
) -> tuple[int, dict[str, Any] | str]:
    body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    logger.debug("forward_json start url=%s payload_bytes=%d", url, len(body))
    try:
        response = await client.post(url=url, content=body, headers=dict(headers))
        logger.debug("forward_json done url=%s status=%s", url, response.status_code)
        return response.status_code, _decode_json_or_text(response.content)
    except httpx.HTTPError as exc:
        detail = (str(exc) or "").strip() or "connection_failed_or_timeout"
        logger.warning("forward_json http_error url=%s error=%s", url, detail)
        raise UpstreamError(f"upstream_unreachable: {detail}") from exc


class ChatCompletionInvoker:
    """One non-streaming chat-completion call per invocation, no retry."""

    def __init__(self, base_url: str | None = None, client: httpx.AsyncClient | None = None) -> None:
        self.base_url = _normalize_upstream_base(base_url or settings.upstream_base_url)
        self._client = client

    @property
    def url(self) -> str:
        return f"{self.base_url}{CHAT_COMPLETIONS_PATH}"

    async def _client_for_call(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        return await _get_upstream_async_client()

    async def complete(self, request: OutgoingChatRequest, api_key: str) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        client = await self._client_for_call()
        status_code, body = await _forward_json(client, self.url, request.to_payload(), headers)
        if status_code >= 400:
            raise UpstreamError(f"upstream_http_error:{status_code}:{_safe_error_detail(body)}")
        if not isinstance(body, dict):
            raise UpstreamError(f"upstream_malformed_response:{_safe_error_detail(body)}")
        return body
