"""Caller identity: HS256 id-token verification for callable invocations."""

from __future__ import annotations

import time
from typing import Any, Mapping, Protocol

from jose import JWTError, jwt

from gainsgate.config.settings import settings
from gainsgate.core.models import CallerIdentity
from gainsgate.util.logger import get_logger


logger = get_logger("auth")

_BEARER_PREFIX = "bearer "
_ALGORITHM = "HS256"


class TokenVerifier(Protocol):
    def verify(self, token: str) -> CallerIdentity: ...


class InvalidTokenError(ValueError):
    """Raised when an id token cannot be trusted."""


def issue_token(secret: str, uid: str, ttl_seconds: int = 3600, **claims: Any) -> str:
    """Mint an id token; used by local tooling and tests."""

    issued_at = int(time.time())
    payload = {"sub": uid, "iat": issued_at, "exp": issued_at + int(ttl_seconds), **claims}
    return jwt.encode(payload, secret, algorithm=_ALGORITHM)


class HmacTokenVerifier:
    def __init__(self, secret: str, leeway_seconds: int = 30) -> None:
        self.secret = secret
        self.leeway_seconds = max(0, int(leeway_seconds))

    def verify(self, token: str) -> CallerIdentity:
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[_ALGORITHM],
                options={
                    "require_exp": True,
                    "require_sub": True,
                    "leeway": self.leeway_seconds,
                },
            )
        except jwt.ExpiredSignatureError as exc:
            raise InvalidTokenError("token_expired") from exc
        except JWTError as exc:
            raise InvalidTokenError(f"invalid_token: {exc}") from exc
        uid = str(payload.get("sub") or "").strip()
        if not uid:
            raise InvalidTokenError("missing_sub")
        return CallerIdentity(uid=uid, claims=payload)


def build_token_verifier() -> TokenVerifier | None:
    secret = settings.auth_token_secret
    if not secret:
        logger.error("auth token secret is not configured; all callers are unauthenticated")
        return None
    return HmacTokenVerifier(secret=secret, leeway_seconds=settings.auth_token_leeway_seconds)


def _bearer_token(headers: Mapping[str, str]) -> str:
    for key, value in headers.items():
        if key.lower() != "authorization":
            continue
        if value.lower().startswith(_BEARER_PREFIX):
            return value[len(_BEARER_PREFIX):].strip()
    return ""


def resolve_caller(headers: Mapping[str, str], verifier: TokenVerifier | None) -> CallerIdentity | None:
    """Return the verified caller, or None when the invocation carries no usable identity."""

    token = _bearer_token(headers)
    if not token:
        logger.debug("no bearer token on invocation")
        return None
    if verifier is None:
        return None
    try:
        return verifier.verify(token)
    except InvalidTokenError as exc:
        logger.warning("id token rejected reason=%s", exc)
        return None
