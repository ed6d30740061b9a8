"""Upstream credential providers."""

from __future__ import annotations

import os
from typing import Protocol


class CredentialProvider(Protocol):
    def get(self) -> str: ...


class EnvCredentialProvider:
    """Reads the secret from the process environment on every call.

    The platform injects secrets at runtime, so the value is never cached.
    """

    def __init__(self, name: str) -> None:
        self.name = name

    def get(self) -> str:
        return (os.environ.get(self.name) or "").strip()


class StaticCredentialProvider:
    def __init__(self, value: str) -> None:
        self.value = value

    def get(self) -> str:
        return (self.value or "").strip()
