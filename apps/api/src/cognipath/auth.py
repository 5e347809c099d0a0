from __future__ import annotations

from collections.abc import Mapping
import hmac
from typing import Protocol


class IdentityProvider(Protocol):
    def resolve(self, token: str) -> str | None: ...


class StaticTokenIdentityProvider:
    """Maps opaque bearer tokens to user ids from configuration."""

    def __init__(self, tokens: Mapping[str, str]) -> None:
        self._tokens = dict(tokens)

    def resolve(self, token: str) -> str | None:
        for known_token, user_id in self._tokens.items():
            if hmac.compare_digest(known_token.encode("utf-8"), token.encode("utf-8")):
                return user_id
        return None
