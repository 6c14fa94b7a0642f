from __future__ import annotations

import secrets
from typing import Protocol


class RandomSource(Protocol):
    """Source of unpredictable bytes, injected per claim operation."""

    def token_bytes(self, n: int) -> bytes: ...


class SystemRandomSource:
    """Cryptographically secure randomness from the operating system."""

    def token_bytes(self, n: int) -> bytes:
        return secrets.token_bytes(n)
