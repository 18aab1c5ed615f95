"""Transport interfaces."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006


class TransportConnection(Protocol):
    @property
    def close_code(self) -> int | None:
        """Close code reported by the peer, or None while open."""

    async def send_text(self, data: str) -> None:
        """Write one text frame."""

    def __aiter__(self) -> AsyncIterator[str | bytes]:
        """Yield inbound payloads until the connection closes; raise TransportError on error frames."""

    async def close(self, code: int = NORMAL_CLOSURE) -> None:
        """Close the connection with ``code``."""


class Transport(Protocol):
    async def connect(self, url: str, *, origin: str | None = None) -> TransportConnection:
        """Open a duplex message connection to ``url``."""
