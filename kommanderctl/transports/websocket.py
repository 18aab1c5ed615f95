"""Websocket transport implementation using aiohttp."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import aiohttp

from kommanderctl.core.errors import (
    TransportClosedError,
    TransportConnectError,
    TransportError,
    TransportSendError,
)
from kommanderctl.transports.base import ABNORMAL_CLOSURE, NORMAL_CLOSURE


class WebSocketConnection:
    def __init__(self, session: aiohttp.ClientSession, ws: aiohttp.ClientWebSocketResponse) -> None:
        self._session = session
        self._ws = ws

    @property
    def close_code(self) -> int | None:
        if not self._ws.closed:
            return None
        return self._ws.close_code if self._ws.close_code is not None else ABNORMAL_CLOSURE

    async def send_text(self, data: str) -> None:
        if self._ws.closed:
            raise TransportClosedError("Websocket is closed")
        try:
            await self._ws.send_str(data)
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as exc:
            raise TransportSendError(f"Websocket send failed: {exc}") from exc

    async def __aiter__(self) -> AsyncIterator[str | bytes]:
        async for msg in self._ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                yield msg.data
            elif msg.type == aiohttp.WSMsgType.BINARY:
                yield msg.data
            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise TransportError(f"Websocket error: {self._ws.exception()}")
            elif msg.type in {aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED}:
                break

    async def close(self, code: int = NORMAL_CLOSURE) -> None:
        try:
            if not self._ws.closed:
                await self._ws.close(code=code)
        finally:
            await self._session.close()


class WebSocketTransport:
    def __init__(self, *, connect_timeout_s: float = 10.0, heartbeat_s: float | None = 30.0) -> None:
        self.connect_timeout_s = connect_timeout_s
        self.heartbeat_s = heartbeat_s

    async def connect(self, url: str, *, origin: str | None = None) -> WebSocketConnection:
        session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=None, connect=self.connect_timeout_s)
        )
        try:
            ws = await session.ws_connect(
                url,
                origin=origin,
                heartbeat=self.heartbeat_s,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            await session.close()
            raise TransportConnectError(f"Websocket connect to {url} failed: {exc}") from exc
        except BaseException:
            await session.close()
            raise
        return WebSocketConnection(session, ws)
