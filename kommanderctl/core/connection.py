"""Single live websocket session with authentication and fixed-delay reconnect.

All methods run on one asyncio event loop. Transport callbacks, the reconnect
timer and outbound writes are serialized there, so no locking is needed. Every
connection attempt carries a generation number; events from a superseded
attempt are ignored so a stale socket can never flip the status.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable, Coroutine
from contextlib import suppress
from typing import Any

from kommanderctl.core.encoder import serialize
from kommanderctl.core.errors import InvalidAddressError, TransportConnectError, TransportError
from kommanderctl.core.model import ConnectionStatus, OutboundCommand
from kommanderctl.hosts.base import Host
from kommanderctl.transports.base import (
    ABNORMAL_CLOSURE,
    NORMAL_CLOSURE,
    Transport,
    TransportConnection,
)

ADDRESS_RE = re.compile(r"^wss?:\/\/([\da-z\.-]+)(:\d{1,5})?(?:\/(.*))?$")
RECONNECT_DELAY_S = 5.0
BAD_ADDRESS_MESSAGE = "Invalid URL provided. Please make sure the URL is valid and matches the required format"
LOGGER = logging.getLogger(__name__)


def validate_address(address: str | None) -> str:
    if not address or ADDRESS_RE.fullmatch(address) is None:
        raise InvalidAddressError(f"'{address or ''}' is not a ws:// or wss:// URL")
    return address


class ConnectionManager:
    def __init__(
        self,
        transport: Transport,
        host: Host,
        *,
        on_message: Callable[[str | bytes], Any],
        discriminator: str,
        handshake: OutboundCommand | None = None,
        on_open: Callable[[], None] | None = None,
        origin: str | None = None,
        reconnect_delay_s: float = RECONNECT_DELAY_S,
        debug_messages: bool = False,
    ) -> None:
        self.transport = transport
        self.host = host
        self.on_message = on_message
        self.discriminator = discriminator
        self.handshake = handshake
        self.on_open = on_open
        self.origin = origin
        self.reconnect_delay_s = reconnect_delay_s
        self.debug_messages = debug_messages

        self.status = ConnectionStatus.DISCONNECTED
        self.address: str | None = None
        self.reconnect = True
        self.active = False
        self.last_close_code: int | None = None

        self._connection: TransportConnection | None = None
        self._task: asyncio.Task[None] | None = None
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._generation = 0
        self._connected = asyncio.Event()
        self._background: set[asyncio.Task[Any]] = set()

    @property
    def connected(self) -> bool:
        return self._connection is not None and self.status is ConnectionStatus.CONNECTED

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    def configure(self, address: str | None, reconnect: bool = True) -> bool:
        """Validate ``address`` and (re)open the session.

        An invalid address tears down any existing session and leaves the
        status at BAD_CONFIG until the next call.
        """
        self.reconnect = reconnect
        self.active = True
        try:
            self.address = validate_address(address)
        except InvalidAddressError as exc:
            LOGGER.debug("Rejected address: %s", exc)
            self.address = None
            self._teardown()
            self._set_status(ConnectionStatus.BAD_CONFIG, BAD_ADDRESS_MESSAGE)
            return False
        self.open()
        return True

    def open(self) -> None:
        if self.address is None:
            return
        self._teardown()
        self._set_status(ConnectionStatus.CONNECTING)
        generation = self._generation
        self._task = asyncio.get_running_loop().create_task(self._run(self.address, generation))

    def send(self, command: OutboundCommand) -> bool:
        """Write ``command`` if a session is open. Commands sent while disconnected are dropped."""
        connection = self._connection
        if connection is None:
            LOGGER.debug("Dropping %s: no open connection", command.tag)
            return False
        self._write(connection, command)
        return True

    def schedule_reconnect(self) -> bool:
        if not (self.active and self.reconnect):
            return False
        self._cancel_reconnect()
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(self.reconnect_delay_s, self._reconnect_fired)
        return True

    async def wait_connected(self, timeout_s: float) -> None:
        try:
            await asyncio.wait_for(self._connected.wait(), timeout_s)
        except asyncio.TimeoutError:
            raise TransportConnectError(
                f"No connection to {self.address} within {timeout_s:g}s (status: {self.status.value})"
            ) from None

    async def shutdown(self) -> None:
        self.active = False
        self._cancel_reconnect()
        self._generation += 1
        self._connected.clear()

        if self._background:
            await asyncio.wait(set(self._background))

        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

        connection, self._connection = self._connection, None
        if connection is not None:
            await self._close_quietly(connection)
        if self.status in (ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED):
            self.last_close_code = NORMAL_CLOSURE
            self.host.log("debug", f"Connection closed with code {NORMAL_CLOSURE}")
            self._set_status(ConnectionStatus.DISCONNECTED, f"Connection closed with code {NORMAL_CLOSURE}")

    def _teardown(self) -> None:
        self._cancel_reconnect()
        self._generation += 1
        self._connected.clear()

        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

        connection, self._connection = self._connection, None
        if connection is not None:
            self._spawn(self._close_quietly(connection))

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _reconnect_fired(self) -> None:
        self._reconnect_handle = None
        if self.active:
            self.open()

    async def _run(self, url: str, generation: int) -> None:
        try:
            connection = await self.transport.connect(url, origin=self.origin)
        except TransportError as exc:
            if generation == self._generation:
                self.host.log("error", f"WebSocket error: {exc}")
                self._handle_close(generation, ABNORMAL_CLOSURE)
            return

        if generation != self._generation:
            await self._close_quietly(connection)
            return

        self._connection = connection
        self._handle_open(connection)

        try:
            async for payload in connection:
                self._dispatch(payload)
        except TransportError as exc:
            self.host.log("error", f"WebSocket error: {exc}")

        code = connection.close_code
        await self._close_quietly(connection)
        self._handle_close(generation, code if code is not None else ABNORMAL_CLOSURE)

    def _dispatch(self, payload: str | bytes) -> None:
        try:
            self.on_message(payload)
        except Exception as exc:
            LOGGER.debug("Message handler failed", exc_info=True)
            self.host.log("error", f"Failed to handle message: {exc!r}")

    def _handle_open(self, connection: TransportConnection) -> None:
        self.host.log("debug", "Connection opened")
        if self.handshake is not None:
            self._write(connection, self.handshake)
        self._set_status(ConnectionStatus.CONNECTED)
        self._connected.set()
        if self.on_open is not None:
            self.on_open()

    def _handle_close(self, generation: int, code: int) -> None:
        if generation != self._generation:
            return
        self._connection = None
        self._connected.clear()
        self.last_close_code = code
        self.host.log("debug", f"Connection closed with code {code}")
        self._set_status(ConnectionStatus.DISCONNECTED, f"Connection closed with code {code}")
        self.schedule_reconnect()

    def _set_status(self, status: ConnectionStatus, message: str | None = None) -> None:
        self.status = status
        self.host.update_status(status, message)

    def _write(self, connection: TransportConnection, command: OutboundCommand) -> None:
        text = serialize(command, self.discriminator)
        if self.debug_messages:
            self.host.log("debug", f"Message sent: {text}")
        self._spawn(self._send_quietly(connection, text))

    async def _send_quietly(self, connection: TransportConnection, text: str) -> None:
        try:
            await connection.send_text(text)
        except TransportError as exc:
            self.host.log("error", f"WebSocket error: {exc}")

    async def _close_quietly(self, connection: TransportConnection) -> None:
        try:
            await connection.close(NORMAL_CLOSURE)
        except TransportError as exc:
            LOGGER.debug("Error while closing connection: %s", exc)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
