"""Stable public API for building tooling on top of kommanderctl.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

import itertools
from typing import Any

from kommanderctl.core.connection import RECONNECT_DELAY_S
from kommanderctl.core.encoder import CommandEncoder, serialize
from kommanderctl.core.errors import (
    CommandEncodingError,
    ConfigError,
    ExtractionMissError,
    InvalidAddressError,
    KommanderError,
    MalformedNotificationError,
    ProfileLoadError,
    ProfileValidationError,
    TransportClosedError,
    TransportConnectError,
    TransportError,
    TransportSendError,
)
from kommanderctl.core.driver import KommanderDriver
from kommanderctl.core.model import (
    ConnectionStatus,
    DriverConfig,
    OutboundCommand,
    Profile,
    TimelineStatus,
)
from kommanderctl.core.profile_loader import load_profiles
from kommanderctl.hosts.console import ConsoleHost, StatusListener, VariableListener
from kommanderctl.transports.base import Transport

__all__ = [
    "KommanderError",
    "CommandEncodingError",
    "ConfigError",
    "ExtractionMissError",
    "InvalidAddressError",
    "MalformedNotificationError",
    "ProfileLoadError",
    "ProfileValidationError",
    "TransportError",
    "TransportClosedError",
    "TransportConnectError",
    "TransportSendError",
    "ConnectionStatus",
    "DriverConfig",
    "OutboundCommand",
    "Profile",
    "TimelineStatus",
    "Client",
    "list_profiles",
    "encode_action",
]


def list_profiles() -> list[Profile]:
    return sorted(load_profiles().profiles.values(), key=lambda p: p.id)


def encode_action(
    action_id: str,
    options: dict[str, Any] | None = None,
    *,
    profile_id: str = "kommander",
) -> str:
    """Return the wire JSON for ``action_id`` without opening a connection."""
    profiles = load_profiles().profiles
    profile = profiles.get(profile_id)
    if profile is None:
        available = ", ".join(sorted(profiles))
        raise ProfileLoadError(f"Unknown profile '{profile_id}'. Available: {available}")
    command = CommandEncoder(profile).encode_action(action_id, options)
    return serialize(command, profile.discriminator)


class Client:
    """Public client for driving one device session.

    A `Client` wraps the driver and an in-memory host. Use it as an async
    context manager; the session connects on entry and reconnects according
    to ``config.reconnect`` until exit.
    """

    def __init__(
        self,
        config: DriverConfig,
        *,
        transport: Transport | None = None,
        profiles: dict[str, Profile] | None = None,
        on_variables: VariableListener | None = None,
        on_status: StatusListener | None = None,
        reconnect_delay_s: float = RECONNECT_DELAY_S,
    ) -> None:
        self.config = config
        self._host = ConsoleHost(on_variables=on_variables, on_status=on_status)
        self._driver = KommanderDriver(
            self._host,
            transport=transport,
            profiles=profiles,
            reconnect_delay_s=reconnect_delay_s,
        )
        self._watch_ids = itertools.count(1)

    async def __aenter__(self) -> Client:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def start(self) -> None:
        await self._driver.init(self.config)

    async def close(self) -> None:
        await self._driver.destroy()

    async def reconfigure(self, config: DriverConfig) -> None:
        self.config = config
        await self._driver.config_updated(config)

    async def wait_connected(self, timeout_s: float = 10.0) -> None:
        if self.status is ConnectionStatus.BAD_CONFIG:
            raise InvalidAddressError(self._host.status_message or "Invalid URL")
        connection = self._driver.connection
        if connection is None:
            raise TransportConnectError("Client has not been started")
        await connection.wait_connected(timeout_s)

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._driver.load_warnings

    @property
    def profile(self) -> Profile:
        if self._driver.profile is None:
            raise ProfileLoadError("Client has not been started")
        return self._driver.profile

    @property
    def status(self) -> ConnectionStatus:
        return self._host.status

    @property
    def variables(self) -> dict[str, Any]:
        return dict(self._host.variables)

    @property
    def facets(self) -> dict[str, Any]:
        cache = self._driver.cache
        return cache.snapshot() if cache is not None else {}

    def action_ids(self) -> list[str]:
        return self._driver.action_ids()

    def watch(self, path: str, variable: str, *, watch_id: str | None = None) -> str:
        """Export the value at ``path`` of every inbound message to ``variable``."""
        watch_id = watch_id or f"watch-{next(self._watch_ids)}"
        self._driver.subscribe_feedback(watch_id, path=path, variable=variable)
        return watch_id

    def unwatch(self, watch_id: str) -> None:
        self._driver.unsubscribe_feedback(watch_id)

    def check_feedback(self, facet: str, value: Any) -> bool:
        return self._driver.check_feedback(facet, value)

    def run_action(self, action_id: str, options: dict[str, Any] | None = None) -> OutboundCommand:
        return self._driver.run_action(action_id, options)
