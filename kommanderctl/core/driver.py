"""Driver instance wiring the host framework to the session and protocol core."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from kommanderctl.core.connection import RECONNECT_DELAY_S, ConnectionManager
from kommanderctl.core.encoder import CommandEncoder
from kommanderctl.core.errors import ProfileLoadError
from kommanderctl.core.model import (
    DriverConfig,
    NotificationKind,
    OutboundCommand,
    Profile,
    RoutedNotification,
    VariableDefinition,
)
from kommanderctl.core.profile_loader import load_profiles
from kommanderctl.core.router import NotificationRouter, facet_variable_name, to_variable_value
from kommanderctl.core.state_cache import StateCache
from kommanderctl.core.subscriptions import SubscriptionRegistry
from kommanderctl.hosts.base import Host
from kommanderctl.transports.base import Transport
from kommanderctl.transports.websocket import WebSocketTransport

NOT_INITIALISED = "Driver has not been initialised with a profile"
LOGGER = logging.getLogger(__name__)


class KommanderDriver:
    """One driver per remote device.

    The host calls :meth:`init`, :meth:`config_updated` and :meth:`destroy`
    as lifecycle hooks, binds feedbacks through :meth:`subscribe_feedback`,
    and triggers user actions through :meth:`run_action`.
    """

    def __init__(
        self,
        host: Host,
        *,
        transport: Transport | None = None,
        profiles: Mapping[str, Profile] | None = None,
        reconnect_delay_s: float = RECONNECT_DELAY_S,
    ) -> None:
        self.host = host
        self.transport = transport or WebSocketTransport()
        if profiles is None:
            loaded = load_profiles()
            profiles = loaded.profiles
            self.load_warnings = loaded.warnings
        else:
            self.load_warnings = ()
        self.profiles = dict(profiles)
        self.reconnect_delay_s = reconnect_delay_s

        self.subscriptions = SubscriptionRegistry()
        self.initialized = False
        self.config: DriverConfig | None = None
        self.profile: Profile | None = None
        self.encoder: CommandEncoder | None = None
        self.cache: StateCache | None = None
        self.router: NotificationRouter | None = None
        self.connection: ConnectionManager | None = None

    async def init(self, config: DriverConfig) -> None:
        await self._apply_config(config)
        self.initialized = True
        self.update_variables()

    async def destroy(self) -> None:
        self.initialized = False
        if self.connection is not None:
            await self.connection.shutdown()

    async def config_updated(self, config: DriverConfig) -> None:
        await self._apply_config(config)

    async def _apply_config(self, config: DriverConfig) -> None:
        profile = self.profiles.get(config.profile)
        if profile is None:
            available = ", ".join(sorted(self.profiles))
            raise ProfileLoadError(f"Unknown profile '{config.profile}'. Available: {available}")

        if self.connection is not None and self.profile is not None and profile.id != self.profile.id:
            await self.connection.shutdown()
        if self.profile is None or profile.id != self.profile.id:
            self.profile = profile
            self.encoder = CommandEncoder(profile)
            self.cache = StateCache(profile.facets)
            self.router = NotificationRouter(profile, self.cache, self.subscriptions, self.host)
            self.connection = ConnectionManager(
                self.transport,
                self.host,
                on_message=self._message_received,
                discriminator=profile.discriminator,
                handshake=self.encoder.authentication(),
                on_open=self._connection_opened,
                origin=profile.authentication.origin,
                reconnect_delay_s=self.reconnect_delay_s,
            )

        self.config = config
        if self.router is None or self.connection is None:
            raise ProfileLoadError(NOT_INITIALISED)
        self.router.debug_messages = config.debug_messages
        self.connection.debug_messages = config.debug_messages
        self.connection.configure(config.url, config.reconnect)

    def _connection_opened(self) -> None:
        if self.config is not None and self.config.reset_variables:
            self.update_variables()

    def _message_received(self, payload: str | bytes) -> RoutedNotification:
        if self.router is None or self.profile is None:
            raise ProfileLoadError(NOT_INITIALISED)
        routed = self.router.route(payload)
        if routed.kind is NotificationKind.RECOGNIZED and routed.notification.tag == self.profile.authentication.tag:
            self._authentication_result(routed)
        return routed

    def _authentication_result(self, routed: RoutedNotification) -> None:
        if self.cache is None or self.profile is None:
            raise ProfileLoadError(NOT_INITIALISED)
        body = routed.notification.body
        code = body.get("code") if isinstance(body, dict) else None
        if "authenticated" in self.cache.facets and not self.cache.get("authenticated"):
            self.host.log("warn", f"Authentication rejected by device (code {code})")
            return
        self.host.log("info", "Authenticated with device")
        if self.profile.library_query_on_auth and "media_library" in self.profile.commands:
            self.send(self._require_encoder().query_media_library())

    def _require_encoder(self) -> CommandEncoder:
        if self.encoder is None:
            raise ProfileLoadError(NOT_INITIALISED)
        return self.encoder

    def update_variables(self, caller_id: str | None = None) -> None:
        """Publish variable definitions; reset values to '' when configured to."""
        names = self.subscriptions.variable_names()
        defaults: dict[str, Any] = {}
        for subscription in self.subscriptions:
            if not subscription.exports_variable:
                continue
            if caller_id is None or caller_id == subscription.id:
                defaults[subscription.variable] = ""

        facet_values: dict[str, Any] = {}
        if self.cache is not None:
            for facet in self.cache.facets:
                facet_values[facet_variable_name(facet)] = to_variable_value(self.cache.get(facet))

        definitions = [
            VariableDefinition(variable_id=name, name=name)
            for name in sorted(names | set(facet_values))
        ]
        self.host.set_variable_definitions(definitions)
        if self.config is not None and self.config.reset_variables:
            if caller_id is None:
                defaults.update(facet_values)
            if defaults:
                self.host.set_variable_values(defaults)

    def subscribe_feedback(self, feedback_id: str, path: str = "", variable: str = "") -> None:
        subscription = self.subscriptions.add(feedback_id, path=path, variable=variable)
        if subscription.variable and not subscription.exports_variable:
            self.host.log("warn", f"Ignoring invalid variable name '{subscription.variable}'")
        if self.initialized:
            self.update_variables(feedback_id)

    def unsubscribe_feedback(self, feedback_id: str) -> None:
        self.subscriptions.remove(feedback_id)

    def check_feedback(self, facet: str, value: Any) -> bool:
        if self.cache is None:
            return False
        return self.cache.matches(facet, value)

    def feedback_ids(self) -> list[str]:
        return sorted(self.profile.facets) if self.profile else []

    def action_ids(self) -> list[str]:
        return self.encoder.action_ids() if self.encoder else []

    def send(self, command: OutboundCommand) -> bool:
        if self.connection is None:
            return False
        return self.connection.send(command)

    def run_action(self, action_id: str, options: Mapping[str, Any] | None = None) -> OutboundCommand:
        """Encode ``action_id`` and send it. The command is returned whether or not it was written."""
        command = self._require_encoder().encode_action(action_id, options)
        if not self.send(command):
            LOGGER.debug("Action %s not sent: disconnected", action_id)
        return command
