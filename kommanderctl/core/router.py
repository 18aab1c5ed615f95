"""Classify inbound messages, update cached facets and fan out to subscriptions."""

from __future__ import annotations

import json
import logging
from typing import Any

from kommanderctl.core.errors import ExtractionMissError, MalformedNotificationError
from kommanderctl.core.model import (
    InboundNotification,
    NotificationKind,
    NotificationSpec,
    Profile,
    RoutedNotification,
)
from kommanderctl.core.object_path import extract
from kommanderctl.core.state_cache import StateCache
from kommanderctl.core.subscriptions import SubscriptionRegistry
from kommanderctl.hosts.base import Host

FACET_VARIABLE_PREFIX = "device_"
LOGGER = logging.getLogger(__name__)


def facet_variable_name(facet: str) -> str:
    return f"{FACET_VARIABLE_PREFIX}{facet}"


def to_variable_value(value: Any) -> Any:
    """Objects and arrays are exported as compact JSON text, scalars as-is."""
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return value


def parse_json(text: str) -> Any:
    try:
        return json.loads(text)
    except (ValueError, RecursionError) as exc:
        raise MalformedNotificationError(f"Payload is not valid JSON: {exc}") from exc


def decode_payload(raw: str | bytes, discriminator: str) -> InboundNotification:
    """Decode ``raw``; anything that is not JSON is kept as an opaque scalar."""
    if isinstance(raw, (bytes, bytearray)):
        try:
            text = bytes(raw).decode("utf-8")
        except UnicodeDecodeError:
            return InboundNotification(tag=None, body=bytes(raw).decode("utf-8", "replace"), opaque=True)
    else:
        text = raw

    try:
        body = parse_json(text)
    except MalformedNotificationError:
        return InboundNotification(tag=None, body=text, opaque=True)

    tag = body.get(discriminator) if isinstance(body, dict) else None
    return InboundNotification(tag=tag if isinstance(tag, str) else None, body=body, opaque=False)


class NotificationRouter:
    def __init__(
        self,
        profile: Profile,
        cache: StateCache,
        subscriptions: SubscriptionRegistry,
        host: Host,
        *,
        debug_messages: bool = False,
    ) -> None:
        self.profile = profile
        self.cache = cache
        self.subscriptions = subscriptions
        self.host = host
        self.debug_messages = debug_messages

    def route(self, raw: str | bytes) -> RoutedNotification:
        if self.debug_messages:
            shown = raw.decode("utf-8", "replace") if isinstance(raw, (bytes, bytearray)) else raw
            self.host.log("debug", f"Message received: {shown}")

        notification = decode_payload(raw, self.profile.discriminator)
        if notification.opaque:
            kind = NotificationKind.OPAQUE
            changed: tuple[str, ...] = ()
        else:
            spec = self.profile.notifications.get(notification.tag) if notification.tag else None
            if spec is None:
                kind = NotificationKind.UNRECOGNIZED
                changed = ()
            else:
                kind = NotificationKind.RECOGNIZED
                changed = self._apply(spec, notification.body)

        self._fan_out(notification)
        return RoutedNotification(notification=notification, kind=kind, changed_facets=changed)

    def _apply(self, spec: NotificationSpec, body: Any) -> tuple[str, ...]:
        changed: list[str] = []
        for binding in spec.fields:
            try:
                value = extract(body, binding.path)
            except ExtractionMissError:
                LOGGER.debug("%s carries no %s", spec.tag, binding.path)
                continue
            if binding.has_equals:
                value = value == binding.equals
            if self.cache.update(binding.facet, value):
                changed.append(binding.facet)

        if changed:
            self.host.check_feedbacks(*changed)
            self.host.set_variable_values(
                {facet_variable_name(f): to_variable_value(self.cache.get(f)) for f in changed}
            )
        return tuple(changed)

    def _fan_out(self, notification: InboundNotification) -> None:
        values: dict[str, Any] = {}
        for subscription in self.subscriptions:
            if not subscription.exports_variable:
                continue
            if not subscription.path:
                values[subscription.variable] = to_variable_value(notification.body)
                continue
            if notification.opaque:
                continue
            try:
                extracted = extract(notification.body, subscription.path)
            except ExtractionMissError:
                continue
            values[subscription.variable] = to_variable_value(extracted)

        if values:
            self.host.set_variable_values(values)
