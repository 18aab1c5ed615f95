"""Registry of feedback bindings that export inbound data to variables."""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass

_VARIABLE_NAME_RE = re.compile(r"^[-a-zA-Z0-9_]+$")


def is_valid_variable_name(name: str) -> bool:
    return bool(_VARIABLE_NAME_RE.match(name))


@dataclass(frozen=True)
class Subscription:
    id: str
    path: str
    variable: str

    @property
    def exports_variable(self) -> bool:
        return is_valid_variable_name(self.variable)


class SubscriptionRegistry:
    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}

    def add(self, subscription_id: str, path: str = "", variable: str = "") -> Subscription:
        subscription = Subscription(
            id=subscription_id,
            path=path.strip(),
            variable=variable.strip(),
        )
        self._subscriptions[subscription_id] = subscription
        return subscription

    def remove(self, subscription_id: str) -> bool:
        return self._subscriptions.pop(subscription_id, None) is not None

    def get(self, subscription_id: str) -> Subscription | None:
        return self._subscriptions.get(subscription_id)

    def clear(self) -> None:
        self._subscriptions.clear()

    def variable_names(self) -> set[str]:
        return {s.variable for s in self._subscriptions.values() if s.exports_variable}

    def __iter__(self) -> Iterator[Subscription]:
        return iter(sorted(self._subscriptions.values(), key=lambda s: s.id))

    def __len__(self) -> int:
        return len(self._subscriptions)

    def __contains__(self, subscription_id: object) -> bool:
        return subscription_id in self._subscriptions
