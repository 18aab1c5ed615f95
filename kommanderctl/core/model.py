"""Core data models used across loader, router, connection and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    BAD_CONFIG = "bad_config"


class ToggleMode(str, Enum):
    IMPLICIT = "implicit"
    EXPLICIT = "explicit"


class FacetType(str, Enum):
    ENUM = "enum"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    STRING = "string"
    LISTING = "listing"


class TimelineStatus(IntEnum):
    PLAY = 1
    PAUSE = 2
    STOP = 3
    PREVIOUS = 4
    NEXT = 5
    REPLAY = 6


class NotificationKind(str, Enum):
    RECOGNIZED = "recognized"
    UNRECOGNIZED = "unrecognized"
    OPAQUE = "opaque"


@dataclass(frozen=True)
class AuthenticationSpec:
    tag: str
    identification_id: str
    username: str
    password: str
    ip: str
    device_id: str
    connection_type: int = 5
    origin: str = "streamDeck"


@dataclass(frozen=True)
class FacetSpec:
    name: str
    type: FacetType
    default: Any
    choices: dict[str, Any] = field(default_factory=dict)
    index_base: int = 0


@dataclass(frozen=True)
class FieldBinding:
    facet: str
    path: str
    equals: Any = None
    has_equals: bool = False


@dataclass(frozen=True)
class NotificationSpec:
    tag: str
    fields: tuple[FieldBinding, ...]


@dataclass(frozen=True)
class Profile:
    id: str
    name: str
    discriminator: str
    authentication: AuthenticationSpec
    commands: dict[str, str]
    toggles: dict[str, ToggleMode]
    facets: dict[str, FacetSpec]
    notifications: dict[str, NotificationSpec]
    library_query_on_auth: bool = False


@dataclass(frozen=True)
class DriverConfig:
    url: str
    reconnect: bool = True
    debug_messages: bool = False
    reset_variables: bool = True
    profile: str = "kommander"


@dataclass(frozen=True)
class OutboundCommand:
    tag: str
    params: dict[str, Any] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class InboundNotification:
    tag: str | None
    body: Any
    opaque: bool


@dataclass(frozen=True)
class RoutedNotification:
    notification: InboundNotification
    kind: NotificationKind
    changed_facets: tuple[str, ...] = ()


@dataclass(frozen=True)
class VariableDefinition:
    variable_id: str
    name: str
