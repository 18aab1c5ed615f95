"""Last-known device state facets and equality predicates over them."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from kommanderctl.core.model import FacetSpec, FacetType

LOGGER = logging.getLogger(__name__)

_TRUE_STRINGS = {"true", "1", "on", "yes"}
_FALSE_STRINGS = {"false", "0", "off", "no"}


class FacetCoercionError(ValueError):
    """A raw value cannot be represented in a facet's type."""


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise FacetCoercionError(f"{value!r} is not a boolean")


def _coerce_int(value: Any) -> int:
    if isinstance(value, bool):
        raise FacetCoercionError(f"{value!r} is not an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise FacetCoercionError(f"{value!r} is not an integer")


def _enum_name(spec: FacetSpec, value: Any) -> str:
    if isinstance(value, str) and value in spec.choices:
        return value
    for name, wire_value in spec.choices.items():
        if wire_value == value and type(wire_value) is type(value):
            return name
    if isinstance(value, str):
        for name, wire_value in spec.choices.items():
            if str(wire_value) == value:
                return name
    raise FacetCoercionError(f"{value!r} is not one of: {', '.join(spec.choices)}")


def coerce_wire_value(spec: FacetSpec, raw: Any) -> Any:
    """Convert a value read off the wire into the cached representation."""
    if spec.type is FacetType.BOOLEAN:
        return _coerce_bool(raw)
    if spec.type is FacetType.INTEGER:
        return _coerce_int(raw) + spec.index_base
    if spec.type is FacetType.ENUM:
        return _enum_name(spec, raw)
    if spec.type is FacetType.STRING:
        if raw is None or isinstance(raw, (dict, list)):
            raise FacetCoercionError(f"{raw!r} is not a scalar")
        return str(raw)
    if not isinstance(raw, list):
        raise FacetCoercionError(f"{raw!r} is not a list")
    return raw


def coerce_comparison_value(spec: FacetSpec, expected: Any) -> Any:
    """Convert a caller-supplied predicate value; integers are already in display base."""
    if spec.type is FacetType.INTEGER:
        return _coerce_int(expected)
    if spec.type is FacetType.ENUM:
        return _enum_name(spec, expected)
    return coerce_wire_value(spec, expected)


class StateCache:
    def __init__(self, facets: Mapping[str, FacetSpec]) -> None:
        self._facets = dict(facets)
        self._values: dict[str, Any] = {}

    @property
    def facets(self) -> dict[str, FacetSpec]:
        return dict(self._facets)

    def get(self, name: str) -> Any:
        spec = self._facets[name]
        return self._values.get(name, spec.default)

    def update(self, name: str, raw: Any) -> bool:
        """Store ``raw`` for facet ``name``. Returns True if the cached value changed."""
        spec = self._facets.get(name)
        if spec is None:
            LOGGER.debug("Ignoring update for unknown facet %s", name)
            return False
        try:
            value = coerce_wire_value(spec, raw)
        except FacetCoercionError as exc:
            LOGGER.debug("Ignoring update for facet %s: %s", name, exc)
            return False
        previous = self.get(name)
        self._values[name] = value
        return previous != value

    def matches(self, name: str, expected: Any) -> bool:
        spec = self._facets.get(name)
        if spec is None:
            return False
        try:
            comparison = coerce_comparison_value(spec, expected)
        except FacetCoercionError:
            return False
        return self.get(name) == comparison

    def reset(self) -> None:
        self._values.clear()

    def snapshot(self) -> dict[str, Any]:
        return {name: self.get(name) for name in self._facets}
