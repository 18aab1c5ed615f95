from __future__ import annotations

from kommanderctl.core.model import FacetSpec, FacetType
from kommanderctl.core.state_cache import StateCache

FACETS = {
    "mute": FacetSpec(name="mute", type=FacetType.BOOLEAN, default=False),
    "play_state": FacetSpec(
        name="play_state",
        type=FacetType.ENUM,
        default="stop",
        choices={"stop": 0, "play": 1, "pause": 2},
    ),
    "active_plan": FacetSpec(name="active_plan", type=FacetType.INTEGER, default=0, index_base=1),
    "plan_name": FacetSpec(name="plan_name", type=FacetType.STRING, default=""),
    "library": FacetSpec(name="library", type=FacetType.LISTING, default=[]),
}


def test_defaults_before_any_update() -> None:
    cache = StateCache(FACETS)

    assert cache.snapshot() == {
        "mute": False,
        "play_state": "stop",
        "active_plan": 0,
        "plan_name": "",
        "library": [],
    }


def test_update_reports_changes_only() -> None:
    cache = StateCache(FACETS)

    assert cache.update("mute", True) is True
    assert cache.update("mute", True) is False
    assert cache.update("mute", "false") is True
    assert cache.get("mute") is False


def test_enum_accepts_wire_values_and_names() -> None:
    cache = StateCache(FACETS)

    assert cache.update("play_state", 1)
    assert cache.get("play_state") == "play"
    assert cache.update("play_state", "pause")
    assert cache.get("play_state") == "pause"
    assert cache.update("play_state", "0")
    assert cache.get("play_state") == "stop"


def test_integer_facets_are_display_based() -> None:
    cache = StateCache(FACETS)

    cache.update("active_plan", 2)

    assert cache.get("active_plan") == 3
    assert cache.matches("active_plan", 3)
    assert cache.matches("active_plan", "3")
    assert not cache.matches("active_plan", 2)


def test_invalid_values_are_ignored() -> None:
    cache = StateCache(FACETS)
    cache.update("play_state", 1)

    assert cache.update("play_state", 9) is False
    assert cache.update("mute", "maybe") is False
    assert cache.update("active_plan", True) is False
    assert cache.update("plan_name", {"x": 1}) is False
    assert cache.update("library", "not a list") is False
    assert cache.update("unknown", 1) is False
    assert cache.get("play_state") == "play"


def test_matches_never_raises() -> None:
    cache = StateCache(FACETS)
    cache.update("mute", 1)

    assert cache.matches("mute", True)
    assert cache.matches("mute", "on")
    assert not cache.matches("mute", "sideways")
    assert not cache.matches("unknown", True)
    assert cache.matches("play_state", "stop")
    assert cache.matches("play_state", 0)
    assert not cache.matches("play_state", "rewind")


def test_reset_restores_defaults() -> None:
    cache = StateCache(FACETS)
    cache.update("plan_name", "Keynote")
    cache.update("library", [{"name": "Keynote"}])

    cache.reset()

    assert cache.get("plan_name") == ""
    assert cache.get("library") == []


def test_facets_property_is_a_copy() -> None:
    cache = StateCache(FACETS)
    cache.facets.pop("mute")

    assert "mute" in cache.facets
