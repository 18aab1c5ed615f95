from __future__ import annotations

import json

import pytest

from kommanderctl.core.errors import MalformedNotificationError
from kommanderctl.core.model import NotificationKind
from kommanderctl.core.profile_loader import load_profiles
from kommanderctl.core.router import NotificationRouter, decode_payload, parse_json, to_variable_value
from kommanderctl.core.state_cache import StateCache
from kommanderctl.core.subscriptions import SubscriptionRegistry
from kommanderctl.hosts.console import ConsoleHost


@pytest.fixture(scope="module")
def profile():
    return load_profiles().profiles["kommander"]


def _router(profile, subscriptions: SubscriptionRegistry | None = None) -> tuple[NotificationRouter, ConsoleHost]:
    host = ConsoleHost()
    router = NotificationRouter(
        profile,
        StateCache(profile.facets),
        subscriptions or SubscriptionRegistry(),
        host,
    )
    return router, host


def _msg(tag: str, **body) -> str:
    return json.dumps({"KommanderMsg": tag, **body})


def test_mute_state_drives_predicate(profile) -> None:
    router, host = _router(profile)

    routed = router.route(_msg("KommanderMsg_MuteState", data={"mute": True}))
    assert routed.kind is NotificationKind.RECOGNIZED
    assert routed.changed_facets == ("mute",)
    assert router.cache.matches("mute", True)
    assert host.checked_feedbacks == ["mute"]
    assert host.variables["device_mute"] is True

    router.route(_msg("KommanderMsg_MuteState", data={"mute": False}))
    assert not router.cache.matches("mute", True)
    assert host.variables["device_mute"] is False


def test_unchanged_facet_does_not_recheck(profile) -> None:
    router, host = _router(profile)

    router.route(_msg("KommanderMsg_LockState", data={"lock": True}))
    routed = router.route(_msg("KommanderMsg_LockState", data={"lock": True}))

    assert routed.changed_facets == ()
    assert host.checked_feedbacks == ["lock"]


def test_subscription_paths_fan_out(profile) -> None:
    subscriptions = SubscriptionRegistry()
    subscriptions.add("fb-state", path="data.state", variable="status_var")
    subscriptions.add("fb-all", path="", variable="raw_var")
    router, host = _router(profile, subscriptions)

    message = {"KommanderMsg": "KommanderMsg_GlobalPlayState", "data": {"state": 1}}
    router.route(json.dumps(message))

    assert host.variables["status_var"] == 1
    assert host.variables["raw_var"] == json.dumps(message, separators=(",", ":"))
    assert json.loads(host.variables["raw_var"]) == message
    assert router.cache.get("play_state") == "play"


def test_extraction_miss_leaves_variable_untouched(profile) -> None:
    subscriptions = SubscriptionRegistry()
    subscriptions.add("fb", path="data.state", variable="status_var")
    router, host = _router(profile, subscriptions)

    router.route(_msg("KommanderMsg_GlobalPlayState", data={"state": 2}))
    router.route(_msg("KommanderMsg_MuteState", data={"mute": True}))

    assert host.variables["status_var"] == 2


def test_invalid_variable_name_is_skipped(profile) -> None:
    subscriptions = SubscriptionRegistry()
    subscriptions.add("fb", path="data", variable="bad name")
    router, host = _router(profile, subscriptions)

    router.route(_msg("KommanderMsg_Unknown", data={"x": 1}))

    assert "bad name" not in host.variables


def test_objects_exported_as_compact_json(profile) -> None:
    subscriptions = SubscriptionRegistry()
    subscriptions.add("fb", path="data", variable="library")
    router, host = _router(profile, subscriptions)

    router.route(_msg("KommanderMsg_GetMediaLibrary", data=[{"name": "Grüße"}]))

    assert host.variables["library"] == '[{"name":"Grüße"}]'
    assert host.variables["device_plan_library"] == '[{"name":"Grüße"}]'
    assert router.cache.get("plan_library") == [{"name": "Grüße"}]


def test_unrecognized_tag_still_fans_out(profile) -> None:
    subscriptions = SubscriptionRegistry()
    subscriptions.add("fb", path="data.value", variable="value_var")
    router, host = _router(profile, subscriptions)

    routed = router.route(_msg("KommanderMsg_SomethingNew", data={"value": "x"}))

    assert routed.kind is NotificationKind.UNRECOGNIZED
    assert routed.notification.tag == "KommanderMsg_SomethingNew"
    assert host.variables == {"value_var": "x"}
    assert host.checked_feedbacks == []


def test_opaque_payload_only_reaches_empty_paths(profile) -> None:
    subscriptions = SubscriptionRegistry()
    subscriptions.add("a", path="", variable="raw_var")
    subscriptions.add("b", path="data", variable="data_var")
    router, host = _router(profile, subscriptions)

    routed = router.route("pong")

    assert routed.kind is NotificationKind.OPAQUE
    assert host.variables == {"raw_var": "pong"}


def test_bytes_payloads_are_decoded(profile) -> None:
    router, host = _router(profile)

    routed = router.route(_msg("KommanderMsg_BlackScreenState", data={"blackscreen": 1}).encode("utf-8"))

    assert routed.kind is NotificationKind.RECOGNIZED
    assert router.cache.get("black_screen") is True
    assert decode_payload(b"\xff\xfe", "KommanderMsg").opaque is True


def test_plan_usage_mark_updates_plan_and_group(profile) -> None:
    router, host = _router(profile)

    routed = router.route(
        _msg(
            "KommanderMsg_PrePlanUsageMark",
            data={"outPutingId": 4, "outPutingPrePlanName": "Keynote", "nOutGroupId": 0, "outGroupName": "Main"},
        )
    )

    assert set(routed.changed_facets) == {"active_plan", "active_plan_name", "active_group", "active_group_name"}
    assert router.cache.get("active_plan") == 5
    assert router.cache.matches("active_plan", 5)
    assert host.variables["device_active_plan_name"] == "Keynote"
    assert router.cache.matches("active_group", 1)
    assert host.variables["device_active_group_name"] == "Main"


def test_authentication_result_uses_code(profile) -> None:
    router, _ = _router(profile)

    router.route(_msg("KommanderMsg_Authentication", code=0))
    assert router.cache.get("authenticated") is True

    router.route(_msg("KommanderMsg_Authentication", code=3))
    assert router.cache.get("authenticated") is False


def test_fan_out_is_independent_of_registration_order(profile) -> None:
    message = _msg("KommanderMsg_GlobalPlayState", data={"state": 1})

    first = SubscriptionRegistry()
    first.add("a", path="data.state", variable="shared")
    first.add("b", path="", variable="shared")
    second = SubscriptionRegistry()
    second.add("b", path="", variable="shared")
    second.add("a", path="data.state", variable="shared")

    router_one, host_one = _router(profile, first)
    router_two, host_two = _router(profile, second)
    router_one.route(message)
    router_two.route(message)

    assert host_one.variables["shared"] == host_two.variables["shared"]


def test_debug_messages_are_logged(profile, caplog: pytest.LogCaptureFixture) -> None:
    router, _ = _router(profile)
    router.debug_messages = True

    with caplog.at_level("DEBUG", logger="kommanderctl.device"):
        router.route("hello")

    assert "Message received: hello" in caplog.text


def test_parse_json_and_scalars() -> None:
    with pytest.raises(MalformedNotificationError):
        parse_json("{not json")
    assert to_variable_value(3) == 3
    assert to_variable_value({"a": [1, 2]}) == '{"a":[1,2]}'
    assert decode_payload("[1, 2]", "KommanderMsg").tag is None


def test_deeply_nested_payload_is_opaque() -> None:
    nested = "[" * 100000
    with pytest.raises(MalformedNotificationError):
        parse_json(nested)

    notification = decode_payload(nested, "KommanderMsg")
    assert notification.opaque
    assert notification.tag is None
