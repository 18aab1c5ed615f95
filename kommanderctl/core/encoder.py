"""Translate user-selected actions into protocol request objects.

The encoder is pure: it only reads the deployment profile and never touches a
transport. Each method returns an :class:`OutboundCommand`; serialization to
wire text happens in :func:`serialize`.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from typing import Any

from kommanderctl.core.errors import CommandEncodingError
from kommanderctl.core.model import OutboundCommand, Profile, TimelineStatus, ToggleMode

PLAN_SLOTS = 32
STEP_UP = -1
STEP_DOWN = -2
STEP_SENTINELS = (STEP_UP, STEP_DOWN)
VOLUME_RANGE = (0, 100)
SCREEN_RANGE = (-100, 100)

RELATIVE_PLAN = {"PreviousPlan": False, "NextPlan": True}
RELATIVE_GROUP = ("pre", "next")
PLAY_STATES = ("Play", "Pause", "Stop")
PAGE_DIRECTIONS = ("PrevPage", "NextPage")
BRIGHT_CONTRAST = {
    "Brightness+": ("screen_light", STEP_UP),
    "Brightness-": ("screen_light", STEP_DOWN),
    "Contrast+": ("screen_contrast", STEP_UP),
    "Contrast-": ("screen_contrast", STEP_DOWN),
}
_SCREEN_PARAM = {"screen_light": "light", "screen_contrast": "contrast"}
_TOGGLE_PARAM = {"mute": "mute", "lock": "lock", "black_screen": "blackscreen"}


def _as_int(value: Any, *, context: str) -> int:
    if isinstance(value, bool):
        raise CommandEncodingError(f"{context} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise CommandEncodingError(f"{context} must be an integer, got {value!r}")


def _as_bool(value: Any, *, context: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "on", "yes"}:
            return True
        if lowered in {"0", "false", "off", "no"}:
            return False
    raise CommandEncodingError(f"{context} must be boolean, got {value!r}")


def _is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, str) and value.strip().lstrip("-").isdigit()


def _check_range(value: int, bounds: tuple[int, int], *, context: str) -> int:
    low, high = bounds
    if not low <= value <= high:
        raise CommandEncodingError(f"{context} must be within {low}..{high}, got {value}")
    return value


def serialize(command: OutboundCommand, discriminator: str) -> str:
    """Render ``command`` as the JSON envelope the device expects."""
    message: dict[str, Any] = {discriminator: command.tag}
    message.update(command.extra)
    if command.params:
        message["params"] = command.params
    return json.dumps(message, ensure_ascii=False)


class CommandEncoder:
    def __init__(self, profile: Profile) -> None:
        self.profile = profile
        self._actions: dict[str, Callable[[Mapping[str, Any]], OutboundCommand]] = {
            "callPlan": lambda o: self.invoke_plan(o.get("callPlan", "PreviousPlan")),
            "ChangePlanGroup": lambda o: self.switch_plan_group(o.get("changePlanGroup", "next")),
            "ChangePlayStatus": lambda o: self.change_play_state(o.get("changePlayStatus", "Play")),
            "SoundControl": lambda o: self.sound_control(o.get("soundControl", STEP_UP)),
            "SetVolume": lambda o: self.adjust_volume(o.get("volume")),
            "PageTurn": lambda o: self.turn_page(o.get("pageTurn", "NextPage")),
            "ScreenOnOff": lambda o: self.toggle_black_screen(o.get("state")),
            "BrightContrast": lambda o: self.bright_contrast(o.get("brightContrast", "Brightness+")),
            "SetBrightness": lambda o: self.set_screen_light(o.get("light")),
            "SetContrast": lambda o: self.set_screen_contrast(o.get("contrast")),
            "OutputOnOff": lambda o: self.set_monitors(o.get("outputOnOff", 1)),
            "MasterSwitch": lambda o: self.role_change(o.get("state")),
            "Lock": lambda o: self.set_lock(o.get("state")),
            "CallPlanByName": lambda o: self.call_plan_by_name(o.get("name")),
            "CallTimeline": lambda o: self.call_timeline(o.get("index"), o.get("status")),
            "MediaLibrary": lambda o: self.query_media_library(),
        }
        self._action_kinds = {
            "callPlan": ("invoke_plan", "navigate_plan"),
            "ChangePlanGroup": ("switch_group",),
            "ChangePlayStatus": ("play_state",),
            "SoundControl": ("mute", "volume"),
            "SetVolume": ("volume",),
            "PageTurn": ("page_turn",),
            "ScreenOnOff": ("black_screen",),
            "BrightContrast": ("screen_light", "screen_contrast"),
            "SetBrightness": ("screen_light",),
            "SetContrast": ("screen_contrast",),
            "OutputOnOff": ("monitor_enable",),
            "MasterSwitch": ("role_change",),
            "Lock": ("lock",),
            "CallPlanByName": ("call_by_name",),
            "CallTimeline": ("call_timeline",),
            "MediaLibrary": ("media_library",),
        }

    def action_ids(self) -> list[str]:
        """Action ids whose command kinds are all exposed by the profile."""
        return [
            action_id
            for action_id, kinds in self._action_kinds.items()
            if all(kind in self.profile.commands for kind in kinds)
        ]

    def encode_action(self, action_id: str, options: Mapping[str, Any] | None = None) -> OutboundCommand:
        handler = self._actions.get(action_id)
        if handler is None:
            available = ", ".join(self.action_ids())
            raise CommandEncodingError(f"Unknown action '{action_id}'. Available: {available}")
        return handler(options or {})

    def _tag(self, kind: str, **fmt: str) -> str:
        tag = self.profile.commands.get(kind)
        if tag is None:
            raise CommandEncodingError(
                f"Profile '{self.profile.id}' does not support command '{kind}'"
            )
        return tag.format(**fmt) if fmt else tag

    def _toggle(self, kind: str, target: Any, implicit_params: dict[str, Any]) -> OutboundCommand:
        tag = self._tag(kind)
        if self.profile.toggles.get(kind, ToggleMode.IMPLICIT) is ToggleMode.IMPLICIT:
            return OutboundCommand(tag=tag, params=implicit_params)
        if target is None:
            raise CommandEncodingError(
                f"Profile '{self.profile.id}' requires an explicit target state for '{kind}'"
            )
        param = "bSwitch" if kind == "role_change" else _TOGGLE_PARAM[kind]
        return OutboundCommand(tag=tag, params={param: _as_bool(target, context=kind)})

    def authentication(self) -> OutboundCommand:
        auth = self.profile.authentication
        return OutboundCommand(
            tag=auth.tag,
            params={
                "username": auth.username,
                "password": auth.password,
                "ip": auth.ip,
                "deviceId": auth.device_id,
                "connetType": auth.connection_type,
            },
            extra={"identificationID": auth.identification_id},
        )

    def invoke_plan(self, selection: Any) -> OutboundCommand:
        if isinstance(selection, str) and selection in RELATIVE_PLAN:
            return OutboundCommand(
                tag=self._tag("navigate_plan"),
                params={"next": RELATIVE_PLAN[selection]},
            )
        if not _is_numeric(selection):
            raise CommandEncodingError(
                f"Plan selection must be 1..{PLAN_SLOTS}, PreviousPlan or NextPlan, got {selection!r}"
            )
        index = _check_range(_as_int(selection, context="plan"), (1, PLAN_SLOTS), context="plan")
        return OutboundCommand(
            tag=self._tag("invoke_plan"),
            params={"index": index - 1, "onlySetReal": True},
        )

    def switch_plan_group(self, selection: Any) -> OutboundCommand:
        if isinstance(selection, str) and selection in RELATIVE_GROUP:
            return OutboundCommand(tag=self._tag("switch_group"), params={"type": selection})
        if not _is_numeric(selection):
            raise CommandEncodingError(
                f"Group selection must be 1..{PLAN_SLOTS}, pre or next, got {selection!r}"
            )
        index = _check_range(_as_int(selection, context="group"), (1, PLAN_SLOTS), context="group")
        return OutboundCommand(tag=self._tag("switch_group"), params={"index": index - 1})

    def change_play_state(self, state: str) -> OutboundCommand:
        if state not in PLAY_STATES:
            raise CommandEncodingError(f"Play state must be one of {', '.join(PLAY_STATES)}, got {state!r}")
        return OutboundCommand(tag=self._tag("play_state", state=state), params={"onlySetReal": True})

    def toggle_mute(self, target: Any = None) -> OutboundCommand:
        return self._toggle("mute", target, {})

    def adjust_volume(self, value: Any) -> OutboundCommand:
        volume = _as_int(value, context="volume")
        if volume not in STEP_SENTINELS:
            _check_range(volume, VOLUME_RANGE, context="volume")
        return OutboundCommand(tag=self._tag("volume"), params={"volume": volume})

    def sound_control(self, selection: Any) -> OutboundCommand:
        value = _as_int(selection, context="soundControl")
        if value == 0:
            return self.toggle_mute()
        if value not in STEP_SENTINELS:
            raise CommandEncodingError(f"soundControl must be 0, -1 or -2, got {value}")
        return self.adjust_volume(value)

    def turn_page(self, direction: str) -> OutboundCommand:
        if direction not in PAGE_DIRECTIONS:
            raise CommandEncodingError(
                f"Page direction must be one of {', '.join(PAGE_DIRECTIONS)}, got {direction!r}"
            )
        return OutboundCommand(
            tag=self._tag("page_turn", direction=direction),
            params={"isGlobalTurnPage": True, "onlySetReal": True},
        )

    def toggle_black_screen(self, target: Any = None) -> OutboundCommand:
        return self._toggle("black_screen", target, {})

    def _screen(self, kind: str, value: Any) -> OutboundCommand:
        param = _SCREEN_PARAM[kind]
        level = _as_int(value, context=param)
        if level not in STEP_SENTINELS:
            _check_range(level, SCREEN_RANGE, context=param)
        return OutboundCommand(tag=self._tag(kind), params={param: level})

    def set_screen_light(self, value: Any) -> OutboundCommand:
        return self._screen("screen_light", value)

    def set_screen_contrast(self, value: Any) -> OutboundCommand:
        return self._screen("screen_contrast", value)

    def bright_contrast(self, selection: str) -> OutboundCommand:
        entry = BRIGHT_CONTRAST.get(selection)
        if entry is None:
            raise CommandEncodingError(
                f"Selection must be one of {', '.join(BRIGHT_CONTRAST)}, got {selection!r}"
            )
        kind, step = entry
        return self._screen(kind, step)

    def set_monitors(self, enabled: Any) -> OutboundCommand:
        return OutboundCommand(
            tag=self._tag("monitor_enable"),
            params={"bOpen": _as_bool(enabled, context="outputOnOff")},
        )

    def role_change(self, target: Any = None) -> OutboundCommand:
        return self._toggle("role_change", target, {"bSwitch": True})

    def set_lock(self, target: Any = None) -> OutboundCommand:
        return self._toggle("lock", target, {})

    def call_plan_by_name(self, name: Any) -> OutboundCommand:
        if not isinstance(name, str) or not name.strip():
            raise CommandEncodingError("Plan name must be a non-empty string")
        return OutboundCommand(tag=self._tag("call_by_name"), params={"select": name})

    def call_timeline(self, index: Any, status: Any) -> OutboundCommand:
        position = _as_int(index, context="timeline index")
        if position < 1:
            raise CommandEncodingError(f"timeline index must be >= 1, got {position}")
        if isinstance(status, str) and not _is_numeric(status):
            try:
                status = TimelineStatus[status.strip().upper()]
            except KeyError:
                names = ", ".join(s.name.lower() for s in TimelineStatus)
                raise CommandEncodingError(f"timeline status must be one of {names}") from None
        code = _as_int(status, context="timeline status")
        try:
            timeline_status = TimelineStatus(code)
        except ValueError:
            raise CommandEncodingError(f"timeline status must be within 1..6, got {code}") from None
        return OutboundCommand(
            tag=self._tag("call_timeline"),
            params={"index": position - 1, "status": int(timeline_status)},
        )

    def query_media_library(self) -> OutboundCommand:
        return OutboundCommand(tag=self._tag("media_library"))
