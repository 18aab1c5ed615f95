"""Profile loading and validation for YAML-based kommanderctl deployment profiles."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from kommanderctl.core.errors import KommanderError, ProfileLoadError, ProfileValidationError
from kommanderctl.core.model import (
    AuthenticationSpec,
    FacetSpec,
    FacetType,
    FieldBinding,
    NotificationSpec,
    Profile,
    ToggleMode,
)

_TOGGLE_KINDS = ("mute", "lock", "black_screen", "role_change")
_TEMPLATED_COMMANDS = {"play_state": "{state}", "page_turn": "{direction}"}
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ProfileValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedProfiles:
    profiles: dict[str, Profile]
    warnings: tuple[str, ...]


def load_schema_validator(name: str) -> Any:
    schema_text = resources.files("kommanderctl.schemas").joinpath(name).read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def validate_document(
    doc: dict[str, Any],
    schema_name: str,
    source: Path | Traversable,
    *,
    error_cls: type[KommanderError] = ProfileValidationError,
) -> None:
    validator = load_schema_validator(schema_name)
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise error_cls(f"Schema validation failed for {source}{where}: {exc.message}") from exc


def _profile_dirs() -> tuple[Path, Path]:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return xdg_config / "kommanderctl/profiles", xdg_data / "kommanderctl/profiles"


def read_yaml(
    path: Path | Traversable,
    *,
    load_error: type[KommanderError] = ProfileLoadError,
    validation_error: type[KommanderError] = ProfileValidationError,
) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise load_error(f"Could not read file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except ProfileValidationError as exc:
        raise validation_error(f"{exc} ({path})") from exc
    except yaml.YAMLError as exc:
        raise validation_error(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise validation_error(f"File {path} must contain a mapping at root")
    return loaded


def _build_facet(name: str, spec: dict[str, Any], *, context: str) -> FacetSpec:
    facet_type = FacetType(spec["type"])
    default = spec["default"]
    choices = dict(spec.get("choices", {}))

    if facet_type is FacetType.ENUM:
        if not choices:
            raise ProfileValidationError(f"{context} enum facet must define choices")
        if default not in choices:
            raise ProfileValidationError(
                f"{context} default '{default}' is not one of: {', '.join(choices)}"
            )
    elif choices:
        raise ProfileValidationError(f"{context} only enum facets may define choices")

    if facet_type is FacetType.BOOLEAN and not isinstance(default, bool):
        raise ProfileValidationError(f"{context} default must be boolean true/false")
    if facet_type is FacetType.INTEGER and (isinstance(default, bool) or not isinstance(default, int)):
        raise ProfileValidationError(f"{context} default must be an integer")
    if facet_type is FacetType.STRING and not isinstance(default, str):
        raise ProfileValidationError(f"{context} default must be a string")
    if facet_type is FacetType.LISTING and not isinstance(default, list):
        raise ProfileValidationError(f"{context} default must be a list")

    index_base = int(spec.get("index_base", 0))
    if index_base and facet_type is not FacetType.INTEGER:
        raise ProfileValidationError(f"{context} index_base only applies to integer facets")

    return FacetSpec(
        name=name,
        type=facet_type,
        default=default,
        choices=choices,
        index_base=index_base,
    )


def _build_notification(
    tag: str,
    spec: dict[str, Any],
    facets: dict[str, FacetSpec],
    *,
    context: str,
) -> NotificationSpec:
    bindings: list[FieldBinding] = []
    for facet_name, binding in spec["fields"].items():
        if facet_name not in facets:
            raise ProfileValidationError(f"{context}.{facet_name} references an undefined facet")
        if isinstance(binding, str):
            bindings.append(FieldBinding(facet=facet_name, path=binding))
        else:
            bindings.append(
                FieldBinding(
                    facet=facet_name,
                    path=binding["path"],
                    equals=binding["equals"],
                    has_equals=True,
                )
            )
    return NotificationSpec(tag=tag, fields=tuple(bindings))


def _build_profile(doc: dict[str, Any], source: Path | Traversable) -> Profile:
    validate_document(doc, "profile.schema.json", source)

    profile_id = doc["id"]
    commands = dict(doc["commands"])
    for kind, placeholder in _TEMPLATED_COMMANDS.items():
        if kind in commands and placeholder not in commands[kind]:
            raise ProfileValidationError(
                f"{profile_id}.commands.{kind} must contain the '{placeholder}' placeholder"
            )

    toggles = {kind: ToggleMode.IMPLICIT for kind in _TOGGLE_KINDS}
    for kind, mode in doc.get("toggles", {}).items():
        toggles[kind] = ToggleMode(mode)

    facets = {
        name: _build_facet(name, spec, context=f"{profile_id}.facets.{name}")
        for name, spec in doc["facets"].items()
    }
    notifications = {
        tag: _build_notification(tag, spec, facets, context=f"{profile_id}.notifications.{tag}")
        for tag, spec in doc["notifications"].items()
    }

    auth = doc["authentication"]
    return Profile(
        id=profile_id,
        name=doc["name"],
        discriminator=doc["discriminator"],
        authentication=AuthenticationSpec(
            tag=auth["tag"],
            identification_id=auth["identification_id"],
            username=auth["username"],
            password=auth["password"],
            ip=auth["ip"],
            device_id=auth["device_id"],
            connection_type=int(auth.get("connection_type", 5)),
            origin=auth.get("origin", "streamDeck"),
        ),
        commands=commands,
        toggles=toggles,
        facets=facets,
        notifications=notifications,
        library_query_on_auth=bool(doc.get("library_query_on_auth", False)),
    )


def _iter_packaged_profile_paths() -> list[Traversable]:
    profile_root = resources.files("kommanderctl.profiles")
    return [item for item in profile_root.iterdir() if item.name.endswith((".yml", ".yaml"))]


def _iter_user_profile_paths() -> list[Path]:
    paths: list[Path] = []
    for directory in _profile_dirs():
        if not directory.exists() or not directory.is_dir():
            continue
        paths.extend(sorted(p for p in directory.iterdir() if p.suffix in {".yml", ".yaml"}))
    return paths


def load_profiles() -> LoadedProfiles:
    profiles: dict[str, Profile] = {}
    warnings: list[str] = []

    for path in sorted(_iter_packaged_profile_paths(), key=lambda p: p.name):
        doc = read_yaml(path)
        profile = _build_profile(doc, path)
        profiles[profile.id] = profile

    for path in _iter_user_profile_paths():
        doc = read_yaml(path)
        profile = _build_profile(doc, path)
        if profile.id in profiles:
            warning = f"User profile '{profile.id}' overrides packaged profile"
            LOGGER.warning(warning)
            warnings.append(warning)
        profiles[profile.id] = profile

    return LoadedProfiles(profiles=profiles, warnings=tuple(warnings))
