"""Configuration loading and validation for YAML-based pushbot configs."""

from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Mapping
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from pushbot.core.address import normalize_address
from pushbot.core.errors import ConfigLoadError, ConfigValidationError
from pushbot.core.model import DEFAULT_DEVICE_NAME, BridgeConfig, DeviceConfig, Timings

_HEX_RE = re.compile(r"^[0-9a-f]+$")
_UUID_RE = re.compile(r"^[0-9a-f]{4}$|^[0-9a-f]{8}$|^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")
_MAX_PAYLOAD_BYTES = 512
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


def _load_schema() -> dict[str, Any]:
    schema_text = resources.files("pushbot.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    return json.loads(schema_text)


def _validator(schema: dict[str, Any]) -> Any:
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _validate(validator: Any, doc: Any, *, context: str) -> None:
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigValidationError(f"Schema validation failed for {context}{where}: {exc.message}") from exc


def default_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "pushbot/config.yaml"


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigValidationError(f"Config file {path} must contain a mapping at root")
    return loaded


def _normalize_hex(value: str, *, context: str) -> bytes:
    normalized = "".join(value.split()).lower()
    if len(normalized) == 0:
        raise ConfigValidationError(f"{context} must not be empty")
    if len(normalized) % 2 != 0:
        raise ConfigValidationError(f"{context} must have even-length hex")
    if not _HEX_RE.match(normalized):
        raise ConfigValidationError(f"{context} must contain only [0-9a-f]")
    payload = bytes.fromhex(normalized)
    if len(payload) > _MAX_PAYLOAD_BYTES:
        raise ConfigValidationError(
            f"{context} exceeds max payload size {_MAX_PAYLOAD_BYTES} bytes"
        )
    return payload


def _normalize_uuid(value: str, *, context: str) -> str:
    normalized = value.strip().lower()
    if not _UUID_RE.match(normalized):
        raise ConfigValidationError(
            f"{context} must be a 16-bit, 32-bit, or 128-bit UUID string"
        )
    return normalized


def _normalize_bool(value: Any, *, context: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise ConfigValidationError(f"{context} must be boolean true/false")


def build_device_config(entry: Mapping[str, Any], *, context: str = "device") -> DeviceConfig:
    """Validate one raw device entry and return its normalized config."""
    schema = _load_schema()
    _validate(_validator(schema["$defs"]["device"]), dict(entry), context=context)

    name = entry.get("name", DEFAULT_DEVICE_NAME).strip() or DEFAULT_DEVICE_NAME
    try:
        address = normalize_address(entry["mac_address"])
    except ConfigValidationError as exc:
        raise ConfigValidationError(f"{context}.mac_address: {exc}") from exc

    return DeviceConfig(
        name=name,
        address=address,
        service_uuid=_normalize_uuid(entry["service_uuid"], context=f"{context}.service_uuid"),
        write_uuid=_normalize_uuid(entry["write_uuid"], context=f"{context}.write_uuid"),
        notify_uuid=_normalize_uuid(entry["notify_uuid"], context=f"{context}.notify_uuid")
        if "notify_uuid" in entry
        else None,
        push_packet=_normalize_hex(entry["push_packet_hex"], context=f"{context}.push_packet_hex"),
        write_with_response=_normalize_bool(
            entry.get("write_with_response", True),
            context=f"{context}.write_with_response",
        ),
    )


def build_timings(doc: Mapping[str, Any] | None) -> Timings:
    if not doc:
        return Timings()
    values: dict[str, Any] = {}
    for key, value in doc.items():
        values[key] = int(value) if key == "write_attempts" else float(value)
    return Timings(**values)


def parse_config(doc: dict[str, Any], *, source: str = "<config>") -> BridgeConfig:
    """Build a bridge config from an already-parsed document.

    Invalid device entries are skipped with a warning so one bad entry never
    prevents the others from loading.
    """
    _validate(_validator(_load_schema()), doc, context=source)

    devices: list[DeviceConfig] = []
    warnings: list[str] = []
    seen: dict[str, str] = {}

    for index, entry in enumerate(doc["devices"]):
        context = f"{source}: devices[{index}]"
        try:
            device = build_device_config(entry, context=context)
        except ConfigValidationError as exc:
            warning = f"Skipping device entry {index}: {exc}"
            LOGGER.warning(warning)
            warnings.append(warning)
            continue

        if device.address in seen:
            warning = (
                f"Skipping device '{device.name}': address {device.address} "
                f"already configured for '{seen[device.address]}'"
            )
            LOGGER.warning(warning)
            warnings.append(warning)
            continue

        seen[device.address] = device.name
        devices.append(device)

    return BridgeConfig(
        devices=tuple(devices),
        timings=build_timings(doc.get("timings")),
        warnings=tuple(warnings),
    )


def load_config(path: Path | None = None) -> BridgeConfig:
    path = path or default_config_path()
    return parse_config(_read_yaml(path), source=str(path))
