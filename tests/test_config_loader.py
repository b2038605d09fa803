from __future__ import annotations

from pathlib import Path

import pytest

from pushbot.core.config_loader import build_device_config, default_config_path, load_config
from pushbot.core.errors import ConfigLoadError, ConfigValidationError
from pushbot.core.model import Timings


def _write_config(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def test_load_full_config(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path / "config.yaml",
        """
timings:
  reconnect_delay_s: 5
  write_attempts: 4
devices:
  - name: Boiler
    mac_address: "AA:BB:CC:DD:EE:FF"
    service_uuid: "0000FEE7-0000-1000-8000-00805F9B34FB"
    write_uuid: "0000fec7-0000-1000-8000-00805f9b34fb"
    notify_uuid: "0000fec8-0000-1000-8000-00805f9b34fb"
    push_packet_hex: "01 02 03 0F"
    write_with_response: false
  - mac_address: "11-22-33-44-55-66"
    service_uuid: "fee7"
    write_uuid: "fec7"
    push_packet_hex: "570100"
""",
    )

    loaded = load_config(path)

    assert loaded.warnings == ()
    assert loaded.timings == Timings(reconnect_delay_s=5.0, write_attempts=4)
    boiler, default_named = loaded.devices
    assert boiler.name == "Boiler"
    assert boiler.address == "aabbccddeeff"
    assert boiler.service_uuid == "0000fee7-0000-1000-8000-00805f9b34fb"
    assert boiler.notify_uuid == "0000fec8-0000-1000-8000-00805f9b34fb"
    assert boiler.push_packet == bytes([0x01, 0x02, 0x03, 0x0F])
    assert boiler.write_with_response is False
    assert default_named.name == "PushBot"
    assert default_named.address == "112233445566"
    assert default_named.notify_uuid is None
    assert default_named.write_with_response is True


def test_invalid_device_entry_is_skipped(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path / "config.yaml",
        """
devices:
  - name: Bad Hex
    mac_address: "AA:BB:CC:DD:EE:01"
    service_uuid: "fee7"
    write_uuid: "fec7"
    push_packet_hex: "xyz"
  - name: Good
    mac_address: "AA:BB:CC:DD:EE:02"
    service_uuid: "fee7"
    write_uuid: "fec7"
    push_packet_hex: "aa00"
""",
    )

    loaded = load_config(path)

    assert [d.name for d in loaded.devices] == ["Good"]
    assert len(loaded.warnings) == 1
    assert "Skipping device entry 0" in loaded.warnings[0]


@pytest.mark.parametrize(
    "entry",
    [
        {"mac_address": "AA:BB:CC:DD:EE:FF", "service_uuid": "fee7", "write_uuid": "fec7"},
        {"mac_address": "AA:BB:CC", "service_uuid": "fee7", "write_uuid": "fec7", "push_packet_hex": "aa"},
        {"mac_address": "AA:BB:CC:DD:EE:FF", "service_uuid": "nope", "write_uuid": "fec7", "push_packet_hex": "aa"},
        {"mac_address": "AA:BB:CC:DD:EE:FF", "service_uuid": "fee7", "write_uuid": "fec7", "push_packet_hex": "abc"},
        {
            "mac_address": "AA:BB:CC:DD:EE:FF",
            "service_uuid": "fee7",
            "write_uuid": "fec7",
            "push_packet_hex": "aa",
            "write_with_response": "maybe",
        },
        {
            "mac_address": "AA:BB:CC:DD:EE:FF",
            "service_uuid": "fee7",
            "write_uuid": "fec7",
            "push_packet_hex": "aa",
            "unexpected": 1,
        },
    ],
)
def test_build_device_config_rejects_invalid_entries(entry: dict) -> None:
    with pytest.raises(ConfigValidationError):
        build_device_config(entry)


def test_duplicate_addresses_are_skipped(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path / "config.yaml",
        """
devices:
  - name: First
    mac_address: "AA:BB:CC:DD:EE:FF"
    service_uuid: "fee7"
    write_uuid: "fec7"
    push_packet_hex: "aa00"
  - name: Second
    mac_address: "aabbccddeeff"
    service_uuid: "fee7"
    write_uuid: "fec7"
    push_packet_hex: "aa01"
""",
    )

    loaded = load_config(path)

    assert [d.name for d in loaded.devices] == ["First"]
    assert any("already configured for 'First'" in w for w in loaded.warnings)


def test_duplicate_yaml_keys_rejected(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path / "config.yaml",
        """
devices:
  - name: Duplicate
    mac_address: "AA:BB:CC:DD:EE:FF"
    mac_address: "AA:BB:CC:DD:EE:00"
    service_uuid: "fee7"
    write_uuid: "fec7"
    push_packet_hex: "aa00"
""",
    )

    with pytest.raises(ConfigValidationError):
        load_config(path)


def test_missing_devices_key_rejected(tmp_path: Path) -> None:
    path = _write_config(tmp_path / "config.yaml", "timings:\n  auto_off_s: 2\n")

    with pytest.raises(ConfigValidationError):
        load_config(path)


def test_unknown_timing_rejected(tmp_path: Path) -> None:
    path = _write_config(tmp_path / "config.yaml", "devices: []\ntimings:\n  warp_speed: 9\n")

    with pytest.raises(ConfigValidationError):
        load_config(path)


def test_root_must_be_mapping(tmp_path: Path) -> None:
    path = _write_config(tmp_path / "config.yaml", "- just\n- a list\n")

    with pytest.raises(ConfigValidationError):
        load_config(path)


def test_missing_file_raises_load_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError):
        load_config(tmp_path / "missing.yaml")


def test_default_path_follows_xdg_config_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    _write_config(
        tmp_path / "cfg" / "pushbot" / "config.yaml",
        """
devices:
  - mac_address: "AA:BB:CC:DD:EE:FF"
    service_uuid: "fee7"
    write_uuid: "fec7"
    push_packet_hex: "aa00"
""",
    )

    assert default_config_path() == tmp_path / "cfg" / "pushbot" / "config.yaml"
    assert len(load_config().devices) == 1
