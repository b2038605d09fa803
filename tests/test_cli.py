from __future__ import annotations

from typer.testing import CliRunner

from fakes import make_config
from pushbot import cli
from pushbot.core.errors import ConfigLoadError
from pushbot.core.model import DiscoveredAddress, PushResult


class FakeService:
    def __init__(self, config_path=None, *, host=None) -> None:
        self.config_path = config_path
        self.host = host
        self.load_warnings = ()
        self.devices = [make_config(name="Boiler", notify=True)]
        self.served = False

    def list_devices(self):
        return list(self.devices)

    async def serve(self, stop_event=None):
        self.served = True

    async def push(self, device_hint):
        return PushResult(device=self.devices[0], succeeded=True, payload_hex="0102030f")

    async def scan(self, duration_s=None):
        return [
            DiscoveredAddress(address="11:22:33:44:55:66"),
            DiscoveredAddress(address="AA:BB:CC:DD:EE:FF", configured_name="Boiler"),
        ]


runner = CliRunner()


def test_validate_command(monkeypatch):
    monkeypatch.setattr(cli, "BridgeService", FakeService)
    result = runner.invoke(cli.app, ["validate", "--config", "devices.yaml"])
    assert result.exit_code == 0
    assert "Boiler: aabbccddeeff payload=0102030f (heartbeat)" in result.stdout


def test_validate_without_devices_fails(monkeypatch):
    class EmptyService(FakeService):
        def list_devices(self):
            return []

    monkeypatch.setattr(cli, "BridgeService", EmptyService)
    result = runner.invoke(cli.app, ["validate"])
    assert result.exit_code == 1
    assert "No valid devices configured" in result.stdout


def test_push_command(monkeypatch):
    monkeypatch.setattr(cli, "BridgeService", FakeService)
    result = runner.invoke(cli.app, ["push", "Boiler"])
    assert result.exit_code == 0
    assert "Pushed Boiler (aabbccddeeff) payload=0102030f" in result.stdout


def test_push_command_reports_failure(monkeypatch):
    class FailingPushService(FakeService):
        async def push(self, device_hint):
            return PushResult(device=self.devices[0], succeeded=False, payload_hex="0102030f")

    monkeypatch.setattr(cli, "BridgeService", FailingPushService)
    result = runner.invoke(cli.app, ["push", "Boiler"])
    assert result.exit_code == 1
    assert "Push to Boiler (aabbccddeeff) failed" in result.output


def test_scan_command(monkeypatch):
    monkeypatch.setattr(cli, "BridgeService", FakeService)
    result = runner.invoke(cli.app, ["scan", "--duration", "1"])
    assert result.exit_code == 0
    assert "11:22:33:44:55:66 -> <not-configured>" in result.stdout
    assert "AA:BB:CC:DD:EE:FF -> Boiler" in result.stdout


def test_run_command_serves(monkeypatch):
    monkeypatch.setattr(cli, "BridgeService", FakeService)
    result = runner.invoke(cli.app, ["run"])
    assert result.exit_code == 0


def test_config_error_is_clean(monkeypatch):
    class BrokenService(FakeService):
        def __init__(self, config_path=None, *, host=None) -> None:
            raise ConfigLoadError("Could not read config file devices.yaml")

    monkeypatch.setattr(cli, "BridgeService", BrokenService)
    result = runner.invoke(cli.app, ["run", "--config", "devices.yaml"])
    assert result.exit_code == 1
    assert "Error: Could not read config file devices.yaml" in result.output
    assert "Traceback" not in result.stdout


def test_load_warning_is_printed(monkeypatch):
    class WarnService(FakeService):
        def __init__(self, config_path=None, *, host=None) -> None:
            super().__init__(config_path, host=host)
            self.load_warnings = ("Skipping device entry 1: bad hex",)

    monkeypatch.setattr(cli, "BridgeService", WarnService)
    result = runner.invoke(cli.app, ["validate"])
    assert result.exit_code == 0
    assert "Warning: Skipping device entry 1: bad hex" in result.output
