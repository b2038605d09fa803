"""BLE push-button bridge."""

__version__ = "0.1.0"
