"""Domain-specific errors for pushbot."""


class PushbotError(Exception):
    """Base error for pushbot."""


class ConfigLoadError(PushbotError):
    """Raised when the configuration file cannot be read."""


class ConfigValidationError(PushbotError):
    """Raised when configuration does not conform to schema or semantics."""


class DeviceSelectionError(PushbotError):
    """Raised when a device name or address does not resolve to a controller."""


class RetryExhaustedError(PushbotError):
    """Raised when every attempt of a retried operation failed."""

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


class TransportError(PushbotError):
    """Base transport error."""


class AdapterUnavailableError(TransportError):
    """Raised when the Bluetooth adapter cannot be initialized."""


class DeviceNotFoundError(TransportError):
    """Raised when an address cannot be resolved to a device handle."""


class ConnectError(TransportError):
    """Raised on transport connect or GATT resolution failures."""


class GattResolutionError(TransportError):
    """Raised when a service or characteristic is missing on the peripheral."""


class WriteError(TransportError):
    """Raised when a characteristic write fails."""


class NotConnectedError(TransportError):
    """Raised when an operation needs a live link and there is none."""
