"""Hardware address normalization and matching."""

from __future__ import annotations

import re

from pushbot.core.errors import ConfigValidationError

_NON_HEX_RE = re.compile(r"[^0-9a-f]")
_ADDRESS_HEX_DIGITS = 12


def _strip(value: str) -> str:
    return _NON_HEX_RE.sub("", value.strip().lower())


def normalize_address(value: str) -> str:
    """Return the 12-digit lowercase hex key for a BLE hardware address.

    Punctuation and case are ignored, so ``AA:BB:CC:DD:EE:FF``,
    ``aabbccddeeff`` and ``Aa-Bb-Cc-Dd-Ee-Ff`` share one key.
    """
    normalized = _strip(value)
    if len(normalized) != _ADDRESS_HEX_DIGITS:
        raise ConfigValidationError(
            f"'{value}' is not a 48-bit hardware address"
        )
    return normalized


def addresses_match(left: str, right: str) -> bool:
    try:
        return normalize_address(left) == normalize_address(right)
    except ConfigValidationError:
        return False


def format_address(value: str) -> str:
    normalized = normalize_address(value)
    return ":".join(normalized[i : i + 2] for i in range(0, len(normalized), 2)).upper()
