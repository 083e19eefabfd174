"""Utility functions for the console."""

from __future__ import annotations

import logging
import sys
from typing import Any, Mapping

from aegis_console.errors import MalformedRecord

UNKNOWN = "unknown"

# Categories the backend classifier is known to emit. Anything else is shown
# under the "unknown" group with its raw label intact.
CATEGORY_GROUPS = {
    "Media": "media",
    "Social": "social",
    "Gaming": "gaming",
    "Web": "web",
    "System": "system",
    "System/Cloud": "system",
    "Remote Access": "remote_access",
    "Email": "email",
    "Database": "database",
    "VoIP": "voice",
    "Communication": "voice",
}

# Substring markers, checked in order.
OS_FAMILY_MARKERS = (
    ("Windows", "windows"),
    ("Linux", "linux"),
    ("Apple", "apple"),
    ("macOS", "apple"),
    ("iOS", "apple"),
)
DEVICE_TYPE_MARKERS = (
    ("Server", "server"),
    ("Router", "router"),
    ("Mobile", "mobile"),
)

RISK_LOW_MAX = 20
RISK_MEDIUM_MAX = 50


def parse_int(value: Any) -> int | None:
    """Safely parse a value to int, returning None on failure."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_float(value: Any) -> float | None:
    """Safely parse a value to float, returning None on failure."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def optional_str(value: Any) -> str | None:
    """Return value as text, keeping None (unknown) apart from ""."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def require_str(payload: Mapping[str, Any], key: str) -> str:
    """Read a required text field or raise MalformedRecord."""
    value = optional_str(payload.get(key))
    if value is None:
        raise MalformedRecord(f"missing or invalid field '{key}'")
    return value


def require_port(payload: Mapping[str, Any], key: str) -> int:
    """Read a required port number (0-65535) or raise MalformedRecord."""
    port = parse_int(payload.get(key))
    if port is None or not 0 <= port <= 65535:
        raise MalformedRecord(f"missing or invalid port '{key}'")
    return port


def non_negative(value: Any) -> int:
    """Parse a counter, falling back to 0 for absent or negative values."""
    parsed = parse_int(value)
    if parsed is None or parsed < 0:
        return 0
    return parsed


def parse_counter_map(value: Any) -> dict[str, int]:
    """Parse a name -> count mapping, keeping insertion order.

    Entries with a non-numeric count are dropped; a non-mapping value
    yields an empty dict.
    """
    if not isinstance(value, Mapping):
        return {}
    counters: dict[str, int] = {}
    for key, raw in value.items():
        count = parse_int(raw)
        if count is None:
            continue
        counters[str(key)] = count
    return counters


def normalize_log_level(level_name: Any) -> str:
    """Normalize log level names to the INFO/WARN/ERROR vocabulary.

    Unrecognized levels are kept (upper-cased) so new backend levels still
    show up rather than being folded into INFO.
    """
    if not isinstance(level_name, str) or not level_name.strip():
        return "INFO"
    level = level_name.strip().upper()
    if level in {"WARNING", "WARN"}:
        return "WARN"
    if level in {"ERROR", "CRITICAL", "FATAL"}:
        return "ERROR"
    return level


def category_group(category: str | None) -> str:
    """Map a traffic category to its display group, or "unknown"."""
    if not category:
        return UNKNOWN
    return CATEGORY_GROUPS.get(category, UNKNOWN)


def _match_marker(value: str | None, markers: tuple[tuple[str, str], ...]) -> str:
    if not value:
        return UNKNOWN
    for marker, group in markers:
        if marker in value:
            return group
    return UNKNOWN


def os_group(os_family: str | None) -> str:
    """Map an OS family string (e.g. "Windows 10") to windows/linux/apple/unknown."""
    return _match_marker(os_family, OS_FAMILY_MARKERS)


def device_group(device_type: str | None) -> str:
    """Map a device type string to server/router/mobile/unknown."""
    return _match_marker(device_type, DEVICE_TYPE_MARKERS)


def risk_tier(risk_score: int) -> str:
    """Return the presentation tier for a host risk score."""
    if risk_score > RISK_MEDIUM_MAX:
        return "high"
    if risk_score > RISK_LOW_MAX:
        return "medium"
    return "low"


def configure_logging(level: str, extra_handler: logging.Handler | None = None) -> logging.Logger:
    """Configure logging with a stdout stream handler.

    Args:
        level: Log level string
        extra_handler: Optional handler attached to the root logger as well,
            e.g. a file handler for long-running sessions

    Returns:
        Logger instance
    """
    logger = logging.getLogger("aegis_console")
    root = logging.getLogger()
    root.handlers.clear()
    if isinstance(level, str):
        normalized_level = getattr(logging, level.upper(), logging.INFO)
    else:
        normalized_level = logging.INFO
    root.setLevel(normalized_level)

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)
    if extra_handler is not None:
        if extra_handler.formatter is None:
            extra_handler.setFormatter(formatter)
        root.addHandler(extra_handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return logger
