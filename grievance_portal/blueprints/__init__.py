"""
Grievance Portal
Blueprint helpers.
"""

from flask import request

_TRUTHY = {"1", "true", "yes", "on"}


def json_body() -> dict | None:
    """Request JSON object, or None when the body is missing or not an object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def query_flag(name: str, default: bool = False) -> bool:
    raw = request.args.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


def query_number(name: str, default: float, *, minimum: float = 0) -> float | None:
    """Numeric query param; None when present but malformed or below minimum."""
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if value >= minimum else None
