"""Input validation helpers shared by the record services.

Each check returns an error message or None so callers can collect every
field error before raising one ``ValidationError`` with ``details``.
"""

from __future__ import annotations

from datetime import date

from clienthub.core.exceptions import ValidationError


def validate_enum(value, allowed, field_name: str) -> str | None:
    """Return error message if value not in allowed set, else None."""
    if value is None:
        return None
    if not isinstance(value, str) or value not in allowed:
        return f"Invalid {field_name}: '{value}'. Allowed: {sorted(allowed)}"
    return None


def validate_length(value, max_len: int, field_name: str, *, min_len: int = 0) -> str | None:
    """Return error message if value length falls outside [min_len, max_len], else None."""
    if value is None:
        return f"{field_name} is required" if min_len else None
    if not isinstance(value, str):
        return f"{field_name} must be a string"
    if len(value.strip()) < min_len:
        return f"{field_name} is required"
    if len(value) > max_len:
        return f"{field_name} exceeds maximum length of {max_len} characters"
    return None


def parse_date_input(value):
    """Parse a YYYY-MM-DD string, raising ValueError on bad input."""
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise ValueError("Invalid date format. Use YYYY-MM-DD.") from exc


def raise_if_errors(errors: dict[str, str | None]) -> None:
    """Raise one ValidationError listing every non-empty field error."""
    details = {field: msg for field, msg in errors.items() if msg}
    if details:
        first = next(iter(details.values()))
        raise ValidationError(first, details=details)
