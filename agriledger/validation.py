from __future__ import annotations

from typing import Any

from .errors import ValidationError


def _reject_non_int(key: str, value: Any) -> int:
    # Integers - strict validation to reject floats, bools and "12.5"
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        # isdigit() accepts superscripts like "²" that int() refuses
        if stripped.lstrip("-").isdecimal():
            try:
                return int(stripped)
            except ValueError:
                pass
    raise ValidationError(f"{key} must be an integer")


def int_field(payload: dict, key: str, *, required: bool = True, default: int | None = None) -> int | None:
    value = payload.get(key)
    if value is None:
        if required:
            raise ValidationError(f"{key} is required")
        return default
    return _reject_non_int(key, value)


def str_field(payload: dict, key: str, *, required: bool = False, max_length: int | None = None) -> str | None:
    value = payload.get(key)
    if value is None:
        if required:
            raise ValidationError(f"{key} is required")
        return None
    value = str(value).strip()
    if required and not value:
        raise ValidationError(f"{key} is required")
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{key} must be at most {max_length} characters")
    return value or None


def lines_field(payload: dict, key: str = "lines") -> list[tuple[int, int]]:
    """[{item_id, quantity}, ...] -> [(item_id, quantity), ...]; values must be JSON integers."""
    raw = payload.get(key)
    if not isinstance(raw, list) or not raw:
        raise ValidationError(f"{key} must be a non-empty list")
    lines = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError(f"{key}[{index}] must be an object")
        lines.append((
            int_field(entry, "item_id"),
            int_field(entry, "quantity"),
        ))
    return lines


def int_arg(args, key: str) -> int | None:
    """Optional integer query-string argument."""
    value = args.get(key)
    if value is None or value == "":
        return None
    return _reject_non_int(key, value)


def bool_arg(args, key: str) -> bool | None:
    value = args.get(key)
    if value is None or value == "":
        return None
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes"):
        return True
    if lowered in ("0", "false", "no"):
        return False
    raise ValidationError(f"{key} must be true or false")
