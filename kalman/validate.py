from __future__ import annotations

from typing import Any

from kalman.errors import InvalidInput

FUNCTION_NAME = "kalman_filter()"


def require_float(v: Any, position: int, name: str) -> float:
    """Coerce a positional argument to float or raise InvalidInput naming it."""
    if v is None or isinstance(v, bool):
        raise InvalidInput(
            f"Invalid input given to {FUNCTION_NAME}: argument {position} ({name}) should be a double",
            position=position,
            name=name,
        )
    try:
        return float(v)
    except (TypeError, ValueError) as e:
        raise InvalidInput(
            f"Invalid input given to {FUNCTION_NAME}: argument {position} ({name}) should be a double, got {v!r}",
            position=position,
            name=name,
        ) from e


def require_int(v: Any, position: int, name: str) -> int:
    """Timestamps are whole time units; floats with a fractional part are rejected."""
    if v is None or isinstance(v, bool):
        raise InvalidInput(
            f"Invalid input given to {FUNCTION_NAME}: argument {position} ({name}) should be a long",
            position=position,
            name=name,
        )
    if isinstance(v, int):
        return v
    try:
        f = float(v)
    except (TypeError, ValueError) as e:
        raise InvalidInput(
            f"Invalid input given to {FUNCTION_NAME}: argument {position} ({name}) should be a long, got {v!r}",
            position=position,
            name=name,
        ) from e
    if not f.is_integer():
        raise InvalidInput(
            f"Invalid input given to {FUNCTION_NAME}: argument {position} ({name}) should be a long, got {v!r}",
            position=position,
            name=name,
        )
    return int(f)
