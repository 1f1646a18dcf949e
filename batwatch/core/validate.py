from __future__ import annotations

import math

from batwatch.core.errors import (
    MustBePositive,
    NotAnInteger,
    OrderingError,
    OutOfRange,
    Required,
)


def max_value(limit: int, actual: int) -> int:
    if actual < 0 or actual > limit:
        raise OutOfRange(limit, actual)
    return actual


def order(a: int, b: int) -> None:
    if not a < b:
        raise OrderingError(a, b)


def required(name: str, value: str | None) -> str:
    clean = (value or "").strip()
    if not clean:
        raise Required(name)
    return clean


def integer(name: str, value: object) -> int:
    # bool is an int subclass; a TOML `true` is not a mark
    if isinstance(value, bool) or not isinstance(value, int):
        raise NotAnInteger(name, value)
    return value


def greater_than_zero(name: str, value: float) -> float:
    # `not value > 0` also catches NaN
    if not value > 0 or math.isinf(value):
        raise MustBePositive(name, value)
    return value
