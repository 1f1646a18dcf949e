from __future__ import annotations

import functools
import re
from dataclasses import dataclass
from typing import Any, Dict, Union

from batwatch.core import validate
from batwatch.core.errors import ParseError
from batwatch.core.level import Level

_DIGITS_RE = re.compile(r"\+?[0-9]+")


def _plain(other: object) -> Any:
    if isinstance(other, Percentage):
        return other.value
    if isinstance(other, int) and not isinstance(other, bool):
        return other
    return NotImplemented


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class Percentage:
    """
    The amount of charge in the battery, 0..100.

    Compares and hashes like its integer value, so ``Percentage(5) == 5``
    and ``Percentage(5) < 6`` hold.
    """

    value: int

    MAX = 100

    def __post_init__(self) -> None:
        validate.integer("percentage", self.value)
        validate.max_value(self.MAX, self.value)

    @classmethod
    def new(cls, value: int) -> "Percentage":
        return cls(value)

    @classmethod
    def parse(cls, text: str) -> "Percentage":
        clean = text.strip()
        if not _DIGITS_RE.fullmatch(clean):
            raise ParseError(text)
        return cls.new(int(clean))

    def __eq__(self, other: object) -> bool:
        value = _plain(other)
        if value is NotImplemented:
            return NotImplemented
        return self.value == value

    def __lt__(self, other: object) -> bool:
        value = _plain(other)
        if value is NotImplemented:
            return NotImplemented
        return self.value < value

    def __hash__(self) -> int:
        return hash(self.value)

    def __int__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return f"{self.value}%"


@dataclass(frozen=True)
class Breakpoints:
    """
    Four strictly increasing marks splitting 0..100 into five bands:

        value <= critical          -> CRITICAL
        critical < value <= low    -> LOW
        low < value < high         -> REGULAR
        high <= value < full       -> HIGH
        value >= full              -> FULL
    """

    critical: Percentage
    low: Percentage
    high: Percentage
    full: Percentage

    def __post_init__(self) -> None:
        validate.order(self.critical.value, self.low.value)
        validate.order(self.low.value, self.high.value)
        validate.order(self.high.value, self.full.value)

    @classmethod
    def new(cls, critical: int, low: int, high: int, full: int) -> "Breakpoints":
        return cls(
            critical=Percentage.new(validate.integer("breakpoints.critical", critical)),
            low=Percentage.new(validate.integer("breakpoints.low", low)),
            high=Percentage.new(validate.integer("breakpoints.high", high)),
            full=Percentage.new(validate.integer("breakpoints.full", full)),
        )

    def classify(self, percentage: Union[Percentage, int]) -> Level:
        if not isinstance(percentage, Percentage):
            percentage = Percentage.new(percentage)
        if percentage <= self.critical:
            return Level.CRITICAL
        if percentage <= self.low:
            return Level.LOW
        if percentage < self.high:
            return Level.REGULAR
        if percentage < self.full:
            return Level.HIGH
        return Level.FULL

    def as_dict(self) -> Dict[str, Any]:
        return {
            "critical": self.critical.value,
            "low": self.low.value,
            "high": self.high.value,
            "full": self.full.value,
        }
