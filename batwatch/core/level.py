from __future__ import annotations

from enum import Enum
from typing import Dict, Optional, Tuple

from batwatch.core.status import Status


class Level(Enum):
    """Roughly how much charge the battery holds."""

    UNKNOWN = "unknown"
    CRITICAL = "critical"
    LOW = "low"
    REGULAR = "regular"
    HIGH = "high"
    FULL = "full"

    @classmethod
    def default(cls) -> "Level":
        return cls.UNKNOWN


U = Level.UNKNOWN
C = Level.CRITICAL
L = Level.LOW
R = Level.REGULAR
H = Level.HIGH
F = Level.FULL

# Every ordered (previous, next) pair. Critical -> Low and Full -> High are
# the only suppressed edges into a reportable level.
TRANSITIONS: Dict[Tuple[Level, Level], Optional[Status]] = {
    (U, U): None,
    (U, C): Status.CRITICAL,
    (U, L): Status.LOW,
    (U, R): None,
    (U, H): Status.HIGH,
    (U, F): Status.FULL,

    (C, U): Status.UNKNOWN,
    (C, C): None,
    (C, L): None,
    (C, R): None,
    (C, H): Status.HIGH,
    (C, F): Status.FULL,

    (L, U): Status.UNKNOWN,
    (L, C): Status.CRITICAL,
    (L, L): None,
    (L, R): None,
    (L, H): Status.HIGH,
    (L, F): Status.FULL,

    (R, U): Status.UNKNOWN,
    (R, C): Status.CRITICAL,
    (R, L): Status.LOW,
    (R, R): None,
    (R, H): Status.HIGH,
    (R, F): Status.FULL,

    (H, U): Status.UNKNOWN,
    (H, C): Status.CRITICAL,
    (H, L): Status.LOW,
    (H, R): None,
    (H, H): None,
    (H, F): Status.FULL,

    (F, U): Status.UNKNOWN,
    (F, C): Status.CRITICAL,
    (F, L): Status.LOW,
    (F, R): None,
    (F, H): None,
    (F, F): None,
}


def transition(previous: Level, next_level: Level) -> Optional[Status]:
    """
    Judge the move from ``previous`` to ``next_level``.

    The battery is the source of truth about its charge, so every move is
    allowed; this only says whether the move deserves an alert.
    """
    return TRANSITIONS[(previous, next_level)]
