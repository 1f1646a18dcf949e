from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

DEFAULT_TIMEOUT_MS = 5000


class Status(Enum):
    """Alert-worthy outcome of a level transition. There is no REGULAR."""

    UNKNOWN = "unknown"
    CRITICAL = "critical"
    LOW = "low"
    HIGH = "high"
    FULL = "full"

    @property
    def summary(self) -> str:
        return _SUMMARIES[self]


class Urgency(Enum):
    NORMAL = "normal"
    CRITICAL = "critical"


_SUMMARIES = {
    Status.UNKNOWN: "Battery is Unknown",
    Status.CRITICAL: "Battery is Critical",
    Status.LOW: "Battery is almost Empty",
    Status.HIGH: "Battery is almost Full",
    Status.FULL: "Battery is Full",
}

# (urgency, sticky)
_SHAPES = {
    Status.UNKNOWN: (Urgency.CRITICAL, True),
    Status.CRITICAL: (Urgency.CRITICAL, True),
    Status.LOW: (Urgency.CRITICAL, False),
    Status.HIGH: (Urgency.NORMAL, False),
    Status.FULL: (Urgency.CRITICAL, False),
}


@dataclass(frozen=True)
class Alert:
    status: Status
    summary: str
    urgency: Urgency
    timeout_ms: int
    detail: Optional[str] = None

    @property
    def sticky(self) -> bool:
        return self.timeout_ms == 0

    @classmethod
    def from_status(
        cls,
        status: Status,
        detail: Optional[str] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> "Alert":
        """
        Shape a status into a deliverable alert.

        Unknown and Critical are sticky (timeout 0, manual dismissal), the
        rest auto-dismiss after ``timeout_ms``. Only Unknown keeps a detail.
        """
        urgency, sticky = _SHAPES[status]
        return cls(
            status=status,
            summary=status.summary,
            urgency=urgency,
            timeout_ms=0 if sticky else int(timeout_ms),
            detail=detail if status is Status.UNKNOWN else None,
        )

    @staticmethod
    def to_dict(alert: "Alert") -> Dict[str, Any]:
        return {
            "status": alert.status.value,
            "summary": alert.summary,
            "urgency": alert.urgency.value,
            "timeout_ms": alert.timeout_ms,
            "sticky": alert.sticky,
            "detail": alert.detail,
        }
