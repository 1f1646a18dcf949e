from .level import Level, transition
from .percentage import Breakpoints, Percentage
from .status import Alert, Status
from .watcher import Watcher, WatcherState, advance

__all__ = [
    "Alert",
    "Breakpoints",
    "Level",
    "Percentage",
    "Status",
    "Watcher",
    "WatcherState",
    "advance",
    "transition",
]
