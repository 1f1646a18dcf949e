from __future__ import annotations

import glob
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from batwatch.core.errors import OutOfRange, ReadError, SourceIOError
from batwatch.core.paths import SYSFS_CAPACITY_GLOB
from batwatch.core.percentage import Percentage

AUTO = "auto"


class ReadingSource(Protocol):
    def read(self) -> Percentage: ...


@dataclass(frozen=True)
class FileSource:
    """Reads a percentage from a text file such as a sysfs ``capacity`` node."""

    path: str

    def read(self) -> Percentage:
        try:
            text = Path(self.path).read_text(encoding="utf-8")
        except OSError as exc:
            raise SourceIOError(self.path, exc.strerror or str(exc)) from exc
        except UnicodeDecodeError as exc:
            raise SourceIOError(self.path, str(exc)) from exc
        try:
            return Percentage.parse(text)
        except OutOfRange as exc:
            raise ReadError(f"{self.path}: {exc}") from exc


def find_sysfs_capacity(pattern: str = SYSFS_CAPACITY_GLOB) -> Optional[str]:
    for cap in sorted(glob.glob(pattern)):
        try:
            Percentage.parse(Path(cap).read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ReadError, OutOfRange):
            continue
        return cap
    return None


def resolve_source(identifier: str, pattern: str = SYSFS_CAPACITY_GLOB) -> FileSource:
    """
    Turn the configured source identifier into a source.

    ``auto`` picks the first readable sysfs capacity file; if none is found
    the glob pattern itself is used so every tick reports the read failure.
    """
    if identifier.strip().lower() == AUTO:
        return FileSource(find_sysfs_capacity(pattern) or pattern)
    return FileSource(identifier)
