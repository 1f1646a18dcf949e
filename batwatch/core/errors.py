from __future__ import annotations


class BatwatchError(Exception):
    """Base class for everything batwatch raises on purpose."""


class ValidationError(BatwatchError, ValueError):
    """
    Invalid configuration value.

    Only raised while building configuration; a running watcher never
    produces one.
    """


class OutOfRange(ValidationError):
    def __init__(self, limit: int, actual: int) -> None:
        self.limit = limit
        self.actual = actual
        super().__init__(f"{actual} is out of range (0..{limit})")


class OrderingError(ValidationError):
    def __init__(self, a: int, b: int) -> None:
        self.a = a
        self.b = b
        super().__init__(f"{a} must be less than {b}")


class Required(ValidationError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"property '{name}' is required")


class MustBePositive(ValidationError):
    def __init__(self, name: str, value: float) -> None:
        self.name = name
        self.value = value
        super().__init__(
            f"property '{name}' must be a finite number greater than zero (got {value})"
        )


class NotAnInteger(ValidationError):
    def __init__(self, name: str, value: object) -> None:
        self.name = name
        self.value = value
        super().__init__(f"property '{name}' must be a whole number (got {value!r})")


class ReadError(BatwatchError):
    """The reading source could not produce a valid percentage."""


class SourceIOError(ReadError):
    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"I/O error reading {source}: {reason}")


class ParseError(ReadError):
    def __init__(self, text: str) -> None:
        self.text = text
        super().__init__(f"cannot parse {text.strip()!r} as a percentage")
