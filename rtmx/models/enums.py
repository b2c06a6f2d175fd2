"""Status and priority enumerations for requirements."""

from __future__ import annotations

import enum

from rtmx.errors import ValidationFailedError


class Status(str, enum.Enum):
    """Completion status of a requirement."""

    COMPLETE = "COMPLETE"
    PARTIAL = "PARTIAL"
    MISSING = "MISSING"
    NOT_STARTED = "NOT_STARTED"

    @classmethod
    def parse(cls, value: str) -> Status:
        """Parse *value* case-insensitively.

        The empty string maps to ``MISSING``.  Unknown values raise
        :class:`ValidationFailedError`; ``MISSING`` is the documented
        fallback (see :meth:`parse_or_default`).
        """
        text = (value or "").strip().upper()
        if not text:
            return cls.MISSING
        try:
            return cls(text)
        except ValueError:
            raise ValidationFailedError(
                f"invalid status: {value!r}", field="status", value=value
            ) from None

    @classmethod
    def parse_or_default(cls, value: str) -> Status:
        try:
            return cls.parse(value)
        except ValidationFailedError:
            return cls.MISSING

    @property
    def weight(self) -> int:
        return _STATUS_WEIGHTS[self]

    @property
    def completion_fraction(self) -> float:
        return _STATUS_COMPLETION[self]

    @property
    def completion_percent(self) -> float:
        return self.completion_fraction * 100.0

    @property
    def is_complete(self) -> bool:
        return self is Status.COMPLETE

    def __str__(self) -> str:
        return self.value


_STATUS_WEIGHTS: dict[Status, int] = {
    Status.COMPLETE: 0,
    Status.PARTIAL: 1,
    Status.MISSING: 2,
    Status.NOT_STARTED: 3,
}

_STATUS_COMPLETION: dict[Status, float] = {
    Status.COMPLETE: 1.0,
    Status.PARTIAL: 0.5,
    Status.MISSING: 0.0,
    Status.NOT_STARTED: 0.0,
}


class Priority(str, enum.Enum):
    """Priority level of a requirement (lower weight = more urgent)."""

    P0 = "P0"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @classmethod
    def parse(cls, value: str) -> Priority:
        """Parse *value* case-insensitively; ``""`` means ``MEDIUM``."""
        text = (value or "").strip().upper()
        if not text:
            return cls.MEDIUM
        try:
            return cls(text)
        except ValueError:
            raise ValidationFailedError(
                f"invalid priority: {value!r}", field="priority", value=value
            ) from None

    @classmethod
    def parse_or_default(cls, value: str) -> Priority:
        try:
            return cls.parse(value)
        except ValidationFailedError:
            return cls.MEDIUM

    @property
    def weight(self) -> int:
        return _PRIORITY_WEIGHTS[self]

    @property
    def is_high_priority(self) -> bool:
        return self in (Priority.P0, Priority.HIGH)

    def __str__(self) -> str:
        return self.value


_PRIORITY_WEIGHTS: dict[Priority, int] = {
    Priority.P0: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}
