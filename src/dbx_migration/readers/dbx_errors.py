"""Error types and diagnostic accumulation shared by the ``.dbx`` readers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator

logger = logging.getLogger(__name__)


class FormatError(ValueError):
    """Fatal structural problem that aborts decoding of a single file."""

    def __init__(self, message: str, address: int | None = None) -> None:
        super().__init__(message)
        self.address = address


class TreeStructureError(FormatError):
    """A tree or segment chain is cyclic or nested deeper than allowed."""


class Severity(str, Enum):
    WARNING = "warning"
    FIELD = "field"
    RESOURCE = "resource"


_LOG_LEVELS = {
    Severity.WARNING: logging.WARNING,
    Severity.FIELD: logging.INFO,
    Severity.RESOURCE: logging.WARNING,
}


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal condition noticed while decoding."""

    severity: Severity
    message: str
    address: int | None = None
    source: str | None = None

    def __str__(self) -> str:
        location = f" @0x{self.address:X}" if self.address is not None else ""
        origin = f"{self.source}: " if self.source else ""
        return f"[{self.severity.value}] {origin}{self.message}{location}"


class Diagnostics:
    """Ordered collection of :class:`Diagnostic` entries.

    Every entry is logged as it is recorded so nothing is lost when the caller
    never inspects the collection.
    """

    def __init__(self, source: str | None = None) -> None:
        self.source = source
        self._entries: list[Diagnostic] = []

    def record(self, severity: Severity, message: str, address: int | None = None) -> Diagnostic:
        entry = Diagnostic(severity=severity, message=message, address=address, source=self.source)
        self._entries.append(entry)
        logger.log(_LOG_LEVELS[severity], "%s", entry)
        return entry

    def warn(self, message: str, address: int | None = None) -> Diagnostic:
        return self.record(Severity.WARNING, message, address)

    def field(self, message: str, address: int | None = None) -> Diagnostic:
        return self.record(Severity.FIELD, message, address)

    def resource(self, message: str, address: int | None = None) -> Diagnostic:
        return self.record(Severity.RESOURCE, message, address)

    def extend(self, other: "Diagnostics") -> None:
        self._entries.extend(other)

    def count(self, severity: Severity | None = None) -> int:
        if severity is None:
            return len(self._entries)
        return sum(1 for entry in self._entries if entry.severity is severity)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)


__all__ = [
    "Diagnostic",
    "Diagnostics",
    "FormatError",
    "Severity",
    "TreeStructureError",
]
