"""
Objlens Error Taxonomy
=======================

Exception hierarchy shared by the TI-COFF decoder and the format
dispatcher.

Only :class:`InvalidFormatError` is an *expected* failure: it is how the
COFF decoder says "these bytes are not TI-COFF" and the dispatcher treats
it as a detection signal.  Every other error means the input claimed to
be a given format and then turned out to be structurally broken.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from objlens.core.models import FileType


class ObjectFileError(Exception):
    """Base class for every decoding failure raised by objlens."""

    pass


class InvalidFormatError(ObjectFileError):
    """The input does not carry the signature of the requested format."""

    pass


class TruncatedDataError(ObjectFileError):
    """Fewer bytes were available than a fixed-size record requires.

    Attributes:
        offset:   File offset of the record.
        expected: Number of bytes the record needs.
        actual:   Number of bytes actually available.
    """

    def __init__(self, what: str, offset: int, expected: int, actual: int) -> None:
        super().__init__(
            f"truncated {what} at offset 0x{offset:x}: "
            f"need {expected} bytes, got {actual}"
        )
        self.offset = offset
        self.expected = expected
        self.actual = actual


class CorruptStringTableError(ObjectFileError):
    """A name referenced the string table out of range or unterminated."""

    def __init__(self, offset: int, reason: str) -> None:
        super().__init__(f"string table offset {offset}: {reason}")
        self.offset = offset


@dataclass(frozen=True, slots=True)
class DetectionFailure:
    """One failed detection attempt.

    Attributes:
        file_type: The format that was tried.
        error: The exception that attempt raised.
    """
    file_type: FileType
    error: BaseException

    def __str__(self) -> str:
        return f"{self.file_type}: {self.error}"


class CompositeDetectionError(ObjectFileError):
    """No supported format matched the input.

    *failures* keeps every attempt in the order it was made (ELF, then
    TI-COFF) so callers can tell a plain format mismatch from an I/O
    failure on either path.
    """

    def __init__(self, failures: list[DetectionFailure]) -> None:
        self.failures: tuple[DetectionFailure, ...] = tuple(failures)
        joined = "; ".join(str(f) for f in self.failures)
        super().__init__(f"unsupported object file type ({joined})")

    @property
    def errors(self) -> list[BaseException]:
        """Underlying exceptions, in attempt order."""
        return [f.error for f in self.failures]
