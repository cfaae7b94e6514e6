"""
Unified Object File View
=========================

Format-agnostic :class:`ObjectFile` and :class:`Section` types.  Whichever
decoder recognised the input, callers see the same shape: an ordered list
of sections that can be read at random offsets or as streams, and an
ordered list of :class:`~objlens.core.models.SymbolInfo` records.
"""

from __future__ import annotations

from typing import Any, Optional

from objlens.core.models import FileType, SymbolInfo
from objlens.core.source import SourceWindow, WindowStream


class Section:
    """A named, addressed byte range of an object file.

    Attributes:
        name: Section name.
        address: Load address (``sh_addr`` for ELF, physical address for
                 TI-COFF).
        size: Declared section size in bytes.  May exceed the readable data
              for sections without file contents (``.bss``).
    """

    __slots__ = ("name", "address", "size", "_window")

    def __init__(self, name: str, address: int, size: int, window: SourceWindow) -> None:
        self.name: str = name
        self.address: int = address
        self.size: int = size
        self._window: SourceWindow = window

    def read_at(self, offset: int, size: int) -> bytes:
        """Read up to *size* bytes at *offset* within the section."""
        return self._window.read_at(offset, size)

    def open(self) -> WindowStream:
        """Return a new stream over the section data.

        Each stream keeps its own position; opening a section twice gives
        two streams that never affect each other.
        """
        return self._window.open()

    def data(self) -> bytes:
        return self._window.read_all()

    def __repr__(self) -> str:
        return f"Section({self.name!r}, address=0x{self.address:x}, size={self.size})"


class ObjectFile:
    """An object file decoded by one of the supported backends.

    Attributes:
        file_type: Which decoder recognised the file.
        sections: Sections in on-disk order.
        symbols: Symbols in table order.
        backend: The backend's own decoded object (``ELFFile`` or
                 ``COFFFile``) for format-specific details.

    Usage::

        with open_file("firmware.out") as obj:
            print(obj.file_type)
            text = obj.section_by_name(".text")
    """

    def __init__(
        self,
        file_type: FileType,
        sections: list[Section],
        symbols: list[SymbolInfo],
        backend: Any = None,
    ) -> None:
        self.file_type: FileType = file_type
        self.sections: list[Section] = sections
        self.symbols: list[SymbolInfo] = symbols
        self.backend: Any = backend
        self._closer: Any = None

    def section_by_name(self, name: str) -> Optional[Section]:
        for section in self.sections:
            if section.name == name:
                return section
        return None

    def close(self) -> None:
        """Release the underlying file if this object owns one.

        Safe to call any number of times.
        """
        closer, self._closer = self._closer, None
        if closer is not None:
            closer.close()

    def __enter__(self) -> ObjectFile:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"ObjectFile({self.file_type}, sections={len(self.sections)}, "
            f"symbols={len(self.symbols)})"
        )
