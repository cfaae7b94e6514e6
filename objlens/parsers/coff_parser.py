"""
TI-COFF Object File Parser
===========================

Manual struct-based parser for the TI Common Object File Format used by
Texas Instruments toolchains (MSP430, C2000, C5400/C5500, C6000, TMS470).

All parsing is performed using :mod:`struct` against explicit
little-endian format strings; no host structure layout is assumed.

The parser extracts:
    - File header (version, section count, timestamp, symbol table
      location, flags, target device id)
    - Optional header (code/data sizes, entry point)
    - Section table (name, addresses, size, raw data location, flags,
      memory page) with a bounded read window per section
    - Symbol table, with auxiliary entries folded into their owners
    - String table (for names longer than eight characters)

Layout of the file::

    +----------------------+  0
    | file header (22)     |
    | optional header (28) |  only when optional_header_size > 0
    | section headers (48) |  x num_sections
    | raw section data     |
    | ...                  |
    | symbol table (18)    |  x num_symbol_table_entries, at symbol_table_offset
    | string table         |  to end of file
    +----------------------+

TI-COFF has no magic number.  A file is recognised by its target device
id alone, so unrelated data that happens to carry a known id at offset 20
is accepted as TI-COFF.

References:
    - Texas Instruments. (2009). Common Object File Format. Application
      Report SPRAAO8.
    - Gircys, G. R. (1988). Understanding and Using COFF. O'Reilly.
"""

from __future__ import annotations

import enum
import struct
from pathlib import Path
from typing import Any, BinaryIO, Optional

from objlens.core.errors import (
    CorruptStringTableError,
    InvalidFormatError,
    TruncatedDataError,
)
from objlens.core.models import (
    TARGET_NAMES,
    AuxiliaryEntry,
    FileHeader,
    OptionalFileHeader,
    SectionHeader,
    Symbol,
)
from objlens.core.source import ByteSource, SourceWindow, WindowStream, as_byte_source


# ---------------------------------------------------------------------------
# Record layouts
# ---------------------------------------------------------------------------

# version, num_sections, timestamp, symtab offset, symtab entries,
# optional header size, flags, target id
_FILE_HEADER = struct.Struct("<HHIIIHHH")

# magic, version, code size, init data size, uninit data size,
# entry point, code start, init data start
_OPTIONAL_HEADER = struct.Struct("<HHIIIIII")

# physical addr, virtual addr, size, raw data offset, reloc offset,
# reserved, reloc count, reserved, flags, reserved, memory page
_SECTION_BODY = struct.Struct("<IIIIIIIIIHH")

# value, section number, reserved, storage class, aux entry count
_SYMBOL_BODY = struct.Struct("<IhHBB")

# size, reloc count, line number count, 10 reserved bytes
_AUX_ENTRY = struct.Struct("<IHH10x")

NAME_FIELD_SIZE: int = 8
FILE_HEADER_SIZE: int = _FILE_HEADER.size                        # 22
OPTIONAL_HEADER_SIZE: int = _OPTIONAL_HEADER.size                # 28
SECTION_HEADER_SIZE: int = NAME_FIELD_SIZE + _SECTION_BODY.size  # 48
SYMBOL_SLOT_SIZE: int = NAME_FIELD_SIZE + _SYMBOL_BODY.size      # 18


# ---------------------------------------------------------------------------
# Target identification
# ---------------------------------------------------------------------------

def is_valid_target_id(target_id: int) -> bool:
    """Check whether *target_id* is one of the known TI device families."""
    return target_id in TARGET_NAMES


# ---------------------------------------------------------------------------
# Name resolution
# ---------------------------------------------------------------------------

def resolve_name(
    string_table: bytes,
    raw_name: bytes,
    encoding: str = "latin-1",
) -> str:
    """Resolve an 8-byte name field to a string.

    If the first four bytes are zero, bytes 4..7 hold a little-endian
    offset into *string_table* and the name is the NUL-terminated string
    found there.  Otherwise the field is the name itself, padded on the
    right with NUL bytes.

    Args:
        string_table: The full string table.
        raw_name: The raw 8-byte name field.
        encoding: Codec for the name bytes.  The default, latin-1, keeps
            every byte; with narrower codecs such as ascii, undecodable
            bytes become U+FFFD.

    Raises:
        CorruptStringTableError: If the offset is past the end of the table
            or the string there is not terminated.
    """
    if len(raw_name) != NAME_FIELD_SIZE:
        raise ValueError(f"name field must be {NAME_FIELD_SIZE} bytes, got {len(raw_name)}")

    if raw_name[:4] != b"\x00\x00\x00\x00":
        return raw_name.rstrip(b"\x00").decode(encoding, errors="replace")

    offset = struct.unpack_from("<I", raw_name, 4)[0]
    if offset >= len(string_table):
        raise CorruptStringTableError(
            offset, f"past end of {len(string_table)}-byte string table"
        )
    end = string_table.find(b"\x00", offset)
    if end == -1:
        raise CorruptStringTableError(offset, "unterminated string")
    return string_table[offset:end].decode(encoding, errors="replace")


# ---------------------------------------------------------------------------
# Symbol table walker
# ---------------------------------------------------------------------------

class SlotState(enum.Enum):
    """What the next 18-byte symbol-table slot is expected to hold."""
    AWAITING_PRIMARY = "awaiting_primary"
    AWAITING_AUXILIARY = "awaiting_auxiliary"


class SymbolTableWalker:
    """Turn a sequence of 18-byte symbol-table slots into symbols.

    Every slot counts against the declared entry count.  A primary record
    whose auxiliary count is 1 switches the walker to
    :attr:`SlotState.AWAITING_AUXILIARY`; the following slot is decoded as
    that symbol's :class:`AuxiliaryEntry` and the symbol is emitted only
    then.  Auxiliary counts other than 0 or 1 are recorded on the symbol
    but consume no extra slot.

    Usage::

        walker = SymbolTableWalker(3, string_table, table_offset=0x400)
        while not walker.done:
            walker.feed(next_slot())
        symbols = walker.symbols
    """

    def __init__(
        self,
        num_entries: int,
        string_table: bytes,
        *,
        table_offset: int = 0,
        encoding: str = "latin-1",
    ) -> None:
        self._remaining: int = num_entries
        self._string_table: bytes = string_table
        self._offset: int = table_offset
        self._encoding: str = encoding
        self._state: SlotState = SlotState.AWAITING_PRIMARY
        self._pending: Optional[dict[str, Any]] = None
        self._symbols: list[Symbol] = []

    @property
    def state(self) -> SlotState:
        return self._state

    @property
    def remaining(self) -> int:
        """Slots still to be consumed."""
        return self._remaining

    @property
    def done(self) -> bool:
        return self._remaining == 0

    @property
    def symbols(self) -> list[Symbol]:
        """Symbols completed so far, in table order."""
        return list(self._symbols)

    def feed(self, slot: bytes) -> Optional[Symbol]:
        """Consume one slot.

        Returns:
            The completed :class:`Symbol`, or ``None`` when the slot was a
            primary record still waiting for its auxiliary entry.

        Raises:
            TruncatedDataError: If a primary record in the last declared
                slot announces an auxiliary entry.
        """
        if self.done:
            raise ValueError("symbol table already fully consumed")
        if len(slot) != SYMBOL_SLOT_SIZE:
            raise ValueError(f"slot must be {SYMBOL_SLOT_SIZE} bytes, got {len(slot)}")

        slot_offset = self._offset
        self._offset += SYMBOL_SLOT_SIZE
        self._remaining -= 1

        if self._state is SlotState.AWAITING_AUXILIARY:
            size, relocs, lines = _AUX_ENTRY.unpack(slot)
            fields = self._pending
            self._pending = None
            self._state = SlotState.AWAITING_PRIMARY
            fields["auxiliary_entry"] = AuxiliaryEntry(
                size=size,
                num_relocation_entries=relocs,
                num_line_number_entries=lines,
            )
            return self._emit(fields)

        value, section_number, _reserved, storage_class, num_aux = (
            _SYMBOL_BODY.unpack_from(slot, NAME_FIELD_SIZE)
        )
        fields = {
            "name": resolve_name(
                self._string_table, slot[:NAME_FIELD_SIZE], self._encoding
            ),
            "value": value,
            "section_number": section_number,
            "storage_class": storage_class,
            "num_aux_entries": num_aux,
        }

        if num_aux != 1:
            return self._emit(fields)

        if self.done:
            raise TruncatedDataError(
                f"auxiliary entry of symbol {fields['name']!r}",
                self._offset,
                SYMBOL_SLOT_SIZE,
                0,
            )
        self._pending = fields
        self._state = SlotState.AWAITING_AUXILIARY
        return None

    def _emit(self, fields: dict[str, Any]) -> Symbol:
        symbol = Symbol(**fields)
        self._symbols.append(symbol)
        return symbol


# ---------------------------------------------------------------------------
# Decoded file
# ---------------------------------------------------------------------------

class COFFSection:
    """A TI-COFF section: its header plus a read window over its data."""

    __slots__ = ("header", "_window")

    def __init__(self, header: SectionHeader, window: SourceWindow) -> None:
        self.header: SectionHeader = header
        self._window: SourceWindow = window

    @property
    def name(self) -> str:
        return self.header.name

    @property
    def address(self) -> int:
        return self.header.physical_address

    @property
    def size(self) -> int:
        return self.header.size

    @property
    def window(self) -> SourceWindow:
        return self._window

    def read_at(self, offset: int, size: int) -> bytes:
        return self._window.read_at(offset, size)

    def open(self) -> WindowStream:
        """Return a new independently positioned stream over the data."""
        return self._window.open()

    def data(self) -> bytes:
        return self._window.read_all()

    def __repr__(self) -> str:
        return (
            f"COFFSection({self.name!r}, address=0x{self.address:x}, "
            f"size={self.size})"
        )


class COFFFile:
    """A decoded TI-COFF object file.

    Attributes:
        file_header: The file header.
        optional_header: The optional header, or ``None`` when absent.
        sections: Sections in on-disk order.
        symbols: Logical symbols in table order.
    """

    def __init__(
        self,
        file_header: FileHeader,
        optional_header: Optional[OptionalFileHeader],
        sections: list[COFFSection],
        symbols: list[Symbol],
    ) -> None:
        self.file_header = file_header
        self.optional_header = optional_header
        self.sections = sections
        self.symbols = symbols
        self._closer: Optional[BinaryIO] = None

    def section_by_name(self, name: str) -> Optional[COFFSection]:
        for section in self.sections:
            if section.name == name:
                return section
        return None

    def close(self) -> None:
        """Close the underlying file if this object opened it."""
        closer, self._closer = self._closer, None
        if closer is not None:
            closer.close()

    def __enter__(self) -> COFFFile:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


# ---------------------------------------------------------------------------
# COFF Parser
# ---------------------------------------------------------------------------

class COFFParser:
    """Struct-based TI-COFF parser.

    The parser makes a single pass over an immutable byte source.  Any
    structural problem aborts the whole decode; nothing is skipped or
    repaired.

    Usage::

        coff = COFFParser(raw_bytes).parse()
        for section in coff.sections:
            print(section.name, section.size)
    """

    def __init__(self, source: Any, *, name_encoding: str = "latin-1") -> None:
        """Initialise the parser.

        Args:
            source: A :class:`ByteSource`, bytes-like object or seekable
                    binary file object.  It is borrowed, not closed.
            name_encoding: Codec for section and symbol names.
        """
        self._source: ByteSource = as_byte_source(source)
        self._encoding: str = name_encoding

    def parse(self) -> COFFFile:
        """Decode the whole file.

        Raises:
            InvalidFormatError: The target id is not a known TI device.
            TruncatedDataError: A fixed-size record runs past the end.
            CorruptStringTableError: A name points outside the string table.
        """
        file_header = self._parse_file_header()
        offset = FILE_HEADER_SIZE

        optional_header: Optional[OptionalFileHeader] = None
        if file_header.optional_header_size > 0:
            optional_header = self._parse_optional_header(offset)
            offset += OPTIONAL_HEADER_SIZE

        # Both section and symbol names may live in the string table.
        string_table = self._read_string_table(file_header)

        sections = self._parse_section_table(file_header, offset, string_table)
        symbols = self._parse_symbol_table(file_header, string_table)
        return COFFFile(file_header, optional_header, sections, symbols)

    # ------------------------------------------------------------------ #
    #  Headers
    # ------------------------------------------------------------------ #

    def _parse_file_header(self) -> FileHeader:
        raw = self._read_exact(0, FILE_HEADER_SIZE, "file header")
        (
            version, num_sections, timestamp, symtab_offset,
            symtab_entries, opt_size, flags, target_id,
        ) = _FILE_HEADER.unpack(raw)

        if not is_valid_target_id(target_id):
            raise InvalidFormatError(f"invalid TI-COFF target id 0x{target_id:04X}")

        return FileHeader(
            version=version,
            num_sections=num_sections,
            timestamp=timestamp,
            symbol_table_offset=symtab_offset,
            num_symbol_table_entries=symtab_entries,
            optional_header_size=opt_size,
            flags=flags,
            target_id=target_id,
        )

    def _parse_optional_header(self, offset: int) -> OptionalFileHeader:
        raw = self._read_exact(offset, OPTIONAL_HEADER_SIZE, "optional header")
        (
            magic, version, code_size, init_size, uninit_size,
            entry_point, code_start, data_start,
        ) = _OPTIONAL_HEADER.unpack(raw)
        return OptionalFileHeader(
            magic=magic,
            version=version,
            executable_code_size=code_size,
            initialized_data_size=init_size,
            uninitialized_data_size=uninit_size,
            entry_point=entry_point,
            executable_code_start=code_start,
            initialized_data_start=data_start,
        )

    def _read_string_table(self, file_header: FileHeader) -> bytes:
        start = (
            file_header.symbol_table_offset
            + file_header.num_symbol_table_entries * SYMBOL_SLOT_SIZE
        )
        return self._source.read_to_end(start)

    # ------------------------------------------------------------------ #
    #  Section table
    # ------------------------------------------------------------------ #

    def _parse_section_table(
        self,
        file_header: FileHeader,
        offset: int,
        string_table: bytes,
    ) -> list[COFFSection]:
        sections: list[COFFSection] = []
        for index in range(file_header.num_sections):
            raw = self._read_exact(
                offset, SECTION_HEADER_SIZE, f"section header #{index}"
            )
            offset += SECTION_HEADER_SIZE

            (
                phys_addr, virt_addr, size, raw_data_offset, reloc_offset,
                _line_ptr, num_relocs, _num_lines, flags, _reserved, mem_page,
            ) = _SECTION_BODY.unpack_from(raw, NAME_FIELD_SIZE)

            header = SectionHeader(
                name=resolve_name(string_table, raw[:NAME_FIELD_SIZE], self._encoding),
                physical_address=phys_addr,
                virtual_address=virt_addr,
                size=size,
                raw_data_offset=raw_data_offset,
                relocation_offset=reloc_offset,
                num_relocation_entries=num_relocs,
                flags=flags,
                memory_page=mem_page,
            )

            # A zero raw data pointer means the section has no file contents.
            window_length = size if raw_data_offset else 0
            window = SourceWindow(self._source, raw_data_offset, window_length)
            sections.append(COFFSection(header, window))
        return sections

    # ------------------------------------------------------------------ #
    #  Symbol table
    # ------------------------------------------------------------------ #

    def _parse_symbol_table(
        self,
        file_header: FileHeader,
        string_table: bytes,
    ) -> list[Symbol]:
        offset = file_header.symbol_table_offset
        walker = SymbolTableWalker(
            file_header.num_symbol_table_entries,
            string_table,
            table_offset=offset,
            encoding=self._encoding,
        )
        while not walker.done:
            walker.feed(self._read_exact(offset, SYMBOL_SLOT_SIZE, "symbol table entry"))
            offset += SYMBOL_SLOT_SIZE
        return walker.symbols

    # ------------------------------------------------------------------ #
    #  Utility methods
    # ------------------------------------------------------------------ #

    def _read_exact(self, offset: int, size: int, what: str) -> bytes:
        data = self._source.read_at(offset, size)
        if len(data) != size:
            raise TruncatedDataError(what, offset, size, len(data))
        return data


# ---------------------------------------------------------------------------
# Module-level convenience
# ---------------------------------------------------------------------------

def decode_coff(source: Any, *, name_encoding: str = "latin-1") -> COFFFile:
    """Decode a TI-COFF file from *source*; see :meth:`COFFParser.parse`."""
    return COFFParser(source, name_encoding=name_encoding).parse()


def open_coff(path: str | Path, *, name_encoding: str = "latin-1") -> COFFFile:
    """Open and decode the TI-COFF file at *path*.

    The returned file owns the handle; release it with
    :meth:`COFFFile.close` or a ``with`` block.
    """
    handle = open(path, "rb")
    try:
        coff = decode_coff(handle, name_encoding=name_encoding)
    except BaseException:
        handle.close()
        raise
    coff._closer = handle
    return coff
