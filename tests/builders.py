"""
In-memory object file images for the test suites.

``CoffImage`` lays out a TI-COFF file (file header, optional header,
section headers, raw data, symbol table, string table) exactly as the
decoder expects it.  ``build_elf`` produces a minimal little-endian ELF32
relocatable object that pyelftools can open.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Optional

FILE_HEADER = struct.Struct("<HHIIIHHH")
OPTIONAL_HEADER = struct.Struct("<HHIIIIII")
SECTION_BODY = struct.Struct("<IIIIIIIIIHH")
SYMBOL_BODY = struct.Struct("<IhHBB")
AUX_ENTRY = struct.Struct("<IHH10x")

MSP430 = 0x00A0
STYP_TEXT = 0x20
STYP_DATA = 0x40
STYP_BSS = 0x80
C_EXT = 2
C_STAT = 3


@dataclass
class _Section:
    name: bytes
    data: bytes
    address: int
    size: Optional[int]
    flags: int
    page: int


@dataclass
class _Symbol:
    name: bytes
    value: int
    section_number: int
    storage_class: int
    aux: Optional[tuple[int, int, int]]
    num_aux: Optional[int]


@dataclass
class CoffImage:
    """Builder for TI-COFF byte images."""

    target_id: int = MSP430
    version: int = 0x00C2
    timestamp: int = 0x5F000000
    flags: int = 0x0100
    with_optional_header: bool = False
    entry_point: int = 0
    sections: list[_Section] = field(default_factory=list)
    symbols: list[_Symbol] = field(default_factory=list)

    def add_section(
        self,
        name: str,
        data: bytes = b"",
        *,
        address: int = 0,
        size: Optional[int] = None,
        flags: int = STYP_TEXT,
        page: int = 0,
    ) -> CoffImage:
        self.sections.append(
            _Section(name.encode("ascii"), data, address, size, flags, page)
        )
        return self

    def add_symbol(
        self,
        name: str,
        value: int = 0,
        *,
        section_number: int = 1,
        storage_class: int = C_EXT,
        aux: Optional[tuple[int, int, int]] = None,
        num_aux: Optional[int] = None,
    ) -> CoffImage:
        """Append a symbol; *aux* is ``(size, relocs, lines)``.

        *num_aux* overrides the aux count written in the record without
        changing which slots are emitted.
        """
        self.symbols.append(
            _Symbol(name.encode("ascii"), value, section_number,
                    storage_class, aux, num_aux)
        )
        return self

    def build(self) -> bytes:
        strtab = bytearray(4)  # leading length word

        def name_field(name: bytes) -> bytes:
            if len(name) <= 8:
                return name.ljust(8, b"\x00")
            offset = len(strtab)
            strtab.extend(name + b"\x00")
            return struct.pack("<II", 0, offset)

        header_size = FILE_HEADER.size
        if self.with_optional_header:
            header_size += OPTIONAL_HEADER.size
        data_start = header_size + 48 * len(self.sections)

        section_headers = bytearray()
        raw = bytearray()
        for sec in self.sections:
            raw_ptr = data_start + len(raw) if sec.data else 0
            size = sec.size if sec.size is not None else len(sec.data)
            section_headers += name_field(sec.name)
            section_headers += SECTION_BODY.pack(
                sec.address, sec.address, size, raw_ptr,
                0, 0, 0, 0, sec.flags, 0, sec.page,
            )
            raw += sec.data

        symtab_offset = data_start + len(raw)
        slots = bytearray()
        count = 0
        for sym in self.symbols:
            num_aux = sym.num_aux
            if num_aux is None:
                num_aux = 1 if sym.aux is not None else 0
            slots += name_field(sym.name)
            slots += SYMBOL_BODY.pack(
                sym.value, sym.section_number, 0, sym.storage_class, num_aux
            )
            count += 1
            if sym.aux is not None:
                slots += AUX_ENTRY.pack(*sym.aux)
                count += 1

        struct.pack_into("<I", strtab, 0, len(strtab))

        header = FILE_HEADER.pack(
            self.version,
            len(self.sections),
            self.timestamp,
            symtab_offset,
            count,
            OPTIONAL_HEADER.size if self.with_optional_header else 0,
            self.flags,
            self.target_id,
        )
        optional = b""
        if self.with_optional_header:
            optional = OPTIONAL_HEADER.pack(
                0x0108, 0x0001, len(raw), 0, 0, self.entry_point, 0, 0
            )

        return header + optional + bytes(section_headers) + bytes(raw) + bytes(slots) + bytes(strtab)


def sample_coff() -> CoffImage:
    """A small MSP430 image with inline and string-table names."""
    image = CoffImage(with_optional_header=True, entry_point=0xC000)
    image.add_section(".text", bytes(range(32)), address=0xC000, flags=STYP_TEXT)
    image.add_section(".const_strings", b"hello\x00world\x00", address=0xD000, flags=STYP_DATA)
    image.add_section(".bss", address=0x0200, size=0x40, flags=STYP_BSS, page=1)
    image.add_symbol("_main", 0xC000, aux=(32, 0, 4))
    image.add_symbol("_c_int00_noargs", 0xC010, section_number=1)
    image.add_symbol("buffer", 0x0200, section_number=3, storage_class=C_STAT, aux=(64, 0, 0))
    return image


# ---------------------------------------------------------------------------
# ELF
# ---------------------------------------------------------------------------

_ELF_HEADER = struct.Struct("<HHIIIIIHHHHHH")
_ELF_SECTION = struct.Struct("<IIIIIIIIII")
_ELF_SYMBOL = struct.Struct("<IIIBBH")

SHT_PROGBITS = 1
SHT_SYMTAB = 2
SHT_STRTAB = 3
SHT_NOBITS = 8
SHT_DYNSYM = 11


def _align(buf: bytearray, boundary: int = 4) -> None:
    while len(buf) % boundary:
        buf.append(0)


def build_elf(
    text: bytes = b"\x01\x02\x03\x04\x05\x06\x07\x08",
    text_address: int = 0x8000,
    symbols: tuple[tuple[str, int, int], ...] = (("main", 0x8000, 8), ("counter", 0x20000000, 4)),
    symtab_type: int = SHT_SYMTAB,
) -> bytes:
    """Build an ELF32 LE relocatable with .text, .bss, .symtab, .strtab, .shstrtab.

    *symtab_type* is written as the ``sh_type`` of ``.symtab``.
    """
    shstrtab = bytearray(b"\x00")
    name_offsets: dict[str, int] = {}
    for name in (".text", ".bss", ".symtab", ".strtab", ".shstrtab"):
        name_offsets[name] = len(shstrtab)
        shstrtab += name.encode("ascii") + b"\x00"

    strtab = bytearray(b"\x00")
    symtab = bytearray(_ELF_SYMBOL.size)  # reserved null symbol
    for name, value, size in symbols:
        offset = len(strtab)
        strtab += name.encode("ascii") + b"\x00"
        # STB_GLOBAL | STT_FUNC, defined in .text
        symtab += _ELF_SYMBOL.pack(offset, value, size, 0x12, 0, 1)

    body = bytearray(52)
    text_offset = len(body)
    body += text
    _align(body)
    symtab_offset = len(body)
    body += symtab
    strtab_offset = len(body)
    body += strtab
    shstrtab_offset = len(body)
    body += shstrtab
    _align(body)
    shoff = len(body)

    headers = [
        (0, 0, 0, 0, 0, 0, 0, 0, 0, 0),
        (name_offsets[".text"], SHT_PROGBITS, 0x6, text_address, text_offset, len(text), 0, 0, 4, 0),
        (name_offsets[".bss"], SHT_NOBITS, 0x3, 0x20000000, shstrtab_offset, 0x100, 0, 0, 4, 0),
        (name_offsets[".symtab"], symtab_type, 0, 0, symtab_offset, len(symtab), 4, 1, 4, _ELF_SYMBOL.size),
        (name_offsets[".strtab"], SHT_STRTAB, 0, 0, strtab_offset, len(strtab), 0, 0, 1, 0),
        (name_offsets[".shstrtab"], SHT_STRTAB, 0, 0, shstrtab_offset, len(shstrtab), 0, 0, 1, 0),
    ]
    for fields in headers:
        body += _ELF_SECTION.pack(*fields)

    ident = b"\x7fELF" + bytes([1, 1, 1, 0]) + bytes(8)
    header = ident + _ELF_HEADER.pack(
        1,          # ET_REL
        40,         # EM_ARM
        1,          # EV_CURRENT
        0,          # entry
        0,          # phoff
        shoff,
        0x05000000,
        52,         # ehsize
        32,         # phentsize
        0,          # phnum
        _ELF_SECTION.size,
        len(headers),
        5,          # shstrndx
    )
    body[:52] = header
    return bytes(body)
