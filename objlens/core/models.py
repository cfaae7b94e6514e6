"""
Objlens Data Models
====================

Pydantic models for the decoded object-file metadata.

Two families live here:

* The TI-COFF record models (:class:`FileHeader`, :class:`OptionalFileHeader`,
  :class:`SectionHeader`, :class:`Symbol`, :class:`AuxiliaryEntry`) that
  mirror the on-disk layout one field per record member.
* The format-agnostic :class:`SymbolInfo` and the :class:`FileType` tag
  used by the unification layer.

All models are frozen: once a file is decoded its metadata never changes,
so decoded files can be shared between threads without locking.

References:
    - Texas Instruments. (2009). Common Object File Format (SPRAAO8).
    - TIS Committee. (1995). Executable and Linkable Format (ELF) Specification.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class FileType(str, enum.Enum):
    """Container format detected by the dispatcher."""
    UNKNOWN = "unknown"
    ELF = "ELF"
    COFF = "TI-COFF"

    def __str__(self) -> str:
        return self.value


# ---------------------------------------------------------------------------
# TI-COFF enumerations
# ---------------------------------------------------------------------------

# Target device identifiers; the only self-identification TI-COFF has.
TARGET_NAMES: dict[int, str] = {
    0x0097: "TMS470",
    0x0098: "TMS320C5400",
    0x0099: "TMS320C6000",
    0x009C: "TMS320C5500",
    0x009D: "TMS320C2800",
    0x00A0: "MSP430",
    0x00A1: "TMS320C5500+",
}

# File header flags
F_RELFLG: int = 0x0001
F_EXEC: int = 0x0002
F_LNNO: int = 0x0004
F_LSYMS: int = 0x0008
F_LITTLE: int = 0x0100
F_BIG: int = 0x0200
F_SYMMERGE: int = 0x1000

_FILE_FLAG_NAMES: list[tuple[int, str]] = [
    (F_RELFLG, "F_RELFLG"),
    (F_EXEC, "F_EXEC"),
    (F_LNNO, "F_LNNO"),
    (F_LSYMS, "F_LSYMS"),
    (F_LITTLE, "F_LITTLE"),
    (F_BIG, "F_BIG"),
    (F_SYMMERGE, "F_SYMMERGE"),
]

OPTIONAL_HEADER_MAGIC: int = 0x0108

# Section header flags
STYP_REG: int = 0x00000000
STYP_DSECT: int = 0x00000001
STYP_NOLOAD: int = 0x00000002
STYP_GROUP: int = 0x00000004
STYP_PAD: int = 0x00000008
STYP_COPY: int = 0x00000010
STYP_TEXT: int = 0x00000020
STYP_DATA: int = 0x00000040
STYP_BSS: int = 0x00000080
STYP_BLOCK: int = 0x00001000
STYP_PASS: int = 0x00002000
STYP_CLINK: int = 0x00004000
STYP_VECTOR: int = 0x00008000
STYP_PADDED: int = 0x00010000

_SECTION_FLAG_NAMES: list[tuple[int, str]] = [
    (STYP_DSECT, "STYP_DSECT"),
    (STYP_NOLOAD, "STYP_NOLOAD"),
    (STYP_GROUP, "STYP_GROUP"),
    (STYP_PAD, "STYP_PAD"),
    (STYP_COPY, "STYP_COPY"),
    (STYP_TEXT, "STYP_TEXT"),
    (STYP_DATA, "STYP_DATA"),
    (STYP_BSS, "STYP_BSS"),
    (STYP_BLOCK, "STYP_BLOCK"),
    (STYP_PASS, "STYP_PASS"),
    (STYP_CLINK, "STYP_CLINK"),
    (STYP_VECTOR, "STYP_VECTOR"),
    (STYP_PADDED, "STYP_PADDED"),
]

# Symbol storage classes
C_NULL: int = 0
C_AUTO: int = 1
C_EXT: int = 2
C_STAT: int = 3
C_REG: int = 4
C_EXTREF: int = 5
C_LABEL: int = 6
C_ULABEL: int = 7
C_MOS: int = 8
C_ARG: int = 9
C_STRTAG: int = 10
C_MOU: int = 11
C_UNTAG: int = 12
C_TPDEF: int = 13
C_USTATIC: int = 14
C_ENTAG: int = 15
C_MOE: int = 16
C_REGPARM: int = 17
C_FIELD: int = 18
C_UEXT: int = 19
C_STATLAB: int = 20
C_EXTLAB: int = 21
C_VARARG: int = 27
C_BLOCK: int = 100
C_FCN: int = 101
C_EOS: int = 102
C_FILE: int = 103
C_LINE: int = 104

_STORAGE_CLASS_NAMES: dict[int, str] = {
    C_NULL: "C_NULL",
    C_AUTO: "C_AUTO",
    C_EXT: "C_EXT",
    C_STAT: "C_STAT",
    C_REG: "C_REG",
    C_EXTREF: "C_EXTREF",
    C_LABEL: "C_LABEL",
    C_ULABEL: "C_ULABEL",
    C_MOS: "C_MOS",
    C_ARG: "C_ARG",
    C_STRTAG: "C_STRTAG",
    C_MOU: "C_MOU",
    C_UNTAG: "C_UNTAG",
    C_TPDEF: "C_TPDEF",
    C_USTATIC: "C_USTATIC",
    C_ENTAG: "C_ENTAG",
    C_MOE: "C_MOE",
    C_REGPARM: "C_REGPARM",
    C_FIELD: "C_FIELD",
    C_UEXT: "C_UEXT",
    C_STATLAB: "C_STATLAB",
    C_EXTLAB: "C_EXTLAB",
    C_VARARG: "C_VARARG",
    C_BLOCK: "C_BLOCK",
    C_FCN: "C_FCN",
    C_EOS: "C_EOS",
    C_FILE: "C_FILE",
    C_LINE: "C_LINE",
}


def _flag_names(value: int, table: list[tuple[int, str]]) -> list[str]:
    return [name for bit, name in table if value & bit]


def target_name(target_id: int) -> str:
    """Return ``"<family> (0xNNNN)"`` for a target id, ``Unknown`` if unlisted."""
    family = TARGET_NAMES.get(target_id, "Unknown")
    return f"{family} (0x{target_id:04X})"


def storage_class_name(storage_class: int) -> str:
    """Return ``"<C_NAME> (n)"`` for a storage class, ``Unknown`` if unlisted."""
    name = _STORAGE_CLASS_NAMES.get(storage_class, "Unknown")
    return f"{name} ({storage_class})"


# ---------------------------------------------------------------------------
# TI-COFF records
# ---------------------------------------------------------------------------

class FileHeader(BaseModel):
    """The 22-byte TI-COFF file header at offset zero.

    Attributes:
        version: Format version id.
        num_sections: Number of section headers.
        timestamp: Seconds since the epoch at link time.
        symbol_table_offset: File offset of the first symbol-table slot.
        num_symbol_table_entries: Slot count, auxiliary slots included.
        optional_header_size: Zero when no optional header follows.
        flags: ``F_*`` bitmask.
        target_id: Target device identifier.
    """
    model_config = ConfigDict(frozen=True)

    version: int = 0
    num_sections: int = 0
    timestamp: int = 0
    symbol_table_offset: int = 0
    num_symbol_table_entries: int = 0
    optional_header_size: int = 0
    flags: int = 0
    target_id: int = 0

    @property
    def target_name(self) -> str:
        return target_name(self.target_id)

    @property
    def flag_names(self) -> list[str]:
        return _flag_names(self.flags, _FILE_FLAG_NAMES)


class OptionalFileHeader(BaseModel):
    """The 28-byte optional header describing code/data sizes."""
    model_config = ConfigDict(frozen=True)

    magic: int = 0
    version: int = 0
    executable_code_size: int = 0
    initialized_data_size: int = 0
    uninitialized_data_size: int = 0
    entry_point: int = 0
    executable_code_start: int = 0
    initialized_data_start: int = 0

    @property
    def has_standard_magic(self) -> bool:
        return self.magic == OPTIONAL_HEADER_MAGIC


class SectionHeader(BaseModel):
    """A decoded section header with its name already resolved.

    Attributes:
        name: Inline or string-table name.
        physical_address: Load address.
        virtual_address: Run address.
        size: Section size in bytes.
        raw_data_offset: File offset of the section contents.
        relocation_offset: File offset of the relocation entries.
        num_relocation_entries: Relocation entry count.
        flags: ``STYP_*`` bitmask.
        memory_page: Memory page number.
    """
    model_config = ConfigDict(frozen=True)

    name: str = ""
    physical_address: int = 0
    virtual_address: int = 0
    size: int = 0
    raw_data_offset: int = 0
    relocation_offset: int = 0
    num_relocation_entries: int = 0
    flags: int = STYP_REG
    memory_page: int = 0

    @property
    def flag_names(self) -> list[str]:
        return _flag_names(self.flags, _SECTION_FLAG_NAMES)


class AuxiliaryEntry(BaseModel):
    """The 18-byte auxiliary record owned by the symbol before it."""
    model_config = ConfigDict(frozen=True)

    size: int = 0
    num_relocation_entries: int = 0
    num_line_number_entries: int = 0


class Symbol(BaseModel):
    """One logical TI-COFF symbol.

    ``auxiliary_entry`` is set only when ``num_aux_entries == 1``; the
    auxiliary slot it came from is never listed as a symbol of its own.
    """
    model_config = ConfigDict(frozen=True)

    name: str = ""
    value: int = 0
    section_number: int = 0
    storage_class: int = C_NULL
    num_aux_entries: int = 0
    auxiliary_entry: Optional[AuxiliaryEntry] = None

    @property
    def storage_class_name(self) -> str:
        return storage_class_name(self.storage_class)


# ---------------------------------------------------------------------------
# Format-agnostic view
# ---------------------------------------------------------------------------

class SymbolInfo(BaseModel):
    """A symbol as seen through the unification layer.

    Attributes:
        name: Symbol name.
        value: Symbol value (usually an address).
        size: Size of the object the symbol refers to; zero when unknown.
    """
    model_config = ConfigDict(frozen=True)

    name: str = ""
    value: int = 0
    size: int = Field(default=0, ge=0)
