"""
Objlens -- Object File Section & Symbol Reader
================================================

Objlens reads compiled object files and exposes their sections and
symbols through one format-agnostic view, whatever the container:

    - ELF, decoded by ``pyelftools``
    - TI-COFF, as produced by Texas Instruments toolchains (MSP430, C2000,
      C5400/C5500, C6000, TMS470), decoded from raw bytes

Capabilities:
    - Automatic format detection (ELF first, then TI-COFF)
    - Section views readable at random offsets or as independent streams
    - Symbol name/value/size listing for both formats
    - Full TI-COFF headers, section flags and storage classes through
      :mod:`objlens.parsers.coff_parser`

Usage::

    from objlens import open_file

    with open_file("firmware.out") as obj:
        print(obj.file_type)
        for sym in obj.symbols:
            print(sym.name, hex(sym.value), sym.size)

References:
    - Texas Instruments. (2009). Common Object File Format (SPRAAO8).
    - TIS Committee. (1995). ELF Specification.
"""

from objlens.core.errors import (
    CompositeDetectionError,
    CorruptStringTableError,
    DetectionFailure,
    InvalidFormatError,
    ObjectFileError,
    TruncatedDataError,
)
from objlens.core.file import ObjectFile, Section
from objlens.core.loader import ObjectFileLoader, new_file, open_file
from objlens.core.models import FileType, SymbolInfo

__version__ = "1.0.0"
__all__ = [
    "CompositeDetectionError",
    "CorruptStringTableError",
    "DetectionFailure",
    "FileType",
    "InvalidFormatError",
    "ObjectFile",
    "ObjectFileError",
    "ObjectFileLoader",
    "Section",
    "SymbolInfo",
    "TruncatedDataError",
    "new_file",
    "open_file",
]
