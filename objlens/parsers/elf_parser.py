"""
ELF Object File Adapter
========================

Adapts an ELF object file, decoded by ``pyelftools``, to the objlens
:class:`~objlens.core.file.Section` and
:class:`~objlens.core.models.SymbolInfo` shapes.

``pyelftools`` does the decoding; this module only maps its sections and
``.symtab`` entries.  It is fed a private :class:`WindowStream` over the
byte source, so the stream cursor ``pyelftools`` moves is never shared with
section readers.

References:
    - TIS Committee. (1995). Tool Interface Standard (TIS) Executable and
      Linkable Format (ELF) Specification, Version 1.2.
    - pyelftools. https://github.com/eliben/pyelftools
"""

from __future__ import annotations

from typing import Any, Optional

from elftools.elf.elffile import ELFFile
from elftools.elf.sections import SymbolTableSection

from objlens.core.file import Section
from objlens.core.models import SymbolInfo
from objlens.core.source import ByteSource, SourceWindow, as_byte_source


class ELFParser:
    """Map an ELF file onto the format-agnostic section/symbol view.

    Usage::

        parser = ELFParser(raw_bytes)
        elf = parser.parse()          # raises ELFError if not ELF
        sections = parser.get_sections()
        symbols = parser.get_symbols()
    """

    def __init__(self, source: Any) -> None:
        self._source: ByteSource = as_byte_source(source)
        self._elf: Optional[ELFFile] = None

    @property
    def elf(self) -> ELFFile:
        if self._elf is None:
            raise RuntimeError("parse() has not been called")
        return self._elf

    def parse(self) -> ELFFile:
        """Decode the ELF headers.

        Raises:
            elftools.common.exceptions.ELFError: The data is not valid ELF.
        """
        stream = SourceWindow(self._source, 0, self._source.size).open()
        self._elf = ELFFile(stream)
        return self._elf

    def get_sections(self) -> list[Section]:
        """Return every section header, in table order."""
        result: list[Section] = []
        for sec in self.elf.iter_sections():
            offset = sec["sh_offset"]
            size = sec["sh_size"]
            # NOBITS sections occupy no file space.
            length = 0 if sec["sh_type"] == "SHT_NOBITS" else size
            window = SourceWindow(self._source, offset, length)
            result.append(Section(sec.name, sec["sh_addr"], size, window))
        return result

    def get_symbols(self) -> list[SymbolInfo]:
        """Return the ``.symtab`` symbols, without the reserved null entry.

        Files without a static symbol table yield an empty list.
        """
        result: list[SymbolInfo] = []
        for sec in self.elf.iter_sections():
            if not isinstance(sec, SymbolTableSection):
                continue
            if sec["sh_type"] != "SHT_SYMTAB":
                continue
            for index, sym in enumerate(sec.iter_symbols()):
                if index == 0:
                    continue
                result.append(SymbolInfo(
                    name=sym.name,
                    value=sym["st_value"],
                    size=sym["st_size"],
                ))
        return result
