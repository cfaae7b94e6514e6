"""Objlens format parsers: TI-COFF decoder and ELF adapter."""

from objlens.parsers.coff_parser import COFFFile, COFFParser, decode_coff, open_coff
from objlens.parsers.elf_parser import ELFParser

__all__ = ["COFFFile", "COFFParser", "ELFParser", "decode_coff", "open_coff"]
