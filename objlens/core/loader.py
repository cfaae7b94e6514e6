"""
Objlens Format Dispatcher
==========================

Detects the container format of an object file and normalises it into an
:class:`~objlens.core.file.ObjectFile`.

Detection Pipeline:
    1. Try ELF (``pyelftools``).  On success, adapt and return; TI-COFF is
       never attempted.
    2. Try TI-COFF (:mod:`objlens.parsers.coff_parser`).
    3. If both fail, raise :class:`CompositeDetectionError` carrying both
       failures, ELF first.

The order is fixed.  Input that would satisfy both detectors is reported
as whichever succeeds first; nothing further disambiguates it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from elftools.common.exceptions import ELFError
from elftools.construct import ConstructError

from shared.config import ObjLensConfig, get_config
from shared.logger import ObjLensLogger

from objlens.core.errors import (
    CompositeDetectionError,
    DetectionFailure,
    InvalidFormatError,
    ObjectFileError,
)
from objlens.core.file import ObjectFile, Section
from objlens.core.models import FileType, SymbolInfo
from objlens.core.source import ByteSource, as_byte_source
from objlens.parsers.coff_parser import COFFFile, decode_coff
from objlens.parsers.elf_parser import ELFParser


# Failures that mean "not this format" (or unreadable) rather than a bug.
_ELF_FAILURES: tuple[type[BaseException], ...] = (
    ELFError,
    ConstructError,
    OSError,
    ValueError,
)
_COFF_FAILURES: tuple[type[BaseException], ...] = (
    ObjectFileError,
    OSError,
)


class ObjectFileLoader:
    """Detects and decodes ELF or TI-COFF object files.

    Usage::

        loader = ObjectFileLoader()
        with loader.open("app.out") as obj:
            for section in obj.sections:
                print(section.name, hex(section.address), section.size)
    """

    def __init__(
        self,
        config: ObjLensConfig | None = None,
        logger: ObjLensLogger | None = None,
    ) -> None:
        """Initialise the loader.

        Args:
            config: Objlens configuration.  The process-wide config is used
                    if not provided.
            logger: Logger instance.  One is built from *config* if not
                    provided.
        """
        self._config: ObjLensConfig = config or get_config()
        self._logger: ObjLensLogger = logger or ObjLensLogger.from_config(
            "loader", self._config
        )

    # ------------------------------------------------------------------ #
    #  Public interface
    # ------------------------------------------------------------------ #

    def load(self, source: Any) -> ObjectFile:
        """Detect the format of *source* and decode it.

        Args:
            source: A :class:`ByteSource`, bytes-like object or seekable
                    binary file object.  It is borrowed: the returned file
                    does not close it.

        Raises:
            CompositeDetectionError: Neither ELF nor TI-COFF matched.
        """
        byte_source = as_byte_source(source)
        failures: list[DetectionFailure] = []

        with self._logger.operation("detect"):
            try:
                obj = self._load_elf(byte_source)
            except _ELF_FAILURES as exc:
                self._logger.debug("Not ELF (%s); trying TI-COFF", exc)
                failures.append(DetectionFailure(FileType.ELF, exc))
            else:
                self._log_detected(obj)
                return obj

            try:
                obj = self._load_coff(byte_source)
            except _COFF_FAILURES as exc:
                if isinstance(exc, InvalidFormatError):
                    self._logger.debug("Not TI-COFF (%s)", exc)
                else:
                    self._logger.debug("TI-COFF decode failed: %s", exc)
                failures.append(DetectionFailure(FileType.COFF, exc))
            else:
                self._log_detected(obj)
                return obj

        raise CompositeDetectionError(failures)

    def open(self, path: str | Path) -> ObjectFile:
        """Open the file at *path* and decode it.

        The returned :class:`ObjectFile` owns the file handle and releases
        it on :meth:`ObjectFile.close`.  If decoding fails the handle is
        closed before the error propagates.
        """
        handle = open(path, "rb")
        try:
            with self._logger.timed(f"load {path}"):
                obj = self.load(handle)
        except BaseException:
            handle.close()
            raise
        obj._closer = handle
        return obj

    # ------------------------------------------------------------------ #
    #  Backends
    # ------------------------------------------------------------------ #

    def _load_elf(self, source: ByteSource) -> ObjectFile:
        parser = ELFParser(source)
        elf = parser.parse()
        return ObjectFile(
            FileType.ELF,
            parser.get_sections(),
            parser.get_symbols(),
            backend=elf,
        )

    def _load_coff(self, source: ByteSource) -> ObjectFile:
        coff = decode_coff(source, name_encoding=self._config.decoder.name_encoding)
        return coff_to_object_file(coff)

    def _log_detected(self, obj: ObjectFile) -> None:
        self._logger.info(
            "Detected %s file: %d sections, %d symbols",
            obj.file_type,
            len(obj.sections),
            len(obj.symbols),
        )


# ---------------------------------------------------------------------------
# Adaptation
# ---------------------------------------------------------------------------

def coff_to_object_file(coff: COFFFile) -> ObjectFile:
    """Wrap a decoded TI-COFF file in the format-agnostic view.

    A symbol's size comes from its auxiliary entry, or is zero when it has
    none.
    """
    sections = [
        Section(sec.name, sec.address, sec.size, sec.window)
        for sec in coff.sections
    ]
    symbols = [
        SymbolInfo(
            name=sym.name,
            value=sym.value,
            size=sym.auxiliary_entry.size if sym.auxiliary_entry is not None else 0,
        )
        for sym in coff.symbols
    ]
    return ObjectFile(FileType.COFF, sections, symbols, backend=coff)


# ---------------------------------------------------------------------------
# Module-level convenience
# ---------------------------------------------------------------------------

_default_loader: Optional[ObjectFileLoader] = None


def _get_default_loader() -> ObjectFileLoader:
    global _default_loader
    if _default_loader is None:
        _default_loader = ObjectFileLoader()
    return _default_loader


def new_file(source: Any) -> ObjectFile:
    """Detect and decode an object file from an open byte source."""
    return _get_default_loader().load(source)


def open_file(path: str | Path) -> ObjectFile:
    """Detect and decode the object file at *path*; see :meth:`ObjectFileLoader.open`."""
    return _get_default_loader().open(path)
