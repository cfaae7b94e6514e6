"""
Random-Access Byte Sources
===========================

Read-only, randomly addressable views over object-file bytes.

Every decoder in objlens reads through :meth:`ByteSource.read_at`, a
positional read that never moves a shared cursor.  Section contents are
exposed as :class:`SourceWindow` objects bounded to the section's byte
range, and each call to :meth:`SourceWindow.open` hands out a fresh
:class:`WindowStream` with a private position.  Two sections -- or two
streams over the same section -- can therefore be read from different
threads without observing each other.

Supported backings:
    - ``bytes`` / ``bytearray`` / ``memoryview``   -> :class:`BufferSource`
    - binary file objects with a real descriptor   -> :class:`FileSource`
    - any other seekable binary stream             -> :class:`StreamSource`
"""

from __future__ import annotations

import io
import os
import threading
from typing import Any, BinaryIO, Optional


class ByteSource:
    """Abstract immutable byte source read through byte-range requests."""

    @property
    def size(self) -> int:
        """Total number of bytes available."""
        raise NotImplementedError

    def read_at(self, offset: int, size: int) -> bytes:
        """Read up to *size* bytes starting at *offset*.

        Returns fewer bytes (possibly none) when the range runs past the
        end of the data.  Never moves any shared position.
        """
        raise NotImplementedError

    def read_to_end(self, offset: int) -> bytes:
        """Read everything from *offset* to the end of the data."""
        return self.read_at(offset, max(self.size - offset, 0))

    @staticmethod
    def _check_range(offset: int, size: int) -> None:
        if offset < 0:
            raise ValueError(f"negative offset: {offset}")
        if size < 0:
            raise ValueError(f"negative size: {size}")


class BufferSource(ByteSource):
    """Byte source over an in-memory buffer."""

    __slots__ = ("_view",)

    def __init__(self, data: bytes | bytearray | memoryview) -> None:
        self._view = memoryview(data).cast("B")

    @property
    def size(self) -> int:
        return len(self._view)

    def read_at(self, offset: int, size: int) -> bytes:
        self._check_range(offset, size)
        return bytes(self._view[offset:offset + size])


class FileSource(ByteSource):
    """Byte source over an OS file descriptor using positional reads.

    The file object is borrowed, not owned: closing it is the caller's
    responsibility.
    """

    __slots__ = ("_file", "_fd")

    def __init__(self, file: BinaryIO) -> None:
        self._file = file
        self._fd = file.fileno()

    @property
    def size(self) -> int:
        return os.fstat(self._fd).st_size

    def read_at(self, offset: int, size: int) -> bytes:
        self._check_range(offset, size)
        chunks: list[bytes] = []
        remaining = size
        while remaining > 0:
            chunk = os.pread(self._fd, remaining, offset)
            if not chunk:
                break
            chunks.append(chunk)
            offset += len(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)


class StreamSource(ByteSource):
    """Byte source over a seekable stream without a usable descriptor.

    Each seek+read pair runs under a lock, so the stream's single cursor
    is never observed half-moved by a concurrent reader.
    """

    __slots__ = ("_stream", "_lock")

    def __init__(self, stream: BinaryIO) -> None:
        if not stream.seekable():
            raise ValueError("stream must be seekable")
        self._stream = stream
        self._lock = threading.Lock()

    @property
    def size(self) -> int:
        with self._lock:
            return self._stream.seek(0, io.SEEK_END)

    def read_at(self, offset: int, size: int) -> bytes:
        self._check_range(offset, size)
        with self._lock:
            self._stream.seek(offset)
            return self._stream.read(size)


def as_byte_source(obj: Any) -> ByteSource:
    """Adapt *obj* to a :class:`ByteSource`.

    Args:
        obj: An existing source, a bytes-like object, or a seekable binary
             file object.

    Raises:
        TypeError: If *obj* cannot be read at random offsets.
    """
    if isinstance(obj, ByteSource):
        return obj
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return BufferSource(obj)
    if isinstance(obj, io.BytesIO):
        # A snapshot, so the caller can still close or resize the stream.
        return BufferSource(obj.getvalue())
    if hasattr(obj, "read") and hasattr(obj, "seek"):
        if hasattr(os, "pread"):
            try:
                obj.fileno()
            except (AttributeError, OSError, io.UnsupportedOperation):
                pass
            else:
                return FileSource(obj)
        return StreamSource(obj)
    raise TypeError(f"cannot read {type(obj).__name__!r} as a byte source")


# ---------------------------------------------------------------------------
# Windows and streams
# ---------------------------------------------------------------------------

class SourceWindow:
    """The byte range ``[base, base + length)`` of a shared source."""

    __slots__ = ("_source", "_base", "_length")

    def __init__(self, source: ByteSource, base: int, length: int) -> None:
        if base < 0 or length < 0:
            raise ValueError(f"invalid window: base={base}, length={length}")
        self._source = source
        self._base = base
        self._length = length

    @property
    def base(self) -> int:
        return self._base

    @property
    def length(self) -> int:
        return self._length

    def read_at(self, offset: int, size: int) -> bytes:
        """Read up to *size* bytes at *offset* relative to the window start."""
        ByteSource._check_range(offset, size)
        if offset >= self._length:
            return b""
        size = min(size, self._length - offset)
        return self._source.read_at(self._base + offset, size)

    def read_all(self) -> bytes:
        return self.read_at(0, self._length)

    def open(self) -> WindowStream:
        """Return a new stream over the window with its own position."""
        return WindowStream(self)

    def __repr__(self) -> str:
        return f"SourceWindow(base=0x{self._base:x}, length={self._length})"


class WindowStream(io.RawIOBase):
    """A readable, seekable stream over a :class:`SourceWindow`."""

    def __init__(self, window: SourceWindow) -> None:
        super().__init__()
        self._window = window
        self._pos = 0

    def _ensure_open(self) -> None:
        if self.closed:
            raise ValueError("I/O operation on closed stream")

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def tell(self) -> int:
        self._ensure_open()
        return self._pos

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        self._ensure_open()
        if whence == io.SEEK_SET:
            pos = offset
        elif whence == io.SEEK_CUR:
            pos = self._pos + offset
        elif whence == io.SEEK_END:
            pos = self._window.length + offset
        else:
            raise ValueError(f"invalid whence: {whence}")
        if pos < 0:
            raise ValueError(f"negative seek position: {pos}")
        self._pos = pos
        return pos

    def readinto(self, buffer: Any) -> int:
        self._ensure_open()
        view = memoryview(buffer).cast("B")
        data = self._window.read_at(self._pos, len(view))
        n = len(data)
        view[:n] = data
        self._pos += n
        return n

    def read(self, size: Optional[int] = -1) -> bytes:
        self._ensure_open()
        if size is None or size < 0:
            size = max(self._window.length - self._pos, 0)
        data = self._window.read_at(self._pos, size)
        self._pos += len(data)
        return data
