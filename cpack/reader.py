from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass
from typing import BinaryIO, Iterator, Tuple, Union

from .constants import (
    ENTRY_STRUCT,
    HEADER_MAGIC,
    HEADER_TERMINATOR,
    U32_STRUCT,
)
from .errors import (
    ArchiveIOError,
    BadHeaderTerminatorError,
    BadMagicError,
    EntryOutOfBoundsError,
    PartitionCreationError,
)
from .partition import PartitionedFile, SharedSource

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileIndex:
    file_offset: int
    file_length: int

    @property
    def end(self) -> int:
        return self.file_offset + self.file_length


def _read_exact(f: BinaryIO, size: int) -> bytes:
    buf = bytearray()
    while len(buf) < size:
        chunk = f.read(size - len(buf))
        if not chunk:
            raise ArchiveIOError(
                f"unexpected end of file while reading the header (wanted {size} bytes, got {len(buf)})"
            )
        buf += chunk
    return bytes(buf)


def _read_u32(f: BinaryIO) -> int:
    return U32_STRUCT.unpack(_read_exact(f, U32_STRUCT.size))[0]


class CPack:
    """A cpack archive, the container format of a game's packed asset data.

    A cpack file holds several sub-files, each identified only by its position
    in the offset table. The header is parsed and validated once, in the
    constructor; the archive is never modified afterwards.

    ``CPack(fileobj)`` reads from an already open binary file object, which is
    left open when the archive and its views are closed. Use :meth:`open` to
    let the archive open (and eventually close) a path itself.
    """

    def __init__(self, fileobj: BinaryIO, *, _owned: bool = False):
        self.source = SharedSource(fileobj, owned=_owned).retain()
        self.source_length: int = 0
        self._entries: Tuple[FileIndex, ...] = ()
        self._closed = False
        try:
            self._parse()
        except BaseException:
            self.close()
            raise

    @classmethod
    def open(cls, source: Union[str, os.PathLike, BinaryIO]) -> "CPack":
        """Open a cpack archive from a filesystem path or a binary file object."""
        if isinstance(source, (str, bytes, os.PathLike)):
            return cls(open(source, "rb"), _owned=True)
        return cls(source)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self) -> None:
        """Drop the archive's reference to the source.

        Sub-file views obtained from :meth:`get_file` stay usable until they
        are closed themselves.
        """
        if self._closed:
            return
        self._closed = True
        self.source.release()

    @property
    def closed(self) -> bool:
        return self._closed

    def _parse(self) -> None:
        entries = []
        with self.source.locked() as f:
            try:
                file_len = f.seek(0, io.SEEK_END)
                f.seek(0)
                _log.debug("parsing cpack header (source length %d)", file_len)

                magic = _read_exact(f, len(HEADER_MAGIC))
                if magic != HEADER_MAGIC:
                    raise BadMagicError(magic)

                number_of_files = _read_u32(f)
                for file_id in range(number_of_files):
                    file_offset, file_length = ENTRY_STRUCT.unpack(_read_exact(f, ENTRY_STRUCT.size))
                    # Unbounded ints: a sum that would wrap a u32 is still out of bounds.
                    end = file_offset + file_length
                    if end > file_len:
                        raise EntryOutOfBoundsError(file_id, end, file_len)
                    entries.append(FileIndex(file_offset, file_length))

                terminator = _read_exact(f, len(HEADER_TERMINATOR))
                if terminator != HEADER_TERMINATOR:
                    raise BadHeaderTerminatorError(f.tell(), terminator)
            except ArchiveIOError:
                raise
            except OSError as exc:
                raise ArchiveIOError() from exc
        self.source_length = file_len
        self._entries = tuple(entries)
        _log.debug("parsed cpack header: %d file(s)", len(self._entries))

    @property
    def entries(self) -> Tuple[FileIndex, ...]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[FileIndex]:
        return iter(self._entries)

    def len(self) -> int:
        """Return the number of files in the archive."""
        return len(self._entries)

    def is_empty(self) -> bool:
        return self.len() == 0

    def get_file(self, file_id: int) -> PartitionedFile:
        """Return a new read-only view over the file ``file_id``.

        ``file_id`` must satisfy ``0 <= file_id < len(self)``; anything else
        raises IndexError. Each call returns a fresh view sharing the archive's
        source. Raises ValueError once the archive is closed.

        :raises PartitionCreationError: if the view cannot be created over the source.
        """
        if self._closed:
            raise ValueError("I/O operation on closed archive")
        if not 0 <= file_id < len(self._entries):
            raise IndexError(f"file id {file_id} out of range (archive has {len(self._entries)} files)")
        index = self._entries[file_id]
        try:
            view = PartitionedFile(self.source, index.file_offset, index.file_length)
        except (OSError, ValueError) as exc:
            raise PartitionCreationError(exc) from exc
        _log.debug("opened file %d (offset %d, length %d)", file_id, index.file_offset, index.file_length)
        return view

    def read_file(self, file_id: int) -> bytes:
        """Read the whole content of file ``file_id``."""
        with self.get_file(file_id) as view:
            return view.read()

    def __repr__(self) -> str:
        return f"<CPack files={len(self._entries)} source_length={self.source_length}>"
