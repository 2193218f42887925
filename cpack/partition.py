from __future__ import annotations

import io
import os
import threading
from contextlib import contextmanager
from typing import BinaryIO, Iterator

from .errors import ArchiveIOError, CPackError, PoisonedLockError


class SharedSource:
    """A binary file object shared between an archive and its sub-file views.

    All I/O on the wrapped file goes through :meth:`locked`, which holds the
    lock only for the duration of the ``with`` block. Holders call
    :meth:`retain` / :meth:`release`; when ``owned`` is set the file object is
    closed once the last holder releases it, after which :meth:`retain`
    raises ValueError.

    If an unexpected exception escapes while the lock is held, the cursor and
    internal state of the file can no longer be trusted and the source is
    marked poisoned: every later :meth:`locked` raises PoisonedLockError.
    OSError and CPackError do not poison the source.
    """

    def __init__(self, fileobj: BinaryIO, *, owned: bool = False):
        self._f = fileobj
        self._owned = owned
        self._lock = threading.Lock()
        self._refs_lock = threading.Lock()
        self._refs = 0
        self._closed = False
        self._poisoned = False

    @property
    def poisoned(self) -> bool:
        return self._poisoned

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def refcount(self) -> int:
        return self._refs

    @contextmanager
    def locked(self) -> Iterator[BinaryIO]:
        with self._lock:
            if self._poisoned:
                raise PoisonedLockError()
            try:
                yield self._f
            except (OSError, CPackError):
                raise
            except BaseException:
                self._poisoned = True
                raise

    def retain(self) -> "SharedSource":
        with self._refs_lock:
            if self._closed:
                raise ValueError("source already closed")
            self._refs += 1
        return self

    def release(self) -> None:
        with self._refs_lock:
            if self._refs <= 0:
                return
            self._refs -= 1
            last = self._refs == 0 and self._owned
            if last:
                self._closed = True
        if last:
            # Waits for any in-flight operation before closing.
            with self._lock:
                self._f.close()


class PartitionedFile(io.RawIOBase):
    """Read-only, seekable view over ``[offset, offset + length)`` of a SharedSource.

    Positions are local to the window. Every read re-seeks the shared file to
    the absolute position under the source lock, so views never depend on
    where another view left the shared cursor.
    """

    def __init__(self, source: SharedSource, offset: int, length: int):
        super().__init__()
        if offset < 0:
            raise ValueError(f"negative partition offset: {offset}")
        if length < 0:
            raise ValueError(f"negative partition length: {length}")
        source.retain()
        try:
            with source.locked() as f:
                try:
                    usable = f.seekable() and f.readable()
                except (AttributeError, ValueError) as exc:
                    raise io.UnsupportedOperation(f"partition source is not usable: {exc}") from exc
                if not usable:
                    raise io.UnsupportedOperation("partition source must be seekable and readable")
        except BaseException:
            source.release()
            raise
        self._source = source
        self._offset = offset
        self._length = length
        self._pos = 0

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def length(self) -> int:
        return self._length

    def __len__(self) -> int:
        return self._length

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def writable(self) -> bool:
        return False

    def tell(self) -> int:
        self._check_open()
        return self._pos

    def seek(self, pos: int, whence: int = os.SEEK_SET) -> int:
        self._check_open()
        if whence == os.SEEK_SET:
            target = pos
        elif whence == os.SEEK_CUR:
            target = self._pos + pos
        elif whence == os.SEEK_END:
            target = self._length + pos
        else:
            raise ValueError(f"invalid whence ({whence})")
        if target < 0:
            raise ValueError(f"negative seek position {target}")
        with self._source.locked() as f:
            try:
                f.seek(self._offset + min(target, self._length))
            except OSError as exc:
                raise ArchiveIOError() from exc
        self._pos = target
        return self._pos

    def readinto(self, b) -> int:
        self._check_open()
        remaining = self._length - self._pos
        if remaining <= 0:
            return 0
        view = memoryview(b).cast("B")
        want = min(len(view), remaining)
        if want == 0:
            return 0
        with self._source.locked() as f:
            try:
                f.seek(self._offset + self._pos)
                data = f.read(want)
            except OSError as exc:
                raise ArchiveIOError() from exc
        n = len(data)
        view[:n] = data
        self._pos += n
        return n

    def close(self) -> None:
        if not self.closed:
            source = getattr(self, "_source", None)
            try:
                if source is not None:
                    source.release()
            finally:
                super().close()

    def _check_open(self) -> None:
        if self.closed:
            raise ValueError("I/O operation on closed partition")

    def __repr__(self) -> str:
        return f"<PartitionedFile offset={self._offset} length={self._length} pos={self._pos}>"
