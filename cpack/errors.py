from __future__ import annotations


class CPackError(Exception):
    """Base class for cpack-specific errors."""


# I/O and shared source
class ArchiveIOError(CPackError, OSError):
    """A read or seek on the underlying source failed.

    Also an OSError so that stream consumers (shutil.copyfileobj, io wrappers)
    treat it like any other I/O failure. The original exception is chained as
    ``__cause__``.
    """

    def __init__(self, message: str = "an error happened while performing an IO on the input file") -> None:
        super().__init__(message)


class PoisonedLockError(CPackError):
    def __init__(self) -> None:
        super().__init__("the lock that holds the source file is poisoned")


# Header validation
class BadMagicError(CPackError):
    value: bytes

    def __init__(self, value: bytes) -> None:
        self.value = bytes(value)
        super().__init__(
            f"the four first bytes of the file should be zero, but they are {list(self.value)}"
        )


class EntryOutOfBoundsError(CPackError):
    file_id: int
    end: int
    source_length: int

    def __init__(self, file_id: int, end: int, source_length: int) -> None:
        self.file_id = file_id
        self.end = end
        self.source_length = source_length
        super().__init__(
            f"the file (id: {file_id}) ends after the source file end "
            f"(source file end: {source_length}, file end in the source file: {end})"
        )


class BadHeaderTerminatorError(CPackError):
    position: int
    value: bytes

    def __init__(self, position: int, value: bytes) -> None:
        self.position = position
        self.value = bytes(value)
        super().__init__(
            f"the end of the header should be 8 zero bytes, but found {list(self.value)} "
            f"(position after the header end: {position})"
        )


# Sub-file views
class PartitionCreationError(CPackError):
    wrapped: Exception

    def __init__(self, exc: Exception) -> None:
        self.wrapped = exc
        super().__init__(f"unable to create a sub file partition: {exc}")
