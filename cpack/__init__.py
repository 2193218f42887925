"""
cpack — reader for the cpack container format

A cpack file packs several sub-files behind a small fixed header and an offset
table. Sub-files carry no names; they are addressed by their zero-based position
in the table. This package provides:

- Header and offset table parsing with strict structural validation
- Independent, seekable, read-only views over each packed sub-file
- A lock-guarded shared source so views can be read from several threads
- A small CLI to list, inspect, and extract sub-files

Writing archives is not supported.
"""

import logging

from .errors import (
    CPackError,
    ArchiveIOError,
    PoisonedLockError,
    BadMagicError,
    EntryOutOfBoundsError,
    BadHeaderTerminatorError,
    PartitionCreationError,
)
from .partition import PartitionedFile, SharedSource
from .reader import CPack, FileIndex

__version__ = "0.1"

logging.getLogger(__name__).addHandler(logging.NullHandler())

open = CPack.open

__all__ = [
    "CPack",
    "FileIndex",
    "PartitionedFile",
    "SharedSource",
    "open",
    "CPackError",
    "ArchiveIOError",
    "PoisonedLockError",
    "BadMagicError",
    "EntryOutOfBoundsError",
    "BadHeaderTerminatorError",
    "PartitionCreationError",
]
