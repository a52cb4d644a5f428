"""File table entries and WASI-style types for the blockchain file system."""

from __future__ import annotations

import io
from dataclasses import dataclass
from enum import Enum, IntEnum, IntFlag, auto
from pathlib import PurePosixPath

from chainlab.traits import Address

CHAIN_DIR_FILENO = 3
HOME_DIR_FILENO = 4

RIGHTS_ALL = (1 << 29) - 1


class ErrNo(IntEnum):
    ACCESS = 2
    BADF = 8
    EXIST = 20
    FAULT = 21
    INVAL = 28
    NFILE = 41
    NOENT = 44
    NOTSUP = 58


class FsError(Exception):
    """A file-system operation failed with the given error number."""

    def __init__(self, errno: ErrNo) -> None:
        super().__init__(errno.name)
        self.errno = errno


class OpenFlags(IntFlag):
    CREATE = 1
    DIRECTORY = 2
    EXCL = 4
    TRUNC = 8


class FdFlags(IntFlag):
    APPEND = 1
    DSYNC = 2
    NONBLOCK = 4
    RSYNC = 8
    SYNC = 16


class Whence(Enum):
    START = 0
    CURRENT = 1
    END = 2


class FileType(IntEnum):
    UNKNOWN = 0
    BLOCK_DEVICE = 1
    CHARACTER_DEVICE = 2
    DIRECTORY = 3
    REGULAR_FILE = 4
    SOCKET_DGRAM = 5
    SOCKET_STREAM = 6
    SYMBOLIC_LINK = 7


@dataclass(frozen=True)
class FileStat:
    device: int = 0
    inode: int = 0
    file_type: FileType = FileType.REGULAR_FILE
    num_links: int = 0
    file_size: int = 0
    atime: int = 0
    mtime: int = 0
    ctime: int = 0


@dataclass(frozen=True)
class FdStat:
    file_type: FileType
    flags: FdFlags
    rights_base: int
    rights_inheriting: int


@dataclass(frozen=True)
class FileKind:
    """What a file descriptor refers to."""

    class Variant(Enum):
        STDIN = auto()
        STDOUT = auto()
        STDERR = auto()
        LOG = auto()
        TEMPORARY = auto()
        REGULAR = auto()
        BALANCE = auto()
        BYTECODE = auto()
        DIRECTORY = auto()

    variant: FileKind.Variant
    key: bytes | None = None
    addr: Address | None = None
    path: PurePosixPath | None = None

    @classmethod
    def stdin(cls) -> FileKind:
        return cls(cls.Variant.STDIN)

    @classmethod
    def stdout(cls) -> FileKind:
        return cls(cls.Variant.STDOUT)

    @classmethod
    def stderr(cls) -> FileKind:
        return cls(cls.Variant.STDERR)

    @classmethod
    def log(cls) -> FileKind:
        return cls(cls.Variant.LOG)

    @classmethod
    def temporary(cls) -> FileKind:
        return cls(cls.Variant.TEMPORARY)

    @classmethod
    def regular(cls, key: bytes) -> FileKind:
        return cls(cls.Variant.REGULAR, key=bytes(key))

    @classmethod
    def balance(cls, addr: Address) -> FileKind:
        return cls(cls.Variant.BALANCE, addr=addr)

    @classmethod
    def bytecode(cls, addr: Address) -> FileKind:
        return cls(cls.Variant.BYTECODE, addr=addr)

    @classmethod
    def directory(cls, path: PurePosixPath | str) -> FileKind:
        return cls(cls.Variant.DIRECTORY, path=PurePosixPath(path))

    def is_log(self) -> bool:
        return self.variant is FileKind.Variant.LOG

    def is_blockchain_intrinsic(self) -> bool:
        return self.variant in (
            FileKind.Variant.LOG,
            FileKind.Variant.BALANCE,
            FileKind.Variant.BYTECODE,
        )


@dataclass
class File:
    """An open file: its kind, flags, cached metadata and cached contents.

    While `cache` is None the contents have not been loaded, and
    `pending_seek` holds the position to apply once they are.
    """

    kind: FileKind
    flags: FdFlags
    metadata: FileStat | None = None
    cache: io.BytesIO | None = None
    pending_seek: tuple[Whence, int] = (Whence.START, 0)
    dirty: bool = False

    @property
    def is_cached(self) -> bool:
        return self.cache is not None


def default_files(blockchain_name: str) -> list[File | None]:
    """The preopened descriptors: stdin, stdout, stderr, the chain directory and home."""
    std_flags = FdFlags.APPEND | FdFlags.SYNC
    return [
        File(kind=FileKind.stdin(), flags=std_flags),
        File(kind=FileKind.stdout(), flags=std_flags),
        File(kind=FileKind.stderr(), flags=std_flags),
        File(kind=FileKind.directory(PurePosixPath("/opt") / blockchain_name), flags=FdFlags.SYNC),
        File(kind=FileKind.directory(PurePosixPath(".")), flags=FdFlags.SYNC),
    ]