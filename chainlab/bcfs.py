"""A virtual file system that maps WASI-style file operations onto a pending transaction.

Descriptor 3 is the chain directory, whose entries are account addresses
holding `balance` and `bytecode` files (and, for the chain itself, `log`).
Descriptor 4 is the home directory of the current account, whose regular
files are entries of the account's key-value storage.
"""

from __future__ import annotations

import io
import os
import struct
from collections.abc import Iterable, Sequence
from pathlib import PurePosixPath
from typing import Union

from chainlab.memchain import PendingTransaction
from chainlab.traits import Address
from chainlab.vfs_file import (
    CHAIN_DIR_FILENO,
    HOME_DIR_FILENO,
    RIGHTS_ALL,
    ErrNo,
    FdFlags,
    FdStat,
    File,
    FileKind,
    FileStat,
    FileType,
    FsError,
    OpenFlags,
    Whence,
    default_files,
)

PathArg = Union[str, "os.PathLike[str]"]

_MAX_FILES = 2**32 - 1
_U64_MAX = 2**64 - 1
_BALANCE_LEN = 16

_Variant = FileKind.Variant


def _size(cursor: io.BytesIO) -> int:
    with cursor.getbuffer() as view:
        return view.nbytes


def _seek_cursor(cursor: io.BytesIO, whence: Whence, offset: int) -> int:
    """Moves the cursor, rejecting positions before the start."""
    if whence is Whence.START:
        target = offset
    elif whence is Whence.CURRENT:
        target = cursor.tell() + offset
    else:
        target = _size(cursor) + offset
    if not 0 <= target <= _U64_MAX:
        raise FsError(ErrNo.INVAL)
    cursor.seek(target)
    return target


def _checked_offset(base: int, offset: int) -> int:
    target = base + offset
    if not 0 <= target <= _U64_MAX:
        raise FsError(ErrNo.INVAL)
    return target


def _read_into(cursor: io.BytesIO, bufs: Iterable) -> int:
    total = 0
    for buf in bufs:
        with memoryview(buf) as view:
            nread = cursor.readinto(view)
            total += nread
            if nread < view.nbytes:
                break
    return total


def _write_from(cursor: io.BytesIO, bufs: Iterable) -> int:
    return sum(cursor.write(buf) for buf in bufs)


def parse_log(buf: bytes) -> tuple[list[bytes], bytes] | None:
    """Splits a log buffer into (topics, data).

    The buffer holds a little-endian u32 topic count, then each topic as a
    little-endian u32 length followed by its bytes; the remaining bytes are
    the data. Returns None if the buffer is too short.
    """
    data = bytes(buf)
    if len(data) < 4:
        return None
    (count,) = struct.unpack_from("<I", data, 0)
    pos = 4
    topics: list[bytes] = []
    for _ in range(count):
        if pos + 4 > len(data):
            return None
        (length,) = struct.unpack_from("<I", data, pos)
        pos += 4
        if pos + length > len(data):
            return None
        topics.append(data[pos : pos + length])
        pos += length
    return topics, data[pos:]


class BCFS:
    """A per-transaction file table backed by blockchain state."""

    def __init__(self, home_addr: Address, blockchain_name: str) -> None:
        self.home_addr = home_addr
        self._files: list[File | None] = default_files(blockchain_name)

    def prestat(self, ptx: PendingTransaction, fd: int) -> PurePosixPath:
        """Returns the path of a preopened directory."""
        kind = self._file(fd).kind
        if kind.variant is not _Variant.DIRECTORY or kind.path is None:
            raise FsError(ErrNo.BADF)
        return kind.path

    def open(
        self,
        ptx: PendingTransaction,
        curdir: int,
        path: PathArg,
        open_flags: OpenFlags,
        fd_flags: FdFlags,
    ) -> int:
        """Opens `path` relative to the directory `curdir` and returns the new descriptor."""
        open_flags = OpenFlags(open_flags)
        fd_flags = FdFlags(fd_flags)
        if open_flags & OpenFlags.DIRECTORY:
            raise FsError(ErrNo.NOTSUP)
        if self._file(curdir).kind.variant is not _Variant.DIRECTORY:
            raise FsError(ErrNo.BADF)

        addr, name = self._canonicalize_path(curdir, path)
        file_exists = True
        if addr is None and name == "log":
            kind = FileKind.log()
        elif addr is not None and name == "balance":
            kind = FileKind.balance(addr)
        elif addr is not None and name == "bytecode":
            kind = FileKind.bytecode(addr)
        elif addr is not None and addr == self.home_addr:
            key = self._key_for_path(name)
            file_exists = ptx.state().contains(key)
            if file_exists and open_flags & OpenFlags.EXCL:
                raise FsError(ErrNo.EXIST)
            if not file_exists and not open_flags & OpenFlags.CREATE:
                raise FsError(ErrNo.NOENT)
            if not file_exists:
                # Created eagerly, as POSIX does.
                ptx.state_mut().set(key, b"")
            kind = FileKind.regular(key)
        else:
            raise FsError(ErrNo.NOENT)

        if kind.is_blockchain_intrinsic():
            if open_flags & (OpenFlags.CREATE | OpenFlags.EXCL):
                raise FsError(ErrNo.EXIST)
            appending = bool(fd_flags & FdFlags.APPEND)
            if open_flags & (OpenFlags.TRUNC | OpenFlags.DIRECTORY) or kind.is_log() != appending:
                raise FsError(ErrNo.INVAL)

        fd = self._alloc_fd()
        fresh = not file_exists or bool(open_flags & OpenFlags.TRUNC)
        start = Whence.END if fd_flags & FdFlags.APPEND else Whence.START
        self._files.append(
            File(
                kind=kind,
                flags=fd_flags,
                metadata=None if file_exists else FileStat(),
                cache=io.BytesIO() if fresh else None,
                pending_seek=(start, 0),
            )
        )
        return fd

    def tempfile(self, ptx: PendingTransaction) -> int:
        """Opens an anonymous in-memory file."""
        fd = self._alloc_fd()
        self._files.append(
            File(
                kind=FileKind.temporary(),
                flags=FdFlags(0),
                metadata=FileStat(),
                cache=io.BytesIO(),
            )
        )
        return fd

    def flush(self, ptx: PendingTransaction, fd: int) -> None:
        self._do_flush(ptx, self._file(fd))

    def close(self, ptx: PendingTransaction, fd: int) -> None:
        self.flush(ptx, fd)
        self._files[fd] = None

    def unlink(self, ptx: PendingTransaction, curdir: int, path: PathArg) -> int:
        """Removes the file at `path`; returns the number of bytes it held."""
        if curdir != HOME_DIR_FILENO:
            raise FsError(ErrNo.ACCESS)
        addr, name = self._canonicalize_path(curdir, path)
        if addr is None or addr != self.home_addr:
            raise FsError(ErrNo.ACCESS)
        if name in ("balance", "bytecode"):
            raise FsError(ErrNo.ACCESS)
        key = self._key_for_path(name)
        state = ptx.state_mut()
        prev_len = len(state.get(key) or b"")
        state.remove(key)
        return prev_len

    def seek(self, ptx: PendingTransaction, fd: int, offset: int, whence: Whence) -> int:
        """Moves the file position and returns the new position."""
        file = self._file(fd)
        if whence is Whence.END or (not file.is_cached and file.pending_seek[0] is Whence.END):
            self._populate_file(ptx, file)
        if whence is Whence.START and offset < 0:
            raise FsError(ErrNo.INVAL)

        if file.cache is not None:
            return _seek_cursor(file.cache, whence, offset)
        if whence is Whence.START:
            file.pending_seek = (Whence.START, offset)
            return offset
        new_offset = _checked_offset(file.pending_seek[1], offset)
        file.pending_seek = (Whence.START, new_offset)
        return new_offset

    def fdstat(self, ptx: PendingTransaction, fd: int) -> FdStat:
        file = self._file(fd)
        return FdStat(
            file_type=FileType.REGULAR_FILE,
            flags=file.flags,
            rights_base=RIGHTS_ALL,
            rights_inheriting=RIGHTS_ALL,
        )

    def filestat(self, ptx: PendingTransaction, fd: int) -> FileStat:
        return self._populate_file(ptx, self._file(fd))

    def tell(self, ptx: PendingTransaction, fd: int) -> int:
        file = self._file(fd)
        if not file.is_cached and file.pending_seek[0] is Whence.END:
            self._populate_file(ptx, file)
        if file.cache is not None:
            return file.cache.tell()
        return file.pending_seek[1]

    def read_vectored(self, ptx: PendingTransaction, fd: int, bufs: Sequence) -> int:
        """Reads into each writable buffer in turn; returns the bytes read."""
        return self._do_pread(ptx, fd, bufs, None)

    def pread_vectored(self, ptx: PendingTransaction, fd: int, bufs: Sequence, offset: int) -> int:
        """Reads at `offset` without moving the file position."""
        return self._do_pread(ptx, fd, bufs, offset)

    def write_vectored(self, ptx: PendingTransaction, fd: int, bufs: Sequence) -> int:
        """Writes each buffer in turn; returns the bytes written."""
        return self._do_pwrite(ptx, fd, bufs, None)

    def pwrite_vectored(self, ptx: PendingTransaction, fd: int, bufs: Sequence, offset: int) -> int:
        """Writes at `offset` without moving the file position."""
        return self._do_pwrite(ptx, fd, bufs, offset)

    def renumber(self, ptx: PendingTransaction, fd: int, new_fd: int) -> None:
        """Moves the file at `fd` to `new_fd`, discarding what `new_fd` held."""
        if not (self._has_fd(fd) and self._has_fd(new_fd)):
            raise FsError(ErrNo.BADF)
        self._files[new_fd] = self._files[fd]
        self._files[fd] = None

    def sync(self, ptx: PendingTransaction) -> None:
        for file in self._files[1:4]:
            if file is not None:
                self._do_flush(ptx, file)

    def _canonicalize_path(self, curdir: int, path: PathArg) -> tuple[Address | None, str]:
        text = os.fspath(path)
        if text.startswith("/"):
            raise FsError(ErrNo.NOENT)  # paths must be relative to a preopened directory
        comps = [comp for comp in text.split("/") if comp not in ("", ".")]

        addr: Address | None
        if curdir == CHAIN_DIR_FILENO:
            addr = None
            if comps and comps[0] != "..":
                try:
                    addr = Address.from_hex(comps[0])
                except ValueError:
                    addr = None
                else:
                    comps = comps[1:]
        else:
            addr = self.home_addr

        canon: list[str] = []
        has_path = False
        for comp in comps:
            if comp == "..":
                if not canon:
                    raise FsError(ErrNo.NOENT)
                canon.pop()
            else:
                has_path = True
                canon.append(comp)
        if not has_path:
            raise FsError(ErrNo.INVAL)
        return addr, "/".join(canon)

    @staticmethod
    def _key_for_path(name: str) -> bytes:
        try:
            return name.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise FsError(ErrNo.INVAL) from exc

    def _has_fd(self, fd: int) -> bool:
        return 0 <= fd < len(self._files) and self._files[fd] is not None

    def _file(self, fd: int) -> File:
        if not self._has_fd(fd):
            raise FsError(ErrNo.BADF)
        file = self._files[fd]
        assert file is not None
        return file

    def _alloc_fd(self) -> int:
        if len(self._files) >= _MAX_FILES:
            raise FsError(ErrNo.NFILE)
        return len(self._files)

    @staticmethod
    def _load(ptx: PendingTransaction, kind: FileKind) -> bytes:
        variant = kind.variant
        if variant is _Variant.STDIN:
            return bytes(ptx.input)
        if variant is _Variant.BYTECODE:
            code = ptx.code_at(kind.addr)
            if code is None:
                raise FsError(ErrNo.NOENT)
            return bytes(code)
        if variant is _Variant.BALANCE:
            meta = ptx.account_meta_at(kind.addr)
            if meta is None:
                raise FsError(ErrNo.NOENT)
            return meta.balance.to_bytes(_BALANCE_LEN, "little")
        if variant is _Variant.REGULAR:
            value = ptx.state().get(kind.key)
            if value is None:
                raise FsError(ErrNo.NOENT)
            return bytes(value)
        if variant in (_Variant.STDOUT, _Variant.STDERR, _Variant.LOG):
            return b""
        raise FsError(ErrNo.FAULT)

    @classmethod
    def _populate_file(cls, ptx: PendingTransaction, file: File) -> FileStat:
        """Loads the file's contents if needed and returns its metadata."""
        if file.cache is None:
            cursor = io.BytesIO(cls._load(ptx, file.kind))
            whence, offset = file.pending_seek
            _seek_cursor(cursor, whence, offset)
            file.cache = cursor
        if file.metadata is None:
            file.metadata = FileStat(file_size=_size(file.cache))
        return file.metadata

    def _do_pread(self, ptx: PendingTransaction, fd: int, bufs: Sequence, offset: int | None) -> int:
        file = self._file(fd)
        if file.kind.variant in (_Variant.STDOUT, _Variant.STDERR, _Variant.LOG):
            raise FsError(ErrNo.INVAL)
        self._populate_file(ptx, file)
        cursor = file.cache
        assert cursor is not None
        if offset is None:
            return _read_into(cursor, bufs)
        orig_pos = cursor.tell()
        _seek_cursor(cursor, Whence.START, offset)
        try:
            return _read_into(cursor, bufs)
        finally:
            cursor.seek(orig_pos)

    def _do_pwrite(self, ptx: PendingTransaction, fd: int, bufs: Sequence, offset: int | None) -> int:
        file = self._file(fd)
        if file.kind.variant in (_Variant.STDIN, _Variant.BYTECODE, _Variant.BALANCE):
            raise FsError(ErrNo.INVAL)
        self._populate_file(ptx, file)
        cursor = file.cache
        assert cursor is not None
        if offset is None:
            nbytes = _write_from(cursor, bufs)
        else:
            orig_pos = cursor.tell()
            _seek_cursor(cursor, Whence.START, offset)
            try:
                nbytes = _write_from(cursor, bufs)
            finally:
                cursor.seek(orig_pos)
        if nbytes > 0:
            file.dirty = True
        return nbytes

    def _do_flush(self, ptx: PendingTransaction, file: File) -> None:
        if not file.dirty or file.cache is None:
            return
        buf = file.cache.getvalue()
        variant = file.kind.variant
        if variant is _Variant.STDOUT:
            ptx.ret(buf)
        elif variant is _Variant.STDERR:
            ptx.err(buf)
        elif variant is _Variant.LOG:
            parsed = parse_log(buf)
            if parsed is not None:
                topics, data = parsed
                ptx.emit(topics, data)
        elif variant is _Variant.REGULAR:
            key = file.kind.key
            ptx.state_mut().set(key, buf)
            for other in self._files[HOME_DIR_FILENO + 1 :]:
                if (
                    other is None
                    or other is file
                    or other.kind.variant is not _Variant.REGULAR
                    or other.kind.key != key
                ):
                    continue
                if other.cache is None:
                    whence, offset = other.pending_seek
                else:
                    whence, offset = Whence.START, other.cache.tell()
                cursor = io.BytesIO(buf)
                try:
                    _seek_cursor(cursor, whence, offset)
                except FsError:
                    pass  # reported when the file is actually read
                other.cache = cursor
                other.metadata = None
            file.dirty = False