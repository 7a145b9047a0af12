"""File system abstraction rooted at a directory, plus helpers built on it."""

from __future__ import annotations

import errno
import os
import shutil
import stat as _stat
import tempfile
import threading
import time
from typing import IO

DIR_PERM = 0o755
FILE_PERM = 0o644


def _perm_error(op: str, path: str) -> PermissionError:
    return PermissionError(errno.EPERM, f"{op}: {os.strerror(errno.EPERM)}", path)


def _file_mode(flags: int) -> str:
    access = flags & (os.O_RDONLY | os.O_WRONLY | os.O_RDWR)
    append = bool(flags & os.O_APPEND)
    if access == os.O_WRONLY:
        return "ab" if append else "wb"
    if access == os.O_RDWR:
        return "a+b" if append else "r+b"
    return "rb"


class FS:
    """A file system view; paths are resolved below ``root`` when it is set."""

    def __init__(self, root: str | os.PathLike[str] | None = None) -> None:
        self.root = os.fspath(root) if root is not None else None

    def raw_path(self, name: str) -> str:
        """The real path on disk for a path in this file system."""
        if self.root is None:
            return name
        normalized = os.path.normpath("/" + name).lstrip("/")
        return os.path.join(self.root, normalized) if normalized else self.root

    def open(self, name: str) -> IO[bytes]:
        return open(self.raw_path(name), "rb")

    def create(self, name: str) -> IO[bytes]:
        return open(self.raw_path(name), "w+b")

    def open_file(self, name: str, flags: int, mode: int = FILE_PERM) -> IO[bytes]:
        def opener(path: str, _flags: int) -> int:
            return os.open(path, flags, mode)

        return open(self.raw_path(name), _file_mode(flags), opener=opener)

    def chmod(self, name: str, mode: int) -> None:
        os.chmod(self.raw_path(name), mode)

    def mkdir(self, name: str, mode: int = DIR_PERM) -> None:
        os.mkdir(self.raw_path(name), mode)

    def stat(self, name: str) -> os.stat_result:
        return os.stat(self.raw_path(name))

    def remove(self, name: str) -> None:
        path = self.raw_path(name)
        if os.path.isdir(path) and not os.path.islink(path):
            os.rmdir(path)
        else:
            os.remove(path)

    def remove_all(self, path: str) -> None:
        """Remove a path and everything below it; a missing path is not an error."""
        raw = self.raw_path(path)
        if os.path.isdir(raw) and not os.path.islink(raw):
            shutil.rmtree(raw)
        elif os.path.lexists(raw):
            os.remove(raw)

    def read_file(self, name: str) -> bytes:
        with self.open(name) as f:
            return f.read()

    def write_file(self, name: str, data: bytes, mode: int = FILE_PERM) -> None:
        flags = os.O_WRONLY | os.O_CREAT | os.O_TRUNC
        with self.open_file(name, flags, mode) as f:
            f.write(data)

    def readlink(self, name: str) -> str:
        return os.readlink(self.raw_path(name))


class ReadOnlyFS(FS):
    """A view of another file system that refuses every modification."""

    def __init__(self, fs: FS) -> None:
        super().__init__(fs.root)
        self.inner = fs

    def raw_path(self, name: str) -> str:
        return self.inner.raw_path(name)

    def create(self, name: str) -> IO[bytes]:
        raise _perm_error("create", name)

    def open_file(self, name: str, flags: int, mode: int = FILE_PERM) -> IO[bytes]:
        writing = os.O_WRONLY | os.O_RDWR | os.O_APPEND | os.O_CREAT | os.O_TRUNC
        if flags & writing:
            raise _perm_error("open", name)
        return super().open_file(name, flags, mode)

    def chmod(self, name: str, mode: int) -> None:
        raise _perm_error("chmod", name)

    def mkdir(self, name: str, mode: int = DIR_PERM) -> None:
        raise _perm_error("mkdir", name)

    def remove(self, name: str) -> None:
        raise _perm_error("remove", name)

    def remove_all(self, path: str) -> None:
        raise _perm_error("removeall", path)

    def write_file(self, name: str, data: bytes, mode: int = FILE_PERM) -> None:
        raise _perm_error("writefile", name)


def exists(fs: FS, path: str) -> bool:
    """Whether a file or directory exists; other stat errors propagate."""
    try:
        fs.stat(path)
    except FileNotFoundError:
        return False
    return True


def is_dir(fs: FS, path: str) -> bool:
    """Whether the path is a directory; raises if it cannot be stat'ed."""
    return _stat.S_ISDIR(fs.stat(path).st_mode)


def mkdir_all(fs: FS, name: str, mode: int = DIR_PERM) -> None:
    """Create a directory and all missing parents."""
    if isinstance(fs, ReadOnlyFS):
        raise _perm_error("mkdir", name)
    os.makedirs(fs.raw_path(name), mode, exist_ok=True)


class _NameSource:
    """Pseudo-random name suffixes, shared by all temp helpers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = 0

    @staticmethod
    def _seed() -> int:
        return (time.time_ns() + os.getpid()) & 0xFFFFFFFF

    def reseed(self) -> None:
        with self._lock:
            self._state = self._seed()

    def next(self) -> str:
        with self._lock:
            r = self._state or self._seed()
            r = (r * 1664525 + 1013904223) & 0xFFFFFFFF
            self._state = r
        return str(1_000_000_000 + r % 1_000_000_000)[1:]


_names = _NameSource()


def temp_dir(fs: FS, directory: str = "", prefix: str = "") -> str:
    """Create a new temporary directory and return its path."""
    directory = directory or tempfile.gettempdir()
    conflicts = 0
    last_error: OSError | None = None
    for _ in range(10000):
        candidate = os.path.join(directory, prefix + _names.next())
        try:
            mkdir_all(fs, candidate, 0o700)
        except FileExistsError as exc:
            last_error = exc
            conflicts += 1
            if conflicts > 10:
                _names.reseed()
            continue
        return candidate
    raise last_error or FileExistsError(errno.EEXIST, "no free name", directory)


def temp_file(fs: FS, directory: str = "", pattern: str = "") -> IO[bytes]:
    """Create and open a new temporary file; the last '*' in pattern marks the random part."""
    directory = directory or tempfile.gettempdir()
    prefix, star, suffix = pattern.rpartition("*")
    if not star:
        prefix, suffix = pattern, ""
    conflicts = 0
    last_error: OSError | None = None
    for _ in range(10000):
        name = os.path.join(directory, prefix + _names.next() + suffix)
        try:
            return fs.open_file(name, os.O_RDWR | os.O_CREAT | os.O_EXCL, 0o600)
        except FileExistsError as exc:
            last_error = exc
            conflicts += 1
            if conflicts > 10:
                _names.reseed()
    raise last_error or FileExistsError(errno.EEXIST, "no free name", directory)