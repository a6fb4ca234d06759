"""Read-only file providers for templates, localization and static files."""

from __future__ import annotations

import errno
import io
import posixpath
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Union


@dataclass(frozen=True)
class DirEntry:
    """One entry of a directory listing."""

    name: str
    is_dir: bool


def _check_path(name: str) -> None:
    """Raise OSError unless the name is a slash separated, unrooted, clean path."""
    if name == ".":
        return
    valid = bool(name) and not name.startswith("/") and not name.endswith("/") and all(
        part not in ("", ".", "..") for part in name.split("/")
    )
    if not valid:
        raise OSError(errno.EINVAL, "invalid argument", name)


class FileProvider(ABC):
    """A read-only tree of files addressed by slash separated paths."""

    @abstractmethod
    def open(self, name: str) -> BinaryIO: ...

    @abstractmethod
    def read_file(self, name: str) -> bytes: ...

    @abstractmethod
    def read_dir(self, name: str) -> list[DirEntry]: ...


class DirectoryFileProvider(FileProvider):
    """Files below a directory of the file system."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)

    def _resolve(self, name: str) -> Path:
        _check_path(name)
        return self.root if name == "." else self.root.joinpath(*name.split("/"))

    def open(self, name: str) -> BinaryIO:
        target = self._resolve(name)
        if target.is_dir():
            raise IsADirectoryError(errno.EISDIR, "is a directory", name)
        return target.open("rb")

    def read_file(self, name: str) -> bytes:
        with self.open(name) as handle:
            return handle.read()

    def read_dir(self, name: str) -> list[DirEntry]:
        target = self._resolve(name)
        if not target.exists():
            raise FileNotFoundError(errno.ENOENT, "no such file or directory", name)
        if not target.is_dir():
            raise NotADirectoryError(errno.ENOTDIR, "not a directory", name)
        return sorted(
            (DirEntry(child.name, child.is_dir()) for child in target.iterdir()),
            key=lambda entry: entry.name,
        )


class MappingFileProvider(FileProvider):
    """Files held in memory; directories are implied by the paths."""

    def __init__(self, files: Mapping[str, bytes]) -> None:
        for key in files:
            _check_path(key)
        self._files = dict(files)

    def _is_dir(self, name: str) -> bool:
        if name == ".":
            return True
        prefix = name + "/"
        return any(key.startswith(prefix) for key in self._files)

    def open(self, name: str) -> BinaryIO:
        return io.BytesIO(self.read_file(name))

    def read_file(self, name: str) -> bytes:
        _check_path(name)
        if name in self._files:
            return self._files[name]
        if self._is_dir(name):
            raise IsADirectoryError(errno.EISDIR, "is a directory", name)
        raise FileNotFoundError(errno.ENOENT, "no such file or directory", name)

    def read_dir(self, name: str) -> list[DirEntry]:
        _check_path(name)
        if name in self._files:
            raise NotADirectoryError(errno.ENOTDIR, "not a directory", name)
        if not self._is_dir(name):
            raise FileNotFoundError(errno.ENOENT, "no such file or directory", name)
        prefix = "" if name == "." else name + "/"
        children: dict[str, bool] = {}
        for key in self._files:
            if key.startswith(prefix):
                head, sep, _ = key[len(prefix):].partition("/")
                children[head] = children.get(head, False) or bool(sep)
        return [DirEntry(child, children[child]) for child in sorted(children)]


class PrefixedFileProvider(FileProvider):
    """Exposes the sub tree of another provider below a prefix."""

    def __init__(self, delegate: FileProvider, prefix: str) -> None:
        self.delegate = delegate
        self.prefix = prefix

    def _join(self, name: str) -> str:
        joined = "/".join(part for part in (self.prefix, name) if part)
        return posixpath.normpath(joined) if joined else ""

    def open(self, name: str) -> BinaryIO:
        return self.delegate.open(self._join(name))

    def read_file(self, name: str) -> bytes:
        return self.delegate.read_file(self._join(name))

    def read_dir(self, name: str) -> list[DirEntry]:
        return self.delegate.read_dir(self._join(name))


class NoopFileProvider(FileProvider):
    """A provider without any files."""

    def open(self, name: str) -> BinaryIO:
        raise FileNotFoundError(errno.ENOENT, "no such file or directory", name)

    def read_file(self, name: str) -> bytes:
        raise FileNotFoundError(errno.ENOENT, "no such file or directory", name)

    def read_dir(self, name: str) -> list[DirEntry]:
        raise FileNotFoundError(errno.ENOENT, "no such file or directory", name)


_NOOP = NoopFileProvider()


def file_provider_stripping_prefix(provider: FileProvider, prefix: str) -> FileProvider:
    """Return a provider that resolves every name below ``prefix`` of ``provider``."""
    return PrefixedFileProvider(provider, prefix)


def noop_file_provider() -> FileProvider:
    return _NOOP


@dataclass
class FileProviders:
    """The providers for localization files, static files and templates."""

    localization: FileProvider = field(default_factory=noop_file_provider)
    static: FileProvider = field(default_factory=noop_file_provider)
    templates: FileProvider = field(default_factory=noop_file_provider)