from __future__ import annotations

import codecs
import io
import os
import re
from dataclasses import dataclass
from datetime import timezone
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import BinaryIO, Protocol, Sequence
from urllib.parse import urljoin, urlsplit

import requests

from .errors import ConfigurationError, NotFoundError, ResolutionError
from .util.path import is_url

# Characters RFC 3986 never allows unescaped in a URI reference.
_INVALID_URI_CHARS = re.compile(r"[\s<>\"{}|\\^`]")


class Resource(Protocol):
    @property
    def name(self) -> str: ...

    def exists(self) -> bool: ...

    def last_modified(self) -> float: ...

    def open(self) -> BinaryIO: ...

    def create_relative(self, path: str) -> "Resource": ...


def _mtime(path: Path) -> float:
    try:
        return path.stat().st_mtime
    except OSError:
        return 0.0


def _open_file(path: Path) -> BinaryIO:
    try:
        return path.open("rb")
    except FileNotFoundError as exc:
        raise NotFoundError(f"Resource {path} not found.") from exc


@dataclass
class FileResource:
    path: Path
    root: Path | None = None

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        if self.root is not None:
            self.root = Path(self.root)

    @property
    def name(self) -> str:
        return os.path.abspath(self.path)

    def exists(self) -> bool:
        return self.path.is_file()

    def last_modified(self) -> float:
        return _mtime(self.path)

    def open(self) -> BinaryIO:
        return _open_file(self.path)

    def create_relative(self, path: str) -> FileResource:
        # "/x.less" means the site root when one is configured
        if self.root is not None and path.startswith("/"):
            target = self.root / path.lstrip("/")
        elif Path(path).is_absolute():
            target = Path(path)
        else:
            target = self.path.parent / path
        return FileResource(target, root=self.root)

    def __str__(self) -> str:
        return self.name


@dataclass
class SearchPathResource:
    """A file whose relative imports are looked up in extra directories first.

    Each search directory is probed in order for ``directory/path``; the first
    existing file wins. Without a hit the import resolves next to this file,
    exactly like :class:`FileResource`.
    """

    path: Path
    search_paths: tuple[Path, ...] = ()

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        self.search_paths = tuple(Path(p) for p in self.search_paths)

    @property
    def name(self) -> str:
        return os.path.abspath(self.path)

    def exists(self) -> bool:
        return self.path.is_file()

    def last_modified(self) -> float:
        return _mtime(self.path)

    def open(self) -> BinaryIO:
        return _open_file(self.path)

    def create_relative(self, path: str) -> SearchPathResource:
        candidate = Path(path)
        if candidate.is_absolute():
            return SearchPathResource(candidate, self.search_paths)

        for directory in self.search_paths:
            check = directory / path
            if check.is_file():
                return SearchPathResource(check, self.search_paths)

        return SearchPathResource(self.path.parent / path, self.search_paths)

    def __str__(self) -> str:
        return self.name


@dataclass
class StringResource:
    text: str
    label: str = "<inline>"

    @property
    def name(self) -> str:
        return self.label

    def exists(self) -> bool:
        return True

    def last_modified(self) -> float:
        return 0.0

    def open(self) -> BinaryIO:
        # BOM pins the charset so decoding never depends on the caller's default
        return io.BytesIO(codecs.BOM_UTF8 + self.text.encode("utf-8"))

    def create_relative(self, path: str) -> StringResource:
        raise ConfigurationError(
            f"{self.label} cannot import {path!r}: in-memory sources must be "
            "given every import they use"
        )

    def __str__(self) -> str:
        return self.name


@dataclass
class HttpResource:
    url: str
    timeout: float | None = None

    def __post_init__(self) -> None:
        _check_uri(self.url)

    @property
    def name(self) -> str:
        return self.url

    def exists(self) -> bool:
        # reachability only; open() reports error statuses
        try:
            requests.head(self.url, timeout=self.timeout, allow_redirects=True)
        except requests.RequestException:
            return False
        return True

    def last_modified(self) -> float:
        try:
            response = requests.head(
                self.url, timeout=self.timeout, allow_redirects=True
            )
        except requests.RequestException:
            return 0.0

        value = response.headers.get("Last-Modified")
        if not value:
            return 0.0
        try:
            stamp = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return 0.0
        if stamp.tzinfo is None:
            stamp = stamp.replace(tzinfo=timezone.utc)
        return stamp.timestamp()

    def open(self) -> BinaryIO:
        try:
            response = requests.get(self.url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise NotFoundError(f"Resource {self.url} not found.") from exc
        return io.BytesIO(response.content)

    def create_relative(self, path: str) -> HttpResource:
        try:
            _check_uri(path)
            target = urljoin(self.url, path)
        except (ResolutionError, ValueError) as exc:
            raise ResolutionError(
                f"Could not resolve {path} against {self.url}"
            ) from exc
        return HttpResource(target, timeout=self.timeout)

    def __str__(self) -> str:
        return self.name


def _check_uri(value: str) -> None:
    if _INVALID_URI_CHARS.search(value):
        raise ResolutionError(f"Illegal character in URI: {value!r}")
    try:
        urlsplit(value)
    except ValueError as exc:
        raise ResolutionError(f"Malformed URI: {value!r}") from exc


def resource_for(
    location: str,
    search_paths: Sequence[Path] = (),
    root: Path | None = None,
    timeout: float | None = None,
) -> Resource:
    """Pick the backend for a location given on the command line or in code."""
    if is_url(location):
        return HttpResource(location, timeout=timeout)
    if search_paths:
        return SearchPathResource(Path(location), tuple(search_paths))
    return FileResource(Path(location), root=root)
