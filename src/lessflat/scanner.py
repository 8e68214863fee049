from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator

IMPORT_PATTERN = re.compile(
    r"""
    ^(?!\s*//\s*).*                     # full-line // comments never import
    (?P<directive>
        @import\s+
        (?:url\(|\((?P<kind>less|css)\))?
        \s*["'](?P<path>.+)\s*["']
        \)?
        (?P<media>.*)                   # trailing media query list
        ;
    )
    .*$
    """,
    re.MULTILINE | re.VERBOSE,
)

LESS_EXTENSION = re.compile(r".*\.(le?|c)ss$")


@dataclass(frozen=True, slots=True)
class ImportDirective:
    raw_path: str
    path: str
    kind: str
    media: str
    start: int
    end: int
    resume: int

    @property
    def inline(self) -> bool:
        return self.kind == "less"


def normalize_import_path(path: str) -> str:
    """Append ``.less`` to import paths without a stylesheet extension."""
    return path if LESS_EXTENSION.match(path) else path + ".less"


def import_kind(path: str, hint: str | None = None) -> str:
    if hint:
        return hint
    return "css" if path.rsplit(".", 1)[-1] == "css" else "less"


def find_import(text: str, pos: int = 0) -> ImportDirective | None:
    match = IMPORT_PATTERN.search(text, pos)
    if match is None:
        return None

    raw_path = match.group("path")
    path = normalize_import_path(raw_path)
    return ImportDirective(
        raw_path=raw_path,
        path=path,
        kind=import_kind(path, match.group("kind")),
        media=match.group("media") or "",
        start=match.start("directive"),
        end=match.end("directive"),
        resume=match.end(),
    )


def iter_imports(text: str) -> Iterator[ImportDirective]:
    """Yield every directive in ``text`` without resolving anything."""
    pos = 0
    while True:
        directive = find_import(text, pos)
        if directive is None:
            return
        yield directive
        pos = directive.resume
