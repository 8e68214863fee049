from __future__ import annotations

import codecs
import logging
from typing import Mapping

from .errors import CyclicImportError, DecodeError, NotFoundError
from .resource import HttpResource, Resource, StringResource
from .scanner import ImportDirective, find_import
from .util.path import is_url

log = logging.getLogger(__name__)

DEFAULT_CHARSET = "utf-8"

# UTF-32 LE must be tried before UTF-16 LE: their BOMs share a prefix.
_BOMS = (
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF32_LE, "utf-32-le"),
    (codecs.BOM_UTF32_BE, "utf-32-be"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)


def decode(data: bytes, charset: str, name: str = "<bytes>") -> str:
    """Decode resource bytes; a byte order mark overrides ``charset``."""
    for bom, encoding in _BOMS:
        if data.startswith(bom):
            log.debug("BOM found %s in %s", encoding, name)
            data = data[len(bom):]
            charset = encoding
            break
    else:
        log.debug("Using charset %s for %s", charset, name)

    try:
        return data.decode(charset)
    except (LookupError, UnicodeDecodeError) as exc:
        raise DecodeError(f"Cannot decode {name} as {charset}: {exc}") from exc


class LessSource:
    """A LESS stylesheet with its ``@import`` graph resolved.

    Building one reads the resource, then repeatedly scans the text for
    import directives. LESS imports are replaced by the imported source's own
    flattened text (wrapped in ``@media`` when the directive carries a media
    query), repeated imports of the same path are dropped, and CSS imports
    are left for the browser. The result is ``normalized_content``.

    ``imports`` maps each inlined path, as first written in this file after
    extension inference, to its child source. It is insertion ordered.

    Sources built from a :class:`~lessflat.resource.StringResource` have
    nothing to resolve paths against, so every LESS import they use, URLs
    included, must be supplied through ``imports`` when constructing them.
    A supplied source is inlined where it is first imported, like a resolved
    one, and dropped as a repeat after that.

    Any failure while resolving the graph propagates out of the constructor.
    """

    def __init__(
        self,
        resource: Resource,
        charset: str = DEFAULT_CHARSET,
        imports: Mapping[str, LessSource] | None = None,
        *,
        _chain: tuple[str, ...] = (),
    ) -> None:
        if resource is None:
            raise ValueError("Resource must not be None.")

        name = resource.name
        if name in _chain:
            raise CyclicImportError(_chain + (name,))
        if not resource.exists():
            raise NotFoundError(f"Resource {name} not found.")

        self.resource = resource
        self.charset = charset
        self.imports: dict[str, LessSource] = {}
        self.content = self.normalized_content = self._load()
        self._resolve_imports(dict(imports or {}), _chain + (name,))

    @property
    def name(self) -> str:
        return self.resource.name

    def last_modified(self) -> float:
        return self.resource.last_modified()

    def last_modified_including_imports(self) -> float:
        """Newest modification time of this source or anything it imports."""
        last_modified = self.last_modified()
        for imported in self.imports.values():
            last_modified = max(last_modified, imported.last_modified_including_imports())
        return last_modified

    def _load(self) -> str:
        with self.resource.open() as fh:
            data = fh.read()
        return decode(data, self.charset, self.name)

    def _resolve_imports(
        self, seeds: dict[str, LessSource], chain: tuple[str, ...]
    ) -> None:
        text = self.normalized_content
        pos = 0
        while True:
            directive = find_import(text, pos)
            if directive is None:
                break
            if not directive.inline:
                log.debug("Passing through %s in %s", directive.path, self.name)
                pos = directive.resume
                continue

            if directive.path in self.imports:
                log.debug("Dropping repeated import %s in %s", directive.path, self.name)
                replacement = ""
            else:
                imported = self._import(directive, seeds, chain)
                self.imports[directive.path] = imported
                replacement = _wrap_media(imported.normalized_content, directive.media)

            # splicing shifts every later offset, so scan again from the top
            text = text[: directive.start] + replacement + text[directive.end :]
            pos = 0

        self.normalized_content = text

    def _import(
        self,
        directive: ImportDirective,
        seeds: dict[str, LessSource],
        chain: tuple[str, ...],
    ) -> LessSource:
        for key in (directive.raw_path, directive.path):
            seeded = seeds.get(key)
            if seeded is not None:
                log.debug("Importing %s from supplied imports", directive.path)
                return seeded

        log.debug("Importing %s into %s", directive.path, self.name)
        return LessSource(
            self._imported_resource(directive.path), self.charset, _chain=chain
        )

    def _imported_resource(self, path: str) -> Resource:
        if is_url(path) and not isinstance(self.resource, StringResource):
            return HttpResource(path)
        return self.resource.create_relative(path)

    def __repr__(self) -> str:
        return f"LessSource({self.name!r}, imports={list(self.imports)!r})"


def _wrap_media(content: str, media: str) -> str:
    if not media:
        return content
    return f"@media{media}{{\n{content}}}\n"
