from __future__ import annotations


class LessSourceError(RuntimeError):
    """Raised when a LESS source graph cannot be built."""


class NotFoundError(LessSourceError):
    """A resource (the root or one of its imports) does not exist."""


class ResolutionError(LessSourceError):
    """An import path cannot be turned into a resource."""


class DecodeError(LessSourceError):
    """Resource bytes cannot be decoded with the chosen charset."""


class ConfigurationError(LessSourceError, ValueError):
    """An in-memory source imports something it was not given."""


class CyclicImportError(LessSourceError):
    def __init__(self, chain: tuple[str, ...]) -> None:
        self.chain = chain
        super().__init__("Cyclic import: " + " -> ".join(chain))


class CompileError(RuntimeError):
    """Raised when lessc rejects the flattened source."""

    def __init__(self, name: str, detail: str) -> None:
        self.name = name
        self.detail = detail
        super().__init__(f"{name}: {detail}" if detail else name)
