from __future__ import annotations

from pathlib import Path
from urllib.parse import urlparse

HTTP_SCHEMES = ("http:", "https:")


def is_url(location: str) -> bool:
    return location.startswith(HTTP_SCHEMES)


def default_output_path(source: str, suffix: str = ".css") -> Path:
    """Where ``lessflat compile`` writes CSS when no output is given.

    Local sources get their suffix swapped (``site/main.less`` becomes
    ``site/main.css``). Remote sources are written to the working directory
    under the stem of the last URL path segment.
    """
    if not source:
        raise ValueError("Source location must be provided")

    if is_url(source):
        segment = urlparse(source).path.rsplit("/", 1)[-1]
        stem = Path(segment).stem or "output"
        return Path(stem + suffix)

    path = Path(source)
    if not path.name:
        raise ValueError(f"Source has no file name: {source}")
    return path.with_suffix(suffix)
