from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


class Output(Protocol):
    def exists(self) -> bool: ...

    def last_modified(self) -> float: ...

    def save(self, css: str) -> str: ...


@dataclass
class LocalCssOutput:
    path: Path
    encoding: str = "utf-8"

    def __post_init__(self) -> None:
        self.path = Path(self.path)

    def exists(self) -> bool:
        return self.path.exists()

    def last_modified(self) -> float:
        try:
            return self.path.stat().st_mtime
        except OSError:
            return 0.0

    def save(self, css: str) -> str:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._atomic_write(css)
        return str(self.path)

    def _atomic_write(self, data: str) -> None:
        tmp_fd, tmp_path = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(tmp_fd, "w", encoding=self.encoding) as fh:
                fh.write(data)
            os.replace(tmp_path, self.path)
        finally:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
