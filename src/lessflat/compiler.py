from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Mapping, Sequence

from .errors import CompileError
from .output import LocalCssOutput, Output
from .resource import StringResource, resource_for
from .source import DEFAULT_CHARSET, LessSource

log = logging.getLogger(__name__)

TRUTHY = {"1", "true", "yes", "on"}


def should_compile(
    force: bool,
    output_exists: bool,
    output_last_modified: float,
    source_last_modified: float,
) -> bool:
    """Whether the CSS needs (re)building.

    ``source_last_modified`` is the source's modification time including its
    imports, so touching any imported file makes the output stale.
    """
    return force or not output_exists or output_last_modified < source_last_modified


@dataclass
class CompilerSettings:
    binary: str = "lessc"
    options: tuple[str, ...] = ()
    compress: bool = False
    encoding: str = "utf-8"

    @staticmethod
    def from_env() -> "CompilerSettings":
        return CompilerSettings(
            binary=os.environ.get("LESSC_BIN", "").strip() or "lessc",
            options=tuple(shlex.split(os.environ.get("LESSC_OPTIONS", ""))),
            compress=os.environ.get("LESSC_COMPRESS", "").strip().lower() in TRUTHY,
            encoding=os.environ.get("LESSC_ENCODING", "").strip() or "utf-8",
        )

    def command(self, executable: str) -> list[str]:
        args = [executable, *self.options]
        if self.compress and "--compress" not in args and "-x" not in args:
            args.append("--compress")
        # read the flattened source from stdin
        args.append("-")
        return args


class LessCompiler:
    """Turns flattened LESS into CSS by piping it through ``lessc``.

    The executable is looked up once, on first use. Invocations are
    serialized, so one compiler can be shared between threads.
    """

    def __init__(self, settings: CompilerSettings | None = None) -> None:
        self.settings = settings or CompilerSettings()
        self._lock = Lock()
        self._executable: str | None = None

    def compile(self, text: str, name: str = "<inline>") -> str:
        with self._lock:
            executable = self._locate()
            args = self.settings.command(executable)
            start = time.monotonic()
            try:
                proc = subprocess.run(
                    args,
                    input=text,
                    capture_output=True,
                    encoding="utf-8",
                )
            except OSError as exc:
                raise CompileError(name, str(exc)) from exc

        if proc.returncode:
            detail = proc.stderr.strip() or f"lessc exited with status {proc.returncode}"
            raise CompileError(name, detail)

        log.debug("Compiled %s in %.3fs", name, time.monotonic() - start)
        return proc.stdout

    def compile_source(self, source: LessSource) -> str:
        return self.compile(source.normalized_content, source.name)

    def compile_file(
        self,
        path: str | Path,
        search_paths: Sequence[Path] = (),
        charset: str = DEFAULT_CHARSET,
    ) -> str:
        source = LessSource(resource_for(str(path), search_paths), charset)
        return self.compile_source(source)

    def compile_string(
        self, text: str, imports: Mapping[str, LessSource] | None = None
    ) -> str:
        return self.compile_source(LessSource(StringResource(text), imports=imports))

    def compile_to(
        self,
        source: LessSource,
        output: Output | str | Path,
        force: bool = True,
    ) -> bool:
        """Compile ``source`` into ``output`` unless the output is current.

        Returns whether lessc actually ran.
        """
        if isinstance(output, (str, Path)):
            output = LocalCssOutput(Path(output), encoding=self.settings.encoding)

        if not should_compile(
            force,
            output.exists(),
            output.last_modified(),
            source.last_modified_including_imports(),
        ):
            log.info("up to date source=%s", source.name)
            return False

        css = self.compile_source(source)
        saved = output.save(css)
        log.info("compiled source=%s output=%s", source.name, saved)
        return True

    def _locate(self) -> str:
        if self._executable is None:
            found = shutil.which(self.settings.binary)
            if found is None:
                raise CompileError(
                    self.settings.binary,
                    "lessc executable not found; install it with "
                    "`npm install -g less` or set LESSC_BIN",
                )
            log.debug("Using lessc at %s", found)
            self._executable = found
        return self._executable
