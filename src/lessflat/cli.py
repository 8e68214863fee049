from __future__ import annotations

import datetime as dt
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

import humanize
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

from .compiler import CompilerSettings, LessCompiler
from .errors import CompileError, LessSourceError
from .output import LocalCssOutput
from .resource import resource_for
from .scanner import iter_imports
from .source import DEFAULT_CHARSET, LessSource
from .util.path import default_output_path


console = Console()
app = typer.Typer(add_completion=False, rich_markup_mode="rich")


def configure_logging(log_target: Optional[str], verbose: bool = False) -> logging.Logger:
    logger = logging.getLogger("lessflat")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False
    logger.handlers.clear()

    if log_target in {"-", "--"}:
        handler: logging.Handler = logging.StreamHandler(sys.stdout)
    elif log_target:
        log_path = Path(log_target)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path)
        console.print(f"[dim]Logging to {log_path}[/dim]")
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG if verbose else logging.WARNING)

    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(handler)
    return logger


def load_source(
    location: str,
    include: Optional[List[Path]],
    root: Optional[Path],
    charset: str,
) -> LessSource:
    return LessSource(resource_for(location, include or (), root), charset)


@app.command("compile")
def compile_command(
    source: str = typer.Argument(..., help="LESS file or http(s) URL to compile"),
    output: Optional[Path] = typer.Argument(
        None,
        dir_okay=False,
        help="Where to write the CSS (defaults to SOURCE with a .css suffix)",
    ),
    include: Optional[List[Path]] = typer.Option(
        None,
        "--include",
        "-I",
        file_okay=False,
        help="Directory searched for imports before the importing file's own; repeatable",
    ),
    root: Optional[Path] = typer.Option(
        None,
        "--root",
        file_okay=False,
        help="Directory that imports starting with '/' are resolved against",
    ),
    force: bool = typer.Option(
        True,
        "--force/--no-force",
        help="Compile even when the output is newer than the source and its imports",
    ),
    compress: bool = typer.Option(False, "--compress", "-x", help="Minify the CSS"),
    charset: str = typer.Option(
        DEFAULT_CHARSET, "--charset", help="Charset of sources without a BOM"
    ),
    lessc: Optional[str] = typer.Option(
        None, "--lessc", help="lessc executable (overrides LESSC_BIN)"
    ),
    logfile: Optional[str] = typer.Option(
        None,
        "--logfile",
        help="Path to log file (use '--' for stdout, default logs warnings to stderr)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every import"),
):
    """Flatten a LESS stylesheet's imports and compile it to CSS."""

    load_dotenv()
    logger = configure_logging(logfile, verbose)

    target = output or default_output_path(source)
    settings = CompilerSettings.from_env()
    if lessc:
        settings.binary = lessc
    if compress:
        settings.compress = True
    compiler = LessCompiler(settings)

    start = time.monotonic()
    try:
        less_source = load_source(source, include, root, charset)
        compiled = compiler.compile_to(
            less_source, LocalCssOutput(target, settings.encoding), force=force
        )
    except (LessSourceError, CompileError, OSError) as exc:
        logger.error("failed source=%s error=%s", source, exc)
        state = _status_label("error", "red")
        console.print(
            f"{state} {escape(source)} [dim]{type(exc).__name__}: {escape(str(exc))}[/dim]"
        )
        raise typer.Exit(code=1)

    duration = time.monotonic() - start
    if compiled:
        state = _status_label("done", "green")
        console.print(
            f"{state} {escape(source)} → {escape(str(target))} "
            f"[dim]• {len(less_source.imports)} import(s) in {format_duration(duration)}[/dim]"
        )
    else:
        state = _status_label("skip", "yellow")
        console.print(f"{state} {escape(str(target))} [dim]is up to date[/dim]")


@app.command("imports")
def imports_command(
    source: str = typer.Argument(..., help="LESS file or http(s) URL to inspect"),
    include: Optional[List[Path]] = typer.Option(
        None, "--include", "-I", file_okay=False, help="Extra import search directory"
    ),
    root: Optional[Path] = typer.Option(None, "--root", file_okay=False),
    charset: str = typer.Option(DEFAULT_CHARSET, "--charset"),
):
    """Show the LESS files SOURCE inlines, with their modification times,
    and the CSS imports it leaves for the browser."""

    try:
        less_source = load_source(source, include, root, charset)
    except (LessSourceError, OSError) as exc:
        console.print(f"[red]{type(exc).__name__}:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    tree = Tree(f"[bold]{escape(less_source.name)}[/bold] {_modified_label(less_source)}")
    _add_imports(tree, less_source)
    console.print(tree)
    newest = format_timestamp(less_source.last_modified_including_imports())
    console.print(f"[bold]Newest change including imports:[/bold] {newest}")


def main() -> None:
    app()


def _add_imports(branch: Tree, source: LessSource) -> None:
    for path, imported in source.imports.items():
        node = branch.add(f"{escape(path)} {_modified_label(imported)}")
        _add_imports(node, imported)
    for directive in iter_imports(source.content):
        if not directive.inline:
            branch.add(f"[dim]{escape(directive.path)} (css, left as is)[/dim]")


def _modified_label(source: LessSource) -> str:
    return f"[dim]{format_timestamp(source.last_modified())}[/dim]"


def format_timestamp(timestamp: float) -> str:
    if timestamp <= 0:
        return "unknown"
    return humanize.naturaltime(dt.datetime.fromtimestamp(timestamp))


def format_duration(seconds: float | None) -> str:
    if seconds is None:
        return "n/a"
    try:
        value = float(seconds)
    except (TypeError, ValueError):
        return "n/a"
    if value < 0:
        return "n/a"
    return humanize.precisedelta(dt.timedelta(seconds=value), minimum_unit="milliseconds")


def _status_label(label: str, color: str, width: int = 6) -> str:
    padded = f"{label:<{width}}"
    return f"[{color}]{padded}[/{color}]"
