from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

import pytest
from typer.testing import CliRunner

from lessflat.cli import app, format_duration, format_timestamp

runner = CliRunner()


class FakeLessc:
    def __init__(self, stdout: str = ".a{}\n", stderr: str = "", returncode: int = 0) -> None:
        self.stdout = stdout
        self.stderr = stderr
        self.returncode = returncode
        self.calls: list[tuple[list[str], str]] = []

    def __call__(self, args, **kwargs):
        self.calls.append((list(args), kwargs["input"]))
        return subprocess.CompletedProcess(args, self.returncode, self.stdout, self.stderr)


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger("lessflat")
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()


@pytest.fixture
def lessc(monkeypatch: pytest.MonkeyPatch) -> FakeLessc:
    fake = FakeLessc()
    monkeypatch.delenv("LESSC_BIN", raising=False)
    monkeypatch.delenv("LESSC_OPTIONS", raising=False)
    monkeypatch.delenv("LESSC_COMPRESS", raising=False)
    monkeypatch.setattr("lessflat.compiler.shutil.which", lambda name: f"/opt/bin/{name}")
    monkeypatch.setattr("lessflat.compiler.subprocess.run", fake)
    return fake


@pytest.fixture
def project(tmp_path: Path) -> Path:
    (tmp_path / "shared").mkdir()
    (tmp_path / "shared" / "vars.less").write_text("@c: red;", encoding="utf-8")
    (tmp_path / "main.less").write_text(
        '@import "vars";\n@import "reset.css";\n.a { color: @c; }\n', encoding="utf-8"
    )
    return tmp_path


def test_compile_default_output(project: Path, lessc: FakeLessc) -> None:
    result = runner.invoke(
        app, ["compile", str(project / "main.less"), "-I", str(project / "shared")]
    )

    assert result.exit_code == 0, result.output
    assert "done" in result.output
    assert (project / "main.css").read_text(encoding="utf-8") == ".a{}\n"
    assert lessc.calls[0][1] == '@c: red;\n@import "reset.css";\n.a { color: @c; }\n'


def test_compile_explicit_output(project: Path, lessc: FakeLessc) -> None:
    target = project / "build" / "site.css"

    result = runner.invoke(
        app,
        ["compile", str(project / "main.less"), str(target), "-I", str(project / "shared")],
    )

    assert result.exit_code == 0, result.output
    assert target.read_text(encoding="utf-8") == ".a{}\n"


def test_compile_skips_up_to_date_output(project: Path, lessc: FakeLessc) -> None:
    for name, mtime in (("main.less", 100), ("shared/vars.less", 100)):
        os.utime(project / name, (mtime, mtime))
    target = project / "main.css"
    target.write_text("cached", encoding="utf-8")
    os.utime(target, (200, 200))

    result = runner.invoke(
        app,
        ["compile", str(project / "main.less"), "-I", str(project / "shared"), "--no-force"],
    )

    assert result.exit_code == 0, result.output
    assert "skip" in result.output
    assert lessc.calls == []
    assert target.read_text(encoding="utf-8") == "cached"


def test_compile_compress_flag(project: Path, lessc: FakeLessc) -> None:
    result = runner.invoke(
        app, ["compile", str(project / "main.less"), "-I", str(project / "shared"), "-x"]
    )

    assert result.exit_code == 0, result.output
    assert lessc.calls[0][0] == ["/opt/bin/lessc", "--compress", "-"]


def test_compile_lessc_option(project: Path, lessc: FakeLessc) -> None:
    result = runner.invoke(
        app,
        [
            "compile",
            str(project / "main.less"),
            "-I",
            str(project / "shared"),
            "--lessc",
            "lessc4",
        ],
    )

    assert result.exit_code == 0, result.output
    assert lessc.calls[0][0][0] == "/opt/bin/lessc4"


def test_compile_missing_import(project: Path, lessc: FakeLessc) -> None:
    result = runner.invoke(app, ["compile", str(project / "main.less")])

    assert result.exit_code == 1
    assert "NotFoundError" in result.output
    assert lessc.calls == []
    assert not (project / "main.css").exists()


def test_compile_reports_lessc_errors(
    project: Path, monkeypatch: pytest.MonkeyPatch, lessc: FakeLessc
) -> None:
    monkeypatch.setattr(
        "lessflat.compiler.subprocess.run",
        FakeLessc(stderr="ParseError: missing closing `}`", returncode=1),
    )

    result = runner.invoke(
        app, ["compile", str(project / "main.less"), "-I", str(project / "shared")]
    )

    assert result.exit_code == 1
    assert "CompileError" in result.output
    assert not (project / "main.css").exists()


def test_compile_reports_unwritable_output(project: Path, lessc: FakeLessc) -> None:
    blocked = project / "main.less" / "site.css"

    result = runner.invoke(
        app,
        ["compile", str(project / "main.less"), str(blocked), "-I", str(project / "shared")],
    )

    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "error" in result.output


def test_compile_logs_to_file(project: Path, lessc: FakeLessc) -> None:
    log_path = project / "logs" / "lessflat.log"

    result = runner.invoke(
        app,
        [
            "compile",
            str(project / "main.less"),
            "-I",
            str(project / "shared"),
            "--logfile",
            str(log_path),
        ],
    )

    assert result.exit_code == 0, result.output
    assert "compiled source=" in log_path.read_text()


def test_imports_tree(project: Path) -> None:
    result = runner.invoke(
        app, ["imports", str(project / "main.less"), "-I", str(project / "shared")]
    )

    assert result.exit_code == 0, result.output
    assert "vars.less" in result.output
    assert "reset.css (css, left as is)" in result.output
    assert "Newest change including imports" in result.output


def test_imports_missing_source(tmp_path: Path) -> None:
    result = runner.invoke(app, ["imports", str(tmp_path / "nope.less")])

    assert result.exit_code == 1
    assert "NotFoundError" in result.output


def test_format_timestamp_unknown() -> None:
    assert format_timestamp(0.0) == "unknown"


def test_format_duration_invalid() -> None:
    assert format_duration(None) == "n/a"
    assert format_duration(-1) == "n/a"
