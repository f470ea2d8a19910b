import logging
import shutil
from pathlib import Path

from typer.testing import CliRunner

from assetpipe.cli import app

from conftest import write

runner = CliRunner()


def test_list_shows_classes_and_bindings(project: Path, monkeypatch) -> None:
    monkeypatch.chdir(project)
    result = runner.invoke(app, ["list"])
    assert result.exit_code == 0, result.output
    assert "styles-source" in result.output
    assert "- markup: seq(clean:markup[dev], transform:markup[dev], reload)" in result.output


def test_check_rejects_overlapping_sources(project: Path) -> None:
    cfg = write(project, "assetpipe.yaml", "assets:\n  server-scripts:\n    sources: ['src/js/*.js']\n")
    result = runner.invoke(app, ["check", "--config", str(cfg)])
    assert result.exit_code == 2
    assert "matches both" in result.output


def test_run_release_succeeds(project: Path, monkeypatch) -> None:
    monkeypatch.chdir(project)
    result = runner.invoke(app, ["run-release"])
    assert result.exit_code == 0, result.output
    css = (project / "dist/assets/css/main.css").read_text()
    assert ".content" in css and ".unused-thing" not in css


def test_run_release_names_failing_stage(project: Path, monkeypatch) -> None:
    monkeypatch.chdir(project)
    write(project, "src/scss/broken.scss", ".x { color: red;\n")
    result = runner.invoke(app, ["run-release"])
    assert result.exit_code == 1
    assert "transform:styles-source[release]" in result.output


def test_run_dev_exits_non_zero_when_initial_build_fails(project: Path, monkeypatch) -> None:
    monkeypatch.chdir(project)
    write(project, "src/scss/broken.scss", ".x { color: red;\n")
    result = runner.invoke(app, ["run-dev", "--no-serve"])
    assert result.exit_code == 1
    assert "Initial build failed" in result.output


def test_run_release_writes_log_file(project: Path, monkeypatch) -> None:
    monkeypatch.chdir(project)
    log_path = project / "logs/build.log"
    root_logger = logging.getLogger("assetpipe")
    before = list(root_logger.handlers)
    try:
        result = runner.invoke(app, ["run-release", "--log-file", str(log_path)])
    finally:
        for handler in root_logger.handlers[:]:
            if handler not in before:
                root_logger.removeHandler(handler)
                handler.close()
    assert result.exit_code == 0, result.output
    text = log_path.read_text(encoding="utf-8")
    assert "| assetpipe.pipeline | INFO | Release build:" in text
    assert "Release written to" in text


def test_run_dev_reports_unwatchable_path(project: Path, monkeypatch) -> None:
    monkeypatch.chdir(project)
    shutil.rmtree(project / "src/php")
    result = runner.invoke(app, ["run-dev", "--no-serve"])
    assert result.exit_code == 1
    assert "Cannot watch" in result.output
    assert "src/php" in result.output


def test_run_dev_reports_busy_port(project: Path, monkeypatch) -> None:
    import socket

    monkeypatch.chdir(project)
    with socket.socket() as taken:
        taken.bind(("127.0.0.1", 0))
        taken.listen(1)
        port = taken.getsockname()[1]
        result = runner.invoke(app, ["run-dev", "--port", str(port)])
    assert result.exit_code == 1
    assert "Cannot start the dev server" in result.output
    assert str(port) in result.output
