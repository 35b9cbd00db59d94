import socket
import sys
from pathlib import Path

import pytest
from typer.testing import CliRunner

from buildtee.cli.main import app

_HELLO = "import sys; sys.stdout.write('hello '); sys.stdout.flush(); sys.stdout.write('world\\n')"


@pytest.mark.filterwarnings("error::DeprecationWarning:buildtee")
def test_tee_command_mirrors_output(tmp_path: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(
        app,
        ["tee", "--workspace", str(tmp_path), "logs/run.log", "--", sys.executable, "-c", _HELLO],
        prog_name="buildtee",
    )

    assert result.exit_code == 0, result.output
    assert "hello world" in result.stdout
    assert (tmp_path / "logs" / "run.log").read_bytes() == b"hello world\n"


def test_tee_command_appends_and_returns_child_status(tmp_path: Path) -> None:
    runner = CliRunner()
    log = tmp_path / "run.log"
    log.write_bytes(b"hello world\n")

    result = runner.invoke(
        app,
        [
            "tee",
            str(log),
            "--",
            sys.executable,
            "-c",
            "import sys; print('again'); sys.exit(3)",
        ],
        prog_name="buildtee",
    )

    assert result.exit_code == 3
    assert log.read_bytes().replace(b"\r\n", b"\n") == b"hello world\nagain\n"


def test_tee_command_reports_directory_failure(tmp_path: Path) -> None:
    runner = CliRunner()
    (tmp_path / "blocker").write_text("file")
    marker = tmp_path / "ran"

    result = runner.invoke(
        app,
        [
            "tee",
            "--workspace",
            str(tmp_path),
            "blocker/sub/run.log",
            "--",
            sys.executable,
            "-c",
            f"open({str(marker)!r}, 'w').close()",
        ],
        prog_name="buildtee",
    )

    assert result.exit_code == 2
    assert "Failed to create" in result.output
    assert not marker.exists()


def test_tee_command_rejects_file_as_log_directory(tmp_path: Path) -> None:
    runner = CliRunner()
    (tmp_path / "blocker").write_text("file")
    marker = tmp_path / "ran"

    result = runner.invoke(
        app,
        [
            "tee",
            "--workspace",
            str(tmp_path),
            "blocker/run.log",
            "--",
            sys.executable,
            "-c",
            f"open({str(marker)!r}, 'w').close()",
        ],
        prog_name="buildtee",
    )

    assert result.exit_code == 2
    assert "Failed to create" in result.output
    assert not marker.exists()
    assert (tmp_path / "blocker").read_text() == "file"


def test_tee_command_missing_executable(tmp_path: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(
        app,
        ["tee", "--workspace", str(tmp_path), "run.log", "--", "buildtee-no-such-command"],
        prog_name="buildtee",
    )

    assert result.exit_code == 127


def test_tee_command_unreachable_agent(tmp_path: Path) -> None:
    runner = CliRunner()
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    marker = tmp_path / "ran"

    result = runner.invoke(
        app,
        [
            "tee",
            "--agent",
            f"127.0.0.1:{port}",
            "run.log",
            "--",
            sys.executable,
            "-c",
            f"open({str(marker)!r}, 'w').close()",
        ],
        prog_name="buildtee",
    )

    assert result.exit_code == 2
    assert not marker.exists()
