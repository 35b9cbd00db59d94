from __future__ import annotations

import io
from pathlib import Path

import pytest

from buildtee.core.errors import DirectoryCreationError
from buildtee.fs import TargetFile
from buildtee.remote import AppendAgent, LoopbackChannel
from buildtee.step import DESCRIPTOR, StepContext, TeeStep
from buildtee.tee import TeeFilter


def _context(workspace: TargetFile) -> tuple[StepContext, io.BytesIO]:
    console = io.BytesIO()
    return StepContext(workspace=workspace, console=console), console


def test_descriptor_exposes_tee_block_step():
    assert DESCRIPTOR.function_name == "tee"
    assert DESCRIPTOR.display_name == "Tee output to file"
    assert DESCRIPTOR.takes_implicit_block_argument
    assert DESCRIPTOR.required_context == ("workspace",)


@pytest.mark.parametrize("file", ["", "   "])
def test_file_is_required(file: str):
    with pytest.raises(ValueError):
        TeeStep(file)


def test_block_output_is_duplicated(tmp_path: Path):
    context, console = _context(TargetFile(str(tmp_path)))

    def body(child: StepContext) -> str:
        child.console.write(b"hello ")
        child.console.write(b"world\n")
        return "done"

    assert TeeStep("out.log").start(context, body) == "done"
    assert console.getvalue() == b"hello world\n"
    assert (tmp_path / "out.log").read_bytes() == b"hello world\n"


def test_rerun_appends_to_existing_file(tmp_path: Path):
    step = TeeStep("logs/out.log")
    context, _ = _context(TargetFile(str(tmp_path)))

    step.start(context, lambda child: child.console.write(b"hello world\n"))
    step.start(context, lambda child: child.console.write(b"again\n"))

    assert (tmp_path / "logs" / "out.log").read_bytes() == b"hello world\nagain\n"


def test_parent_directory_exists_before_block_runs(tmp_path: Path):
    context, _ = _context(TargetFile(str(tmp_path)))
    seen: list[bool] = []

    TeeStep("a/b/c/out.log").start(
        context, lambda child: seen.append((tmp_path / "a" / "b" / "c").is_dir())
    )

    assert seen == [True]
    assert not (tmp_path / "a" / "b" / "c" / "out.log").exists()


def test_directory_failure_aborts_before_block(tmp_path: Path):
    (tmp_path / "blocker").write_text("file")
    context, console = _context(TargetFile(str(tmp_path)))
    calls: list[StepContext] = []

    with pytest.raises(DirectoryCreationError):
        TeeStep("blocker/sub/out.log").start(context, calls.append)

    assert calls == []
    assert console.getvalue() == b""


def test_body_errors_propagate_after_output_is_kept(tmp_path: Path):
    context, _ = _context(TargetFile(str(tmp_path)))

    def body(child: StepContext) -> None:
        child.console.write(b"partial\n")
        raise RuntimeError("build failed")

    with pytest.raises(RuntimeError, match="build failed"):
        TeeStep("out.log").start(context, body)
    assert (tmp_path / "out.log").read_bytes() == b"partial\n"


def test_child_context_chains_filters(tmp_path: Path):
    outer = TeeFilter(TargetFile(str(tmp_path / "outer.log")))
    context = StepContext(
        workspace=TargetFile(str(tmp_path)), console=io.BytesIO(), console_filter=outer
    )

    with TeeStep("inner.log").open(context) as child:
        assert child.workspace == context.workspace
        assert child.console_filter is not None
        assert child.console_filter is not outer
        child.console.write(b"x")

    assert context.console.getvalue() == b"x"
    assert (tmp_path / "inner.log").read_bytes() == b"x"


def test_remote_workspace_matches_local(tmp_path: Path):
    local_ws = tmp_path / "local"
    remote_root = tmp_path / "remote"
    remote_root.mkdir()
    remote_ws = TargetFile("ws", LoopbackChannel(AppendAgent(remote_root)))

    def body(child: StepContext) -> None:
        for chunk in (b"step 1\n", b"step 2\n"):
            child.console.write(chunk)

    TeeStep("logs/build.log").start(_context(TargetFile(str(local_ws)))[0], body)
    TeeStep("logs/build.log").start(_context(remote_ws)[0], body)

    assert (local_ws / "logs" / "build.log").read_bytes() == b"step 1\nstep 2\n"
    assert (remote_root / "ws" / "logs" / "build.log").read_bytes() == b"step 1\nstep 2\n"
