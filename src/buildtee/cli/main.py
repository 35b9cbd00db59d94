from __future__ import annotations

import logging
import subprocess
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from buildtee.config import AgentSettings, load_settings, parse_address
from buildtee.core.errors import TeeIOError
from buildtee.fs.target import TargetFile
from buildtee.remote.channel import HttpChannel, connect
from buildtee.remote.server import serve
from buildtee.step import StepContext, TeeStep

app = typer.Typer(add_completion=False, no_args_is_help=True, help="Mirror build output into files.")
console = Console(stderr=True)

_CHUNK_SIZE = 64 * 1024


def configure_logging(verbose: bool = False) -> None:
    """Route package logging through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
        force=True,
    )


def _resolve_settings(
    config: Path | None,
    address: str | None,
    authkey: str | None,
    root: Path | None = None,
) -> AgentSettings:
    overrides: dict[str, object] = {"authkey": authkey, "root": root}
    if address:
        overrides["host"], overrides["port"] = parse_address(address)
    try:
        return load_settings(config, **overrides)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    configure_logging(verbose)


@app.command(
    "tee",
    context_settings={"ignore_unknown_options": True},
)
def tee_command(
    file: str = typer.Argument(..., help="File receiving a copy of the output (appended)."),
    command: list[str] = typer.Argument(..., metavar="COMMAND...", help="Command to run."),
    workspace: str | None = typer.Option(
        None,
        "--workspace",
        "-w",
        help="Directory FILE is relative to (defaults to cwd, or the agent root).",
    ),
    agent: str | None = typer.Option(
        None, "--agent", help="host:port of an append agent owning the workspace."
    ),
    authkey: str | None = typer.Option(None, "--authkey", help="Shared secret for the agent."),
    config: Path | None = typer.Option(
        None, "--config", exists=True, dir_okay=False, help="YAML file with agent settings."
    ),
):
    """Run COMMAND, streaming its output to the console and appending it to FILE."""
    channel: HttpChannel | None = None
    if agent or config:
        channel = connect(_resolve_settings(config, agent, authkey))
        workspace_target = TargetFile(workspace or ".", channel)
    else:
        workspace_target = TargetFile(workspace or str(Path.cwd()))

    context = StepContext(workspace=workspace_target, console=sys.stdout.buffer)
    try:
        try:
            returncode = _run_teed(TeeStep(file), context, command)
        except TeeIOError as exc:
            console.print(f"[red]{exc}[/red]")
            raise typer.Exit(2)
        except FileNotFoundError as exc:
            console.print(f"[red]Command not found: {exc.filename}[/red]")
            raise typer.Exit(127)
    finally:
        if channel is not None:
            channel.close()
    raise typer.Exit(returncode)


def _run_teed(step: TeeStep, context: StepContext, command: list[str]) -> int:
    with step.open(context) as child:
        proc = subprocess.Popen(command, stdout=subprocess.PIPE, stderr=subprocess.STDOUT)
        stdout = proc.stdout
        assert stdout is not None
        try:
            for chunk in iter(lambda: stdout.read1(_CHUNK_SIZE), b""):
                child.console.write(chunk)
        except BaseException:
            proc.kill()
            raise
        finally:
            stdout.close()
            returncode = proc.wait()
    return returncode


@app.command("agent")
def agent_command(
    listen: str | None = typer.Option(None, "--listen", "-l", help="host:port to listen on."),
    root: Path | None = typer.Option(
        None, "--root", file_okay=False, help="Directory relative paths resolve against."
    ),
    authkey: str | None = typer.Option(None, "--authkey", help="Shared secret clients must present."),
    config: Path | None = typer.Option(
        None, "--config", exists=True, dir_okay=False, help="YAML file with agent settings."
    ),
):
    """Serve append requests for files under ROOT."""
    settings = _resolve_settings(config, listen, authkey, root)
    console.print(f"[bold]Append agent[/bold] serving {settings.root.absolute()} on {settings.address}")
    try:
        serve(settings)
    except KeyboardInterrupt:
        console.print("Agent stopped.")


if __name__ == "__main__":
    app()
