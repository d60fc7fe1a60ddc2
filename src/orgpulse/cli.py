from __future__ import annotations

import logging
import shlex

import typer
from rich.console import Console
from rich.logging import RichHandler

from orgpulse.commands.analyze import analyze_app
from orgpulse.commands.config import config_app
from orgpulse.records import GIT_LOG_ARGS

app = typer.Typer(
    name="orgpulse",
    help="orgpulse - organizational engagement metrics from a git commit log.",
    add_completion=False,
    no_args_is_help=True,
)

app.add_typer(config_app, name="config")
app.add_typer(analyze_app, name="analyze")

console = Console(stderr=True)


@app.callback()
def _root_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@app.command("git-format")
def git_format() -> None:
    """
    Print the git invocation whose output `orgpulse analyze` reads.
    """
    typer.echo(" ".join(shlex.quote(a) for a in GIT_LOG_ARGS) + " > commits.log")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
