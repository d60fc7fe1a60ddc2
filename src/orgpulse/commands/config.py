from __future__ import annotations

import datetime as dt
from pathlib import Path

import typer
from rich.console import Console

from orgpulse.config import (
    DEFAULT_FIELD_SEPARATOR,
    DEFAULT_PERSONAL_DOMAINS,
    OrgPulseConfig,
    default_config_path,
    load_config,
    normalize_granularity,
    normalize_week_start,
    save_config,
)

config_app = typer.Typer(help="Manage allowlists, cutoff dates and reporting defaults.", add_completion=False)
console = Console()


@config_app.command("init")
def config_init(
    cutoff_date: str = typer.Option(..., help="Reference cutoff date (YYYY-MM-DD) for first-activity ages"),
    org_domain: list[str] = typer.Option([], "--org-domain", help="Organization-owned domain (repeatable)"),
    personal_domain: list[str] = typer.Option(
        [], "--personal-domain", help="Personal email provider (repeatable; default: built-in list)"
    ),
    platform_noreply_domain: str | None = typer.Option(
        None, help="Hosting platform no-reply domain attributed to the org for committers (e.g. github.com)"
    ),
    granularity: str = typer.Option("month", help="week/month/quarter/half-year/year"),
    week_start: str = typer.Option("monday", help="First day of week buckets"),
    path: Path | None = typer.Option(None, "--path", help="Config file to write (default ~/.orgpulse/config.toml)"),
    force: bool = typer.Option(False, help="Overwrite an existing config file"),
) -> None:
    target = (path or default_config_path()).expanduser()
    if target.exists() and not force:
        raise typer.BadParameter(f"{target} already exists (use --force to overwrite)")
    try:
        cfg = OrgPulseConfig(
            org_domains=frozenset(d.strip().lower() for d in org_domain),
            personal_domains=frozenset(d.strip().lower() for d in (personal_domain or DEFAULT_PERSONAL_DOMAINS)),
            cutoff_date=dt.date.fromisoformat(cutoff_date),
            platform_noreply_domain=platform_noreply_domain,
            granularity=normalize_granularity(granularity),
            week_start=normalize_week_start(week_start),
            field_separator=DEFAULT_FIELD_SEPARATOR,
        )
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    written = save_config(cfg, target)
    console.print("[green]Config saved:[/green]")
    console.print(load_config(written).as_dict())


@config_app.command("show")
def config_show(
    path: Path | None = typer.Option(None, "--path", help="Config file (default ~/.orgpulse/config.toml)"),
) -> None:
    console.print(load_config(path).as_dict())


@config_app.command("path")
def config_path() -> None:
    console.print({"config": str(default_config_path())})
