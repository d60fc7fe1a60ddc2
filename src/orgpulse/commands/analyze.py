from __future__ import annotations

import csv
import json
from pathlib import Path

import typer
from rich.console import Console

from orgpulse.config import ROLES, OrgPulseConfig, load_config
from orgpulse.pipeline import PipelineResult, run_pipeline
from orgpulse.records import parse_log
from orgpulse.render import to_rich_table

analyze_app = typer.Typer(help="Classify, cluster and aggregate a commit log.", add_completion=False)
console = Console()

LOG_FILE = typer.Argument(
    ...,
    exists=True,
    dir_okay=False,
    readable=True,
    help="Commit log produced by `orgpulse git-format`",
)
CONFIG = typer.Option(None, "--config", "-c", help="Config file (default ~/.orgpulse/config.toml)")


def _write_csv(path: Path, columns: list[str], rows: list[tuple]) -> None:
    path = path.expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        w = csv.writer(f)
        w.writerow(columns)
        for r in rows:
            w.writerow(["" if v is None else str(v) for v in r])


def _check_role(role: str | None, *, allow_all: bool = True) -> str | None:
    if role is None and allow_all:
        return None
    if role not in ROLES:
        raise typer.BadParameter(f"role must be one of: {', '.join(ROLES)}")
    return role


def _run(
    log_file: Path,
    config_path: Path | None,
    *,
    granularity: str | None = None,
    aggregate_role: str = "committer",
) -> tuple[OrgPulseConfig, PipelineResult]:
    cfg = load_config(config_path)
    with log_file.open("r", encoding="utf-8", errors="replace") as f:
        parsed = parse_log(f, cfg.field_separator)
    if parsed.skipped_rows:
        console.print(f"[yellow]Skipped {parsed.skipped_rows} malformed rows of {parsed.total_rows}[/yellow]")
    try:
        result = run_pipeline(parsed.records, cfg, granularity=granularity, aggregate_role=aggregate_role)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    return cfg, result


def _emit(columns: list[str], rows: list[tuple], *, title: str, top: int | None, csv_path: Path | None) -> None:
    if csv_path is not None:
        _write_csv(csv_path, columns, rows)
        console.print({"csv": str(csv_path), "rows": len(rows)})
        return
    shown = rows if top is None else rows[:top]
    console.print(to_rich_table(columns, shown, title=title))
    if len(shown) < len(rows):
        console.print(f"[dim]{len(rows) - len(shown)} more rows (use --all or --csv)[/dim]")


@analyze_app.command("classify")
def classify(
    log_file: Path = LOG_FILE,
    config_path: Path | None = CONFIG,
    top: int = typer.Option(50, min=1, max=200000, help="Show top N rows"),
    all: bool = typer.Option(False, "--all", help="Show every row"),
    csv_path: Path | None = typer.Option(None, "--csv", help="Write to a CSV file"),
) -> None:
    _, result = _run(log_file, config_path)
    columns, rows = result.classification_table()
    _emit(columns, rows, title="Email classification", top=None if all else top, csv_path=csv_path)


@analyze_app.command("clusters")
def clusters(
    log_file: Path = LOG_FILE,
    config_path: Path | None = CONFIG,
    role: str | None = typer.Option(None, help="author/committer (default: both)"),
    members: bool = typer.Option(False, "--members", help="One row per member email instead of per cluster"),
    top: int = typer.Option(50, min=1, max=200000, help="Show top N rows"),
    all: bool = typer.Option(False, "--all", help="Show every row"),
    csv_path: Path | None = typer.Option(None, "--csv", help="Write to a CSV file"),
) -> None:
    role = _check_role(role)
    _, result = _run(log_file, config_path)
    columns, rows = result.membership_table(role) if members else result.cluster_table(role)
    _emit(columns, rows, title="Identity clusters", top=None if all else top, csv_path=csv_path)


@analyze_app.command("activity")
def activity(
    log_file: Path = LOG_FILE,
    config_path: Path | None = CONFIG,
    granularity: str | None = typer.Option(None, help="week/month/quarter/half-year/year (default from config)"),
    role: str = typer.Option("committer", help="Role whose clusters are counted"),
    top: int = typer.Option(200, min=1, max=200000, help="Show top N rows"),
    all: bool = typer.Option(False, "--all", help="Show every row"),
    csv_path: Path | None = typer.Option(None, "--csv", help="Write to a CSV file"),
) -> None:
    _check_role(role, allow_all=False)
    _, result = _run(log_file, config_path, granularity=granularity, aggregate_role=role)
    columns, rows = result.activity_table()
    _emit(
        columns,
        rows,
        title=f"Activity by {result.granularity} ({role})",
        top=None if all else top,
        csv_path=csv_path,
    )


@analyze_app.command("first-activity")
def first_activity(
    log_file: Path = LOG_FILE,
    config_path: Path | None = CONFIG,
    role: str | None = typer.Option(None, help="author/committer (default: both)"),
    top: int = typer.Option(50, min=1, max=200000, help="Show top N rows"),
    all: bool = typer.Option(False, "--all", help="Show every row"),
    csv_path: Path | None = typer.Option(None, "--csv", help="Write to a CSV file"),
) -> None:
    role = _check_role(role)
    _, result = _run(log_file, config_path)
    columns, rows = result.first_activity_table(role)
    _emit(columns, rows, title="First activity per domain", top=None if all else top, csv_path=csv_path)


@analyze_app.command("domains")
def domains(
    log_file: Path = LOG_FILE,
    config_path: Path | None = CONFIG,
    role: str | None = typer.Option(None, help="author/committer (default: both)"),
    top: int = typer.Option(50, min=1, max=200000, help="Show top N rows"),
    all: bool = typer.Option(False, "--all", help="Show every row"),
    csv_path: Path | None = typer.Option(None, "--csv", help="Write to a CSV file"),
) -> None:
    role = _check_role(role)
    _, result = _run(log_file, config_path)
    columns, rows = result.domain_table(role)
    _emit(columns, rows, title="Commits per domain", top=None if all else top, csv_path=csv_path)


@analyze_app.command("graph")
def graph(
    log_file: Path = LOG_FILE,
    config_path: Path | None = CONFIG,
    role: str = typer.Option("committer", help="author/committer"),
    output: Path = typer.Option(Path("output/identity_graph.json"), "--output", "-o", help="Output JSON path"),
) -> None:
    _check_role(role, allow_all=False)
    _, result = _run(log_file, config_path)
    out = output.expanduser()
    out.parent.mkdir(parents=True, exist_ok=True)
    doc = result.graph_export(role)
    out.write_text(json.dumps(doc, ensure_ascii=False, indent=2), encoding="utf-8")
    console.print({"output": str(out), "nodes": len(doc["nodes"]), "links": len(doc["links"])})


@analyze_app.command("run")
def run(
    log_file: Path = LOG_FILE,
    config_path: Path | None = CONFIG,
    granularity: str | None = typer.Option(None, help="week/month/quarter/half-year/year (default from config)"),
    role: str = typer.Option("committer", help="Role whose clusters are counted in activity"),
    output_dir: Path = typer.Option(Path("output"), "--output-dir", "-o", help="Directory for CSV/JSON outputs"),
) -> None:
    """
    Run every stage and write each table as CSV plus one graph JSON per role.
    """
    _check_role(role, allow_all=False)
    _, result = _run(log_file, config_path, granularity=granularity, aggregate_role=role)
    out_dir = output_dir.expanduser()
    written: dict[str, int] = {}
    for name, (columns, rows) in result.tables().items():
        _write_csv(out_dir / f"{name}.csv", columns, rows)
        written[f"{name}.csv"] = len(rows)
    for r in ROLES:
        path = out_dir / f"identity_graph_{r}.json"
        path.write_text(json.dumps(result.graph_export(r), ensure_ascii=False, indent=2), encoding="utf-8")
        written[path.name] = len(result.graphs[r].edges)
    console.print({"output_dir": str(out_dir), "commits": len(result.records), "files": written})
