from __future__ import annotations

import datetime as dt
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomllib

GRANULARITIES = ("week", "month", "quarter", "half-year", "year")
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
ROLES = ("author", "committer")

DEFAULT_FIELD_SEPARATOR = "\x1f"

# Common free mail providers, used to seed `config init`.
DEFAULT_PERSONAL_DOMAINS = (
    "163.com",
    "126.com",
    "aol.com",
    "fastmail.com",
    "github.com",
    "gmail.com",
    "gmx.de",
    "gmx.net",
    "googlemail.com",
    "hotmail.com",
    "icloud.com",
    "live.com",
    "mail.ru",
    "me.com",
    "outlook.com",
    "protonmail.com",
    "qq.com",
    "web.de",
    "yahoo.com",
    "yandex.ru",
)


def _default_home() -> Path:
    return Path(os.environ.get("ORGPULSE_HOME", Path.home() / ".orgpulse")).expanduser()


def _safe_toml_str(value: str) -> str:
    # Minimal TOML string escaping for our config needs.
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    escaped = "".join(c if c.isprintable() else f"\\u{ord(c):04x}" for c in escaped)
    return f'"{escaped}"'


def _safe_toml_list(values: tuple[str, ...]) -> str:
    return "[" + ", ".join(_safe_toml_str(v) for v in values) + "]"


def _norm_domains(values: Any, key: str) -> frozenset[str]:
    if not isinstance(values, (list, tuple, set, frozenset)):
        raise ValueError(f"{key} must be a list of domains, got {type(values).__name__}")
    return frozenset(str(v).strip().lower().lstrip("@") for v in values if str(v).strip())


def _parse_date(value: Any, key: str) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    try:
        return dt.date.fromisoformat(str(value).strip())
    except ValueError as e:
        raise ValueError(f"{key} must be a YYYY-MM-DD date, got {value!r}") from e


def normalize_granularity(value: str) -> str:
    g = value.strip().lower().replace("_", "-")
    if g in {"halfyear", "half", "semester"}:
        g = "half-year"
    if g not in GRANULARITIES:
        raise ValueError(f"granularity must be one of: {', '.join(GRANULARITIES)}")
    return g


def normalize_week_start(value: str | int) -> int:
    """Return the week start as a `date.weekday()` index (Monday == 0)."""
    if isinstance(value, int):
        if not 0 <= value <= 6:
            raise ValueError("week_start index must be within 0..6")
        return value
    w = value.strip().lower()
    for idx, name in enumerate(WEEKDAYS):
        if w in (name, name[:3]):
            return idx
    raise ValueError(f"week_start must be a weekday name, got {value!r}")


@dataclass(frozen=True)
class OrgPulseConfig:
    org_domains: frozenset[str]
    personal_domains: frozenset[str]
    cutoff_date: dt.date
    platform_noreply_domain: str | None = None
    author_cutoff_date: dt.date | None = None
    committer_cutoff_date: dt.date | None = None
    granularity: str = "month"
    week_start: int = 0
    field_separator: str = DEFAULT_FIELD_SEPARATOR
    source_path: Path | None = field(default=None, compare=False)

    @property
    def home_dir(self) -> Path:
        return _default_home()

    @property
    def config_path(self) -> Path:
        return self.source_path or self.home_dir / "config.toml"

    def cutoff_for(self, role: str) -> dt.date:
        if role == "author" and self.author_cutoff_date is not None:
            return self.author_cutoff_date
        if role == "committer" and self.committer_cutoff_date is not None:
            return self.committer_cutoff_date
        return self.cutoff_date

    def as_dict(self) -> dict[str, Any]:
        return {
            "config": str(self.config_path),
            "org_domains": sorted(self.org_domains),
            "personal_domains": sorted(self.personal_domains),
            "platform_noreply_domain": self.platform_noreply_domain,
            "cutoff_date": self.cutoff_date.isoformat(),
            "author_cutoff": self.cutoff_for("author").isoformat(),
            "committer_cutoff": self.cutoff_for("committer").isoformat(),
            "granularity": self.granularity,
            "week_start": WEEKDAYS[self.week_start],
            "field_separator": repr(self.field_separator),
        }


def default_config_path() -> Path:
    return _default_home() / "config.toml"


def config_from_mapping(data: dict[str, Any], *, source_path: Path | None = None) -> OrgPulseConfig:
    where = str(source_path) if source_path else "config"
    for key in ("org_domains", "personal_domains", "cutoff_date"):
        if key not in data:
            raise SystemExit(f"{where}: missing required key `{key}`")

    noreply = str(data.get("platform_noreply_domain") or "").strip().lower().lstrip("@") or None
    author_cutoff = data.get("author_cutoff_date")
    committer_cutoff = data.get("committer_cutoff_date")
    separator = str(data.get("field_separator", DEFAULT_FIELD_SEPARATOR))
    if len(separator) != 1:
        raise ValueError("field_separator must be a single character")

    return OrgPulseConfig(
        org_domains=_norm_domains(data["org_domains"], "org_domains"),
        personal_domains=_norm_domains(data["personal_domains"], "personal_domains"),
        cutoff_date=_parse_date(data["cutoff_date"], "cutoff_date"),
        platform_noreply_domain=noreply,
        author_cutoff_date=_parse_date(author_cutoff, "author_cutoff_date") if author_cutoff else None,
        committer_cutoff_date=(
            _parse_date(committer_cutoff, "committer_cutoff_date") if committer_cutoff else None
        ),
        granularity=normalize_granularity(str(data.get("granularity", "month"))),
        week_start=normalize_week_start(data.get("week_start", "monday")),
        field_separator=separator,
        source_path=source_path,
    )


def load_config(path: Path | None = None) -> OrgPulseConfig:
    path = (path or default_config_path()).expanduser()
    if not path.exists():
        raise SystemExit(
            f"Config file not found: {path}\n"
            "Create one first: orgpulse config init --cutoff-date YYYY-MM-DD"
        )
    data = tomllib.loads(path.read_text(encoding="utf-8"))
    return config_from_mapping(data, source_path=path)


def save_config(cfg: OrgPulseConfig, path: Path | None = None) -> Path:
    path = (path or cfg.config_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = []
    for key, value in {
        "org_domains": _safe_toml_list(tuple(sorted(cfg.org_domains))),
        "personal_domains": _safe_toml_list(tuple(sorted(cfg.personal_domains))),
        "platform_noreply_domain": _safe_toml_str(cfg.platform_noreply_domain or ""),
        "cutoff_date": cfg.cutoff_date.isoformat(),
        "author_cutoff_date": cfg.author_cutoff_date.isoformat() if cfg.author_cutoff_date else "",
        "committer_cutoff_date": cfg.committer_cutoff_date.isoformat() if cfg.committer_cutoff_date else "",
        "granularity": _safe_toml_str(cfg.granularity),
        "week_start": _safe_toml_str(WEEKDAYS[cfg.week_start]),
        "field_separator": _safe_toml_str(cfg.field_separator),
    }.items():
        if value in ("", '""'):
            continue
        if not re.fullmatch(r"[a-zA-Z0-9_]+", key):
            raise ValueError(f"Invalid config key: {key}")
        lines.append(f"{key} = {value}")

    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path
