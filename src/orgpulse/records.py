from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from orgpulse.config import DEFAULT_FIELD_SEPARATOR, ROLES

logger = logging.getLogger(__name__)

FIELD_COUNT = 7

GIT_LOG_ARGS = (
    "git",
    "log",
    "--date=short",
    "--pretty=format:%ad%x1f%an%x1f%ae%x1f%cd%x1f%cn%x1f%ce%x1f%h",
)


@dataclass(frozen=True)
class CommitRecord:
    author_date: dt.date | None
    author_name: str
    author_email: str
    committer_date: dt.date | None
    committer_name: str
    committer_email: str
    commit_hash: str

    def date_for(self, role: str) -> dt.date | None:
        return self.author_date if _check_role(role) == "author" else self.committer_date

    def name_for(self, role: str) -> str:
        return self.author_name if _check_role(role) == "author" else self.committer_name

    def email_for(self, role: str) -> str:
        return self.author_email if _check_role(role) == "author" else self.committer_email


@dataclass(frozen=True)
class NameEmailObservation:
    name: str
    email: str
    role: str
    date: dt.date | None
    index: int


@dataclass(frozen=True)
class LogParseResult:
    records: tuple[CommitRecord, ...]
    skipped_rows: int = 0

    @property
    def total_rows(self) -> int:
        return len(self.records) + self.skipped_rows


def _check_role(role: str) -> str:
    if role not in ROLES:
        raise ValueError(f"role must be one of: {', '.join(ROLES)}")
    return role


def parse_date_loose(value: str) -> dt.date | None:
    s = (value or "").strip()
    if not s:
        return None
    # `--date=iso` / `--date=iso-strict` carry a time part after the date.
    try:
        return dt.date.fromisoformat(s[:10])
    except ValueError:
        return None


def normalize_email(value: str) -> str:
    return (value or "").strip().strip("<>").strip().lower()


def normalize_name(value: str) -> str:
    return " ".join((value or "").split())


def parse_log_line(line: str, separator: str = DEFAULT_FIELD_SEPARATOR) -> CommitRecord | None:
    """
    Parse one log row into a `CommitRecord`.

    Rows with the wrong number of fields return None. A date that cannot be parsed becomes None
    while the rest of the record is kept.
    """
    fields = line.rstrip("\r\n").split(separator)
    if len(fields) != FIELD_COUNT:
        return None
    a_date, a_name, a_email, c_date, c_name, c_email, sha = fields
    return CommitRecord(
        author_date=parse_date_loose(a_date),
        author_name=normalize_name(a_name),
        author_email=normalize_email(a_email),
        committer_date=parse_date_loose(c_date),
        committer_name=normalize_name(c_name),
        committer_email=normalize_email(c_email),
        commit_hash=sha.strip(),
    )


def parse_log(lines: Iterable[str], separator: str = DEFAULT_FIELD_SEPARATOR) -> LogParseResult:
    records: list[CommitRecord] = []
    skipped = 0
    for lineno, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        rec = parse_log_line(line, separator)
        if rec is None:
            skipped += 1
            logger.debug("skipping malformed log row %d: %r", lineno, line[:200])
            continue
        if rec.author_date is None or rec.committer_date is None:
            logger.debug("log row %d (%s) has an unparsable date", lineno, rec.commit_hash)
        records.append(rec)
    if skipped:
        logger.warning("skipped %d malformed log rows (expected %d fields)", skipped, FIELD_COUNT)
    return LogParseResult(records=tuple(records), skipped_rows=skipped)


def observations(records: Iterable[CommitRecord], role: str) -> Iterator[NameEmailObservation]:
    _check_role(role)
    for idx, rec in enumerate(records):
        yield NameEmailObservation(
            name=normalize_name(rec.name_for(role)),
            email=normalize_email(rec.email_for(role)),
            role=role,
            date=rec.date_for(role),
            index=idx,
        )
