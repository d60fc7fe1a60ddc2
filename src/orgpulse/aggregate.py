"""
Temporal aggregation of commit activity by resolved identity and classification.

Dates are floored to calendar buckets in Python; the grouped counts run as SQL on an in-memory
DuckDB connection over pandas frames.
"""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterable
from dataclasses import dataclass

import pandas as pd

from orgpulse.classify import EmailIdentity
from orgpulse.config import normalize_granularity
from orgpulse.db import DB
from orgpulse.labeling import LabeledCluster
from orgpulse.records import CommitRecord, observations

logger = logging.getLogger(__name__)

PERCENT_DIGITS = 4


@dataclass(frozen=True)
class TimeBucket:
    granularity: str
    bucket_start: dt.date


@dataclass(frozen=True)
class ActivityAggregate:
    role: str
    granularity: str
    bucket_start: dt.date
    label: str
    cluster_count: int
    commit_count: int
    percentage: float
    commit_percentage: float

    @property
    def bucket(self) -> TimeBucket:
        return TimeBucket(granularity=self.granularity, bucket_start=self.bucket_start)


@dataclass(frozen=True)
class FirstActivity:
    role: str
    registered_domain: str
    label: str
    first_date: dt.date
    cutoff_date: dt.date
    age_days: int
    commit_count: int


@dataclass(frozen=True)
class DomainSummary:
    role: str
    registered_domain: str
    label: str
    email_count: int
    commit_count: int


def floor_date(date: dt.date, granularity: str, week_start: int = 0) -> dt.date:
    """Start of the `granularity` window containing `date` (`week_start`: Monday == 0)."""
    g = normalize_granularity(granularity)
    if g == "week":
        return date - dt.timedelta(days=(date.weekday() - week_start) % 7)
    if g == "month":
        return date.replace(day=1)
    if g == "quarter":
        return dt.date(date.year, 3 * ((date.month - 1) // 3) + 1, 1)
    if g == "half-year":
        return dt.date(date.year, 1 if date.month <= 6 else 7, 1)
    return dt.date(date.year, 1, 1)


def bucket_of(date: dt.date, granularity: str, week_start: int = 0) -> TimeBucket:
    g = normalize_granularity(granularity)
    return TimeBucket(granularity=g, bucket_start=floor_date(date, g, week_start))


def _activity_frame(
    records: Iterable[CommitRecord],
    clusters: Iterable[LabeledCluster],
    role: str,
    granularity: str,
    week_start: int,
) -> pd.DataFrame:
    label_of = {c.cluster_id: c.label for c in clusters if c.role == role}
    cluster_of = {e: c.cluster_id for c in clusters if c.role == role for e in c.members}
    rows: list[tuple[str, int, str]] = []
    undated = 0
    for obs in observations(records, role):
        cid = cluster_of.get(obs.email)
        if cid is None:
            continue
        if obs.date is None:
            undated += 1
            continue
        rows.append((floor_date(obs.date, granularity, week_start).isoformat(), cid, label_of[cid]))
    if undated:
        logger.debug("%d %s commits without a usable date left out of buckets", undated, role)
    return pd.DataFrame(rows, columns=["bucket_start", "cluster_id", "label"])


def activity_aggregates(
    records: Iterable[CommitRecord],
    clusters: Iterable[LabeledCluster],
    *,
    granularity: str = "month",
    week_start: int = 0,
    role: str = "committer",
    db: DB | None = None,
) -> tuple[ActivityAggregate, ...]:
    """
    Per (bucket, label): distinct active clusters, commits, and their shares of the bucket.

    `percentage` is cluster-weighted (clusters with the label / active clusters in the bucket);
    `commit_percentage` is commit-weighted. Both are rounded to 4 decimals.
    """
    g = normalize_granularity(granularity)
    clusters = tuple(clusters)
    frame = _activity_frame(records, clusters, role, g, week_start)
    if frame.empty:
        return ()

    db = db or DB()
    with db.connect() as conn:
        conn.register("activity", frame)
        rows = conn.execute(
            f"""
            WITH per_label AS (
              SELECT
                bucket_start,
                label,
                COUNT(DISTINCT cluster_id) AS cluster_count,
                COUNT(*) AS commit_count
              FROM activity
              GROUP BY 1, 2
            ),
            totals AS (
              SELECT
                bucket_start,
                COUNT(DISTINCT cluster_id) AS total_clusters,
                COUNT(*) AS total_commits
              FROM activity
              GROUP BY 1
            )
            SELECT
              p.bucket_start,
              p.label,
              p.cluster_count,
              p.commit_count,
              ROUND(CAST(p.cluster_count AS DOUBLE) / t.total_clusters, {PERCENT_DIGITS}) AS percentage,
              ROUND(CAST(p.commit_count AS DOUBLE) / t.total_commits, {PERCENT_DIGITS}) AS commit_percentage
            FROM per_label p
            JOIN totals t ON t.bucket_start = p.bucket_start
            ORDER BY p.bucket_start, p.label
            """
        ).fetchall()
        conn.unregister("activity")

    return tuple(
        ActivityAggregate(
            role=role,
            granularity=g,
            bucket_start=dt.date.fromisoformat(str(bucket)),
            label=str(label),
            cluster_count=int(n_clusters),
            commit_count=int(n_commits),
            percentage=float(pct),
            commit_percentage=float(commit_pct),
        )
        for bucket, label, n_clusters, n_commits, pct, commit_pct in rows
    )


def _domain_frame(
    records: Iterable[CommitRecord], identities: Iterable[EmailIdentity], role: str
) -> pd.DataFrame:
    by_email = {i.email: i for i in identities if i.role == role and i.registered_domain}
    rows: list[tuple[str, str, str, str | None]] = []
    for obs in observations(records, role):
        ident = by_email.get(obs.email)
        if ident is None:
            continue
        rows.append(
            (ident.registered_domain, ident.label, obs.email, obs.date.isoformat() if obs.date else None)
        )
    return pd.DataFrame(rows, columns=["registered_domain", "label", "email", "commit_date"])


def first_activity(
    records: Iterable[CommitRecord],
    identities: Iterable[EmailIdentity],
    *,
    role: str,
    cutoff: dt.date,
    db: DB | None = None,
) -> tuple[FirstActivity, ...]:
    """
    Earliest commit per registered domain and its age in days at the reference `cutoff`.

    A domain whose first commit is dated after the cutoff gets a negative age.
    """
    frame = _domain_frame(records, identities, role)
    if frame.empty:
        return ()
    frame = frame[frame["commit_date"].notna()]
    if frame.empty:
        return ()

    db = db or DB()
    with db.connect() as conn:
        conn.register("domain_commits", frame)
        rows = conn.execute(
            """
            SELECT
              registered_domain,
              MIN(label) AS label,
              MIN(commit_date) AS first_date,
              COUNT(*) AS commit_count
            FROM domain_commits
            GROUP BY 1
            ORDER BY first_date, registered_domain
            """
        ).fetchall()
        conn.unregister("domain_commits")

    out: list[FirstActivity] = []
    for domain, label, first_date, n_commits in rows:
        first = dt.date.fromisoformat(str(first_date))
        out.append(
            FirstActivity(
                role=role,
                registered_domain=str(domain),
                label=str(label),
                first_date=first,
                cutoff_date=cutoff,
                age_days=(cutoff - first).days,
                commit_count=int(n_commits),
            )
        )
    return tuple(out)


def first_activity_age(
    records: Iterable[CommitRecord],
    identities: Iterable[EmailIdentity],
    domain: str,
    *,
    role: str,
    cutoff: dt.date,
) -> int | None:
    for row in first_activity(records, identities, role=role, cutoff=cutoff):
        if row.registered_domain == domain:
            return row.age_days
    return None


def domain_summary(
    records: Iterable[CommitRecord],
    identities: Iterable[EmailIdentity],
    *,
    role: str,
    db: DB | None = None,
) -> tuple[DomainSummary, ...]:
    frame = _domain_frame(records, identities, role)
    if frame.empty:
        return ()
    db = db or DB()
    with db.connect() as conn:
        conn.register("domain_commits", frame)
        rows = conn.execute(
            """
            SELECT
              registered_domain,
              MIN(label) AS label,
              COUNT(DISTINCT email) AS email_count,
              COUNT(*) AS commit_count
            FROM domain_commits
            GROUP BY 1
            ORDER BY commit_count DESC, registered_domain
            """
        ).fetchall()
        conn.unregister("domain_commits")
    return tuple(
        DomainSummary(
            role=role,
            registered_domain=str(domain),
            label=str(label),
            email_count=int(n_emails),
            commit_count=int(n_commits),
        )
        for domain, label, n_emails, n_commits in rows
    )
