from __future__ import annotations

import datetime as dt
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from orgpulse.classify import LOCAL, ORG, EmailIdentity
from orgpulse.identity import IdentityGraph
from orgpulse.records import CommitRecord, observations

# Undated commits sort before every dated one.
_NO_DATE = dt.date.min


@dataclass(frozen=True)
class LabeledCluster:
    role: str
    cluster_id: int
    label: str
    representative_name: str
    representative_email: str
    members: tuple[str, ...]
    commit_count: int
    last_active: dt.date | None


@dataclass
class _Recency:
    date: dt.date
    index: int


def _is_more_recent(date: dt.date, current: _Recency | None) -> bool:
    # Strictly later only: on equal dates the first-seen record keeps its place.
    return current is None or date > current.date


def _majority_label(members_by_recency: list[str], labels: Mapping[str, str]) -> str:
    counts = Counter(labels.get(e, LOCAL) for e in members_by_recency)
    top = max(counts.values())
    tied = {label for label, n in counts.items() if n == top}
    if len(tied) == 1:
        return next(iter(tied))
    # Every tied label belongs to at least one member, so the scan always finds one.
    return next(label for label in (labels.get(e, LOCAL) for e in members_by_recency) if label in tied)


def label_clusters(
    graph: IdentityGraph,
    identities: Iterable[EmailIdentity],
    records: Iterable[CommitRecord],
) -> tuple[LabeledCluster, ...]:
    """
    Assign a label and a representative (name, email) to every cluster of `graph`.

    A cluster is `Org` as soon as one member email is `Org`; otherwise the majority label of its
    member emails wins, ties going to the most recently used member's label. The representative
    is the (name, email) pair of the latest commit among the members.
    """
    role = graph.role
    labels = {i.email: i.label for i in identities if i.role == role}

    email_recency: dict[str, _Recency] = {}
    rep_recency: dict[int, _Recency] = {}
    rep_pair: dict[int, tuple[str, str]] = {}
    commit_counts: Counter[int] = Counter()
    last_active: dict[int, dt.date] = {}

    for obs in observations(records, role):
        cid = graph.cluster_of.get(obs.email)
        if cid is None:
            continue
        date = obs.date or _NO_DATE
        commit_counts[cid] += 1
        if obs.date is not None and (cid not in last_active or obs.date > last_active[cid]):
            last_active[cid] = obs.date
        if _is_more_recent(date, email_recency.get(obs.email)):
            email_recency[obs.email] = _Recency(date=date, index=obs.index)
        if _is_more_recent(date, rep_recency.get(cid)):
            rep_recency[cid] = _Recency(date=date, index=obs.index)
            rep_pair[cid] = (obs.name, obs.email)

    out: list[LabeledCluster] = []
    for cid, members in enumerate(graph.clusters):
        by_recency = sorted(
            members,
            key=lambda e: (
                -email_recency[e].date.toordinal() if e in email_recency else 0,
                email_recency[e].index if e in email_recency else 0,
            ),
        )
        if any(labels.get(e) == ORG for e in members):
            label = ORG
        else:
            label = _majority_label(by_recency, labels)
        name, email = rep_pair.get(cid, ("", members[0]))
        out.append(
            LabeledCluster(
                role=role,
                cluster_id=cid,
                label=label,
                representative_name=name,
                representative_email=email,
                members=members,
                commit_count=commit_counts[cid],
                last_active=last_active.get(cid),
            )
        )
    return tuple(out)
