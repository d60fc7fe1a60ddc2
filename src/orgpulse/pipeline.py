"""
End-to-end pipeline: commit records -> classified emails -> identity graphs -> labeled
clusters -> time-bucketed aggregates.

Every stage returns a new immutable table; nothing is patched in place.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import pandas as pd

from orgpulse.aggregate import (
    ActivityAggregate,
    DomainSummary,
    FirstActivity,
    activity_aggregates,
    domain_summary,
    first_activity,
)
from orgpulse.classify import LOCAL, DomainClassifier, EmailIdentity, classify_emails
from orgpulse.config import ROLES, OrgPulseConfig, normalize_granularity
from orgpulse.db import DB
from orgpulse.identity import IdentityGraph, build_identity_graph
from orgpulse.labeling import LabeledCluster, label_clusters
from orgpulse.records import CommitRecord

logger = logging.getLogger(__name__)

Table = tuple[list[str], list[tuple]]


@dataclass(frozen=True)
class PipelineResult:
    records: tuple[CommitRecord, ...]
    identities: tuple[EmailIdentity, ...]
    graphs: dict[str, IdentityGraph]
    clusters: dict[str, tuple[LabeledCluster, ...]]
    activity: tuple[ActivityAggregate, ...]
    first_activity: dict[str, tuple[FirstActivity, ...]]
    domains: dict[str, tuple[DomainSummary, ...]]
    granularity: str
    aggregate_role: str

    def classification_table(self) -> Table:
        return [
            "role",
            "email",
            "registered_domain",
            "suffix",
            "label",
        ], [(i.role, i.email, i.registered_domain, i.suffix, i.label) for i in self.identities]

    def membership_table(self, role: str | None = None) -> Table:
        email_labels = {(i.role, i.email): i.label for i in self.identities}
        rows: list[tuple] = []
        for r in ROLES if role is None else (role,):
            for c in self.clusters.get(r, ()):
                for email in c.members:
                    rows.append(
                        (
                            r,
                            email,
                            c.cluster_id,
                            email_labels.get((r, email), LOCAL),
                            c.label,
                            c.representative_name,
                            c.representative_email,
                        )
                    )
        return [
            "role",
            "email",
            "cluster_id",
            "email_label",
            "cluster_label",
            "representative_name",
            "representative_email",
        ], rows

    def cluster_table(self, role: str | None = None) -> Table:
        rows = [
            (
                c.role,
                c.cluster_id,
                c.label,
                c.representative_name,
                c.representative_email,
                len(c.members),
                c.commit_count,
                c.last_active.isoformat() if c.last_active else None,
            )
            for r in (ROLES if role is None else (role,))
            for c in self.clusters.get(r, ())
        ]
        return [
            "role",
            "cluster_id",
            "label",
            "representative_name",
            "representative_email",
            "email_count",
            "commit_count",
            "last_active",
        ], rows

    def activity_table(self) -> Table:
        return [
            "bucket_start",
            "granularity",
            "role",
            "label",
            "cluster_count",
            "commit_count",
            "percentage",
            "commit_percentage",
        ], [
            (
                a.bucket_start.isoformat(),
                a.granularity,
                a.role,
                a.label,
                a.cluster_count,
                a.commit_count,
                a.percentage,
                a.commit_percentage,
            )
            for a in self.activity
        ]

    def first_activity_table(self, role: str | None = None) -> Table:
        return [
            "role",
            "registered_domain",
            "label",
            "first_date",
            "cutoff_date",
            "age_days",
            "commit_count",
        ], [
            (
                f.role,
                f.registered_domain,
                f.label,
                f.first_date.isoformat(),
                f.cutoff_date.isoformat(),
                f.age_days,
                f.commit_count,
            )
            for r in (ROLES if role is None else (role,))
            for f in self.first_activity.get(r, ())
        ]

    def domain_table(self, role: str | None = None) -> Table:
        return [
            "role",
            "registered_domain",
            "label",
            "email_count",
            "commit_count",
        ], [
            (d.role, d.registered_domain, d.label, d.email_count, d.commit_count)
            for r in (ROLES if role is None else (role,))
            for d in self.domains.get(r, ())
        ]

    def graph_nodes_table(self, role: str) -> Table:
        graph = self.graphs[role]
        email_labels = {i.email: i.label for i in self.identities if i.role == role}
        rows: list[tuple] = [("email", e, graph.cluster_of[e], email_labels.get(e, LOCAL)) for e in graph.emails]
        rows.extend(("name", n, cid, None) for n, cid in sorted(graph.names.items()))
        return ["kind", "node", "cluster_id", "label"], rows

    def graph_edges_table(self, role: str) -> Table:
        graph = self.graphs[role]
        return ["name", "email", "cluster_id", "weight"], [
            (e.name, e.email, graph.cluster_of[e.email], e.weight) for e in graph.edges
        ]

    def graph_export(self, role: str) -> dict[str, Any]:
        """Node-link document (d3 force layout shape) for an external visualizer."""
        _, node_rows = self.graph_nodes_table(role)
        cluster_labels = {c.cluster_id: c.label for c in self.clusters.get(role, ())}
        index: dict[tuple[str, str], int] = {}
        nodes: list[dict[str, Any]] = []
        for kind, node, cid, label in node_rows:
            index[(kind, node)] = len(nodes)
            nodes.append(
                {
                    "name": node,
                    "kind": kind,
                    "cluster_id": cid,
                    "label": label,
                    "cluster_label": cluster_labels.get(cid),
                }
            )
        links = [
            {
                "source": index[("name", e.name)],
                "target": index[("email", e.email)],
                "value": e.weight,
            }
            for e in self.graphs[role].edges
        ]
        return {"role": role, "nodes": nodes, "links": links}

    def tables(self) -> dict[str, Table]:
        out: dict[str, Table] = {
            "classification": self.classification_table(),
            "membership": self.membership_table(),
            "clusters": self.cluster_table(),
            "activity": self.activity_table(),
            "first_activity": self.first_activity_table(),
            "domains": self.domain_table(),
        }
        for role in ROLES:
            out[f"graph_nodes_{role}"] = self.graph_nodes_table(role)
            out[f"graph_edges_{role}"] = self.graph_edges_table(role)
        return out

    def to_frames(self) -> dict[str, pd.DataFrame]:
        return {name: pd.DataFrame(rows, columns=columns) for name, (columns, rows) in self.tables().items()}


def run_pipeline(
    records: Iterable[CommitRecord],
    cfg: OrgPulseConfig,
    *,
    granularity: str | None = None,
    aggregate_role: str = "committer",
    classifier: DomainClassifier | None = None,
    db: DB | None = None,
) -> PipelineResult:
    if aggregate_role not in ROLES:
        raise ValueError(f"role must be one of: {', '.join(ROLES)}")
    g = normalize_granularity(granularity or cfg.granularity)
    records = tuple(records)
    classifier = classifier or DomainClassifier.from_config(cfg)
    db = db or DB()

    identities = classify_emails(records, classifier, ROLES)
    logger.info("classified %d (role, email) pairs from %d commits", len(identities), len(records))

    graphs = {role: build_identity_graph(records, role) for role in ROLES}
    clusters = {role: label_clusters(graphs[role], identities, records) for role in ROLES}

    activity = activity_aggregates(
        records,
        clusters[aggregate_role],
        granularity=g,
        week_start=cfg.week_start,
        role=aggregate_role,
        db=db,
    )
    logger.info("aggregated %s activity into %d (bucket, label) rows", aggregate_role, len(activity))

    firsts = {
        role: first_activity(records, identities, role=role, cutoff=cfg.cutoff_for(role), db=db)
        for role in ROLES
    }
    domains = {role: domain_summary(records, identities, role=role, db=db) for role in ROLES}

    return PipelineResult(
        records=records,
        identities=identities,
        graphs=graphs,
        clusters=clusters,
        activity=activity,
        first_activity=firsts,
        domains=domains,
        granularity=g,
        aggregate_role=aggregate_role,
    )
