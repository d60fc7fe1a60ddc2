"""
Identity graph: merge the email aliases of one contributor.

Names and emails form a bipartite relation per role. Two emails belong to the same cluster
iff a chain of shared names or shared emails connects them. Author and committer graphs are
built independently.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from collections.abc import Hashable, Iterable
from dataclasses import dataclass

from orgpulse.records import CommitRecord, observations

logger = logging.getLogger(__name__)

EMAIL = "email"
NAME = "name"


class UnionFind:
    """Union-find with path halving and union by rank."""

    def __init__(self) -> None:
        self.parent: dict[Hashable, Hashable] = {}
        self.rank: dict[Hashable, int] = {}

    def __contains__(self, x: Hashable) -> bool:
        return x in self.parent

    def __len__(self) -> int:
        return len(self.parent)

    def add(self, x: Hashable) -> None:
        if x not in self.parent:
            self.parent[x] = x
            self.rank[x] = 0

    def find(self, x: Hashable) -> Hashable:
        parent = self.parent
        while parent[x] != x:
            parent[x] = parent[parent[x]]
            x = parent[x]
        return x

    def union(self, a: Hashable, b: Hashable) -> bool:
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return False
        if self.rank[ra] < self.rank[rb]:
            ra, rb = rb, ra
        self.parent[rb] = ra
        if self.rank[ra] == self.rank[rb]:
            self.rank[ra] += 1
        return True

    def groups(self) -> dict[Hashable, set[Hashable]]:
        result: dict[Hashable, set[Hashable]] = defaultdict(set)
        for x in self.parent:
            result[self.find(x)].add(x)
        return result


@dataclass(frozen=True)
class IdentityEdge:
    name: str
    email: str
    weight: int


@dataclass(frozen=True)
class IdentityGraph:
    role: str
    clusters: tuple[tuple[str, ...], ...]
    cluster_of: dict[str, int]
    names: dict[str, int]
    edges: tuple[IdentityEdge, ...]

    @property
    def emails(self) -> tuple[str, ...]:
        return tuple(sorted(self.cluster_of))

    @property
    def cluster_count(self) -> int:
        return len(self.clusters)

    def members(self, cluster_id: int) -> tuple[str, ...]:
        return self.clusters[cluster_id]

    def same_cluster(self, a: str, b: str) -> bool:
        return self.cluster_of[a] == self.cluster_of[b]


def build_identity_graph(records: Iterable[CommitRecord], role: str) -> IdentityGraph:
    """
    Build the name/email graph for one role and compute its connected components.

    Records with an empty email add no node; an empty name adds no edge. Repeated
    (name, email) pairs collapse into a single edge whose weight counts the commits.
    """
    uf = UnionFind()
    weights: Counter[tuple[str, str]] = Counter()
    for obs in observations(records, role):
        if not obs.email:
            continue
        email_node = (EMAIL, obs.email)
        uf.add(email_node)
        if not obs.name:
            continue
        name_node = (NAME, obs.name)
        uf.add(name_node)
        uf.union(name_node, email_node)
        weights[(obs.name, obs.email)] += 1

    # Canonical numbering: order components by their smallest member email.
    components: list[tuple[str, ...]] = []
    for group in uf.groups().values():
        emails = tuple(sorted(v for kind, v in group if kind == EMAIL))
        if emails:
            components.append(emails)
    components.sort(key=lambda c: c[0])

    cluster_of = {e: cid for cid, members in enumerate(components) for e in members}
    names = {name: cluster_of[email] for (name, email) in sorted(weights)}
    edges = tuple(IdentityEdge(name=n, email=e, weight=w) for (n, e), w in sorted(weights.items()))
    logger.info(
        "%s graph: %d emails, %d names, %d edges, %d clusters",
        role,
        len(cluster_of),
        len(names),
        len(edges),
        len(components),
    )
    return IdentityGraph(
        role=role,
        clusters=tuple(components),
        cluster_of=cluster_of,
        names=names,
        edges=edges,
    )
