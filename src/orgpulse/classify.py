"""
Email domain classification.

An email is reduced to its registered domain (public-suffix aware) and assigned one of the
organizational labels below. Precedence is the order of `CLASSIFICATION_RULES`.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from functools import lru_cache

import tldextract

from orgpulse.config import OrgPulseConfig
from orgpulse.records import CommitRecord, normalize_email

ORG = "Org"
PERSONAL = "Personal"
EDU = "Edu"
OTHER = "Other"
LOCAL = "Local"

LABELS = (ORG, PERSONAL, EDU, OTHER, LOCAL)


@dataclass(frozen=True)
class EmailIdentity:
    email: str
    role: str
    registered_domain: str | None
    suffix: str | None
    label: str


@dataclass(frozen=True)
class DomainFacts:
    role: str
    host: str | None
    registered_domain: str | None
    suffix: str | None


@dataclass(frozen=True)
class ClassificationRule:
    label: str
    description: str
    matches: Callable[["DomainClassifier", DomainFacts], bool]


CLASSIFICATION_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(LOCAL, "no @, empty host or no public suffix", lambda c, f: f.registered_domain is None),
    ClassificationRule(ORG, "org-owned domain, or platform no-reply for committers", lambda c, f: c.is_org(f)),
    ClassificationRule(PERSONAL, "personal email provider", lambda c, f: c.is_personal_hosted(f)),
    ClassificationRule(EDU, "suffix contains 'edu' or 'ac.'", lambda c, f: c.is_edu(f)),
    ClassificationRule(OTHER, "anything else", lambda c, f: True),
)


def split_host(email: str) -> str | None:
    e = normalize_email(email)
    if "@" not in e:
        return None
    host = e.rpartition("@")[2].strip().strip(".")
    return host or None


class DomainClassifier:
    def __init__(
        self,
        *,
        org_domains: Iterable[str],
        personal_domains: Iterable[str],
        platform_noreply_domain: str | None = None,
        rules: tuple[ClassificationRule, ...] = CLASSIFICATION_RULES,
        extractor: tldextract.TLDExtract | None = None,
    ) -> None:
        self.org_domains = frozenset(d.strip().lower().lstrip("@") for d in org_domains)
        self.personal_domains = frozenset(d.strip().lower().lstrip("@") for d in personal_domains)
        self.platform_noreply_domain = (platform_noreply_domain or "").strip().lower().lstrip("@") or None
        self.rules = rules
        # Offline: use the Public Suffix List snapshot bundled with tldextract.
        self._extract = extractor or tldextract.TLDExtract(suffix_list_urls=(), cache_dir=None)
        self._decompose = lru_cache(maxsize=65536)(self._decompose_uncached)

    @classmethod
    def from_config(cls, cfg: OrgPulseConfig) -> "DomainClassifier":
        return cls(
            org_domains=cfg.org_domains,
            personal_domains=cfg.personal_domains,
            platform_noreply_domain=cfg.platform_noreply_domain,
        )

    def _decompose_uncached(self, host: str) -> tuple[str | None, str | None]:
        parts = self._extract(host)
        if not parts.domain or not parts.suffix:
            return None, None
        return f"{parts.domain}.{parts.suffix}", parts.suffix

    def facts(self, email: str, role: str) -> DomainFacts:
        host = split_host(email)
        if host is None:
            return DomainFacts(role=role, host=None, registered_domain=None, suffix=None)
        registered, suffix = self._decompose(host)
        return DomainFacts(role=role, host=host, registered_domain=registered, suffix=suffix)

    def is_org(self, facts: DomainFacts) -> bool:
        if facts.registered_domain in self.org_domains:
            return True
        return (
            facts.role == "committer"
            and self.platform_noreply_domain is not None
            and facts.registered_domain == self.platform_noreply_domain
        )

    def is_personal_hosted(self, facts: DomainFacts) -> bool:
        return facts.registered_domain in self.personal_domains

    @staticmethod
    def is_edu(facts: DomainFacts) -> bool:
        suffix = facts.suffix or ""
        return "edu" in suffix or "ac." in suffix

    def label_for(self, facts: DomainFacts) -> str:
        for rule in self.rules:
            if rule.matches(self, facts):
                return rule.label
        return OTHER

    def classify(self, email: str, role: str) -> EmailIdentity:
        facts = self.facts(email, role)
        return EmailIdentity(
            email=normalize_email(email),
            role=role,
            registered_domain=facts.registered_domain,
            suffix=facts.suffix,
            label=self.label_for(facts),
        )


def classify_emails(
    records: Iterable[CommitRecord], classifier: DomainClassifier, roles: Iterable[str]
) -> tuple[EmailIdentity, ...]:
    """Classification table: one row per distinct (role, email), ordered by role then email."""
    records = tuple(records)
    out: list[EmailIdentity] = []
    for role in roles:
        seen = sorted({normalize_email(r.email_for(role)) for r in records} - {""})
        out.extend(classifier.classify(e, role) for e in seen)
    return tuple(out)
