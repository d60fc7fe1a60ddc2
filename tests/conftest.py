"""Shared fixtures for the orgpulse test suite."""

import datetime as dt

import pytest

from orgpulse.classify import DomainClassifier
from orgpulse.config import OrgPulseConfig
from orgpulse.records import CommitRecord

SEP = "\x1f"


@pytest.fixture
def cfg():
    return OrgPulseConfig(
        org_domains=frozenset({"google.com", "acme.io"}),
        personal_domains=frozenset({"gmail.com", "github.com", "outlook.com"}),
        cutoff_date=dt.date(2020, 1, 1),
        committer_cutoff_date=dt.date(2020, 6, 1),
    )


@pytest.fixture
def classifier(cfg):
    return DomainClassifier.from_config(cfg)


@pytest.fixture
def make_record():
    """Factory for commit records where author and committer are the same person by default."""

    def _make(
        name,
        email,
        date="2018-02-26",
        *,
        committer_name=None,
        committer_email=None,
        committer_date=None,
        sha="abc1234",
    ):
        a_date = dt.date.fromisoformat(date) if date else None
        c_date = committer_date if committer_date is not None else date
        return CommitRecord(
            author_date=a_date,
            author_name=name,
            author_email=email,
            committer_date=dt.date.fromisoformat(c_date) if c_date else None,
            committer_name=committer_name if committer_name is not None else name,
            committer_email=committer_email if committer_email is not None else email,
            commit_hash=sha,
        )

    return _make


@pytest.fixture
def log_line():
    def _line(*fields):
        return SEP.join(fields)

    return _line


@pytest.fixture
def sample_log_text(log_line):
    rows = [
        log_line("2018-01-05", "Alice Smith", "alice@gmail.com", "2018-01-05", "Alice Smith", "alice@gmail.com", "a1"),
        log_line("2018-02-10", "Alice Smith", "alice@google.com", "2018-02-10", "Alice Smith", "alice@google.com", "a2"),
        log_line("2018-02-11", "Bob", "bob@cs.stanford.edu", "2018-02-11", "Bob", "bob@cs.stanford.edu", "b1"),
        log_line("2018-02-12", "Carol", "carol@example.org", "2018-02-12", "GitHub", "noreply@github.com", "c1"),
        log_line("2018-03-01", "dave", "dave", "2018-03-01", "dave", "dave", "d1"),
        "this row is broken",
        "",
    ]
    return "\n".join(rows) + "\n"


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(
        "\n".join(
            [
                'org_domains = ["google.com"]',
                'personal_domains = ["gmail.com", "github.com"]',
                "cutoff_date = 2019-01-01",
                'granularity = "month"',
            ]
        )
        + "\n",
        encoding="utf-8",
    )
    return path
