import pandas as pd
import pytest

from orgpulse.classify import EDU, LOCAL, ORG, PERSONAL
from orgpulse.pipeline import run_pipeline
from orgpulse.records import parse_log


@pytest.fixture
def result(cfg, sample_log_text):
    parsed = parse_log(sample_log_text.splitlines())
    return run_pipeline(parsed.records, cfg)


class TestRunPipeline:
    def test_classification_table(self, result):
        columns, rows = result.classification_table()
        assert columns == ["role", "email", "registered_domain", "suffix", "label"]
        labels = {(r[0], r[1]): r[4] for r in rows}
        assert labels[("author", "alice@google.com")] == ORG
        assert labels[("author", "bob@cs.stanford.edu")] == EDU
        assert labels[("committer", "noreply@github.com")] == PERSONAL
        assert labels[("author", "dave")] == LOCAL

    def test_alice_aliases_share_a_cluster(self, result):
        _, rows = result.membership_table("author")
        cluster = {r[1]: r[2] for r in rows}
        assert cluster["alice@gmail.com"] == cluster["alice@google.com"]
        cluster_label = {r[1]: r[4] for r in rows}
        assert cluster_label["alice@gmail.com"] == ORG
        email_label = {r[1]: r[3] for r in rows}
        assert email_label["alice@gmail.com"] == PERSONAL

    def test_roles_are_kept_apart(self, result):
        assert "carol@example.org" in result.graphs["author"].cluster_of
        assert "carol@example.org" not in result.graphs["committer"].cluster_of
        assert "noreply@github.com" in result.graphs["committer"].cluster_of

    def test_activity_uses_committer_clusters_by_default(self, result):
        assert result.aggregate_role == "committer"
        assert result.granularity == "month"
        _, rows = result.activity_table()
        feb = [r for r in rows if r[0] == "2018-02-01"]
        assert sum(r[4] for r in feb) == 3
        assert sum(r[6] for r in feb) == pytest.approx(1.0, abs=0.0004)

    def test_mixed_case_emails_are_merged_and_labeled(self, cfg, make_record):
        records = [
            make_record("Alice  Smith", "Alice@Google.com", "2018-02-10"),
            make_record("Alice Smith", " <alice@GMAIL.com> ", "2018-01-05"),
        ]
        result = run_pipeline(records, cfg)
        _, class_rows = result.classification_table()
        classified = {r[1]: r[4] for r in class_rows if r[0] == "author"}
        assert classified == {"alice@google.com": ORG, "alice@gmail.com": PERSONAL}

        _, rows = result.membership_table("author")
        assert {r[1] for r in rows} == {"alice@google.com", "alice@gmail.com"}
        assert len({r[2] for r in rows}) == 1
        assert {r[1]: r[3] for r in rows} == classified
        assert {r[4] for r in rows} == {ORG}

    def test_first_activity_uses_role_cutoffs(self, result):
        _, rows = result.first_activity_table()
        cutoffs = {r[0]: r[4] for r in rows}
        assert cutoffs == {"author": "2020-01-01", "committer": "2020-06-01"}

    def test_graph_export(self, result):
        doc = result.graph_export("author")
        names = [n["name"] for n in doc["nodes"]]
        assert "Alice Smith" in names
        assert "alice@google.com" in names
        for link in doc["links"]:
            assert doc["nodes"][link["source"]]["kind"] == "name"
            assert doc["nodes"][link["target"]]["kind"] == "email"
            assert doc["nodes"][link["source"]]["cluster_id"] == doc["nodes"][link["target"]]["cluster_id"]

    def test_to_frames(self, result):
        frames = result.to_frames()
        assert {"classification", "membership", "activity", "first_activity", "graph_edges_author"} <= set(frames)
        assert all(isinstance(f, pd.DataFrame) for f in frames.values())
        assert list(frames["activity"].columns)[:4] == ["bucket_start", "granularity", "role", "label"]

    def test_granularity_override(self, cfg, sample_log_text):
        parsed = parse_log(sample_log_text.splitlines())
        result = run_pipeline(parsed.records, cfg, granularity="year", aggregate_role="author")
        _, rows = result.activity_table()
        assert {r[0] for r in rows} == {"2018-01-01"}
        assert {r[2] for r in rows} == {"author"}

    def test_invalid_role(self, cfg):
        with pytest.raises(ValueError):
            run_pipeline([], cfg, aggregate_role="reviewer")


class TestEmptyInput:
    def test_all_tables_empty(self, cfg):
        result = run_pipeline([], cfg)
        for name, (columns, rows) in result.tables().items():
            assert columns, name
            assert rows == [], name
        assert all(f.empty for f in result.to_frames().values())
        assert result.graph_export("committer") == {"role": "committer", "nodes": [], "links": []}
