from orgpulse.classify import EDU, LOCAL, ORG, OTHER, PERSONAL, EmailIdentity, classify_emails
from orgpulse.identity import build_identity_graph
from orgpulse.labeling import label_clusters


def _label(records, classifier, role="author"):
    identities = classify_emails(records, classifier, (role,))
    graph = build_identity_graph(records, role)
    return graph, label_clusters(graph, identities, records)


def _ident(email, label, role="author"):
    return EmailIdentity(email=email, role=role, registered_domain=None, suffix=None, label=label)


class TestClusterLabel:
    def test_scenario_a_org_wins(self, classifier, make_record):
        records = [
            make_record("Alice Smith", "alice@gmail.com", "2018-01-05"),
            make_record("Alice Smith", "alice@google.com", "2018-02-10"),
        ]
        _, (cluster,) = _label(records, classifier)
        assert cluster.label == ORG
        assert cluster.members == ("alice@gmail.com", "alice@google.com")

    def test_scenario_c_edu_unless_org_member(self, classifier, make_record):
        edu_only = [make_record("Stu", "stu@student.ox.ac.uk")]
        _, (cluster,) = _label(edu_only, classifier)
        assert cluster.label == EDU

        with_org = edu_only + [make_record("Stu", "stu@google.com", "2017-01-01")]
        _, (cluster,) = _label(with_org, classifier)
        assert cluster.label == ORG

    def test_org_over_attribution_even_when_outnumbered(self, classifier, make_record):
        records = [
            make_record("Pat", "pat@gmail.com"),
            make_record("Pat", "pat@outlook.com"),
            make_record("Pat", "pat@github.com"),
            make_record("Pat", "pat@acme.io", "2010-01-01"),
        ]
        _, (cluster,) = _label(records, classifier)
        assert cluster.label == ORG

    def test_majority_label(self, classifier, make_record):
        records = [
            make_record("Pat", "pat@gmail.com", "2018-01-01"),
            make_record("Pat", "pat@outlook.com", "2018-01-02"),
            make_record("Pat", "pat@example.org", "2019-01-01"),
        ]
        _, (cluster,) = _label(records, classifier)
        assert cluster.label == PERSONAL

    def test_tie_goes_to_most_recent_member(self, make_record):
        records = [
            make_record("Pat", "pat@a.com", "2018-01-01"),
            make_record("Pat", "pat@b.com", "2019-06-01"),
        ]
        graph = build_identity_graph(records, "author")
        identities = [_ident("pat@a.com", PERSONAL), _ident("pat@b.com", OTHER)]
        (cluster,) = label_clusters(graph, identities, records)
        assert cluster.label == OTHER

        identities = [_ident("pat@a.com", OTHER), _ident("pat@b.com", PERSONAL)]
        (cluster,) = label_clusters(graph, identities, records)
        assert cluster.label == PERSONAL

    def test_tie_on_equal_dates_uses_first_seen(self, make_record):
        records = [
            make_record("Pat", "pat@b.com", "2019-06-01"),
            make_record("Pat", "pat@a.com", "2019-06-01"),
        ]
        graph = build_identity_graph(records, "author")
        identities = [_ident("pat@a.com", PERSONAL), _ident("pat@b.com", OTHER)]
        (cluster,) = label_clusters(graph, identities, records)
        assert cluster.label == OTHER

    def test_missing_classification_counts_as_local(self, make_record):
        records = [make_record("Pat", "pat")]
        graph = build_identity_graph(records, "author")
        (cluster,) = label_clusters(graph, [], records)
        assert cluster.label == LOCAL


class TestRepresentative:
    def test_latest_commit_wins(self, classifier, make_record):
        records = [
            make_record("Alice Smith", "alice@gmail.com", "2018-03-01"),
            make_record("Alice S.", "alice@gmail.com", "2019-01-01"),
            make_record("Alice Smith", "alice@google.com", "2018-06-01"),
        ]
        _, (cluster,) = _label(records, classifier)
        assert (cluster.representative_name, cluster.representative_email) == ("Alice S.", "alice@gmail.com")
        assert cluster.commit_count == 3
        assert cluster.last_active.isoformat() == "2019-01-01"

    def test_ties_keep_first_seen_record(self, classifier, make_record):
        records = [
            make_record("Alice Smith", "alice@google.com", "2019-01-01"),
            make_record("Alice Smith", "alice@gmail.com", "2019-01-01"),
        ]
        _, (cluster,) = _label(records, classifier)
        assert cluster.representative_email == "alice@google.com"

    def test_undated_records_lose_to_dated_ones(self, classifier, make_record):
        records = [
            make_record("Undated", "u@gmail.com", None),
            make_record("Undated", "dated@gmail.com", "2001-01-01"),
        ]
        _, (cluster,) = _label(records, classifier)
        assert cluster.representative_email == "dated@gmail.com"

    def test_committer_role_uses_committer_fields(self, classifier, make_record):
        records = [
            make_record("Carol", "carol@example.org", committer_name="GitHub", committer_email="noreply@github.com"),
        ]
        _, (cluster,) = _label(records, classifier, role="committer")
        assert cluster.role == "committer"
        assert cluster.representative_name == "GitHub"
        assert cluster.label == PERSONAL
