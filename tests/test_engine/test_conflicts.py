"""
Conflict Aggregator Tests.

Covers:
- Identical findings from two oracles merge into one corroborated conflict
- Severity promotion and first-seen ordering
- Sources only ever grow as findings are merged
"""

from hypothesis import given, settings as hyp_settings
from hypothesis import strategies as st

from releasegate.engine.conflicts import ConflictAggregator
from releasegate.oracles.schemas import Conflict, ConflictKind, Severity


def _make_conflict(
    source: str,
    kind: ConflictKind = ConflictKind.VERSION_EXISTS,
    message: str = "Version 1.0.0 of lib-a is already published",
    severity: Severity = Severity.HIGH,
    suggested_version=None,
) -> Conflict:
    return Conflict(
        kind=kind,
        severity=severity,
        message=message,
        sources=frozenset({source}),
        suggested_version=suggested_version,
    )


class TestConflictAggregator:
    def setup_method(self):
        self.aggregator = ConflictAggregator()

    def test_identical_findings_are_corroborated(self):
        merged = self.aggregator.aggregate([
            _make_conflict("registry"),
            _make_conflict("result-cache"),
        ])
        assert len(merged) == 1
        assert merged[0].corroborated is True
        assert merged[0].sources == frozenset({"registry", "result-cache"})
        assert merged[0].source_count == 2

    def test_single_source_not_corroborated(self):
        merged = self.aggregator.aggregate([_make_conflict("registry")])
        assert merged[0].corroborated is False

    def test_different_messages_stay_separate(self):
        merged = self.aggregator.aggregate([
            _make_conflict("registry"),
            _make_conflict("semver", message="something else"),
        ])
        assert len(merged) == 2

    def test_severity_promoted_to_max(self):
        merged = self.aggregator.aggregate([
            _make_conflict("a", severity=Severity.MEDIUM),
            _make_conflict("b", severity=Severity.CRITICAL),
            _make_conflict("c", severity=Severity.LOW),
        ])
        assert merged[0].severity == Severity.CRITICAL

    def test_first_seen_order(self):
        merged = self.aggregator.aggregate([
            _make_conflict("a", kind=ConflictKind.MISSING_BUILD, message="m1"),
            _make_conflict("b", kind=ConflictKind.INVALID_SEMVER, message="m2"),
            _make_conflict("c", kind=ConflictKind.MISSING_BUILD, message="m1"),
        ])
        assert [c.kind for c in merged] == [ConflictKind.MISSING_BUILD, ConflictKind.INVALID_SEMVER]

    def test_suggestion_kept_from_any_reporter(self):
        merged = self.aggregator.aggregate([
            _make_conflict("a"),
            _make_conflict("b", suggested_version="1.0.1"),
        ])
        assert merged[0].suggested_version == "1.0.1"

    def test_merge_into_existing(self):
        existing = self.aggregator.aggregate([_make_conflict("a")])
        merged = self.aggregator.merge(existing, [_make_conflict("b")])
        assert merged[0].sources == frozenset({"a", "b"})

    def test_highest_severity(self):
        assert ConflictAggregator.highest_severity([]) is None
        assert ConflictAggregator.highest_severity([
            _make_conflict("a", severity=Severity.LOW),
            _make_conflict("b", severity=Severity.HIGH),
        ]) == Severity.HIGH

    @given(sources=st.lists(st.sampled_from(["a", "b", "c", "d", "e"]), min_size=1, max_size=20))
    @hyp_settings(max_examples=50)
    def test_sources_monotonic(self, sources):
        merged: list[Conflict] = []
        seen: set[str] = set()
        for source in sources:
            merged = self.aggregator.merge(merged, [_make_conflict(source)])
            seen.add(source)
            assert len(merged) == 1
            assert merged[0].sources == frozenset(seen)
            assert merged[0].corroborated == (len(seen) > 1)
