"""Tests for merge candidate selection and batch merging."""

from unittest.mock import MagicMock

import pytest

from film_identity.entities.models import (
    DetectionReport,
    DuplicateGroup,
    EntityOccurrence,
    MergeCandidate,
)
from film_identity.merge import (
    BatchMergeOrchestrator,
    MergeEngine,
    MergeError,
    choose_canonical_name,
    find_merge_candidates,
)
from film_identity.repository import InMemoryMovieRepository


def _group(canonical, raws, confidence=0.8):
    occurrences = [
        EntityOccurrence(f"{canonical}-{i}", "", "hero", raw) for i, raw in enumerate(raws)
    ]
    return DuplicateGroup(canonical, occurrences, confidence)


class TestChooseCanonicalName:
    def test_most_frequent_canonical_form(self):
        group = _group("Ntr", ["NTR", "N.T.R.", "NTR"])
        # "NTR" is most frequent but not in canonical form
        assert choose_canonical_name(group) == "Ntr"

    def test_prefers_frequent_canonical_spelling(self):
        group = _group("Nani", ["nani", "Nani", "Nani"])
        assert choose_canonical_name(group) == "Nani"

    def test_absorbed_name_can_win(self):
        group = _group("Mahesh", ["Mahesh Babu", "Mahesh Babu", "Mahesh"])
        assert choose_canonical_name(group) == "Mahesh Babu"


class TestFindMergeCandidates:
    def test_filters_by_confidence(self):
        report = DetectionReport(
            potential_duplicates=[
                _group("Nani", ["Nani", "nani"], 0.7),
                _group("Teja", ["Teja", "teja"], 0.6),
            ],
            unique_count=2,
            total_references=4,
        )
        candidates = find_merge_candidates(report, min_confidence=0.7)
        assert [c.canonical_name for c in candidates] == ["Nani"]

    def test_accepts_group_list_and_custom_chooser(self):
        groups = [_group("Nani", ["Nani", "nani"])]
        candidates = find_merge_candidates(groups, 0.5, choose=lambda g: "NANI")
        assert candidates[0].canonical_name == "NANI"


class TestBatchMergeOrchestrator:
    """Tests for BatchMergeOrchestrator."""

    def test_failure_isolated(self):
        engine = MagicMock()
        ok = MagicMock(merged_count=2)
        engine.merge.side_effect = [ok, RuntimeError("boom"), ok]
        candidates = [
            MergeCandidate(_group(name, [name, name.lower()]), name)
            for name in ("Nani", "Teja", "Sunil")
        ]

        report = BatchMergeOrchestrator(engine).run(candidates, dry_run=False)

        assert report.total == 3
        assert report.errors == 1
        assert len(report.results) == 2
        assert report.merged == 4
        assert report.failures == [{"canonical_name": "Teja", "error": "boom"}]
        assert engine.merge.call_count == 3

    def test_merge_error_keeps_rollback(self):
        engine = MagicMock()
        engine.merge.side_effect = MergeError("write failed", {"m1": {"hero": "x"}})
        report = BatchMergeOrchestrator(engine).run(
            [MergeCandidate(_group("Nani", ["Nani", "nani"]), "Nani")], dry_run=False
        )
        assert report.failures[0]["rollback_data"] == {"m1": {"hero": "x"}}

    def test_end_to_end_against_repository(self):
        repo = InMemoryMovieRepository(
            [
                {"id": "1", "title": "A", "hero": "Nani"},
                {"id": "2", "title": "B", "hero": "nani"},
                {"id": "3", "title": "C", "hero": "Teja"},
                {"id": "4", "title": "D", "hero": "TEJA"},
            ]
        )
        candidates = [
            MergeCandidate(
                DuplicateGroup("Nani", [
                    EntityOccurrence("1", "A", "hero", "Nani"),
                    EntityOccurrence("2", "B", "hero", "nani"),
                ], 0.7),
                "Nani",
            ),
            MergeCandidate(
                DuplicateGroup("Teja", [
                    EntityOccurrence("99", "Gone", "hero", "teja"),
                ], 0.7),
                "",
            ),
            MergeCandidate(
                DuplicateGroup("Teja", [
                    EntityOccurrence("3", "C", "hero", "Teja"),
                    EntityOccurrence("4", "D", "hero", "TEJA"),
                ], 0.7),
                "Teja",
            ),
        ]

        report = BatchMergeOrchestrator(MergeEngine(repo)).run(candidates, dry_run=False)

        assert report.errors == 1
        assert report.merged == 4
        assert repo.movies["2"]["hero"] == "Nani"
        assert repo.movies["4"]["hero"] == "Teja"
        assert len(repo.read_audit_log()) == 2

    def test_dry_run_batch(self):
        repo = InMemoryMovieRepository([{"id": "1", "title": "A", "hero": "nani"}])
        group = DuplicateGroup("Nani", [EntityOccurrence("1", "A", "hero", "nani")], 0.7)
        report = BatchMergeOrchestrator(MergeEngine(repo)).run(
            [MergeCandidate(group, "Nani")], dry_run=True
        )
        assert report.merged == 0
        assert len(report.results) == 1
        assert repo.movies["1"]["hero"] == "nani"

    @pytest.mark.parametrize("count", [0, 1])
    def test_small_batches(self, count):
        engine = MagicMock()
        engine.merge.return_value = MagicMock(merged_count=1)
        candidates = [MergeCandidate(_group("Nani", ["Nani", "nani"]), "Nani")] * count
        report = BatchMergeOrchestrator(engine).run(candidates)
        assert report.total == count
        assert report.merged == count
