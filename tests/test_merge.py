"""Tests for the merge engine.

Tests cover:
- Dry runs never mutate the repository
- Executed merges rewrite every occurrence and capture rollback data
- Cast rewrites preserve object metadata and unknown shapes
- Audit log failures never fail a merge
- Rollback restores snapshots
"""

from unittest.mock import MagicMock

import pytest

from film_identity.entities.collector import collect_references
from film_identity.entities.duplicates import find_duplicate_groups
from film_identity.entities.models import DuplicateGroup, EntityOccurrence
from film_identity.merge.engine import MergeEngine, MergeError, rewrite_cast
from film_identity.repository import InMemoryMovieRepository, RepositoryError


def _repo():
    return InMemoryMovieRepository(
        [
            {"id": "m1", "title": "Pokiri", "hero": "Mahesh Babu"},
            {"id": "m2", "title": "Athadu", "hero": "mahesh babu"},
            {"id": "m3", "title": "Dookudu", "hero": "Mahesh  Babu"},
        ]
    )


def _group(repo):
    index = collect_references(repo.select_movies(), "actor")
    [group] = find_duplicate_groups(index)
    return group


# ------------------------------------------------------------------ #
#  rewrite_cast                                                       #
# ------------------------------------------------------------------ #


class TestRewriteCast:
    """Tests for rewrite_cast."""

    def test_plain_and_object_elements(self):
        cast = ["ntr", {"name": "ntr", "character": "Bheem"}, "Ram Charan"]
        new_cast, renamed = rewrite_cast(cast, "ntr", "N T R")
        assert renamed == 2
        assert new_cast == ["N T R", {"name": "N T R", "character": "Bheem"}, "Ram Charan"]

    def test_unknown_shapes_untouched(self):
        cast = [None, {"role": "cameo"}, 3]
        new_cast, renamed = rewrite_cast(cast, "ntr", "N T R")
        assert renamed == 0
        assert new_cast == cast

    def test_does_not_mutate_input(self):
        member = {"name": "ntr", "character": "Bheem"}
        rewrite_cast([member], "ntr", "N T R")
        assert member["name"] == "ntr"


# ------------------------------------------------------------------ #
#  MergeEngine                                                        #
# ------------------------------------------------------------------ #


class TestMergeDryRun:
    """Dry runs compute the effect only."""

    def test_no_mutation(self):
        repo = MagicMock()
        group = _group(_repo())
        result = MergeEngine(repo).merge(group, "Mahesh Babu", dry_run=True)

        assert result.merged_count == 0
        assert result.rollback_data is None
        assert result.dry_run is True
        assert result.affected_movie_ids == ["m1", "m2", "m3"]
        repo.update_movie.assert_not_called()
        repo.apply_updates.assert_not_called()
        repo.append_audit_log.assert_not_called()

    def test_log_entry_preview(self):
        result = MergeEngine(MagicMock()).merge(_group(_repo()), "Mahesh Babu")
        assert result.log_entry.target_name == "Mahesh Babu"
        assert result.log_entry.source_names == ("Mahesh Babu", "mahesh babu", "Mahesh  Babu")


class TestMergeExecute:
    """Executed merges rewrite, snapshot and audit."""

    def test_rewrites_every_occurrence(self):
        repo = _repo()
        result = MergeEngine(repo).merge(_group(repo), "Mahesh Babu", dry_run=False)

        assert result.merged_count == 3
        assert {m["hero"] for m in repo.movies.values()} == {"Mahesh Babu"}

    def test_rollback_data_keyed_by_affected_movies(self):
        repo = _repo()
        result = MergeEngine(repo).merge(_group(repo), "Mahesh Babu", dry_run=False)

        assert set(result.rollback_data) == {"m1", "m2", "m3"}
        assert result.rollback_data["m2"]["hero"] == "mahesh babu"
        assert result.rollback_data["m3"]["hero"] == "Mahesh  Babu"
        assert set(result.rollback_data["m1"]) == {"director", "hero", "heroine", "cast_members"}

    def test_appends_exactly_one_log_entry(self):
        repo = _repo()
        result = MergeEngine(repo).merge(
            _group(repo), "Mahesh Babu", dry_run=False, preserve_analytics=False
        )
        log = repo.read_audit_log()
        assert len(log) == 1
        assert log[0]["merge_id"] == result.log_entry.merge_id
        assert log[0]["affected_movies"] == ["m1", "m2", "m3"]
        assert log[0]["preserved_analytics"] is False

    def test_deleted_movie_not_counted_or_logged(self):
        repo = InMemoryMovieRepository([{"id": "m1", "title": "Eega", "hero": "nani"}])
        group = DuplicateGroup(
            "Nani",
            [
                EntityOccurrence("m1", "Eega", "hero", "nani"),
                EntityOccurrence("m99", "Gone", "hero", "NANI"),
            ],
            0.7,
        )
        result = MergeEngine(repo).merge(group, "Nani", dry_run=False)

        assert result.merged_count == 1
        assert result.affected_movie_ids == ["m1"]
        assert set(result.rollback_data) == {"m1"}
        [entry] = repo.read_audit_log()
        assert entry["affected_movies"] == ["m1"]
        assert entry["source_names"] == ["nani"]
        assert repo.movies["m1"]["hero"] == "Nani"

    def test_only_differing_occurrences_written(self):
        repo = MagicMock()
        repo.select_movies.return_value = [
            {"id": "m1", "hero": "Mahesh Babu"},
            {"id": "m2", "hero": "mahesh babu"},
        ]
        group = DuplicateGroup(
            canonical_name="Mahesh Babu",
            occurrences=[
                EntityOccurrence("m1", "Pokiri", "hero", "Mahesh Babu"),
                EntityOccurrence("m2", "Athadu", "hero", "mahesh babu"),
            ],
            confidence=0.7,
        )
        MergeEngine(repo).merge(group, "Mahesh Babu", dry_run=False)
        repo.apply_updates.assert_called_once_with({"m2": {"hero": "Mahesh Babu"}})

    def test_cast_members_rewritten_with_metadata(self):
        # "Ntr" is seen first so its alias absorbs the "N T R" bucket
        repo = InMemoryMovieRepository(
            [
                {"id": "r2", "title": "Temper", "hero": "NTR"},
                {"id": "r1", "title": "RRR", "hero": "N.T.R.", "cast_members": [
                    {"name": "N.T.R.", "character": "Komaram Bheem"},
                    "Alia Bhatt",
                    {"unexpected": True},
                ]},
            ]
        )
        group = _group(repo)
        MergeEngine(repo).merge(group, "NTR", dry_run=False)

        assert repo.movies["r1"]["hero"] == "NTR"
        assert repo.movies["r1"]["cast_members"] == [
            {"name": "NTR", "character": "Komaram Bheem"},
            "Alia Bhatt",
            {"unexpected": True},
        ]

    def test_remerge_is_noop(self):
        repo = _repo()
        engine = MergeEngine(repo)
        group = _group(repo)
        engine.merge(group, "Mahesh Babu", dry_run=False)

        spy = MagicMock(wraps=repo)
        MergeEngine(spy).merge(
            DuplicateGroup(
                "Mahesh Babu",
                [EntityOccurrence(mid, "", "hero", "Mahesh Babu") for mid in ("m1", "m2")],
                0.6,
            ),
            "Mahesh Babu",
            dry_run=False,
        )
        spy.apply_updates.assert_not_called()
        spy.update_movie.assert_not_called()

    def test_empty_target_rejected(self):
        with pytest.raises(ValueError):
            MergeEngine(_repo()).merge(_group(_repo()), "  ", dry_run=False)

    def test_audit_failure_is_swallowed(self):
        repo = _repo()
        repo.append_audit_log = MagicMock(side_effect=RepositoryError("disk full"))
        result = MergeEngine(repo).merge(_group(repo), "Mahesh Babu", dry_run=False)
        assert result.merged_count == 3
        assert repo.movies["m2"]["hero"] == "Mahesh Babu"

    def test_write_failure_carries_rollback_data(self):
        repo = _repo()
        repo.apply_updates = MagicMock(side_effect=RepositoryError("timeout"))
        with pytest.raises(MergeError) as exc_info:
            MergeEngine(repo).merge(_group(repo), "Mahesh Babu", dry_run=False)
        assert set(exc_info.value.rollback_data) == {"m1", "m2", "m3"}

    def test_partial_sequential_failure_keeps_snapshot(self):
        repo = _repo()
        original_update = repo.update_movie

        def flaky_update(movie_id, fields):
            if movie_id == "m3":
                raise RepositoryError("connection reset")
            original_update(movie_id, fields)

        repo.update_movie = flaky_update
        with pytest.raises(MergeError) as exc_info:
            MergeEngine(repo).merge(_group(repo), "Mahesh Babu", dry_run=False)

        # m2 was written before the failure; its snapshot still holds the old value
        assert repo.movies["m2"]["hero"] == "Mahesh Babu"
        assert exc_info.value.rollback_data["m2"]["hero"] == "mahesh babu"

    def test_fetch_failure_raises_merge_error(self):
        repo = MagicMock()
        repo.select_movies.side_effect = RepositoryError("down")
        with pytest.raises(MergeError):
            MergeEngine(repo).merge(_group(_repo()), "Mahesh Babu", dry_run=False)
        repo.apply_updates.assert_not_called()


class TestRollback:
    """Tests for MergeEngine.rollback."""

    def test_restores_snapshot(self):
        repo = _repo()
        engine = MergeEngine(repo)
        result = engine.merge(_group(repo), "Mahesh Babu", dry_run=False)

        restored = engine.rollback(result.rollback_data)
        assert restored == 3
        assert repo.movies["m2"]["hero"] == "mahesh babu"
        assert repo.movies["m3"]["hero"] == "Mahesh  Babu"

    def test_empty(self):
        assert MergeEngine(MagicMock()).rollback({}) == 0
