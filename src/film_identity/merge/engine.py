"""Merge engine: rewrite every reference in a duplicate group.

Dry runs compute the effect without touching the repository. Executed
merges snapshot the affected movies first, then rewrite, then append
one audit record. Re-merging already canonical data writes nothing.
"""

import copy
import logging
import uuid
from datetime import datetime, timezone

from film_identity.entities.models import (
    SNAPSHOT_FIELDS,
    DuplicateGroup,
    MergeLogEntry,
    MergeResult,
    NamedMember,
    PlainName,
    parse_cast_entry,
)
from film_identity.repository.base import MovieRepository

logger = logging.getLogger(__name__)


class MergeError(Exception):
    """A merge failed part-way; ``rollback_data`` covers every movie touched."""

    def __init__(self, message: str, rollback_data: dict[str, dict] | None = None):
        super().__init__(message)
        self.rollback_data = rollback_data or {}


def snapshot_movie(movie: dict) -> dict:
    """Pre-merge copy of the person fields of one movie."""
    return {key: copy.deepcopy(movie.get(key)) for key in SNAPSHOT_FIELDS}


def rewrite_cast(cast: list, raw_value: str, target: str) -> tuple[list, int]:
    """Rename cast elements whose name equals ``raw_value``.

    Object-shaped elements keep their other keys; elements of unknown
    shape are passed through unchanged.

    Returns:
        ``(new_cast, renamed_count)``.
    """
    rewritten = []
    renamed = 0
    for member in cast:
        entry = parse_cast_entry(member)
        if isinstance(entry, (PlainName, NamedMember)) and entry.name == raw_value:
            rewritten.append(entry.renamed(target).to_raw())
            renamed += 1
        else:
            rewritten.append(member)
    return rewritten, renamed


class MergeEngine:
    """Applies one duplicate group onto a chosen canonical name."""

    def __init__(self, repository: MovieRepository):
        self.repository = repository

    def merge(
        self,
        group: DuplicateGroup,
        canonical_name: str,
        dry_run: bool = True,
        preserve_analytics: bool = True,
    ) -> MergeResult:
        """Merge every occurrence in ``group`` onto ``canonical_name``.

        Args:
            group: The duplicate group to collapse.
            canonical_name: The spelling every occurrence will carry.
            dry_run: Compute the effect only.
            preserve_analytics: Recorded on the audit entry; the merge only
                ever touches person fields, never per-movie analytics.

        Returns:
            MergeResult. ``merged_count`` is the number of occurrences
            processed (0 on a dry run).

        Raises:
            ValueError: If ``canonical_name`` is blank.
            MergeError: If fetching or writing fails during execution.
        """
        if not canonical_name or not canonical_name.strip():
            raise ValueError("canonical_name must not be empty")

        affected_ids = group.movie_ids

        if dry_run:
            log_entry = self._log_entry(
                group.source_names, canonical_name, affected_ids, preserve_analytics
            )
            logger.info(
                f"[dry run] Would merge {len(group.occurrences)} occurrences of "
                f"{group.source_names} into {canonical_name!r} "
                f"across {len(affected_ids)} movies"
            )
            return MergeResult(
                merged_count=0,
                affected_movie_ids=affected_ids,
                log_entry=log_entry,
                rollback_data=None,
                dry_run=True,
            )

        rollback_data: dict[str, dict] = {}
        try:
            movies = self.repository.select_movies(
                filters={"id": affected_ids}, limit=len(affected_ids)
            )
        except Exception as e:
            raise MergeError(f"Failed to fetch movies for merge: {e}", rollback_data) from e

        current = {m.get("id"): m for m in movies}
        for movie_id in affected_ids:
            if movie_id in current:
                rollback_data[movie_id] = snapshot_movie(current[movie_id])
            else:
                logger.warning(f"Movie {movie_id} disappeared before merge")

        processed = [o for o in group.occurrences if o.movie_id in current]
        merged_ids = [movie_id for movie_id in affected_ids if movie_id in current]
        log_entry = self._log_entry(
            list(dict.fromkeys(o.raw_value for o in processed)),
            canonical_name,
            merged_ids,
            preserve_analytics,
        )

        updates = self._plan_updates(group, canonical_name, current)

        if updates:
            try:
                self.repository.apply_updates(updates)
            except Exception as e:
                raise MergeError(
                    f"Merge into {canonical_name!r} failed: {e}", rollback_data
                ) from e

        try:
            self.repository.append_audit_log(log_entry.to_dict())
        except Exception as e:
            logger.warning(f"Failed to write audit log for merge {log_entry.merge_id}: {e}")

        merged_count = len(processed)
        logger.info(
            f"Merged {merged_count} occurrences into {canonical_name!r} "
            f"({len(updates)} movies written, merge {log_entry.merge_id})"
        )
        return MergeResult(
            merged_count=merged_count,
            affected_movie_ids=merged_ids,
            log_entry=log_entry,
            rollback_data=rollback_data,
            dry_run=False,
        )

    @staticmethod
    def _log_entry(
        source_names: list[str],
        canonical_name: str,
        movie_ids: list[str],
        preserve_analytics: bool,
    ) -> MergeLogEntry:
        return MergeLogEntry(
            merge_id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc).isoformat(),
            source_names=tuple(source_names),
            target_name=canonical_name,
            affected_movies=tuple(movie_ids),
            preserved_analytics=preserve_analytics,
        )

    @staticmethod
    def _plan_updates(
        group: DuplicateGroup, canonical_name: str, current: dict
    ) -> dict[str, dict]:
        """Per-movie partial field updates; movies already canonical are omitted."""
        working = {movie_id: copy.deepcopy(movie) for movie_id, movie in current.items()}
        updates: dict[str, dict] = {}

        for occ in group.occurrences:
            if occ.raw_value == canonical_name:
                continue
            movie = working.get(occ.movie_id)
            if movie is None:
                continue

            if occ.field == "cast_members":
                cast, renamed = rewrite_cast(
                    movie.get("cast_members") or [], occ.raw_value, canonical_name
                )
                if renamed:
                    movie["cast_members"] = cast
                    updates.setdefault(occ.movie_id, {})["cast_members"] = cast
            elif movie.get(occ.field) == occ.raw_value:
                movie[occ.field] = canonical_name
                updates.setdefault(occ.movie_id, {})[occ.field] = canonical_name

        return updates

    def rollback(self, rollback_data: dict[str, dict]) -> int:
        """Restore pre-merge snapshots.

        Returns:
            Number of movies restored.
        """
        if not rollback_data:
            return 0
        self.repository.apply_updates(copy.deepcopy(rollback_data))
        logger.info(f"Restored {len(rollback_data)} movies from rollback data")
        return len(rollback_data)
