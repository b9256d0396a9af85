"""Duplicate entity detection.

Buckets of occurrences that share a canonical name are widened through
name variations: any other bucket whose canonical name is a variation of
the current one is absorbed into its group. Absorption is one level
deep, so two buckets that are both variations of a third are only
grouped when the third is processed first. Re-run detection after
applying merges to converge further.
"""

import logging

from film_identity.config import Config
from film_identity.entities.collector import collect_references
from film_identity.entities.models import DetectionReport, DuplicateGroup, EntityOccurrence
from film_identity.names import canonicalize, generate_name_variations
from film_identity.repository.base import MovieRepository

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 0.5
CONFIDENCE_STEP = 0.1
MAX_CONFIDENCE = 0.9


def score_confidence(distinct_raw_count: int) -> float:
    """More spelling variants of one target means more inconsistent writing."""
    return min(MAX_CONFIDENCE, round(BASE_CONFIDENCE + CONFIDENCE_STEP * distinct_raw_count, 4))


def find_duplicate_groups(
    index: dict[str, list[EntityOccurrence]], max_groups: int | None = 100
) -> list[DuplicateGroup]:
    """Cluster canonical buckets into duplicate groups.

    Args:
        index: Output of ``collect_references``.
        max_groups: Keep only the top N groups; ``None`` keeps all.

    Returns:
        Groups with more than one distinct raw string, highest
        confidence first.
    """
    groups: list[DuplicateGroup] = []
    visited: set[str] = set()

    for canonical, refs in index.items():
        if canonical in visited:
            continue
        visited.add(canonical)

        related = list(refs)
        for variation in generate_name_variations(canonical):
            var_canonical = canonicalize(variation)
            if var_canonical == canonical or var_canonical in visited:
                continue
            if var_canonical in index:
                related.extend(index[var_canonical])
                visited.add(var_canonical)

        distinct_raw = {o.raw_value for o in related}
        if len(distinct_raw) > 1:
            groups.append(
                DuplicateGroup(
                    canonical_name=canonical,
                    occurrences=related,
                    confidence=score_confidence(len(distinct_raw)),
                )
            )

    groups.sort(key=lambda g: g.confidence, reverse=True)
    if max_groups is not None:
        groups = groups[:max_groups]
    return groups


class DuplicateDetector:
    """Scans the repository for people written inconsistently."""

    def __init__(self, repository: MovieRepository, config: Config | None = None):
        self.repository = repository
        self.config = config or Config()

    def detect(self, entity_type: str = "all", limit: int | None = None) -> DetectionReport:
        """Run detection over a bounded batch of movies.

        Raises:
            RepositoryError: If the movies cannot be fetched.
            ValueError: If ``entity_type`` is unknown.
        """
        limit = limit or self.config.fetch_limit
        movies = self.repository.select_movies(limit=limit)
        index = collect_references(movies, entity_type)
        groups = find_duplicate_groups(index, self.config.max_duplicate_groups)

        report = DetectionReport(
            potential_duplicates=groups,
            unique_count=len(index),
            total_references=sum(len(refs) for refs in index.values()),
        )
        logger.info(
            f"Scanned {len(movies)} movies: {report.unique_count} unique entities, "
            f"{report.total_references} references, "
            f"{len(groups)} potential duplicates"
        )
        return report
