"""Batch merging with per-candidate error isolation."""

import logging
from collections import Counter
from collections.abc import Callable

from tqdm import tqdm

from film_identity.entities.models import (
    BatchMergeReport,
    DetectionReport,
    DuplicateGroup,
    MergeCandidate,
)
from film_identity.merge.engine import MergeEngine, MergeError
from film_identity.names import canonicalize

logger = logging.getLogger(__name__)


def choose_canonical_name(group: DuplicateGroup) -> str:
    """Pick the target spelling for a group.

    The most frequent raw form wins if it is already in canonical form;
    otherwise the group's canonical name is used. Ties go to the form
    seen first.
    """
    counts = Counter(o.raw_value for o in group.occurrences)
    most_common = max(group.source_names, key=lambda name: counts[name])
    if canonicalize(most_common) == most_common:
        return most_common
    return group.canonical_name


def find_merge_candidates(
    report: DetectionReport | list[DuplicateGroup],
    min_confidence: float = 0.7,
    choose: Callable[[DuplicateGroup], str] = choose_canonical_name,
) -> list[MergeCandidate]:
    """Pair each sufficiently confident group with its target name."""
    groups = report.potential_duplicates if isinstance(report, DetectionReport) else report
    candidates = [
        MergeCandidate(group=group, canonical_name=choose(group))
        for group in groups
        if group.confidence >= min_confidence
    ]
    logger.info(
        f"{len(candidates)} of {len(groups)} groups meet confidence >= {min_confidence}"
    )
    return candidates


class BatchMergeOrchestrator:
    """Drives the merge engine over many candidates.

    One failing candidate is counted and logged; the batch always
    continues with the next one.
    """

    def __init__(self, engine: MergeEngine, show_progress: bool = False):
        self.engine = engine
        self.show_progress = show_progress

    def run(
        self,
        candidates: list[MergeCandidate],
        dry_run: bool = True,
        preserve_analytics: bool = True,
    ) -> BatchMergeReport:
        """Merge every candidate.

        Returns:
            BatchMergeReport with one entry in ``results`` per success and
            one in ``failures`` per failed candidate.
        """
        report = BatchMergeReport(total=len(candidates))

        for candidate in tqdm(
            candidates, desc="Merging entities", disable=not self.show_progress
        ):
            name = candidate.canonical_name
            try:
                result = self.engine.merge(
                    candidate.group,
                    name,
                    dry_run=dry_run,
                    preserve_analytics=preserve_analytics,
                )
            except Exception as e:
                report.errors += 1
                failure = {"canonical_name": name, "error": str(e)}
                if isinstance(e, MergeError):
                    failure["rollback_data"] = e.rollback_data
                report.failures.append(failure)
                logger.error(f"Failed to merge into {name!r}: {e}")
                continue

            report.results.append(result)
            report.merged += result.merged_count

        logger.info(
            f"Batch complete: {len(report.results)}/{report.total} succeeded, "
            f"{report.errors} failed, {report.merged} occurrences merged"
        )
        return report
