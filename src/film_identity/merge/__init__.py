"""Safe merging of duplicate entities with rollback capture."""

from film_identity.merge.batch import (
    BatchMergeOrchestrator,
    choose_canonical_name,
    find_merge_candidates,
)
from film_identity.merge.engine import MergeEngine, MergeError

__all__ = [
    "BatchMergeOrchestrator",
    "MergeEngine",
    "MergeError",
    "choose_canonical_name",
    "find_merge_candidates",
]
