"""Movie record repository contract.

Detection, collaboration building and merging talk to storage only
through this interface, so the core can run against an in-memory fake
in tests and against a JSON file or Neo4j in production.
"""

import logging

logger = logging.getLogger(__name__)

MOVIE_FIELDS: tuple[str, ...] = (
    "id",
    "title",
    "release_year",
    "director",
    "hero",
    "heroine",
    "music_director",
    "cast_members",
    "avg_rating",
    "is_blockbuster",
    "box_office_category",
)


class RepositoryError(Exception):
    """A repository read or write failed."""


def matches_filters(movie: dict, filters: dict | None) -> bool:
    """Check a movie row against a field -> value (or list of values) filter."""
    if not filters:
        return True
    for key, expected in filters.items():
        value = movie.get(key)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True


class MovieRepository:
    """Queryable, updatable store of movie rows keyed by id."""

    def select_movies(self, filters: dict | None = None, limit: int = 1000) -> list[dict]:
        """Return up to ``limit`` movie rows matching ``filters``.

        Raises:
            RepositoryError: If the store cannot be read.
        """
        raise NotImplementedError

    def update_movie(self, movie_id: str, fields: dict) -> None:
        """Overwrite ``fields`` on one movie.

        Raises:
            RepositoryError: If the movie is missing or the write fails.
        """
        raise NotImplementedError

    def apply_updates(self, updates: dict[str, dict]) -> None:
        """Apply several per-movie updates.

        The default issues independent writes in order, so a failure
        leaves earlier movies updated. Stores with multi-row
        transactions override this to make the whole set atomic.
        """
        for movie_id, fields in updates.items():
            self.update_movie(movie_id, fields)

    def append_audit_log(self, entry: dict) -> None:
        """Append one merge audit record."""
        raise NotImplementedError

    def read_audit_log(self) -> list[dict]:
        """Return every audit record written so far, oldest first."""
        raise NotImplementedError
