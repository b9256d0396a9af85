"""In-memory movie repository, used by tests and one-off scripts."""

import copy
import logging

from film_identity.repository.base import MovieRepository, RepositoryError, matches_filters

logger = logging.getLogger(__name__)


class InMemoryMovieRepository(MovieRepository):
    """Holds movie rows in a dict keyed by id.

    Rows are deep-copied on the way in and out so callers can never
    mutate stored state behind the repository's back.
    """

    def __init__(self, movies: list[dict] | None = None):
        self.movies: dict[str, dict] = {}
        self.audit_log: list[dict] = []
        for movie in movies or []:
            self.movies[str(movie["id"])] = copy.deepcopy(movie)

    def select_movies(self, filters: dict | None = None, limit: int = 1000) -> list[dict]:
        rows = [
            copy.deepcopy(movie)
            for movie in self.movies.values()
            if matches_filters(movie, filters)
        ]
        return rows[:limit]

    def update_movie(self, movie_id: str, fields: dict) -> None:
        movie = self.movies.get(str(movie_id))
        if movie is None:
            raise RepositoryError(f"Movie {movie_id} not found")
        movie.update(copy.deepcopy(fields))

    def append_audit_log(self, entry: dict) -> None:
        self.audit_log.append(copy.deepcopy(entry))

    def read_audit_log(self) -> list[dict]:
        return copy.deepcopy(self.audit_log)
