"""Collaboration graph derivation.

A single pass over movies: each movie contributes at most one pair per
fixed role combination, so cost is O(movies), never a pairwise
comparison of entities.
"""

import logging

from film_identity.config import Config
from film_identity.entities.models import Collaboration, MovieSummary
from film_identity.names import canonicalize
from film_identity.repository.base import MovieRepository

logger = logging.getLogger(__name__)

# (first role field, second role field, relationship type)
ROLE_PAIRS: list[tuple[str, str, str]] = [
    ("hero", "director", "actor_director"),
    ("heroine", "director", "actor_director"),
    ("hero", "heroine", "hero_heroine"),
    ("hero", "music_director", "actor_music"),
]

HIT_CATEGORIES: set[str] = {"industry-hit", "blockbuster", "super-hit", "hit"}
HIT_RATING_THRESHOLD = 3.5
NOTABLE_FILM_COUNT = 3


def collaboration_key(name_a: str, name_b: str, relationship_type: str) -> tuple[str, str, str]:
    """Order-independent key for a pair of canonical names."""
    first, second = sorted((name_a, name_b))
    return (first, second, relationship_type)


def is_hit(movie: dict) -> bool:
    """A movie counts as a hit by flag, box-office category or rating."""
    rating = movie.get("avg_rating")
    return bool(
        movie.get("is_blockbuster") is True
        or movie.get("box_office_category") in HIT_CATEGORIES
        or (rating is not None and rating >= HIT_RATING_THRESHOLD)
    )


def _apply_stats(collab: Collaboration, movies: list[dict]) -> None:
    years = sorted(m["release_year"] for m in movies if m.get("release_year") is not None)
    rated = [m for m in movies if m.get("avg_rating") is not None]

    collab.first_year = years[0] if years else None
    collab.last_year = years[-1] if years else None
    collab.hit_rate = round(sum(1 for m in movies if is_hit(m)) / len(movies), 2) if movies else 0.0
    collab.avg_rating = (
        round(sum(m["avg_rating"] for m in rated) / len(rated), 2) if rated else None
    )
    top = sorted(rated, key=lambda m: m["avg_rating"], reverse=True)[:NOTABLE_FILM_COUNT]
    collab.notable_films = [m.get("title") or "" for m in top]


def build_collaborations(movies: list[dict], min_movies: int = 3) -> list[Collaboration]:
    """Aggregate role-pair co-occurrences across movies.

    Args:
        movies: Movie rows from the repository.
        min_movies: Drop pairs seen in fewer movies than this.

    Returns:
        Collaborations with ``movie_count >= min_movies``, most frequent
        first. ``entity1 <= entity2`` in every entry.
    """
    aggregates: dict[tuple[str, str, str], Collaboration] = {}
    rows: dict[tuple[str, str, str], list[dict]] = {}

    for movie in movies:
        for field_a, field_b, relationship_type in ROLE_PAIRS:
            name_a = canonicalize(movie.get(field_a))
            name_b = canonicalize(movie.get(field_b))
            if not name_a or not name_b:
                continue

            key = collaboration_key(name_a, name_b, relationship_type)
            collab = aggregates.get(key)
            if collab is None:
                collab = Collaboration(entity1=key[0], entity2=key[1], relationship_type=relationship_type)
                aggregates[key] = collab
                rows[key] = []
            collab.movie_count += 1
            collab.movies.append(
                MovieSummary(
                    id=movie.get("id"),
                    title=movie.get("title") or "",
                    year=movie.get("release_year"),
                )
            )
            rows[key].append(movie)

    result = [c for c in aggregates.values() if c.movie_count >= min_movies]
    for collab in result:
        _apply_stats(collab, rows[collab.key])
    result.sort(key=lambda c: c.movie_count, reverse=True)
    return result


class CollaborationBuilder:
    """Builds the collaboration graph from the repository."""

    def __init__(self, repository: MovieRepository, config: Config | None = None):
        self.repository = repository
        self.config = config or Config()

    def build(self, min_movies: int | None = None, limit: int | None = None) -> list[Collaboration]:
        if min_movies is None:
            min_movies = self.config.min_collaboration_movies
        movies = self.repository.select_movies(limit=limit or self.config.fetch_limit)
        collaborations = build_collaborations(movies, min_movies)
        logger.info(
            f"Found {len(collaborations)} collaborations with >= {min_movies} movies "
            f"across {len(movies)} movies"
        )
        return collaborations
