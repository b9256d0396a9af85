"""Collect person references from movie rows, bucketed by canonical name."""

import logging

from film_identity.entities.models import (
    EntityOccurrence,
    NamedMember,
    PlainName,
    parse_cast_entry,
)
from film_identity.names import canonicalize

logger = logging.getLogger(__name__)

ENTITY_TYPES: tuple[str, ...] = ("director", "actor", "all")


def check_entity_type(entity_type: str) -> None:
    if entity_type not in ENTITY_TYPES:
        raise ValueError(
            f"Unknown entity type {entity_type!r}, expected one of {ENTITY_TYPES}"
        )


def iter_movie_references(movie: dict, entity_type: str = "all"):
    """Yield ``(field, raw_value)`` for every person reference on a movie.

    Cast elements that are neither strings nor ``{name: ...}`` objects
    are skipped.
    """
    check_entity_type(entity_type)

    if entity_type in ("director", "all"):
        yield "director", movie.get("director")

    if entity_type in ("actor", "all"):
        yield "hero", movie.get("hero")
        yield "heroine", movie.get("heroine")
        for member in movie.get("cast_members") or []:
            entry = parse_cast_entry(member)
            if isinstance(entry, (PlainName, NamedMember)):
                yield "cast_members", entry.name
            else:
                logger.debug(f"Skipping malformed cast entry on {movie.get('id')}: {member!r}")


def collect_references(
    movies: list[dict], entity_type: str = "all"
) -> dict[str, list[EntityOccurrence]]:
    """Build the canonical name -> occurrences index.

    Args:
        movies: Movie rows from the repository.
        entity_type: ``director``, ``actor`` or ``all``.

    Returns:
        Buckets keyed by canonical name, in first-seen order.
    """
    check_entity_type(entity_type)
    index: dict[str, list[EntityOccurrence]] = {}

    for movie in movies:
        movie_id = movie.get("id")
        title = movie.get("title") or ""
        for field, raw_value in iter_movie_references(movie, entity_type):
            canonical = canonicalize(raw_value)
            if not canonical:
                continue
            index.setdefault(canonical, []).append(
                EntityOccurrence(
                    movie_id=movie_id,
                    movie_title=title,
                    field=field,
                    raw_value=raw_value,
                )
            )

    logger.debug(
        f"Collected {sum(len(v) for v in index.values())} references "
        f"across {len(index)} canonical names"
    )
    return index
