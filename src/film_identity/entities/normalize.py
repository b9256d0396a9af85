"""Canonical-form normalization and career phase detection."""

import copy
import logging
from collections import Counter
from datetime import date

from film_identity.config import Config
from film_identity.entities.collector import check_entity_type
from film_identity.entities.models import (
    SCALAR_FIELDS,
    NamedMember,
    NameChange,
    NormalizationReport,
    PlainName,
    parse_cast_entry,
)
from film_identity.names import canonicalize
from film_identity.repository.base import MovieRepository

logger = logging.getLogger(__name__)

CAREER_PHASES: tuple[str, ...] = ("debut", "rising", "peak", "established", "veteran", "legend")


def _fields_for(entity_type: str) -> tuple[str, ...]:
    if entity_type == "director":
        return ("director",)
    if entity_type == "actor":
        return ("hero", "heroine", "cast_members")
    return SCALAR_FIELDS + ("cast_members",)


def normalize_movie(movie: dict, entity_type: str = "all") -> tuple[dict, list[NameChange]]:
    """Compute the canonical-form updates for one movie.

    Returns:
        ``(updates, changes)`` where ``updates`` is a partial field dict
        ready for ``update_movie``. Both are empty when nothing changes.
    """
    updates: dict = {}
    changes: list[NameChange] = []
    movie_id = movie.get("id")

    for field in _fields_for(entity_type):
        if field == "cast_members":
            cast = movie.get("cast_members") or []
            normalized_cast = []
            changed = False
            for member in cast:
                entry = parse_cast_entry(member)
                if isinstance(entry, (PlainName, NamedMember)):
                    canonical = canonicalize(entry.name)
                    if canonical and canonical != entry.name:
                        changes.append(NameChange(movie_id, field, entry.name, canonical))
                        normalized_cast.append(entry.renamed(canonical).to_raw())
                        changed = True
                        continue
                normalized_cast.append(copy.deepcopy(member))
            if changed:
                updates["cast_members"] = normalized_cast
            continue

        value = movie.get(field)
        canonical = canonicalize(value)
        if canonical and canonical != value:
            updates[field] = canonical
            changes.append(NameChange(movie_id, field, value, canonical))

    return updates, changes


class EntityNormalizer:
    """Rewrites every person reference to its canonical spelling."""

    def __init__(self, repository: MovieRepository, config: Config | None = None):
        self.repository = repository
        self.config = config or Config()

    def normalize(
        self,
        entity_type: str = "all",
        fix: bool = False,
        dry_run: bool = True,
        limit: int | None = None,
    ) -> NormalizationReport:
        """Find (and with ``fix`` and not ``dry_run``, apply) canonical rewrites.

        Per-movie write failures are logged and do not stop the pass.
        """
        check_entity_type(entity_type)
        movies = self.repository.select_movies(limit=limit or self.config.fetch_limit)
        report = NormalizationReport(analyzed=len(movies))
        apply = fix and not dry_run

        for movie in movies:
            updates, changes = normalize_movie(movie, entity_type)
            report.changes.extend(changes)
            if apply and updates:
                try:
                    self.repository.update_movie(movie.get("id"), updates)
                except Exception as e:
                    logger.error(f"Failed to normalize {movie.get('id')}: {e}")

        report.normalized = len(report.changes)
        logger.info(
            f"Normalization {'applied' if apply else 'dry run'}: "
            f"{report.normalized} changes across {report.analyzed} movies"
        )
        return report


# ------------------------------------------------------------------ #
#  Career phases                                                      #
# ------------------------------------------------------------------ #


def detect_career_phase(
    first_film_year: int | None,
    total_films: int,
    current_year: int | None = None,
) -> str:
    """Classify a career by length and volume.

    Unknown debut year defaults to ``established``.
    """
    if not first_film_year:
        return "established"

    years_active = (current_year or date.today().year) - first_film_year

    if total_films <= 2:
        return "debut"
    if total_films <= 10 and years_active < 5:
        return "rising"
    if years_active >= 40 and total_films >= 100:
        return "legend"
    if years_active >= 25 and total_films >= 50:
        return "veteran"
    if years_active >= 10 and total_films >= 30:
        return "peak"
    return "established"


def career_phase_distribution(
    movies: list[dict], current_year: int | None = None
) -> tuple[int, dict[str, int]]:
    """Count career phases for every canonical hero, heroine and director.

    Returns:
        ``(entity_count, phases)``.
    """
    first_years: dict[str, int | None] = {}
    counts: Counter = Counter()

    for movie in movies:
        year = movie.get("release_year")
        for field in ("hero", "heroine", "director"):
            canonical = canonicalize(movie.get(field))
            if not canonical:
                continue
            counts[canonical] += 1
            known = first_years.get(canonical)
            if year and (known is None or year < known):
                first_years[canonical] = year
            else:
                first_years.setdefault(canonical, None)

    phases = dict.fromkeys(CAREER_PHASES, 0)
    for name, total in counts.items():
        phases[detect_career_phase(first_years[name], total, current_year)] += 1
    return len(counts), phases
