"""JSON-file movie repository.

Movies live in a single JSON file (a list of rows, or
``{"movies": [...]}``); merge audit records are appended to a JSONL
file next to it.
"""

import json
import logging
from pathlib import Path

from film_identity.config import Config
from film_identity.repository.base import MovieRepository, RepositoryError, matches_filters

logger = logging.getLogger(__name__)


class JsonMovieRepository(MovieRepository):
    """Reads and rewrites a movies JSON file on every operation."""

    def __init__(self, config: Config):
        self.movies_path: Path = config.movies_path
        self.audit_log_path: Path = config.audit_log_path

    def _load(self) -> list[dict]:
        if not self.movies_path.exists():
            raise RepositoryError(f"Movies file not found: {self.movies_path}")
        try:
            data = json.loads(self.movies_path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise RepositoryError(f"Failed to read {self.movies_path}: {e}") from e

        # Handle both formats: list of rows or {"movies": [...]}
        if isinstance(data, dict) and "movies" in data:
            data = data["movies"]
        if not isinstance(data, list):
            raise RepositoryError(f"Unexpected movies file layout in {self.movies_path}")
        return data

    def _save(self, movies: list[dict]) -> None:
        try:
            self.movies_path.parent.mkdir(parents=True, exist_ok=True)
            self.movies_path.write_text(json.dumps(movies, indent=2, ensure_ascii=False))
        except OSError as e:
            raise RepositoryError(f"Failed to write {self.movies_path}: {e}") from e

    def select_movies(self, filters: dict | None = None, limit: int = 1000) -> list[dict]:
        movies = [m for m in self._load() if matches_filters(m, filters)]
        logger.debug(f"Selected {min(len(movies), limit)} movies from {self.movies_path}")
        return movies[:limit]

    def update_movie(self, movie_id: str, fields: dict) -> None:
        self.apply_updates({movie_id: fields})

    def apply_updates(self, updates: dict[str, dict]) -> None:
        # One read-modify-write per batch keeps the file consistent
        movies = self._load()
        by_id = {str(m.get("id")): m for m in movies}
        missing = [mid for mid in updates if str(mid) not in by_id]
        if missing:
            raise RepositoryError(f"Movies not found: {', '.join(map(str, missing))}")
        for movie_id, fields in updates.items():
            by_id[str(movie_id)].update(fields)
        self._save(movies)

    def append_audit_log(self, entry: dict) -> None:
        try:
            self.audit_log_path.parent.mkdir(parents=True, exist_ok=True)
            with self.audit_log_path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError as e:
            raise RepositoryError(f"Failed to append audit log: {e}") from e

    def read_audit_log(self) -> list[dict]:
        if not self.audit_log_path.exists():
            return []
        entries = []
        for line in self.audit_log_path.read_text(encoding="utf-8").splitlines():
            if line.strip():
                entries.append(json.loads(line))
        return entries
