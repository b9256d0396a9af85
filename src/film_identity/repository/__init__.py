"""Movie record repositories."""

from film_identity.repository.base import MovieRepository, RepositoryError
from film_identity.repository.json_store import JsonMovieRepository
from film_identity.repository.memory import InMemoryMovieRepository

__all__ = [
    "InMemoryMovieRepository",
    "JsonMovieRepository",
    "MovieRepository",
    "RepositoryError",
]
