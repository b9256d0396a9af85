"""Neo4j movie repository: MERGE-based, idempotent.

Movies are ``(:Movie {id})`` nodes. Neo4j properties cannot hold lists
of maps, so ``cast_members`` is stored as a JSON string. Merge audit
records become ``(:MergeLog)`` nodes and the collaboration graph is
written as ``(:Person)-[:COLLABORATED_WITH]->(:Person)`` edges.
"""

import json
import logging

from neo4j import GraphDatabase
from neo4j.exceptions import Neo4jError, ServiceUnavailable

from film_identity.config import Config
from film_identity.entities.models import Collaboration
from film_identity.repository.base import MOVIE_FIELDS, MovieRepository, RepositoryError

logger = logging.getLogger(__name__)

_DB_ERRORS = (Neo4jError, ServiceUnavailable)


def _to_node_props(fields: dict) -> dict:
    props = {}
    for key, value in fields.items():
        if key == "cast_members":
            props["cast_members_json"] = json.dumps(value or [], ensure_ascii=False)
        else:
            props[key] = value
    return props


def _from_node_props(props: dict) -> dict:
    movie = {k: props.get(k) for k in MOVIE_FIELDS if k != "cast_members"}
    raw_cast = props.get("cast_members_json")
    movie["cast_members"] = json.loads(raw_cast) if raw_cast else []
    return movie


class Neo4jMovieRepository(MovieRepository):
    """Movie store backed by Neo4j.

    ``apply_updates`` runs every write of one merge inside a single
    write transaction, so a merge either lands completely or not at all.
    """

    def __init__(self, config: Config):
        self.config = config
        self.driver = GraphDatabase.driver(
            config.neo4j_uri,
            auth=(config.neo4j_user, config.neo4j_password),
        )

    def close(self):
        """Close the Neo4j driver connection."""
        self.driver.close()

    # ------------------------------------------------------------------ #
    #  Static transaction functions (used with session.execute_*)          #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _select_movies(tx, filters: dict, limit: int) -> list[dict]:
        clauses = []
        params = {"limit": limit}
        for idx, (key, value) in enumerate(filters.items()):
            if not key.isidentifier():
                raise RepositoryError(f"Invalid filter field: {key!r}")
            param = f"p{idx}"
            if isinstance(value, (list, tuple, set, frozenset)):
                clauses.append(f"m.{key} IN ${param}")
                params[param] = list(value)
            else:
                clauses.append(f"m.{key} = ${param}")
                params[param] = value
        where = f"WHERE {' AND '.join(clauses)} " if clauses else ""
        result = tx.run(
            f"MATCH (m:Movie) {where}RETURN properties(m) AS props LIMIT $limit",
            **params,
        )
        return [_from_node_props(record["props"]) for record in result]

    @staticmethod
    def _update_movie(tx, movie_id, props: dict) -> None:
        record = tx.run(
            "MATCH (m:Movie {id: $movie_id}) "
            "SET m += $props "
            "RETURN m.id AS id",
            movie_id=movie_id,
            props=props,
        ).single()
        if record is None:
            raise RepositoryError(f"Movie {movie_id} not found")

    @staticmethod
    def _append_merge_log(tx, entry: dict) -> None:
        tx.run(
            "MERGE (l:MergeLog {merge_id: $merge_id}) "
            "SET l.timestamp = $timestamp, "
            "    l.source_names = $source_names, "
            "    l.target_name = $target_name, "
            "    l.affected_movies = $affected_movies, "
            "    l.preserved_analytics = $preserved_analytics",
            **entry,
        )

    @staticmethod
    def _merge_collaboration(tx, collab: dict) -> None:
        tx.run(
            "MERGE (a:Person {name: $entity1}) "
            "MERGE (b:Person {name: $entity2}) "
            "MERGE (a)-[r:COLLABORATED_WITH {relationship_type: $relationship_type}]->(b) "
            "SET r.movie_count = $movie_count, "
            "    r.movie_ids = $movie_ids, "
            "    r.first_year = $first_year, "
            "    r.last_year = $last_year, "
            "    r.hit_rate = $hit_rate, "
            "    r.avg_rating = $avg_rating, "
            "    r.notable_films = $notable_films",
            **collab,
        )

    # ------------------------------------------------------------------ #
    #  Public API                                                         #
    # ------------------------------------------------------------------ #

    def select_movies(self, filters: dict | None = None, limit: int = 1000) -> list[dict]:
        try:
            with self.driver.session() as session:
                return session.execute_read(self._select_movies, filters or {}, limit)
        except _DB_ERRORS as e:
            raise RepositoryError(f"Failed to fetch movies: {e}") from e

    def update_movie(self, movie_id: str, fields: dict) -> None:
        self.apply_updates({movie_id: fields})

    def apply_updates(self, updates: dict[str, dict]) -> None:
        def _apply_all(tx):
            for movie_id, fields in updates.items():
                self._update_movie(tx, movie_id, _to_node_props(fields))

        try:
            with self.driver.session() as session:
                session.execute_write(_apply_all)
        except _DB_ERRORS as e:
            raise RepositoryError(f"Failed to update movies: {e}") from e

    def append_audit_log(self, entry: dict) -> None:
        try:
            with self.driver.session() as session:
                session.execute_write(self._append_merge_log, entry)
        except _DB_ERRORS as e:
            raise RepositoryError(f"Failed to append audit log: {e}") from e

    def read_audit_log(self) -> list[dict]:
        try:
            records, _, _ = self.driver.execute_query(
                "MATCH (l:MergeLog) RETURN properties(l) AS props ORDER BY l.timestamp"
            )
        except _DB_ERRORS as e:
            raise RepositoryError(f"Failed to read audit log: {e}") from e
        return [dict(r["props"]) for r in records]

    def write_collaborations(self, collaborations: list[Collaboration]) -> int:
        """MERGE collaboration edges into the graph.

        Returns:
            Number of edges written.
        """
        written = 0
        with self.driver.session() as session:
            for collab in collaborations:
                session.execute_write(
                    self._merge_collaboration,
                    {
                        "entity1": collab.entity1,
                        "entity2": collab.entity2,
                        "relationship_type": collab.relationship_type,
                        "movie_count": collab.movie_count,
                        "movie_ids": [m.id for m in collab.movies],
                        "first_year": collab.first_year,
                        "last_year": collab.last_year,
                        "hit_rate": collab.hit_rate,
                        "avg_rating": collab.avg_rating,
                        "notable_films": collab.notable_films,
                    },
                )
                written += 1
        logger.info(f"Wrote {written} collaboration edges")
        return written
