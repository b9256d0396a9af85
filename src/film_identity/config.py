"""Central configuration for the Film Identity system."""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load .env file from project root
load_dotenv()


class Config(BaseModel):
    """All configuration for the Film Identity system.

    Paths are relative to the project root unless absolute.
    Neo4j credentials and the TMDB key should be overridden via
    environment or .env file.
    """

    # Paths
    movies_path: Path = Field(
        default=Path(os.getenv("FID_MOVIES_PATH", "data/movies.json"))
    )
    audit_log_path: Path = Field(
        default=Path(os.getenv("FID_AUDIT_LOG_PATH", "data/merge_log.jsonl"))
    )
    rollback_dir: Path = Path("data/rollback")

    # Neo4j
    neo4j_uri: str = Field(default=os.getenv("NEO4J_URI", "bolt://localhost:7687"))
    neo4j_user: str = Field(default=os.getenv("NEO4J_USER", "neo4j"))
    neo4j_password: str = Field(default=os.getenv("NEO4J_PASSWORD", "password"))

    # External identity providers
    tmdb_api_key: str = Field(default=os.getenv("TMDB_API_KEY", ""))
    tmdb_base_url: str = "https://api.themoviedb.org/3"
    wikidata_api_url: str = "https://www.wikidata.org/w/api.php"
    request_timeout: float = 10.0
    external_confidence_boost: float = 0.05

    # Detection
    fetch_limit: int = 1000
    max_duplicate_groups: int = 100

    # Collaborations
    min_collaboration_movies: int = 3

    # Merging
    min_merge_confidence: float = 0.7
