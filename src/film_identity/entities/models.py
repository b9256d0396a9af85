"""Data model for entity resolution, collaborations and merges."""

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

EntityField = Literal["director", "hero", "heroine", "cast_members"]
RelationshipType = Literal["actor_director", "hero_heroine", "actor_music"]

SCALAR_FIELDS: tuple[str, ...] = ("director", "hero", "heroine")
SNAPSHOT_FIELDS: tuple[str, ...] = ("director", "hero", "heroine", "cast_members")


# ------------------------------------------------------------------ #
#  Cast entries                                                       #
# ------------------------------------------------------------------ #


@dataclass
class PlainName:
    """A cast element stored as a bare string."""

    name: str

    def to_raw(self) -> str:
        return self.name

    def renamed(self, name: str) -> "PlainName":
        return PlainName(name)


@dataclass
class NamedMember:
    """A cast element stored as an object with a ``name`` key.

    ``rest`` holds every other key (character, order, ...) untouched.
    """

    name: str
    rest: dict = field(default_factory=dict)

    def to_raw(self) -> dict:
        return {**self.rest, "name": self.name}

    def renamed(self, name: str) -> "NamedMember":
        return NamedMember(name, dict(self.rest))


@dataclass
class UnknownMember:
    """A cast element of any other shape; always passed through as-is."""

    raw: Any

    def to_raw(self) -> Any:
        return self.raw


CastEntry = PlainName | NamedMember | UnknownMember


def parse_cast_entry(raw: Any) -> CastEntry:
    """Classify a raw cast_members element."""
    if isinstance(raw, str):
        return PlainName(raw)
    if isinstance(raw, dict) and isinstance(raw.get("name"), str):
        rest = {k: v for k, v in raw.items() if k != "name"}
        return NamedMember(raw["name"], rest)
    return UnknownMember(raw)


# ------------------------------------------------------------------ #
#  Duplicate detection                                                #
# ------------------------------------------------------------------ #


@dataclass
class EntityOccurrence:
    """One (movie, field, raw value) reference to a person."""

    movie_id: str
    movie_title: str
    field: EntityField
    raw_value: str


@dataclass
class PersonIdentity:
    """A match from an external film/knowledge catalog."""

    name: str
    tmdb_id: int | None = None
    popularity: float | None = None
    department: str | None = None
    wikidata_id: str | None = None


@dataclass
class DuplicateGroup:
    """Occurrences believed to name the same person."""

    canonical_name: str
    occurrences: list[EntityOccurrence]
    confidence: float
    identity: PersonIdentity | None = None

    @property
    def source_names(self) -> list[str]:
        """Distinct raw surface strings, in first-seen order."""
        return list(dict.fromkeys(o.raw_value for o in self.occurrences))

    @property
    def movie_ids(self) -> list[str]:
        """Distinct movie ids, in first-seen order."""
        return list(dict.fromkeys(o.movie_id for o in self.occurrences))

    def to_dict(self) -> dict:
        data = asdict(self)
        data["source_names"] = self.source_names
        return data


@dataclass
class DetectionReport:
    potential_duplicates: list[DuplicateGroup]
    unique_count: int
    total_references: int


# ------------------------------------------------------------------ #
#  Collaborations                                                     #
# ------------------------------------------------------------------ #


@dataclass
class MovieSummary:
    id: str
    title: str
    year: int | None = None


@dataclass
class Collaboration:
    """How often two canonical entities co-occur in one role pairing."""

    entity1: str
    entity2: str
    relationship_type: RelationshipType
    movie_count: int = 0
    movies: list[MovieSummary] = field(default_factory=list)
    first_year: int | None = None
    last_year: int | None = None
    hit_rate: float = 0.0
    avg_rating: float | None = None
    notable_films: list[str] = field(default_factory=list)

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.entity1, self.entity2, self.relationship_type)

    def to_dict(self) -> dict:
        return asdict(self)


# ------------------------------------------------------------------ #
#  Merging                                                            #
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class MergeLogEntry:
    """Append-only audit record for one executed merge."""

    merge_id: str
    timestamp: str
    source_names: tuple[str, ...]
    target_name: str
    affected_movies: tuple[str, ...]
    preserved_analytics: bool

    def to_dict(self) -> dict:
        data = asdict(self)
        data["source_names"] = list(self.source_names)
        data["affected_movies"] = list(self.affected_movies)
        return data


@dataclass
class MergeResult:
    merged_count: int
    affected_movie_ids: list[str]
    log_entry: MergeLogEntry
    rollback_data: dict[str, dict] | None = None
    dry_run: bool = True

    def to_dict(self) -> dict:
        return {
            "merged_count": self.merged_count,
            "affected_movie_ids": list(self.affected_movie_ids),
            "rollback_data": self.rollback_data,
            "log_entry": self.log_entry.to_dict(),
            "dry_run": self.dry_run,
        }


@dataclass
class MergeCandidate:
    group: DuplicateGroup
    canonical_name: str


@dataclass
class BatchMergeReport:
    total: int = 0
    merged: int = 0
    errors: int = 0
    results: list[MergeResult] = field(default_factory=list)
    failures: list[dict] = field(default_factory=list)


# ------------------------------------------------------------------ #
#  Normalization                                                      #
# ------------------------------------------------------------------ #


@dataclass
class NameChange:
    movie_id: str
    field: str
    old_value: str
    new_value: str


@dataclass
class NormalizationReport:
    analyzed: int = 0
    normalized: int = 0
    changes: list[NameChange] = field(default_factory=list)
