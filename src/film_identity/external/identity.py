"""External identity lookup: TMDB person search plus Wikidata entity search.

Enrichment only: a missing API key, a network error or an empty result
all mean "no match", never a failure of detection or merging.
"""

import logging

import requests

from film_identity.config import Config
from film_identity.entities.models import DuplicateGroup, PersonIdentity
from film_identity.names import canonicalize

logger = logging.getLogger(__name__)

MAX_BOOSTED_CONFIDENCE = 0.95


class IdentityResolver:
    """Looks up canonical names against public film/metadata catalogs."""

    def __init__(self, config: Config, session: requests.Session | None = None):
        self.config = config
        self.session = session or requests.Session()
        self._cache: dict[str, PersonIdentity | None] = {}

    def search_tmdb(self, name: str) -> PersonIdentity | None:
        """Search TMDB people and return the most popular hit."""
        if not self.config.tmdb_api_key:
            logger.warning("TMDB_API_KEY not configured, skipping TMDB lookup")
            return None

        try:
            response = self.session.get(
                f"{self.config.tmdb_base_url}/search/person",
                params={"api_key": self.config.tmdb_api_key, "query": name},
                timeout=self.config.request_timeout,
            )
            response.raise_for_status()
            results = response.json().get("results", [])
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"TMDB person search failed for {name!r}: {e}")
            return None

        if not results:
            return None
        best = max(results, key=lambda r: r.get("popularity") or 0)
        return PersonIdentity(
            name=best.get("name", name),
            tmdb_id=best.get("id"),
            popularity=best.get("popularity"),
            department=best.get("known_for_department"),
        )

    def search_wikidata(self, name: str) -> PersonIdentity | None:
        """Search Wikidata entities by label and return the first hit."""
        try:
            response = self.session.get(
                self.config.wikidata_api_url,
                params={
                    "action": "wbsearchentities",
                    "search": name,
                    "language": "en",
                    "type": "item",
                    "format": "json",
                    "limit": 1,
                },
                timeout=self.config.request_timeout,
            )
            response.raise_for_status()
            results = response.json().get("search", [])
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"Wikidata search failed for {name!r}: {e}")
            return None

        if not results:
            return None
        hit = results[0]
        return PersonIdentity(
            name=hit.get("label", name),
            wikidata_id=hit.get("id"),
            department=hit.get("description"),
        )

    def lookup(self, name: str) -> PersonIdentity | None:
        """Resolve a canonical name, combining TMDB and Wikidata results.

        Wikidata is always queried: a TMDB hit carries no Wikidata id, so
        the second call fills ``wikidata_id`` on the TMDB identity.
        """
        if name in self._cache:
            return self._cache[name]

        identity = self.search_tmdb(name)
        wikidata = self.search_wikidata(name)
        if identity is None:
            identity = wikidata
        elif wikidata is not None:
            identity.wikidata_id = wikidata.wikidata_id

        self._cache[name] = identity
        return identity

    def enrich(self, group: DuplicateGroup) -> DuplicateGroup:
        """Attach an external identity and blend in extra confidence.

        The boost applies only when the external name canonicalizes to
        the group's canonical name.
        """
        identity = self.lookup(group.canonical_name)
        if identity is None:
            return group

        group.identity = identity
        if canonicalize(identity.name) == group.canonical_name:
            boosted = group.confidence + self.config.external_confidence_boost
            group.confidence = round(min(MAX_BOOSTED_CONFIDENCE, boosted), 4)
            logger.debug(
                f"{group.canonical_name}: external match, confidence -> {group.confidence}"
            )
        return group
