"""Name canonicalization and alias variations."""

from film_identity.names.canonical import (
    ALIAS_TABLE,
    canonicalize,
    generate_name_variations,
)

__all__ = ["ALIAS_TABLE", "canonicalize", "generate_name_variations"]
