"""Entity references, duplicate detection, collaborations and normalization."""
