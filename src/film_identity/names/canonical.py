"""Name canonicalization and variation generation.

Raw names are entered by hand and drift: "S.S. Rajamouli",
"S S Rajamouli" and "ss rajamouli" all canonicalize to
"S S Rajamouli". Variations widen a canonical name into the surface
forms people commonly use for the same person, so aliased buckets can
be found during duplicate detection.
"""

import re

# Keyword (matched case-insensitively against a token, or against the
# whole name for multi-word keys) -> known alternate public names.
ALIAS_TABLE: dict[str, list[str]] = {
    "Jr": ["Junior", "Jr.", "Jnr"],
    "Sr": ["Senior", "Sr."],
    "Ntr": ["N.T.R.", "N T R", "NTR"],
    "Ram": ["Rama"],
    "Mahesh": ["Mahesh Babu", "Super Star Mahesh"],
    "Chiranjeevi": ["Chiru", "Megastar Chiranjeevi"],
    "Prabhas": ["Rebel Star Prabhas", "Darling Prabhas"],
    "Allu Arjun": ["Bunny", "Stylish Star", "Icon Star"],
}

_WHITESPACE_RE = re.compile(r"\s+")
_HYPHEN_RE = re.compile(r"\s*-\s*")


def _title_token(token: str) -> str:
    first = token[:1]
    upper = first.upper()
    # "ß".upper() == "SS" would break idempotence on the next pass
    if len(upper) != 1:
        upper = first
    return upper + token[1:].lower()


def canonicalize(name) -> str:
    """Normalize a raw name to its canonical form.

    Total and idempotent. Anything that is not a non-blank string
    yields "" which callers treat as "no entity".
    """
    if not isinstance(name, str):
        return ""
    # Each period separates initials: "S.S." -> "S S"
    value = _WHITESPACE_RE.sub(" ", name.replace(".", " ").strip())
    value = _HYPHEN_RE.sub("-", value)
    tokens = [t for t in value.split(" ") if t]
    return " ".join(_title_token(t) for t in tokens)


def generate_name_variations(name: str) -> set[str]:
    """Return plausible alternate surface forms for a name.

    The result always contains the input itself. Only the static
    ALIAS_TABLE and mechanical transforms are used.
    """
    variations = {name}
    canonical = canonicalize(name)
    if not canonical:
        return variations

    variations.add(canonical)
    parts = canonical.split(" ")

    variations.add(" ".join(f"{p}." for p in parts))
    variations.add(" ".join(parts))

    if len(parts) > 1:
        variations.add(parts[0])
        variations.add(parts[-1])

    lowered_parts = {p.lower() for p in parts}
    lowered_name = canonical.lower()
    for keyword, aliases in ALIAS_TABLE.items():
        key = keyword.lower()
        if key in lowered_parts or (" " in key and key == lowered_name):
            variations.update(aliases)

    return variations
