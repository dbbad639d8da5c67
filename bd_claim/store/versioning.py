"""Database version compatibility rule.

The beads CLI stamps its version into metadata(key='bd_version'). Stores
written by releases older than MIN_COMPATIBLE_BD_VERSION use a schema the
claim queries do not understand.
"""

import re

MIN_COMPATIBLE_BD_VERSION = "0.20.0"
VERSION_METADATA_KEY = "bd_version"

_LEADING_DIGITS_RE = re.compile(r"^\d+")


def parse_version(version: str) -> tuple[int, int, int]:
    """Parse "v1.2.3" style versions into a (major, minor, patch) triple.

    Missing trailing components are 0; each component uses its leading
    digits only ("1-rc1" -> 1), and a component without digits is 0.
    """
    parts = version.strip().lstrip("vV").split(".")
    out = [0, 0, 0]
    for i, part in enumerate(parts[:3]):
        m = _LEADING_DIGITS_RE.match(part.strip())
        out[i] = int(m.group(0)) if m else 0
    return out[0], out[1], out[2]


def is_version_compatible(version: str, min_version: str = MIN_COMPATIBLE_BD_VERSION) -> bool:
    """True when version >= min_version, compared as triples."""
    return parse_version(version) >= parse_version(min_version)
