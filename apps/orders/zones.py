"""Service-area check for delivery addresses.

ZIP codes roughly within a 25-mile radius of Scottsdale, AZ (85251):
Scottsdale, Paradise Valley, Phoenix (north/east/central), Tempe, Mesa,
Chandler, Fountain Hills and Gilbert.
"""
from __future__ import annotations

from typing import Iterable

SCOTTSDALE_SERVICE_ZIPS = frozenset({
    # Scottsdale / Paradise Valley
    "85250", "85251", "85252", "85253", "85254", "85255", "85256", "85257",
    "85258", "85259", "85260", "85261", "85262", "85266", "85267", "85271",
    # Phoenix
    "85003", "85004", "85006", "85007", "85008", "85012", "85013", "85014",
    "85016", "85018", "85020", "85021", "85022", "85023", "85024", "85027",
    "85028", "85029", "85032", "85040", "85042", "85044", "85045", "85048",
    "85050", "85054",
    # Tempe
    "85280", "85281", "85282", "85283", "85284", "85285", "85287",
    # Mesa
    "85201", "85202", "85203", "85204", "85205", "85206", "85207", "85210",
    "85213", "85215",
    # Chandler
    "85224", "85225", "85226", "85248", "85249", "85286",
    # Fountain Hills
    "85268",
    # Gilbert
    "85233", "85234", "85295", "85296", "85297", "85298",
})


def normalize_zip(raw) -> str:
    """First five characters of the trimmed input, or "" when that is not a 5-digit code."""
    if not isinstance(raw, str):
        return ""
    code = raw.strip()[:5]
    if len(code) != 5 or not (code.isascii() and code.isdigit()):
        return ""
    return code


def is_serviceable_zip(raw, allowed: Iterable[str] | None = None) -> bool:
    code = normalize_zip(raw)
    if not code:
        return False
    zips = SCOTTSDALE_SERVICE_ZIPS if allowed is None else allowed
    return code in zips
