"""Regulatory identifier extraction (recall numbers, CFR citations, applications)."""

import re

_PATTERNS: dict[str, re.Pattern[str]] = {
    # FDA recall numbers: F-1234-2024, D-0456-2023, Z-1010-2024
    "recall_numbers": re.compile(r"\b[FDZBV]-\d{3,4}-\d{4}\b"),
    # 21 CFR 117, 21 CFR Part 111, 40 C.F.R. 261.4
    "cfr_citations": re.compile(
        r"\b\d{1,2}\s+C\.?F\.?R\.?\s+(?:Part\s+)?\d+(?:\.\d+)?\b", re.IGNORECASE
    ),
    # NDA 021234, ANDA 078901, BLA 125057
    "applications": re.compile(r"\b(?:NDA|ANDA|BLA)\s*#?\s*\d{6}\b"),
    # Federal Register document numbers: 2024-01234
    "fr_documents": re.compile(r"\b20\d{2}-\d{5}\b"),
}

_SPACES = re.compile(r"\s+")


def extract_identifiers(text: str) -> dict[str, list[str]]:
    """
    Find regulatory identifiers in free text.

    Returns:
        Mapping of identifier kind to unique matches in first-seen order.
        Kinds with no match are omitted.
    """
    found: dict[str, list[str]] = {}
    for kind, pattern in _PATTERNS.items():
        matches: list[str] = []
        for m in pattern.findall(text or ""):
            value = _SPACES.sub(" ", m.strip())
            if value not in matches:
                matches.append(value)
        if matches:
            found[kind] = matches
    return found
