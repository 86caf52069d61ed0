"""Parsing of recognition output into candidate VINs."""

import json
import re

from vin_audit.domain.errors import InvalidIdentifierFormat

VIN_LENGTH = 17
MIN_LENIENT_LENGTH = 10
MAX_LENIENT_LENGTH = 20

_NON_VIN_CHARACTERS = re.compile(r"[^A-HJ-NPR-Z0-9]")
_CODE_FENCE = re.compile(r"```json\n|\n```|```")
_LENIENT_VIN = re.compile(r"[A-Z0-9]{10,20}")


def normalize_vin(text: str) -> str:
    """Return the single VIN in text or raise InvalidIdentifierFormat.

    Input is uppercased and every character outside the VIN alphabet
    (which excludes I, O and Q) is dropped. The remainder must be exactly
    17 characters long.
    """
    vin = _NON_VIN_CHARACTERS.sub("", text.strip().upper())
    if len(vin) != VIN_LENGTH:
        raise InvalidIdentifierFormat(len(vin))
    return vin


def strip_code_fence(text: str) -> str:
    """Remove Markdown code fences wrapping a model response."""
    return _CODE_FENCE.sub("", text).strip()


def parse_json_candidates(text: str) -> list[str] | None:
    """Parse a JSON array of VIN-like strings.

    Returns None when the text is not a JSON array, so callers can fall back
    to scanning the raw text.
    """
    try:
        parsed = json.loads(strip_code_fence(text))
    except ValueError:
        return None
    if not isinstance(parsed, list):
        return None
    candidates = [
        value
        for value in parsed
        if isinstance(value, str)
        and MIN_LENIENT_LENGTH <= len(value) <= MAX_LENIENT_LENGTH
    ]
    return list(dict.fromkeys(candidates))


def scan_text_candidates(text: str) -> list[str]:
    """Return every distinct VIN-like run of 10-20 uppercase characters."""
    return list(dict.fromkeys(_LENIENT_VIN.findall(text)))


def parse_candidates(text: str) -> list[str]:
    """Parse multi-VIN recognition output, JSON first then regex fallback.

    The result keeps first-seen order and contains no repeats. An empty list
    means nothing was detected.
    """
    candidates = parse_json_candidates(text)
    if candidates is None:
        return scan_text_candidates(text)
    return candidates
