"""
Contact cell parser.

Manifest contact cells mix names, honorifics and one or more Malaysian phone
numbers in whatever format the shipper typed, e.g.
``"MR TAN 012-3456789 / MS LEE 0198765432"``.
"""

import logging
import re
from typing import List, Optional

from manifest_ingest.db.schemas import ParsedContact

logger = logging.getLogger(__name__)

# Runs of 7+ digits, allowing '+', spaces, hyphens and parens in between
PHONE_CANDIDATE_RE = re.compile(r'\+?[\d\s()\-]{7,}\d')
TITLE_PREFIX_RE = re.compile(r'\b(?:MRS|MR|MS|SD|PIC)\b\s*[:.\s\-]*', re.IGNORECASE)
PARENTHESIZED_RE = re.compile(r'\(.*?\)')
NAME_SEPARATOR_RE = re.compile(r'[/\n\r;]+')

# 0-prefixed and 60-prefixed numbers: mobiles start 1 and carry 8-9 more
# digits, landlines start 3-9 and carry 7-8 more
LOCAL_NUMBER_RE = re.compile(r'^0(?:1\d{8,9}|[3-9]\d{7,8})$')
INTERNATIONAL_NUMBER_RE = re.compile(r'^60(?:1\d{8,9}|[3-9]\d{7,8})$')

PHONE_JOINER = ' | '
NAME_JOINER = ' | '


def validate_malaysian_digits(digits: str) -> bool:
    if not digits or not (9 <= len(digits) <= 12):
        return False
    if digits.startswith('60'):
        return bool(INTERNATIONAL_NUMBER_RE.match(digits))
    if digits.startswith('0'):
        return bool(LOCAL_NUMBER_RE.match(digits))
    return False


def normalize_phone_candidate(candidate: str) -> str:
    """Digits-only form of a candidate, restoring the trunk '0' where it was dropped."""
    digits = re.sub(r'\D', '', candidate)
    has_plus = candidate.strip().startswith('+')

    if digits.startswith('60'):
        if has_plus:
            return '0' + digits[2:]
        return digits
    if not digits.startswith('0') and 9 <= len(digits) <= 11:
        return '0' + digits
    return digits


def _strip_titles(text: str) -> str:
    # Titles can repeat ("PIC: MR TAN"), strip until stable
    previous = None
    while previous != text:
        previous = text
        text = TITLE_PREFIX_RE.sub('', text)
    return text


def _is_numeric_only(text: str) -> bool:
    return bool(re.fullmatch(r'[\d\s\-+()]*', text))


def _extract_names(text: str, matched_candidates: List[str]) -> Optional[str]:
    remainder = text
    for candidate in sorted(matched_candidates, key=len, reverse=True):
        remainder = remainder.replace(candidate, ' ')

    remainder = PARENTHESIZED_RE.sub(' ', remainder).strip()
    if not remainder:
        return None

    if '|' in remainder:
        # Shipper already delimited the names themselves
        cleaned = _strip_titles(remainder.replace('(', '').replace(')', ''))
        cleaned = re.sub(r'\s{2,}', ' ', cleaned).strip()
        if not cleaned or _is_numeric_only(cleaned):
            return None
        return cleaned

    names = []
    for segment in NAME_SEPARATOR_RE.split(remainder):
        cleaned = _strip_titles(segment)
        cleaned = re.sub(r'[()]', '', cleaned)
        cleaned = re.sub(r'\s{2,}', ' ', cleaned).strip()
        if cleaned and not _is_numeric_only(cleaned):
            names.append(cleaned)

    return NAME_JOINER.join(names) if names else None


def parse_contact_string(contact: Optional[str]) -> ParsedContact:
    """
    Split a raw contact cell into names and validated phone numbers.

    Phones come back in canonical ``0XXXXXXXXX`` / ``60XXXXXXXXX`` form,
    de-duplicated and joined with ``" | "``; candidates that fail validation
    are dropped. Names have honorifics and parenthesised asides removed.
    """
    if not isinstance(contact, str) or not contact.strip():
        return ParsedContact()

    phones: List[str] = []
    matched_candidates: List[str] = []

    for match in PHONE_CANDIDATE_RE.finditer(contact):
        candidate = match.group(0)
        normalized = normalize_phone_candidate(candidate)
        if validate_malaysian_digits(normalized):
            matched_candidates.append(candidate)
            if normalized not in phones:
                phones.append(normalized)
        else:
            logger.debug(f"Dropping invalid phone candidate {candidate.strip()!r}")

    names = _extract_names(contact, matched_candidates)

    return ParsedContact(
        names=names,
        phones=PHONE_JOINER.join(phones) if phones else None,
    )
