"""
Row-level validation: contact/PO swap repair and multi-PO splitting.

Shippers regularly paste the phone number into the PO column and the PO
into the contact column. The swap is only repaired when BOTH columns look
wrong; either check alone fires on too many legitimate rows.
"""

import copy
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from manifest_ingest.db.schemas import HeaderMappingResult
from manifest_ingest.services.row_data import MappedRow
from manifest_ingest.services.value_extractors import cell_to_text

logger = logging.getLogger(__name__)

# Tuning knobs for the swap heuristic. Looser variants of these produced
# false swaps on real manifests; recalibrate against samples before changing.
STRICT_PO_RE = re.compile(r'^(HWSH\d+)|(^[a-zA-Z0-9_\-]*\d{3,}[a-zA-Z0-9_\-]*$)', re.IGNORECASE)
PHONE_PATTERN_RE = re.compile(r'(?:\+?60|0)?1\d[\-\s]?\d{7,8}|\d{2}[\-\s]?\d{7,8}')
PO_LIKE_PART_RE = re.compile(r'^[a-zA-Z0-9\-]{2,15}$')
PO_MARKER = 'HWSH'

MULTI_VALUE_SEPARATOR_RE = re.compile(r'[/\n\r,;]+')
PARENTHESIZED_RE = re.compile(r'\(.*?\)')
PO_FRAGMENT_RE = re.compile(r'[a-zA-Z0-9].*[a-zA-Z0-9]')
PO_JOINER = ' | '


@dataclass
class SwapCorrectionResult:
    row: MappedRow
    swapped: bool = False
    note: Optional[str] = None
    needs_review: bool = False


def _split_parts(value: str) -> List[str]:
    return [part.strip() for part in MULTI_VALUE_SEPARATOR_RE.split(value) if part.strip()]


def contact_looks_po_like(contact_value: str) -> bool:
    if PO_MARKER in contact_value.upper():
        return True
    return any(
        PO_LIKE_PART_RE.match(part) and not PHONE_PATTERN_RE.search(part)
        for part in _split_parts(contact_value)
    )


def po_looks_like_contact(po_value: str) -> bool:
    return bool(PHONE_PATTERN_RE.search(po_value)) and not STRICT_PO_RE.search(po_value)


def parse_multiple_po_numbers(po_string: Any) -> List[str]:
    """
    Split a PO cell into individual PO numbers.

    Parenthesised asides are dropped, fragments must start and end with an
    alphanumeric character, and duplicates are removed keeping first-seen order.
    """
    if not isinstance(po_string, str) or not po_string.strip():
        return []

    stripped = PARENTHESIZED_RE.sub('', po_string).strip()
    unique: List[str] = []
    for part in _split_parts(stripped):
        if PO_FRAGMENT_RE.search(part) and part not in unique:
            unique.append(part)
    return unique


def _locate(row: MappedRow, standard_field: str, header_mapping: HeaderMappingResult) -> Optional[Tuple[Dict[str, Any], str]]:
    """Container and key holding a field's value in this row."""
    if standard_field in row.fields:
        return row.fields, standard_field
    header = header_mapping.find_actual_key_for_standard_field(standard_field) if header_mapping else None
    if header and header in row.miscellaneous:
        return row.miscellaneous, header
    return None


def _as_text(value: Any) -> str:
    return '' if value is None else cell_to_text(value)


def detect_and_correct_swapped_fields(row: MappedRow, header_mapping: HeaderMappingResult) -> SwapCorrectionResult:
    """
    Repair a swapped contact/PO pair and normalise the PO column.

    Works on a copy of ``row``. Running it again on its own output changes
    nothing.
    """
    corrected = copy.deepcopy(row)
    result = SwapCorrectionResult(row=corrected)

    contact_location = _locate(corrected, 'contactNumber', header_mapping)
    po_location = _locate(corrected, 'poNumber', header_mapping)

    if contact_location and po_location:
        contact_container, contact_key = contact_location
        po_container, po_key = po_location
        contact_value = _as_text(contact_container.get(contact_key))
        po_value = _as_text(po_container.get(po_key))

        if contact_value and po_value and contact_looks_po_like(contact_value) and po_looks_like_contact(po_value):
            contact_container[contact_key] = po_value
            po_container[po_key] = contact_value
            result.swapped = True
            result.needs_review = True
            result.note = (
                f"Automatically swapped potentially incorrect 'Contact Number' "
                f"({contact_value.replace(chr(10), '<NL>')}) and 'PO Number' ({po_value}) based on heuristics."
            )
            logger.info(f"🔄 Row {row.row_index}: swapped contact/PO values")

    if po_location:
        po_container, po_key = po_location
        original_po = po_container.get(po_key)
        po_text = _as_text(original_po)
        fragments = _split_parts(PARENTHESIZED_RE.sub('', po_text)) if po_text else []

        if len(fragments) > 1:
            po_container[po_key] = PO_JOINER.join(fragments)
            multi_note = f"Parsed multiple PO numbers from original field value: {po_text.replace(chr(10), '<NL>')}"
            result.note = multi_note if not result.note else f"{result.note} Additionally parsed multiple PO numbers from resulting field value."
            result.needs_review = True
        elif len(fragments) == 1:
            po_container[po_key] = fragments[0]
        # zero fragments: leave the original value untouched

    if result.note:
        corrected.add_note(result.note, needs_review=result.needs_review)

    return result
