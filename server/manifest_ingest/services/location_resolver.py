"""
Location resolution for shipment origins and destinations.

Origins arrive as warehouse nicknames ("LOADUP JB", "Pick up at Niro") and are
resolved against the stub gazetteer first, then against known naming
patterns. Destinations come from the ship-to address columns.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from manifest_ingest.constants.gazetteer import DEFAULT_COUNTRY, GazetteerEntry, find_location_by_keywords
from manifest_ingest.db.schemas import LocationDetail
from manifest_ingest.services.value_extractors import extract_string_field

logger = logging.getLogger(__name__)

KEYWORD_MATCH_CONFIDENCE = 1.0
DIRECT_FIELDS_CONFIDENCE = 0.8
POSTAL_CODE_RE = re.compile(r'\b(\d{5})\b')

# Hubs used when a NIRO/XIN HWA pickup has to be placed from the destination state
_CONTEXT_HUBS = {
    "JOHOR": ("NIRO/XINWHA JB Hub (Estimated)", "Johor Bahru", "Johor", 1.4656, 103.7578),
    "PENANG": ("NIRO/XINWHA Prai Hub (Estimated)", "Perai", "Penang", 5.35, 100.40),
    "MALACCA": ("NIRO/XINWHA Melaka Hub (Estimated)", "Melaka", "Melaka", 2.1896, 102.2501),
    "MELAKA": ("NIRO/XINWHA Melaka Hub (Estimated)", "Melaka", "Melaka", 2.1896, 102.2501),
    "NEGERI SEMBILAN": ("NIRO/XINWHA Shah Alam Hub (Estimated)", "Shah Alam", "Selangor", 3.0520, 101.5270),
    "SELANGOR": ("NIRO/XINWHA Shah Alam Hub (Estimated)", "Shah Alam", "Selangor", 3.0520, 101.5270),
    "TERENGGANU": ("NIRO/XINWHA Shah Alam Hub (Estimated)", "Shah Alam", "Selangor", 3.0520, 101.5270),
}
_CENTRAL_HUB = ("NIRO/XINWHA Central Hub (Estimated)", None, None, 2.5, 101.5)


class LocationResolver:
    """Keyword and pattern lookup; never raises, unresolved input comes back as method 'none'."""

    def __init__(self, gazetteer: Optional[List[GazetteerEntry]] = None):
        self.gazetteer = gazetteer
        self.logger = logging.getLogger(__name__)

    def _from_gazetteer(self, raw_input: str, entry: GazetteerEntry) -> LocationDetail:
        parts = [entry.get("street"), entry.get("city"), entry.get("state")]
        return LocationDetail(
            raw_input=raw_input,
            resolved_address=", ".join(part for part in parts if part),
            street=entry.get("street"),
            city=entry.get("city"),
            state=entry.get("state"),
            postal_code=entry.get("postal_code"),
            country=entry.get("country", DEFAULT_COUNTRY),
            latitude=entry.get("latitude"),
            longitude=entry.get("longitude"),
            resolution_method="mock-keyword",
            resolution_confidence=KEYWORD_MATCH_CONFIDENCE,
        )

    def _from_patterns(self, raw_input: str, state_context: Optional[str]) -> Optional[LocationDetail]:
        upper = raw_input.upper()

        def estimated(address, city, state, lat, lon, confidence, method="estimated-pattern"):
            return LocationDetail(
                raw_input=raw_input,
                resolved_address=address,
                city=city,
                state=state,
                latitude=lat,
                longitude=lon,
                resolution_method=method,
                resolution_confidence=confidence,
            )

        if "LOADUP JB" in upper:
            return estimated("Loadup JB Hub (Estimated)", "Johor Bahru", "Johor", 1.4656, 103.7578, 0.5)
        if "LOADUP PN" in upper or "PRAI HUB" in upper:
            return estimated("Loadup Prai Hub (Estimated)", "Perai", "Penang", 5.35, 100.40, 0.5)
        if "RETAIL OUTSTATION" in upper and "PENANG" in upper:
            return estimated("Loadup Prai Hub (Estimated from Outstation)", "Perai", "Penang", 5.35, 100.40, 0.6)
        if "LOT 198 B JALAN BANFOO" in upper:
            return estimated("Ulu Tiram Hub (Estimated from Outstation)", "Ulu Tiram", "Johor", 1.5837, 103.8242, 0.6)
        if "NIRO" in upper or "XIN HWA" in upper or "XINWHA" in upper:
            hub = _CONTEXT_HUBS.get((state_context or "").strip().upper(), _CENTRAL_HUB)
            return estimated(*hub, 0.4, method="estimated-pattern-context")
        return None

    async def resolve_ambiguous_location(
        self,
        raw_location: Optional[str],
        state_context: Optional[str] = None,
    ) -> LocationDetail:
        """Resolve a free-text location; the state context disambiguates shared hub names."""
        text = extract_string_field(raw_location)
        if not text:
            return LocationDetail()

        entry = find_location_by_keywords(text, self.gazetteer)
        if entry is not None:
            self.logger.info(f"✅ Resolved '{text}' via gazetteer entry {entry.get('id')}")
            return self._from_gazetteer(text, entry)

        detail = self._from_patterns(text, state_context)
        if detail is not None:
            self.logger.warning(
                f"⚠️ Using estimated coordinates for '{text}' ({detail.resolution_method}, state context: {state_context or 'N/A'})"
            )
            return detail

        self.logger.warning(f"⚠️ Could not resolve location '{text}'")
        return LocationDetail(raw_input=text, resolved_address=text)


def _trim_tail(address: str, component: Optional[str]) -> str:
    """Drop a trailing city/state from the address when it sits in the back half."""
    if not component:
        return address
    index = address.upper().rfind(component.upper())
    if index > len(address) / 2:
        return address[:index].strip().rstrip(',').strip()
    return address


def create_location_detail_from_address_fields(fields: Dict[str, Any]) -> Optional[LocationDetail]:
    """
    Destination built from the ship-to columns.

    A 5-digit postcode embedded in the address is lifted out when no postcode
    column exists, and a trailing city/state is trimmed off the street part.
    Country defaults to Malaysia whenever a state is known.
    """
    raw_address = extract_string_field(fields.get("shipToAddress"))
    city = extract_string_field(fields.get("shipToCity"))
    state = extract_string_field(fields.get("shipToState"))
    postal_code = extract_string_field(fields.get("shipToZip"))
    country = extract_string_field(fields.get("shipToCountry"))

    if not any([raw_address, city, state, postal_code, country]):
        return None

    street = None
    if raw_address:
        processed = raw_address
        if not postal_code:
            match = POSTAL_CODE_RE.search(processed)
            if match:
                postal_code = match.group(1)
                processed = re.sub(r"\s{2,}", " ", processed[:match.start()] + processed[match.end():]).strip()
        processed = _trim_tail(processed, city)
        processed = _trim_tail(processed, state)
        street = processed or None

    if not country and state:
        country = DEFAULT_COUNTRY

    combined = ", ".join(part for part in [street, city, state, postal_code, country] if part)
    raw_input = combined or raw_address

    return LocationDetail(
        raw_input=raw_input,
        resolved_address=raw_input,
        street=street,
        city=city,
        state=state,
        postal_code=postal_code,
        country=country,
        resolution_method="direct-fields",
        resolution_confidence=DIRECT_FIELDS_CONFIDENCE,
    )
