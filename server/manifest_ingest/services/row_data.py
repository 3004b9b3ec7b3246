"""Mapped row container shared by the mapper, validators and shipment builder."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from manifest_ingest.db.schemas import AIMappedField
from manifest_ingest.services.value_extractors import is_empty_value


@dataclass
class MappedRow:
    """One data row after header mapping.

    ``fields`` is keyed by canonical field name. Values whose header has no
    canonical field live in ``miscellaneous`` under the original header.
    """
    row_index: int
    fields: Dict[str, Any] = field(default_factory=dict)
    miscellaneous: Dict[str, Any] = field(default_factory=dict)
    ai_mapped_fields: List[AIMappedField] = field(default_factory=list)
    sheet_name: Optional[str] = None
    needs_review: bool = False
    notes: List[str] = field(default_factory=list)

    def get(self, field_name: str, default: Any = None) -> Any:
        return self.fields.get(field_name, default)

    def is_blank(self) -> bool:
        return not any(not is_empty_value(value) for value in self.fields.values()) and not self.miscellaneous

    def add_note(self, note: str, needs_review: bool = True) -> None:
        self.notes.append(note)
        if needs_review:
            self.needs_review = True
