from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone

from models.image_resource import ImageResource

_record_ids = itertools.count(1)


def _next_record_id() -> int:
    return next(_record_ids)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DiagnosisRecord:
    """Outcome of one successful image analysis.

    Every instance receives a fresh `record_id`, so two analyses that happen
    to produce identical text are still distinct records.

    Attributes:
        source_image: The image that was analyzed.
        diagnosis_text: Diagnosis returned by the AI service.
        record_id: Process-wide, monotonically increasing identity.
        created_at: UTC timestamp of the analysis.
    """

    source_image: ImageResource
    diagnosis_text: str
    record_id: int = field(default_factory=_next_record_id)
    created_at: datetime = field(default_factory=_utc_now)
