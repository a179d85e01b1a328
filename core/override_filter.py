# core/override_filter.py
"""Drop structural findings a GM has already acknowledged.

Only `invalid_type_pair`, `cardinality_violation` and `missing_required`
findings can be overridden. Their override key is rebuilt from the finding's
`suggested_content` payload:

- type pair:    ``relationshipType:sourceEntityType:targetEntityType``
- cardinality:  ``relationshipType:entityId:direction``
- required:     ``entityType:missingRelationshipType``

The filter is pure and idempotent and keeps input order.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import structlog

from models.analysis_models import (
    OVERRIDABLE_DETECTION_TYPES,
    ConstraintOverride,
    ContentAnalysisItem,
    DetectionType,
)

logger = structlog.get_logger(__name__)

_KEY_FIELDS: dict[DetectionType, tuple[str, ...]] = {
    DetectionType.INVALID_TYPE_PAIR: ("relationshipType", "sourceEntityType", "targetEntityType"),
    DetectionType.CARDINALITY_VIOLATION: ("relationshipType", "entityId", "direction"),
    DetectionType.MISSING_REQUIRED: ("entityType", "missingRelationshipType"),
}


def extract_override_key(finding: ContentAnalysisItem) -> str | None:
    """Return the override key for an overridable finding.

    Returns None for non-overridable detection types and for payloads missing
    any of the key fields.
    """
    fields = _KEY_FIELDS.get(finding.detection_type)
    if fields is None:
        return None

    parts: list[str] = []
    for field in fields:
        value = finding.suggested_content.get(field)
        if value is None or isinstance(value, (dict, list)):
            return None
        text = str(value).strip()
        if not text:
            return None
        parts.append(text)
    return ":".join(parts)


def _override_set(overrides: Iterable[ConstraintOverride]) -> set[tuple[DetectionType, str]]:
    return {
        (override.detection_type, override.override_key)
        for override in overrides
        if override.detection_type in OVERRIDABLE_DETECTION_TYPES
    }


def filter_overridden_findings(
    findings: Sequence[ContentAnalysisItem],
    overrides: Iterable[ConstraintOverride],
) -> list[ContentAnalysisItem]:
    """Return `findings` minus those matching an acknowledged override."""
    acknowledged = _override_set(overrides)
    if not acknowledged or not findings:
        return list(findings)

    kept: list[ContentAnalysisItem] = []
    for finding in findings:
        key = extract_override_key(finding)
        if key is not None and (finding.detection_type, key) in acknowledged:
            logger.debug(
                "Filtering overridden finding",
                detection_type=finding.detection_type.value,
                override_key=key,
                job_id=finding.job_id,
            )
            continue
        kept.append(finding)
    return kept
