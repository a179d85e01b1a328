# core/ontology_validation/__init__.py
"""Deterministic structural checks over a campaign graph snapshot.

Every check is a pure function of (entities, stored relationships, proposed
relationships, constraint table). None of them touch storage or mutate input.
"""

from .cardinality import CardinalityViolation, check_cardinality
from .orphans import check_orphaned_entities, orphan_payload
from .required import RequiredViolation, check_required_relationships
from .type_pairs import TypePairViolation, check_type_pairs, format_valid_pairs

__all__ = [
    "CardinalityViolation",
    "RequiredViolation",
    "TypePairViolation",
    "check_cardinality",
    "check_orphaned_entities",
    "check_required_relationships",
    "check_type_pairs",
    "format_valid_pairs",
    "orphan_payload",
]
