# ontology/store.py
"""Campaign-scoped ontology storage.

The advisory pipeline only reads from the store at analysis time; overrides are
written by the GM-facing layer. `OntologyStore` is the boundary the pipeline and
the graph expert depend on, and `InMemoryOntologyStore` is the reference
implementation used by the CLI and tests. A relational implementation lives
outside this repository.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

import structlog

from core.exceptions import OntologyStoreError
from models.analysis_models import OVERRIDABLE_DETECTION_TYPES, ConstraintOverride
from models.kg_models import (
    CardinalityConstraint,
    RelationshipType,
    RequiredRelationship,
    TypePairConstraint,
)
from ontology.loader import (
    build_cardinality_limits,
    build_relationship_types,
    build_required_rules,
    build_type_pair_constraints,
)
from ontology.types import Ontology

logger = structlog.get_logger(__name__)


class OntologyStore(Protocol):
    """Protocol defining read access to a campaign's ontology tables."""

    async def get_type_pair_constraints(self, campaign_id: str) -> dict[str, TypePairConstraint]:
        """Return type-pair constraints keyed by relationship type."""
        ...

    async def get_cardinality_limits(self, campaign_id: str) -> dict[str, CardinalityConstraint]:
        """Return cardinality limits keyed by relationship type."""
        ...

    async def get_required_rules(self, campaign_id: str) -> list[RequiredRelationship]:
        """Return required-relationship rules for the campaign."""
        ...

    async def get_overrides(self, campaign_id: str) -> list[ConstraintOverride]:
        """Return every acknowledged constraint override for the campaign."""
        ...

    async def get_relationship_types(self, campaign_id: str) -> list[RelationshipType]:
        """Return the campaign's relationship type vocabulary."""
        ...

    async def add_override(self, override: ConstraintOverride) -> None:
        """Record a GM acknowledgement. Re-adding an existing override is a no-op."""
        ...


class _CampaignTables:
    def __init__(self) -> None:
        self.relationship_types: dict[str, RelationshipType] = {}
        self.type_pairs: dict[str, TypePairConstraint] = {}
        self.cardinality: dict[str, CardinalityConstraint] = {}
        self.required: list[RequiredRelationship] = []
        self.overrides: dict[tuple[str, str], ConstraintOverride] = {}


class InMemoryOntologyStore:
    """Dictionary-backed `OntologyStore`.

    Reads for a campaign that was never seeded raise `OntologyStoreError`, the
    same way a relational store reports a missing campaign.
    """

    def __init__(self) -> None:
        self._campaigns: dict[str, _CampaignTables] = {}
        self._lock = asyncio.Lock()

    def _tables(self, campaign_id: str) -> _CampaignTables:
        tables = self._campaigns.get(campaign_id)
        if tables is None:
            raise OntologyStoreError(
                f"Campaign '{campaign_id}' has no ontology tables",
                details={"campaign_id": campaign_id},
            )
        return tables

    def has_campaign(self, campaign_id: str) -> bool:
        return campaign_id in self._campaigns

    async def replace_campaign_tables(
        self,
        campaign_id: str,
        *,
        relationship_types: list[RelationshipType],
        type_pairs: dict[str, TypePairConstraint],
        cardinality: dict[str, CardinalityConstraint],
        required: list[RequiredRelationship],
    ) -> None:
        """Install a campaign's tables, keeping any overrides already recorded."""
        async with self._lock:
            tables = self._campaigns.setdefault(campaign_id, _CampaignTables())
            tables.relationship_types = {rt.name: rt for rt in relationship_types}
            tables.type_pairs = dict(type_pairs)
            tables.cardinality = dict(cardinality)
            tables.required = list(required)

    async def get_type_pair_constraints(self, campaign_id: str) -> dict[str, TypePairConstraint]:
        return dict(self._tables(campaign_id).type_pairs)

    async def get_cardinality_limits(self, campaign_id: str) -> dict[str, CardinalityConstraint]:
        return dict(self._tables(campaign_id).cardinality)

    async def get_required_rules(self, campaign_id: str) -> list[RequiredRelationship]:
        return list(self._tables(campaign_id).required)

    async def get_overrides(self, campaign_id: str) -> list[ConstraintOverride]:
        return list(self._tables(campaign_id).overrides.values())

    async def get_relationship_types(self, campaign_id: str) -> list[RelationshipType]:
        return sorted(self._tables(campaign_id).relationship_types.values(), key=lambda rt: rt.name)

    async def add_override(self, override: ConstraintOverride) -> None:
        if override.detection_type not in OVERRIDABLE_DETECTION_TYPES:
            raise OntologyStoreError(
                f"Detection type '{override.detection_type.value}' cannot be overridden",
                details={"campaign_id": override.campaign_id, "override_key": override.override_key},
            )
        async with self._lock:
            tables = self._tables(override.campaign_id)
            tables.overrides[(override.detection_type.value, override.override_key)] = override
        logger.info(
            "Constraint override recorded",
            campaign_id=override.campaign_id,
            detection_type=override.detection_type.value,
            override_key=override.override_key,
        )


async def seed_campaign(store: InMemoryOntologyStore, campaign_id: str, ontology: Ontology) -> None:
    """Copy the ontology templates into campaign-scoped tables.

    After seeding, the campaign's tables are independent of the template and may
    diverge from it.
    """
    type_pairs = build_type_pair_constraints(ontology)
    await store.replace_campaign_tables(
        campaign_id,
        relationship_types=build_relationship_types(ontology, campaign_id),
        type_pairs=type_pairs,
        cardinality=build_cardinality_limits(ontology),
        required=build_required_rules(ontology),
    )
    logger.info(
        "Campaign ontology seeded",
        campaign_id=campaign_id,
        relationship_types=len(ontology.relationship_types.types),
        type_pair_rows=sum(len(c.allowed_pairs) for c in type_pairs.values()),
    )
