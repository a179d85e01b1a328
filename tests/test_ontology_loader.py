# tests/test_ontology_loader.py
from pathlib import Path

import pytest

from core.exceptions import OntologyLoadError, OntologyStoreError
from models.analysis_models import ConstraintOverride, DetectionType
from ontology.loader import (
    build_cardinality_limits,
    build_required_rules,
    build_type_pair_constraints,
    load_constraints,
    load_ontology,
    validate_ontology,
)
from ontology.store import InMemoryOntologyStore, seed_campaign

ENTITY_TYPES = """
types:
  agent:
    abstract: true
    children: [npc, group]
  npc:
    parent: agent
  group:
    parent: agent
  place:
    abstract: true
    children: [town]
  town:
    parent: place
"""

RELATIONSHIP_TYPES = """
types:
  knows:
    inverse: knows
    symmetric: true
    display_label: Knows
    inverse_display_label: Knows
  located_at:
    inverse: contains
    display_label: Is located at
    inverse_display_label: Contains
  contains:
    inverse: located_at
    display_label: Contains
    inverse_display_label: Is located at
"""

CONSTRAINTS = """
domain_range:
  located_at:
    domain: [agent]
    range: [place]
  knows:
    domain: [any]
    range: [npc]
cardinality:
  located_at:
    max_source: 1
required:
  agent: [located_at]
"""


def _write(directory: Path, entity_types: str = ENTITY_TYPES, relationship_types: str = RELATIONSHIP_TYPES, constraints: str = CONSTRAINTS) -> Path:
    (directory / "entity-types.yaml").write_text(entity_types, encoding="utf-8")
    (directory / "relationship-types.yaml").write_text(relationship_types, encoding="utf-8")
    (directory / "constraints.yaml").write_text(constraints, encoding="utf-8")
    return directory


class TestLoadOntology:
    def test_bundled_schema_loads_cleanly(self, schema_dir: str) -> None:
        ontology = load_ontology(schema_dir)
        assert validate_ontology(ontology) == []
        assert ontology.relationship_types.types["knows"].symmetric is True
        assert "cult" in ontology.entity_types.resolve_to_concrete_types("faction")
        assert ontology.entity_types.resolve_to_concrete_types("organization") == [
            "organization",
            "government",
            "guild",
            "military_unit",
        ]

    def test_small_ontology_expands_abstract_types(self, tmp_path: Path) -> None:
        ontology = load_ontology(_write(tmp_path))

        pairs = build_type_pair_constraints(ontology)
        assert pairs["located_at"].allowed_pairs == frozenset({("npc", "town"), ("group", "town")})
        assert pairs["knows"].allowed_pairs == frozenset({("npc", "npc"), ("group", "npc"), ("town", "npc")})
        assert build_cardinality_limits(ontology)["located_at"].max_source == 1
        assert [(r.entity_type, r.relationship_type) for r in build_required_rules(ontology)] == [
            ("npc", "located_at"),
            ("group", "located_at"),
        ]

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        (tmp_path / "entity-types.yaml").write_text(ENTITY_TYPES, encoding="utf-8")
        with pytest.raises(OntologyLoadError, match="file not found"):
            load_ontology(tmp_path)

    def test_invalid_yaml_raises(self, tmp_path: Path) -> None:
        with pytest.raises(OntologyLoadError, match="invalid YAML"):
            load_ontology(_write(tmp_path, constraints="domain_range: [unclosed"))

    def test_non_mapping_root_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "constraints.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(OntologyLoadError, match="root element must be a mapping"):
            load_constraints(path)

    def test_unknown_key_fails_schema_validation(self, tmp_path: Path) -> None:
        with pytest.raises(OntologyLoadError, match="schema validation failed"):
            load_ontology(_write(tmp_path, constraints="domain_rnage: {}\n"))

    def test_empty_constraints_file_is_allowed(self, tmp_path: Path) -> None:
        ontology = load_ontology(_write(tmp_path, constraints=""))
        assert build_type_pair_constraints(ontology) == {}

    def test_inconsistent_ontology_lists_problems(self, tmp_path: Path) -> None:
        broken_relationships = RELATIONSHIP_TYPES.replace("inverse: knows", "inverse: knows_not")
        broken_constraints = CONSTRAINTS + "  wizard: [located_at]\n"
        with pytest.raises(OntologyLoadError) as exc_info:
            load_ontology(_write(tmp_path, relationship_types=broken_relationships, constraints=broken_constraints))

        problems = exc_info.value.details["problems"]
        assert "symmetric relationship type 'knows' must be its own inverse (got 'knows_not')" in problems
        assert "relationship type 'knows' has unknown inverse 'knows_not'" in problems
        assert "required rule for unknown entity type 'wizard'" in problems


@pytest.mark.asyncio
class TestInMemoryOntologyStore:
    async def test_seeded_campaign_serves_tables(self, tmp_path: Path) -> None:
        store = InMemoryOntologyStore()
        await seed_campaign(store, "camp-1", load_ontology(_write(tmp_path)))

        assert set(await store.get_type_pair_constraints("camp-1")) == {"located_at", "knows"}
        assert (await store.get_cardinality_limits("camp-1"))["located_at"].max_source == 1
        assert len(await store.get_required_rules("camp-1")) == 2
        vocabulary = await store.get_relationship_types("camp-1")
        assert [rt.name for rt in vocabulary] == ["contains", "knows", "located_at"]
        assert all(rt.campaign_id == "camp-1" for rt in vocabulary)
        assert await store.get_overrides("camp-1") == []

    async def test_unseeded_campaign_raises(self) -> None:
        store = InMemoryOntologyStore()
        with pytest.raises(OntologyStoreError):
            await store.get_required_rules("nowhere")

    async def test_overrides_are_idempotent_and_survive_reseeding(self, tmp_path: Path) -> None:
        store = InMemoryOntologyStore()
        ontology = load_ontology(_write(tmp_path))
        await seed_campaign(store, "camp-1", ontology)
        override = ConstraintOverride(
            campaign_id="camp-1", detection_type=DetectionType.MISSING_REQUIRED, override_key="npc:located_at"
        )

        await store.add_override(override)
        await store.add_override(override)
        await seed_campaign(store, "camp-1", ontology)

        assert await store.get_overrides("camp-1") == [override]

    async def test_non_overridable_detection_type_rejected(self, tmp_path: Path) -> None:
        store = InMemoryOntologyStore()
        await seed_campaign(store, "camp-1", load_ontology(_write(tmp_path)))
        with pytest.raises(OntologyStoreError, match="cannot be overridden"):
            await store.add_override(
                ConstraintOverride(campaign_id="camp-1", detection_type=DetectionType.ORPHAN_WARNING, override_key="x")
            )

    async def test_campaigns_are_independent(self, tmp_path: Path) -> None:
        store = InMemoryOntologyStore()
        ontology = load_ontology(_write(tmp_path))
        await seed_campaign(store, "camp-1", ontology)
        await seed_campaign(store, "camp-2", ontology)
        await store.add_override(
            ConstraintOverride(
                campaign_id="camp-1", detection_type=DetectionType.INVALID_TYPE_PAIR, override_key="knows:npc:town"
            )
        )
        assert await store.get_overrides("camp-2") == []
