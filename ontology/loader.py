# ontology/loader.py
"""Load ontology YAML artifacts and derive campaign constraint tables.

The loader is strict: unknown keys, missing files and internally inconsistent
definitions raise `OntologyLoadError`. The `build_*` helpers turn a loaded
`Ontology` into the flat constraint rows the validation checks read, with every
abstract type already expanded to its concrete descendants.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, TypeVar

import structlog
import yaml
from pydantic import BaseModel, ValidationError

from core.exceptions import OntologyLoadError, create_error_context
from models.kg_models import (
    CardinalityConstraint,
    RelationshipType,
    RequiredRelationship,
    TypePairConstraint,
)
from ontology.types import (
    ANY_TYPE,
    ConstraintsFile,
    EntityTypeFile,
    Ontology,
    RelationshipTypeFile,
)

logger = structlog.get_logger(__name__)

ENTITY_TYPES_FILE = "entity-types.yaml"
RELATIONSHIP_TYPES_FILE = "relationship-types.yaml"
CONSTRAINTS_FILE = "constraints.yaml"

_ModelT = TypeVar("_ModelT", bound=BaseModel)


def _load_yaml_model(path: str | Path, model: type[_ModelT], label: str) -> _ModelT:
    path = Path(path)
    try:
        with path.open(encoding="utf-8") as f:
            content: Any = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise OntologyLoadError(f"read {label}: file not found", details=create_error_context(path=str(path))) from e
    except yaml.YAMLError as e:
        raise OntologyLoadError(
            f"parse {label}: invalid YAML",
            details=create_error_context(path=str(path), error=str(e)),
        ) from e

    if content is None:
        content = {}
    if not isinstance(content, dict):
        raise OntologyLoadError(
            f"parse {label}: root element must be a mapping",
            details=create_error_context(path=str(path), root_type=type(content).__name__),
        )

    try:
        return model.model_validate(content)
    except ValidationError as e:
        raise OntologyLoadError(
            f"parse {label}: schema validation failed",
            details=create_error_context(path=str(path), error=str(e)),
        ) from e


def load_entity_types(path: str | Path) -> EntityTypeFile:
    return _load_yaml_model(path, EntityTypeFile, "entity types")


def load_relationship_types(path: str | Path) -> RelationshipTypeFile:
    return _load_yaml_model(path, RelationshipTypeFile, "relationship types")


def load_constraints(path: str | Path) -> ConstraintsFile:
    return _load_yaml_model(path, ConstraintsFile, "constraints")


def validate_ontology(ontology: Ontology) -> list[str]:
    """Return a list of consistency problems; empty when the ontology is sound.

    Checks:
    - symmetric relationship types name themselves as inverse,
    - every inverse names a known relationship type,
    - parent/children links point at known entity types,
    - domain/range/required rules reference known types.
    """
    problems: list[str] = []
    entity_types = ontology.entity_types.types
    rel_types = ontology.relationship_types.types

    for name, definition in sorted(entity_types.items()):
        if definition.parent and definition.parent not in entity_types:
            problems.append(f"entity type '{name}' has unknown parent '{definition.parent}'")
        for child in definition.children:
            if child not in entity_types:
                problems.append(f"entity type '{name}' lists unknown child '{child}'")
            elif entity_types[child].parent != name:
                problems.append(f"entity type '{child}' is a child of '{name}' but names parent '{entity_types[child].parent}'")

    def _check_type_refs(owner: str, field: str, names: list[str]) -> None:
        for type_name in names:
            if type_name != ANY_TYPE and type_name not in entity_types:
                problems.append(f"{owner} {field} references unknown entity type '{type_name}'")

    for name, rel in sorted(rel_types.items()):
        if rel.symmetric and rel.inverse != name:
            problems.append(f"symmetric relationship type '{name}' must be its own inverse (got '{rel.inverse}')")
        if rel.inverse not in rel_types:
            problems.append(f"relationship type '{name}' has unknown inverse '{rel.inverse}'")
        _check_type_refs(f"relationship type '{name}'", "domain", rel.domain)
        _check_type_refs(f"relationship type '{name}'", "range", rel.range)

    constraints = ontology.constraints
    for rel_name, dr in sorted(constraints.domain_range.items()):
        if rel_name not in rel_types:
            problems.append(f"domain_range rule for unknown relationship type '{rel_name}'")
        _check_type_refs(f"domain_range '{rel_name}'", "domain", dr.domain)
        _check_type_refs(f"domain_range '{rel_name}'", "range", dr.range)

    for rel_name, card in sorted(constraints.cardinality.items()):
        if rel_name not in rel_types:
            problems.append(f"cardinality rule for unknown relationship type '{rel_name}'")
        for field, value in (("max_source", card.max_source), ("max_target", card.max_target)):
            if value is not None and value < 0:
                problems.append(f"cardinality '{rel_name}' {field} must not be negative")

    for entity_type, rel_names in sorted(constraints.required.items()):
        if entity_type not in entity_types:
            problems.append(f"required rule for unknown entity type '{entity_type}'")
        for rel_name in rel_names:
            if rel_name not in rel_types:
                problems.append(f"required rule for '{entity_type}' references unknown relationship type '{rel_name}'")

    return problems


def load_ontology(directory: str | Path) -> Ontology:
    """Load and validate all three ontology files from `directory`.

    Raises:
        OntologyLoadError: If a file is missing or malformed, or the combined
            ontology is inconsistent.
    """
    directory = Path(directory)
    ontology = Ontology(
        entity_types=load_entity_types(directory / ENTITY_TYPES_FILE),
        relationship_types=load_relationship_types(directory / RELATIONSHIP_TYPES_FILE),
        constraints=load_constraints(directory / CONSTRAINTS_FILE),
    )

    problems = validate_ontology(ontology)
    if problems:
        raise OntologyLoadError(
            f"ontology in {directory} is inconsistent ({len(problems)} problem(s))",
            details={"problems": problems},
        )

    logger.info(
        "Ontology loaded",
        directory=str(directory),
        entity_types=len(ontology.entity_types.types),
        relationship_types=len(ontology.relationship_types.types),
        domain_range_rules=len(ontology.constraints.domain_range),
    )
    return ontology


def build_relationship_types(ontology: Ontology, campaign_id: str | None = None) -> list[RelationshipType]:
    return [
        RelationshipType(
            name=name,
            inverse_name=definition.inverse,
            is_symmetric=definition.symmetric,
            display_label=definition.display_label,
            inverse_display_label=definition.inverse_display_label,
            description=definition.description,
            genre=list(definition.genre),
            campaign_id=campaign_id,
        )
        for name, definition in sorted(ontology.relationship_types.types.items())
    ]


def build_type_pair_constraints(ontology: Ontology) -> dict[str, TypePairConstraint]:
    """Expand domain/range rules into concrete (source, target) pairs per relationship type."""
    entity_types = ontology.entity_types
    constraints: dict[str, TypePairConstraint] = {}
    for rel_name, dr in sorted(ontology.constraints.domain_range.items()):
        domain = entity_types.resolve_types(dr.domain)
        range_ = entity_types.resolve_types(dr.range)
        constraints[rel_name] = TypePairConstraint(
            relationship_type=rel_name,
            allowed_pairs=frozenset((src, tgt) for src in domain for tgt in range_),
        )
    return constraints


def build_cardinality_limits(ontology: Ontology) -> dict[str, CardinalityConstraint]:
    return {
        rel_name: CardinalityConstraint(
            relationship_type=rel_name,
            max_source=card.max_source,
            max_target=card.max_target,
        )
        for rel_name, card in sorted(ontology.constraints.cardinality.items())
    }


def build_required_rules(ontology: Ontology) -> list[RequiredRelationship]:
    """Flatten required rules, expanding abstract entity types to their concrete descendants."""
    rules: list[RequiredRelationship] = []
    seen: set[tuple[str, str]] = set()
    for entity_type, rel_names in sorted(ontology.constraints.required.items()):
        for concrete in ontology.entity_types.resolve_types([entity_type]):
            for rel_name in rel_names:
                if (concrete, rel_name) in seen:
                    continue
                seen.add((concrete, rel_name))
                rules.append(RequiredRelationship(entity_type=concrete, relationship_type=rel_name))
    return rules
