# ontology/types.py
"""Define the shapes of the ontology YAML artifacts.

Three files make up one ontology:
- `entity-types.yaml`: the entity type hierarchy with abstract parents.
- `relationship-types.yaml`: the relationship vocabulary with inverses, symmetry,
  display labels and genre tags.
- `constraints.yaml`: domain/range, cardinality and required-relationship rules.

Every model forbids unknown keys so that a typo in a YAML file fails the load
instead of silently dropping a rule.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

ANY_TYPE = "any"


class _StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class EntityTypeDef(_StrictModel):
    parent: str = ""
    abstract: bool = False
    description: str = ""
    children: list[str] = Field(default_factory=list)


class EntityTypeFile(_StrictModel):
    types: dict[str, EntityTypeDef] = Field(default_factory=dict)

    def concrete_types(self) -> list[str]:
        """Return every non-abstract type name, sorted."""
        return sorted(name for name, definition in self.types.items() if not definition.abstract)

    def resolve_to_concrete_types(self, name: str) -> list[str]:
        """Return all non-abstract descendants of `name`.

        The type itself is included when it is concrete. Unknown names resolve
        to an empty list.
        """
        result: list[str] = []
        self._collect_concrete(name, result, set())
        return result

    def _collect_concrete(self, name: str, result: list[str], visiting: set[str]) -> None:
        definition = self.types.get(name)
        if definition is None or name in visiting:
            return
        visiting.add(name)
        if not definition.abstract:
            result.append(name)
        for child in definition.children:
            self._collect_concrete(child, result, visiting)

    def resolve_types(self, names: list[str]) -> list[str]:
        """Expand a domain or range list to concrete types.

        `any` expands to every concrete type. Order follows first appearance and
        duplicates are dropped.
        """
        result: list[str] = []
        seen: set[str] = set()
        for name in names:
            expanded = self.concrete_types() if name == ANY_TYPE else self.resolve_to_concrete_types(name)
            for concrete in expanded:
                if concrete not in seen:
                    seen.add(concrete)
                    result.append(concrete)
        return result


class RelationshipTypeDef(_StrictModel):
    inverse: str
    symmetric: bool = False
    display_label: str
    inverse_display_label: str
    domain: list[str] = Field(default_factory=list)
    range: list[str] = Field(default_factory=list)
    genre: list[str] = Field(default_factory=list)
    description: str = ""


class RelationshipTypeFile(_StrictModel):
    types: dict[str, RelationshipTypeDef] = Field(default_factory=dict)


class DomainRangeDef(_StrictModel):
    domain: list[str] = Field(default_factory=list)
    range: list[str] = Field(default_factory=list)


class CardinalityDef(_StrictModel):
    max_source: int | None = None
    max_target: int | None = None


class ConstraintsFile(_StrictModel):
    domain_range: dict[str, DomainRangeDef] = Field(default_factory=dict)
    cardinality: dict[str, CardinalityDef] = Field(default_factory=dict)
    required: dict[str, list[str]] = Field(default_factory=dict)


class Ontology(BaseModel):
    """All three parsed artifacts."""

    entity_types: EntityTypeFile
    relationship_types: RelationshipTypeFile
    constraints: ConstraintsFile
