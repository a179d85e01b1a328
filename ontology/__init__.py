# ontology/__init__.py
"""Ontology artifacts, loader and campaign-scoped store."""

from .loader import load_ontology, validate_ontology
from .store import InMemoryOntologyStore, OntologyStore, seed_campaign
from .types import Ontology

__all__ = [
    "InMemoryOntologyStore",
    "Ontology",
    "OntologyStore",
    "load_ontology",
    "seed_campaign",
    "validate_ontology",
]
