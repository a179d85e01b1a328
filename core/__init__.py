"""Core package initialization.

Holds the advisory pipeline's shared infrastructure: exceptions, logging setup,
the HTTP client service, LLM providers, the ontology validation checks and the
override filter.
"""
