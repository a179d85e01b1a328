"""Provide prompt rendering for the semantic experts.

Templates live alongside this module: `prompts/<agent_name>/system.md` holds an
agent's system prompt and `prompts/<agent_name>/*.j2` its user prompt templates.
Rendering helpers are in `prompts.prompt_renderer`.
"""
