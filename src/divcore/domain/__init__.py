"""Domain layer — typed values, variables, expressions, templates, actions.

This layer depends only on stdlib, pydantic and networkx.
It must never import from services, plugins, commands, or config.
"""
