"""Service layer — bindings, action dispatch and documents.

Services may import from domain, plugins and config.
They must never import from commands or output.
"""
