"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, divcore.toml only contains
overrides. An empty file (or none at all) is a valid configuration.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

# --- divcore.toml sections ---


class TemplatesConfig(BaseModel):
    """[templates] section."""

    model_config = {"frozen": True}

    max_depth: int = Field(default=32, ge=1)


class ActionsConfig(BaseModel):
    """[actions] section."""

    model_config = {"frozen": True}

    process_urls: bool = True


class ExpressionsConfig(BaseModel):
    """[expressions] section."""

    model_config = {"frozen": True}

    cache_size: int = Field(default=1024, ge=1)


class PluginsConfig(BaseModel):
    """[plugins] section."""

    model_config = {"frozen": True}

    discover: bool = True


class DivConfig(BaseModel):
    """Root configuration composing all sections."""

    model_config = {"frozen": True}

    templates: TemplatesConfig = Field(default_factory=TemplatesConfig)
    actions: ActionsConfig = Field(default_factory=ActionsConfig)
    expressions: ExpressionsConfig = Field(default_factory=ExpressionsConfig)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)
