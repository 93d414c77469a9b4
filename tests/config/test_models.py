"""Tests for config models — defaults and sparse overrides."""

import pytest
from pydantic import ValidationError

from divcore.config.models import ActionsConfig, DivConfig, TemplatesConfig


class TestDivConfig:
    def test_full_defaults(self) -> None:
        cfg = DivConfig()
        assert cfg.templates.max_depth == 32
        assert cfg.actions.process_urls is True
        assert cfg.expressions.cache_size == 1024
        assert cfg.plugins.discover is True

    def test_sparse_override(self) -> None:
        cfg = DivConfig.model_validate({"actions": {"process_urls": False}})
        assert cfg.actions == ActionsConfig(process_urls=False)
        assert cfg.templates == TemplatesConfig()

    def test_frozen(self) -> None:
        cfg = DivConfig()
        with pytest.raises(ValidationError):
            cfg.templates = TemplatesConfig(max_depth=2)  # type: ignore[misc]

    @pytest.mark.parametrize("section", ["templates", "expressions"])
    def test_sizes_must_be_positive(self, section: str) -> None:
        field = "max_depth" if section == "templates" else "cache_size"
        with pytest.raises(ValidationError):
            DivConfig.model_validate({section: {field: 0}})
