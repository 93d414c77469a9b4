"""Locating and reading divcore.toml.

Lookup order: an explicit ``--config`` path, then ``DIVCORE_CONFIG``, then
a walk up from the working directory (the way git finds ``.git/``).
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path

from divcore.config.models import DivConfig

CONFIG_FILENAME = "divcore.toml"
CONFIG_ENV_VAR = "DIVCORE_CONFIG"


def _walk_up(start: Path) -> Path | None:
    for directory in (start, *start.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def find_config(start: Path | None = None, *, explicit: str | Path | None = None) -> Path | None:
    """Return the config file to use, or None when there is none.

    A named file (*explicit* or the env var) that does not exist yields
    None rather than falling back to the walk-up.
    """
    named = explicit or os.environ.get(CONFIG_ENV_VAR)
    if named:
        path = Path(named)
        return path if path.is_file() else None
    return _walk_up((start or Path.cwd()).resolve())


def load_config(path: Path | None = None, cwd: Path | None = None) -> DivConfig:
    """Parse and validate *path* (discovered from *cwd* when omitted).

    No file means all defaults.
    """
    path = path or find_config(cwd)
    if path is None:
        return DivConfig()
    with path.open("rb") as fh:
        return DivConfig.model_validate(tomllib.load(fh))
