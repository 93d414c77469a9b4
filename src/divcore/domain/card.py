"""Card document model — the top-level JSON a host hands to the engine.

    {"templates": {name: skeleton}, "card": {"log_id": ..., "states": [...],
     "variables": [...]}}

Variable declarations stay raw here; the Variable Store validates them one
by one so a single bad declaration does not reject the card.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from divcore.domain.errors import IncorrectValue


class CardState(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    state_id: str | int
    div: dict[str, Any]


class Card(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    log_id: str | None = None
    states: list[CardState] = Field(min_length=1)
    variables: list[dict[str, Any]] = Field(default_factory=list)


class CardDocument(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    templates: dict[str, Any] = Field(default_factory=dict)
    card: Card

    @property
    def root(self) -> dict[str, Any]:
        """The active root div: the first state's ``div``."""
        return self.card.states[0].div

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> CardDocument:
        """Validate raw JSON. Raises :class:`IncorrectValue` when unusable."""
        if not isinstance(data, Mapping):
            raise IncorrectValue("Card document must be an object")
        if not isinstance(data.get("card"), Mapping):
            raise IncorrectValue("Card document has no card")
        try:
            return cls.model_validate(dict(data))
        except ValidationError as exc:
            problems = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
            ]
            raise IncorrectValue("Incorrect card document", problems=problems) from exc
