"""ServiceResult and ServiceError — the contract between services and the CLI.

INVARIANT: CLI-facing service operations return ServiceResult. Recoverable
engine errors are summarized in ``data``/``warnings``; ``ok`` is False only
when the operation as a whole could not run.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from divcore.domain.errors import DivError


class ServiceError(BaseModel):
    """Structured error payload within a ServiceResult."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: DivError) -> ServiceError:
        report = exc.report()
        return cls(code=report.code, message=report.message, detail=report.detail)


class ServiceResult(BaseModel):
    """Return type for CLI-facing service operations.

    Attributes:
        ok: Whether the operation ran.
        op: Name of the operation (e.g. ``"execute_actions"``).
        data: Operation-specific payload.
        warnings: Non-fatal issues encountered during the operation.
        error: Structured error if ``ok`` is False.
        meta: Optional metadata (counts, config path, etc.).
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
    meta: dict[str, Any] | None = None

    @classmethod
    def failure(cls, op: str, exc: DivError, **data: Any) -> ServiceResult:
        return cls(ok=False, op=op, data=data, error=ServiceError.from_exception(exc))
