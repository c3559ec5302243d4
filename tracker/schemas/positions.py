from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tracker.core.fields import coerce_number

DEFAULT_TITLE = "Untitled"
DEFAULT_DEPARTMENT = "Unknown"
DEFAULT_LOCATION = ""
DEFAULT_STATUS = "Proposed"


class Position(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    code: str
    title: str
    department: str = DEFAULT_DEPARTMENT
    location: str = DEFAULT_LOCATION
    status: str = DEFAULT_STATUS
    budget: float | None = None
    req: str | None = None
    raw: dict[str, Any] | None = None


class _PositionFields(BaseModel):
    model_config = ConfigDict(extra="ignore")

    code: str | None = None
    title: str | None = None
    department: str | None = None
    location: str | None = None
    status: str | None = None
    budget: float | None = None
    req: str | None = None

    @field_validator("budget", mode="before")
    @classmethod
    def _coerce_budget(cls, value: Any) -> float | None:
        return coerce_number(value)


class PositionCreate(_PositionFields):
    id: str | None = None


class PositionPatch(_PositionFields):
    """Partial update body. Only keys the caller sent are applied."""


class ImportResult(BaseModel):
    imported: int
    skipped: int = 0
    positions: list[Position] = Field(default_factory=list)
