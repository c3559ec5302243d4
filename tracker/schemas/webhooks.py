from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator


class WebhookEvent(BaseModel):
    requisition_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("requisitionId", "requisition_id"),
    )
    status: str

    @field_validator("requisition_id", mode="before")
    @classmethod
    def _coerce_requisition_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value
