"""Pydantic schemas shared across the pacer."""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class SchemaBase(BaseModel):
    """Base class for wire-facing schemas.

    Attributes are snake_case in Python and camelCase on the wire.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump using wire (camelCase) keys."""
        return self.model_dump(mode="json", by_alias=True)


class WorkItem(BaseModel):
    """One opaque submission payload with an optional display label.

    Accepts a bare string, ``{"text": ..., "label": ...}`` or the legacy
    ``{"fullPrompt": ..., "scene": ...}`` shape.
    """

    model_config = ConfigDict(frozen=True)

    text: str = Field(
        validation_alias=AliasChoices("text", "fullPrompt", "full_prompt"),
        description="Payload passed verbatim to the actuator",
    )
    label: str | None = Field(
        default=None,
        validation_alias=AliasChoices("label", "scene"),
        description="Optional short name for logs and the status panel",
    )

    @model_validator(mode="before")
    @classmethod
    def _coerce_bare_string(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"text": data}
        return data

    @property
    def display_name(self) -> str:
        """Label, or the first 50 characters of the text."""
        if self.label:
            return self.label
        return self.text[:50] + ("..." if len(self.text) > 50 else "")
