"""Tool descriptor model."""

from typing import Any

from pydantic import BaseModel, Field

TOOL_NAME_PATTERN = r"^[A-Za-z0-9_-]+$"


class ToolDescriptor(BaseModel):
    """Definition of a tool exposed to the model.

    ``name`` must satisfy the identifier grammar chat backends accept.
    ``config`` is private to the provider and never sent to the backend.
    """

    name: str = Field(..., min_length=1, pattern=TOOL_NAME_PATTERN)
    description: str | None = None
    schema_: dict[str, Any] | None = Field(default=None, alias="schema")
    config: dict[str, Any] | None = Field(default=None, exclude=True)

    model_config = {"populate_by_name": True}

    @property
    def parameters(self) -> dict[str, Any]:
        """Argument schema, defaulting to an empty object schema."""
        return self.schema_ or {"type": "object", "properties": {}}

    def renamed(self, name: str) -> "ToolDescriptor":
        """Copy of this descriptor exposed under another name."""
        return self.model_copy(update={"name": name})
