"""Response shape negotiation: outbound schema and answer decoding."""

import json
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError

from agentloop.errors import DecodeError

T = TypeVar("T")

RESPONSE_FORMAT_NAME = "ResponseFormat"

# Some backends (Gemini) reject these keys in response schemas
_UNSUPPORTED_SCHEMA_KEYS = ("$schema", "title")


class ResponseCoercer(Generic[T]):
    """Derives the response format for an answer type and decodes answers.

    ``str`` is the opaque text shape: no schema is attached and the text is the
    answer. Every other type gets a JSON schema and strict JSON decoding.
    """

    def __init__(self, answer_type: type[T] = str):
        self.answer_type = answer_type
        self.is_text = answer_type is str
        self._adapter: TypeAdapter[T] = TypeAdapter(answer_type)

    def json_schema(self) -> dict[str, Any] | None:
        """Schema for structured answers, ``None`` for plain text."""
        if self.is_text:
            return None
        schema = self._adapter.json_schema()
        for key in _UNSUPPORTED_SCHEMA_KEYS:
            schema.pop(key, None)
        return schema

    def response_format(self) -> dict[str, Any] | None:
        """Named schema to attach to chat options."""
        schema = self.json_schema()
        if schema is None:
            return None
        return {"name": RESPONSE_FORMAT_NAME, "schema": schema}

    def decode(self, text: str) -> T:
        """Parse the model's final text into the answer type.

        Raises:
            DecodeError: If the text does not match the answer type
        """
        # Plain text goes through the same JSON path as a quoted string
        payload = json.dumps(text) if self.is_text else text
        try:
            return self._adapter.validate_json(payload)
        except ValidationError as e:
            raise DecodeError(
                f"Response could not be decoded as {getattr(self.answer_type, '__name__', self.answer_type)}: {e}",
                raw_text=text,
            ) from e
