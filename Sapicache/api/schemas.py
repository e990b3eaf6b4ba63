"""Request validation schemas for the Sapicache API."""

from typing import List, Optional

from flask import request
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError


class IngestRequest(BaseModel):
    """Ingest fragment request."""
    content: str = Field(..., min_length=1, max_length=1_000_000, description="Fragment text")
    source_url: Optional[str] = Field(default=None, description="Where the fragment came from")
    tags: Optional[List[str]] = Field(default=None, description="Extra tags to attach")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "content": "La conciencia colectiva respira en cada fragmento compartido.",
            "source_url": "https://example.org/poema",
            "tags": ["manual"],
        }
    })

    @field_validator("content")
    @classmethod
    def content_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Content cannot be empty")
        return v


class TagQueryRequest(BaseModel):
    """Tag overlap query."""
    tags: List[str] = Field(..., min_length=1, description="Tags to match")
    min_overlap: float = Field(default=0.5, ge=0.0, le=1.0)
    limit: Optional[int] = Field(default=None, ge=1, le=1000)

    @field_validator("tags")
    @classmethod
    def tags_not_blank(cls, v: List[str]) -> List[str]:
        cleaned = [t.strip() for t in v if t and t.strip()]
        if not cleaned:
            raise ValueError("At least one non-empty tag is required")
        return cleaned


class TextQueryRequest(BaseModel):
    """Similarity query by text."""
    query: str = Field(..., min_length=1, max_length=5000, description="Text to compare against")
    top_k: int = Field(default=10, ge=1, le=100)

    model_config = ConfigDict(json_schema_extra={
        "example": {"query": "el silencio del cuerpo", "top_k": 5}
    })

    @field_validator("query")
    @classmethod
    def query_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Query cannot be empty")
        return v.strip()


class SampleParams(BaseModel):
    """Query-string parameters of the sample endpoint."""
    k: int = Field(default=5, ge=0, le=1000)


def _details(error: PydanticValidationError) -> List[dict]:
    return [
        {"loc": [str(part) for part in err["loc"]], "msg": err["msg"], "type": err["type"]}
        for err in error.errors()
    ]


def parse_json(schema_class):
    """Validate the JSON body against ``schema_class`` or raise a 400 ValidationError."""
    try:
        return schema_class.model_validate(request.get_json(silent=True) or {})
    except PydanticValidationError as e:
        raise ValidationError("Invalid request body", details={"errors": _details(e)}) from None


def parse_args(schema_class):
    try:
        return schema_class.model_validate(request.args.to_dict())
    except PydanticValidationError as e:
        raise ValidationError("Invalid query parameters", details={"errors": _details(e)}) from None


__all__ = [
    "IngestRequest",
    "TagQueryRequest",
    "TextQueryRequest",
    "SampleParams",
    "parse_json",
    "parse_args",
]
