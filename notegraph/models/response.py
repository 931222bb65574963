"""Model response parsing models."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from notegraph.models.context import ContextBundle
from notegraph.models.triple import KnowledgeTriple
from notegraph.models.update import BatchUpdateResult


class ResponseFormat(str, Enum):
    """Declared shape of the model's structured output."""

    JSON = "json"
    XML = "xml"
    CSV = "csv"
    TRIPLE = "triple"
    STRUCTURED = "structured"  # JSON, then TRIPLE, then XML
    RAW_TEXT = "raw_text"


class TriplePayload(BaseModel):
    """One element of a JSON "triples" array."""

    model_config = {"extra": "ignore"}

    subject: str
    predicate: str
    object: str
    confidence: float = Field(0.9, ge=0.0, le=1.0)

    @field_validator("subject", "predicate", "object", mode="before")
    @classmethod
    def require_text(cls, v: Any) -> str:
        if v is None:
            raise ValueError("must not be empty")
        text = str(v).strip()
        if not text:
            raise ValueError("must not be empty")
        return text


class StructuredTriplePayload(BaseModel):
    """Top-level JSON payload a model may emit."""

    model_config = {"extra": "ignore"}

    answer: str | None = None
    triples: list[TriplePayload] = Field(default_factory=list)


class StructuredResponse(BaseModel):
    """Triples (and optional answer) decoded from one format."""

    format: ResponseFormat
    answer: str | None = None
    triples: list[KnowledgeTriple] = Field(default_factory=list)


class ParsedResponse(BaseModel):
    """Display text plus explicit triples from one model response."""

    text: str = ""
    triples: list[KnowledgeTriple] = Field(default_factory=list)
    format: ResponseFormat | None = None
    errors: list[str] = Field(default_factory=list)


class KnowledgeExtractionResult(BaseModel):
    """Output of one pipeline run; write_result is None when the write step failed."""

    text: str = ""
    triples: list[KnowledgeTriple] = Field(default_factory=list)
    write_result: BatchUpdateResult | None = None
    parsing_errors: list[str] = Field(default_factory=list)
    analysis_confidence: float = 0.0
    context_bundle: ContextBundle | None = None
