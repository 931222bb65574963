"""Retrieval models: graph query rows and the ranked context bundle."""

from enum import Enum

from pydantic import BaseModel, Field


class ResourceType(str, Enum):
    """Kinds of user material the retriever reads."""

    NOTE = "note"
    BOOK = "book"


class GraphQueryResult(BaseModel):
    """One distinct resource returned by the context query."""

    uri: str
    type: ResourceType
    content: str = ""
    tags: list[str] = Field(default_factory=list)
    title: str | None = None
    author: str | None = None
    page_number: int | None = None
    created_at: str | None = None
    relevance_score: float | None = None

    def add_tag(self, tag: str) -> None:
        """Accumulate a tag, keeping first-seen order."""
        if tag and tag not in self.tags:
            self.tags.append(tag)


class RelevantNote(BaseModel):
    """A user note handed to the model as grounding."""

    content: str
    tags: list[str] = Field(default_factory=list)
    relevance_score: float | None = None


class QueryMetadata(BaseModel):
    """Bookkeeping for one retrieval run."""

    execution_time_ms: float = 0.0
    result_count: int = 0
    query_type: str = "concept_search"
    error: str | None = Field(None, description="Set when retrieval degraded to an empty bundle")


class ContextBundle(BaseModel):
    """
    Ranked package of user material for one target concept.

    A read-only projection of the store at query time; notes are
    ordered by relevance score, highest first.
    """

    target_concept: str
    relevant_notes: list[RelevantNote] = Field(default_factory=list)
    book_excerpts: list[str] = Field(default_factory=list)
    related_concepts: list[str] = Field(default_factory=list)
    query_metadata: QueryMetadata = Field(default_factory=QueryMetadata)

    @property
    def is_empty(self) -> bool:
        return not self.relevant_notes and not self.book_excerpts
