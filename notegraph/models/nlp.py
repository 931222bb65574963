"""Intermediate NLP analysis models produced by the triple extractor."""

from pydantic import BaseModel, Field

from notegraph.models.triple import KnowledgeTriple


class Entity(BaseModel):
    """A recognised entity span."""

    text: str
    label: str  # PERSON, PLACE, ORGANIZATION, TIME, CONCEPT
    start_index: int
    end_index: int
    confidence: float = Field(..., ge=0.0, le=1.0)
    uri: str | None = None


class Dependency(BaseModel):
    """A token -> head grammatical relation."""

    token: str
    head: str
    relation: str  # nsubj, dobj, topic, location, manner, ...
    position: int


class SemanticRole(BaseModel):
    """Entities filling the argument slots of one predicate."""

    predicate: str
    agent: Entity | None = None
    patient: Entity | None = None
    instrument: Entity | None = None
    location: Entity | None = None
    time: Entity | None = None
    manner: Entity | None = None


class Relationship(BaseModel):
    """A typed link between two entities."""

    subject: Entity
    predicate: str
    object: Entity
    confidence: float = Field(..., ge=0.0, le=1.0)
    context: str | None = None


class NLPAnalysis(BaseModel):
    """Result of running the extraction stages over one text."""

    entities: list[Entity] = Field(default_factory=list)
    dependencies: list[Dependency] = Field(default_factory=list)
    semantic_roles: list[SemanticRole] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)
    confidence: float = 0.0


class ExtractedKnowledge(BaseModel):
    """Analysis of a text together with the triples derived from it."""

    analysis: NLPAnalysis = Field(default_factory=NLPAnalysis)
    triples: list[KnowledgeTriple] = Field(default_factory=list)
    used_fallback: bool = False
