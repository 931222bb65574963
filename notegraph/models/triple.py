"""Knowledge triple model with provenance fields."""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


class SourceType(str, Enum):
    """Where a fact came from."""

    USER_ORGANIC = "user_organic"  # Traceable to the user's own notes
    AI_ASSISTED = "ai_assisted"  # Supplied or inferred by the model


class EvolutionStage(str, Enum):
    """How a fact relates to the user's prior knowledge."""

    INITIAL = "initial"
    CONNECTED = "connected"
    SYNTHESIZED = "synthesized"
    GAP_FILLED = "gap_filled"


class KnowledgeTriple(BaseModel):
    """
    A (subject, predicate, object) statement bound for the knowledge graph.

    Terms use compact prefixed notation ("ng:Radium"), full URIs
    ("<https://...>") or literals ('"radium"@en'). Identity for
    deduplication is the exact string triple.
    """

    subject: str
    predicate: str
    object: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    source: str = Field(..., description="Model identifier that produced the triple")

    # Provenance
    source_type: SourceType = SourceType.AI_ASSISTED
    derived_from_user: bool = False
    original_memo_id: str | None = None
    evolution_stage: EvolutionStage = EvolutionStage.INITIAL
    temporal_context: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.subject, self.predicate, self.object)

    @property
    def is_well_formed(self) -> bool:
        """True when subject, predicate and object are all non-blank."""
        return all(part and part.strip() for part in self.key)
