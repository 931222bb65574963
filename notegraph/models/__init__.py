"""
Data models for NoteGraph.

Pipeline stages and their models:
1. Retrieval (ContextBundle, RelevantNote, GraphQueryResult)
2. Parsing (ParsedResponse, StructuredResponse)
3. Extraction (NLPAnalysis, Entity, Relationship)
4. Provenance (KnowledgeTriple, SourceType, EvolutionStage)
5. Writing (UpdateResult, BatchUpdateResult, UpdateOptions)
"""

from notegraph.models.context import (
    ContextBundle,
    GraphQueryResult,
    QueryMetadata,
    RelevantNote,
    ResourceType,
)
from notegraph.models.nlp import (
    Dependency,
    Entity,
    ExtractedKnowledge,
    NLPAnalysis,
    Relationship,
    SemanticRole,
)
from notegraph.models.response import (
    KnowledgeExtractionResult,
    ParsedResponse,
    ResponseFormat,
    StructuredResponse,
    StructuredTriplePayload,
    TriplePayload,
)
from notegraph.models.triple import EvolutionStage, KnowledgeTriple, SourceType
from notegraph.models.update import (
    BatchUpdateResult,
    DuplicatePolicy,
    HealthStatus,
    UpdateOperation,
    UpdateOptions,
    UpdateResult,
)

__all__ = [
    # Retrieval models
    "ContextBundle",
    "GraphQueryResult",
    "QueryMetadata",
    "RelevantNote",
    "ResourceType",
    # NLP models
    "Dependency",
    "Entity",
    "ExtractedKnowledge",
    "NLPAnalysis",
    "Relationship",
    "SemanticRole",
    # Response models
    "KnowledgeExtractionResult",
    "ParsedResponse",
    "ResponseFormat",
    "StructuredResponse",
    "StructuredTriplePayload",
    "TriplePayload",
    # Triple models
    "EvolutionStage",
    "KnowledgeTriple",
    "SourceType",
    # Write models
    "BatchUpdateResult",
    "DuplicatePolicy",
    "HealthStatus",
    "UpdateOperation",
    "UpdateOptions",
    "UpdateResult",
]
