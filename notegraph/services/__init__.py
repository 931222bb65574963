"""
Service layer for NoteGraph.

Pipeline components:
- ContextRetriever: Rank the user's notes and books for a concept
- ResponseParser: Normalise model output into text and triples
- TripleExtractor: NLP and pattern-based triple extraction
- ProvenanceEnricher: Classify triples against the user's notes
- KnowledgeStoreWriter: Batched, deduplicated SPARQL Update
- KnowledgePipeline: End-to-end orchestration
"""

from notegraph.services.context_retriever import ContextRetriever
from notegraph.services.knowledge_writer import KnowledgeStoreWriter
from notegraph.services.provenance import ProvenanceEnricher, merge_triples
from notegraph.services.response_parser import ResponseParser
from notegraph.services.triple_extractor import TripleExtractor
from notegraph.services.knowledge_pipeline import KnowledgePipeline

__all__ = [
    "ContextRetriever",
    "KnowledgePipeline",
    "KnowledgeStoreWriter",
    "ProvenanceEnricher",
    "ResponseParser",
    "TripleExtractor",
    "merge_triples",
]
