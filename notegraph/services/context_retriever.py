"""
Context retrieval and ranking for a target concept.

Pipeline:
concept → UNION query (notes + books) → merge rows by URI → score → ContextBundle

Scoring combines four signals, each normalised to [0, 1]:
- exact match: concept in content (+1), title (+1.5, books), author (+0.8)
- tag match: tags containing the concept (+1), equal to it (+0.5 more)
- frequency: occurrences in content / 5
- density: occurrences * len(concept) / len(content) * 20
"""

import math
import time
from typing import Any
from urllib.parse import quote

from notegraph.config import RetrievalConfig, SparqlConfig
from notegraph.core.graph_store.base import GraphClient
from notegraph.models.context import (
    ContextBundle,
    GraphQueryResult,
    QueryMetadata,
    RelevantNote,
    ResourceType,
)
from notegraph.utils.exceptions import NoteGraphError, ValidationError
from notegraph.utils.logger import get_logger
from notegraph.utils.sparql import BIBO, CORE_RESOURCE, CORE_UNIT, build_prefixes, escape_string

logger = get_logger(__name__)


def round_half_up(value: float, digits: int = 2) -> float:
    """Round to ``digits`` decimals with halves going up."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def count_occurrences(text: str, concept: str) -> int:
    """Non-overlapping, case-insensitive occurrences of concept in text."""
    if not text or not concept:
        return 0
    return text.lower().count(concept.lower())


def exact_match_score(result: GraphQueryResult, concept: str) -> float:
    needle = concept.lower()
    score = 0.0
    if result.content and needle in result.content.lower():
        score += 1.0
    if result.type == ResourceType.BOOK and result.title and needle in result.title.lower():
        score += 1.5
    if result.author and needle in result.author.lower():
        score += 0.8
    return min(score, 1.0)


def tag_match_score(tags: list[str], concept: str) -> float:
    if not tags:
        return 0.0
    needle = concept.lower()
    score = 0.0
    for tag in tags:
        tag_lower = tag.lower()
        if needle in tag_lower:
            score += 1.0
            if tag_lower == needle:
                score += 0.5
    return min(score / len(tags), 1.0)


def frequency_score(content: str, concept: str, divisor: float = 5.0) -> float:
    return min(count_occurrences(content, concept) / divisor, 1.0)


def density_score(content: str, concept: str, scale: float = 20.0) -> float:
    if not content:
        return 0.0
    occurrences = count_occurrences(content, concept)
    return min((occurrences * len(concept)) / len(content) * scale, 1.0)


class ContextRetriever:
    """
    Retrieve and rank the user's notes and books for a concept.

    Uses one SPARQL UNION query, then scores results locally so the
    ranking is reproducible from the rows alone.
    """

    def __init__(
        self,
        graph_client: GraphClient,
        config: RetrievalConfig | None = None,
        sparql_config: SparqlConfig | None = None,
        user_id: str | None = None,
    ):
        """
        Initialize context retriever.

        Args:
            graph_client: SPARQL graph client
            config: Ranking weights and result limit
            sparql_config: Namespace settings for the query prefixes
            user_id: Optional user whose notes the query is restricted to
        """
        self.graph = graph_client
        self.config = config or RetrievalConfig()
        self.sparql_config = sparql_config or SparqlConfig()
        self.user_id = user_id

    # ═══════════════════════════════════════════════════════════
    # QUERY
    # ═══════════════════════════════════════════════════════════

    def build_query(self, concept: str) -> str:
        """
        Build the UNION query over notes and books.

        Matching is case-insensitive containment on content, title,
        author and tags; the concept is escaped before interpolation.
        """
        needle = escape_string(concept.lower())
        prefixes = build_prefixes(
            self.sparql_config.namespace_prefix,
            self.sparql_config.namespace_uri,
            extra={"core": CORE_UNIT, "kres": CORE_RESOURCE, "bibo": BIBO},
        )

        def contains(var: str) -> str:
            return f'(BOUND(?{var}) && CONTAINS(LCASE(STR(?{var})), "{needle}"))'

        user_filter = ""
        if self.user_id:
            user_uri = f"<{self.sparql_config.namespace_uri}user/{quote(self.user_id, safe='')}>"
            user_filter = f"\n    ?uri dcterms:creator {user_uri} ."

        return f"""{prefixes}

SELECT ?uri ?type ?content ?title ?author ?page ?created ?tag WHERE {{
  {{
    ?uri a core:Note ;
         core:text ?content .{user_filter}
    OPTIONAL {{ ?uri skos:subject ?tag }}
    OPTIONAL {{ ?uri dcterms:created ?created }}
    BIND("note" AS ?type)
    FILTER({contains('content')} || {contains('tag')})
  }}
  UNION
  {{
    ?uri a kres:Book ;
         dcterms:title ?title .
    OPTIONAL {{ ?uri dcterms:creator ?author }}
    OPTIONAL {{ ?uri dcterms:description ?content }}
    OPTIONAL {{ ?uri bibo:pages ?page }}
    OPTIONAL {{ ?uri skos:subject ?tag }}
    OPTIONAL {{ ?uri dcterms:created ?created }}
    BIND("book" AS ?type)
    FILTER({contains('title')} || {contains('author')} || {contains('content')} || {contains('tag')})
  }}
}}
ORDER BY ?type ?uri
LIMIT {self.config.max_results}"""

    @staticmethod
    def merge_rows(rows: list[dict[str, Any]]) -> list[GraphQueryResult]:
        """
        Merge query rows into one result per URI, accumulating tags.

        First-seen order of URIs is kept.
        """
        merged: dict[str, GraphQueryResult] = {}
        for row in rows:
            uri = row.get("uri")
            if not uri:
                continue

            result = merged.get(uri)
            if result is None:
                try:
                    resource_type = ResourceType(row.get("type", "note"))
                except ValueError:
                    logger.warning(f"Skipping row with unknown type: {row.get('type')}")
                    continue

                page = row.get("page")
                result = GraphQueryResult(
                    uri=uri,
                    type=resource_type,
                    content=row.get("content") or "",
                    title=row.get("title"),
                    author=row.get("author"),
                    page_number=int(page) if page and str(page).isdigit() else None,
                    created_at=row.get("created"),
                )
                merged[uri] = result

            if row.get("tag"):
                result.add_tag(row["tag"])

        return list(merged.values())

    # ═══════════════════════════════════════════════════════════
    # RANKING
    # ═══════════════════════════════════════════════════════════

    def score(self, result: GraphQueryResult, concept: str) -> float:
        """Weighted relevance score, rounded half-up to 2 decimals."""
        cfg = self.config
        total = (
            exact_match_score(result, concept) * cfg.exact_match_weight
            + tag_match_score(result.tags, concept) * cfg.tag_match_weight
            + frequency_score(result.content, concept, cfg.frequency_divisor) * cfg.frequency_weight
            + density_score(result.content, concept, cfg.density_scale) * cfg.density_weight
        )
        if result.type == ResourceType.NOTE:
            total += cfg.note_bonus
        return round_half_up(total)

    def rank(self, results: list[GraphQueryResult], concept: str) -> list[GraphQueryResult]:
        """Score each result and sort by score descending; ties keep query order."""
        scored = [r.model_copy(update={"relevance_score": self.score(r, concept)}) for r in results]
        return sorted(scored, key=lambda r: r.relevance_score, reverse=True)

    # ═══════════════════════════════════════════════════════════
    # BUNDLE
    # ═══════════════════════════════════════════════════════════

    async def get_context_bundle(self, target_concept: str) -> ContextBundle:
        """
        Retrieve ranked context for a concept.

        Transport and query errors degrade to an empty bundle whose
        metadata carries the error message.

        Raises:
            ValidationError: If the concept is empty
        """
        if not target_concept or not target_concept.strip():
            raise ValidationError("Target concept cannot be empty")

        concept = target_concept.strip()
        start_time = time.perf_counter()

        try:
            rows = await self.graph.select(self.build_query(concept))
        except NoteGraphError as e:
            elapsed = (time.perf_counter() - start_time) * 1000
            logger.bind(concept=concept, error=e.message).warning(
                f"Context retrieval failed for '{concept}', returning empty bundle: {e.message}"
            )
            return ContextBundle(
                target_concept=concept,
                query_metadata=QueryMetadata(execution_time_ms=elapsed, error=e.message),
            )

        ranked = self.rank(self.merge_rows(rows), concept)
        elapsed = (time.perf_counter() - start_time) * 1000

        bundle = ContextBundle(
            target_concept=concept,
            relevant_notes=[
                RelevantNote(content=r.content, tags=r.tags, relevance_score=r.relevance_score)
                for r in ranked
                if r.type == ResourceType.NOTE
            ],
            book_excerpts=[self.book_excerpt(r) for r in ranked if r.type == ResourceType.BOOK],
            related_concepts=self.related_concepts(ranked, concept),
            query_metadata=QueryMetadata(execution_time_ms=elapsed, result_count=len(ranked)),
        )

        logger.info(
            f"Retrieved context for '{concept}': {len(bundle.relevant_notes)} notes, "
            f"{len(bundle.book_excerpts)} books ({elapsed:.1f}ms)"
        )
        return bundle

    @staticmethod
    def related_concepts(results: list[GraphQueryResult], concept: str) -> list[str]:
        """Union of tags, first-seen order, minus the concept (case-insensitive)."""
        seen = {concept.lower()}
        related = []
        for result in results:
            for tag in result.tags:
                if tag.lower() not in seen:
                    seen.add(tag.lower())
                    related.append(tag)
        return related

    @staticmethod
    def book_excerpt(result: GraphQueryResult) -> str:
        if result.content:
            return result.content
        if result.author:
            return f"{result.title} ({result.author})"
        return result.title or ""
