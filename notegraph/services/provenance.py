"""
Provenance classification of knowledge triples.

A triple whose subject and object both trace back to the user's notes
is user_organic; one that connects a single known term to new material
is an ai_assisted gap fill; anything else keeps the defaults.
"""

import re

from notegraph.config import ProvenanceConfig, SparqlConfig
from notegraph.models.context import ContextBundle, RelevantNote
from notegraph.models.triple import EvolutionStage, KnowledgeTriple, SourceType
from notegraph.utils.id_generator import ENTITY_URI_PREFIXES, generate_memo_id
from notegraph.utils.logger import get_logger

logger = get_logger(__name__)

CONFIDENCE_CEILING = 0.95

LITERAL_PATTERN = re.compile(r'^"(.*)"(?:@[\w-]+|\^\^\S+)?$', re.DOTALL)
PREFIXED_NAME_PATTERN = re.compile(r"^[A-Za-z][\w-]*:(?!//)")
WORD_PATTERN = re.compile(r"\w+")


def merge_triples(*triple_lists: list[KnowledgeTriple]) -> list[KnowledgeTriple]:
    """
    Merge triple lists, deduplicating by (subject, predicate, object).

    The highest-confidence instance of each triple wins; the result is
    sorted by confidence descending, ties keeping first-seen order.
    """
    best: dict[tuple[str, str, str], KnowledgeTriple] = {}
    for triples in triple_lists:
        for triple in triples:
            current = best.get(triple.key)
            if current is None or triple.confidence > current.confidence:
                best[triple.key] = triple

    return sorted(best.values(), key=lambda t: t.confidence, reverse=True)


class ProvenanceEnricher:
    """Classify triples against the notes of a context bundle."""

    def __init__(
        self,
        config: ProvenanceConfig | None = None,
        prefix: str | None = None,
        namespace_uri: str | None = None,
    ):
        """
        Initialize provenance enricher.

        Args:
            config: Boost and cap constants
            prefix: Project namespace prefix stripped from terms
            namespace_uri: Project namespace URI stripped from full URIs
        """
        defaults = SparqlConfig()
        self.config = config or ProvenanceConfig()
        self.prefix = prefix or defaults.namespace_prefix
        self.namespace_uri = namespace_uri or defaults.namespace_uri

    def clean_text(self, term: str) -> str:
        """Reduce a triple term to comparable plain text."""
        text = term.strip()

        literal = LITERAL_PATTERN.match(text)
        if literal:
            text = literal.group(1)
        elif text.startswith("<") and text.endswith(">"):
            uri = text[1:-1]
            if uri.startswith(self.namespace_uri):
                text = uri[len(self.namespace_uri) :]
            else:
                text = re.split(r"[/#]", uri.rstrip("/#"))[-1]
        else:
            text = PREFIXED_NAME_PATTERN.sub("", text, count=1)

        for label_prefix in ENTITY_URI_PREFIXES.values():
            if text.startswith(f"{label_prefix}_"):
                text = text[len(label_prefix) + 1 :]
                break

        return text.replace("_", " ").strip().casefold()

    def find_in_memos(self, text: str, notes: list[RelevantNote]) -> int | None:
        """
        Index of the first note the cleaned text traces back to.

        A note matches when it contains the text, or when every token of
        the text partially matches (substring either way) one of its tokens.
        """
        min_length = self.config.min_match_length
        if len(text) < min_length:
            return None

        tokens = [t for t in text.split() if len(t) >= min_length]
        for index, note in enumerate(notes):
            content = note.content.casefold()
            if text in content:
                return index

            note_tokens = [t for t in WORD_PATTERN.findall(content) if len(t) >= min_length]
            if tokens and note_tokens and all(
                any(token in word or word in token for word in note_tokens) for token in tokens
            ):
                return index

        return None

    def enrich(
        self,
        triple: KnowledgeTriple,
        bundle: ContextBundle | None,
        from_extractor: bool = False,
    ) -> KnowledgeTriple:
        """
        Classify one triple; returns an updated copy.

        Args:
            triple: Candidate triple
            bundle: Context bundle whose notes are the user's material
            from_extractor: True for output of the NLP pipeline, False for
                parser and fallback-pattern output

        Returns:
            Triple with source type, stage, memo reference and confidence set
        """
        notes = bundle.relevant_notes if bundle else []
        cfg = self.config
        confidence = triple.confidence

        subject_idx = self.find_in_memos(self.clean_text(triple.subject), notes) if notes else None
        object_idx = self.find_in_memos(self.clean_text(triple.object), notes) if notes else None

        if subject_idx is not None and object_idx is not None:
            update = {
                "source_type": SourceType.USER_ORGANIC,
                "derived_from_user": True,
                "evolution_stage": (
                    EvolutionStage.SYNTHESIZED if from_extractor else EvolutionStage.CONNECTED
                ),
                "original_memo_id": generate_memo_id(subject_idx),
                "confidence": self._boost(confidence, cfg.organic_boost, cfg.organic_cap),
            }
        elif subject_idx is not None or object_idx is not None:
            boost = cfg.partial_boost_extractor if from_extractor else cfg.partial_boost_fallback
            found_idx = subject_idx if subject_idx is not None else object_idx
            update = {
                "source_type": SourceType.AI_ASSISTED,
                "derived_from_user": True,
                "evolution_stage": EvolutionStage.GAP_FILLED,
                "original_memo_id": generate_memo_id(found_idx),
                "confidence": self._boost(confidence, boost, cfg.partial_cap),
            }
        else:
            update = {
                "source_type": SourceType.AI_ASSISTED,
                "derived_from_user": False,
                "evolution_stage": EvolutionStage.INITIAL,
                "original_memo_id": None,
                "confidence": min(confidence, CONFIDENCE_CEILING),
            }

        return triple.model_copy(update=update)

    def enrich_all(
        self,
        triples: list[KnowledgeTriple],
        bundle: ContextBundle | None,
        from_extractor: bool = False,
    ) -> list[KnowledgeTriple]:
        enriched = [self.enrich(t, bundle, from_extractor) for t in triples]
        organic = sum(1 for t in enriched if t.source_type == SourceType.USER_ORGANIC)
        logger.debug(f"Enriched {len(enriched)} triples ({organic} user_organic)")
        return enriched

    @staticmethod
    def _boost(confidence: float, boost: float, cap: float) -> float:
        """Raise by boost up to cap, never below the input, never above the ceiling."""
        return min(max(confidence, min(confidence + boost, cap)), CONFIDENCE_CEILING)
