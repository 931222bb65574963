"""
Rule-assisted triple extraction from model answers.

Pipeline:
text → entities → dependencies → semantic roles → relationships → triples

English analysis runs on a spaCy pipeline passed in by the caller;
Korean text is covered by particle and suffix rules that need no model.
A fixed set of sentence patterns ("A is a kind of B") backs up the
richer pipeline when it finds no relationships.
"""

import re
from typing import Any

from notegraph.config import ExtractionConfig
from notegraph.models.context import ContextBundle
from notegraph.models.nlp import (
    Dependency,
    Entity,
    ExtractedKnowledge,
    NLPAnalysis,
    Relationship,
    SemanticRole,
)
from notegraph.models.triple import KnowledgeTriple
from notegraph.services.provenance import ProvenanceEnricher
from notegraph.utils.exceptions import ExtractionError
from notegraph.utils.id_generator import ENTITY_URI_PREFIXES, generate_entity_id, generate_entity_uri
from notegraph.utils.logger import get_logger
from notegraph.utils.sparql import NON_WORD

logger = get_logger(__name__)

# spaCy label -> (entity label, confidence)
SPACY_ENTITY_LABELS = {
    "PERSON": ("PERSON", 0.85),
    "GPE": ("PLACE", 0.80),
    "LOC": ("PLACE", 0.80),
    "ORG": ("ORGANIZATION", 0.75),
    "DATE": ("TIME", 0.75),
    "TIME": ("TIME", 0.75),
}
CONCEPT_CONFIDENCE = 0.70
TIME_CONFIDENCE = 0.75

ROLE_CONFIDENCE = 0.80
LOCATION_CONFIDENCE = 0.70
TIME_ROLE_CONFIDENCE = 0.70
DEPENDENCY_CONFIDENCE = 0.65
MIN_CONTAINMENT_LENGTH = 3

SPACY_DEPENDENCIES = {"nsubj", "nsubjpass", "dobj", "obj", "attr", "pobj"}

HANGUL = re.compile(r"[가-힣]")
SENTENCE_SPLIT = re.compile(r"(?<=[.!?。])\s+|\n+")

KOREAN_CONCEPT_PATTERNS = [
    re.compile(r"[가-힣]+(?:학|론|법|술|기법|방법|이론|원리|개념)"),
    re.compile(r"[가-힣]+(?:시스템|모델|프레임워크|아키텍처)"),
    re.compile(r"[가-힣]+(?:분석|평가|측정|검증|테스트)"),
    re.compile(r"인공지능|머신러닝|딥러닝|데이터|알고리즘"),
    re.compile(r"[가-힣]+(?:연구|개발|구현|설계|계획)"),
]
KOREAN_TIME_PATTERNS = [
    re.compile(r"\d{4}년"),
    re.compile(r"오늘|어제|내일|지금|현재"),
    re.compile(r"[가-힣]+(?:시간|동안|기간)"),
]
# Particle-marked phrases: (pattern, relation)
KOREAN_PARTICLE_PATTERNS = [
    (re.compile(r"([가-힣]+?)(?:은|는)\s+([가-힣]+)"), "topic"),
    (re.compile(r"([가-힣]+?)(?:이|가)\s+([가-힣]+)"), "subject"),
    (re.compile(r"([가-힣]+?)(?:을|를)\s+([가-힣]+)"), "object"),
    (re.compile(r"([가-힣]+?)에서\s+([가-힣]+)"), "location"),
    (re.compile(r"([가-힣]+?)(?:으로|로)\s+([가-힣]+)"), "manner"),
]
KOREAN_VERB_PATTERN = re.compile(
    r"(?<![가-힣])([가-힣]+?)(?:했습니다|합니다|했다|한다|하다|됩니다|된다)(?![가-힣])"
)

PREDICATE_MAP = {
    "개발": "develops",
    "구현": "implements",
    "설명": "explains",
    "분석": "analyzes",
    "연구": "researches",
    "학습": "learns",
    "사용": "uses",
    "적용": "applies",
    "생성": "creates",
    "제공": "provides",
    "develop": "develops",
    "implement": "implements",
    "explain": "explains",
    "analyze": "analyzes",
    "analyse": "analyzes",
    "research": "researches",
    "learn": "learns",
    "use": "uses",
    "apply": "applies",
    "create": "creates",
    "provide": "provides",
    "discover": "discovers",
}
DEPENDENCY_PREDICATES = {
    "nsubj": "hasSubject",
    "nsubjpass": "hasSubject",
    "subject": "hasSubject",
    "dobj": "hasObject",
    "obj": "hasObject",
    "object": "hasObject",
    "attr": "hasAttribute",
    "topic": "hasTopic",
    "location": "locatedAt",
    "pobj": "relatedTo",
    "manner": "performedBy",
}

_ARTICLE = r"(?:(?:a|an|the)\s+)?"
# Sentence patterns tried in order; first match per sentence wins
FALLBACK_PATTERNS = [
    (
        re.compile(
            rf"^{_ARTICLE}(?P<a>.+?)\s+(?:is|are)\s+(?:a|an|one)?\s*(?:kind|type|form|subfield|branch)"
            rf"\s+of\s+{_ARTICLE}(?P<b>.+)$",
            re.IGNORECASE,
        ),
        "rdfs:subClassOf",
        0.75,
    ),
    (
        re.compile(
            r"^(?P<a>\S+?)(?:은|는|이|가)\s+(?:.*\s)?(?P<b>\S+?)의\s*(?:일종|종류|하위\s*분야)"
            r"(?:이다|입니다|이에요|다)?$"
        ),
        "rdfs:subClassOf",
        0.75,
    ),
    (
        re.compile(
            rf"^{_ARTICLE}(?P<a>.+?)\s+(?:is|are)\s+(?:a\s+)?part\s+of\s+{_ARTICLE}(?P<b>.+)$",
            re.IGNORECASE,
        ),
        "{prefix}:partOf",
        0.70,
    ),
    (
        re.compile(r"^(?P<a>\S+?)(?:은|는|이|가)\s+(?:.*\s)?(?P<b>\S+?)의\s*일부(?:이다|입니다|다)?$"),
        "{prefix}:partOf",
        0.70,
    ),
    (
        re.compile(rf"^{_ARTICLE}(?P<a>.+?)\s+(?:uses|use|utilizes|utilises)\s+{_ARTICLE}(?P<b>.+)$", re.IGNORECASE),
        "{prefix}:uses",
        0.65,
    ),
    (
        re.compile(
            r"^(?P<a>\S+?)(?:은|는|이|가)\s+(?:.*\s)?(?P<b>\S+?)(?:을|를)\s*(?:사용|이용|활용)\S*$"
        ),
        "{prefix}:uses",
        0.65,
    ),
    (
        re.compile(rf"^{_ARTICLE}(?P<a>.+?)\s+(?:is|are)\s+(?:a|an)\s+(?P<b>.+)$", re.IGNORECASE),
        "{prefix}:isA",
        0.60,
    ),
    (
        re.compile(r"^(?P<a>\S+?)(?:은|는)\s+(?:.*\s)?(?P<b>\S+?)(?:이다|입니다)$"),
        "{prefix}:isA",
        0.60,
    ),
]


def split_sentences(text: str) -> list[str]:
    return [s.strip() for s in SENTENCE_SPLIT.split(text) if s and s.strip()]


def detect_language(text: str) -> str:
    """Language tag for a label: ko for Hangul text, en otherwise."""
    return "ko" if HANGUL.search(text) else "en"


class TripleExtractor:
    """
    Extract candidate triples from free text.

    Holds no per-call state; the spaCy ``Language`` is built once by the
    caller (see ExtractorFactory) and shared. With ``nlp=None`` only the
    Korean rule layers and fallback patterns run.
    """

    def __init__(
        self,
        nlp: Any = None,
        prefix: str = "ng",
        config: ExtractionConfig | None = None,
        enricher: ProvenanceEnricher | None = None,
    ):
        """
        Initialize triple extractor.

        Args:
            nlp: Loaded spaCy pipeline (callable text -> Doc), or None
            prefix: Namespace prefix for generated URIs
            config: Extraction settings
            enricher: Provenance enricher applied when a context bundle is given
        """
        self.nlp = nlp
        self.prefix = prefix
        self.config = config or ExtractionConfig()
        self.enricher = enricher or ProvenanceEnricher(prefix=prefix)

    # ═══════════════════════════════════════════════════════════
    # ANALYSIS
    # ═══════════════════════════════════════════════════════════

    @staticmethod
    def preprocess_text(text: str) -> str:
        """Collapse whitespace and normalise quotes, ellipses and dashes."""
        text = re.sub(r"\s+", " ", text.strip())
        text = re.sub(r"[“”‘’]", '"', text)
        text = text.replace("…", "...")
        return re.sub(r"[–—]", "-", text)

    def analyze_text(self, text: str) -> NLPAnalysis:
        """
        Run all extraction stages over a text.

        Raises:
            ExtractionError: If the spaCy pipeline fails
        """
        text = self.preprocess_text(text)
        if not text:
            return NLPAnalysis()

        doc = None
        if self.nlp is not None:
            try:
                doc = self.nlp(text)
            except Exception as e:
                logger.bind(error_type=type(e).__name__).error(f"spaCy pipeline failed: {e}")
                raise ExtractionError(f"NLP analysis failed: {e}") from e

        entities = self.recognize_entities(text, doc)
        dependencies = self.extract_dependencies(text, doc)
        roles = self.label_semantic_roles(text, doc, entities, dependencies)
        relationships = self.synthesize_relationships(entities, dependencies, roles)

        return NLPAnalysis(
            entities=entities,
            dependencies=dependencies,
            semantic_roles=roles,
            relationships=relationships,
            confidence=self.calculate_confidence(entities, relationships, dependencies),
        )

    def recognize_entities(self, text: str, doc: Any = None) -> list[Entity]:
        entities: list[Entity] = []

        if doc is not None:
            for ent in doc.ents:
                if ent.label_ not in SPACY_ENTITY_LABELS:
                    continue
                label, confidence = SPACY_ENTITY_LABELS[ent.label_]
                entities.append(self._entity(ent.text, label, ent.start_char, ent.end_char, confidence))

            # Noun runs outside named entities become concepts
            run: list[Any] = []
            for token in list(doc) + [None]:
                if token is not None and token.pos_ in ("NOUN", "PROPN") and not token.ent_type_:
                    run.append(token)
                    continue
                if run:
                    span = doc[run[0].i : run[-1].i + 1]
                    if len(span.text) >= 2:
                        entities.append(
                            self._entity(
                                span.text, "CONCEPT", span.start_char, span.end_char, CONCEPT_CONFIDENCE
                            )
                        )
                    run = []

        for pattern in KOREAN_CONCEPT_PATTERNS:
            for match in pattern.finditer(text):
                entities.append(
                    self._entity(match.group(), "CONCEPT", match.start(), match.end(), CONCEPT_CONFIDENCE)
                )
        for pattern in KOREAN_TIME_PATTERNS:
            for match in pattern.finditer(text):
                entities.append(self._entity(match.group(), "TIME", match.start(), match.end(), TIME_CONFIDENCE))

        seen = set()
        unique = []
        for entity in entities:
            if (entity.text, entity.label) not in seen:
                seen.add((entity.text, entity.label))
                unique.append(entity)
        return sorted(unique, key=lambda e: e.start_index)

    def extract_dependencies(self, text: str, doc: Any = None) -> list[Dependency]:
        dependencies = []

        if doc is not None:
            for token in doc:
                if token.dep_ in SPACY_DEPENDENCIES:
                    dependencies.append(
                        Dependency(token=token.text, head=token.head.text, relation=token.dep_, position=token.i)
                    )

        for pattern, relation in KOREAN_PARTICLE_PATTERNS:
            for match in pattern.finditer(text):
                dependencies.append(
                    Dependency(token=match.group(1), head=match.group(2), relation=relation, position=match.start())
                )

        return dependencies

    def label_semantic_roles(
        self,
        text: str,
        doc: Any,
        entities: list[Entity],
        dependencies: list[Dependency],
    ) -> list[SemanticRole]:
        roles = []
        if doc is not None:
            roles.extend(self._spacy_roles(doc, entities))
        roles.extend(self._korean_roles(text, entities))
        return roles

    def _spacy_roles(self, doc: Any, entities: list[Entity]) -> list[SemanticRole]:
        roles = []
        for token in doc:
            # Copulas are left to the sentence patterns
            if token.pos_ not in ("VERB", "AUX") or token.lemma_.lower() == "be":
                continue

            role = SemanticRole(predicate=(token.lemma_ or token.text).lower())
            for child in token.children:
                if child.dep_ in ("nsubj", "nsubjpass") and role.agent is None:
                    role.agent = self._entity_at(child.idx, entities)
                elif child.dep_ in ("dobj", "obj", "attr") and role.patient is None:
                    role.patient = self._entity_at(child.idx, entities)
                elif child.dep_ in ("npadvmod", "tmod"):
                    found = self._entity_at(child.idx, entities)
                    if found is not None and found.label == "TIME":
                        role.time = found
                elif child.dep_ == "prep":
                    for pobj in (c for c in child.children if c.dep_ == "pobj"):
                        found = self._entity_at(pobj.idx, entities)
                        if found is None:
                            continue
                        if found.label == "PLACE":
                            role.location = role.location or found
                        elif found.label == "TIME":
                            role.time = role.time or found
                        elif role.patient is None:
                            role.patient = found

            if role.agent or role.patient:
                roles.append(role)
        return roles

    def _korean_roles(self, text: str, entities: list[Entity]) -> list[SemanticRole]:
        roles = []
        for sentence in split_sentences(text):
            if not HANGUL.search(sentence):
                continue

            marked = {}
            for pattern, relation in KOREAN_PARTICLE_PATTERNS:
                for match in pattern.finditer(sentence):
                    marked.setdefault(relation, match.group(1))

            time_entity = None
            for pattern in KOREAN_TIME_PATTERNS:
                match = pattern.search(sentence)
                if match:
                    time_entity = self.find_entity_by_text(match.group(), entities)
                    break

            for verb in KOREAN_VERB_PATTERN.finditer(sentence):
                agent_text = marked.get("topic") or marked.get("subject")
                role = SemanticRole(
                    predicate=verb.group(1),
                    agent=self.find_entity_by_text(agent_text, entities) if agent_text else None,
                    patient=self.find_entity_by_text(marked["object"], entities) if "object" in marked else None,
                    location=self.find_entity_by_text(marked["location"], entities)
                    if "location" in marked
                    else None,
                    time=time_entity,
                )
                if role.agent or role.patient:
                    roles.append(role)
        return roles

    def synthesize_relationships(
        self,
        entities: list[Entity],
        dependencies: list[Dependency],
        roles: list[SemanticRole],
    ) -> list[Relationship]:
        relationships = []

        for role in roles:
            if role.agent and role.patient:
                relationships.append(
                    Relationship(
                        subject=role.agent,
                        predicate=self.normalize_predicate(role.predicate),
                        object=role.patient,
                        confidence=ROLE_CONFIDENCE,
                        context=f"semantic_role_{role.predicate}",
                    )
                )
            if role.agent and role.location:
                relationships.append(
                    Relationship(
                        subject=role.agent,
                        predicate=f"{self.prefix}:locatedAt",
                        object=role.location,
                        confidence=LOCATION_CONFIDENCE,
                        context="location_role",
                    )
                )
            if role.agent and role.time:
                relationships.append(
                    Relationship(
                        subject=role.agent,
                        predicate=f"{self.prefix}:occurredAt",
                        object=role.time,
                        confidence=TIME_ROLE_CONFIDENCE,
                        context="temporal_role",
                    )
                )

        for dep in dependencies:
            subject = self.find_entity_by_text(dep.token, entities)
            obj = self.find_entity_by_text(dep.head, entities)
            if subject and obj:
                relationships.append(
                    Relationship(
                        subject=subject,
                        predicate=self.dependency_predicate(dep.relation),
                        object=obj,
                        confidence=DEPENDENCY_CONFIDENCE,
                        context=f"dependency_{dep.relation}",
                    )
                )

        seen = set()
        unique = []
        for rel in relationships:
            key = (rel.subject.text, rel.predicate, rel.object.text)
            if rel.subject.text == rel.object.text or key in seen:
                continue
            seen.add(key)
            unique.append(rel)
        return sorted(unique, key=lambda r: r.confidence, reverse=True)

    @staticmethod
    def calculate_confidence(
        entities: list[Entity],
        relationships: list[Relationship],
        dependencies: list[Dependency],
    ) -> float:
        if not entities and not relationships:
            return 0.0

        entity_conf = sum(e.confidence for e in entities) / max(len(entities), 1)
        relationship_conf = sum(r.confidence for r in relationships) / max(len(relationships), 1)
        dependency_bonus = min(0.05 * len(dependencies), 0.2)
        return min((entity_conf + relationship_conf) / 2 + dependency_bonus, 1.0)

    # ═══════════════════════════════════════════════════════════
    # TRIPLES
    # ═══════════════════════════════════════════════════════════

    def extract_triples(
        self,
        text: str,
        model_name: str = "nlp-extractor",
        context_bundle: ContextBundle | None = None,
        analysis: NLPAnalysis | None = None,
    ) -> list[KnowledgeTriple]:
        """
        Turn an analysis into relationship, type and label triples.

        Triples are enriched as extractor output when a bundle is given.
        """
        if analysis is None:
            analysis = self.analyze_text(text)
        triples = []

        for rel in analysis.relationships:
            triples.append(
                KnowledgeTriple(
                    subject=rel.subject.uri or rel.subject.text,
                    predicate=rel.predicate,
                    object=rel.object.uri or rel.object.text,
                    confidence=rel.confidence,
                    source=model_name,
                )
            )

        for entity in analysis.entities:
            if not entity.uri:
                continue
            type_name = ENTITY_URI_PREFIXES.get(entity.label, entity.label.capitalize())
            label = entity.text.replace("\\", "\\\\").replace('"', '\\"')
            triples.append(
                KnowledgeTriple(
                    subject=entity.uri,
                    predicate="rdf:type",
                    object=f"{self.prefix}:{type_name}",
                    confidence=entity.confidence,
                    source=model_name,
                )
            )
            triples.append(
                KnowledgeTriple(
                    subject=entity.uri,
                    predicate="rdfs:label",
                    object=f'"{label}"@{detect_language(entity.text)}',
                    confidence=entity.confidence,
                    source=model_name,
                )
            )

        if context_bundle is not None:
            triples = self.enricher.enrich_all(triples, context_bundle, from_extractor=True)
        return triples

    def extract_fallback_triples(
        self,
        text: str,
        model_name: str = "pattern-extractor",
        context_bundle: ContextBundle | None = None,
    ) -> list[KnowledgeTriple]:
        """Match fixed "A is a kind of B" style sentence patterns."""
        triples = []
        for sentence in split_sentences(self.preprocess_text(text)):
            sentence = sentence.rstrip(".!?。 ")
            for pattern, predicate, confidence in FALLBACK_PATTERNS:
                match = pattern.match(sentence)
                if not match:
                    continue
                subject_id = generate_entity_id(match.group("a").strip("\"' "))
                object_id = generate_entity_id(match.group("b").strip("\"' "))
                if subject_id and object_id and subject_id != object_id:
                    triples.append(
                        KnowledgeTriple(
                            subject=f"{self.prefix}:{subject_id}",
                            predicate=predicate.format(prefix=self.prefix),
                            object=f"{self.prefix}:{object_id}",
                            confidence=confidence,
                            source=model_name,
                        )
                    )
                break

        if context_bundle is not None:
            triples = self.enricher.enrich_all(triples, context_bundle, from_extractor=False)
        return triples

    def extract(
        self,
        text: str,
        model_name: str = "nlp-extractor",
        context_bundle: ContextBundle | None = None,
    ) -> ExtractedKnowledge:
        """
        Full extraction: NLP pipeline, plus fallback patterns when the
        pipeline produced no relationships.
        """
        analysis = self.analyze_text(text)
        triples = self.extract_triples(text, model_name, context_bundle, analysis=analysis)

        used_fallback = False
        if not analysis.relationships and self.config.use_fallback_patterns:
            triples = triples + self.extract_fallback_triples(text, model_name, context_bundle)
            used_fallback = True

        logger.debug(
            f"Extracted {len(triples)} triples "
            f"({len(analysis.entities)} entities, {len(analysis.relationships)} relationships)"
        )
        return ExtractedKnowledge(analysis=analysis, triples=triples, used_fallback=used_fallback)

    # ═══════════════════════════════════════════════════════════
    # HELPERS
    # ═══════════════════════════════════════════════════════════

    def normalize_predicate(self, predicate: str) -> str:
        key = predicate.strip().lower()
        if key in PREDICATE_MAP:
            return f"{self.prefix}:{PREDICATE_MAP[key]}"
        return f"{self.prefix}:{NON_WORD.sub('_', predicate.strip())}"

    def dependency_predicate(self, relation: str) -> str:
        return f"{self.prefix}:{DEPENDENCY_PREDICATES.get(relation, relation)}"

    @staticmethod
    def find_entity_by_text(text: str, entities: list[Entity]) -> Entity | None:
        """
        Exact text match first, then containment in either direction.

        Containment needs at least 3 characters on the shorter side, so
        heads like "is" or "of" never match inside longer entities.
        """
        if not text or len(text) < 2:
            return None
        for entity in entities:
            if entity.text == text:
                return entity
        for entity in entities:
            if min(len(entity.text), len(text)) < MIN_CONTAINMENT_LENGTH:
                continue
            if entity.text in text or text in entity.text:
                return entity
        return None

    @staticmethod
    def _entity_at(char_index: int, entities: list[Entity]) -> Entity | None:
        """Entity whose span covers a character offset."""
        for entity in entities:
            if entity.start_index <= char_index < entity.end_index:
                return entity
        return None

    def _entity(self, text: str, label: str, start: int, end: int, confidence: float) -> Entity:
        return Entity(
            text=text,
            label=label,
            start_index=start,
            end_index=end,
            confidence=confidence,
            uri=generate_entity_uri(self.prefix, label, text),
        )
