"""
Context-in, knowledge-out pipeline.

Flow:
concept → ContextBundle → prompt → model → parse → extract → merge →
provenance → write
"""

import time
from collections.abc import Callable
from typing import Any

from notegraph.config import Config
from notegraph.core.graph_store.base import GraphClient
from notegraph.core.llm.base import LLMProvider, Prompt
from notegraph.models.context import ContextBundle
from notegraph.models.nlp import ExtractedKnowledge
from notegraph.models.response import KnowledgeExtractionResult, ResponseFormat
from notegraph.models.update import BatchUpdateResult, UpdateOptions
from notegraph.services.context_retriever import ContextRetriever
from notegraph.services.knowledge_writer import KnowledgeStoreWriter
from notegraph.services.provenance import ProvenanceEnricher, merge_triples
from notegraph.services.response_parser import ResponseParser
from notegraph.services.triple_extractor import TripleExtractor
from notegraph.utils.exceptions import ConfigurationError, ExtractionError, NoteGraphError
from notegraph.utils.id_generator import generate_run_id
from notegraph.utils.logger import get_logger

logger = get_logger(__name__)

PromptBuilder = Callable[[ContextBundle, str], Prompt]


class KnowledgePipeline:
    """
    Orchestrate retrieval, parsing, extraction, provenance and writing.

    extract_and_store_triples() always returns a result: extraction
    output survives even when the store is unreachable.
    """

    def __init__(
        self,
        retriever: ContextRetriever,
        parser: ResponseParser,
        extractor: TripleExtractor,
        enricher: ProvenanceEnricher,
        writer: KnowledgeStoreWriter,
        llm: LLMProvider | None = None,
    ):
        """
        Initialize knowledge pipeline.

        Args:
            retriever: Context retriever and ranker
            parser: Model response parser
            extractor: Triple extractor
            enricher: Provenance enricher for parser triples
            writer: Knowledge store writer
            llm: Optional model provider used by answer()
        """
        self.retriever = retriever
        self.parser = parser
        self.extractor = extractor
        self.enricher = enricher
        self.writer = writer
        self.llm = llm

    @classmethod
    def from_config(
        cls,
        config: Config,
        llm: LLMProvider | None = None,
        graph_client: GraphClient | None = None,
        extractor: TripleExtractor | None = None,
        user_id: str | None = None,
    ) -> "KnowledgePipeline":
        """
        Build a pipeline from configuration.

        Components not passed in are created through the factories.
        """
        from notegraph.core.factory import ExtractorFactory, GraphClientFactory, LLMFactory

        graph = graph_client or GraphClientFactory.create(config)
        enricher = ProvenanceEnricher(
            config.provenance,
            prefix=config.sparql.namespace_prefix,
            namespace_uri=config.sparql.namespace_uri,
        )
        if extractor is None:
            extractor = ExtractorFactory.create(config)
        extractor.enricher = enricher

        return cls(
            retriever=ContextRetriever(graph, config.retrieval, config.sparql, user_id=user_id),
            parser=ResponseParser(),
            extractor=extractor,
            enricher=enricher,
            writer=KnowledgeStoreWriter(graph, config.writer, config.sparql),
            llm=llm or LLMFactory.create(config.llm),
        )

    async def extract_and_store_triples(
        self,
        raw_response: Any,
        context_bundle: ContextBundle | None,
        model_name: str,
        expected_format: ResponseFormat = ResponseFormat.STRUCTURED,
        store: bool = True,
        options: UpdateOptions | None = None,
    ) -> KnowledgeExtractionResult:
        """
        Parse a model response, extract and classify triples, and write them.

        Args:
            raw_response: Provider response of any supported shape
            context_bundle: Bundle the prompt was grounded on
            model_name: Model identifier stamped on triples
            expected_format: Declared structured format of the response
            store: Write the triples when True
            options: Writer options for this call

        Returns:
            KnowledgeExtractionResult; write_result is None if writing failed
        """
        start_time = time.perf_counter()
        run_logger = logger.bind(run_id=generate_run_id(), model=model_name)

        parsed = self.parser.parse(raw_response, expected_format, source=model_name)
        parser_triples = self.enricher.enrich_all(parsed.triples, context_bundle, from_extractor=False)

        try:
            extracted = self.extractor.extract(parsed.text, model_name, context_bundle)
        except ExtractionError as e:
            run_logger.warning(f"Extraction failed, keeping parser triples only: {e.message}")
            extracted = ExtractedKnowledge()

        triples = merge_triples(parser_triples, extracted.triples)

        write_result: BatchUpdateResult | None = None
        if store:
            try:
                write_result = await self.writer.insert_triples(triples, options)
            except Exception as e:
                run_logger.bind(triple_count=len(triples), error_type=type(e).__name__).error(
                    f"Knowledge write failed: {e}"
                )

        elapsed = (time.perf_counter() - start_time) * 1000
        run_logger.info(
            f"Extracted {len(triples)} triples from {model_name} "
            f"({len(parser_triples)} explicit, fallback={extracted.used_fallback}, {elapsed:.1f}ms)"
        )

        return KnowledgeExtractionResult(
            text=parsed.text,
            triples=triples,
            write_result=write_result,
            parsing_errors=parsed.errors,
            analysis_confidence=extracted.analysis.confidence,
            context_bundle=context_bundle,
        )

    async def answer(
        self,
        concept: str,
        question: str,
        prompt_builder: PromptBuilder,
        model: str | None = None,
        expected_format: ResponseFormat = ResponseFormat.STRUCTURED,
        store: bool = True,
    ) -> KnowledgeExtractionResult:
        """
        Full round trip: retrieve context, ask the model, store new knowledge.

        Model failures give an empty-text result carrying the error.

        Raises:
            ValidationError: If the concept is empty
            ConfigurationError: If no model provider is configured
        """
        if self.llm is None:
            raise ConfigurationError("KnowledgePipeline.answer() requires an LLM provider")

        bundle = await self.retriever.get_context_bundle(concept)
        prompt = prompt_builder(bundle, question)
        model_name = model or self.llm.model

        try:
            raw = await self.llm.complete(prompt, model=model)
        except NoteGraphError as e:
            logger.bind(model=model_name).warning(f"Model call failed for '{concept}': {e.message}")
            return KnowledgeExtractionResult(parsing_errors=[e.message], context_bundle=bundle)

        return await self.extract_and_store_triples(
            raw, bundle, model_name, expected_format=expected_format, store=store
        )

    async def close(self) -> None:
        """Release the graph client and model provider."""
        await self.writer.graph.close()
        if self.llm is not None:
            await self.llm.close()
