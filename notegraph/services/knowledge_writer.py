"""
Knowledge store writer: safe SPARQL Update of knowledge triples.

Writes go through INSERT DATA / DELETE DATA and a single
DELETE {} INSERT {} WHERE {} for replacements. Batches are chunked and
processed in order; a failing chunk is recorded and the next one runs.
"""

import asyncio
import time

from notegraph.config import SparqlConfig, WriterConfig
from notegraph.core.graph_store.base import GraphClient
from notegraph.models.triple import KnowledgeTriple
from notegraph.models.update import (
    BatchUpdateResult,
    DuplicatePolicy,
    HealthStatus,
    UpdateOperation,
    UpdateOptions,
    UpdateResult,
)
from notegraph.utils.exceptions import DuplicateTripleError, GraphStoreError, NoteGraphError
from notegraph.utils.logger import get_logger
from notegraph.utils.sparql import build_prefixes, format_object, format_triple_pattern, format_uri

logger = get_logger(__name__)


def _elapsed_ms(start_time: float) -> float:
    return (time.perf_counter() - start_time) * 1000


class KnowledgeStoreWriter:
    """
    Write knowledge triples to a SPARQL 1.1 store.

    Duplicate handling (with validate_before_insert):
    - skip: existing triples are dropped, the call still succeeds
    - update: currently the same as skip
    - error: DuplicateTripleError for the single call, a failed chunk in batches
    """

    def __init__(
        self,
        graph_client: GraphClient,
        config: WriterConfig | None = None,
        sparql_config: SparqlConfig | None = None,
    ):
        """
        Initialize knowledge store writer.

        Args:
            graph_client: SPARQL graph client
            config: Default write options
            sparql_config: Namespace settings for formatting and prefixes
        """
        self.graph = graph_client
        self.default_options = UpdateOptions(**(config or WriterConfig()).model_dump())

        sparql_config = sparql_config or SparqlConfig()
        self.prefix = sparql_config.namespace_prefix
        self.namespace_uri = sparql_config.namespace_uri

    # ═══════════════════════════════════════════════════════════
    # QUERY BUILDING
    # ═══════════════════════════════════════════════════════════

    @property
    def prefixes(self) -> str:
        return build_prefixes(self.prefix, self.namespace_uri)

    def _statements(self, triples: list[KnowledgeTriple]) -> str:
        return "\n  ".join(
            format_triple_pattern(t.subject, t.predicate, t.object, self.prefix) for t in triples
        )

    def build_insert_query(self, triples: list[KnowledgeTriple]) -> str:
        return f"{self.prefixes}\n\nINSERT DATA {{\n  {self._statements(triples)}\n}}"

    def build_delete_query(self, triples: list[KnowledgeTriple]) -> str:
        return f"{self.prefixes}\n\nDELETE DATA {{\n  {self._statements(triples)}\n}}"

    def build_update_query(self, old: KnowledgeTriple, new: KnowledgeTriple) -> str:
        old_pattern = self._statements([old])
        new_pattern = self._statements([new])
        return (
            f"{self.prefixes}\n\n"
            f"DELETE {{\n  {old_pattern}\n}}\n"
            f"INSERT {{\n  {new_pattern}\n}}\n"
            f"WHERE {{\n  {old_pattern}\n}}"
        )

    def build_ask_query(self, triple: KnowledgeTriple) -> str:
        subject = format_uri(triple.subject, self.prefix)
        predicate = format_uri(triple.predicate, self.prefix)
        obj = format_object(triple.object)
        return f"{self.prefixes}\n\nASK {{\n  {subject} {predicate} {obj} .\n}}"

    # ═══════════════════════════════════════════════════════════
    # EXECUTION
    # ═══════════════════════════════════════════════════════════

    def _resolve(self, options: UpdateOptions | None) -> UpdateOptions:
        return options or self.default_options

    async def _execute_update(self, sparql: str, timeout: float) -> None:
        try:
            await asyncio.wait_for(self.graph.update(sparql), timeout=timeout)
        except TimeoutError as e:
            raise GraphStoreError(
                f"SPARQL UPDATE timeout after {timeout}s", context={"timeout": timeout}
            ) from e

    async def _check_triple_exists(self, triple: KnowledgeTriple, timeout: float) -> bool:
        """ASK for the exact triple; a failed check counts as absent."""
        try:
            return await asyncio.wait_for(self.graph.ask(self.build_ask_query(triple)), timeout=timeout)
        except (NoteGraphError, TimeoutError) as e:
            logger.bind(subject=triple.subject, predicate=triple.predicate).warning(
                f"Duplicate check failed, treating triple as new: {e}"
            )
            return False

    def _duplicate_error(self, triple: KnowledgeTriple) -> DuplicateTripleError:
        return DuplicateTripleError(
            f"Duplicate triple found: {triple.subject} {triple.predicate} {triple.object}",
            context={"triple": list(triple.key)},
        )

    @staticmethod
    def _malformed_message(triple: KnowledgeTriple) -> str:
        missing = [
            name
            for name, value in zip(("subject", "predicate", "object"), triple.key)
            if not value or not value.strip()
        ]
        return f"Malformed triple: empty {', '.join(missing)}"

    # ═══════════════════════════════════════════════════════════
    # OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def insert_triple(
        self, triple: KnowledgeTriple, options: UpdateOptions | None = None
    ) -> UpdateResult:
        """
        Insert one triple.

        Returns:
            UpdateResult; triples_processed is 0 for a skipped duplicate

        Raises:
            DuplicateTripleError: If the triple exists and the policy is "error"
        """
        opts = self._resolve(options)
        start_time = time.perf_counter()

        if not triple.is_well_formed:
            message = self._malformed_message(triple)
            logger.warning(message)
            return UpdateResult(
                success=False,
                errors=[message],
                execution_time_ms=_elapsed_ms(start_time),
                operation=UpdateOperation.INSERT,
            )

        if opts.validate_before_insert and await self._check_triple_exists(triple, opts.timeout):
            if opts.handle_duplicates == DuplicatePolicy.ERROR:
                raise self._duplicate_error(triple)
            logger.info(f"Skipping duplicate triple: {triple.subject} {triple.predicate}")
            return UpdateResult(
                success=True,
                triples_processed=0,
                execution_time_ms=_elapsed_ms(start_time),
                operation=UpdateOperation.INSERT,
            )

        try:
            await self._execute_update(self.build_insert_query([triple]), opts.timeout)
        except GraphStoreError as e:
            logger.bind(subject=triple.subject).error(f"Triple insert failed: {e.message}")
            return UpdateResult(
                success=False,
                errors=[e.message],
                execution_time_ms=_elapsed_ms(start_time),
                operation=UpdateOperation.INSERT,
            )

        return UpdateResult(
            success=True,
            triples_processed=1,
            execution_time_ms=_elapsed_ms(start_time),
            operation=UpdateOperation.INSERT,
        )

    async def insert_triples(
        self, triples: list[KnowledgeTriple], options: UpdateOptions | None = None
    ) -> BatchUpdateResult:
        """
        Insert many triples.

        With batching enabled, triples are chunked into groups of
        ``batch_size``, each written by one INSERT DATA statement, strictly
        in order. Malformed triples are dropped from their chunk and
        counted failed; a failing chunk counts all of its triples failed.
        Triples inside one chunk are only checked against the live store,
        not against each other, unless ``dedupe_within_batch`` is set.

        Returns:
            BatchUpdateResult with per-chunk operations
        """
        opts = self._resolve(options)
        start_time = time.perf_counter()
        result = BatchUpdateResult(total_triples=len(triples))

        if not triples:
            return result

        logger.info(f"Inserting {len(triples)} triples")

        if opts.enable_batch and len(triples) > 1:
            chunks = [triples[i : i + opts.batch_size] for i in range(0, len(triples), opts.batch_size)]
            for number, chunk in enumerate(chunks, start=1):
                logger.debug(f"Processing batch {number}/{len(chunks)} ({len(chunk)} triples)")
                await self._process_chunk(chunk, number, opts, result)
        else:
            for triple in triples:
                try:
                    operation = await self.insert_triple(triple, opts)
                except DuplicateTripleError as e:
                    operation = UpdateResult(
                        success=False, errors=[e.message], operation=UpdateOperation.INSERT
                    )
                result.operations.append(operation)
                if operation.success:
                    result.successful_triples += operation.triples_processed
                else:
                    result.failed_triples += 1
                    result.errors.extend(operation.errors)

        result.execution_time_ms = _elapsed_ms(start_time)
        logger.info(
            f"Batch insert finished: {result.successful_triples} succeeded, "
            f"{result.failed_triples} failed ({result.execution_time_ms:.1f}ms)"
        )
        return result

    async def _process_chunk(
        self,
        chunk: list[KnowledgeTriple],
        number: int,
        opts: UpdateOptions,
        result: BatchUpdateResult,
    ) -> None:
        valid = []
        for triple in chunk:
            if triple.is_well_formed:
                valid.append(triple)
            else:
                result.failed_triples += 1
                result.errors.append(f"Batch {number}: {self._malformed_message(triple)}")

        if not valid:
            return

        try:
            operation = await self._insert_batch(valid, opts)
        except NoteGraphError as e:
            operation = UpdateResult(success=False, errors=[e.message], operation=UpdateOperation.INSERT)

        result.operations.append(operation)
        if operation.success:
            result.successful_triples += operation.triples_processed
        else:
            result.failed_triples += len(valid)
            result.errors.extend(f"Batch {number} failed: {error}" for error in operation.errors)

    async def _insert_batch(self, triples: list[KnowledgeTriple], opts: UpdateOptions) -> UpdateResult:
        """
        Write one chunk with a single INSERT DATA.

        Raises:
            DuplicateTripleError: If a triple exists and the policy is "error"
        """
        start_time = time.perf_counter()

        if opts.dedupe_within_batch:
            unique: dict[tuple[str, str, str], KnowledgeTriple] = {}
            for triple in triples:
                unique.setdefault(triple.key, triple)
            triples = list(unique.values())

        if opts.validate_before_insert:
            pending = []
            for triple in triples:
                if await self._check_triple_exists(triple, opts.timeout):
                    if opts.handle_duplicates == DuplicatePolicy.ERROR:
                        raise self._duplicate_error(triple)
                    continue
                pending.append(triple)
            triples = pending

        if not triples:
            return UpdateResult(
                success=True,
                triples_processed=0,
                execution_time_ms=_elapsed_ms(start_time),
                operation=UpdateOperation.INSERT,
            )

        try:
            await self._execute_update(self.build_insert_query(triples), opts.timeout)
        except GraphStoreError as e:
            logger.bind(batch_size=len(triples)).error(f"Batch insert failed: {e.message}")
            return UpdateResult(
                success=False,
                errors=[e.message],
                execution_time_ms=_elapsed_ms(start_time),
                operation=UpdateOperation.INSERT,
            )

        return UpdateResult(
            success=True,
            triples_processed=len(triples),
            execution_time_ms=_elapsed_ms(start_time),
            operation=UpdateOperation.INSERT,
        )

    async def delete_triple(
        self, triple: KnowledgeTriple, options: UpdateOptions | None = None
    ) -> UpdateResult:
        """Remove one triple with DELETE DATA."""
        opts = self._resolve(options)
        start_time = time.perf_counter()

        if not triple.is_well_formed:
            return UpdateResult(
                success=False,
                errors=[self._malformed_message(triple)],
                operation=UpdateOperation.DELETE,
            )

        try:
            await self._execute_update(self.build_delete_query([triple]), opts.timeout)
        except GraphStoreError as e:
            logger.bind(subject=triple.subject).error(f"Triple delete failed: {e.message}")
            return UpdateResult(
                success=False,
                errors=[e.message],
                execution_time_ms=_elapsed_ms(start_time),
                operation=UpdateOperation.DELETE,
            )

        return UpdateResult(
            success=True,
            triples_processed=1,
            execution_time_ms=_elapsed_ms(start_time),
            operation=UpdateOperation.DELETE,
        )

    async def update_triple(
        self,
        old_triple: KnowledgeTriple,
        new_triple: KnowledgeTriple,
        options: UpdateOptions | None = None,
    ) -> UpdateResult:
        """Replace a triple atomically with one DELETE/INSERT/WHERE statement."""
        opts = self._resolve(options)
        start_time = time.perf_counter()

        for triple in (old_triple, new_triple):
            if not triple.is_well_formed:
                return UpdateResult(
                    success=False,
                    errors=[self._malformed_message(triple)],
                    operation=UpdateOperation.UPDATE,
                )

        try:
            await self._execute_update(self.build_update_query(old_triple, new_triple), opts.timeout)
        except GraphStoreError as e:
            logger.bind(subject=old_triple.subject).error(f"Triple update failed: {e.message}")
            return UpdateResult(
                success=False,
                errors=[e.message],
                execution_time_ms=_elapsed_ms(start_time),
                operation=UpdateOperation.UPDATE,
            )

        return UpdateResult(
            success=True,
            triples_processed=1,
            execution_time_ms=_elapsed_ms(start_time),
            operation=UpdateOperation.UPDATE,
        )

    async def health_check(self) -> HealthStatus:
        """Insert and delete a throwaway triple to probe write access."""
        start_time = time.perf_counter()
        probe = KnowledgeTriple(
            subject=f"{self.prefix}:HealthCheckTest",
            predicate="rdf:type",
            object=f"{self.prefix}:TestEntity",
            confidence=1.0,
            source="health-check",
        )
        probe_options = self.default_options.model_copy(update={"validate_before_insert": False})

        inserted = await self.insert_triple(probe, probe_options)
        if not inserted.success:
            return HealthStatus(
                connected=False,
                update_capable=False,
                response_time_ms=_elapsed_ms(start_time),
                error="; ".join(inserted.errors),
            )

        deleted = await self.delete_triple(probe, probe_options)
        status = HealthStatus(
            connected=True,
            update_capable=deleted.success,
            response_time_ms=_elapsed_ms(start_time),
            error="; ".join(deleted.errors) or None,
        )
        logger.info(f"Health check: update_capable={status.update_capable} ({status.response_time_ms:.1f}ms)")
        return status
