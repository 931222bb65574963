"""
Tests for the knowledge store writer.

The graph client is mocked; ASK answers drive duplicate detection.
"""

import asyncio

import pytest

from notegraph.config import SparqlConfig, WriterConfig
from notegraph.models.triple import KnowledgeTriple
from notegraph.models.update import DuplicatePolicy, UpdateOperation, UpdateOptions
from notegraph.services.knowledge_writer import KnowledgeStoreWriter
from notegraph.utils.exceptions import DuplicateTripleError, GraphStoreError


def make_triple(subject: str, predicate: str = "ng:relatedTo", obj: str = "ng:Thing") -> KnowledgeTriple:
    return KnowledgeTriple(subject=subject, predicate=predicate, object=obj, confidence=0.8, source="test-model")


@pytest.fixture
def writer(mock_graph):
    """Writer with default options over the mock graph."""
    return KnowledgeStoreWriter(mock_graph)


@pytest.mark.unit
class TestQueryBuilding:
    """Test SPARQL Update text."""

    def test_insert_query(self, writer):
        """Test INSERT DATA with prefixes and formatted terms."""
        query = writer.build_insert_query(
            [
                make_triple("ng:Radium", "ng:discoveredBy", "ng:Marie_Curie"),
                make_triple("Radium", "rdfs:label", '"radium"@en'),
            ]
        )

        assert query.startswith("PREFIX ng: <https://w3id.org/notegraph/resource/>")
        assert "INSERT DATA {" in query
        assert "ng:Radium ng:discoveredBy ng:Marie_Curie ." in query
        assert 'ng:Radium rdfs:label "radium"@en .' in query

    def test_plain_object_becomes_literal(self, writer):
        """Test plain text objects are quoted."""
        query = writer.build_insert_query([make_triple("ng:Radium", "ng:note", "glows in the dark")])

        assert 'ng:Radium ng:note "glows in the dark" .' in query

    def test_delete_query(self, writer):
        """Test DELETE DATA."""
        query = writer.build_delete_query([make_triple("ng:A")])

        assert "DELETE DATA {" in query
        assert "ng:A ng:relatedTo ng:Thing ." in query

    def test_update_query(self, writer):
        """Test DELETE/INSERT/WHERE replacement."""
        query = writer.build_update_query(make_triple("ng:A"), make_triple("ng:B"))

        assert "DELETE {\n  ng:A ng:relatedTo ng:Thing .\n}" in query
        assert "INSERT {\n  ng:B ng:relatedTo ng:Thing .\n}" in query
        assert "WHERE {\n  ng:A ng:relatedTo ng:Thing .\n}" in query

    def test_ask_query(self, writer):
        """Test ASK for one exact triple."""
        query = writer.build_ask_query(make_triple("ng:A"))

        assert "ASK {\n  ng:A ng:relatedTo ng:Thing .\n}" in query

    def test_custom_namespace(self, mock_graph):
        """Test bare names use the configured prefix."""
        writer = KnowledgeStoreWriter(
            mock_graph, sparql_config=SparqlConfig(namespace_prefix="kb", namespace_uri="https://kb.example/")
        )

        query = writer.build_insert_query([make_triple("Radium", "discoveredBy", "ng:X")])

        assert "PREFIX kb: <https://kb.example/>" in query
        assert "kb:Radium kb:discoveredBy ng:X ." in query

    def test_default_options_from_config(self, mock_graph):
        """Test writer defaults come from WriterConfig."""
        writer = KnowledgeStoreWriter(mock_graph, WriterConfig(batch_size=3, handle_duplicates="error"))

        assert writer.default_options.batch_size == 3
        assert writer.default_options.handle_duplicates == DuplicatePolicy.ERROR


@pytest.mark.unit
@pytest.mark.asyncio
class TestInsertTriple:
    """Test single-triple inserts."""

    async def test_insert(self, writer, mock_graph):
        """Test a new triple is checked and written."""
        result = await writer.insert_triple(make_triple("ng:A"))

        assert result.success is True
        assert result.triples_processed == 1
        assert result.operation == UpdateOperation.INSERT
        mock_graph.ask.assert_awaited_once()
        mock_graph.update.assert_awaited_once()

    async def test_duplicate_skipped_on_second_insert(self, writer, mock_graph):
        """Test inserting the same triple twice skips the second write."""
        mock_graph.ask.side_effect = [False, True]
        triple = make_triple("ng:A")

        first = await writer.insert_triple(triple)
        second = await writer.insert_triple(triple)

        assert first.triples_processed == 1
        assert second.success is True
        assert second.triples_processed == 0
        assert mock_graph.update.await_count == 1

    async def test_duplicate_error_policy(self, writer, mock_graph):
        """Test the error policy raises DuplicateTripleError."""
        mock_graph.ask.return_value = True

        with pytest.raises(DuplicateTripleError):
            await writer.insert_triple(make_triple("ng:A"), UpdateOptions(handle_duplicates="error"))

        mock_graph.update.assert_not_awaited()

    async def test_update_policy_behaves_like_skip(self, writer, mock_graph):
        """Test the update policy skips existing triples."""
        mock_graph.ask.return_value = True

        result = await writer.insert_triple(make_triple("ng:A"), UpdateOptions(handle_duplicates="update"))

        assert result.success is True
        assert result.triples_processed == 0

    async def test_no_validation(self, writer, mock_graph):
        """Test validate_before_insert=False skips the ASK."""
        await writer.insert_triple(make_triple("ng:A"), UpdateOptions(validate_before_insert=False))

        mock_graph.ask.assert_not_awaited()
        mock_graph.update.assert_awaited_once()

    async def test_failed_check_counts_as_absent(self, writer, mock_graph):
        """Test an ASK failure does not block the insert."""
        mock_graph.ask.side_effect = GraphStoreError("ASK failed")

        result = await writer.insert_triple(make_triple("ng:A"))

        assert result.success is True
        assert result.triples_processed == 1

    async def test_malformed(self, writer, mock_graph):
        """Test an empty term fails without touching the store."""
        result = await writer.insert_triple(make_triple("   "))

        assert result.success is False
        assert result.errors == ["Malformed triple: empty subject"]
        mock_graph.update.assert_not_awaited()

    async def test_store_error(self, writer, mock_graph):
        """Test update failures give a failed result."""
        mock_graph.update.side_effect = GraphStoreError("SPARQL request failed with status 500")

        result = await writer.insert_triple(make_triple("ng:A"))

        assert result.success is False
        assert result.errors == ["SPARQL request failed with status 500"]

    async def test_timeout(self, writer, mock_graph):
        """Test a slow update is cut off by the timeout."""

        async def slow_update(sparql):
            await asyncio.sleep(1)

        mock_graph.update.side_effect = slow_update

        result = await writer.insert_triple(
            make_triple("ng:A"), UpdateOptions(validate_before_insert=False, timeout=0.01)
        )

        assert result.success is False
        assert result.errors == ["SPARQL UPDATE timeout after 0.01s"]


@pytest.mark.unit
@pytest.mark.asyncio
class TestInsertTriples:
    """Test batch inserts."""

    async def test_malformed_triple_in_batch(self, writer, mock_graph):
        """Test a malformed triple fails while the rest are written."""
        triples = [make_triple("ng:A"), make_triple(""), make_triple("ng:C")]

        result = await writer.insert_triples(triples, UpdateOptions(batch_size=3))

        assert result.total_triples == 3
        assert result.successful_triples == 2
        assert result.failed_triples == 1
        assert result.successful_triples < result.total_triples
        assert result.errors == ["Batch 1: Malformed triple: empty subject"]
        mock_graph.update.assert_awaited_once()
        query = mock_graph.update.call_args.args[0]
        assert "ng:A ng:relatedTo ng:Thing ." in query
        assert "ng:C ng:relatedTo ng:Thing ." in query

    async def test_chunks_in_order_and_failure_isolated(self, writer, mock_graph):
        """Test a failing chunk is recorded and later chunks still run."""
        mock_graph.update.side_effect = [None, GraphStoreError("boom"), None]
        triples = [make_triple(f"ng:T{i}") for i in range(5)]

        result = await writer.insert_triples(triples, UpdateOptions(batch_size=2))

        assert mock_graph.update.await_count == 3
        assert result.successful_triples == 3
        assert result.failed_triples == 2
        assert result.errors == ["Batch 2 failed: boom"]
        assert [op.success for op in result.operations] == [True, False, True]
        first_query = mock_graph.update.call_args_list[0].args[0]
        assert "ng:T0" in first_query and "ng:T1" in first_query

    async def test_existing_triples_skipped(self, writer, mock_graph):
        """Test triples already in the store are left out of the INSERT."""
        mock_graph.ask.side_effect = [True, False]

        result = await writer.insert_triples([make_triple("ng:A"), make_triple("ng:B")])

        assert result.successful_triples == 1
        assert result.failed_triples == 0
        assert "ng:A" not in mock_graph.update.call_args.args[0]

    async def test_all_existing_no_update(self, writer, mock_graph):
        """Test a chunk of duplicates succeeds without an update."""
        mock_graph.ask.return_value = True

        result = await writer.insert_triples([make_triple("ng:A"), make_triple("ng:B")])

        assert result.successful_triples == 0
        assert result.failed_triples == 0
        mock_graph.update.assert_not_awaited()

    async def test_duplicate_error_fails_chunk(self, writer, mock_graph):
        """Test the error policy fails the whole chunk."""
        mock_graph.ask.side_effect = [False, True]

        result = await writer.insert_triples(
            [make_triple("ng:A"), make_triple("ng:B")], UpdateOptions(handle_duplicates="error")
        )

        assert result.successful_triples == 0
        assert result.failed_triples == 2
        assert result.errors[0].startswith("Batch 1 failed: Duplicate triple found: ng:B")
        mock_graph.update.assert_not_awaited()

    async def test_in_batch_duplicates_not_collapsed_by_default(self, writer, mock_graph):
        """Test identical triples in one chunk are all written by default."""
        triple = make_triple("ng:A")

        result = await writer.insert_triples([triple, triple])

        assert result.successful_triples == 2
        assert mock_graph.update.call_args.args[0].count("ng:A ng:relatedTo ng:Thing .") == 2

    async def test_in_batch_duplicates_collapsed(self, writer, mock_graph):
        """Test dedupe_within_batch writes each triple once."""
        triple = make_triple("ng:A")

        result = await writer.insert_triples([triple, triple], UpdateOptions(dedupe_within_batch=True))

        assert result.successful_triples == 1
        assert mock_graph.ask.await_count == 1
        assert mock_graph.update.call_args.args[0].count("ng:A ng:relatedTo ng:Thing .") == 1

    async def test_individual_mode(self, writer, mock_graph):
        """Test enable_batch=False writes one statement per triple."""
        mock_graph.ask.side_effect = [False, True, False]
        triples = [make_triple("ng:A"), make_triple("ng:B"), make_triple("ng:C")]

        result = await writer.insert_triples(
            triples, UpdateOptions(enable_batch=False, handle_duplicates="error")
        )

        assert mock_graph.update.await_count == 2
        assert result.successful_triples == 2
        assert result.failed_triples == 1
        assert result.errors[0].startswith("Duplicate triple found: ng:B")

    async def test_single_triple_uses_insert_triple(self, writer, mock_graph):
        """Test one triple goes through the single-insert path."""
        result = await writer.insert_triples([make_triple("ng:A")])

        assert result.successful_triples == 1
        assert len(result.operations) == 1

    async def test_empty(self, writer, mock_graph):
        """Test an empty list does nothing."""
        result = await writer.insert_triples([])

        assert result.total_triples == 0
        mock_graph.update.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
class TestDeleteUpdateHealth:
    """Test delete, replace and the health probe."""

    async def test_delete(self, writer, mock_graph):
        """Test DELETE DATA is issued."""
        result = await writer.delete_triple(make_triple("ng:A"))

        assert result.success is True
        assert result.operation == UpdateOperation.DELETE
        assert "DELETE DATA" in mock_graph.update.call_args.args[0]

    async def test_delete_malformed(self, writer, mock_graph):
        """Test a malformed delete is rejected."""
        result = await writer.delete_triple(make_triple("ng:A", predicate=""))

        assert result.success is False
        assert result.errors == ["Malformed triple: empty predicate"]

    async def test_update(self, writer, mock_graph):
        """Test replacement in one statement."""
        result = await writer.update_triple(make_triple("ng:A"), make_triple("ng:B"))

        assert result.success is True
        assert result.operation == UpdateOperation.UPDATE
        mock_graph.update.assert_awaited_once()

    async def test_update_failure(self, writer, mock_graph):
        """Test a failed replacement."""
        mock_graph.update.side_effect = GraphStoreError("boom")

        result = await writer.update_triple(make_triple("ng:A"), make_triple("ng:B"))

        assert result.success is False
        assert result.errors == ["boom"]

    async def test_health_check_ok(self, writer, mock_graph):
        """Test insert then delete of the probe triple."""
        status = await writer.health_check()

        assert status.connected is True
        assert status.update_capable is True
        assert status.error is None
        mock_graph.ask.assert_not_awaited()
        queries = [c.args[0] for c in mock_graph.update.call_args_list]
        assert "INSERT DATA" in queries[0] and "ng:HealthCheckTest rdf:type ng:TestEntity ." in queries[0]
        assert "DELETE DATA" in queries[1]

    async def test_health_check_insert_fails(self, writer, mock_graph):
        """Test an unreachable store reports disconnected."""
        mock_graph.update.side_effect = GraphStoreError("SPARQL transport error: refused")

        status = await writer.health_check()

        assert status.connected is False
        assert status.update_capable is False
        assert status.error == "SPARQL transport error: refused"

    async def test_health_check_delete_fails(self, writer, mock_graph):
        """Test a store that accepts inserts but not deletes."""
        mock_graph.update.side_effect = [None, GraphStoreError("delete forbidden")]

        status = await writer.health_check()

        assert status.connected is True
        assert status.update_capable is False
        assert status.error == "delete forbidden"
