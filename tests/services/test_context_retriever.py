"""
Tests for context retrieval and ranking.

Covers query construction, row merging, the four scoring signals,
and bundle assembly (including degraded retrieval).
"""

import pytest

from notegraph.config import RetrievalConfig, SparqlConfig
from notegraph.models.context import GraphQueryResult, ResourceType
from notegraph.services.context_retriever import (
    ContextRetriever,
    count_occurrences,
    density_score,
    exact_match_score,
    frequency_score,
    round_half_up,
    tag_match_score,
)
from notegraph.utils.exceptions import GraphStoreError, ValidationError

# 56 characters, "machine learning" twice
ML_NOTE = "Machine learning is fun. I study machine learning daily."


@pytest.fixture
def retriever(mock_graph):
    """Retriever over the mock graph."""
    return ContextRetriever(mock_graph)


@pytest.mark.unit
class TestScoringSignals:
    """Test the individual scoring functions."""

    def test_round_half_up(self):
        """Test halves round up."""
        assert round_half_up(2.125) == 2.13
        assert round_half_up(2.124) == 2.12

    def test_count_occurrences_case_insensitive(self):
        """Test counting ignores case."""
        assert count_occurrences(ML_NOTE, "machine learning") == 2
        assert count_occurrences("", "x") == 0

    def test_exact_match_note(self):
        """Test content containment scores 1."""
        note = GraphQueryResult(uri="n1", type=ResourceType.NOTE, content=ML_NOTE)

        assert exact_match_score(note, "machine learning") == 1.0
        assert exact_match_score(note, "physics") == 0.0

    def test_exact_match_book_title_capped(self):
        """Test title and author hits are capped at 1."""
        book = GraphQueryResult(
            uri="b1", type=ResourceType.BOOK, title="Machine Learning Basics", author="Machine Learning Team"
        )

        assert exact_match_score(book, "machine learning") == 1.0

    def test_exact_match_author_only(self):
        """Test an author hit alone scores 0.8."""
        book = GraphQueryResult(uri="b1", type=ResourceType.BOOK, title="Notes", author="Marie Curie")

        assert exact_match_score(book, "curie") == pytest.approx(0.8)

    def test_tag_match(self):
        """Test tag containment and equality bonus, averaged over tags."""
        assert tag_match_score([], "ml") == 0.0
        assert tag_match_score(["machine learning", "ai"], "machine learning") == pytest.approx(0.75)
        assert tag_match_score(["applied machine learning"], "machine learning") == 1.0
        assert tag_match_score(["machine learning"], "machine learning") == 1.0

    def test_frequency(self):
        """Test frequency is occurrences over the divisor, capped."""
        assert frequency_score(ML_NOTE, "machine learning") == pytest.approx(0.4)
        assert frequency_score("ml " * 10, "ml") == 1.0

    def test_density(self):
        """Test density is concept coverage scaled and capped."""
        assert density_score("", "ml") == 0.0
        assert density_score(ML_NOTE, "machine learning") == 1.0
        long_text = "x" * 1000 + " ml"
        assert density_score(long_text, "ml") == pytest.approx(2 / len(long_text) * 20)


@pytest.mark.unit
class TestRanking:
    """Test weighted scoring and ranking."""

    def test_single_note_score(self, retriever):
        """Test a note mentioning the concept twice without tags."""
        note = GraphQueryResult(uri="n1", type=ResourceType.NOTE, content=ML_NOTE)

        # exact 1*100 + tag 0*50 + frequency 0.4*25 + density 1*10 + note bonus 5
        assert retriever.score(note, "machine learning") == 125.0

    def test_book_has_no_note_bonus(self, retriever):
        """Test books score without the note bonus."""
        book = GraphQueryResult(uri="b1", type=ResourceType.BOOK, title="Machine Learning")

        assert retriever.score(book, "machine learning") == 100.0

    def test_custom_weights(self, mock_graph):
        """Test weights come from configuration."""
        retriever = ContextRetriever(mock_graph, RetrievalConfig(exact_match_weight=10.0, note_bonus=0.0))
        note = GraphQueryResult(uri="n1", type=ResourceType.NOTE, content=ML_NOTE)

        assert retriever.score(note, "machine learning") == 30.0

    def test_rank_orders_by_score_and_keeps_ties(self, retriever):
        """Test descending order with stable ties."""
        results = [
            GraphQueryResult(uri="weak", type=ResourceType.NOTE, content="nothing relevant"),
            GraphQueryResult(uri="tie_a", type=ResourceType.NOTE, content="about ml"),
            GraphQueryResult(uri="tie_b", type=ResourceType.NOTE, content="about ml"),
        ]

        ranked = retriever.rank(results, "ml")

        assert [r.uri for r in ranked] == ["tie_a", "tie_b", "weak"]
        assert ranked[-1].relevance_score == 5.0
        assert ranked[0].relevance_score == ranked[1].relevance_score

    def test_rank_is_deterministic(self, retriever):
        """Test ranking the same rows twice gives the same order and scores."""
        rows = [
            {"uri": "n1", "type": "note", "content": ML_NOTE, "tag": "ml"},
            {"uri": "n2", "type": "note", "content": "ml notes"},
            {"uri": "b1", "type": "book", "title": "Machine Learning", "content": "A textbook."},
            {"uri": "n3", "type": "note", "content": "ml notes"},
            {"uri": "n1", "type": "note", "content": ML_NOTE, "tag": "machine learning"},
        ]

        first = retriever.rank(ContextRetriever.merge_rows(rows), "machine learning")
        second = retriever.rank(ContextRetriever.merge_rows(rows), "machine learning")

        assert [(r.uri, r.relevance_score) for r in first] == [(r.uri, r.relevance_score) for r in second]
        assert [r.relevance_score for r in first] == sorted((r.relevance_score for r in first), reverse=True)

    @pytest.mark.parametrize(
        "result, concept",
        [
            (GraphQueryResult(uri="long", type=ResourceType.NOTE, content="ml " * 5000), "ml"),
            (GraphQueryResult(uri="equal", type=ResourceType.NOTE, content="machine learning"), "machine learning"),
            (
                GraphQueryResult(
                    uri="tags", type=ResourceType.NOTE, content="ml", tags=["ml", "ML", "ml-ops", "mlflow", "x"] * 8
                ),
                "ml",
            ),
            (
                GraphQueryResult(
                    uri="book", type=ResourceType.BOOK, title="ML", author="ML Group", content="ml ml ml", tags=["ml"]
                ),
                "ml",
            ),
            (GraphQueryResult(uri="empty", type=ResourceType.BOOK, title="Other"), "ml"),
            (GraphQueryResult(uri="none", type=ResourceType.NOTE, content="nothing here"), "quantum"),
        ],
    )
    def test_signals_bounded(self, retriever, result, concept):
        """Test every signal stays within [0, 1] and the total within its weights."""
        signals = [
            exact_match_score(result, concept),
            tag_match_score(result.tags, concept),
            frequency_score(result.content, concept),
            density_score(result.content, concept),
        ]

        assert all(0.0 <= s <= 1.0 for s in signals)
        assert 0.0 <= retriever.score(result, concept) <= 190.0


@pytest.mark.unit
class TestQueryBuilding:
    """Test SPARQL query construction and row merging."""

    def test_query_contains_both_branches(self, retriever):
        """Test the UNION covers notes and books."""
        query = retriever.build_query("Machine Learning")

        assert "core:Note" in query
        assert "kres:Book" in query
        assert "UNION" in query
        assert 'CONTAINS(LCASE(STR(?content)), "machine learning")' in query
        assert "LIMIT 50" in query
        assert "PREFIX core: <https://w3id.org/notegraph/ontology/core/k-unit#>" in query

    def test_query_escapes_concept(self, retriever):
        """Test quotes in the concept are escaped."""
        query = retriever.build_query('say "hi"')

        assert '\\"hi\\"' in query
        assert '"say "hi""' not in query

    def test_query_user_filter(self, mock_graph):
        """Test notes are restricted to the configured user."""
        retriever = ContextRetriever(
            mock_graph, sparql_config=SparqlConfig(namespace_uri="https://x.org/"), user_id="alice"
        )

        query = retriever.build_query("ml")

        assert "?uri dcterms:creator <https://x.org/user/alice> ." in query

    def test_query_user_id_percent_encoded(self, mock_graph):
        """Test characters that are illegal in an IRI are percent-encoded."""
        retriever = ContextRetriever(
            mock_graph, sparql_config=SparqlConfig(namespace_uri="https://x.org/"), user_id='a"b\\c d/e'
        )

        query = retriever.build_query("ml")

        assert "<https://x.org/user/a%22b%5Cc%20d%2Fe>" in query

    def test_query_limit_from_config(self, mock_graph):
        """Test LIMIT follows max_results."""
        retriever = ContextRetriever(mock_graph, RetrievalConfig(max_results=7))

        assert retriever.build_query("ml").rstrip().endswith("LIMIT 7")

    def test_merge_rows_accumulates_tags(self):
        """Test rows for the same URI merge and tags accumulate in order."""
        rows = [
            {"uri": "n1", "type": "note", "content": "ML note", "tag": "ml"},
            {"uri": "b1", "type": "book", "title": "ML Book", "author": "Ng", "page": "320"},
            {"uri": "n1", "type": "note", "content": "ML note", "tag": "ai"},
            {"uri": "n1", "type": "note", "content": "ML note", "tag": "ml"},
            {"uri": "x1", "type": "podcast"},
            {"type": "note"},
        ]

        merged = ContextRetriever.merge_rows(rows)

        assert [r.uri for r in merged] == ["n1", "b1"]
        assert merged[0].tags == ["ml", "ai"]
        assert merged[1].page_number == 320
        assert merged[1].author == "Ng"

    def test_merge_rows_non_numeric_page(self):
        """Test a non-numeric page count is dropped."""
        merged = ContextRetriever.merge_rows([{"uri": "b1", "type": "book", "title": "T", "page": "xii"}])

        assert merged[0].page_number is None


@pytest.mark.unit
@pytest.mark.asyncio
class TestContextBundle:
    """Test bundle assembly."""

    async def test_bundle_from_rows(self, retriever, mock_graph):
        """Test notes, excerpts and related concepts."""
        mock_graph.select.return_value = [
            {"uri": "n1", "type": "note", "content": "Short ml remark.", "tag": "ml"},
            {"uri": "n2", "type": "note", "content": ML_NOTE, "tag": "Machine Learning"},
            {"uri": "n2", "type": "note", "content": ML_NOTE, "tag": "statistics"},
            {"uri": "b1", "type": "book", "title": "Pattern Recognition", "author": "Bishop", "tag": "ml"},
        ]

        bundle = await retriever.get_context_bundle("  machine learning ")

        assert bundle.target_concept == "machine learning"
        assert [n.content for n in bundle.relevant_notes] == [ML_NOTE, "Short ml remark."]
        assert bundle.relevant_notes[0].tags == ["Machine Learning", "statistics"]
        assert bundle.book_excerpts == ["Pattern Recognition (Bishop)"]
        assert bundle.related_concepts == ["statistics", "ml"]
        assert bundle.query_metadata.result_count == 3
        assert bundle.query_metadata.error is None
        mock_graph.select.assert_awaited_once()

    async def test_empty_concept_raises(self, retriever):
        """Test an empty concept is rejected."""
        with pytest.raises(ValidationError):
            await retriever.get_context_bundle("   ")

    async def test_store_failure_gives_empty_bundle(self, retriever, mock_graph):
        """Test transport errors degrade to an empty bundle."""
        mock_graph.select.side_effect = GraphStoreError("SPARQL transport error: refused")

        bundle = await retriever.get_context_bundle("machine learning")

        assert bundle.is_empty
        assert bundle.related_concepts == []
        assert bundle.query_metadata.error == "SPARQL transport error: refused"

    async def test_no_rows(self, retriever):
        """Test an empty result set gives an empty bundle without error."""
        bundle = await retriever.get_context_bundle("quantum")

        assert bundle.is_empty
        assert bundle.query_metadata.result_count == 0
        assert bundle.query_metadata.error is None


@pytest.mark.unit
class TestBookExcerpt:
    """Test book excerpt rendering."""

    def test_description_preferred(self):
        """Test the description is used when present."""
        book = GraphQueryResult(uri="b", type=ResourceType.BOOK, content="A survey.", title="T", author="A")

        assert ContextRetriever.book_excerpt(book) == "A survey."

    def test_title_only(self):
        """Test a bare title."""
        book = GraphQueryResult(uri="b", type=ResourceType.BOOK, title="T")

        assert ContextRetriever.book_excerpt(book) == "T"
