"""End-to-end tests for the ingestion pipeline, wired entirely from fakes."""

from __future__ import annotations

import asyncio
import re
import threading
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from conftest import FakeStoreFactory, FakeVectorStore, RecordingEmbeddings, failing_llm, make_pipeline
from langchain_core.documents import Document
from langchain_core.language_models import FakeListChatModel

from rag_collections.config import Settings
from rag_collections.ingestion.admission import AdmissionPolicy
from rag_collections.ingestion.chunker import chunk_text
from rag_collections.models import IngestionStage
from rag_collections.pipeline import IngestionPipeline

LONG_TEXT = " ".join(f"Sentence number {i} describes one more idea." for i in range(40))


def _html(body: str, title: str = "Example Page") -> MagicMock:
    return MagicMock(
        text=f"<html><head><title>{title}</title></head><body>{body}</body></html>",
        url="https://example.com/docs",
        headers={"content-type": "text/html"},
        raise_for_status=MagicMock(),
    )


class TestTextIngestion:
    def test_minimal_text(self, stores: FakeStoreFactory, embeddings: RecordingEmbeddings) -> None:
        pipeline = make_pipeline(stores=stores, embeddings=embeddings)
        result = asyncio.run(pipeline.ingest_text("A" * 20, "demo"))
        assert result.success
        assert result.stage is IngestionStage.DONE
        assert re.fullmatch(r"text_demo_\d+", result.collection_id)
        assert result.documents_count == 1
        assert result.name == "demo"
        assert result.summary == "A concise summary of the collection."
        assert result.source_url is None
        assert stores.stores[result.collection_id].count() == 1

    def test_documents_count_matches_chunker(self, stores: FakeStoreFactory) -> None:
        pipeline = make_pipeline(stores=stores, chunk_size=100, chunk_overlap=20)
        result = asyncio.run(pipeline.ingest_text(LONG_TEXT, "ideas"))
        expected = len(chunk_text(LONG_TEXT, max_chunk_chars=100, overlap_chars=20))
        assert result.documents_count == expected > 1
        assert stores.stores[result.collection_id].count() == expected

    def test_chunk_metadata_carries_title_and_type(self, stores: FakeStoreFactory) -> None:
        result = asyncio.run(make_pipeline(stores=stores).ingest_text("Some pasted text.", "notes"))
        record = next(iter(stores.stores[result.collection_id].records.values()))
        assert record["metadata"]["title"] == "notes"
        assert record["metadata"]["source_type"] == "text"
        assert record["metadata"]["source"] == "text_input"

    def test_same_input_twice_gets_distinct_collections(self, stores: FakeStoreFactory) -> None:
        pipeline = make_pipeline(stores=stores)
        first = asyncio.run(pipeline.ingest_text("A" * 20, "demo"))
        second = asyncio.run(pipeline.ingest_text("A" * 20, "demo"))
        assert first.collection_id != second.collection_id
        assert len(stores.stores) == 2

    def test_concurrent_requests_get_distinct_collections(self, stores: FakeStoreFactory) -> None:
        pipeline = make_pipeline(stores=stores)

        async def run_all() -> list[str]:
            results = await asyncio.gather(*(pipeline.ingest_text(f"text body {i}", "demo") for i in range(5)))
            return [r.collection_id for r in results]

        assert len(set(asyncio.run(run_all()))) == 5

    def test_too_short_text(self, embeddings: RecordingEmbeddings) -> None:
        result = asyncio.run(make_pipeline(embeddings=embeddings).ingest_text("   short   ", "demo"))
        assert not result.success
        assert result.failed_at is IngestionStage.VALIDATING
        assert result.error.reason == "text_too_short"
        assert result.error.status_code == 400
        assert embeddings.embedded_texts == []

    def test_missing_title(self) -> None:
        result = asyncio.run(make_pipeline().ingest_text("A" * 20, None))
        assert result.error.reason == "missing_field"
        assert result.error.message == "Both text content and title are required"


class TestAdmission:
    def test_oversize_pdf_is_rejected_before_any_work(self, embeddings: RecordingEmbeddings) -> None:
        pipeline = make_pipeline(embeddings=embeddings, admission=AdmissionPolicy(pdf_max_file_size=1024))
        with patch("rag_collections.ingestion.loader.PyPDFParser") as parser_cls:
            result = asyncio.run(pipeline.ingest_pdf("big.pdf", "application/pdf", b"%PDF-" + b"0" * 1020))
        assert not result.success
        assert result.failed_at is IngestionStage.VALIDATING
        assert result.error.reason == "file_too_large"
        assert result.error.status_code == 400
        parser_cls.assert_not_called()
        assert embeddings.embedded_texts == []

    def test_declared_pdf_size_precheck(self) -> None:
        pipeline = make_pipeline(admission=AdmissionPolicy(pdf_max_file_size=1024))
        assert pipeline.precheck_pdf_size(None) is None
        assert pipeline.precheck_pdf_size(1024) is None
        result = pipeline.precheck_pdf_size(1025)
        assert result.failed_at is IngestionStage.VALIDATING
        assert result.error.reason == "file_too_large"
        assert result.error.status_code == 400

    def test_malformed_url_is_rejected_without_fetching(self) -> None:
        with patch("requests.get") as get:
            result = asyncio.run(make_pipeline().ingest_website("not a url"))
        assert result.error.reason == "invalid_url"
        assert result.error.message == "Invalid URL format"
        assert result.failed_at is IngestionStage.VALIDATING
        get.assert_not_called()

    def test_chunk_budget(self, stores: FakeStoreFactory, embeddings: RecordingEmbeddings) -> None:
        pipeline = make_pipeline(stores=stores, embeddings=embeddings, admission=AdmissionPolicy(text_max_chunks=2))
        result = asyncio.run(pipeline.ingest_text(LONG_TEXT[:2000], "ideas"))
        assert result.error.reason == "too_many_chunks"
        assert result.error.status_code == 400
        assert result.failed_at is IngestionStage.INDEXING
        assert embeddings.embedded_texts == []
        assert all(store.count() == 0 for store in stores.stores.values())


class TestSummaryFallback:
    def test_provider_failure_still_succeeds(self) -> None:
        pipeline = make_pipeline(llm=failing_llm())
        result = asyncio.run(pipeline.ingest_text("A" * 20, "demo"))
        assert result.success
        assert result.summary == 'Text content "demo" with 1 section(s) indexed successfully.'

    def test_empty_completion_falls_back(self) -> None:
        result = asyncio.run(make_pipeline(llm=FakeListChatModel(responses=[" "])).ingest_text("A" * 20, "demo"))
        assert result.success
        assert "demo" in result.summary
        assert "1" in result.summary


class TestIndexingFailure:
    def test_embedding_failure_discards_collection(self, stores: FakeStoreFactory) -> None:
        pipeline = make_pipeline(stores=stores, embeddings=RecordingEmbeddings(fail_on="AAAA"))
        result = asyncio.run(pipeline.ingest_text("A" * 20, "demo"))
        assert not result.success
        assert result.failed_at is IngestionStage.INDEXING
        assert result.error.reason == "indexing_failed"
        assert result.error.status_code == 500
        assert result.collection_id is None
        (store,) = stores.stores.values()
        assert store.deleted

    def test_store_failure_discards_collection(self) -> None:
        stores = FakeStoreFactory(fail_upsert=True)
        result = asyncio.run(make_pipeline(stores=stores).ingest_text("A" * 20, "demo"))
        assert result.error.reason == "indexing_failed"
        (store,) = stores.stores.values()
        assert store.deleted

    def test_cleanup_can_be_disabled(self) -> None:
        stores = FakeStoreFactory(fail_upsert=True)
        pipeline = make_pipeline(stores=stores)
        pipeline.cleanup_on_failure = False
        asyncio.run(pipeline.ingest_text("A" * 20, "demo"))
        (store,) = stores.stores.values()
        assert not store.deleted

    def test_discard_runs_off_the_event_loop(self) -> None:
        stores = FakeStoreFactory(fail_upsert=True)
        threads: list[int] = []
        original = FakeVectorStore.delete_collection

        def recording_delete(store: FakeVectorStore) -> None:
            threads.append(threading.get_ident())
            original(store)

        with patch.object(FakeVectorStore, "delete_collection", recording_delete):
            result = asyncio.run(make_pipeline(stores=stores).ingest_text("A" * 20, "demo"))
        assert result.error.reason == "indexing_failed"
        assert len(threads) == 1
        assert threads[0] != threading.get_ident()

    def test_cancellation_propagates_and_discards(self, stores: FakeStoreFactory) -> None:
        pipeline = make_pipeline(stores=stores, embeddings=RecordingEmbeddings(delay=5.0))

        async def cancel_midway() -> None:
            task = asyncio.ensure_future(pipeline.ingest_text("A" * 20, "demo"))
            await asyncio.sleep(0.05)
            task.cancel()
            await task

        with pytest.raises(asyncio.CancelledError):
            asyncio.run(cancel_midway())
        (store,) = stores.stores.values()
        assert store.deleted


class TestExtraction:
    def test_unreachable_site(self, stores: FakeStoreFactory) -> None:
        import requests

        with patch("requests.get", side_effect=requests.ConnectionError("Name or service not known")):
            result = asyncio.run(make_pipeline(stores=stores).ingest_website("https://no-such-host.invalid"))
        assert result.failed_at is IngestionStage.EXTRACTING
        assert result.error.reason == "fetch_error"
        assert result.error.status_code == 500
        assert stores.stores == {}

    def test_website(self, stores: FakeStoreFactory) -> None:
        with patch("requests.get", return_value=_html("<p>Docs landing page with plenty of words.</p>")):
            result = asyncio.run(make_pipeline(stores=stores).ingest_website("https://example.com/docs"))
        assert result.success
        assert result.collection_id.startswith("website_example-com-docs_")
        assert result.name == "example.com"
        assert result.source_url == "https://example.com/docs"
        record = next(iter(stores.stores[result.collection_id].records.values()))
        assert record["metadata"]["title"] == "Example Page"

    def test_pdf(self, stores: FakeStoreFactory) -> None:
        pages = [Document(page_content="Quarterly revenue grew."), Document(page_content="Costs fell.")]
        with patch("rag_collections.ingestion.loader.PyPDFParser") as parser_cls:
            parser_cls.return_value.lazy_parse.return_value = iter(pages)
            result = asyncio.run(make_pipeline(stores=stores).ingest_pdf("Q3 Report.pdf", "application/pdf", b"%PDF-1.7"))
        assert result.success
        assert result.collection_id.startswith("pdf_q3-report_")
        assert result.name == "Q3 Report"
        record = next(iter(stores.stores[result.collection_id].records.values()))
        assert record["metadata"]["filename"] == "Q3 Report.pdf"

    def test_unreadable_pdf(self) -> None:
        result = asyncio.run(make_pipeline().ingest_pdf("broken.pdf", "application/pdf", b"%PDF- garbage"))
        assert result.failed_at is IngestionStage.EXTRACTING
        assert result.error.reason == "parse_error"

    def test_unexpected_error_is_reported_generically(self) -> None:
        pipeline = make_pipeline()
        pipeline.extractor = MagicMock()
        pipeline.extractor.extract = AsyncMock(side_effect=RuntimeError("segfault in parser"))
        result = asyncio.run(pipeline.ingest_text("A" * 20, "demo"))
        assert result.error.reason == "internal_error"
        assert result.error.message == "Failed to process text"
        assert result.failed_at is IngestionStage.EXTRACTING


def test_from_settings_with_injected_providers(stores: FakeStoreFactory, embeddings: RecordingEmbeddings) -> None:
    cfg = Settings(chunk_size=50, chunk_overlap=10, text_max_chunks=100)
    pipeline = IngestionPipeline.from_settings(
        cfg,
        embeddings=embeddings,
        llm=FakeListChatModel(responses=["Summary."]),
        store_factory=stores,
    )
    result = asyncio.run(pipeline.ingest_text(LONG_TEXT[:500].strip(), "ideas"))
    assert result.success
    assert result.documents_count == len(chunk_text(LONG_TEXT[:500].strip(), max_chunk_chars=50, overlap_chars=10))
    assert result.summary == "Summary."


@pytest.mark.parametrize(("size", "overlap"), [(100, 100), (100, 150), (0, 0), (100, -1)])
def test_invalid_chunking_is_rejected_at_construction(size: int, overlap: int) -> None:
    with pytest.raises(ValueError):
        make_pipeline(chunk_size=size, chunk_overlap=overlap)
