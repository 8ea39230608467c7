"""Pipeline orchestrator — one ingestion request from source to summary.

Stage order is fixed::

    validating → extracting → naming → indexing → summarizing → done
         ↘             ↘                    ↘
                         failed

A failure while summarizing is absorbed (the generator falls back to a
template), so ``failed`` is only reachable from validating, extracting
and indexing.  No exception crosses :meth:`IngestionPipeline.ingest`
other than cancellation; every outcome is an :class:`IngestionResult`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable

from rag_collections.config import Settings, settings
from rag_collections.errors import IngestionError
from rag_collections.ingestion.admission import AdmissionPolicy
from rag_collections.ingestion.chunker import build_chunks, validate_chunking
from rag_collections.ingestion.extractor import SourceExtractor
from rag_collections.ingestion.naming import CollectionNamer
from rag_collections.ingestion.sources import PdfSource, Source, TextSource, WebsiteSource
from rag_collections.models import ErrorDetail, ExtractedDocument, IngestionResult, IngestionStage, SourceType
from rag_collections.retrieval.base import StoreFactory

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings
    from langchain_core.language_models import BaseChatModel

    from rag_collections.generation.summary import SummaryGenerator
    from rag_collections.indexing.engine import IndexEngine

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Failed to process {kind}"


class IngestionPipeline:
    """Sequence admission, extraction, naming, indexing and summarizing.

    All collaborators are injected; :meth:`from_settings` wires the
    production defaults (HuggingFace embeddings, Chroma, OpenAI chat).

    Parameters
    ----------
    admission:
        Size / length / chunk-count limits.
    extractor:
        Turns a source into normalised text.
    namer:
        Issues collection ids.
    index_engine:
        Embeds and upserts chunks.
    summarizer:
        Produces the collection summary (never raises).
    store_factory:
        Used to discard a collection whose indexing failed.
    chunk_size / chunk_overlap:
        Chunker parameters; rejected with ``ValueError`` unless
        ``0 <= chunk_overlap < chunk_size``.
    cleanup_on_failure:
        Delete partially written collections after an indexing failure.
    """

    def __init__(
        self,
        *,
        admission: AdmissionPolicy,
        extractor: SourceExtractor,
        namer: CollectionNamer,
        index_engine: IndexEngine,
        summarizer: SummaryGenerator,
        store_factory: StoreFactory | None = None,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        cleanup_on_failure: bool = True,
    ) -> None:
        validate_chunking(chunk_size, chunk_overlap)
        self.admission = admission
        self.extractor = extractor
        self.namer = namer
        self.index_engine = index_engine
        self.summarizer = summarizer
        self._store_factory = store_factory
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.cleanup_on_failure = cleanup_on_failure

    @classmethod
    def from_settings(
        cls,
        cfg: Settings = settings,
        *,
        embeddings: Embeddings | None = None,
        llm: BaseChatModel | None = None,
        store_factory: StoreFactory | None = None,
    ) -> IngestionPipeline:
        """Build a pipeline from *cfg*, creating any provider not supplied."""
        from rag_collections.generation.summary import SummaryGenerator
        from rag_collections.indexing.engine import IndexEngine
        from rag_collections.retrieval.retriever import CollectionRetriever

        if embeddings is None:
            from rag_collections.indexing.embedder import get_embedding_function

            embeddings = get_embedding_function(cfg)
        if llm is None:
            from rag_collections.generation.llm import get_llm

            llm = get_llm(cfg.summary_temperature, max_tokens=cfg.summary_max_tokens, cfg=cfg)
        if store_factory is None:
            from rag_collections.retrieval.chroma_store import ChromaStoreFactory

            store_factory = ChromaStoreFactory(cfg)

        retriever = CollectionRetriever(store_factory, embeddings)
        return cls(
            admission=AdmissionPolicy.from_settings(cfg),
            extractor=SourceExtractor.from_settings(cfg),
            namer=CollectionNamer(),
            index_engine=IndexEngine(
                embeddings,
                store_factory,
                max_concurrency=cfg.embedding_concurrency,
                embedding_timeout=cfg.embedding_timeout,
                upsert_batch_size=cfg.upsert_batch_size,
            ),
            summarizer=SummaryGenerator(
                retriever,
                llm,
                k=cfg.summary_k,
                max_context_chars=cfg.summary_max_context_chars,
                timeout=cfg.llm_timeout,
            ),
            store_factory=store_factory,
            chunk_size=cfg.chunk_size,
            chunk_overlap=cfg.chunk_overlap,
            cleanup_on_failure=cfg.cleanup_on_failure,
        )

    # -- entry points ---------------------------------------------------------

    def precheck_pdf_size(self, size: int | None) -> IngestionResult | None:
        """Reject a PDF upload by its declared size, before the body is read.

        Returns the failed result, or ``None`` when the size is unknown or
        within the limit (the full check still runs in :meth:`ingest_pdf`).
        """
        if size is None:
            return None
        try:
            self.admission.check_admission(SourceType.PDF, size)
        except IngestionError as exc:
            logger.warning("Rejected PDF upload of %d bytes: %s", size, exc.message)
            return _failed(
                IngestionStage.VALIDATING,
                ErrorDetail(reason=exc.reason, message=exc.message, status_code=exc.status_code),
            )
        return None

    async def ingest_pdf(self, filename: str | None, content_type: str | None, data: bytes | None) -> IngestionResult:
        return await self._run("PDF", lambda: PdfSource.create(filename, content_type, data))

    async def ingest_text(self, text: str | None, title: str | None) -> IngestionResult:
        return await self._run("text", lambda: TextSource.create(text, title))

    async def ingest_website(self, url: str | None) -> IngestionResult:
        return await self._run("website", lambda: WebsiteSource.create(url))

    async def ingest(self, source: Source) -> IngestionResult:
        """Ingest an already-constructed source."""
        return await self._run(source.source_type.value, lambda: source)

    # -- state machine --------------------------------------------------------

    async def _run(self, kind: str, build_source: Callable[[], Source]) -> IngestionResult:
        stage = IngestionStage.VALIDATING
        collection_id: str | None = None
        try:
            source = build_source()
            self._admit(source)

            stage = IngestionStage.EXTRACTING
            document = await self.extractor.extract(source)

            stage = IngestionStage.NAMING
            collection = self.namer.create(source.source_type, self._naming_title(source, document))
            collection_id = collection.id
            logger.info("Ingesting %s source into %s", source.source_type.value, collection_id)

            stage = IngestionStage.INDEXING
            chunks = build_chunks(
                collection_id,
                document.text,
                {**document.provenance, "title": document.title, "source_type": source.source_type.value},
                max_chunk_chars=self.chunk_size,
                overlap_chars=self.chunk_overlap,
            )
            self.admission.check_chunk_budget(source.source_type, len(chunks))
            documents_count = await self.index_engine.index_chunks(collection_id, chunks)

            stage = IngestionStage.SUMMARIZING
            summary = await self.summarizer.summarize(
                collection_id,
                source_type=source.source_type,
                title=document.title,
                documents_count=documents_count,
            )
        except IngestionError as exc:
            logger.warning("Ingestion failed while %s: %s (%s)", stage.value, exc.message, exc.reason)
            await self._discard(stage, collection_id)
            return _failed(stage, ErrorDetail(reason=exc.reason, message=exc.message, status_code=exc.status_code))
        except asyncio.CancelledError:
            logger.info("Ingestion cancelled while %s", stage.value)
            await self._discard(stage, collection_id)
            raise
        except Exception:
            logger.exception("Unexpected error while %s", stage.value)
            await self._discard(stage, collection_id)
            return _failed(
                stage,
                ErrorDetail(
                    reason="internal_error",
                    message=INTERNAL_ERROR_MESSAGE.format(kind=kind),
                    status_code=500,
                ),
            )

        logger.info("Ingested %s: %d chunk(s)", collection_id, documents_count)
        return IngestionResult(
            success=True,
            stage=IngestionStage.DONE,
            collection_id=collection_id,
            documents_count=documents_count,
            summary=summary,
            name=self._display_name(source, document),
            source_url=source.url if isinstance(source, WebsiteSource) else None,
        )

    # -- helpers --------------------------------------------------------------

    def _admit(self, source: Source) -> None:
        if isinstance(source, PdfSource):
            self.admission.check_admission(source.source_type, source.size)
        elif isinstance(source, TextSource):
            self.admission.check_admission(
                source.source_type,
                len(source.text),
                stripped_length=len(source.text.strip()),
            )
        elif isinstance(source, WebsiteSource):
            self.admission.check_admission(source.source_type, 0)
        else:
            raise TypeError(f"Unsupported source type: {type(source).__name__}")

    @staticmethod
    def _naming_title(source: Source, document: ExtractedDocument) -> str:
        if isinstance(source, WebsiteSource):
            return source.name_hint
        return document.title

    @staticmethod
    def _display_name(source: Source, document: ExtractedDocument) -> str:
        if isinstance(source, WebsiteSource):
            return source.hostname
        return document.title

    async def _discard(self, stage: IngestionStage, collection_id: str | None) -> None:
        """Best-effort removal of a collection abandoned while indexing."""
        if stage is not IngestionStage.INDEXING or collection_id is None:
            return
        if not self.cleanup_on_failure or self._store_factory is None:
            logger.info("Leaving abandoned collection %s in place", collection_id)
            return
        try:
            await asyncio.to_thread(self._delete_collection, collection_id)
            logger.info("Discarded abandoned collection %s", collection_id)
        except Exception:
            logger.warning("Could not discard abandoned collection %s", collection_id, exc_info=True)

    def _delete_collection(self, collection_id: str) -> None:
        self._store_factory(collection_id).delete_collection()


def _failed(stage: IngestionStage, error: ErrorDetail) -> IngestionResult:
    return IngestionResult(success=False, stage=IngestionStage.FAILED, failed_at=stage, error=error)
