"""
Ingestion — admission, extraction, naming and chunking.

Everything needed to turn one submitted source (PDF upload, pasted text,
web page URL) into an ordered list of :class:`~rag_collections.models.Chunk`
objects belonging to a freshly named collection.
"""

from rag_collections.ingestion.admission import AdmissionPolicy
from rag_collections.ingestion.chunker import build_chunks, chunk_text
from rag_collections.ingestion.extractor import SourceExtractor, extract
from rag_collections.ingestion.naming import CollectionNamer, name_collection, slugify
from rag_collections.ingestion.sources import PdfSource, Source, TextSource, WebsiteSource

__all__ = [
    "AdmissionPolicy",
    "CollectionNamer",
    "PdfSource",
    "Source",
    "SourceExtractor",
    "TextSource",
    "WebsiteSource",
    "build_chunks",
    "chunk_text",
    "extract",
    "name_collection",
    "slugify",
]
