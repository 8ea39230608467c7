"""Source variants accepted by the pipeline.

The set is closed: :data:`Source` is the union of the three dataclasses
below and :func:`~rag_collections.ingestion.extractor.extract` dispatches
over it in one place.  Each variant validates the *shape* of its request
in its ``create`` factory so that malformed input is rejected before any
admission check, extraction or provider call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union
from urllib.parse import urlsplit

from pydantic import HttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from rag_collections.errors import ValidationError
from rag_collections.models import SourceType

PDF_MEDIA_TYPE = "application/pdf"
PDF_MAGIC = b"%PDF-"

_http_url = TypeAdapter(HttpUrl)


@dataclass(frozen=True)
class PdfSource:
    """An uploaded PDF file."""

    filename: str
    data: bytes = field(repr=False)
    content_type: str = PDF_MEDIA_TYPE

    source_type = SourceType.PDF

    @classmethod
    def create(cls, filename: str | None, content_type: str | None, data: bytes | None) -> PdfSource:
        """Validate an upload and wrap it.

        The media type is accepted when declared as ``application/pdf``,
        or when the filename ends in ``.pdf`` and the payload starts with
        the PDF magic bytes.
        """
        if data is None:
            raise ValidationError("No PDF file provided", reason="missing_field")
        filename = filename or "document.pdf"
        declared = (content_type or "").split(";")[0].strip().lower()
        sniffed = filename.lower().endswith(".pdf") and data.startswith(PDF_MAGIC)
        if declared != PDF_MEDIA_TYPE and not sniffed:
            raise ValidationError(
                "Invalid file type. Please upload a PDF file.",
                reason="unsupported_media_type",
            )
        return cls(filename=filename, data=data, content_type=PDF_MEDIA_TYPE)

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def title(self) -> str:
        """Filename without its ``.pdf`` extension."""
        stem = self.filename.rsplit("/", 1)[-1]
        if stem.lower().endswith(".pdf"):
            stem = stem[:-4]
        return stem


@dataclass(frozen=True)
class TextSource:
    """Raw pasted text with a caller-supplied title."""

    text: str
    title: str

    source_type = SourceType.TEXT

    @classmethod
    def create(cls, text: str | None, title: str | None) -> TextSource:
        if not text or not title or not title.strip():
            raise ValidationError(
                "Both text content and title are required",
                reason="missing_field",
            )
        return cls(text=text, title=title.strip())


@dataclass(frozen=True)
class WebsiteSource:
    """A web page to fetch and strip to plain text."""

    url: str

    source_type = SourceType.WEBSITE

    @classmethod
    def create(cls, url: str | None) -> WebsiteSource:
        """Accept only well-formed absolute ``http(s)`` URLs."""
        if not url or not url.strip():
            raise ValidationError("No website URL provided", reason="missing_field")
        url = url.strip()
        try:
            _http_url.validate_python(url)
        except PydanticValidationError as exc:
            raise ValidationError("Invalid URL format", reason="invalid_url") from exc
        return cls(url=url)

    @property
    def hostname(self) -> str:
        return urlsplit(self.url).hostname or ""

    @property
    def name_hint(self) -> str:
        """URL without scheme or trailing slash, path separators flattened.

        Used as the title for collection naming so that two pages of the
        same site get distinguishable ids.
        """
        hint = self.url.split("://", 1)[-1].rstrip("/")
        for ch in "/?#":
            hint = hint.replace(ch, "_")
        return hint


Source = Union[PdfSource, TextSource, WebsiteSource]
