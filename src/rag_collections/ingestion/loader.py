"""Format-specific loaders — bytes or URLs in, plain text out.

These are blocking functions; :mod:`rag_collections.ingestion.extractor`
runs them in a worker thread.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from typing import Any
from urllib.parse import urlsplit

import requests
from bs4 import BeautifulSoup
from langchain_community.document_loaders.parsers.pdf import PyPDFParser
from langchain_core.documents.base import Blob

from rag_collections.errors import ExtractionFailure

logger = logging.getLogger(__name__)

BOILERPLATE_TAGS = ["script", "style", "nav", "footer", "header", "aside", "noscript", "iframe"]
TEXTUAL_CONTENT_TYPES = ("text/", "application/xhtml", "application/xml")


def normalise(text: str) -> str:
    """Unicode NFC, collapse whitespace, strip control chars."""
    text = unicodedata.normalize("NFC", text)
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f]", "", text)  # ctrl chars
    text = re.sub(r"[^\S\n]+", " ", text)  # collapse spaces (keep \n)
    text = re.sub(r" ?\n ?", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)  # max two consecutive newlines
    return text.strip()


# ── PDF ───────────────────────────────────────────────────────────────


def load_pdf_bytes(data: bytes, filename: str = "document.pdf") -> tuple[str, dict[str, Any]]:
    """Parse a PDF page by page.

    Returns
    -------
    tuple[str, dict]
        The pages joined with blank lines, and provenance
        (``filename``, ``page_count``).

    Raises
    ------
    ExtractionFailure
        ``kind="parse_error"`` when the bytes are not a readable PDF or
        contain no extractable text (e.g. scanned images only).
    """
    blob = Blob.from_data(data, mime_type="application/pdf", path=filename)
    try:
        pages = list(PyPDFParser().lazy_parse(blob))
    except Exception as exc:
        raise ExtractionFailure(
            f"Failed to parse PDF {filename!r}: {exc}",
            kind=ExtractionFailure.PARSE_ERROR,
        ) from exc

    texts = [normalise(page.page_content) for page in pages]
    text = "\n\n".join(t for t in texts if t)
    if not text:
        raise ExtractionFailure(
            f"No extractable text found in PDF {filename!r}",
            kind=ExtractionFailure.PARSE_ERROR,
        )
    logger.info("Parsed %s: %d page(s), %d chars", filename, len(pages), len(text))
    return text, {"filename": filename, "page_count": len(pages)}


# ── Website ───────────────────────────────────────────────────────────


def _extract_title_html(soup: BeautifulSoup) -> str:
    """Best-effort title from HTML."""
    if soup.title and soup.title.string:
        return soup.title.string.strip()
    h1 = soup.find("h1")
    if h1:
        return h1.get_text(strip=True)
    return ""


def fetch_url(
    url: str,
    *,
    timeout: float = 30.0,
    user_agent: str = "Mozilla/5.0",
    max_chars: int | None = None,
) -> tuple[str, str, dict[str, Any]]:
    """Download *url* and strip it to plain text.

    No retries; the caller decides whether to try again.

    Returns
    -------
    tuple[str, str, dict]
        ``(text, title, provenance)``.  ``title`` falls back to the
        hostname when the page has neither ``<title>`` nor ``<h1>``.

    Raises
    ------
    ExtractionFailure
        ``kind="fetch_error"`` for unreachable hosts, timeouts, non-2xx
        responses, non-textual content, or pages with no text.
    """
    try:
        resp = requests.get(
            url,
            headers={"User-Agent": user_agent},
            timeout=timeout,
            allow_redirects=True,
        )
        resp.raise_for_status()
    except requests.Timeout as exc:
        raise ExtractionFailure(
            f"Timed out after {timeout:g}s fetching {url}", kind=ExtractionFailure.FETCH_ERROR
        ) from exc
    except requests.RequestException as exc:
        raise ExtractionFailure(f"Failed to fetch {url}: {exc}", kind=ExtractionFailure.FETCH_ERROR) from exc

    ctype = resp.headers.get("content-type", "text/html").lower()
    if not ctype.startswith(TEXTUAL_CONTENT_TYPES):
        raise ExtractionFailure(
            f"Unsupported content type {ctype!r} at {url}", kind=ExtractionFailure.FETCH_ERROR
        )

    soup = BeautifulSoup(resp.text, "html.parser")
    title = _extract_title_html(soup)

    # Strip boiler-plate tags
    for tag in soup(BOILERPLATE_TAGS):
        tag.decompose()

    body = soup.body or soup
    text = normalise(body.get_text(separator="\n", strip=True))
    if not text:
        raise ExtractionFailure(f"No content found on the page {url}", kind=ExtractionFailure.FETCH_ERROR)

    truncated = max_chars is not None and len(text) > max_chars
    if truncated:
        text = text[:max_chars].rstrip()

    hostname = urlsplit(url).hostname or url
    logger.info("Fetched %s (%d chars%s)", url, len(text), ", truncated" if truncated else "")
    provenance = {
        "source_url": url,
        "final_url": resp.url or url,
        "hostname": hostname,
        "content_type": ctype.split(";")[0].strip(),
        "truncated": truncated,
    }
    return text, title or hostname, provenance
