"""
Document Ingestor Service
Fetches a source PDF and extracts plain text through a degrading list of attempts.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

import fitz
import httpx

from testgen.config import INGESTION_PROFILES, MAX_STORED_CONTENT_LENGTH
from testgen.errors import IngestionError, IngestionFailure
from testgen.schemas import ExtractedText, SourceDocument
from testgen.services.race import race_timeout

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"

Fetcher = Callable[[str, float], Awaitable[SourceDocument]]
Extractor = Callable[[bytes, Optional[int]], Tuple[str, int, int]]


@dataclass(frozen=True)
class AttemptProfile:
    """One ingestion attempt: how many pages to read and how long to wait."""
    max_pages: Optional[int]
    timeout: float

    def describe(self) -> str:
        scope = "full document" if self.max_pages is None else f"first {self.max_pages} pages"
        return f"{scope}/{self.timeout:.0f}s"


DEFAULT_PROFILES: Tuple[AttemptProfile, ...] = tuple(
    AttemptProfile(max_pages=pages, timeout=timeout) for pages, timeout in INGESTION_PROFILES
)


def ensure_pdf(media_type: Optional[str], location: str) -> None:
    """
    Reject sources that are not PDFs.

    Raises:
        ValueError: If neither the media type nor the location marks a PDF.
    """
    declared = (media_type or "").split(";")[0].strip().lower()
    if declared == PDF_MEDIA_TYPE:
        return
    if location.lower().split("?")[0].endswith(".pdf"):
        return
    raise ValueError(f"Not a PDF file: {media_type or 'unknown type'}")


async def fetch_document(location: str, timeout: float) -> SourceDocument:
    """Download the raw bytes behind a document location."""
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        response = await client.get(location)
        response.raise_for_status()

    media_type = response.headers.get("content-type", PDF_MEDIA_TYPE)
    logger.info("Fetched %s (%s bytes)", location, len(response.content))
    return SourceDocument(content=response.content, media_type=media_type)


def extract_pdf_text(content: bytes, max_pages: Optional[int]) -> Tuple[str, int, int]:
    """
    Extract text from the first ``max_pages`` pages of a PDF.

    Returns:
        (text, true page count, pages actually read)
    """
    doc = fitz.open(stream=content, filetype="pdf")
    try:
        page_count = doc.page_count
        pages_read = page_count if max_pages is None else min(max_pages, page_count)
        texts = [doc[index].get_text() for index in range(pages_read)]
    finally:
        doc.close()
    return "\n".join(texts).strip(), page_count, pages_read


def _classify(failures: List[IngestionFailure]) -> IngestionFailure:
    if not failures:
        # budget ran out before any attempt could start
        return IngestionFailure.PARSE_TIMEOUT
    if all(f == IngestionFailure.NETWORK_FAILURE for f in failures):
        return IngestionFailure.NETWORK_FAILURE
    if all(f == IngestionFailure.PARSE_TIMEOUT for f in failures):
        return IngestionFailure.PARSE_TIMEOUT
    return IngestionFailure.EMPTY_EXTRACTION


async def ingest(
    location: str,
    overall_budget: Optional[float] = None,
    profiles: Sequence[AttemptProfile] = DEFAULT_PROFILES,
    fetcher: Optional[Fetcher] = None,
    extractor: Optional[Extractor] = None,
) -> ExtractedText:
    """
    Extract text from the document at ``location``.

    Profiles are tried strictly in order, each with a smaller page scope and
    time budget than the last; the first one that yields non-empty text wins.

    Args:
        location: URL of the source document.
        overall_budget: Optional cap in seconds for the whole call.
        profiles: Ordered attempt profiles.
        fetcher: Coroutine that downloads the document (default fetch_document).
        extractor: Blocking function returning (text, page_count, pages_read)
            (default extract_pdf_text).

    Returns:
        ExtractedText with ``truncated`` set when the winning profile read
        fewer pages than the document has.

    Raises:
        IngestionError: When every profile is exhausted.
    """
    fetcher = fetcher or fetch_document
    extractor = extractor or extract_pdf_text
    loop = asyncio.get_running_loop()
    deadline = None if overall_budget is None else loop.time() + overall_budget
    failures: List[IngestionFailure] = []

    for attempt, profile in enumerate(profiles, start=1):
        timeout = profile.timeout
        if deadline is not None:
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning("Ingestion budget spent before attempt %s for %s", attempt, location)
                break
            timeout = min(timeout, remaining)

        logger.info("Ingestion attempt %s (%s) for %s", attempt, profile.describe(), location)

        try:
            document = await race_timeout(fetcher(location, timeout), timeout)
        except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError) as e:
            logger.warning("Attempt %s: fetch failed: %s", attempt, e)
            failures.append(IngestionFailure.NETWORK_FAILURE)
            continue

        try:
            text, page_count, pages_read = await race_timeout(
                asyncio.to_thread(extractor, document.content, profile.max_pages),
                timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Attempt %s: parsing timed out after %.1fs", attempt, timeout)
            failures.append(IngestionFailure.PARSE_TIMEOUT)
            continue
        except Exception as e:
            # malformed PDFs surface as assorted PyMuPDF runtime errors
            logger.warning("Attempt %s: parsing failed: %s", attempt, e)
            failures.append(IngestionFailure.EMPTY_EXTRACTION)
            continue

        if not text.strip():
            logger.warning("Attempt %s: no text extracted", attempt)
            failures.append(IngestionFailure.EMPTY_EXTRACTION)
            continue

        truncated = profile.max_pages is not None and profile.max_pages < page_count
        if len(text) > MAX_STORED_CONTENT_LENGTH:
            text = text[:MAX_STORED_CONTENT_LENGTH]
            truncated = True

        logger.info(
            "Extracted %s characters from %s/%s pages (truncated=%s)",
            len(text), pages_read, page_count, truncated,
        )
        return ExtractedText(
            text=text,
            page_count=page_count,
            pages_read=pages_read,
            truncated=truncated,
        )

    reason = _classify(failures)
    raise IngestionError(reason, f"Could not extract text from {location}: {reason.value}")
