"""Content-source adapters — turn a declared source into raw text units.

One adapter per :class:`~rag_ingest.models.SourceKind`:

* ``paginated-json`` → :class:`PaginatedJsonSource`, one unit per item.
* ``html``           → :class:`HtmlSource`, one unit per rendered page.
* ``pdf``            → :class:`PdfSource`, one unit per document.

The HTML renderer and the PDF text extractor are capabilities injected at
construction time, so tests (and alternative engines) can replace them.
"""

from __future__ import annotations

import json
import logging
import re
import tempfile
import time
import unicodedata
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit

from bs4 import BeautifulSoup

from rag_ingest.exceptions import FetchError
from rag_ingest.ingestion.fetcher import RateLimitedFetcher
from rag_ingest.models import DataSource, RawUnit, SourceKind

logger = logging.getLogger(__name__)

_LABEL_KEYS = ("name", "title", "slug", "key")
_BOILERPLATE_TAGS = ["script", "style", "nav", "footer", "header", "aside", "noscript", "iframe"]


# ── helpers ───────────────────────────────────────────────────────────


def normalise_text(text: str) -> str:
    """Unicode NFC, collapse whitespace, strip control chars."""
    text = unicodedata.normalize("NFC", text)
    text = re.sub(r"[^\S\n]+", " ", text)       # collapse spaces (keep \n)
    text = re.sub(r"\n{3,}", "\n\n", text)       # max two consecutive newlines
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f]", "", text)
    return text.strip()


def html_to_text(html: str) -> tuple[str, str]:
    """Strip markup from *html*; return ``(title, text)``."""
    soup = BeautifulSoup(html, "html.parser")
    title = soup.title.string.strip() if soup.title and soup.title.string else ""
    for tag in soup(_BOILERPLATE_TAGS):
        tag.decompose()
    return title, normalise_text(soup.get_text(separator="\n", strip=True))


def with_page_size(url: str, page_size: int) -> str:
    """Add ``limit=page_size`` to *url* unless it already carries a limit."""
    parts = urlsplit(url)
    query = parse_qs(parts.query, keep_blank_values=True)
    if "limit" in query:
        return url
    query["limit"] = [str(page_size)]
    return urlunsplit(parts._replace(query=urlencode(query, doseq=True)))


def _item_label(item: Any) -> str | None:
    if isinstance(item, dict):
        for key in _LABEL_KEYS:
            value = item.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


# ── adapter interface ─────────────────────────────────────────────────


class ContentSource(ABC):
    """Produce raw units for one kind of source."""

    kind: SourceKind

    @abstractmethod
    def produce(self, source: DataSource) -> Iterator[RawUnit]:
        """Yield the raw text units of *source*."""
        ...


# ── paginated JSON ────────────────────────────────────────────────────


@dataclass
class Page:
    """One fetched page of a paginated source.

    Attributes
    ----------
    url:
        The URL the page was fetched from.
    units:
        One raw unit per item on the page.
    next_cursor:
        URL of the following page; ``None`` on the final page.
    is_last:
        ``True`` when pagination stops after this page.
    """

    url: str
    units: list[RawUnit]
    next_cursor: str | None
    is_last: bool


class PaginatedJsonSource(ContentSource):
    """Follow the ``next`` links of a paginated JSON API.

    Pages are expected in the ``{"results": [...], "next": "<url>"}``
    shape; a bare JSON list is accepted as a single, final page. A page
    holding fewer than ``page_size`` items ends the walk even when the
    origin still advertises a ``next`` link.

    Parameters
    ----------
    fetcher:
        Fetcher used for every page request.
    page_size:
        Items requested per page (``limit`` query parameter).
    page_interval:
        Seconds to pause between two page requests, whatever the outcome
        of the previous one, to stay under the origin's rate limit.
    """

    kind = SourceKind.PAGINATED_JSON

    def __init__(
        self,
        fetcher: RateLimitedFetcher,
        *,
        page_size: int = 50,
        page_interval: float = 10.0,
    ) -> None:
        self._fetcher = fetcher
        self.page_size = page_size
        self.page_interval = page_interval

    def produce(self, source: DataSource) -> Iterator[RawUnit]:
        for page in self.pages(source):
            yield from page.units

    def pages(self, source: DataSource, start_cursor: str | None = None) -> Iterator[Page]:
        """Yield pages of *source*, starting at *start_cursor* when given.

        Raises
        ------
        FetchError
            ``permanent=True`` when a page could not be fetched; pages
            already yielded remain valid.
        """
        url: str | None = start_cursor or with_page_size(source.url, self.page_size)
        first = True
        while url:
            if not first and self.page_interval > 0:
                time.sleep(self.page_interval)
            first = False

            payload = self._fetcher.fetch_json(url)
            items, next_url = self._parse(payload, url)
            units = [self._to_unit(source, item, url) for item in items]
            is_last = len(items) < self.page_size or not next_url
            logger.info("Fetched page %s (%d items)%s", url, len(items), " [last]" if is_last else "")
            yield Page(url=url, units=units, next_cursor=None if is_last else next_url, is_last=is_last)
            if is_last:
                return
            url = next_url

    @staticmethod
    def _parse(payload: Any, url: str) -> tuple[list[Any], str | None]:
        if isinstance(payload, list):
            return payload, None
        if isinstance(payload, dict) and isinstance(payload.get("results"), list):
            next_url = payload.get("next")
            return payload["results"], next_url if isinstance(next_url, str) and next_url else None
        raise FetchError(f"Unexpected page shape from {url}", url=url, permanent=True)

    @staticmethod
    def _to_unit(source: DataSource, item: Any, page_url: str) -> RawUnit:
        item_url = item.get("url") if isinstance(item, dict) else None
        return RawUnit(
            source_name=source.name,
            payload=item if isinstance(item, dict) else json.dumps(item, ensure_ascii=False),
            origin_url=item_url if isinstance(item_url, str) and item_url else page_url,
            item_label=_item_label(item),
        )


# ── rendered HTML ─────────────────────────────────────────────────────


class PageRenderer(Protocol):
    """Capability: render a URL to its fully-loaded HTML."""

    def render(self, url: str) -> str: ...


class ChromiumPageRenderer:
    """Render pages in headless Chromium via LangChain's ``AsyncChromiumLoader``."""

    def __init__(self, *, headless: bool = True, user_agent: str | None = None) -> None:
        self.headless = headless
        self.user_agent = user_agent

    def render(self, url: str) -> str:
        from langchain_community.document_loaders import AsyncChromiumLoader

        loader = AsyncChromiumLoader([url], headless=self.headless, user_agent=self.user_agent)
        docs = loader.load()
        html = docs[0].page_content if docs else ""
        # The loader reports navigation failures as page content.
        if not html or html.startswith("Error: "):
            raise FetchError(f"Rendering {url} failed: {html or 'empty page'}", url=url, permanent=True)
        return html


class HtmlSource(ContentSource):
    """Render a page, strip its markup and yield the text as one unit."""

    kind = SourceKind.HTML

    def __init__(self, renderer: PageRenderer) -> None:
        self._renderer = renderer

    def produce(self, source: DataSource) -> Iterator[RawUnit]:
        html = self._renderer.render(source.url)
        title, text = html_to_text(html)
        if not text:
            logger.warning("Rendered page %s has no text", source.url)
            return
        logger.info("Rendered %s (%d chars)", source.url, len(text))
        yield RawUnit(
            source_name=source.name,
            payload=text,
            origin_url=source.url,
            item_label=title or None,
        )


# ── PDF ───────────────────────────────────────────────────────────────


class PdfTextExtractor(Protocol):
    """Capability: extract the text of every page of a local PDF."""

    def extract(self, path: Path) -> list[str]: ...


class PyPdfTextExtractor:
    """Extract page text with LangChain's ``PyPDFLoader``."""

    def extract(self, path: Path) -> list[str]:
        from langchain_community.document_loaders import PyPDFLoader

        return [page.page_content for page in PyPDFLoader(str(path)).load()]


class PdfSource(ContentSource):
    """Download a PDF to a scoped temp directory and yield its text.

    The temporary directory is removed whether extraction succeeds or not.
    """

    kind = SourceKind.PDF

    def __init__(self, fetcher: RateLimitedFetcher, extractor: PdfTextExtractor) -> None:
        self._fetcher = fetcher
        self._extractor = extractor

    def produce(self, source: DataSource) -> Iterator[RawUnit]:
        body = self._fetcher.fetch(source.url)
        with tempfile.TemporaryDirectory(prefix="rag-ingest-pdf-") as tmp_dir:
            path = Path(tmp_dir) / "document.pdf"
            path.write_bytes(body)
            pages = self._extractor.extract(path)

        text = normalise_text("\n".join(pages))
        if not text:
            logger.warning("PDF %s has no extractable text", source.url)
            return
        logger.info("Extracted %s (%d pages, %d chars)", source.url, len(pages), len(text))
        yield RawUnit(source_name=source.name, payload=text, origin_url=source.url)


def build_adapters(
    fetcher: RateLimitedFetcher,
    *,
    renderer: PageRenderer | None = None,
    extractor: PdfTextExtractor | None = None,
    page_size: int = 50,
    page_interval: float = 10.0,
) -> dict[SourceKind, ContentSource]:
    """Return the adapter registry keyed by source kind."""
    return {
        SourceKind.PAGINATED_JSON: PaginatedJsonSource(
            fetcher, page_size=page_size, page_interval=page_interval
        ),
        SourceKind.HTML: HtmlSource(renderer or ChromiumPageRenderer()),
        SourceKind.PDF: PdfSource(fetcher, extractor or PyPdfTextExtractor()),
    }
