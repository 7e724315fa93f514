"""Text extraction from web pages, PDFs and plain-text files."""

from __future__ import annotations

import logging
import time
from pathlib import Path

import requests
from bs4 import BeautifulSoup

from docrag.config import settings
from docrag.errors import FetchError
from docrag.ingestion.normalizer import normalize

logger = logging.getLogger(__name__)

_BOILERPLATE_TAGS = ["script", "style", "nav", "footer", "header", "aside", "noscript", "iframe"]
_DEFAULT_HEADERS = {"User-Agent": "Mozilla/5.0 (compatible; docrag/0.1)"}


def html_to_text(html: str) -> str:
    """Strip boiler-plate tags from *html* and return normalized body text."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_BOILERPLATE_TAGS):
        tag.decompose()
    root = soup.body or soup
    return normalize(root.get_text(separator="\n", strip=True))


def fetch_url_text(
    url: str,
    *,
    timeout: float = settings.fetch_timeout_seconds,
    max_retries: int = settings.fetch_max_retries,
    headers: dict[str, str] | None = None,
) -> str:
    """Download *url* and return its readable text.

    Transient HTTP failures are retried with exponential backoff.

    Raises
    ------
    FetchError
        Every attempt failed, or the page contains no text.
    """
    last_exc: Exception | None = None
    for attempt in range(1, max_retries + 1):
        try:
            resp = requests.get(url, headers=headers or _DEFAULT_HEADERS, timeout=timeout)
            resp.raise_for_status()
            break
        except requests.RequestException as exc:
            last_exc = exc
            if attempt < max_retries:
                wait = 2**attempt
                logger.warning(
                    "Retry %d/%d for %s (wait %ds): %s", attempt, max_retries, url, wait, exc
                )
                time.sleep(wait)
    else:
        raise FetchError(f"Failed to fetch {url} after {max_retries} attempts") from last_exc

    text = html_to_text(resp.text)
    if not text:
        raise FetchError(f"{url} returned no readable text", retryable=False)
    logger.info("Fetched %s (%d chars)", url, len(text))
    return text


def load_pdf_text(path: str | Path) -> str:
    """Extract the text of every page of a PDF, pages separated by blank lines."""
    from langchain_community.document_loaders import PyPDFLoader

    pages = PyPDFLoader(str(path)).load()
    return "\n\n".join(page.page_content for page in pages)


def load_text_file(path: str | Path) -> str:
    """Read a UTF-8 text file, replacing undecodable bytes."""
    return Path(path).read_text(encoding="utf-8", errors="replace")


def load_file_text(path: str | Path) -> str:
    """Dispatch on the file suffix: PDF, HTML, or plain text."""
    suffix = Path(path).suffix.lower()
    if suffix == ".pdf":
        return load_pdf_text(path)
    if suffix in (".html", ".htm"):
        return html_to_text(load_text_file(path))
    return load_text_file(path)
