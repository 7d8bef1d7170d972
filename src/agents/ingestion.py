# src/agents/ingestion.py - v1
"""HTTP content fetcher backing the Content Ingestion stage.

Fetches a page with httpx and extracts readable article text with
BeautifulSoup. Block pages, HTTP errors and empty pages raise
IngestionError with a user-presentable reason.
"""

from __future__ import annotations

import logging
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

from factlens.core.errors import ErrorKind, IngestionError
from factlens.core.models import IngestionOutput

logger = logging.getLogger(__name__)

_UNWANTED_SELECTORS = (
    "script", "style", "noscript", "template", "svg",
    "nav", "footer", "header", "aside", "form",
    ".sidebar", ".navigation", ".menu", ".cookie", ".popup", ".modal",
    ".advertisement", ".ad", ".social-share", ".comments", ".related-articles",
    '[role="navigation"]', '[role="banner"]', '[role="contentinfo"]',
)

_CONTENT_SELECTORS = ("article", "main", '[role="main"]', "body")

_TEXT_TAGS = ["p", "h1", "h2", "h3", "h4", "h5", "h6", "li", "blockquote"]

_BLOCK_INDICATORS = (
    "access denied",
    "access to this page has been denied",
    "just a moment",
    "checking your browser",
    "please verify you are a human",
    "enable javascript and cookies",
)

_STATUS_KINDS: dict[int, ErrorKind] = {
    429: ErrorKind.RATE_LIMIT,
    503: ErrorKind.OVERLOAD,
}


def domain_of(url: str) -> str:
    """Hostname of a URL, lower-cased, without port."""
    return (urlparse(url).hostname or "").lower()


class HttpContentFetcher:
    """Retrieve the main textual content of a web page.

    Args:
        timeout_s: Request timeout.
        user_agent: User-Agent header sent with every request.
        max_chars: Extracted text is truncated to this length.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        timeout_s: float = 20.0,
        user_agent: str = "factlens/0.1",
        max_chars: int = 100_000,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout_s = timeout_s
        self._user_agent = user_agent
        self._max_chars = max_chars
        self._transport = transport

    async def fetch(self, url: str) -> IngestionOutput:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise IngestionError(f"'{url}' is not a valid http(s) URL")

        html = await self._get(url)
        text = extract_text(html)
        if text is None:
            raise IngestionError(
                "Content is blocked for automated access (the site returned a challenge page)"
            )
        if not text:
            raise IngestionError(
                "The page returned no readable text. It might be empty, JavaScript-heavy, "
                "or contain only non-textual content."
            )

        if len(text) > self._max_chars:
            logger.debug("Truncating %s from %d to %d chars", url, len(text), self._max_chars)
            text = text[: self._max_chars]

        logger.info("Ingested %d chars from %s", len(text), parsed.hostname)
        return IngestionOutput(text=text, domain=domain_of(url), images=[])

    async def _get(self, url: str) -> str:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_s,
                follow_redirects=True,
                headers={"User-Agent": self._user_agent},
                transport=self._transport,
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException as exc:
            raise IngestionError(f"Timed out fetching {url}", kind=ErrorKind.TIMEOUT) from exc
        except httpx.HTTPError as exc:
            raise IngestionError(f"URL appears to be invalid or down: {exc}") from exc

        if response.status_code >= 400:
            kind = _STATUS_KINDS.get(response.status_code, ErrorKind.INACCESSIBLE)
            reason = (
                "Page is protected by a login"
                if response.status_code in (401, 403)
                else f"Server responded with HTTP {response.status_code}"
            )
            raise IngestionError(reason, kind=kind)

        return response.text


def extract_text(html: str) -> str | None:
    """Readable text of an HTML document.

    Returns None for bot-challenge pages and "" when nothing readable is left.
    """
    soup = BeautifulSoup(html, "html.parser")

    title = soup.title.get_text(strip=True).lower() if soup.title else ""
    head_text = soup.get_text(" ", strip=True)[:500].lower()
    if any(ind in title or ind in head_text for ind in _BLOCK_INDICATORS):
        return None

    for selector in _UNWANTED_SELECTORS:
        for node in soup.select(selector):
            node.decompose()

    for selector in _CONTENT_SELECTORS:
        root = soup.select_one(selector)
        if root is None:
            continue
        text = _element_to_text(root)
        if text:
            return text

    return soup.get_text("\n", strip=True)


def _element_to_text(element) -> str:
    lines: list[str] = []
    seen: set[str] = set()
    for child in element.find_all(_TEXT_TAGS):
        text = child.get_text(" ", strip=True)
        if not text or text in seen:
            continue
        seen.add(text)
        if child.name == "li":
            lines.append(f"- {text}")
        elif child.name == "blockquote":
            lines.append(f"> {text}")
        else:
            lines.append(text)

    result = "\n".join(lines)
    if not result.strip():
        result = element.get_text("\n", strip=True)
    return result.strip()
