"""Main-content extraction backed by readability-lxml."""

import asyncio
import logging

from bs4 import BeautifulSoup
from readability import Document
from readability.readability import Unparseable

from linkscribe.deps import ReadabilityResult

logger = logging.getLogger(__name__)

EXCERPT_LENGTH = 280


class ReadabilityLxmlExtractor:
    """Run readability-lxml off the event loop and return text plus HTML."""

    async def extract(self, html: str, url: str | None = None) -> ReadabilityResult | None:
        if not html.strip():
            return None
        return await asyncio.to_thread(self._extract_sync, html, url)

    def _extract_sync(self, html: str, url: str | None) -> ReadabilityResult | None:
        try:
            doc = Document(html, url=url)
            summary_html = doc.summary(html_partial=True)
            title = doc.short_title() or None
        except (Unparseable, ValueError) as e:
            logger.debug(f"Readability failed for {url}: {e}")
            return None

        text = BeautifulSoup(summary_html, "html.parser").get_text("\n", strip=True)
        if not text:
            return None
        excerpt = " ".join(text.split())[:EXCERPT_LENGTH]
        return ReadabilityResult(text=text, html=summary_html, title=title, excerpt=excerpt)
