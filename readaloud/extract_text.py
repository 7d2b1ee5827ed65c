"""
Article Extraction Module

Fetches a web page and pulls out its main readable content: title,
paragraph text and a short excerpt. Failures are reported as an
ExtractionError carrying one of a fixed set of codes so callers can show
a message without inspecting exceptions.
"""

from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import urlparse

import requests
import trafilatura
from bs4 import BeautifulSoup

from readaloud.clean_text import TextCleaner
from readaloud.utils import logger
from readaloud.utils.config import config


@dataclass
class Article:
    """Readable content of one page."""

    title: str
    content: str  # Paragraphs separated by a blank line
    excerpt: str = ""
    url: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        return {"title": self.title, "content": self.content, "excerpt": self.excerpt}


class ExtractionError(Exception):
    """Extraction failed; ``code`` says at which stage."""

    MISSING_URL = "missing-url"
    INVALID_URL = "invalid-url-format"
    FETCH_FAILED = "fetch-failed"
    EXTRACTION_FAILED = "extraction-failed"

    MESSAGES = {
        MISSING_URL: "URL is required",
        INVALID_URL: "Invalid URL format",
        FETCH_FAILED: "Failed to fetch article",
        EXTRACTION_FAILED: "Could not extract article content",
    }

    def __init__(self, code: str, detail: Optional[str] = None):
        if code not in self.MESSAGES:
            raise ValueError(f"Unknown extraction error code: {code}")
        self.code = code
        self.message = self.MESSAGES[code]
        self.detail = detail
        super().__init__(f"{self.message}: {detail}" if detail else self.message)

    def to_dict(self) -> Dict[str, str]:
        return {"error": self.message, "code": self.code}


class ArticleExtractor:
    """
    Fetch a page with requests and extract its article.

    trafilatura finds the main content; BeautifulSoup reads the title and
    description from the document head.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        excerpt_length: Optional[int] = None,
    ):
        """
        Initialize the extractor.

        Args:
            session: requests session to reuse (a new one by default)
            timeout: Request timeout in seconds
            user_agent: User-Agent header sent with the request
            excerpt_length: Max length of a generated excerpt
        """
        self.session = session or requests.Session()
        self.timeout = timeout or config.get("extractor", "timeout", default=15)
        self.user_agent = user_agent or config.get("extractor", "user_agent")
        self.excerpt_length = excerpt_length or config.get("extractor", "excerpt_length", default=200)
        self.cleaner = TextCleaner()

    def extract(self, url: Optional[str]) -> Article:
        """
        Extract the article at ``url``.

        Raises:
            ExtractionError: on a missing/invalid URL, fetch failure, or empty content
        """
        url = self.validate_url(url)
        html = self.fetch(url)
        return self.parse(html, url)

    @staticmethod
    def validate_url(url: Optional[str]) -> str:
        if url is None or not str(url).strip():
            raise ExtractionError(ExtractionError.MISSING_URL)

        url = str(url).strip()
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ExtractionError(ExtractionError.INVALID_URL, url)
        return url

    def fetch(self, url: str) -> str:
        """Download the page HTML."""
        logger.info(f"Fetching {url}")
        headers = {"User-Agent": self.user_agent} if self.user_agent else {}
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ExtractionError(ExtractionError.FETCH_FAILED, str(e)) from e

        if response.encoding is None or response.encoding.lower() == "iso-8859-1":
            response.encoding = response.apparent_encoding
        return response.text

    def parse(self, html: str, url: Optional[str] = None) -> Article:
        """Extract the readable article from an HTML document."""
        soup = BeautifulSoup(html or "", "html.parser")

        title = self._find_title(soup)
        excerpt = self._find_meta(soup, "description", "og:description")
        content = self._extract_content(html, url)

        if not content:
            raise ExtractionError(ExtractionError.EXTRACTION_FAILED, url)

        if not excerpt:
            excerpt = self._make_excerpt(content)

        logger.info(f"Extracted {len(content):,} characters from '{title or url}'")
        return Article(title=title, content=content, excerpt=excerpt, url=url)

    def _extract_content(self, html: str, url: Optional[str]) -> str:
        """Main text of the page with trafilatura, one paragraph per block."""
        if not html or not html.strip():
            return ""

        text = trafilatura.extract(
            html,
            url=url,
            include_comments=False,
            include_tables=False,
            favor_recall=True,
        )
        if not text:
            return ""

        paragraphs = [line.strip() for line in text.splitlines() if line.strip()]
        return self.cleaner.clean("\n\n".join(paragraphs))

    def _find_meta(self, soup: BeautifulSoup, *names: str) -> str:
        for name in names:
            tag = soup.find("meta", attrs={"property": name}) or soup.find("meta", attrs={"name": name})
            if tag and tag.get("content", "").strip():
                return " ".join(tag["content"].split())
        return ""

    def _find_title(self, soup: BeautifulSoup) -> str:
        title = self._find_meta(soup, "og:title")
        if title:
            return title
        if soup.title and soup.title.get_text(strip=True):
            return " ".join(soup.title.get_text().split())
        heading = soup.find("h1")
        return heading.get_text(" ", strip=True) if heading else ""

    def _make_excerpt(self, content: str) -> str:
        first = content.split("\n\n", 1)[0]
        if len(first) <= self.excerpt_length:
            return first
        cut = first[: self.excerpt_length].rsplit(" ", 1)[0]
        return cut.rstrip(",;:") + "..."
