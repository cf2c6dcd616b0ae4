"""
Content Extractor - Turn a URL into article text and metadata.

Strategy, in order:
- Reader service (r.jina.ai style): returns the page as markdown
- Basic HTML fetch parsed with BeautifulSoup (title, meta tags, paragraphs)
- Zero-value result carrying the hostname and the failure message

extract() never raises. Whatever happens, the caller gets an
ExtractedContent it can persist.
"""

import asyncio
import logging
import re
from urllib.parse import urlsplit

import aiohttp
from bs4 import BeautifulSoup

from .content_analysis import analyze_content
from .exceptions import ExtractionError
from .models import ExtractedContent, ExtractionMethod

logger = logging.getLogger(__name__)

DEFAULT_READER_BASE_URL = "https://r.jina.ai/"
FALLBACK_USER_AGENT = "Mozilla/5.0 (compatible; ArticleVault/1.0; +https://articlevault.app)"
FAILED_EXCERPT = "Failed to extract content from this URL"
TIMEOUT_MARKER = "TIMEOUT"

MIN_PARAGRAPH_LENGTH = 20
EXCERPT_LENGTH = 200

_BYLINE_RE = re.compile(r"by\s+(.+?)(?:\s+on|\s+\||$)", re.I)
_WHITESPACE_RE = re.compile(r"\s+")


def hostname_of(url: str) -> str:
    """Hostname for display titles; the raw string when it can't be parsed."""
    try:
        return urlsplit(url).hostname or url
    except ValueError:
        return url


def make_excerpt(content: str) -> str | None:
    """First paragraph, cut at 200 characters. Short paragraphs give no excerpt."""
    first_paragraph = content.split("\n\n")[0]
    if len(first_paragraph) <= MIN_PARAGRAPH_LENGTH:
        return None
    excerpt = first_paragraph[:EXCERPT_LENGTH].strip()
    if len(first_paragraph) > EXCERPT_LENGTH:
        excerpt += "..."
    return excerpt


def parse_reader_markdown(markdown: str, url: str) -> ExtractedContent:
    """
    Parse the reader service's markdown into an ExtractedContent.

    The first "# " heading is the title and is left out of the content.
    The first "by <name>" line gives the author. Blank lines are only kept
    once content has started.
    """
    title = ""
    author = None
    content_lines: list[str] = []
    in_content = False

    for line in markdown.split("\n"):
        if not title and line.startswith("# "):
            title = line[2:].strip()
            continue

        if author is None and "by " in line.lower():
            if match := _BYLINE_RE.search(line):
                author = match.group(1).strip()

        if line.strip():
            content_lines.append(line)
            in_content = True
        elif in_content:
            content_lines.append("")

    content = "\n".join(content_lines).strip()
    word_count, reading_time = analyze_content(content)

    return ExtractedContent(
        title=title or hostname_of(url),
        author=author,
        content=content,
        excerpt=make_excerpt(content),
        word_count=word_count,
        reading_time_minutes=reading_time,
        extraction_method=ExtractionMethod.PRIMARY,
    )


def _meta(soup: BeautifulSoup, *, name: str | None = None, prop: str | None = None) -> str | None:
    if name:
        tag = soup.find("meta", attrs={"name": name})
    else:
        tag = soup.find("meta", attrs={"property": prop})
    if tag and tag.get("content"):
        return tag["content"].strip()
    return None


def parse_basic_html(html: str, url: str) -> ExtractedContent:
    """Extract metadata and paragraph text from raw HTML."""
    soup = BeautifulSoup(html, "html.parser")

    title = ""
    if title_tag := soup.find("title"):
        title = title_tag.get_text(strip=True)
    if not title:
        title = _meta(soup, prop="og:title") or ""

    author = _meta(soup, name="author") or _meta(soup, prop="article:author")
    excerpt = _meta(soup, name="description") or _meta(soup, prop="og:description")

    paragraphs = []
    for p in soup.find_all("p"):
        text = _WHITESPACE_RE.sub(" ", p.get_text(" ")).strip()
        if len(text) > MIN_PARAGRAPH_LENGTH:
            paragraphs.append(text)
    content = "\n\n".join(paragraphs)

    word_count, reading_time = analyze_content(content)

    return ExtractedContent(
        title=title or hostname_of(url),
        author=author,
        content=content,
        excerpt=excerpt,
        published_date=_meta(soup, prop="article:published_time"),
        site_name=_meta(soup, prop="og:site_name"),
        image_url=_meta(soup, prop="og:image"),
        word_count=word_count,
        reading_time_minutes=reading_time,
        extraction_method=ExtractionMethod.FALLBACK_HTML,
    )


def zero_value_content(url: str, error: str) -> ExtractedContent:
    return ExtractedContent(
        title=hostname_of(url),
        content="",
        excerpt=FAILED_EXCERPT,
        word_count=0,
        reading_time_minutes=0,
        extraction_method=ExtractionMethod.FALLBACK,
        extraction_error=error,
    )


class ContentExtractor:
    """Fetches article content with a reader-service-first fallback chain."""

    def __init__(
        self,
        reader_base_url: str = DEFAULT_READER_BASE_URL,
        timeout: float = 15,
        use_reader: bool = True,
        user_agent: str = FALLBACK_USER_AGENT,
    ):
        self.reader_base_url = reader_base_url if reader_base_url.endswith("/") else reader_base_url + "/"
        self.timeout = timeout
        self.use_reader = use_reader
        self.user_agent = user_agent

    async def extract(
        self,
        url: str,
        timeout: float | None = None,
        use_primary: bool | None = None,
    ) -> ExtractedContent:
        """
        Extract content from a URL.

        Args:
            url: Page to extract (already validated by the caller)
            timeout: Per-attempt budget in seconds; defaults to the configured one
            use_primary: Try the reader service first; defaults to the configured flag

        Returns:
            ExtractedContent with extraction_method primary, fallback-html or fallback
        """
        timeout = timeout or self.timeout
        use_primary = self.use_reader if use_primary is None else use_primary
        timed_out = False

        if use_primary:
            try:
                result = await self._extract_with_reader(url, timeout)
                logger.info(f"Extracted {url} via reader service ({result.word_count} words)")
                return result
            except asyncio.TimeoutError:
                timed_out = True
                logger.warning(f"Reader service timed out for {url}")
            except (ExtractionError, aiohttp.ClientError, ValueError) as e:
                logger.warning(f"Reader service extraction failed for {url}: {e}")

        try:
            result = await self._extract_with_basic_fetch(url, timeout)
        except asyncio.TimeoutError:
            logger.error(f"Basic HTML fetch timed out for {url}")
            return zero_value_content(url, TIMEOUT_MARKER)
        except (ExtractionError, aiohttp.ClientError, UnicodeDecodeError, ValueError) as e:
            logger.error(f"Content extraction failed for {url}: {e}")
            return zero_value_content(url, str(e) or type(e).__name__)

        if timed_out:
            result.extraction_error = TIMEOUT_MARKER
        logger.info(f"Extracted {url} via basic HTML fallback ({result.word_count} words)")
        return result

    async def _extract_with_reader(self, url: str, timeout: float) -> ExtractedContent:
        status, body = await self._get_text(
            f"{self.reader_base_url}{url}",
            headers={"Accept": "application/json", "X-Return-Format": "markdown"},
            timeout=timeout,
        )
        if not 200 <= status < 300:
            raise ExtractionError(f"Reader service returned status {status}")
        return parse_reader_markdown(body, url)

    async def _extract_with_basic_fetch(self, url: str, timeout: float) -> ExtractedContent:
        status, body = await self._get_text(
            url,
            headers={"User-Agent": self.user_agent},
            timeout=timeout,
        )
        if not 200 <= status < 300:
            raise ExtractionError(f"HTTP {status}")
        return parse_basic_html(body, url)

    async def _get_text(self, url: str, headers: dict[str, str], timeout: float) -> tuple[int, str]:
        """GET a URL and return (status, body text)."""
        async with aiohttp.ClientSession(headers=headers) as session:
            async with session.get(
                url,
                timeout=aiohttp.ClientTimeout(total=timeout),
                allow_redirects=True,
            ) as resp:
                return resp.status, await resp.text()
