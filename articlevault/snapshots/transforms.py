"""
Snapshot transforms that need no browser.

- Markdown with a frontmatter block
- Plain text with a title underline
- EPUB, either the single XHTML document or a zip-packaged EPUB 3
- Post-processing of browser-captured HTML (clutter removal, image
  inlining, provenance footer)
"""

import asyncio
import base64
import html
import io
import logging
import re
import uuid
import zipfile
from datetime import datetime
from typing import Awaitable, Callable
from urllib.parse import urljoin

import aiohttp
from bs4 import BeautifulSoup

from ..exceptions import InvalidInputError
from ..url_validator import validate_article_url
from .styling import CLUTTER_SELECTORS

logger = logging.getLogger(__name__)

TOOL_NAME = "ArticleVault"
IMAGE_TIMEOUT = 10  # seconds


def escape_xml(text: str) -> str:
    return html.escape(text or "", quote=True).replace("&#x27;", "&apos;")


# ─────────────────────────────────────────────────────────────
# Markdown
# ─────────────────────────────────────────────────────────────

_MARKDOWN_RULES = [
    (re.compile(r"<h1[^>]*>(.*?)</h1>", re.I), r"# \1\n\n"),
    (re.compile(r"<h2[^>]*>(.*?)</h2>", re.I), r"## \1\n\n"),
    (re.compile(r"<h3[^>]*>(.*?)</h3>", re.I), r"### \1\n\n"),
    (re.compile(r"<p[^>]*>(.*?)</p>", re.I), r"\1\n\n"),
    (re.compile(r"<strong[^>]*>(.*?)</strong>", re.I), r"**\1**"),
    (re.compile(r"<em[^>]*>(.*?)</em>", re.I), r"*\1*"),
    (re.compile(r'<a[^>]*href="([^"]*)"[^>]*>(.*?)</a>', re.I), r"[\2](\1)"),
    (re.compile(r'<img[^>]*src="([^"]*)"[^>]*alt="([^"]*)"[^>]*>', re.I), r"![\2](\1)"),
    (re.compile(r"<[^>]+>"), ""),
]


def html_to_markdown(content: str) -> str:
    for pattern, replacement in _MARKDOWN_RULES:
        content = pattern.sub(replacement, content)
    return content


def render_markdown(
    title: str,
    url: str,
    content: str,
    saved_at: datetime,
    author: str | None = None,
    tags: list[str] | None = None,
) -> str:
    frontmatter = (
        "---\n"
        f"title: {title}\n"
        f"author: {author or 'Unknown'}\n"
        f"source: {url}\n"
        f"saved: {saved_at.isoformat()}\n"
        f"tags: [{', '.join(tags or [])}]\n"
        "---\n\n"
    )
    return frontmatter + html_to_markdown(content)


# ─────────────────────────────────────────────────────────────
# Plain text
# ─────────────────────────────────────────────────────────────

_SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.I)
_STYLE_RE = re.compile(r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>", re.I)
_TAG_RE = re.compile(r"<[^>]+>")
_BLANK_RUN_RE = re.compile(r"\n\s*\n\s*\n")


def html_to_text(content: str) -> str:
    text = _SCRIPT_RE.sub("", content)
    text = _STYLE_RE.sub("", text)
    text = _TAG_RE.sub("", text)
    text = html.unescape(text).replace("\xa0", " ")
    return _BLANK_RUN_RE.sub("\n\n", text).strip()


def render_text(title: str, url: str, content: str, saved_at: datetime) -> str:
    header = (
        f"{title}\n"
        f"{'=' * len(title)}\n\n"
        f"Source: {url}\n"
        f"Saved: {saved_at.strftime('%Y-%m-%d %H:%M:%S UTC')}\n\n"
    )
    return header + html_to_text(content)


# ─────────────────────────────────────────────────────────────
# EPUB
# ─────────────────────────────────────────────────────────────

EPUB_STYLE = (
    "body { font-family: serif; line-height: 1.6; }\n"
    "h1, h2, h3 { font-weight: bold; }\n"
    "img { max-width: 100%; }"
)


def content_to_xhtml_paragraphs(content: str) -> str:
    """Stored content (markdown, text or HTML) as escaped XHTML paragraphs."""
    text = BeautifulSoup(content or "", "html.parser").get_text("\n")
    paragraphs = [p.strip() for p in re.split(r"\n\s*\n", text) if p.strip()]
    return "\n".join(f"  <p>{escape_xml(p)}</p>" for p in paragraphs)


def render_epub_xhtml(title: str, content: str) -> str:
    """The single XHTML document used as the default EPUB output."""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        "<!DOCTYPE html>\n"
        '<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops">\n'
        "<head>\n"
        f"  <title>{escape_xml(title)}</title>\n"
        f"  <style>\n{EPUB_STYLE}\n  </style>\n"
        "</head>\n"
        "<body>\n"
        f"  <h1>{escape_xml(title)}</h1>\n"
        f"{content_to_xhtml_paragraphs(content)}\n"
        "</body>\n"
        "</html>\n"
    )


CONTAINER_XML = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">\n'
    "  <rootfiles>\n"
    '    <rootfile full-path="OEBPS/content.opf" media-type="application/oebps-package+xml"/>\n'
    "  </rootfiles>\n"
    "</container>\n"
)


def _package_opf(book_id: str, title: str, author: str | None, modified: datetime) -> str:
    creator = f"    <dc:creator>{escape_xml(author)}</dc:creator>\n" if author else ""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<package xmlns="http://www.idpf.org/2007/opf" version="3.0" unique-identifier="uid">\n'
        '  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">\n'
        f'    <dc:identifier id="uid">urn:uuid:{book_id}</dc:identifier>\n'
        f"    <dc:title>{escape_xml(title)}</dc:title>\n"
        "    <dc:language>en</dc:language>\n"
        f"{creator}"
        f'    <meta property="dcterms:modified">{modified.strftime("%Y-%m-%dT%H:%M:%SZ")}</meta>\n'
        "  </metadata>\n"
        "  <manifest>\n"
        '    <item id="nav" href="nav.xhtml" media-type="application/xhtml+xml" properties="nav"/>\n'
        '    <item id="ncx" href="toc.ncx" media-type="application/x-dtbncx+xml"/>\n'
        '    <item id="content" href="content.xhtml" media-type="application/xhtml+xml"/>\n'
        "  </manifest>\n"
        '  <spine toc="ncx">\n'
        '    <itemref idref="content"/>\n'
        "  </spine>\n"
        "</package>\n"
    )


def _nav_xhtml(title: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        "<!DOCTYPE html>\n"
        '<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops">\n'
        f"<head><title>{escape_xml(title)}</title></head>\n"
        "<body>\n"
        '  <nav epub:type="toc" id="toc">\n'
        f'    <ol><li><a href="content.xhtml">{escape_xml(title)}</a></li></ol>\n'
        "  </nav>\n"
        "</body>\n"
        "</html>\n"
    )


def _toc_ncx(book_id: str, title: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="2005-1">\n'
        f'  <head><meta name="dtb:uid" content="urn:uuid:{book_id}"/></head>\n'
        f"  <docTitle><text>{escape_xml(title)}</text></docTitle>\n"
        "  <navMap>\n"
        '    <navPoint id="content" playOrder="1">\n'
        f"      <navLabel><text>{escape_xml(title)}</text></navLabel>\n"
        '      <content src="content.xhtml"/>\n'
        "    </navPoint>\n"
        "  </navMap>\n"
        "</ncx>\n"
    )


def build_epub_package(
    title: str,
    content: str,
    author: str | None,
    modified: datetime,
) -> bytes:
    """Zip-packaged EPUB 3. The mimetype entry is first and stored uncompressed."""
    book_id = str(uuid.uuid4())
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as epub:
        epub.writestr("mimetype", "application/epub+zip", compress_type=zipfile.ZIP_STORED)
        epub.writestr("META-INF/container.xml", CONTAINER_XML, compress_type=zipfile.ZIP_DEFLATED)
        files = {
            "OEBPS/content.opf": _package_opf(book_id, title, author, modified),
            "OEBPS/nav.xhtml": _nav_xhtml(title),
            "OEBPS/toc.ncx": _toc_ncx(book_id, title),
            "OEBPS/content.xhtml": render_epub_xhtml(title, content),
        }
        for name, data in files.items():
            epub.writestr(name, data, compress_type=zipfile.ZIP_DEFLATED)
    return buffer.getvalue()


# ─────────────────────────────────────────────────────────────
# Captured HTML post-processing
# ─────────────────────────────────────────────────────────────

ImageFetcher = Callable[[str], Awaitable[str]]


async def fetch_image_data_uri(src: str) -> str:
    """Download an image and return it as a base64 data URI."""
    validate_article_url(src)
    async with aiohttp.ClientSession() as session:
        async with session.get(src, timeout=aiohttp.ClientTimeout(total=IMAGE_TIMEOUT)) as resp:
            resp.raise_for_status()
            data = await resp.read()
            mime_type = resp.content_type or "application/octet-stream"
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


async def inline_images(soup: BeautifulSoup, page_url: str, fetch_image: ImageFetcher) -> None:
    """
    Replace image sources with data URIs. Images that fail are removed.

    Relative and protocol-relative sources are resolved against page_url
    first; anything that does not end up http(s) is left alone.
    """
    images = []
    for img in soup.find_all("img", src=True):
        src = urljoin(page_url, img["src"].strip())
        if src.startswith(("http://", "https://")):
            images.append((img, src))
    if not images:
        return

    results = await asyncio.gather(
        *(fetch_image(src) for _, src in images),
        return_exceptions=True,
    )
    for (img, src), result in zip(images, results):
        if isinstance(result, (aiohttp.ClientError, asyncio.TimeoutError, InvalidInputError, ValueError)):
            logger.debug(f"Dropping image {src}: {result}")
            img.decompose()
        elif isinstance(result, BaseException):
            raise result
        else:
            img["src"] = result
            if img.has_attr("srcset"):
                del img["srcset"]


def provenance_footer(soup: BeautifulSoup, url: str, saved_at: datetime):
    footer = soup.new_tag("div", attrs={"class": "articlevault-metadata"})
    rows = [
        ("Saved from:", None),
        ("Saved on:", saved_at.strftime("%Y-%m-%d %H:%M:%S UTC")),
        ("Saved with:", TOOL_NAME),
    ]
    for label, value in rows:
        p = soup.new_tag("p")
        strong = soup.new_tag("strong")
        strong.string = label
        p.append(strong)
        p.append(" ")
        if value is None:
            link = soup.new_tag("a", href=url)
            link.string = url
            p.append(link)
        else:
            p.append(value)
        footer.append(p)
    return footer


async def finalize_html_snapshot(
    page_html: str,
    url: str,
    saved_at: datetime,
    embed_assets: bool = True,
    fetch_image: ImageFetcher = fetch_image_data_uri,
) -> str:
    """
    Clean a captured page into an archive document.

    Removes scripts, frames and page clutter, inlines images when
    embed_assets is set, and appends the provenance footer to the body.
    """
    soup = BeautifulSoup(page_html, "html.parser")

    for tag in soup.find_all(["script", "noscript", "iframe"]):
        tag.decompose()
    for selector in CLUTTER_SELECTORS:
        for element in soup.select(selector):
            element.decompose()

    if embed_assets:
        await inline_images(soup, url, fetch_image)

    body = soup.body
    if body is None:
        body = soup.new_tag("body")
        soup.append(body)
    body.append(provenance_footer(soup, url, saved_at))

    return str(soup)
