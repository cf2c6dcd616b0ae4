"""
Snapshot generator - render an article into one export format.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from ..exceptions import InvalidInputError, SnapshotError
from ..models import Article, SnapshotFormat, StylingOptions, utcnow
from .filenames import MIME_TYPES, snapshot_filename
from .renderer import RenderingSession
from .styling import build_snapshot_css, pdf_footer_template, pdf_header_template
from .transforms import (
    ImageFetcher,
    build_epub_package,
    fetch_image_data_uri,
    finalize_html_snapshot,
    render_epub_xhtml,
    render_markdown,
    render_text,
)

logger = logging.getLogger(__name__)


@dataclass
class SnapshotResult:
    content: bytes | str
    mime_type: str
    filename: str
    size: int

    def as_bytes(self) -> bytes:
        if isinstance(self.content, bytes):
            return self.content
        return self.content.encode("utf-8")


def parse_format(value: str) -> SnapshotFormat:
    try:
        return SnapshotFormat(value)
    except ValueError:
        allowed = ", ".join(f.value for f in SnapshotFormat)
        raise InvalidInputError(f"Unsupported snapshot format '{value}'. Use one of: {allowed}")


def _result(content: bytes | str, fmt: SnapshotFormat, title: str) -> SnapshotResult:
    size = len(content) if isinstance(content, bytes) else len(content.encode("utf-8"))
    return SnapshotResult(
        content=content,
        mime_type=MIME_TYPES[fmt],
        filename=snapshot_filename(title, fmt),
        size=size,
    )


class SnapshotGenerator:
    """
    Produces SnapshotResults for every supported format.

    PDF and HTML need a RenderingSession from the BrowserPool; EPUB,
    Markdown and text are built from the stored article content.
    """

    def __init__(
        self,
        epub_package: bool = False,
        fetch_image: ImageFetcher = fetch_image_data_uri,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.epub_package = epub_package
        self.fetch_image = fetch_image
        self.clock = clock

    async def generate(
        self,
        fmt: SnapshotFormat | str,
        article: Article,
        session: RenderingSession | None = None,
        styling: StylingOptions | None = None,
        embed_assets: bool = True,
    ) -> SnapshotResult:
        fmt = parse_format(fmt) if isinstance(fmt, str) else fmt

        if fmt.needs_browser and session is None:
            raise SnapshotError(f"{fmt.value.upper()} snapshots require browser rendering")

        if fmt == SnapshotFormat.PDF:
            result = await self._pdf(article, session, styling)
        elif fmt == SnapshotFormat.HTML:
            result = await self._html(article, session, styling, embed_assets)
        elif fmt == SnapshotFormat.EPUB:
            result = self._epub(article)
        elif fmt == SnapshotFormat.MARKDOWN:
            content = render_markdown(
                article.title, article.url, article.content, self.clock(),
                author=article.author, tags=article.tags,
            )
            result = _result(content, fmt, article.title)
        else:
            content = render_text(article.title, article.url, article.content, self.clock())
            result = _result(content, fmt, article.title)

        logger.info(f"Generated {fmt.value} snapshot for article {article.id} ({result.size} bytes)")
        return result

    async def _pdf(
        self,
        article: Article,
        session: RenderingSession,
        styling: StylingOptions | None,
    ) -> SnapshotResult:
        pdf = await session.render_pdf(
            article.url,
            build_snapshot_css(styling),
            pdf_header_template(article.title),
            pdf_footer_template(),
        )
        return _result(bytes(pdf), SnapshotFormat.PDF, article.title)

    async def _html(
        self,
        article: Article,
        session: RenderingSession,
        styling: StylingOptions | None,
        embed_assets: bool,
    ) -> SnapshotResult:
        page_html = await session.render_html(article.url, build_snapshot_css(styling))
        document = await finalize_html_snapshot(
            page_html,
            article.url,
            self.clock(),
            embed_assets=embed_assets,
            fetch_image=self.fetch_image,
        )
        return _result(document, SnapshotFormat.HTML, article.title)

    def _epub(self, article: Article) -> SnapshotResult:
        if self.epub_package:
            content = build_epub_package(article.title, article.content, article.author, self.clock())
        else:
            content = render_epub_xhtml(article.title, article.content)
        return _result(content, SnapshotFormat.EPUB, article.title)
