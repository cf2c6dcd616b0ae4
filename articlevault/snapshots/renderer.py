"""
Browser rendering - headless Chromium via Playwright.

BrowserPool hands out RenderingSessions as scoped resources:

    async with pool.session() as session:
        pdf = await session.render_pdf(url, css, header, footer)

Every session owns its own browser, closed on every exit path (errors and
cancellation included). A semaphore bounds how many are open at once.

Requires browser binaries: playwright install chromium
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import (
    Browser,
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeout,
    async_playwright,
)

from ..exceptions import PipelineTimeoutError, SnapshotError

logger = logging.getLogger(__name__)

LAUNCH_ARGS = [
    "--disable-gpu",
    "--disable-dev-shm-usage",
    "--disable-setuid-sandbox",
    "--no-sandbox",
]


class RenderingSession:
    """One browser, used for every PDF/HTML item of a request or batch."""

    def __init__(self, browser: "Browser", timeout: int = 30000):
        self._browser = browser
        self.timeout = timeout  # milliseconds

    async def _open(self, url: str, css: str) -> "Page":
        page = await self._browser.new_page()
        try:
            await page.goto(url, timeout=self.timeout, wait_until="networkidle")
            await page.add_style_tag(content=css)
        except BaseException:
            await page.close()
            raise
        return page

    async def render_pdf(
        self,
        url: str,
        css: str,
        header_template: str,
        footer_template: str,
    ) -> bytes:
        """Print the page to an A4 PDF with 1cm margins."""
        page = None
        try:
            page = await self._open(url, css)
            return await page.pdf(
                format="A4",
                print_background=True,
                margin={"top": "1cm", "right": "1cm", "bottom": "1cm", "left": "1cm"},
                display_header_footer=True,
                header_template=header_template,
                footer_template=footer_template,
            )
        except PlaywrightTimeout as e:
            logger.warning(f"Timeout rendering PDF for {url}")
            raise PipelineTimeoutError(
                f"Page load timed out after {self.timeout}ms", details={"url": url}
            ) from e
        except PlaywrightError as e:
            logger.error(f"Browser error rendering PDF for {url}: {e}")
            raise SnapshotError(f"Failed to render PDF: {e}", details={"url": url}) from e
        finally:
            if page:
                await page.close()

    async def render_html(self, url: str, css: str) -> str:
        """Serialized DOM of the page after the snapshot CSS is applied."""
        page = None
        try:
            page = await self._open(url, css)
            return await page.content()
        except PlaywrightTimeout as e:
            logger.warning(f"Timeout rendering HTML for {url}")
            raise PipelineTimeoutError(
                f"Page load timed out after {self.timeout}ms", details={"url": url}
            ) from e
        except PlaywrightError as e:
            logger.error(f"Browser error rendering HTML for {url}: {e}")
            raise SnapshotError(f"Failed to render HTML: {e}", details={"url": url}) from e
        finally:
            if page:
                await page.close()


class BrowserPool:
    """
    Bounded source of rendering sessions.

    The Playwright driver starts lazily on first use and stops in close().
    """

    def __init__(self, max_sessions: int = 2, timeout: int = 30000):
        self.max_sessions = max_sessions
        self.timeout = timeout
        self._semaphore = asyncio.Semaphore(max_sessions)
        self._playwright = None
        self._lock = asyncio.Lock()
        self._open_sessions = 0

    @property
    def open_sessions(self) -> int:
        return self._open_sessions

    async def _driver(self):
        async with self._lock:
            if self._playwright is None:
                self._playwright = await async_playwright().start()
                logger.info("Started Playwright driver")
            return self._playwright

    @asynccontextmanager
    async def session(self) -> AsyncIterator[RenderingSession]:
        async with self._semaphore:
            browser: Optional["Browser"] = None
            try:
                driver = await self._driver()
                browser = await driver.chromium.launch(headless=True, args=LAUNCH_ARGS)
            except PlaywrightError as e:
                raise SnapshotError(f"Failed to launch browser: {e}") from e

            self._open_sessions += 1
            try:
                yield RenderingSession(browser, timeout=self.timeout)
            finally:
                self._open_sessions -= 1
                try:
                    await browser.close()
                except PlaywrightError as e:
                    logger.warning(f"Error closing browser: {e}")

    async def close(self) -> None:
        async with self._lock:
            if self._playwright:
                await self._playwright.stop()
                self._playwright = None
                logger.info("Stopped Playwright driver")
