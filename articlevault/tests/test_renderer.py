"""
Tests for the Playwright-backed browser pool and rendering sessions.

A fake driver stands in for Playwright so no browser binaries are needed.
"""

import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from articlevault.exceptions import PipelineTimeoutError, SnapshotError
from articlevault.snapshots import BrowserPool, RenderingSession


class FakePage:
    def __init__(self, goto_error=None):
        self.goto_error = goto_error
        self.closed = False
        self.styles = []

    async def goto(self, url, timeout=None, wait_until=None):
        if self.goto_error is not None:
            raise self.goto_error

    async def add_style_tag(self, content):
        self.styles.append(content)

    async def pdf(self, **options):
        return b"%PDF-1.7"

    async def content(self):
        return "<html><body>rendered</body></html>"

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, goto_error=None):
        self.goto_error = goto_error
        self.pages = []
        self.closed = False

    async def new_page(self):
        page = FakePage(self.goto_error)
        self.pages.append(page)
        return page

    async def close(self):
        self.closed = True


class FakeChromium:
    def __init__(self, launch_error=None):
        self.launch_error = launch_error
        self.browsers = []

    async def launch(self, headless=True, args=None):
        if self.launch_error is not None:
            raise self.launch_error
        browser = FakeBrowser()
        self.browsers.append(browser)
        return browser


class FakeDriver:
    def __init__(self, launch_error=None):
        self.chromium = FakeChromium(launch_error)
        self.stopped = False

    async def stop(self):
        self.stopped = True


def pool_with(driver, max_sessions=2):
    pool = BrowserPool(max_sessions=max_sessions, timeout=1000)
    pool._playwright = driver
    return pool


class TestBrowserPool:

    @pytest.mark.asyncio
    async def test_session_closes_browser(self):
        driver = FakeDriver()
        pool = pool_with(driver)

        async with pool.session() as session:
            assert isinstance(session, RenderingSession)
            assert pool.open_sessions == 1

        assert pool.open_sessions == 0
        assert driver.chromium.browsers[0].closed is True

    @pytest.mark.asyncio
    async def test_browser_closed_when_body_raises(self):
        driver = FakeDriver()
        pool = pool_with(driver)

        with pytest.raises(RuntimeError):
            async with pool.session():
                raise RuntimeError("boom")

        assert driver.chromium.browsers[0].closed is True
        assert pool.open_sessions == 0

    @pytest.mark.asyncio
    async def test_browser_closed_on_cancellation(self):
        driver = FakeDriver()
        pool = pool_with(driver)
        entered = asyncio.Event()

        async def hold_session():
            async with pool.session():
                entered.set()
                await asyncio.sleep(10)

        task = asyncio.create_task(hold_session())
        await entered.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert driver.chromium.browsers[0].closed is True
        assert pool.open_sessions == 0

    @pytest.mark.asyncio
    async def test_launch_failure_is_snapshot_error(self):
        pool = pool_with(FakeDriver(launch_error=PlaywrightError("no chromium")))

        with pytest.raises(SnapshotError, match="Failed to launch browser"):
            async with pool.session():
                pass

        assert pool.open_sessions == 0

    @pytest.mark.asyncio
    async def test_sessions_are_bounded(self):
        driver = FakeDriver()
        pool = pool_with(driver, max_sessions=1)
        peak = 0

        async def use():
            nonlocal peak
            async with pool.session():
                peak = max(peak, pool.open_sessions)
                await asyncio.sleep(0)

        await asyncio.gather(use(), use(), use())

        assert peak == 1
        assert len(driver.chromium.browsers) == 3
        assert all(b.closed for b in driver.chromium.browsers)

    @pytest.mark.asyncio
    async def test_close_stops_driver(self):
        driver = FakeDriver()
        pool = pool_with(driver)

        await pool.close()

        assert driver.stopped is True


class TestRenderingSession:

    @pytest.mark.asyncio
    async def test_render_pdf_applies_css_and_closes_page(self):
        browser = FakeBrowser()
        session = RenderingSession(browser, timeout=1000)

        pdf = await session.render_pdf("https://example.com/a", "body{}", "<span></span>", "<span></span>")

        assert pdf.startswith(b"%PDF")
        assert browser.pages[0].styles == ["body{}"]
        assert browser.pages[0].closed is True

    @pytest.mark.asyncio
    async def test_goto_timeout_is_pipeline_timeout(self):
        browser = FakeBrowser(goto_error=PlaywrightTimeout("Timeout 1000ms exceeded"))
        session = RenderingSession(browser, timeout=1000)

        with pytest.raises(PipelineTimeoutError) as exc_info:
            await session.render_pdf("https://example.com/a", "", "", "")

        assert exc_info.value.code == "TIMEOUT"
        assert browser.pages[0].closed is True

    @pytest.mark.asyncio
    async def test_goto_error_is_snapshot_error(self):
        browser = FakeBrowser(goto_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))
        session = RenderingSession(browser, timeout=1000)

        with pytest.raises(SnapshotError, match="Failed to render HTML"):
            await session.render_html("https://example.invalid/", "")

        assert browser.pages[0].closed is True
