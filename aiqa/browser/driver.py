"""
Playwright browser driver implementation.

One PlaywrightDriver instance is one browser session. It is owned by a single
test run, passed explicitly to the components that act on the page, and torn
down through its async context manager on every exit path.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from aiqa.config.settings import get_settings
from aiqa.core.interfaces import BrowserDriver
from aiqa.core.types import ElementInfo, PageSnapshot
from aiqa.error_handling.exceptions import ActionFailed, ActionTimeout, SessionError
from aiqa.monitoring.logger import get_logger, log_duration

# Collects visible interactive elements in DOM order, grouped by category.
SNAPSHOT_SCRIPT = """
() => {
  const describe = (category) => (el) => {
    const rect = el.getBoundingClientRect();
    return {
      category: category,
      tag: el.tagName.toLowerCase(),
      type: el.getAttribute('type') || null,
      text: (el.textContent || '').trim().substring(0, 100),
      value: typeof el.value === 'string' ? el.value : '',
      placeholder: el.getAttribute('placeholder') || '',
      aria_label: el.getAttribute('aria-label') || '',
      role: el.getAttribute('role') || '',
      id: el.id || '',
      name: el.getAttribute('name') || '',
      classes: Array.from(el.classList).join(' '),
      href: el.href || '',
      visible: el.offsetParent !== null,
      rect: {x: rect.x, y: rect.y, width: rect.width, height: rect.height},
    };
  };
  const collect = (selector, category) =>
    Array.from(document.querySelectorAll(selector))
      .map(describe(category))
      .filter((info) => info.visible);
  return {
    url: window.location.href,
    title: document.title,
    buttons: collect('button, [role="button"], input[type="button"], input[type="submit"]', 'buttons'),
    links: collect('a[href]', 'links'),
    inputs: collect('input:not([type="hidden"]):not([type="button"]):not([type="submit"]), textarea, select', 'inputs'),
    images: collect('img', 'images'),
  };
}
"""


class PlaywrightDriver(BrowserDriver):
    """Playwright-based browser session."""

    def __init__(
        self,
        browser_type: Optional[str] = None,
        headless: Optional[bool] = None,
        viewport_width: Optional[int] = None,
        viewport_height: Optional[int] = None,
        timeout: Optional[int] = None,
        slow_mo: Optional[int] = None,
        video_dir: Optional[Path] = None,
    ) -> None:
        """
        Initialize the Playwright driver.

        Args:
            browser_type: chromium, firefox or webkit
            headless: Run browser in headless mode
            viewport_width: Browser viewport width
            viewport_height: Browser viewport height
            timeout: Default timeout in milliseconds
            slow_mo: Delay between browser operations in milliseconds
            video_dir: Record session video into this directory when set
        """
        settings = get_settings()
        self.browser_type = browser_type or settings.browser_type
        self.headless = headless if headless is not None else settings.browser_headless
        self.viewport_width = viewport_width or settings.browser_viewport_width
        self.viewport_height = viewport_height or settings.browser_viewport_height
        self.timeout = timeout or settings.browser_timeout
        self.slow_mo = slow_mo if slow_mo is not None else settings.browser_slow_mo
        self.video_dir = video_dir

        self.logger = get_logger("aiqa.browser.driver")
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self.video_paths: List[str] = []

    async def start(self) -> None:
        """Start the browser and create a page."""
        try:
            if self._playwright is None:
                self._playwright = await async_playwright().start()

            if self._browser is None:
                self.logger.info(
                    "Starting browser",
                    extra={
                        "browser": self.browser_type,
                        "headless": self.headless,
                        "viewport": f"{self.viewport_width}x{self.viewport_height}",
                    },
                )
                launcher = getattr(self._playwright, self.browser_type)
                self._browser = await launcher.launch(
                    headless=self.headless,
                    slow_mo=self.slow_mo,
                )

            if self._context is None:
                viewport = {
                    "width": self.viewport_width,
                    "height": self.viewport_height,
                }
                context_options = {"viewport": viewport}
                if self.video_dir is not None:
                    self.video_dir.mkdir(parents=True, exist_ok=True)
                    context_options["record_video_dir"] = str(self.video_dir)
                    context_options["record_video_size"] = viewport
                self._context = await self._browser.new_context(**context_options)
                self._context.set_default_timeout(self.timeout)

            if self._page is None:
                self._page = await self._context.new_page()
                self._page.on("console", self._on_console)
                self._page.on("pageerror", self._on_page_error)
        except PlaywrightError as e:
            raise SessionError(
                f"Failed to start {self.browser_type} browser: {e}",
                browser=self.browser_type,
                cause=e,
            ) from e

    async def stop(self) -> None:
        """Stop the browser and cleanup resources."""
        video = self._page.video if self._page else None

        try:
            if self._context:
                # Closing the context flushes recorded videos to disk
                await self._context.close()
            if self._browser:
                await self._browser.close()
            if video is not None:
                self.video_paths.append(str(await video.path()))
        except PlaywrightError as e:
            self.logger.warning("Error closing browser", extra={"error": str(e)})
        finally:
            self._page = None
            self._context = None
            self._browser = None
            if self._playwright:
                await self._playwright.stop()
                self._playwright = None

        self.logger.info("Browser stopped")

    def _on_console(self, message) -> None:
        self.logger.debug(f"[Browser Console] {message.type}: {message.text}")

    def _on_page_error(self, error) -> None:
        self.logger.warning(f"[Browser Error] {error}")

    def _require_page(self) -> Page:
        if not self._page:
            raise SessionError("Browser not started. Call start() first.")
        return self._page

    def _budget(self, timeout_ms: Optional[int]) -> int:
        return self.timeout if timeout_ms is None else timeout_ms

    @asynccontextmanager
    async def _translate_errors(
        self, action: str, locator: Optional[str], timeout_ms: Optional[int]
    ) -> AsyncIterator[None]:
        """Map Playwright failures onto the engine's action errors."""
        try:
            yield
        except PlaywrightTimeoutError as e:
            raise ActionTimeout(
                f"{action} timed out after {self._budget(timeout_ms)}ms"
                + (f" waiting for {locator}" if locator else ""),
                action=action,
                locator=locator,
                timeout_ms=self._budget(timeout_ms),
                cause=e,
            ) from e
        except PlaywrightError as e:
            raise ActionFailed(
                f"{action} failed: {e.message}",
                action=action,
                locator=locator,
                cause=e,
            ) from e

    async def navigate(self, url: str, timeout_ms: Optional[int] = None) -> None:
        """Navigate to a URL."""
        page = self._require_page()

        self.logger.info("Navigating to URL", extra={"url": url})

        with log_duration("page_navigation", url=url):
            async with self._translate_errors("navigate", url, timeout_ms):
                await page.goto(
                    url, wait_until="domcontentloaded", timeout=self._budget(timeout_ms)
                )

    async def click(self, locator: str, timeout_ms: Optional[int] = None) -> None:
        """Click the first element matched by the locator."""
        page = self._require_page()
        self.logger.debug("Clicking element", extra={"locator": locator})
        async with self._translate_errors("click", locator, timeout_ms):
            await page.locator(locator).first.click(timeout=self._budget(timeout_ms))

    async def fill(
        self, locator: str, text: str, timeout_ms: Optional[int] = None
    ) -> None:
        """Fill a text field."""
        page = self._require_page()
        # Only the length is logged; the payload may be a credential
        self.logger.debug(
            "Filling element", extra={"locator": locator, "length": len(text)}
        )
        async with self._translate_errors("type", locator, timeout_ms):
            await page.locator(locator).first.fill(
                text, timeout=self._budget(timeout_ms)
            )

    async def hover(self, locator: str, timeout_ms: Optional[int] = None) -> None:
        """Hover over an element."""
        page = self._require_page()
        self.logger.debug("Hovering element", extra={"locator": locator})
        async with self._translate_errors("hover", locator, timeout_ms):
            await page.locator(locator).first.hover(timeout=self._budget(timeout_ms))

    async def select_option(
        self, locator: str, value: str, timeout_ms: Optional[int] = None
    ) -> None:
        """Select an option by value or label."""
        page = self._require_page()
        self.logger.debug(
            "Selecting option", extra={"locator": locator, "option": value}
        )
        async with self._translate_errors("select", locator, timeout_ms):
            await page.locator(locator).first.select_option(
                value, timeout=self._budget(timeout_ms)
            )

    async def press_key(self, key: str) -> None:
        """Press a keyboard key."""
        page = self._require_page()
        self.logger.debug("Pressing key", extra={"key": key})
        async with self._translate_errors("press", None, None):
            await page.keyboard.press(key)

    async def wait_for_selector(
        self, locator: str, state: str = "visible", timeout_ms: Optional[int] = None
    ) -> None:
        """Wait until the first matching element reaches the given state."""
        page = self._require_page()
        self.logger.debug(
            "Waiting for element", extra={"locator": locator, "state": state}
        )
        async with self._translate_errors("wait", locator, timeout_ms):
            await page.locator(locator).first.wait_for(
                state=state, timeout=self._budget(timeout_ms)
            )

    async def wait(self, milliseconds: int) -> None:
        """Wait for specified duration."""
        page = self._require_page()
        self.logger.debug("Waiting", extra={"milliseconds": milliseconds})
        async with self._translate_errors("wait", None, milliseconds):
            await page.wait_for_timeout(milliseconds)

    async def text_content(
        self, locator: str, timeout_ms: Optional[int] = None
    ) -> str:
        """Return the text content of the first matching element."""
        page = self._require_page()
        async with self._translate_errors("verify", locator, timeout_ms):
            element = page.locator(locator).first
            await element.wait_for(state="attached", timeout=self._budget(timeout_ms))
            text = await element.text_content(timeout=self._budget(timeout_ms))
        return text or ""

    async def get_page_url(self) -> str:
        """Get the current page URL."""
        return self._require_page().url

    async def capture_snapshot(self) -> PageSnapshot:
        """Capture a fresh inventory of the page's interactive elements."""
        page = self._require_page()

        with log_duration("page_snapshot") as metric:
            async with self._translate_errors("snapshot", None, None):
                raw = await page.evaluate(SNAPSHOT_SCRIPT)

            snapshot = PageSnapshot(
                url=raw.get("url", ""),
                title=raw.get("title", ""),
                **{
                    category: [
                        ElementInfo(index=index, **info)
                        for index, info in enumerate(raw.get(category, []))
                    ]
                    for category in ("buttons", "links", "inputs", "images")
                },
            )
            metric["element_count"] = snapshot.element_count

        return snapshot

    async def save_screenshot(self, path: Path, full_page: bool = True) -> None:
        """
        Save a screenshot to file.

        Args:
            path: Path to save the screenshot
            full_page: Capture the full scrollable page
        """
        page = self._require_page()
        path.parent.mkdir(parents=True, exist_ok=True)
        self.logger.info("Saving screenshot", extra={"path": str(path)})
        async with self._translate_errors("screenshot", None, None):
            await page.screenshot(path=str(path), type="png", full_page=full_page)

    @property
    def page(self) -> Optional[Page]:
        """Get the current page object (for advanced operations)."""
        return self._page

