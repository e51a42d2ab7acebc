"""
Core interfaces and abstract base classes for the AIQA engine.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from aiqa.core.types import ElementInfo, OracleMatch, PageSnapshot


class BrowserDriver(ABC):
    """Abstract interface for the single owned browser session."""

    @abstractmethod
    async def start(self) -> None:
        """Acquire the browser, context and page."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Release every browser resource."""
        pass

    @abstractmethod
    async def navigate(self, url: str, timeout_ms: Optional[int] = None) -> None:
        """Navigate to a URL."""
        pass

    @abstractmethod
    async def click(self, locator: str, timeout_ms: Optional[int] = None) -> None:
        """Click the element matched by the locator."""
        pass

    @abstractmethod
    async def fill(
        self, locator: str, text: str, timeout_ms: Optional[int] = None
    ) -> None:
        """Fill a text field matched by the locator."""
        pass

    @abstractmethod
    async def hover(self, locator: str, timeout_ms: Optional[int] = None) -> None:
        """Hover over the element matched by the locator."""
        pass

    @abstractmethod
    async def select_option(
        self, locator: str, value: str, timeout_ms: Optional[int] = None
    ) -> None:
        """Select an option of a select element."""
        pass

    @abstractmethod
    async def press_key(self, key: str) -> None:
        """Press a keyboard key."""
        pass

    @abstractmethod
    async def wait_for_selector(
        self, locator: str, state: str = "visible", timeout_ms: Optional[int] = None
    ) -> None:
        """Wait until the element reaches the given state."""
        pass

    @abstractmethod
    async def wait(self, milliseconds: int) -> None:
        """Wait for a fixed duration."""
        pass

    @abstractmethod
    async def text_content(
        self, locator: str, timeout_ms: Optional[int] = None
    ) -> str:
        """Return the text content of the element."""
        pass

    @abstractmethod
    async def get_page_url(self) -> str:
        """Get the current page URL."""
        pass

    @abstractmethod
    async def capture_snapshot(self) -> PageSnapshot:
        """Capture a fresh inventory of interactive elements."""
        pass

    @abstractmethod
    async def save_screenshot(self, path: Path, full_page: bool = True) -> None:
        """Save a screenshot to a file."""
        pass

    async def __aenter__(self) -> "BrowserDriver":
        try:
            await self.start()
        except BaseException:
            await self.stop()
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()


class ElementOracle(ABC):
    """
    External AI capability that picks the element best matching a description.

    Implementations are untrusted: any transport or parse failure must be
    raised as OracleUnavailable so that callers can degrade to "no match".
    """

    @abstractmethod
    async def match(
        self,
        candidates: Sequence[ElementInfo],
        description: str,
        action: str,
        page_context: Dict[str, Any],
    ) -> OracleMatch:
        """
        Choose a candidate for the description.

        Args:
            candidates: Bounded candidate list in DOM order
            description: Natural-language target description
            action: Intended action kind
            page_context: Page title and URL

        Returns:
            Parsed match with a 1-based candidate index
        """
        pass


class ArtifactCollector(ABC):
    """Producer of evidence artifacts keyed by step identity."""

    @abstractmethod
    async def capture(self, step_id: str, kind: str = "failure") -> Optional[str]:
        """
        Capture a screenshot for a step.

        Returns:
            Reference to the artifact, or None when capture failed
        """
        pass

    @abstractmethod
    async def collect_videos(self) -> List[str]:
        """Return references to recorded session videos."""
        pass
