"""
Failure evidence capture.

Capture is best effort: a screenshot that cannot be taken is logged and
reported as None, never as a step or run failure.
"""

import time
from pathlib import Path
from typing import List, Optional

from aiqa.core.interfaces import ArtifactCollector, BrowserDriver
from aiqa.error_handling.exceptions import AIQAError
from aiqa.monitoring.logger import get_logger


class ArtifactCapture(ArtifactCollector):
    """Writes screenshots under <base_dir>/<test_id>/screenshots."""

    def __init__(
        self,
        driver: BrowserDriver,
        test_id: str,
        base_dir: Path,
        full_page: bool = True,
    ) -> None:
        self.driver = driver
        self.test_id = test_id
        self.base_dir = Path(base_dir)
        self.full_page = full_page
        self.logger = get_logger("aiqa.execution.artifacts", test_id=test_id)

    @property
    def screenshot_dir(self) -> Path:
        return self.base_dir / self.test_id / "screenshots"

    @property
    def video_dir(self) -> Path:
        return self.base_dir / self.test_id / "videos"

    def screenshot_path(self, step_id: str, kind: str) -> Path:
        filename = f"{step_id}_{kind}_{int(time.time() * 1000)}.png"
        return self.screenshot_dir / filename

    async def capture(self, step_id: str, kind: str = "failure") -> Optional[str]:
        path = self.screenshot_path(step_id, kind)
        try:
            await self.driver.save_screenshot(path, full_page=self.full_page)
        except (AIQAError, OSError) as e:
            self.logger.warning(
                "Failed to capture screenshot",
                extra={"step_id": step_id, "error": str(e)},
            )
            return None

        self.logger.info(
            "Screenshot saved", extra={"step_id": step_id, "path": str(path)}
        )
        return str(path)

    async def collect_videos(self) -> List[str]:
        """Video files recorded by the session, available after it stops."""
        paths = list(getattr(self.driver, "video_paths", []) or [])
        if not paths and self.video_dir.exists():
            paths = [str(p) for p in sorted(self.video_dir.glob("*.webm"))]
        return paths
