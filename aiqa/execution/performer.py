"""
Action performer: one primitive browser action or verification per call.
"""

import re
from typing import Optional

from aiqa.core.interfaces import BrowserDriver
from aiqa.core.types import ActionType, Step
from aiqa.error_handling.exceptions import ActionFailed, UnsupportedAction
from aiqa.monitoring.logger import get_logger

QUOTED = re.compile(r"[\"']([^\"']+)[\"']")

DEFAULT_WAIT_MS = 1000

# Verification kinds, checked in this order
VERIFY_HIDDEN = "hidden"
VERIFY_VISIBLE = "visible"
VERIFY_TEXT = "text"
VERIFY_URL = "url"
VERIFY_ATTACHED = "attached"


def classify_assertion(assertion: Optional[str]) -> str:
    """Map a free-text assertion to the kind of check it asks for."""
    if not assertion:
        return VERIFY_ATTACHED
    lowered = assertion.lower()
    if "hidden" in lowered or "not visible" in lowered:
        return VERIFY_HIDDEN
    if "visible" in lowered:
        return VERIFY_VISIBLE
    if "text" in lowered:
        return VERIFY_TEXT
    if "url" in lowered:
        return VERIFY_URL
    return VERIFY_ATTACHED


def expected_substring(assertion: Optional[str]) -> Optional[str]:
    """First single- or double-quoted substring of an assertion."""
    if not assertion:
        return None
    match = QUOTED.search(assertion)
    return match.group(1) if match else None


def requires_element(step: Step) -> bool:
    """Whether the step's target must be resolved to an element first."""
    action = step.action_type
    if action in (ActionType.NAVIGATE, ActionType.PRESS) or action is None:
        return False
    if not step.target:
        return False
    if action == ActionType.VERIFY:
        return classify_assertion(step.assertion) != VERIFY_URL
    return True


class ActionPerformer:
    """Executes a step's action against a resolved locator."""

    def __init__(self, driver: BrowserDriver) -> None:
        self.driver = driver
        self.logger = get_logger("aiqa.execution.performer")

    async def perform(
        self, step: Step, locator: Optional[str], timeout_ms: int
    ) -> None:
        """
        Perform the step's action.

        Args:
            step: Step being executed
            locator: Resolved locator (None for element-less actions)
            timeout_ms: Time budget for the action

        Raises:
            UnsupportedAction: For an action outside the closed set
            ActionTimeout: When the browser gives up waiting
            ActionFailed: When the action or its assertion fails
        """
        action = step.action_type
        if action is None:
            raise UnsupportedAction(step.action)

        self.logger.debug(
            "Performing action",
            extra={"action": action.value, "locator": locator, "step_id": step.step_id},
        )

        if action == ActionType.NAVIGATE:
            if not step.target:
                raise ActionFailed("navigate requires a URL target", action=action.value)
            await self.driver.navigate(step.target, timeout_ms=timeout_ms)

        elif action == ActionType.CLICK:
            await self.driver.click(self._need(locator, action), timeout_ms=timeout_ms)

        elif action == ActionType.TYPE:
            await self.driver.fill(
                self._need(locator, action), step.data or "", timeout_ms=timeout_ms
            )

        elif action == ActionType.WAIT:
            if locator:
                await self.driver.wait_for_selector(
                    locator, state="visible", timeout_ms=timeout_ms
                )
            else:
                await self.driver.wait(self._wait_duration(step.data))

        elif action == ActionType.VERIFY:
            await self.verify(locator, step.assertion, timeout_ms)

        elif action == ActionType.HOVER:
            await self.driver.hover(self._need(locator, action), timeout_ms=timeout_ms)

        elif action == ActionType.SELECT:
            if step.data is None:
                raise ActionFailed(
                    "select requires an option value", action=action.value, locator=locator
                )
            await self.driver.select_option(
                self._need(locator, action), step.data, timeout_ms=timeout_ms
            )

        elif action == ActionType.PRESS:
            key = step.data or step.target
            if not key:
                raise ActionFailed("press requires a key", action=action.value)
            await self.driver.press_key(key)

    async def verify(
        self, locator: Optional[str], assertion: Optional[str], timeout_ms: int
    ) -> None:
        """Check an assertion against the page."""
        kind = classify_assertion(assertion)
        expected = expected_substring(assertion)

        if kind == VERIFY_URL:
            current_url = await self.driver.get_page_url()
            if expected and expected not in current_url:
                raise ActionFailed(
                    f'Expected URL to contain "{expected}"', action="verify"
                )
            return

        target = self._need(locator, ActionType.VERIFY)

        if kind == VERIFY_TEXT:
            text = await self.driver.text_content(target, timeout_ms=timeout_ms)
            if expected and expected not in text:
                raise ActionFailed(
                    f'Expected text "{expected}" not found',
                    action="verify",
                    locator=target,
                )
            return

        await self.driver.wait_for_selector(target, state=kind, timeout_ms=timeout_ms)

    @staticmethod
    def _need(locator: Optional[str], action: ActionType) -> str:
        if not locator:
            raise ActionFailed(f"{action.value} requires a target", action=action.value)
        return locator

    @staticmethod
    def _wait_duration(data: Optional[str]) -> int:
        if not data:
            return DEFAULT_WAIT_MS
        try:
            return int(float(data))
        except ValueError as e:
            raise ActionFailed(
                f"Invalid wait duration: {data}", action="wait", cause=e
            ) from e
