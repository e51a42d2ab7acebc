"""
Element resolver: deterministic cascade first, AI-matching oracle last.
"""

from typing import Optional

from aiqa.config.settings import Settings, get_settings
from aiqa.core.interfaces import BrowserDriver, ElementOracle
from aiqa.core.types import (
    ActionType,
    ConfidenceLevel,
    ResolutionResult,
    ResolutionStrategy,
)
from aiqa.error_handling.exceptions import OracleUnavailable, ResolutionNotFound
from aiqa.monitoring.logger import get_logger
from aiqa.resolution.cascade import (
    generate_selector,
    is_structural_locator,
    relevant_candidates,
    resolve_in_snapshot,
)


class ElementResolver:
    """Turns a target description into a locator on the current page."""

    def __init__(
        self,
        driver: BrowserDriver,
        oracle: Optional[ElementOracle] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        """
        Args:
            driver: Browser session used to snapshot the page
            oracle: Optional AI fallback; None disables the ai-match strategy
            settings: Settings override
        """
        self.driver = driver
        self.oracle = oracle
        self.settings = settings or get_settings()
        self.logger = get_logger("aiqa.resolution.resolver")

    async def resolve(self, description: str, action) -> ResolutionResult:
        """
        Resolve a description for an intended action.

        Raises:
            ResolutionNotFound: When no strategy, including the oracle, matches
        """
        action_value = action.value if isinstance(action, ActionType) else str(action)

        if is_structural_locator(description):
            return ResolutionResult(
                locator=description.strip(),
                strategy=ResolutionStrategy.LITERAL,
                confidence=ConfidenceLevel.HIGH,
                rationale="Target is already a selector",
            )

        snapshot = await self.driver.capture_snapshot()
        self.logger.debug(
            "Resolving element",
            extra={
                "action": action_value,
                "description": description,
                "element_count": snapshot.element_count,
            },
        )

        result = resolve_in_snapshot(
            description,
            action,
            snapshot,
            max_text_length=self.settings.selector_text_max_length,
        )
        if result is None:
            result = await self._ask_oracle(description, action_value, snapshot)

        if result is None:
            raise ResolutionNotFound(
                f'Could not find element: "{description}"',
                description=description,
                action=action_value,
            )

        self.logger.info(
            "Element resolved",
            extra={
                "strategy": result.strategy.value,
                "confidence": result.confidence.value,
                "locator": result.locator,
            },
        )
        return result

    async def _ask_oracle(
        self, description: str, action: str, snapshot
    ) -> Optional[ResolutionResult]:
        if self.oracle is None or not self.settings.oracle_enabled:
            return None

        try:
            action_type = ActionType(action)
        except ValueError:
            action_type = None
        candidates = relevant_candidates(
            snapshot, action_type, limit=self.settings.oracle_candidate_limit
        )
        if not candidates:
            return None

        try:
            match = await self.oracle.match(
                candidates,
                description,
                action,
                {"url": snapshot.url, "title": snapshot.title},
            )
        except OracleUnavailable as e:
            self.logger.warning(
                "Element oracle unavailable", extra={"error": e.message}
            )
            return None
        except Exception as e:
            self.logger.warning(
                "Element oracle failed",
                extra={"error": str(e), "error_type": type(e).__name__},
                exc_info=True,
            )
            return None

        # A direct implementation may skip the range check
        if match.index > len(candidates):
            self.logger.warning(
                "Element oracle index out of range", extra={"index": match.index}
            )
            return None

        element = candidates[match.index - 1]
        return ResolutionResult(
            locator=generate_selector(element, self.settings.selector_text_max_length),
            strategy=ResolutionStrategy.AI_MATCH,
            confidence=match.confidence,
            rationale=match.rationale,
            element=element,
        )
