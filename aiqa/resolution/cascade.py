"""
Deterministic element resolution cascade.

Everything here is a pure function of a description, an action and a
PageSnapshot. Strategies run in a fixed order; the first strategy with any hit
wins, and within a strategy the first element in DOM order wins.
"""

import re
from typing import Callable, List, Optional, Sequence, Tuple

from aiqa.core.types import (
    TEXT_ENTRY_ACTIONS,
    ActionType,
    ConfidenceLevel,
    ElementInfo,
    PageSnapshot,
    ResolutionResult,
    ResolutionStrategy,
)

STRUCTURAL_PREFIXES = ("xpath=", "css=", "text=", "role=", "id=", "//", "(//")

# tag, #id, .class and [attr] forms, optionally with pseudo-classes
_SIMPLE_SELECTOR = re.compile(
    r"^(?:[a-z][a-z0-9]*)?"
    r"(?:[#.][A-Za-z_][\w-]*|\[[^\]]+\])+"
    r"(?::[\w-]+(?:\([^)]*\))?)*$"
)

_LEADING_ARTICLES = re.compile(r"^(?:(?:the|a|an)\b\s*)+", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")

# Words people use for an element besides its tag and role attribute
ROLE_ALIASES = {
    "a": ("link",),
    "input": ("input", "field", "textbox", "box"),
    "textarea": ("field", "textbox", "box"),
    "select": ("dropdown", "select", "menu"),
    "img": ("image",),
}

DEFAULT_CANDIDATE_LIMIT = 20
DEFAULT_TEXT_MAX_LENGTH = 50

StrategyFn = Callable[[str, Optional[ActionType], Sequence[ElementInfo]], Optional[ElementInfo]]


def is_structural_locator(description: Optional[str]) -> bool:
    """Return True when the description is already a selector."""
    if not description:
        return False
    candidate = description.strip()
    if candidate.startswith(STRUCTURAL_PREFIXES):
        return True
    return bool(_SIMPLE_SELECTOR.match(candidate))


def _compact(text: str) -> str:
    return _WHITESPACE.sub("", text).lower()


def match_exact_text(
    description: str, action: Optional[ActionType], elements: Sequence[ElementInfo]
) -> Optional[ElementInfo]:
    """Case-sensitive containment of the full description in element text."""
    for element in elements:
        if description in element.text:
            return element
    return None


def match_partial_text(
    description: str, action: Optional[ActionType], elements: Sequence[ElementInfo]
) -> Optional[ElementInfo]:
    """Case-insensitive match that ignores whitespace differences."""
    words = description.split()
    if not words:
        return None
    pattern = re.compile(r"\s+".join(re.escape(word) for word in words), re.IGNORECASE)
    compact = _compact(description)
    for element in elements:
        if pattern.search(element.text) or compact in _compact(element.text):
            return element
    return None


def match_aria_label(
    description: str, action: Optional[ActionType], elements: Sequence[ElementInfo]
) -> Optional[ElementInfo]:
    lowered = description.lower()
    for element in elements:
        if element.aria_label and lowered in element.aria_label.lower():
            return element
    return None


def match_placeholder(
    description: str, action: Optional[ActionType], elements: Sequence[ElementInfo]
) -> Optional[ElementInfo]:
    """Placeholder substring match, for text-entry actions only."""
    if action not in TEXT_ENTRY_ACTIONS:
        return None
    lowered = description.lower()
    for element in elements:
        if element.category != "inputs":
            continue
        if element.placeholder and lowered in element.placeholder.lower():
            return element
    return None


def role_words(element: ElementInfo) -> Tuple[str, ...]:
    """Words that name the kind of an element."""
    words = [element.tag.lower()]
    if element.role:
        words.append(element.role.lower())
    words.extend(ROLE_ALIASES.get(element.tag.lower(), ()))
    return tuple(dict.fromkeys(word for word in words if word))


def residual_text(description: str, role_word: str) -> Optional[str]:
    """
    Strip the role word and leading articles from a description.

    Returns None when the role word does not occur as a word.
    """
    pattern = re.compile(rf"\b{re.escape(role_word)}\b", re.IGNORECASE)
    if not pattern.search(description):
        return None
    remainder = pattern.sub(" ", description, count=1)
    remainder = _LEADING_ARTICLES.sub("", remainder.strip())
    return _WHITESPACE.sub(" ", remainder).strip()


def match_role_text(
    description: str, action: Optional[ActionType], elements: Sequence[ElementInfo]
) -> Optional[ElementInfo]:
    """Role word in the description plus the remaining text in the element."""
    for element in elements:
        element_text = _compact(element.text)
        if not element_text:
            continue
        for word in role_words(element):
            remainder = residual_text(description, word)
            if remainder and _compact(remainder) in element_text:
                return element
    return None


CASCADE: List[Tuple[ResolutionStrategy, ConfidenceLevel, StrategyFn]] = [
    (ResolutionStrategy.EXACT_TEXT, ConfidenceLevel.HIGH, match_exact_text),
    (ResolutionStrategy.PARTIAL_TEXT, ConfidenceLevel.MEDIUM, match_partial_text),
    (ResolutionStrategy.ARIA_LABEL, ConfidenceLevel.HIGH, match_aria_label),
    (ResolutionStrategy.PLACEHOLDER, ConfidenceLevel.HIGH, match_placeholder),
    (ResolutionStrategy.ROLE_TEXT_COMBO, ConfidenceLevel.MEDIUM, match_role_text),
]


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def generate_selector(
    element: ElementInfo, max_text_length: int = DEFAULT_TEXT_MAX_LENGTH
) -> str:
    """Build the most stable selector available for an element."""
    if element.id:
        return f"#{element.id}"
    if element.aria_label:
        return f'[aria-label="{_quote(element.aria_label)}"]'
    if element.name:
        return f'[name="{_quote(element.name)}"]'
    if element.text and len(element.text) < max_text_length:
        return f"text={element.text}"
    if element.placeholder:
        return f'[placeholder="{_quote(element.placeholder)}"]'
    if element.role:
        return f'{element.tag}[role="{_quote(element.role)}"]'
    if element.type:
        return f'{element.tag}[type="{_quote(element.type)}"]'
    if element.classes:
        return f".{element.classes.split()[0]}"
    return element.tag


def relevant_candidates(
    snapshot: PageSnapshot,
    action: Optional[ActionType],
    limit: int = DEFAULT_CANDIDATE_LIMIT,
) -> List[ElementInfo]:
    """Elements worth showing the oracle for an action, in DOM order."""
    if action == ActionType.CLICK:
        candidates = [*snapshot.buttons, *snapshot.links]
    elif action in TEXT_ENTRY_ACTIONS:
        candidates = list(snapshot.inputs)
    else:
        candidates = snapshot.interactive
    return candidates[:limit]


def _as_action_type(action) -> Optional[ActionType]:
    if isinstance(action, ActionType) or action is None:
        return action
    try:
        return ActionType(str(action).lower())
    except ValueError:
        return None


def resolve_in_snapshot(
    description: str,
    action,
    snapshot: PageSnapshot,
    max_text_length: int = DEFAULT_TEXT_MAX_LENGTH,
) -> Optional[ResolutionResult]:
    """
    Run the deterministic cascade against a snapshot.

    Args:
        description: Structural locator or natural-language description
        action: Intended action (ActionType or its string value)
        snapshot: Page inventory to search
        max_text_length: Longest element text usable as a text= locator

    Returns:
        The first strategy hit, or None when no strategy matches
    """
    description = (description or "").strip()
    if not description:
        return None

    if is_structural_locator(description):
        return ResolutionResult(
            locator=description,
            strategy=ResolutionStrategy.LITERAL,
            confidence=ConfidenceLevel.HIGH,
            rationale="Target is already a selector",
        )

    action_type = _as_action_type(action)
    elements = snapshot.interactive

    for strategy, confidence, matcher in CASCADE:
        element = matcher(description, action_type, elements)
        if element is not None:
            return ResolutionResult(
                locator=generate_selector(element, max_text_length),
                strategy=strategy,
                confidence=confidence,
                rationale=f"Found by {strategy.value}: {description!r}",
                element=element,
            )
    return None
