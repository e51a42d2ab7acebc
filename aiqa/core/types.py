"""
Core data models and types for the AIQA step execution engine.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ActionType(str, Enum):
    """Closed set of step actions the engine can perform."""

    NAVIGATE = "navigate"
    CLICK = "click"
    TYPE = "type"
    WAIT = "wait"
    VERIFY = "verify"
    HOVER = "hover"
    SELECT = "select"
    PRESS = "press"


# Actions that enter text into a field
TEXT_ENTRY_ACTIONS = {ActionType.TYPE}


class StepStatus(str, Enum):
    """Status of a single step execution."""

    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunStatus(str, Enum):
    """Overall status of a test run."""

    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"
    ERROR = "error"


class ConfidenceLevel(str, Enum):
    """Coarse confidence tier attached to an element resolution."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ResolutionStrategy(str, Enum):
    """Strategies of the element resolution cascade, in cascade order."""

    LITERAL = "literal"
    EXACT_TEXT = "exact-text"
    PARTIAL_TEXT = "partial-text"
    ARIA_LABEL = "aria-label"
    PLACEHOLDER = "placeholder"
    ROLE_TEXT_COMBO = "role-text-combo"
    AI_MATCH = "ai-match"


def _new_step_id(step_number: int) -> str:
    return f"step_{step_number}_{uuid4().hex[:8]}"


class Step(BaseModel):
    """A single declarative test step emitted by the planner."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    step_id: str = Field("", alias="id", description="Stable step identity")
    step_number: int = Field(..., ge=1, alias="stepNumber")
    description: str = Field("", description="Human-readable description of the step")
    action: str = Field(..., description="Action kind (see ActionType)")
    target: Optional[str] = Field(
        None, description="Structural locator or natural-language description"
    )
    data: Optional[str] = Field(None, description="Payload for type/select/press")
    assertion: Optional[str] = Field(None, description="Assertion text for verify")
    timeout_ms: Optional[int] = Field(
        None, ge=0, alias="timeout", description="Per-action timeout override"
    )
    retries: Optional[int] = Field(None, ge=0, description="Retry budget override")
    optional: bool = Field(False, description="Failure does not abort the run")

    @model_validator(mode="before")
    @classmethod
    def assign_step_id(cls, data: Any) -> Any:
        """Give planner steps without an identity a stable one."""
        if isinstance(data, dict) and not (data.get("id") or data.get("step_id")):
            number = data.get("step_number", data.get("stepNumber", 0))
            data = {**data, "step_id": _new_step_id(number)}
        return data

    @field_validator("action", mode="before")
    @classmethod
    def normalize_action(cls, value: Any) -> str:
        if isinstance(value, ActionType):
            return value.value
        return str(value).strip().lower()

    @field_validator("data", mode="before")
    @classmethod
    def stringify_data(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value)

    @property
    def action_type(self) -> Optional[ActionType]:
        """Return the known action kind, or None for an unsupported one."""
        try:
            return ActionType(self.action)
        except ValueError:
            return None


class BoundingBox(BaseModel):
    """Element geometry in CSS pixels."""

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0


class ElementInfo(BaseModel):
    """Normalized attributes of one interactive element on the page."""

    index: int = 0
    category: str = Field("button", description="buttons, links, inputs or images")
    tag: str
    type: Optional[str] = None
    text: str = ""
    value: str = ""
    placeholder: str = ""
    aria_label: str = ""
    role: str = ""
    id: str = ""
    name: str = ""
    classes: str = ""
    href: str = ""
    visible: bool = True
    rect: BoundingBox = Field(default_factory=BoundingBox)


class PageSnapshot(BaseModel):
    """Point-in-time inventory of interactive elements on the page."""

    url: str = ""
    title: str = ""
    buttons: List[ElementInfo] = Field(default_factory=list)
    links: List[ElementInfo] = Field(default_factory=list)
    inputs: List[ElementInfo] = Field(default_factory=list)
    images: List[ElementInfo] = Field(default_factory=list)
    captured_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def interactive(self) -> List[ElementInfo]:
        """Buttons, links and inputs in snapshot order."""
        return [*self.buttons, *self.links, *self.inputs]

    @property
    def element_count(self) -> int:
        return len(self.buttons) + len(self.links) + len(self.inputs)


class ResolutionResult(BaseModel):
    """Outcome of resolving a target description to a locator."""

    locator: str
    strategy: ResolutionStrategy
    confidence: ConfidenceLevel
    rationale: Optional[str] = None
    element: Optional[ElementInfo] = None


class OracleMatch(BaseModel):
    """Parsed answer of the AI-matching oracle."""

    index: int = Field(..., ge=1, description="1-based candidate index")
    confidence: ConfidenceLevel = ConfidenceLevel.MEDIUM
    rationale: str = "AI matched element"


class StepResult(BaseModel):
    """Result of executing a single test step."""

    step_id: str
    step_number: int
    description: str = ""
    action: str
    target: Optional[str] = None
    optional: bool = False
    status: StepStatus = StepStatus.RUNNING
    attempts: int = 0
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    error_message: Optional[str] = None
    error_type: Optional[str] = None
    screenshot_path: Optional[str] = Field(
        None, description="Reference to the failure screenshot, if captured"
    )
    resolution: Optional[ResolutionResult] = None

    def finish(self, status: StepStatus) -> None:
        """Stamp the terminal status and timing."""
        self.status = status
        self.completed_at = datetime.now(timezone.utc)
        self.duration_ms = int(
            (self.completed_at - self.started_at).total_seconds() * 1000
        )


class TestResult(BaseModel):
    """Aggregate result of running an ordered list of steps."""

    __test__ = False

    test_id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = "Untitled test"
    status: RunStatus = RunStatus.RUNNING
    steps: List[StepResult] = Field(default_factory=list)
    planned_steps: int = 0
    total_steps: int = 0
    passed_steps: int = 0
    failed_steps: int = 0
    skipped_steps: int = 0
    error: Optional[str] = None
    first_failed_step: Optional[int] = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    screenshots: List[str] = Field(default_factory=list)
    videos: List[str] = Field(default_factory=list)

    @property
    def finalized(self) -> bool:
        return self.completed_at is not None
