"""
Core module exports.
"""

from aiqa.core.interfaces import (
    ArtifactCollector,
    BrowserDriver,
    ElementOracle,
)
from aiqa.core.types import (
    ActionType,
    BoundingBox,
    ConfidenceLevel,
    ElementInfo,
    OracleMatch,
    PageSnapshot,
    ResolutionResult,
    ResolutionStrategy,
    RunStatus,
    Step,
    StepResult,
    StepStatus,
    TestResult,
)

__all__ = [
    # Interfaces
    "BrowserDriver",
    "ElementOracle",
    "ArtifactCollector",
    # Types
    "ActionType",
    "BoundingBox",
    "ConfidenceLevel",
    "ElementInfo",
    "OracleMatch",
    "PageSnapshot",
    "ResolutionResult",
    "ResolutionStrategy",
    "RunStatus",
    "Step",
    "StepResult",
    "StepStatus",
    "TestResult",
]
