"""
Step execution exports.
"""

from aiqa.execution.artifacts import ArtifactCapture
from aiqa.execution.orchestrator import (
    TestRunOrchestrator,
    derive_status,
    load_steps,
    load_test_plan,
)
from aiqa.execution.performer import ActionPerformer, classify_assertion
from aiqa.execution.step_executor import StepExecutor

__all__ = [
    "ActionPerformer",
    "ArtifactCapture",
    "StepExecutor",
    "TestRunOrchestrator",
    "classify_assertion",
    "derive_status",
    "load_steps",
    "load_test_plan",
]
