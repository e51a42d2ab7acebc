"""
Unit tests for core data types.
"""

import pytest
from pydantic import ValidationError

from aiqa.core.types import (
    ActionType,
    ElementInfo,
    PageSnapshot,
    Step,
    StepResult,
    StepStatus,
    TestResult,
)

from fakes import button, link, text_input


class TestStep:
    """Tests for the Step model."""

    def test_planner_aliases(self):
        step = Step.model_validate({
            "stepNumber": 3,
            "action": "click",
            "target": "Log In",
            "timeout": 2500,
            "optional": True,
        })

        assert step.step_number == 3
        assert step.timeout_ms == 2500
        assert step.optional is True

    def test_field_names_accepted(self):
        step = Step(step_number=1, action="wait", timeout_ms=100)
        assert step.timeout_ms == 100

    def test_step_id_assigned_once(self):
        step = Step(step_number=4, action="click", target="#a")

        assert step.step_id.startswith("step_4_")
        assert Step(step_number=4, action="click").step_id != step.step_id

    def test_explicit_id_kept(self):
        step = Step.model_validate({"id": "login-click", "stepNumber": 1, "action": "click"})
        assert step.step_id == "login-click"

    def test_step_is_frozen(self):
        step = Step(step_number=1, action="click", target="#a")

        with pytest.raises(ValidationError):
            step.target = "#b"

    def test_action_normalized(self):
        assert Step(step_number=1, action="  Click ").action == "click"
        assert Step(step_number=1, action=ActionType.PRESS).action == "press"

    def test_action_type(self):
        assert Step(step_number=1, action="verify").action_type == ActionType.VERIFY
        assert Step(step_number=1, action="drag").action_type is None

    def test_numeric_data_stringified(self):
        assert Step(step_number=1, action="wait", data=1500).data == "1500"

    @pytest.mark.parametrize("field,value", [("step_number", 0), ("retries", -1), ("timeout_ms", -5)])
    def test_negative_values_rejected(self, field, value):
        fields = {"step_number": 1, "action": "click", field: value}

        with pytest.raises(ValidationError):
            Step(**fields)


class TestStepResult:
    """Tests for StepResult."""

    def test_finish_stamps_timing(self):
        result = StepResult(step_id="s1", step_number=1, action="click")
        assert result.status == StepStatus.RUNNING
        assert result.completed_at is None

        result.finish(StepStatus.PASSED)

        assert result.status == StepStatus.PASSED
        assert result.completed_at >= result.started_at
        assert result.duration_ms >= 0


class TestPageSnapshot:
    """Tests for PageSnapshot."""

    def test_interactive_order_excludes_images(self):
        snapshot = PageSnapshot(
            buttons=[button("Save")],
            links=[link("Home")],
            inputs=[text_input(placeholder="Search")],
            images=[ElementInfo(category="images", tag="img")],
        )

        assert [e.category for e in snapshot.interactive] == ["buttons", "links", "inputs"]
        assert snapshot.element_count == 3


class TestTestResult:
    """Tests for TestResult defaults."""

    def test_defaults(self):
        result = TestResult()

        assert result.test_id
        assert result.steps == []
        assert result.finalized is False
