"""
Shared fixtures for AIQA tests.
"""

import pytest

from aiqa.config.settings import Settings
from aiqa.core.types import PageSnapshot

from fakes import FakeDriver, button, link, text_input


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated to a temp directory with no backoff delay."""
    return Settings(
        openai_api_key="",
        retry_backoff_ms=0,
        save_results=False,
        artifacts_dir=tmp_path / "artifacts",
        results_dir=tmp_path / "logs",
    )


@pytest.fixture
def login_snapshot() -> PageSnapshot:
    """A small login page."""
    return PageSnapshot(
        url="https://x.test/login",
        title="Sign in",
        buttons=[
            button("Cancel", index=0, classes="btn btn-secondary"),
            button("Log In", index=1, id="login-btn"),
        ],
        links=[link("Forgot password?", index=0, href="https://x.test/reset")],
        inputs=[
            text_input(index=0, type="email", name="email", placeholder="Email address"),
            text_input(index=1, type="password", placeholder="Password"),
        ],
    )


@pytest.fixture
def driver(login_snapshot) -> FakeDriver:
    return FakeDriver(snapshot=login_snapshot, url="https://x.test/login")
