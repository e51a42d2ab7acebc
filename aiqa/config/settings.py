"""Configuration management for the AIQA engine."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # OpenAI Configuration (element-matching oracle)
    openai_api_key: str = Field(default="", description="OpenAI API key")
    openai_model: str = Field(
        default="gpt-4o-mini", description="Model used for element matching"
    )
    openai_temperature: float = Field(
        default=0.3, ge=0.0, le=2.0, description="Oracle temperature"
    )
    openai_max_tokens: int = Field(
        default=500, ge=16, description="Maximum tokens in an oracle answer"
    )
    openai_max_retries: int = Field(
        default=2, ge=0, description="Maximum API retry attempts"
    )
    openai_request_timeout_seconds: int = Field(
        default=30,
        ge=1,
        description="Request timeout for OpenAI API calls in seconds",
    )

    # Browser Configuration
    browser_type: str = Field(
        default="chromium", description="Browser engine (chromium, firefox, webkit)"
    )
    browser_headless: bool = Field(
        default=True, description="Run browser in headless mode"
    )
    browser_timeout: int = Field(
        default=30000, ge=1000, description="Default browser timeout (ms)"
    )
    browser_viewport_width: int = Field(
        default=1280, ge=320, description="Browser viewport width"
    )
    browser_viewport_height: int = Field(
        default=720, ge=240, description="Browser viewport height"
    )
    browser_slow_mo: int = Field(
        default=0, ge=0, description="Delay inserted between browser operations (ms)"
    )

    # Execution Configuration
    step_timeout: int = Field(
        default=10000, ge=100, description="Default timeout per action (ms)"
    )
    default_step_retries: int = Field(
        default=2, ge=0, description="Retries per step when the step sets none"
    )
    retry_backoff_ms: int = Field(
        default=1000, ge=0, description="Fixed wait between step attempts (ms)"
    )
    continue_on_failure: bool = Field(
        default=False,
        description="Keep executing after a non-optional step fails",
    )
    skip_remaining_on_abort: bool = Field(
        default=False,
        description="Record steps left unattempted after an abort as skipped",
    )
    screenshot_on_failure: bool = Field(
        default=True, description="Capture a screenshot when a step fails"
    )
    video_on_failure: bool = Field(
        default=False, description="Record session video for failed runs"
    )
    full_page_screenshots: bool = Field(
        default=True, description="Capture the full scrollable page"
    )
    save_results: bool = Field(
        default=True, description="Persist test results as JSON"
    )

    # Element Resolution Configuration
    oracle_enabled: bool = Field(
        default=True, description="Fall back to the AI-matching oracle"
    )
    oracle_candidate_limit: int = Field(
        default=20, ge=1, le=100, description="Candidates sent to the oracle"
    )
    selector_text_max_length: int = Field(
        default=50, ge=1, description="Longest text usable as a text= locator"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: str = Field(
        default="text",
        description="Log format (json or text)",
    )
    log_file: Optional[str] = Field(
        default=None, description="Log file path"
    )
    sanitize_logs: bool = Field(
        default=True, description="Redact sensitive values in logs"
    )

    # Storage Configuration
    artifacts_dir: Path = Field(
        default=Path("artifacts"), description="Screenshots and videos directory"
    )
    results_dir: Path = Field(
        default=Path("logs"), description="Test results output directory"
    )

    @field_validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("log_format")
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        if v not in ["json", "text"]:
            raise ValueError(f"Invalid log format: {v}")
        return v

    @field_validator("browser_type")
    def validate_browser_type(cls, v: str) -> str:
        """Validate browser engine."""
        normalized = v.lower()
        if normalized not in ["chromium", "firefox", "webkit"]:
            raise ValueError(f"Invalid browser type: {v}")
        return normalized


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    # Load .env file if it exists
    env_file = Path(".env")
    if env_file.exists():
        load_dotenv(env_file)

    return Settings()
