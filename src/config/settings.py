from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.constants import STATE_PATH

# Load .env once at module import so every BaseSettings subclass sees the env vars
load_dotenv()


class CoordinatorSettings(BaseSettings):
    """Role loop cadence and workspace policy. Env vars prefixed with COORD_.

    Static for the whole run: built once at start-up, never mutated.
    """

    model_config = SettingsConfigDict(env_prefix="COORD_", frozen=True)

    verifier_interval_s: float = Field(90.0, gt=0)
    refactor_poll_s: float = Field(1.0, gt=0)
    max_iterations: int = Field(80, ge=1)
    max_turns: int = Field(12, ge=1)  # per role invocation
    allow_unsafe: bool = False  # bypass the cmd_run allow-list
    command_timeout_s: float = Field(600.0, gt=0)
    state_path: Path = Path(STATE_PATH)

    @field_validator("state_path")
    @classmethod
    def _validate_state_path(cls, v: Path) -> Path:
        if v.is_absolute() or ".." in v.parts:
            raise ValueError(
                f"COORD_STATE_PATH must be relative to the workspace root (got '{v}')"
            )
        return v


class ModelSettings(BaseSettings):
    """OpenAI-compatible endpoint settings. Env vars prefixed with MODEL_."""

    model_config = SettingsConfigDict(env_prefix="MODEL_")

    api_key: str  # required, fail fast if missing
    model: str = "gpt-4o-mini"
    base_url: str | None = None
    timeout_s: float = Field(600.0, gt=0)  # per HTTP request
    max_retries: int = Field(3, ge=0)  # transient failures only; SDK retries stay off


class Settings(BaseSettings):
    """Root settings composing all sub-configurations."""

    model_config = SettingsConfigDict(extra="ignore")

    coordinator: CoordinatorSettings = Field(default_factory=CoordinatorSettings)
    model: ModelSettings = Field(default_factory=ModelSettings)
    workspace_dir: Path = Path(".")


def get_settings() -> Settings:
    """Load and validate settings. Raises ValidationError on missing required fields."""
    return Settings()
