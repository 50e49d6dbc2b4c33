"""
Centralized configuration using pydantic-settings.
Loads from .env file and provides typed access to all constants.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class PathSettings(BaseSettings):
    """File path configuration."""

    project_root: Path = Field(
        default_factory=lambda: Path(__file__).resolve().parent.parent
    )
    mock_data_file: Optional[Path] = Field(
        default=None,
        description="Static user/catalog JSON (overrides data/mock_data.json)",
    )

    model_config = {"env_prefix": "PATH_", "env_file": ".env", "extra": "ignore"}

    @property
    def data_dir(self) -> Path:
        return self.project_root / "data"

    @property
    def mock_data_path(self) -> Path:
        if self.mock_data_file is not None:
            return self.mock_data_file
        return self.data_dir / "mock_data.json"


class LLMSettings(BaseSettings):
    """Shared transport settings for the model-serving endpoint."""

    base_url: str = Field(
        default="http://localhost:8000/v1",
        description="OpenAI-compatible endpoint. Ollama: http://localhost:11434",
    )
    api_key: str = Field(default="EMPTY")
    temperature: float = Field(default=0.7)
    max_tokens: int = Field(default=1024)
    timeout: float = Field(default=60.0, description="Per-request timeout (seconds)")
    max_retries: int = Field(default=2, description="Retries on transport errors")

    model_config = {"env_prefix": "LLM_", "env_file": ".env", "extra": "ignore"}


class BackendSettings(BaseSettings):
    """One simulation backend. Subclasses bind the env prefix and defaults."""

    name: str = ""
    display_name: str = ""
    kind: str = Field(default="openai", description="openai | ollama | mock")
    model_name: str = Field(default="./UserMirrorrer-Llama-DPO")
    base_url: Optional[str] = Field(default=None, description="Overrides LLM_BASE_URL")
    api_key: Optional[str] = Field(default=None, description="Overrides LLM_API_KEY")
    fallback_eligible: bool = False
    mock_delay: float = Field(default=1.5, description="Simulated latency for kind=mock")

    model_config = {"env_file": ".env", "extra": "ignore"}


class TeacherBackendSettings(BackendSettings):
    name: str = "teacher"
    display_name: str = "Teacher Model"
    fallback_eligible: bool = True

    model_config = {"env_prefix": "TEACHER_", "env_file": ".env", "extra": "ignore"}


class StudentBackendSettings(BackendSettings):
    name: str = "student"
    display_name: str = "Student Model"
    fallback_eligible: bool = True

    model_config = {"env_prefix": "STUDENT_", "env_file": ".env", "extra": "ignore"}


class FineTunedBackendSettings(BackendSettings):
    name: str = "fine_tuned"
    display_name: str = "Fine-tuned Student"
    fallback_eligible: bool = False

    model_config = {"env_prefix": "FINETUNED_", "env_file": ".env", "extra": "ignore"}


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field(default="INFO")
    file: Optional[Path] = Field(default=None, description="Optional log file")

    model_config = {"env_prefix": "LOG_", "env_file": ".env", "extra": "ignore"}


class Settings(BaseSettings):
    """Root settings aggregator."""

    paths: PathSettings = Field(default_factory=PathSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    teacher: TeacherBackendSettings = Field(default_factory=TeacherBackendSettings)
    student: StudentBackendSettings = Field(default_factory=StudentBackendSettings)
    fine_tuned: FineTunedBackendSettings = Field(default_factory=FineTunedBackendSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def backends(self) -> list:
        """Backend settings in display order."""
        return [self.teacher, self.student, self.fine_tuned]


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings (tests)."""
    global _settings
    _settings = None
