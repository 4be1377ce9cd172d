"""Configuration management with YAML and environment variable support."""

from pathlib import Path
from typing import ClassVar, Literal, Optional

import yaml
from pydantic import BaseModel, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

TranscriptionProvider = Literal["whisper-local", "openai", "groq"]


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads configuration from YAML file."""

    def get_field_value(self, field, field_name: str):
        # Not used with prepare method
        pass

    def prepare_field_value(self, field_name: str, field, value, value_is_complex: bool):
        return value

    def __call__(self):
        # Load from config.yaml in current directory
        yaml_path = Path("config.yaml")
        if not yaml_path.exists():
            return {}

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return data


class StorageConfig(BaseModel):
    """Storage and database configuration.

    data_dir holds transcripts, video_dir downloaded videos, output_dir the
    per-video generated documents and screenshots, temp_dir the per-step
    scratch space.
    """

    database_url: str = "sqlite+aiosqlite:///./vidblog.db"
    data_dir: Path = Path("data")
    video_dir: Path = Path("data/videos")
    output_dir: Path = Path("output")
    temp_dir: Path = Path("temp")
    public_output_prefix: str = "/output"

    @field_validator("data_dir", "video_dir", "output_dir", "temp_dir", mode="before")
    @classmethod
    def convert_to_path(cls, v):
        """Convert string to Path object."""
        if isinstance(v, str):
            return Path(v)
        return v


class TranscriptionConfig(BaseModel):
    """Speech-to-text defaults, used when a workflow config leaves them unset."""

    provider: TranscriptionProvider = "whisper-local"
    model: Optional[str] = None
    language: Optional[str] = None
    openai_api_key: Optional[str] = None
    groq_api_key: Optional[str] = None
    request_timeout: float = 600.0


class LLMConfig(BaseModel):
    """OpenAI-compatible chat completion endpoint (OpenRouter by default)."""

    base_url: str = "https://openrouter.ai/api/v1"
    api_key: Optional[str] = None
    default_model: str = "anthropic/claude-3.5-sonnet"
    request_timeout: float = 300.0
    max_retries: int = 3
    app_title: str = "vidblog"


class CaptureConfig(BaseModel):
    """Screenshot capture defaults."""

    width: int = 1920
    height: int = 1080
    max_key_frames: int = 20


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8000


class Settings(BaseSettings):
    """Main application settings with YAML and environment variable support.

    Configuration sources (in priority order):
    1. Environment variables (prefix: VIDBLOG_, delimiter: __)
    2. YAML file (config.yaml)
    3. Field defaults
    """

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_nested_delimiter="__",
        env_prefix="VIDBLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"
    storage: StorageConfig = StorageConfig()
    transcription: TranscriptionConfig = TranscriptionConfig()
    llm: LLMConfig = LLMConfig()
    capture: CaptureConfig = CaptureConfig()
    server: ServerConfig = ServerConfig()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ):
        """Customize settings sources to include YAML configuration.

        Priority order (highest to lowest):
        1. Environment variables
        2. YAML file
        3. Init settings (programmatic defaults)
        """
        return (
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            init_settings,
        )


# Singleton instance
settings = Settings()
