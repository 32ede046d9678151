"""Configuration management for the subtitle translation system."""

from pathlib import Path
from typing import Annotated, List, Optional, Union

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# This file is in src/common/, so go up 2 levels to project root
_PROJECT_ROOT = Path(__file__).parent.parent.parent

RETRY_STRATEGIES = ("fixed", "exponential")
TRANSLATE_ENGINES = ("openai", "google")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / ".env"),
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="INFO")

    # Subtitle Input
    subtitle_max_file_size: int = Field(
        default=512 * 1024,
        description="Maximum accepted subtitle file size in bytes",
    )  # 512 KiB
    subtitle_page_size: int = Field(
        default=10,
        description="Captions per page; also the size of one translation batch",
    )
    subtitle_input_encodings: Annotated[List[str], NoDecode] = Field(
        default=["utf-8-sig", "gb18030"],
        description="Decodings tried in order when reading a subtitle file",
    )

    # File Storage
    subtitle_storage_path: str = Field(default="./storage/subtitles")

    # Translation Backend
    translate_api_base_url: str = Field(default="http://localhost:3000")
    translate_api_path: str = Field(default="/api/translate")
    translate_google_api_path: str = Field(default="/api/googleTran")
    translate_request_timeout: float = Field(
        default=60.0
    )  # seconds per batch request
    translate_engine: str = Field(
        default="openai",
        description="Translation provider: 'openai' (primary) or 'google'",
    )

    # Translation Retry Configuration
    translate_max_attempts: int = Field(
        default=5
    )  # Total attempts per batch, including the first one
    translate_retry_delay: float = Field(
        default=3.0
    )  # Cooldown in seconds before the next attempt
    translate_retry_strategy: str = Field(default="fixed")
    translate_retry_max_delay: float = Field(
        default=60.0
    )  # Backoff cap, only used by the exponential strategy
    translate_retry_exponential_base: int = Field(default=2)

    # User Credentials / Preferences
    openai_api_key: Optional[str] = Field(default=None)
    translate_prompt_template: Optional[str] = Field(default=None)
    translate_custom_host: Optional[str] = Field(default=None)

    # Redirect responses go to the purchase flow when enabled,
    # otherwise they are reported as a rate limit
    enable_shop: bool = Field(default=False)

    @field_validator("subtitle_input_encodings", mode="before")
    @classmethod
    def parse_input_encodings(cls, v: Union[str, List[str]]) -> List[str]:
        """
        Parse comma-separated string or return list as-is.

        Args:
            v: String with comma-separated encodings or list of encodings

        Returns:
            List of encoding names
        """
        if isinstance(v, str):
            return [enc.strip() for enc in v.split(",") if enc.strip()]
        return v

    @field_validator("translate_retry_strategy", "translate_engine")
    @classmethod
    def normalize_choice(cls, v: str, info: ValidationInfo) -> str:
        """Lowercase enumerated options and reject unknown values."""
        value = v.strip().lower()
        allowed = (
            RETRY_STRATEGIES
            if info.field_name == "translate_retry_strategy"
            else TRANSLATE_ENGINES
        )
        if value not in allowed:
            raise ValueError(
                f"{info.field_name} must be one of {', '.join(allowed)}, got {v!r}"
            )
        return value

    @field_validator("subtitle_page_size", "translate_max_attempts")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be at least 1, got {v}")
        return v

    @property
    def use_google(self) -> bool:
        """Whether the alternate (non-primary) provider is selected."""
        return self.translate_engine == "google"


# Global settings instance
settings = Settings()
