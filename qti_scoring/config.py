"""Application configuration with validation."""
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the CLI and batch driver.

    The scoring engine itself never reads these; everything it needs is
    passed in explicitly by the caller.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    LOG_FORMAT: Literal["json", "console"] = "console"

    # Scoring defaults (CLI flags override)
    PRESERVE_MET: bool = False
    CONTINUE_ON_ERROR: bool = False

    # Output
    XML_INDENT: str = Field(default="  ", max_length=8)
    TEMP_FILE_PREFIX: str = Field(default=".tmp-", min_length=1)

    @field_validator("XML_INDENT")
    @classmethod
    def validate_indent(cls, v: str) -> str:
        if v.strip():
            raise ValueError("XML_INDENT must contain whitespace only")
        return v

    @field_validator("TEMP_FILE_PREFIX")
    @classmethod
    def validate_temp_prefix(cls, v: str) -> str:
        if "/" in v or "\\" in v:
            raise ValueError("TEMP_FILE_PREFIX must not contain path separators")
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
