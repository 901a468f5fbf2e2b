from __future__ import annotations

import os
from pathlib import Path

from dotenv import find_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from hayagriva_llm.config import (
    DEFAULT_MODEL,
    DEFAULT_TIMEOUT,
    ENV_API_KEY_KEYS,
    ENV_MODEL_KEYS,
    GenerationMode,
)

ENV_FILE = find_dotenv(usecwd=True)


def first_env_value(keys: tuple[str, ...]) -> str:
    """Return the first non-blank environment value among ``keys`` (stripped), or ``""``."""
    for key in keys:
        value = os.getenv(key, "").strip()
        if value:
            return value
    return ""


class Settings(BaseModel):
    """Configuration settings for one generation run.

    Explicit values win; ``api_key`` and ``model`` fall back to the environment
    (``.env`` included, once the CLI has loaded it).
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    cwd: Path = Field(default_factory=Path.cwd, description="Package root (where package.json lives).")
    mode: GenerationMode = Field(default=GenerationMode.STATIC, description="Extraction mode.")
    api_key: str = Field(default="", validate_default=True, description="OpenRouter API key.")
    model: str = Field(default="", validate_default=True, description="OpenRouter model id.")
    include_src: bool = Field(default=False, description="Send the entry source to the model.")
    verbose: bool = Field(default=False, description="Debug logging.")
    log_file: str = Field(default="", description="Log file path.")
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0, description="HTTP timeout in seconds.")

    @field_validator("api_key", mode="before")
    @classmethod
    def _api_key_from_env(cls, value: str | None) -> str:
        explicit = (value or "").strip()
        return explicit or first_env_value(ENV_API_KEY_KEYS)

    @field_validator("model", mode="before")
    @classmethod
    def _model_from_env(cls, value: str | None) -> str:
        explicit = (value or "").strip()
        return explicit or first_env_value(ENV_MODEL_KEYS) or DEFAULT_MODEL
