"""Configuration model with validation."""

import os
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_EXCLUDE_PATTERNS = [
    ".git/",
    ".hg/",
    ".svn/",
    "*.png",
    "*.jpg",
    "*.jpeg",
    "*.gif",
    "*.ico",
    "*.svg",
    "*.webp",
    "*.mp4",
    "*.webm",
    "*.avi",
    "*.mov",
    "*.mp3",
    "*.wav",
    "*.ogg",
    "*.pdf",
    "*.doc",
    "*.docx",
    "*.xls",
    "*.xlsx",
    "*.zip",
    "*.tar",
    "*.gz",
    "*.ttf",
    "*.otf",
    "*.woff",
    "*.woff2",
    "*.exe",
    "*.dll",
    "*.so",
    "*.class",
    "*.jar",
    "*.pyc",
]

ENV_PREFIX = "DEEP_SEARCH_"
LIST_FIELDS = frozenset({"match_limits", "exclude_patterns"})


class SearchConfig(BaseModel):
    """Engine settings with validation."""

    # Coordinator
    debounce_seconds: float = Field(default=0.3, ge=0.0)

    # Scanning
    concurrency: int = Field(default=4, ge=1, le=64)
    match_limits: list[int] = Field(default_factory=lambda: [5000, 10000])
    max_file_size: int = Field(default=1048576, ge=1024)  # 1MB default, min 1KB

    # Pattern matcher
    chunk_size: int = Field(default=512 * 1024, ge=1024)
    chunk_overlap: int = Field(default=1024, ge=0)
    yield_every: int = Field(default=100, ge=1)

    # Cache
    cache_max_size: int = Field(default=20, ge=1)

    # File filtering
    exclude_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS)
    )
    use_gitignore: bool = Field(default=True)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["text", "json"] = Field(default="text")

    @field_validator("match_limits")
    @classmethod
    def validate_match_limits(cls, v: list[int]) -> list[int]:
        if any(limit <= 0 for limit in v):
            raise ValueError("match limits must be positive")
        if any(a >= b for a, b in zip(v, v[1:])):
            raise ValueError("match limits must be strictly ascending")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def validate_chunking(self) -> "SearchConfig":
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        return self

    @classmethod
    def env_overrides(cls) -> dict[str, object]:
        """Settings present as DEEP_SEARCH_* environment variables.

        List settings are given comma-separated.
        """
        overrides: dict[str, object] = {}
        for name in cls.model_fields:
            value = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
            if value is None:
                continue
            if name in LIST_FIELDS:
                overrides[name] = [p.strip() for p in value.split(",") if p.strip()]
            else:
                overrides[name] = value
        return overrides

    @classmethod
    def from_env(cls) -> "SearchConfig":
        """Create config with environment variable overrides."""
        return cls(**cls.env_overrides())
