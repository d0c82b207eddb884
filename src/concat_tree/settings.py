from __future__ import annotations

import os
from pathlib import Path

from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from concat_tree.config import SNIFFER_AUTO, WILDCARD_TYPE

ENV_PREFIX = "CONCAT_TREE_"


def env_defaults() -> dict[str, str]:
    """Collect `CONCAT_TREE_*` defaults from the nearest `.env` and the environment.

    Values from the process environment take precedence over the `.env` file.

    Returns:
        dict[str, str]: lower-cased setting names (prefix removed) mapped to their values.
    """
    env_file = find_dotenv(usecwd=True)
    values: dict[str, str | None] = dict(dotenv_values(env_file)) if env_file else {}
    values.update(os.environ)
    return {
        key[len(ENV_PREFIX) :].lower(): value
        for key, value in values.items()
        if key.startswith(ENV_PREFIX) and value is not None
    }


def normalize_extension(ext: str) -> str:
    """Strip the `*.` or `.` a user may put in front of an extension."""
    ext = ext.strip()
    if ext.startswith("*."):
        return ext[2:]
    return ext.removeprefix(".")


class Settings(BaseModel):
    """Configuration settings for one concatenation run."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    root: Path = Field(default_factory=Path.cwd, description="Directory to scan.")
    file_type: str = Field(default=WILDCARD_TYPE, description="Extension to include, '*' for all.")
    recurse: bool = Field(default=False, description="Descend into subdirectories.")
    max_depth: int = Field(default=1, ge=0, description="Levels below the root to visit.")
    exclude_types: frozenset[str] = Field(default_factory=frozenset, description="Extensions to skip.")
    exclude_patterns: tuple[str, ...] = Field(default=(), description="Ordered exclusion patterns.")
    include_binary: bool = Field(default=False, description="Keep files detected as binary.")
    output: Path | None = Field(default=None, description="Output file; stdout when absent.")

    log_file: str = Field(default="", description="Log file path.")
    log_level: str = Field(default="WARNING", description="Minimum log level.")
    sniffer: str = Field(default=SNIFFER_AUTO, description="Binary content sniffer.")

    @field_validator("file_type", mode="before")
    @classmethod
    def _normalize_file_type(cls, value: str | None) -> str:
        ext = normalize_extension(value or "")
        return ext or WILDCARD_TYPE

    @field_validator("exclude_types", mode="before")
    @classmethod
    def _normalize_exclude_types(cls, value: object) -> frozenset[str]:
        if isinstance(value, str):
            value = value.split(",")
        return frozenset(normalize_extension(str(v)) for v in value or ())

    @field_validator("exclude_patterns", mode="before")
    @classmethod
    def _keep_pattern_order(cls, value: object) -> tuple[str, ...]:
        if isinstance(value, str):
            value = value.split(",")
        return tuple(str(v).strip() for v in value or () if str(v).strip())

    @computed_field
    @property
    def effective_depth(self) -> int:
        """Number of levels below the root the walker may descend into."""
        return self.max_depth if self.recurse else 0

    @computed_field
    @property
    def is_wildcard(self) -> bool:
        """Whether every extension is requested."""
        return self.file_type == WILDCARD_TYPE
