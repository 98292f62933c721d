"""Configuration loading for stackpr.

Settings come from two YAML files, the global `~/.stackpr.yml` and the
repo-local `<repo>/.stackpr.yml`. Repo values override global values key by
key. The CLI resolves the merged file config together with its own overrides
into an immutable StackSettings bundle that the engine consumes.
"""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError

CONFIG_FILENAME = ".stackpr.yml"
DEFAULT_IGNORE_TAG = "ignore"
FALLBACK_ROOT_BASE = "origin/main"

LandMode = Literal["flatten", "per-pr"]
DescriptionMode = Literal["overwrite", "stack_only"]
ConflictStrategy = Literal["rollback", "halt"]
ListOrder = Literal["recent_on_bottom", "recent_on_top"]


class StackConfigFile(BaseModel):
    """Contents of one config file. Every key is optional."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    base: str | None = None
    prefix: str | None = None
    land: LandMode | None = None
    ignore_tag: str | None = None
    pr_description_mode: DescriptionMode | None = None
    restack_conflict: ConflictStrategy | None = None
    list_order: ListOrder | None = None

    @field_validator("base", "prefix")
    @classmethod
    def validate_not_blank(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            msg = "must not be empty"
            raise ValueError(msg)
        return v

    @field_validator("ignore_tag")
    @classmethod
    def validate_ignore_tag(cls, v: str | None) -> str | None:
        """Blank ignore tags fall back to the default."""
        if v is not None and not v.strip():
            return None
        return v

    def merged_with(self, override: "StackConfigFile") -> "StackConfigFile":
        """Return a copy where every key set in override wins."""
        return self.model_copy(update=override.model_dump(exclude_none=True))


def parse_config_text(text: str, source: Path) -> StackConfigFile:
    """Parse YAML config text.

    Raises:
        ValueError: If the YAML is malformed, not a mapping, or holds unknown
            keys or invalid values. The message names the source file.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        msg = f"Invalid YAML in {source}: {e}"
        raise ValueError(msg) from e

    if data is None:
        return StackConfigFile()
    if not isinstance(data, dict):
        msg = f"Invalid config in {source}: expected a mapping at the top level"
        raise ValueError(msg)

    try:
        return StackConfigFile(**data)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        msg = f"Invalid config in {source}: {problems}"
        raise ValueError(msg) from e


def normalize_prefix(prefix: str) -> str:
    """Ensure a branch prefix ends in exactly one slash."""
    return prefix.rstrip("/") + "/"


def default_prefix() -> str:
    return f"{os.environ.get('USER', '')}-stack/"


class ConfigStore(ABC):
    """Abstract interface for config file access.

    Provides dependency injection for config loading, enabling in-memory
    implementations for tests without touching the filesystem.
    """

    @abstractmethod
    def load_global(self) -> StackConfigFile:
        """Load the user-wide config, or an empty config if absent."""
        ...

    @abstractmethod
    def load_repo(self, repo_root: Path) -> StackConfigFile:
        """Load the repo-local config, or an empty config if absent."""
        ...

    def load(self, repo_root: Path) -> StackConfigFile:
        """Load the effective file config: repo keys override global keys."""
        return self.load_global().merged_with(self.load_repo(repo_root))


class RealConfigStore(ConfigStore):
    """Production implementation reading YAML files from disk."""

    def __init__(self, home: Path | None = None) -> None:
        self._home = home if home is not None else Path.home()

    def _read(self, path: Path) -> StackConfigFile:
        if not path.exists():
            return StackConfigFile()
        return parse_config_text(path.read_text(encoding="utf-8"), path)

    def load_global(self) -> StackConfigFile:
        return self._read(self._home / CONFIG_FILENAME)

    def load_repo(self, repo_root: Path) -> StackConfigFile:
        return self._read(repo_root / CONFIG_FILENAME)


class FakeConfigStore(ConfigStore):
    """In-memory config store for tests."""

    def __init__(
        self,
        *,
        global_config: StackConfigFile | None = None,
        repo_config: StackConfigFile | None = None,
    ) -> None:
        self._global_config = global_config or StackConfigFile()
        self._repo_config = repo_config or StackConfigFile()

    def load_global(self) -> StackConfigFile:
        return self._global_config

    def load_repo(self, repo_root: Path) -> StackConfigFile:
        return self._repo_config


@dataclass(frozen=True)
class StackSettings:
    """Resolved, immutable settings for one invocation.

    Built once at the CLI boundary. The engine never mutates it.
    """

    repo_root: Path
    root_base: str
    prefix: str
    ignore_tag: str = DEFAULT_IGNORE_TAG
    land_mode: LandMode = "flatten"
    description_mode: DescriptionMode = "overwrite"
    conflict_strategy: ConflictStrategy = "rollback"
    list_order: ListOrder = "recent_on_bottom"
