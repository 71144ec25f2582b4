"""Configuration management for mdrules."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from mdrules.exceptions import ConfigError

MDRULES_DIR = ".mdrules"
CONFIG_FILE = "config.json"

LogLevel = Literal["silent", "debug", "info", "warning", "error"]

DEFAULT_INCLUDE = ["**/*.md"]
DEFAULT_EXCLUDE = [
    "**/node_modules/**",
    "**/build/**",
    "**/dist/**",
    "**/.git/**",
    "**/coverage/**",
    "**/.next/**",
    "**/.nuxt/**",
    "**/out/**",
    "**/.cache/**",
    "**/tmp/**",
    "**/temp/**",
]

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}


class IndexerConfig(BaseModel):
    """Which files seed the document index."""

    include_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_INCLUDE))
    exclude_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE))


class ContextConfig(BaseModel):
    """Context assembly behavior."""

    hoist: bool = True  # place related docs before the doc that links them


class ProjectConfig(BaseModel):
    """Full project configuration."""

    name: str = ""
    root_path: str = "."
    log_level: LogLevel = "info"
    indexer: IndexerConfig = Field(default_factory=IndexerConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)


def find_project_root(start: Path | None = None) -> Path | None:
    """Nearest directory at or above `start` that holds a .mdrules directory."""
    here = (start or Path.cwd()).resolve()
    return next(
        (candidate for candidate in (here, *here.parents) if (candidate / MDRULES_DIR).is_dir()),
        None,
    )


def config_path(root: Path) -> Path:
    return root / MDRULES_DIR / CONFIG_FILE


def load_config(root: Path) -> ProjectConfig:
    """Read the project config, or defaults named after `root` when none is saved."""
    path = config_path(root)
    if not path.is_file():
        return ProjectConfig(name=root.name, root_path=str(root))
    try:
        return ProjectConfig.model_validate_json(path.read_text())
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e


def save_config(root: Path, config: ProjectConfig) -> None:
    path = config_path(root)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(config.model_dump_json(indent=2) + "\n")


def _lookup(data: dict, key: str) -> tuple[dict, str]:
    """Resolve a dotted key to (containing section, field name)."""
    *sections, field = key.split(".")
    for section in sections:
        data = data.get(section)
        if not isinstance(data, dict):
            raise KeyError(key)
    if field not in data:
        raise KeyError(key)
    return data, field


def get_config_value(config: ProjectConfig, key: str) -> Any:
    """Value at a dotted key such as 'indexer.include_patterns'."""
    section, field = _lookup(config.model_dump(), key)
    return section[field]


def set_config_value(config: ProjectConfig, key: str, value: Any) -> ProjectConfig:
    """Return a copy of `config` with the dotted key set, validated again.

    Raises KeyError for unknown keys and ValidationError for bad values.
    """
    data = config.model_dump()
    section, field = _lookup(data, key)
    section[field] = value
    return ProjectConfig.model_validate(data)


def _split_patterns(value: str) -> list[str]:
    return [p.strip() for p in value.split(",") if p.strip()]


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be true or false, got {value!r}")


def apply_env_overrides(
    config: ProjectConfig, environ: dict[str, str] | None = None
) -> ProjectConfig:
    """Overlay MARKDOWN_INCLUDE, MARKDOWN_EXCLUDE, HOIST_CONTEXT, LOG_LEVEL
    and PROJECT_ROOT from the environment onto `config`.

    Empty values are ignored so an MCP launcher can pass every variable
    unconditionally.
    """
    env = os.environ if environ is None else environ
    data = config.model_dump()

    if env.get("MARKDOWN_INCLUDE"):
        data["indexer"]["include_patterns"] = _split_patterns(env["MARKDOWN_INCLUDE"])
    if env.get("MARKDOWN_EXCLUDE"):
        data["indexer"]["exclude_patterns"] = _split_patterns(env["MARKDOWN_EXCLUDE"])
    if env.get("HOIST_CONTEXT"):
        data["context"]["hoist"] = _parse_bool("HOIST_CONTEXT", env["HOIST_CONTEXT"])
    if env.get("LOG_LEVEL"):
        level = env["LOG_LEVEL"].strip().lower()
        data["log_level"] = "warning" if level == "warn" else level
    if env.get("PROJECT_ROOT"):
        data["root_path"] = env["PROJECT_ROOT"]

    try:
        return ProjectConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid environment configuration: {e}") from e
