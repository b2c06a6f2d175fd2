"""Configuration loading from rtmx.yaml with env var interpolation."""

from __future__ import annotations

import os
import re
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from rtmx.errors import IOFailureError, SchemaError

# Searched, in order, in the start directory and each of its parents.
CONFIG_CANDIDATES: tuple[str, ...] = (".rtmx/config.yaml", "rtmx.yaml", "rtmx.yml")


def _interpolate_env(value: str) -> str:
    """Replace ${ENV_VAR} patterns with environment variable values."""
    return re.sub(
        r"\$\{(\w+)\}",
        lambda m: os.environ.get(m.group(1), m.group(0)),
        value,
    )


def _walk_interpolate(obj):
    """Recursively interpolate env vars in a config dict."""
    if isinstance(obj, str):
        return _interpolate_env(obj)
    if isinstance(obj, dict):
        return {k: _walk_interpolate(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_walk_interpolate(v) for v in obj]
    return obj


class GitHubLabels(BaseModel):
    requirement: str = "requirement"


class GitHubAdapterConfig(BaseModel):
    enabled: bool = False
    repo: str = ""
    token_env: str = "GITHUB_TOKEN"
    labels: GitHubLabels = Field(default_factory=GitHubLabels)
    status_mapping: dict[str, str] = Field(default_factory=dict)


class JiraAdapterConfig(BaseModel):
    enabled: bool = False
    server: str = ""
    project: str = ""
    token_env: str = "JIRA_API_TOKEN"
    email_env: str = "JIRA_EMAIL"
    issue_type: str = "Task"
    jql_filter: str = ""
    labels: list[str] = Field(default_factory=list)
    status_mapping: dict[str, str] = Field(default_factory=dict)


class AdaptersConfig(BaseModel):
    github: GitHubAdapterConfig = Field(default_factory=GitHubAdapterConfig)
    jira: JiraAdapterConfig = Field(default_factory=JiraAdapterConfig)


class LoggingConfig(BaseModel):
    level: str = "INFO"


class SyncConfig(BaseModel):
    conflict_resolution: str = "manual"


class RTMXConfig(BaseModel):
    database: str = ".rtmx/database.csv"
    requirements_dir: str = ".rtmx/requirements"
    phases: dict[int, str] = Field(
        default_factory=lambda: {1: "Foundation", 2: "Core Features", 3: "Integration"}
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    adapters: AdaptersConfig = Field(default_factory=AdaptersConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)


class AppConfig(BaseModel):
    rtmx: RTMXConfig = Field(default_factory=RTMXConfig)
    # Directory the config was found in; relative paths resolve against it.
    base_dir: Path = Field(default_factory=Path.cwd, exclude=True)

    def database_path(self) -> Path:
        path = Path(self.rtmx.database)
        return path if path.is_absolute() else self.base_dir / path

    def requirements_path(self) -> Path:
        path = Path(self.rtmx.requirements_dir)
        return path if path.is_absolute() else self.base_dir / path

    def phase_description(self, phase: int) -> str:
        return self.rtmx.phases.get(phase, f"Phase {phase}")


def load_config(path: str | Path = "rtmx.yaml") -> AppConfig:
    """Load config from YAML file with env var interpolation.

    A missing file yields the defaults.
    """
    path = Path(path)
    if path.exists():
        try:
            with open(path) as f:
                raw = yaml.safe_load(f) or {}
        except OSError as e:
            raise IOFailureError(f"failed to read config file: {e}", path=str(path)) from e
        except yaml.YAMLError as e:
            raise SchemaError(f"failed to parse config file: {e}", path=str(path)) from e
        if not isinstance(raw, dict):
            raise SchemaError("config file must contain a mapping", path=str(path))
        raw = _walk_interpolate(raw)
        base_dir = path.resolve().parent
        # .rtmx/config.yaml describes the directory above .rtmx/
        if base_dir.name == ".rtmx":
            base_dir = base_dir.parent
    else:
        raw = {}
        base_dir = Path.cwd()
    try:
        return AppConfig(**raw, base_dir=base_dir)
    except ValidationError as e:
        raise SchemaError(f"invalid config file {path}: {e}", path=str(path)) from e


def find_config(start_dir: str | Path = ".") -> Path | None:
    """Search *start_dir* and its parents for a config file."""
    current = Path(start_dir).resolve()
    for directory in (current, *current.parents):
        for candidate in CONFIG_CANDIDATES:
            path = directory / candidate
            if path.is_file():
                return path
    return None


def load_config_from_dir(start_dir: str | Path = ".") -> AppConfig:
    path = find_config(start_dir)
    if path is None:
        return AppConfig(base_dir=Path(start_dir).resolve())
    return load_config(path)
