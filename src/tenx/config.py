"""Configuration loading and project path resolution for tenx."""

import fnmatch
import logging
import os
import subprocess
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tenx.exceptions import ResolveError, TenxError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".tenx.yaml"
DEFAULT_SESSION_DIR = Path("~/.config/tenx/sessions")
HOME_CONFIG = Path("~/.config/tenx/tenx.yaml")

ENV_OVERRIDES = {
    "ANTHROPIC_API_KEY": "anthropic_api_key",
    "OPENAI_API_KEY": "openai_api_key",
    "TENX_SESSION_DIR": "session_store_dir",
}


class ModelConfig(BaseModel):
    """Which model to talk to."""

    provider: Literal["claude", "openai", "dummy"] = "claude"
    name: str = "claude-sonnet-4-20250514"
    max_tokens: int = 8192


class ChecksConfig(BaseModel):
    """Toggles for validators and formatters run after each patch."""

    enabled: bool = True
    formatters: bool = True
    disabled: list[str] = Field(default_factory=list)


class Config(BaseModel):
    """Aggregated configuration for a tenx project.

    Path resolution is always relative to ``project_root``; nothing here is
    process-global, so several configs for different roots can coexist.
    """

    model_config = ConfigDict(frozen=False)

    project_root: Path = Field(default_factory=Path.cwd)
    include: list[str] = Field(default_factory=list)
    session_store_dir: Path | None = None
    anthropic_api_key: str | None = None
    openai_api_key: str | None = None
    model: ModelConfig = Field(default_factory=ModelConfig)
    step_limit: int = 5
    checks: ChecksConfig = Field(default_factory=ChecksConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise TenxError(f"Invalid configuration: {e}") from e

    @classmethod
    def load(cls, path: str | Path | None = None, project_root: Path | None = None) -> "Config":
        """Load configuration from YAML and overlay environment variables.

        Args:
            path: Explicit config file. If None, the home config and the
                project's ``.tenx.yaml`` are merged, project taking precedence.
            project_root: Root of the project; defaults to the current directory.

        Returns:
            The loaded Config

        Raises:
            TenxError: If a config file is malformed
        """
        root = Path(project_root or Path.cwd())
        if path is not None:
            candidates = [Path(path)]
        else:
            candidates = [HOME_CONFIG.expanduser(), root / CONFIG_FILE_NAME]

        data: dict[str, Any] = {}
        for candidate in candidates:
            if not candidate.exists():
                continue
            logger.debug("loading config from %s", candidate)
            try:
                raw = yaml.safe_load(candidate.read_text(encoding="utf-8")) or {}
            except yaml.YAMLError as e:
                raise TenxError(f"Could not parse {candidate}: {e}") from e
            if not isinstance(raw, dict):
                raise TenxError(f"Config file {candidate} must contain a mapping at the top level.")
            data = _merge_dicts(data, raw)

        for env_var, key in ENV_OVERRIDES.items():
            value = os.environ.get(env_var)
            if value:
                data[key] = value
        data.setdefault("project_root", root)
        return cls.from_dict(data)

    def session_dir(self) -> Path:
        return Path(self.session_store_dir or DEFAULT_SESSION_DIR).expanduser()

    def _root(self) -> Path:
        return Path(os.path.normpath(self.project_root.expanduser().absolute()))

    def abspath(self, path: str | Path) -> Path:
        """Resolve a project-relative path to an absolute one.

        Raises:
            ResolveError: If the path points outside the project root
        """
        root = self._root()
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = root / candidate
        resolved = Path(os.path.normpath(candidate))
        if resolved != root and root not in resolved.parents:
            raise ResolveError(
                f"Path {path} is outside the project root {root}",
                f"The path {path} is outside the project. Only edit files inside the project.",
            )
        return resolved

    def relpath(self, path: str | Path) -> str:
        """Return *path* relative to the project root, in POSIX form."""
        resolved = self.abspath(path)
        return resolved.relative_to(self._root()).as_posix()

    def included_files(self) -> list[str]:
        """List project files in scope, as sorted project-relative paths.

        With no ``include`` patterns this is ``git ls-files``, falling back
        to a walk of the tree that skips hidden directories. Patterns
        prefixed with ``!`` exclude matches.
        """
        root = self._root()
        if not self.include:
            return self._git_files(root) or self._walk_files(root)

        positive = [p for p in self.include if not p.startswith("!")]
        negative = [p[1:] for p in self.include if p.startswith("!")]
        files: set[str] = set()
        for pattern in positive:
            for match in root.glob(pattern):
                if match.is_file():
                    files.add(match.relative_to(root).as_posix())
        return sorted(f for f in files if not any(fnmatch.fnmatch(f, n) for n in negative))

    def match_files_with_glob(self, pattern: str) -> list[str]:
        """Return included files matching a glob pattern."""
        return [f for f in self.included_files() if fnmatch.fnmatch(f, pattern)]

    @staticmethod
    def _git_files(root: Path) -> list[str]:
        try:
            result = subprocess.run(
                ["git", "ls-files", "--cached", "--others", "--exclude-standard"],
                cwd=root,
                capture_output=True,
                text=True,
                check=True,
            )
        except (OSError, subprocess.SubprocessError):
            return []
        return sorted(line for line in result.stdout.splitlines() if line)

    @staticmethod
    def _walk_files(root: Path) -> list[str]:
        files: list[str] = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]
            for name in filenames:
                files.append((Path(dirpath) / name).relative_to(root).as_posix())
        return sorted(files)


def _merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged
