"""Batch context and project specifications loaded from the repos file."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

from .utils.git_utils import get_repo_name_from_url

logger = logging.getLogger(__name__)

UNNAMED_PROJECT = 'unnamed_project'


class ContextError(ValueError):
    """Raised when the repos file cannot be turned into a batch context."""


@dataclass
class ProjectSpec:
    """A single repository to run coverage on."""
    repository_url: str
    # Args passed to every coverage invocation for this project
    args: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    # Executed as `sh -c <setup>` in the project directory
    setup: Optional[str] = None
    teardown: Optional[str] = None

    @property
    def name(self) -> str:
        return get_repo_name_from_url(self.repository_url) or UNNAMED_PROJECT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProjectSpec':
        if not isinstance(data, dict):
            raise ContextError(f"Project entry must be a mapping, got {type(data).__name__}")
        url = data.get('repository_url')
        if not isinstance(url, str) or not url.strip():
            raise ContextError(f"Project entry is missing 'repository_url': {data!r}")
        return cls(
            repository_url=url.strip(),
            args=_string_list(data.get('args'), 'args'),
            env=_string_map(data.get('env'), 'env'),
            setup=_optional_string(data.get('setup'), 'setup'),
            teardown=_optional_string(data.get('teardown'), 'teardown'),
        )


@dataclass
class BatchContext:
    """Shared settings plus the ordered project list for one batch."""
    toolchain: str = ''
    target: Optional[str] = None
    crates: List[ProjectSpec] = field(default_factory=list)
    # Args passed to every coverage invocation
    args: List[str] = field(default_factory=list)
    # Env vars for every coverage invocation
    env: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BatchContext':
        if not isinstance(data, dict):
            raise ContextError("Repos file must contain a mapping at the top level")
        projects = data.get('crates', data.get('projects', []))
        if not isinstance(projects, list):
            raise ContextError("'crates' must be a list of project entries")
        toolchain = data.get('toolchain') or ''
        if not isinstance(toolchain, str):
            raise ContextError("'toolchain' must be a string")
        return cls(
            toolchain=toolchain,
            target=_optional_string(data.get('target'), 'target'),
            crates=[ProjectSpec.from_dict(p) for p in projects],
            args=_string_list(data.get('args'), 'args'),
            env=_string_map(data.get('env'), 'env'),
        )


def load_context(path: Path) -> BatchContext:
    """
    Load a batch context from a JSON or TOML repos file.

    Args:
        path: Path to the repos file; `.toml` files are read as TOML,
            everything else as JSON

    Returns:
        The parsed BatchContext

    Raises:
        ContextError: If the file is unreadable or malformed
    """
    try:
        content = path.read_text(encoding='utf-8')
    except OSError as e:
        raise ContextError(f"Unable to read repos file {path}: {e}") from e

    try:
        if path.suffix.lower() == '.toml':
            data = toml.loads(content)
        else:
            data = json.loads(content)
    except (toml.TomlDecodeError, json.JSONDecodeError) as e:
        raise ContextError(f"Unable to parse repos file {path}: {e}") from e

    context = BatchContext.from_dict(data)
    logger.debug(f"Loaded {len(context.crates)} projects from {path}")
    return context


def _string_list(value: Any, key: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ContextError(f"'{key}' must be a list of strings")
    return [str(v) for v in value]


def _string_map(value: Any, key: str) -> Dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ContextError(f"'{key}' must be a mapping of strings")
    return {str(k): str(v) for k, v in value.items()}


def _optional_string(value: Any, key: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ContextError(f"'{key}' must be a string")
    return value
