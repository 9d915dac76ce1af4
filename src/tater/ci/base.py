"""Provider adapter interface."""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

import yaml

from ..context import BatchContext, ProjectSpec
from ..utils.file_utils import read_text_file
from .commands import base_invocation, command_to_args, first_coverage_command
from .types import ConfigNotFound, ConfigParseError, Invocation

logger = logging.getLogger(__name__)


class CiProvider(ABC):
    """A CI service whose configuration can be turned into a coverage invocation."""

    name: str = 'ci'

    def __init__(self, jobs: Optional[int] = None):
        self.jobs = jobs

    @abstractmethod
    def discover(self, root: Path, context: BatchContext, spec: ProjectSpec) -> Invocation:
        """
        Build a coverage invocation from this provider's configuration.

        Args:
            root: Project checkout directory
            context: Batch context
            spec: Project being run

        Returns:
            The discovered invocation, without batch/project overrides applied

        Raises:
            ConfigNotFound: The configuration is absent or has no test command
            ConfigParseError: The configuration exists but is malformed
        """

    def base(self, root: Path, context: BatchContext) -> Invocation:
        return base_invocation(root, context, self.jobs)

    def invocation_from_scripts(self, root: Path, context: BatchContext,
                                scripts: Iterable[str],
                                env: Optional[Dict[str, str]] = None) -> Optional[Invocation]:
        """Return an invocation for the first script holding a test command."""
        for script in scripts:
            command = first_coverage_command(script)
            if command is None:
                continue
            logger.info(f"Found command in {self.name} config: {command}")
            invocation = self.base(root, context)
            if env:
                invocation.env.update(env)
            invocation.args.extend(command_to_args(command, invocation.env))
            return invocation
        return None


def load_yaml_document(path: Path) -> Dict[str, Any]:
    """
    Parse a provider YAML file that must contain a mapping.

    Raises:
        ConfigNotFound: The file doesn't exist
        ConfigParseError: The file can't be read or isn't a YAML mapping
    """
    if not path.is_file():
        raise ConfigNotFound(f"Didn't find {path.name}")
    content = read_text_file(path)
    if content is None:
        raise ConfigParseError(f"Unable to read {path}")
    try:
        document = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigParseError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(document, dict):
        raise ConfigParseError(f"Expected a mapping at the top of {path}")
    return document


def scalar_env(values: Any) -> Dict[str, str]:
    """Keep the plain scalar, non-interpolated entries of a CI env mapping."""
    if not isinstance(values, Mapping):
        return {}
    env = {}
    for key, value in values.items():
        if isinstance(value, bool):
            value = 'true' if value else 'false'
        if not isinstance(value, (str, int, float)):
            continue
        value = str(value)
        if '$' in value:
            continue
        env[str(key)] = value
    return env
