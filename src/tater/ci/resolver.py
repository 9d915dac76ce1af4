"""Resolution chain over the CI providers."""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from ..context import BatchContext, ProjectSpec
from .base import CiProvider
from .commands import apply_overrides, base_invocation
from .github import GitHubActions
from .gitlab import GitLabCi
from .travis import TravisCi
from .types import ConfigNotFound, ConfigParseError, Invocation

logger = logging.getLogger(__name__)


def default_providers(jobs: Optional[int] = None) -> List[CiProvider]:
    """Providers in the order they are tried."""
    return [GitHubActions(jobs), GitLabCi(jobs), TravisCi(jobs)]


class ResolutionChain:
    """Tries each provider in priority order, falling back to a default invocation."""

    def __init__(self, jobs: Optional[int] = None,
                 providers: Optional[Sequence[CiProvider]] = None):
        self.jobs = jobs
        self.providers = list(providers) if providers is not None else default_providers(jobs)

    def resolve(self, root: Path, context: BatchContext, spec: ProjectSpec) -> Invocation:
        """
        Resolve the coverage invocation for a project checkout.

        Args:
            root: Project checkout directory
            context: Batch context
            spec: Project being run

        Returns:
            The first provider's invocation, or the default one, with batch
            and project overrides applied
        """
        root = Path(root)
        for provider in self.providers:
            try:
                invocation = provider.discover(root, context, spec)
            except ConfigNotFound as e:
                logger.debug(f"{provider.name}: {e}")
                continue
            except ConfigParseError as e:
                logger.warning(f"{provider.name} config for {spec.name} could not be parsed: {e}")
                continue
            logger.info(f"Resolved coverage command for {spec.name} from {provider.name} config")
            return apply_overrides(invocation, context, spec)

        logger.info(f"No CI command found for {spec.name}, using default arguments")
        return apply_overrides(base_invocation(root, context, self.jobs), context, spec)
