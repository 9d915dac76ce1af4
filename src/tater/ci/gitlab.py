"""GitLab CI pipeline interpretation."""

import logging
from pathlib import Path

from ..context import BatchContext, ProjectSpec
from .base import CiProvider, load_yaml_document, scalar_env
from .types import ConfigNotFound, Invocation, SingleOrMulti

logger = logging.getLogger(__name__)


class GitLabCi(CiProvider):
    """Reads the root `.gitlab-ci.yml` pipeline."""

    name = 'gitlab'

    PIPELINE_FILE = '.gitlab-ci.yml'
    # Top level keys that configure the pipeline rather than declare a job
    RESERVED_KEYS = {
        'image', 'services', 'stages', 'types', 'variables', 'include',
        'default', 'workflow', 'cache', 'before_script', 'after_script',
    }

    def discover(self, root: Path, context: BatchContext, spec: ProjectSpec) -> Invocation:
        pipeline = load_yaml_document(root / self.PIPELINE_FILE)
        env = scalar_env(pipeline.get('variables'))

        scripts = []
        for stage_name, stage in pipeline.items():
            if stage_name in self.RESERVED_KEYS or not isinstance(stage, dict):
                continue
            script = SingleOrMulti.from_yaml(stage.get('script'))
            if script is None:
                continue
            logger.info(f"Scanning stage: {stage_name!r}")
            scripts.append(script.joined())

        invocation = self.invocation_from_scripts(root, context, scripts, env)
        if invocation is None:
            raise ConfigNotFound("Didn't find a valid command to turn into a coverage run")
        return invocation
