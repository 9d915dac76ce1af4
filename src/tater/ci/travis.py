"""Travis CI configuration interpretation."""

import logging
from pathlib import Path

from ..context import BatchContext, ProjectSpec
from .base import CiProvider, load_yaml_document
from .types import ConfigNotFound, Invocation, ScriptKind, SingleOrMulti

logger = logging.getLogger(__name__)


class TravisCi(CiProvider):
    """Reads the root `.travis.yml`."""

    name = 'travis'

    CONFIG_FILE = '.travis.yml'

    def discover(self, root: Path, context: BatchContext, spec: ProjectSpec) -> Invocation:
        config = load_yaml_document(root / self.CONFIG_FILE)

        # Coverage is usually uploaded from after_success, so prefer it
        if 'after_success' in config:
            block = SingleOrMulti.from_yaml(config['after_success'])
        else:
            block = SingleOrMulti.from_yaml(config.get('script'))
        if block is None:
            raise ConfigNotFound("No script block in .travis.yml")

        # A block string may hold continuation lines, so keep it whole
        if block.kind is ScriptKind.SINGLE:
            scripts = [block.joined()]
        else:
            scripts = block.as_lines()
        invocation = self.invocation_from_scripts(root, context, scripts)
        if invocation is None:
            raise ConfigNotFound("Didn't find a valid command to turn into a coverage run")
        return invocation
