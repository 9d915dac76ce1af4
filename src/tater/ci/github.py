"""GitHub Actions workflow interpretation.

Workflow syntax reference:
https://docs.github.com/en/actions/learn-github-actions/workflow-syntax-for-github-actions
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..context import BatchContext, ProjectSpec
from ..utils.file_utils import list_files
from .base import CiProvider, load_yaml_document, scalar_env
from .commands import process_arg_string
from .matrix import expand_expressions
from .types import ConfigNotFound, ConfigParseError, DiscoveryError, Invocation

logger = logging.getLogger(__name__)


class GitHubActions(CiProvider):
    """Reads `.github/workflows` to find how a project runs its tests."""

    name = 'github'

    WORKFLOW_DIR = Path('.github') / 'workflows'
    WORKFLOW_SUFFIXES = ('.yml', '.yaml')
    # Checked in order against the lowercased workflow file name
    PREFERRED_NAMES = ['coverage', 'test', 'ci', 'rust']
    COVERAGE_ACTION = 'actions-rs/tarpaulin'
    BUILD_ACTION = 'actions-rs/cargo'
    OUT_TYPE = 'Json'

    def discover(self, root: Path, context: BatchContext, spec: ProjectSpec) -> Invocation:
        directory = root / self.WORKFLOW_DIR
        if not directory.is_dir():
            raise ConfigNotFound("Didn't find a .github/workflows directory")
        try:
            workflows = list_files(directory, self.WORKFLOW_SUFFIXES)
        except OSError as e:
            raise ConfigParseError(f"Unable to list {directory}: {e}") from e
        if not workflows:
            raise ConfigNotFound("No workflow files in .github/workflows")

        preferred = self.preferred_workflow(workflows)
        if preferred is not None:
            return self.read_workflow(root, context, preferred)

        # No obvious candidate, take the first workflow that yields a command
        for workflow in workflows:
            try:
                return self.read_workflow(root, context, workflow)
            except DiscoveryError as e:
                logger.debug(f"Skipping workflow {workflow.name}: {e}")
        raise ConfigNotFound("Didn't find valid github action")

    def preferred_workflow(self, workflows: List[Path]) -> Optional[Path]:
        for keyword in self.PREFERRED_NAMES:
            for workflow in workflows:
                if keyword in workflow.name.lower():
                    return workflow
        return None

    def read_workflow(self, root: Path, context: BatchContext, path: Path) -> Invocation:
        """
        Turn one workflow file into a coverage invocation.

        Jobs are scanned for, in order of preference, a coverage action step,
        a cargo action step running `test`, then test commands inside the
        steps' inline scripts.

        Raises:
            ConfigNotFound: No job in the workflow has a usable command
            ConfigParseError: The workflow is malformed
        """
        logger.debug(f"Processing workflow: {path}")
        workflow = load_yaml_document(path)
        jobs = workflow.get('jobs')
        if not isinstance(jobs, dict):
            raise ConfigParseError(f"Workflow {path.name} has no jobs mapping")
        env = scalar_env(workflow.get('env'))

        for job_name, job in jobs.items():
            if not isinstance(job, dict):
                logger.debug(f"Ignoring malformed job {job_name!r} in {path.name}")
                continue
            steps = _steps(job)

            coverage_step = next((s for s in steps if _uses(s).startswith(self.COVERAGE_ACTION)), None)
            if coverage_step is not None:
                invocation = self.base(root, context)
                invocation.env.update(env)
                invocation.args.extend(self.translate_coverage_params(_with(coverage_step), job))
                logger.info(f"Using coverage action from job {job_name!r} in {path.name}")
                return invocation

            build_step = next(
                (s for s in steps
                 if _uses(s).startswith(self.BUILD_ACTION) and _with(s).get('command') == 'test'),
                None,
            )
            if build_step is not None:
                invocation = self.base(root, context)
                invocation.env.update(env)
                working_dir = _working_directory(workflow, job)
                if working_dir:
                    invocation.cwd = root / working_dir
                    logger.info(f"Working dir to {invocation.cwd}")
                step_args = _param_text(_with(build_step).get('args'))
                if step_args:
                    invocation.args.extend(process_arg_string(expand_expressions(step_args, job)))
                logger.info(f"Using cargo test action from job {job_name!r} in {path.name}")
                return invocation

            scripts = [expand_expressions(s['run'], job) for s in steps if isinstance(s.get('run'), str)]
            invocation = self.invocation_from_scripts(root, context, scripts, env)
            if invocation is not None:
                working_dir = _working_directory(workflow, job)
                if working_dir:
                    invocation.cwd = root / working_dir
                return invocation

        raise ConfigNotFound(f"Didn't find a command to convert in {path.name}")

    def translate_coverage_params(self, params: Mapping[str, Any], job: Mapping[str, Any]) -> List[str]:
        """Map the coverage action's `with` inputs onto command line arguments."""
        args: List[str] = []
        for key, raw in params.items():
            value = _param_text(raw)
            if value is None:
                logger.debug(f"Ignoring non-scalar with field: {key}")
                continue
            value = expand_expressions(value, job)
            if key == 'run-types':
                args.append('--run-types')
                args.extend(value.split())
            elif key == 'timeout':
                args.extend(['--timeout', value.strip()])
            elif key == 'out-type':
                args.extend(['--out', self.OUT_TYPE])
            elif key in ('args', 'version'):
                args.extend(process_arg_string(value))
            else:
                logger.warning(f"Unexpected with field: {key}")
        return args


def _steps(job: Mapping[str, Any]) -> List[Dict[str, Any]]:
    steps = job.get('steps')
    if not isinstance(steps, list):
        return []
    return [s for s in steps if isinstance(s, dict)]


def _uses(step: Mapping[str, Any]) -> str:
    uses = step.get('uses')
    return uses if isinstance(uses, str) else ''


def _with(step: Mapping[str, Any]) -> Dict[str, Any]:
    params = step.get('with')
    return params if isinstance(params, dict) else {}


def _param_text(value: Any) -> Optional[str]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (str, int, float)):
        return str(value)
    return None


def _working_directory(workflow: Mapping[str, Any], job: Mapping[str, Any]) -> Optional[str]:
    # Job level defaults take precedence over workflow level ones
    for scope in (job, workflow):
        defaults = scope.get('defaults')
        if not isinstance(defaults, dict):
            continue
        run = defaults.get('run')
        if isinstance(run, dict) and isinstance(run.get('working-directory'), str):
            return run['working-directory']
    return None
