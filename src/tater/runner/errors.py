"""Per-project run failures."""


class RunError(Exception):
    """Base class for anything that stops a project from passing."""

    kind = 'error'


class GitError(RunError):
    """Issue cloning repo."""

    kind = 'git'


class SetupError(RunError):
    """Failed to run setup script."""

    kind = 'setup'


class CoverageToolError(RunError):
    """Failed to launch or wait on the coverage tool."""

    kind = 'coverage-tool'


class StalledError(RunError):
    """The coverage tool sat idle for too long and was killed."""

    kind = 'stalled'

    def __init__(self, message: str = 'Coverage tool seems to have stalled'):
        super().__init__(message)


class ExitFailure(RunError):
    """The coverage tool ran to completion but reported a failure."""

    kind = 'exit'

    def __init__(self, exit_code: int):
        super().__init__(f'Coverage tool exited with a failure (code {exit_code})')
        self.exit_code = exit_code
