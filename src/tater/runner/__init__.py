"""Project run supervision and batch orchestration."""

from .batch import BatchRunner, BatchSummary, ProgressLedger
from .config import RunnerConfig
from .errors import (
    CoverageToolError,
    ExitFailure,
    GitError,
    RunError,
    SetupError,
    StalledError,
)
from .supervisor import ProjectRunner, RunResult

__all__ = [
    'BatchRunner',
    'BatchSummary',
    'ProgressLedger',
    'RunnerConfig',
    'ProjectRunner',
    'RunResult',
    'RunError',
    'GitError',
    'SetupError',
    'StalledError',
    'CoverageToolError',
    'ExitFailure',
]
