"""tater

Run code coverage across many repositories, using each project's own CI
configuration to work out how its tests are invoked.
"""

from .ci.resolver import ResolutionChain
from .context import BatchContext, ProjectSpec, load_context
from .runner.batch import BatchRunner
from .runner.supervisor import ProjectRunner

__all__ = [
    "BatchContext",
    "ProjectSpec",
    "load_context",
    "ResolutionChain",
    "ProjectRunner",
    "BatchRunner",
]

__version__ = "0.1.0"
