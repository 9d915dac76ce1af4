"""Runner configuration and output layout."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# --- Constants ---
DEFAULT_POLL_INTERVAL = 10.0
DEFAULT_STALL_LIMIT = 5
# Percent CPU below which a sample counts as idle
DEFAULT_IDLE_CPU_THRESHOLD = 0.1
BUILD_ARTIFACT_DIR = 'target'
REPORT_PREFIX = 'tarpaulin-run'
REPORT_NAME = 'tarpaulin-run.json'


@dataclass
class RunnerConfig:
    """Settings shared by every project run in a batch."""
    output: Path
    jobs: Optional[int] = None
    poll_interval: float = DEFAULT_POLL_INTERVAL
    stall_limit: int = DEFAULT_STALL_LIMIT
    idle_cpu_threshold: float = DEFAULT_IDLE_CPU_THRESHOLD
    # Keep working clones of passing projects instead of deleting them
    keep_projects: bool = False

    def __post_init__(self):
        self.output = Path(self.output)
        if self.stall_limit < 1:
            raise ValueError("stall_limit must be at least 1")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")

    @property
    def projects_dir(self) -> Path:
        return self.output / 'projects'

    @property
    def results_dir(self) -> Path:
        return self.output / 'results'

    @property
    def progress_file(self) -> Path:
        return self.output / 'progress'

    @property
    def pass_file(self) -> Path:
        return self.output / 'pass'

    @property
    def fail_file(self) -> Path:
        return self.output / 'fail'

    @property
    def log_file(self) -> Path:
        return self.output / 'tater.log'
