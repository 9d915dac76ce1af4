"""Resumable batch driver over the project list."""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Optional

from ..context import BatchContext
from ..utils.file_utils import ensure_directory
from .config import RunnerConfig
from .supervisor import ProjectRunner

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_INTERRUPTED = 130


def read_progress(progress_file: Path) -> int:
    """Return the index of the next project to process, 0 if unknown."""
    if not progress_file.is_file():
        return 0
    try:
        content = progress_file.read_text(encoding='utf-8')
    except OSError as e:
        logger.error(f"Invalid progress file: {e}")
        return 0
    lines = content.splitlines()
    if not lines or not lines[0].strip():
        return 0
    line = lines[0].strip()
    try:
        index = int(line)
    except ValueError:
        logger.warning(f"Invalid progress file contents: {line}")
        return 0
    if index < 0:
        logger.warning(f"Invalid progress file contents: {line}")
        return 0
    return index


class ProgressLedger:
    """The resume index plus the pass and fail lists of a batch.

    The lists are truncated when starting from the first project and appended
    to when resuming.
    """

    def __init__(self, config: RunnerConfig):
        self.progress_file = config.progress_file
        self.pass_file = config.pass_file
        self.fail_file = config.fail_file
        self.resume_index = read_progress(self.progress_file)
        self._pass_writer: Optional[IO[str]] = None
        self._fail_writer: Optional[IO[str]] = None

    def open(self) -> None:
        mode = 'w' if self.resume_index == 0 else 'a'
        self._pass_writer = self.pass_file.open(mode, encoding='utf-8')
        self._fail_writer = self.fail_file.open(mode, encoding='utf-8')

    def close(self) -> None:
        for writer in (self._pass_writer, self._fail_writer):
            if writer is not None:
                writer.close()
        self._pass_writer = None
        self._fail_writer = None

    def __enter__(self) -> 'ProgressLedger':
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def record_pass(self, name: str) -> None:
        _append_line(self._pass_writer, name)

    def record_fail(self, name: str) -> None:
        _append_line(self._fail_writer, name)

    def advance(self, index: int) -> None:
        """Persist the index of the next project to run."""
        self.resume_index = index
        try:
            self.progress_file.write_text(str(index), encoding='utf-8')
        except OSError as e:
            logger.error(f"Unable to write progress file, resume from {index} manually: {e}")


@dataclass
class BatchSummary:
    """Aggregate outcome of a batch run."""
    total: int
    start_index: int = 0
    processed: int = 0
    passed: int = 0
    failed: int = 0
    interrupted: bool = False

    @property
    def exit_code(self) -> int:
        if self.interrupted:
            return EXIT_INTERRUPTED
        if self.failed:
            return EXIT_FAILURES
        return EXIT_OK


class BatchRunner:
    """Runs every project of a batch in order, resuming where a previous run stopped."""

    def __init__(self, context: BatchContext, config: RunnerConfig,
                 runner: Optional[ProjectRunner] = None,
                 log: Optional[logging.Logger] = None):
        self.context = context
        self.config = config
        self.runner = runner or ProjectRunner(context, config)
        self.log = log or logger

    def run(self, interrupt: threading.Event) -> BatchSummary:
        """
        Process the project list from the persisted resume index.

        The interrupt event is only checked between projects, an in-flight
        coverage run always completes or stalls out first.

        Args:
            interrupt: Set asynchronously to request a pause

        Returns:
            BatchSummary for the projects processed in this run
        """
        crates = self.context.crates
        self.log.info(f"Processing {len(crates)} projects")
        ensure_directory(self.config.output)
        if not ensure_directory(self.config.projects_dir):
            self.log.warning("Projects directory already exists")
        if not ensure_directory(self.config.results_dir):
            self.log.warning("Results directory already exists")

        ledger = ProgressLedger(self.config)
        start = ledger.resume_index
        if start > 0:
            self.log.info(f"Resuming execution from {start}")
        summary = BatchSummary(total=len(crates), start_index=start)

        with ledger:
            for i in range(start, len(crates)):
                spec = crates[i]
                result = self.runner.run(i, spec)
                summary.processed += 1

                if result.passed:
                    summary.passed += 1
                    ledger.record_pass(spec.name)
                    ledger.advance(i + 1)
                else:
                    summary.failed += 1
                    reason = result.error.kind if result.error is not None else 'unknown'
                    self.log.error(f"Coverage failed on {spec.name} ({reason}): {result.error}")
                    ledger.record_fail(spec.name)
                    ledger.advance(i)

                if interrupt.is_set():
                    self.log.info("Pausing execution")
                    if result.passed:
                        ledger.record_fail(spec.name)
                    summary.interrupted = True
                    break

        if summary.failed > 0:
            self.log.error(f"Coverage failed on {summary.failed}/{len(crates)} projects")
        return summary


def _append_line(writer: Optional[IO[str]], name: str) -> None:
    if writer is None:
        raise RuntimeError("Ledger is not open")
    writer.write(f'{name}\n')
    writer.flush()
