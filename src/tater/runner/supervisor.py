"""Runs the coverage tool for a single project.

A project moves through cloning, optional setup, the coverage run itself,
optional teardown and finally finalization, which always happens: the build
directory is removed, output is written to the project log and the coverage
report is moved into the results directory.
"""

import logging
import subprocess
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, IO, List, Optional

import psutil

from ..ci.resolver import ResolutionChain
from ..context import BatchContext, ProjectSpec
from ..utils.file_utils import find_prefixed_file, relocate_file, remove_tree
from ..utils.git_utils import CloneError, clone_repository, is_git_repo
from .config import BUILD_ARTIFACT_DIR, REPORT_NAME, REPORT_PREFIX, RunnerConfig
from .errors import (
    CoverageToolError,
    ExitFailure,
    GitError,
    RunError,
    SetupError,
    StalledError,
)

logger = logging.getLogger(__name__)

SHELL = 'sh'


class CpuMonitor:
    """Samples CPU utilisation of a process with psutil."""

    def __init__(self):
        self._processes: Dict[int, psutil.Process] = {}

    def start(self, pid: int) -> None:
        try:
            process = psutil.Process(pid)
            # The first call only sets the baseline and always returns 0.0
            process.cpu_percent(interval=None)
        except psutil.Error as e:
            logger.debug(f"Unable to monitor process {pid}: {e}")
            return
        self._processes[pid] = process

    def sample(self, pid: int) -> Optional[float]:
        """Percent CPU since the previous sample, or None if unavailable."""
        process = self._processes.get(pid)
        if process is None:
            return None
        try:
            return process.cpu_percent(interval=None)
        except psutil.Error:
            self._processes.pop(pid, None)
            return None

    def stop(self, pid: int) -> None:
        self._processes.pop(pid, None)


class StreamReader:
    """Drains a pipe on its own thread so the child never blocks on a full buffer."""

    def __init__(self, stream: IO[bytes], name: str):
        self.stream = stream
        self.data = b''
        self._thread = threading.Thread(target=self._read, name=name, daemon=True)

    def _read(self) -> None:
        try:
            self.data = self.stream.read()
        except (OSError, ValueError) as e:
            logger.debug(f"Reading {self._thread.name} stopped early: {e}")
        finally:
            self.stream.close()

    def start(self) -> None:
        self._thread.start()

    def join(self) -> bytes:
        self._thread.join()
        return self.data


@dataclass
class RunResult:
    """Outcome of one project run."""
    name: str
    passed: bool = False
    stdout: bytes = b''
    stderr: bytes = b''
    exit_code: Optional[int] = None
    artifact: Optional[Path] = None
    error: Optional[RunError] = None


@dataclass
class _ProjectRun:
    spec: ProjectSpec
    project_dir: Path
    results_dir: Path
    readers: List[StreamReader] = field(default_factory=list)
    result: Optional[RunResult] = None


class ProjectRunner:
    """Clones, sets up, runs and cleans up one project at a time."""

    def __init__(self, context: BatchContext, config: RunnerConfig,
                 resolver: Optional[ResolutionChain] = None,
                 cpu_monitor: Optional[CpuMonitor] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.context = context
        self.config = config
        self.resolver = resolver or ResolutionChain(jobs=config.jobs)
        self.cpu_monitor = cpu_monitor or CpuMonitor()
        self.sleep = sleep

    def run(self, index: int, spec: ProjectSpec) -> RunResult:
        """
        Run the coverage tool for a project.

        Failures never propagate: they are logged and returned in the result.

        Args:
            index: Position of the project in the batch
            spec: Project to run

        Returns:
            RunResult describing the outcome
        """
        name = spec.name
        logger.info(f"{name}. {index + 1}/{len(self.context.crates)}")
        run = _ProjectRun(
            spec=spec,
            project_dir=self.config.projects_dir / name,
            results_dir=self.config.results_dir / name,
            result=RunResult(name=name),
        )
        try:
            self._execute(run)
            run.result.passed = True
        except RunError as e:
            logger.error(f"{name} failed: {e}")
            run.result.error = e
        except Exception as e:
            logger.error(f"Unexpected error running {name}: {e}", exc_info=True)
            run.result.error = RunError(str(e))
        finally:
            self._finalize(run)
        return run.result

    def _execute(self, run: _ProjectRun) -> None:
        self._clone(run)
        self._setup(run)
        try:
            self._run_coverage(run)
        finally:
            self._teardown(run)
        exit_code = run.result.exit_code
        if exit_code != 0:
            raise ExitFailure(exit_code)

    def _clone(self, run: _ProjectRun) -> None:
        if is_git_repo(run.project_dir):
            logger.warning(f"{run.spec.name} already cloned, using existing version")
            return
        if run.project_dir.exists():
            logger.warning(f"Removing incomplete checkout at {run.project_dir}")
            remove_tree(run.project_dir)
        run.project_dir.parent.mkdir(parents=True, exist_ok=True)
        try:
            clone_repository(run.spec.repository_url, run.project_dir)
        except CloneError as e:
            raise GitError(str(e)) from e

    def _setup(self, run: _ProjectRun) -> None:
        if not run.spec.setup:
            return
        try:
            self._run_snippet(run.spec.setup, run.project_dir, 'setup', run.spec.name)
        except OSError as e:
            raise SetupError(f"Failed to run setup script: {e}") from e

    def _teardown(self, run: _ProjectRun) -> None:
        if not run.spec.teardown:
            return
        try:
            self._run_snippet(run.spec.teardown, run.project_dir, 'teardown', run.spec.name)
        except OSError as e:
            logger.warning(f"teardown failed for {run.spec.name}: {e}")

    def _run_snippet(self, snippet: str, cwd: Path, label: str, name: str) -> None:
        completed = subprocess.run(
            [SHELL, '-c', snippet],
            cwd=str(cwd),
            capture_output=True,
        )
        if completed.returncode != 0:
            stderr = completed.stderr.decode('utf-8', errors='replace')
            logger.warning(
                f"{label} for {name} exited with {completed.returncode}: "
                f"{stderr.strip()[-2000:]}"
            )

    def _run_coverage(self, run: _ProjectRun) -> None:
        invocation = self.resolver.resolve(run.project_dir, self.context, run.spec)
        logger.info(f"Spawning: {' '.join(invocation.argv)}")
        try:
            # A new session keeps terminal interrupts away from the child
            process = subprocess.Popen(
                invocation.argv,
                cwd=str(invocation.cwd or run.project_dir),
                env=invocation.full_env(),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            raise CoverageToolError(f"Unable to spawn {invocation.executable}: {e}") from e

        run.readers = [
            StreamReader(process.stdout, f'{run.spec.name}-stdout'),
            StreamReader(process.stderr, f'{run.spec.name}-stderr'),
        ]
        for reader in run.readers:
            reader.start()

        try:
            run.result.exit_code = self._wait(process, run.spec.name)
        finally:
            self.cpu_monitor.stop(process.pid)
            # Readers only finish once the child closes its pipes
            if process.returncode is None:
                _kill_tree(process)

    def _wait(self, process: subprocess.Popen, name: str) -> int:
        self.cpu_monitor.start(process.pid)
        idle_samples = 0
        while True:
            # The tool is never done immediately, so sleep first
            self.sleep(self.config.poll_interval)
            try:
                status = process.poll()
            except OSError as e:
                raise CoverageToolError(f"Failed to wait on coverage tool: {e}") from e
            if status is not None:
                return status

            usage = self.cpu_monitor.sample(process.pid)
            if usage is None:
                continue
            if usage < self.config.idle_cpu_threshold:
                idle_samples += 1
            else:
                idle_samples = 0
            if idle_samples >= self.config.stall_limit:
                logger.error(f"{name} stalled, killing")
                _kill_tree(process)
                raise StalledError()

    def _finalize(self, run: _ProjectRun) -> None:
        result = run.result
        remove_tree(run.project_dir / BUILD_ARTIFACT_DIR)

        if len(run.readers) == 2:
            result.stdout = run.readers[0].join()
            result.stderr = run.readers[1].join()

        log_path = run.results_dir / f'{result.name}.log'
        try:
            run.results_dir.mkdir(parents=True, exist_ok=True)
            with log_path.open('wb') as writer:
                writer.write(b'stdout:\n')
                writer.write(result.stdout)
                writer.write(b'\n\nstderr:\n')
                writer.write(result.stderr)
                if result.error is not None:
                    writer.write(b'\n\nerror:\n')
                    writer.write(str(result.error).encode('utf-8', errors='replace'))
        except OSError as e:
            logger.error(f"Unable to write log for {result.name}: {e}")

        report = find_prefixed_file(run.project_dir, REPORT_PREFIX)
        if report is not None and relocate_file(report, run.results_dir / REPORT_NAME):
            result.artifact = run.results_dir / REPORT_NAME
        elif report is None:
            logger.warning(f"Haven't found coverage report for {result.name}")
        else:
            logger.warning(f"Failed to copy coverage report, still in {run.project_dir}")

        if result.passed and not self.config.keep_projects:
            remove_tree(run.project_dir)


def _kill_tree(process: subprocess.Popen) -> None:
    # Signal through psutil, Popen.kill polls first and may be what failed
    try:
        parent = psutil.Process(process.pid)
        targets = parent.children(recursive=True) + [parent]
    except psutil.Error:
        targets = []
    for target in targets:
        try:
            target.kill()
        except psutil.Error as e:
            logger.debug(f"Unable to kill {target.pid}: {e}")
    process.wait()
