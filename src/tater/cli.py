#!/usr/bin/env python3
"""Command-line interface for tater."""

import json
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

import click
import yaml

from . import __version__
from .ci.resolver import ResolutionChain
from .context import BatchContext, ContextError, ProjectSpec, load_context
from .runner.batch import BatchRunner
from .runner.config import RunnerConfig

logger = logging.getLogger("tater")

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR']


def setup_logging(level: str, log_path: Optional[Path] = None) -> logging.Logger:
    """Console logging plus an optional run log file."""
    root = logging.getLogger("tater")
    root.setLevel(level)
    root.handlers = []
    ch = logging.StreamHandler(sys.stderr)
    ch.setFormatter(logging.Formatter('%(message)s'))
    root.addHandler(ch)
    if log_path is not None:
        fh = logging.FileHandler(log_path)
        fh.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
        root.addHandler(fh)
    return root


def install_interrupt_handler(event: threading.Event) -> None:
    """Turn SIGINT/SIGTERM into a request to stop after the current project."""
    def handler(signum, frame):
        if not event.is_set():
            logger.warning("Interrupt received, stopping after the current project")
        event.set()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


@click.group()
@click.version_option(version=__version__)
def cli():
    """tater - run code coverage across many repositories"""
    pass


@cli.command()
@click.option('--input', '-i', 'repos', default='repos.json',
              type=click.Path(dir_okay=False, path_type=Path),
              help='Location of the repos file (JSON, or TOML with a .toml suffix)')
@click.option('--output', '-o', default='./output',
              type=click.Path(path_type=Path),
              help='Directory to add the projects and results folders to')
@click.option('--jobs', '-j', type=click.IntRange(min=1),
              help='Limit the number of build jobs used by the coverage tool')
@click.option('--keep-projects', is_flag=True,
              help='Keep working clones of passing projects')
@click.option('--log-level', default='INFO', envvar='TATER_LOG',
              type=click.Choice(LOG_LEVELS, case_sensitive=False),
              help='Logging level (also read from TATER_LOG)')
@click.option('--verbose', '-v', is_flag=True,
              help='Enable verbose output')
def run(repos: Path, output: Path, jobs: Optional[int], keep_projects: bool,
        log_level: str, verbose: bool):
    """Run coverage for every project in the repos file"""

    if not repos.is_file():
        click.echo(f"❌ No repos file found at {repos}", err=True)
        raise click.Abort()
    if output.is_file():
        click.echo(f"❌ Output directory {output} is a file", err=True)
        raise click.Abort()
    if not output.is_dir():
        click.echo(f"📁 Creating output directory: {output}")
        output.mkdir(parents=True, exist_ok=True)

    config = RunnerConfig(output=output, jobs=jobs, keep_projects=keep_projects)
    log = setup_logging('DEBUG' if verbose else log_level.upper(), config.log_file)

    try:
        context = load_context(repos)
    except ContextError as e:
        click.echo(f"❌ Error loading repos file: {e}", err=True)
        raise click.Abort()

    interrupt = threading.Event()
    install_interrupt_handler(interrupt)

    summary = BatchRunner(context, config, log=log).run(interrupt)

    click.echo(f"✅ Passed: {summary.passed}  ❌ Failed: {summary.failed}  "
               f"(processed {summary.processed} of {summary.total - summary.start_index} remaining)")
    if summary.interrupted:
        click.echo("⏸  Paused, rerun the same command to resume")
    sys.exit(summary.exit_code)


@cli.command()
@click.argument('repo_path', type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option('--toolchain', default='', help='Toolchain to run the coverage tool with')
@click.option('--target', help='Target triple to pass to the coverage tool')
@click.option('--jobs', '-j', type=click.IntRange(min=1),
              help='Limit the number of build jobs used by the coverage tool')
@click.option('--format', 'output_format', default='text',
              type=click.Choice(['json', 'yaml', 'text']),
              help='Output format for the resolved invocation')
@click.option('--verbose', '-v', is_flag=True,
              help='Enable verbose output')
def discover(repo_path: Path, toolchain: str, target: Optional[str], jobs: Optional[int],
             output_format: str, verbose: bool):
    """Show the coverage command resolved for a local checkout"""

    setup_logging('DEBUG' if verbose else 'WARNING')
    context = BatchContext(toolchain=toolchain, target=target)
    spec = ProjectSpec(repository_url=repo_path.resolve().as_uri())
    invocation = ResolutionChain(jobs=jobs).resolve(repo_path, context, spec)

    if output_format == 'json':
        click.echo(json.dumps(invocation.to_dict(), indent=2))
    elif output_format == 'yaml':
        click.echo(yaml.safe_dump(invocation.to_dict(), default_flow_style=False))
    else:  # text format
        click.echo(f"Coverage invocation for: {repo_path}")
        click.echo(f"{'='*50}")
        click.echo(f"Command: {' '.join(invocation.argv)}")
        click.echo(f"Working directory: {invocation.cwd}")
        for key, value in sorted(invocation.env.items()):
            click.echo(f"Env: {key}={value}")


if __name__ == '__main__':
    cli()
