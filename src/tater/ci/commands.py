"""Test command extraction and coverage invocation building."""

import logging
import os
import re
import shlex
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

from ..context import BatchContext, ProjectSpec
from .types import Invocation

logger = logging.getLogger(__name__)

# --- Constants ---
COVERAGE_EXECUTABLE = 'cargo'
COVERAGE_SUBCOMMAND = 'tarpaulin'
COVERAGE_COMMAND = f'{COVERAGE_EXECUTABLE} {COVERAGE_SUBCOMMAND}'
DEFAULT_ARGS = ['--debug', '--color', 'never']
DEFAULT_ENV = {'RUST_LOG': 'cargo_tarpaulin=info'}
COLOR_FLAG = '--color'

CONTINUATION_PATTERN = re.compile(r'[ \t]*\\[ \t]*\r?\n[ \t]*')
TEST_KEYWORD_PATTERN = re.compile(r'cargo\s+test')
# Stops at pipes, redirects and anything else outside the class
TEST_COMMAND_PATTERN = re.compile(r'cargo\s+test[-a-zA-Z\d\s${}."~]*(?:;|&&)?')
SHELL_VARIABLE_PATTERN = re.compile(r'\$(?:\{(\w+)\}|(\w+))')
COMMAND_SEPARATORS = {';', '&&', '||', '|'}


def extract_coverage_commands(text: str) -> List[str]:
    """
    Find `cargo test` invocations in shell text and rewrite them as coverage runs.

    Args:
        text: Free-form, possibly multi-line, shell text

    Returns:
        Rewritten commands in the order they appear
    """
    folded = CONTINUATION_PATTERN.sub(' ', text)
    commands = []
    for line in folded.splitlines():
        for match in TEST_COMMAND_PATTERN.finditer(line):
            command = match.group(0).rstrip()
            commands.append(TEST_KEYWORD_PATTERN.sub(COVERAGE_COMMAND, command, count=1))
    return commands


def first_coverage_command(text: str) -> Optional[str]:
    """Return the first extracted command, logging any others as ignored."""
    commands = extract_coverage_commands(text)
    if not commands:
        return None
    if len(commands) > 1:
        logger.info(f"Using '{commands[0]}', ignoring {len(commands) - 1} other command(s): {commands[1:]}")
    return commands[0]


def strip_color_args(tokens: Iterable[str]) -> List[str]:
    """Drop any `--color <value>` pair, the runner picks its own colouring."""
    result = []
    skip_next = False
    for token in tokens:
        if skip_next:
            skip_next = False
            continue
        if token == COLOR_FLAG:
            skip_next = True
            continue
        result.append(token)
    return result


def process_arg_string(args: str) -> List[str]:
    """Tokenize a free-form argument string on whitespace, minus colour flags."""
    return strip_color_args(args.split())


def command_to_args(command: str, env: Optional[Mapping[str, str]] = None) -> List[str]:
    """
    Convert an extracted coverage command into arguments for the coverage tool.

    The executable, any `+toolchain` selector and the coverage subcommand are
    removed since the base invocation supplies them. Parsing stops at the first
    command separator. Shell variables are expanded from env (then the process
    environment); arguments with unresolved variables are dropped.

    Args:
        command: A command returned by extract_coverage_commands
        env: Extra variables available for expansion

    Returns:
        Argument list to append to the base invocation
    """
    try:
        tokens = shlex.split(command)
    except ValueError:
        tokens = command.split()

    if tokens and tokens[0] == COVERAGE_EXECUTABLE:
        tokens = tokens[1:]
    while tokens and tokens[0].startswith('+'):
        tokens = tokens[1:]
    if tokens and tokens[0] == COVERAGE_SUBCOMMAND:
        tokens = tokens[1:]

    args = []
    for token in tokens:
        if token in COMMAND_SEPARATORS:
            break
        if token.endswith(';'):
            if token[:-1]:
                args.append(token[:-1])
            break
        args.append(token)

    lookup: Dict[str, str] = dict(os.environ)
    if env:
        lookup.update(env)
    expanded = []
    for arg in args:
        value = _expand_variables(arg, lookup)
        if value is None:
            logger.debug(f"Dropping argument with unresolved variable: {arg}")
            continue
        expanded.append(value)
    return strip_color_args(expanded)


def base_invocation(root: Path, context: BatchContext, jobs: Optional[int] = None) -> Invocation:
    """The coverage invocation every resolution path starts from."""
    args = []
    if context.toolchain:
        toolchain = context.toolchain
        args.append(toolchain if toolchain.startswith('+') else f'+{toolchain}')
    args.append(COVERAGE_SUBCOMMAND)
    args.extend(DEFAULT_ARGS)
    if context.target:
        args.extend(['--target', context.target])
    if jobs:
        args.extend(['--jobs', str(jobs)])
    return Invocation(
        executable=COVERAGE_EXECUTABLE,
        args=args,
        cwd=Path(root),
        env=dict(DEFAULT_ENV),
    )


def apply_overrides(invocation: Invocation, context: BatchContext, spec: ProjectSpec) -> Invocation:
    """Append the batch and project extra args and env to an invocation."""
    invocation.args.extend(context.args)
    invocation.args.extend(spec.args)
    invocation.env.update(spec.env)
    invocation.env.update(context.env)
    return invocation


def _expand_variables(arg: str, lookup: Mapping[str, str]) -> Optional[str]:
    unresolved = False

    def replace(match):
        nonlocal unresolved
        name = match.group(1) or match.group(2)
        if name in lookup:
            return lookup[name]
        unresolved = True
        return match.group(0)

    value = SHELL_VARIABLE_PATTERN.sub(replace, arg)
    if unresolved or not value:
        return None
    return value
