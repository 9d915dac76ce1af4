"""CI configuration interpretation."""

from .commands import extract_coverage_commands
from .matrix import possible_matrix_values
from .resolver import ResolutionChain
from .types import ConfigNotFound, ConfigParseError, DiscoveryError, Invocation

__all__ = [
    'extract_coverage_commands',
    'possible_matrix_values',
    'ResolutionChain',
    'ConfigNotFound',
    'ConfigParseError',
    'DiscoveryError',
    'Invocation',
]
