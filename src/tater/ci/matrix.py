"""GitHub Actions matrix resolution."""

import logging
import re
from typing import Any, Dict, List, Mapping, Optional

from .types import MatrixValue

logger = logging.getLogger(__name__)

MATRIX_ROOT = 'matrix'
EXPRESSION_PATTERN = re.compile(r'\$\{\{\s*([^}]*?)\s*\}\}')


def job_matrix(job: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a job's `strategy.matrix` mapping, empty when absent or dynamic."""
    strategy = job.get('strategy')
    if not isinstance(strategy, dict):
        return {}
    matrix = strategy.get('matrix')
    # `matrix: ${{ fromJson(...) }}` can't be resolved statically
    if not isinstance(matrix, dict):
        return {}
    return matrix


def possible_matrix_values(job: Mapping[str, Any], reference: str) -> Optional[List[MatrixValue]]:
    """
    Find every set of values a `matrix.<axis>` reference can take in a job.

    An axis declared directly in the matrix yields one result holding all of
    its candidates. Otherwise each include entry that sets the axis yields one
    result, with the entry's other keys as preconditions. Results from
    different include entries are never merged since their preconditions can
    be mutually exclusive.

    Args:
        job: Parsed job mapping
        reference: Dotted reference such as `matrix.rust`

    Returns:
        None if the reference isn't a matrix reference, otherwise a possibly
        empty list of MatrixValue
    """
    parts = reference.split('.')
    if len(parts) < 2 or parts[0] != MATRIX_ROOT:
        return None
    axis = parts[1]
    matrix = job_matrix(job)

    if axis != 'include' and axis != 'exclude' and axis in matrix:
        data = matrix[axis]
        if not isinstance(data, list):
            data = [data]
        if not data:
            return []
        return [MatrixValue(data=list(data))]

    include = matrix.get('include')
    if not isinstance(include, list):
        return []

    results = []
    for entry in include:
        if not isinstance(entry, dict) or axis not in entry:
            continue
        value = entry[axis]
        data = list(value) if isinstance(value, list) else [value]
        if not data:
            continue
        preconditions = {}
        for key, val in entry.items():
            if key == axis:
                continue
            if not isinstance(key, str):
                logger.warning(f"Unexpected key type in GHA matrix: {key!r}")
                continue
            preconditions[key] = val
        results.append(MatrixValue(data=data, preconditions=preconditions))
    return results


def expand_expressions(text: str, job: Mapping[str, Any]) -> str:
    """
    Substitute `${{ matrix.<axis> }}` placeholders with a representative value.

    The first result without preconditions is preferred, then the first
    result; its first candidate is used. Any expression that can't be resolved
    is removed.
    """
    def replace(match):
        expression = match.group(1)
        values = possible_matrix_values(job, expression)
        if not values:
            logger.debug(f"Dropping unresolved expression: {match.group(0)}")
            return ''
        chosen = next((v for v in values if not v.preconditions), values[0])
        return _scalar_text(chosen.data[0])

    return EXPRESSION_PATTERN.sub(replace, text)


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if value is None:
        return ''
    return str(value)
