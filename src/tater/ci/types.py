"""Shared types for CI configuration interpretation."""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union


class DiscoveryError(Exception):
    """Base class for provider discovery outcomes that fall through the chain."""


class ConfigNotFound(DiscoveryError):
    """The provider's configuration is absent or yields no usable command."""


class ConfigParseError(DiscoveryError):
    """The provider's configuration exists but could not be parsed."""


class ScriptKind(str, Enum):
    SINGLE = 'single'
    MULTI = 'multi'


@dataclass(frozen=True)
class SingleOrMulti:
    """A CI field that may be written as one string or as a list of strings."""
    kind: ScriptKind
    value: Union[str, List[str]]

    @classmethod
    def from_yaml(cls, raw: Any) -> Optional['SingleOrMulti']:
        """Build from a parsed YAML node, or None when it is neither form."""
        if isinstance(raw, str):
            return cls(ScriptKind.SINGLE, raw)
        if isinstance(raw, list):
            # Nested lists are legal in GitLab scripts and get flattened
            items: List[str] = []
            for item in raw:
                if isinstance(item, list):
                    items.extend(str(i) for i in item if i is not None)
                elif item is not None:
                    items.append(str(item))
            return cls(ScriptKind.MULTI, items)
        return None

    def as_lines(self) -> List[str]:
        if self.kind is ScriptKind.SINGLE:
            return self.value.splitlines()
        # Each list item is treated as a single line
        return list(self.value)

    def joined(self) -> str:
        if self.kind is ScriptKind.SINGLE:
            return self.value
        return '\n'.join(self.value)


@dataclass
class MatrixValue:
    """Possible values of one matrix axis and the other-axis values they require."""
    data: List[Any]
    preconditions: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Invocation:
    """A resolved command line for the coverage tool."""
    executable: str
    args: List[str] = field(default_factory=list)
    cwd: Optional[Path] = None
    env: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.executable:
            raise ValueError("Invocation requires a non-empty executable")

    @property
    def argv(self) -> List[str]:
        return [self.executable, *self.args]

    def full_env(self) -> Dict[str, str]:
        """The process environment with this invocation's overlay applied."""
        env = os.environ.copy()
        env.update(self.env)
        return env

    def to_dict(self) -> Dict[str, Any]:
        return {
            'executable': self.executable,
            'args': list(self.args),
            'cwd': str(self.cwd) if self.cwd else None,
            'env': dict(self.env),
        }
