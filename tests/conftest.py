from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from tater.context import BatchContext, ProjectSpec

WriteFile = Callable[[Path, str, str], Path]


def _write_file(root: Path, relative: str, content: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def write_file() -> WriteFile:
    return _write_file


@pytest.fixture
def context() -> BatchContext:
    return BatchContext()


@pytest.fixture
def spec() -> ProjectSpec:
    return ProjectSpec(repository_url="https://github.com/example/widget.git")
