from __future__ import annotations

import logging
from pathlib import Path

import pytest

from tater.ci.base import scalar_env
from tater.ci.gitlab import GitLabCi
from tater.ci.resolver import ResolutionChain
from tater.ci.travis import TravisCi
from tater.ci.types import ConfigNotFound, ConfigParseError, ScriptKind, SingleOrMulti
from tater.context import BatchContext, ProjectSpec

GITLAB_PIPELINE = """
image: "rust:latest"

variables:
  CARGO_HOME: cargo-home
  RUSTFLAGS: "$EXTRA_FLAGS"

stages:
  - lint
  - test

lint:fmt:
  stage: lint
  script:
    - cargo fmt -- --check

test:cargo:
  stage: test
  script:
    - rustc --version
    - cargo test --features foo
"""


def test_single_or_multi_projections() -> None:
    single = SingleOrMulti.from_yaml("cargo build\ncargo test\n")
    multi = SingleOrMulti.from_yaml(["cargo build", ["cargo test", "cargo doc"]])

    assert single is not None and single.kind is ScriptKind.SINGLE
    assert single.as_lines() == ["cargo build", "cargo test"]
    assert multi is not None and multi.kind is ScriptKind.MULTI
    assert multi.as_lines() == ["cargo build", "cargo test", "cargo doc"]
    assert multi.joined() == "cargo build\ncargo test\ncargo doc"
    assert SingleOrMulti.from_yaml({"not": "a script"}) is None


def test_scalar_env_skips_interpolated_and_nested_values() -> None:
    env = scalar_env({"A": "x", "B": 1, "C": True, "D": "$HOME/x", "E": {"nested": 1}})

    assert env == {"A": "x", "B": "1", "C": "true"}
    assert scalar_env(None) == {}


def test_gitlab_missing_file_is_not_found(tmp_path: Path, context, spec) -> None:
    with pytest.raises(ConfigNotFound):
        GitLabCi().discover(tmp_path, context, spec)


def test_gitlab_scans_stage_scripts(tmp_path: Path, context, spec, write_file) -> None:
    write_file(tmp_path, ".gitlab-ci.yml", GITLAB_PIPELINE)

    invocation = GitLabCi().discover(tmp_path, context, spec)

    assert invocation.args[-2:] == ["--features", "foo"]
    assert invocation.env["CARGO_HOME"] == "cargo-home"
    assert "RUSTFLAGS" not in invocation.env


def test_gitlab_script_as_single_string(tmp_path: Path, context, spec, write_file) -> None:
    write_file(tmp_path, ".gitlab-ci.yml", "test:\n  script: cargo test --all-targets\n")

    invocation = GitLabCi().discover(tmp_path, context, spec)

    assert invocation.args[-1] == "--all-targets"


def test_gitlab_without_test_command_is_not_found(tmp_path: Path, context, spec, write_file) -> None:
    write_file(tmp_path, ".gitlab-ci.yml", "build:\n  script:\n    - cargo build\n")

    with pytest.raises(ConfigNotFound):
        GitLabCi().discover(tmp_path, context, spec)


def test_gitlab_malformed_file_is_parse_error(tmp_path: Path, context, spec, write_file) -> None:
    write_file(tmp_path, ".gitlab-ci.yml", "test:\n  script: [cargo test\n")

    with pytest.raises(ConfigParseError):
        GitLabCi().discover(tmp_path, context, spec)


def test_travis_prefers_after_success(tmp_path: Path, context, spec, write_file) -> None:
    write_file(
        tmp_path,
        ".travis.yml",
        "language: rust\nscript:\n  - cargo test --lib\nafter_success:\n  - cargo test --all-features\n",
    )

    invocation = TravisCi().discover(tmp_path, context, spec)

    assert invocation.args[-1] == "--all-features"


def test_travis_uses_script_without_after_success(tmp_path: Path, context, spec, write_file) -> None:
    write_file(tmp_path, ".travis.yml", "language: rust\nscript: cargo build && cargo test --doc\n")

    invocation = TravisCi().discover(tmp_path, context, spec)

    assert invocation.args[-1] == "--doc"


def test_travis_block_script_keeps_continued_flags(tmp_path: Path, context, spec, write_file) -> None:
    write_file(
        tmp_path,
        ".travis.yml",
        "language: rust\nscript: |\n  cargo build\n  cargo test \\\n    --all-features\n",
    )

    invocation = TravisCi().discover(tmp_path, context, spec)

    assert invocation.args[-1] == "--all-features"


def test_travis_missing_file_is_not_found(tmp_path: Path, context, spec) -> None:
    with pytest.raises(ConfigNotFound):
        TravisCi().discover(tmp_path, context, spec)


def test_travis_without_script_is_not_found(tmp_path: Path, context, spec, write_file) -> None:
    write_file(tmp_path, ".travis.yml", "language: rust\n")

    with pytest.raises(ConfigNotFound):
        TravisCi().discover(tmp_path, context, spec)


def test_chain_falls_back_to_default(tmp_path: Path) -> None:
    context = BatchContext(toolchain="nightly", args=["--ignore-tests"], env={"CI": "true"})
    spec = ProjectSpec(repository_url="https://github.com/o/p", args=["--all-features"], env={"X": "1"})

    invocation = ResolutionChain(jobs=2).resolve(tmp_path, context, spec)

    assert invocation.argv == [
        "cargo",
        "+nightly",
        "tarpaulin",
        "--debug",
        "--color",
        "never",
        "--jobs",
        "2",
        "--ignore-tests",
        "--all-features",
    ]
    assert invocation.env == {"RUST_LOG": "cargo_tarpaulin=info", "X": "1", "CI": "true"}
    assert invocation.cwd == tmp_path


def test_chain_priority_prefers_github(tmp_path: Path, context, spec, write_file) -> None:
    write_file(tmp_path, ".github/workflows/ci.yml", "jobs:\n  t:\n    steps:\n      - run: cargo test --gh\n")
    write_file(tmp_path, ".gitlab-ci.yml", "t:\n  script: cargo test --gl\n")
    write_file(tmp_path, ".travis.yml", "script: cargo test --tr\n")

    invocation = ResolutionChain().resolve(tmp_path, context, spec)

    assert invocation.args[-1] == "--gh"


def test_chain_parse_error_falls_through(
    tmp_path: Path, spec, write_file, caplog: pytest.LogCaptureFixture
) -> None:
    write_file(tmp_path, ".github/workflows/ci.yml", "jobs: [unclosed\n")
    write_file(tmp_path, ".travis.yml", "script: cargo test --tr\n")
    context = BatchContext(args=["--skip-clean"])

    with caplog.at_level(logging.WARNING, logger="tater"):
        invocation = ResolutionChain().resolve(tmp_path, context, spec)

    assert invocation.args[-2:] == ["--tr", "--skip-clean"]
    assert "could not be parsed" in caplog.text
