from __future__ import annotations

from pathlib import Path

import pytest

from tater.ci.commands import (
    apply_overrides,
    base_invocation,
    command_to_args,
    extract_coverage_commands,
    first_coverage_command,
    process_arg_string,
)
from tater.ci.types import Invocation
from tater.context import BatchContext, ProjectSpec


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("cargo test", ["cargo tarpaulin"]),
        ("cargo test --all-features", ["cargo tarpaulin --all-features"]),
        (
            "cargo test --all-features -- --test-threads 8",
            ["cargo tarpaulin --all-features -- --test-threads 8"],
        ),
        ('cargo test -- --skip "this"', ['cargo tarpaulin -- --skip "this"']),
        ('cargo test ; -- --skip "this"', ["cargo tarpaulin ;"]),
        ("cargo test \\ \n -- hello", ["cargo tarpaulin -- hello"]),
        ("cargo test\n -- hello", ["cargo tarpaulin"]),
        ("cargo test --all && cargo fmt --check", ["cargo tarpaulin --all &&"]),
        ("cargo test --verbose | tee out.txt", ["cargo tarpaulin --verbose"]),
        ("cargo test > log.txt", ["cargo tarpaulin"]),
        ("cargo build --release", []),
        ("", []),
    ],
)
def test_extract_coverage_commands(text: str, expected: list[str]) -> None:
    assert extract_coverage_commands(text) == expected


def test_extraction_keeps_line_order() -> None:
    script = "cargo test --verbose\ncargo clippy\ncargo test --verbose --release\n"

    assert extract_coverage_commands(script) == [
        "cargo tarpaulin --verbose",
        "cargo tarpaulin --verbose --release",
    ]


def test_continuations_fold_across_several_lines() -> None:
    script = "cargo test \\\n    --features foo \\\n    --no-fail-fast\necho done"

    assert extract_coverage_commands(script) == ["cargo tarpaulin --features foo --no-fail-fast"]


def test_extraction_is_not_idempotent() -> None:
    rewritten = extract_coverage_commands("cargo test --all-features")

    assert extract_coverage_commands("\n".join(rewritten)) == []


def test_first_coverage_command_ignores_the_rest() -> None:
    assert first_coverage_command("cargo test --lib\ncargo test --doc") == "cargo tarpaulin --lib"
    assert first_coverage_command("make check") is None


def test_process_arg_string_strips_color() -> None:
    assert process_arg_string("--all-features --color always --workspace") == [
        "--all-features",
        "--workspace",
    ]
    assert process_arg_string("  ") == []


def test_command_to_args_drops_command_and_separators() -> None:
    assert command_to_args("cargo tarpaulin --all-features -- --test-threads 8") == [
        "--all-features",
        "--",
        "--test-threads",
        "8",
    ]
    assert command_to_args("cargo tarpaulin --lib;") == ["--lib"]
    assert command_to_args("cargo tarpaulin ;") == []
    assert command_to_args("cargo tarpaulin --all &&") == ["--all"]
    assert command_to_args("cargo +nightly tarpaulin --doc") == ["--doc"]
    assert command_to_args('cargo tarpaulin -- --skip "this one"') == ["--", "--skip", "this one"]


def test_command_to_args_expands_known_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TATER_UNSET_VAR", raising=False)
    monkeypatch.setenv("TATER_FROM_ENV", "--release")

    args = command_to_args(
        "cargo tarpaulin $FEATURES ${TATER_FROM_ENV} $TATER_UNSET_VAR --color always",
        {"FEATURES": "--all-features"},
    )
    assert args == ["--all-features", "--release"]


def test_base_invocation_defaults(tmp_path: Path) -> None:
    invocation = base_invocation(tmp_path, BatchContext())

    assert invocation.executable == "cargo"
    assert invocation.args == ["tarpaulin", "--debug", "--color", "never"]
    assert invocation.cwd == tmp_path
    assert invocation.env == {"RUST_LOG": "cargo_tarpaulin=info"}


def test_base_invocation_with_toolchain_target_and_jobs(tmp_path: Path) -> None:
    context = BatchContext(toolchain="nightly", target="x86_64-unknown-linux-gnu")

    invocation = base_invocation(tmp_path, context, jobs=4)

    assert invocation.args == [
        "+nightly",
        "tarpaulin",
        "--debug",
        "--color",
        "never",
        "--target",
        "x86_64-unknown-linux-gnu",
        "--jobs",
        "4",
    ]
    assert base_invocation(tmp_path, BatchContext(toolchain="+stable")).args[0] == "+stable"


def test_apply_overrides_layers_batch_env_last(tmp_path: Path) -> None:
    context = BatchContext(args=["--ignore-tests"], env={"SHARED": "batch"})
    spec = ProjectSpec(
        repository_url="https://github.com/o/p",
        args=["--features", "x"],
        env={"SHARED": "project", "ONLY_PROJECT": "1"},
    )

    invocation = apply_overrides(Invocation("cargo", ["tarpaulin"], tmp_path), context, spec)

    assert invocation.args == ["tarpaulin", "--ignore-tests", "--features", "x"]
    assert invocation.env == {"SHARED": "batch", "ONLY_PROJECT": "1"}


def test_invocation_requires_executable() -> None:
    with pytest.raises(ValueError):
        Invocation("")
