"""Tests for validators, formatters and cargo workspace discovery."""

import subprocess
from unittest.mock import MagicMock

import pytest

from tenx.checks import active_checks, run_checks, run_formatters, run_validators
from tenx.checks.python import PythonCompile
from tenx.checks.rust import (
    RustCargoCheck,
    RustCargoClippy,
    discover_workspace,
    find_common_ancestor,
    find_workspace_root,
)
from tenx.config import ChecksConfig, Config, ModelConfig
from tenx.exceptions import CheckError, WorkspaceNotFoundError
from tenx.models import ModelSpec
from tenx.session import Session


@pytest.fixture
def rust_project(tmp_path):
    root = tmp_path / "crate"
    (root / "src").mkdir(parents=True)
    (root / "Cargo.toml").write_text('[package]\nname = "demo"\nversion = "0.1.0"\n')
    (root / "src" / "main.rs").write_text("fn main() {}\n")
    (root / "tools" / "inner" / "src").mkdir(parents=True)
    (root / "tools" / "inner" / "Cargo.toml").write_text('[package]\nname = "inner"\n')
    (root / "tools" / "inner" / "src" / "lib.rs").write_text("pub fn f() {}\n")
    return root


@pytest.fixture
def rust_config(rust_project, tmp_path):
    return Config(
        project_root=rust_project,
        session_store_dir=tmp_path / "sessions",
        model=ModelConfig(provider="dummy", name="dummy"),
        checks=ChecksConfig(enabled=True),
    )


@pytest.fixture
def rust_session(rust_project):
    return Session(root=rust_project, model=ModelSpec(provider="dummy", name="dummy"))


@pytest.fixture
def cargo(monkeypatch):
    """Pretend cargo is installed and capture its invocations."""
    monkeypatch.setattr("tenx.checks.rust.shutil.which", lambda name: "/usr/bin/cargo")
    run = MagicMock(return_value=subprocess.CompletedProcess([], 0, stdout="", stderr=""))
    monkeypatch.setattr("tenx.checks.rust.run_cargo", run)
    return run


# ---------------------------------------------------------------------------
# Workspace discovery
# ---------------------------------------------------------------------------


class TestWorkspaceDiscovery:
    """Tests for locating the cargo workspace."""

    def test_common_ancestor(self, tmp_path):
        a = tmp_path / "x" / "a.rs"
        b = tmp_path / "x" / "y" / "b.rs"
        assert find_common_ancestor([a, b]) == tmp_path / "x"

    def test_common_ancestor_empty(self):
        with pytest.raises(WorkspaceNotFoundError):
            find_common_ancestor([])

    def test_workspace_root(self, rust_project):
        assert find_workspace_root(rust_project / "src") == rust_project

    def test_editables_pick_innermost(self, rust_config, rust_session, rust_project):
        rust_session.add_editable(rust_config, "tools/inner/src/lib.rs")
        assert discover_workspace(rust_config, rust_session) == rust_project / "tools" / "inner"

    def test_no_editables_pick_outermost(self, rust_config, rust_session, rust_project):
        assert discover_workspace(rust_config, rust_session) == rust_project

    def test_no_cargo_toml(self, config, session):
        session.add_editable(config, "a.txt")
        with pytest.raises(WorkspaceNotFoundError):
            discover_workspace(config, session)

    def test_no_files(self, tmp_path):
        root = tmp_path / "empty"
        root.mkdir()
        config = Config(project_root=root)
        with pytest.raises(WorkspaceNotFoundError, match="No files"):
            discover_workspace(config, Session(root=root))


# ---------------------------------------------------------------------------
# Cargo checks
# ---------------------------------------------------------------------------


class TestCargoChecks:
    """Tests for cargo-backed validators."""

    def test_runs_cargo_in_workspace(self, rust_config, rust_session, rust_project, cargo):
        RustCargoCheck().run(rust_config, rust_session)
        args, kwargs = cargo.call_args
        assert args[0] == ["cargo", "check", "--tests"]
        assert kwargs["cwd"] == rust_project

    def test_failure_raises_check_error(self, rust_config, rust_session, cargo):
        cargo.return_value = subprocess.CompletedProcess([], 101, stdout="", stderr="error[E0425]")
        with pytest.raises(CheckError) as exc_info:
            RustCargoCheck().run(rust_config, rust_session)
        assert exc_info.value.name == "rust: cargo check"
        assert "E0425" in exc_info.value.model_message

    def test_clippy_fails_on_stderr(self, rust_config, rust_session, cargo):
        cargo.return_value = subprocess.CompletedProcess([], 0, stdout="", stderr="warning: needless return")
        with pytest.raises(CheckError, match="clippy"):
            RustCargoClippy().run(rust_config, rust_session)

    def test_timeout(self, rust_config, rust_session, cargo):
        cargo.side_effect = subprocess.TimeoutExpired(["cargo"], 600)
        with pytest.raises(CheckError, match="Failed to execute cargo"):
            RustCargoCheck().run(rust_config, rust_session)

    def test_validators_run_in_order(self, rust_config, rust_session, cargo):
        ran = run_validators(rust_config, rust_session)
        assert ran == ["rust: cargo check", "rust: cargo test", "rust: cargo clippy"]

    def test_formatters(self, rust_config, rust_session, cargo):
        assert run_formatters(rust_config, rust_session) == ["rust: cargo fmt"]
        rust_config.checks.formatters = False
        assert run_formatters(rust_config, rust_session) == []

    def test_disabled_by_key(self, rust_config, rust_session, cargo):
        rust_config.checks.disabled = ["cargo_test", "cargo_clippy"]
        assert run_validators(rust_config, rust_session) == ["rust: cargo check"]

    def test_stops_at_first_failure(self, rust_config, rust_session, cargo):
        cargo.return_value = subprocess.CompletedProcess([], 1, stdout="", stderr="boom")
        with pytest.raises(CheckError):
            run_validators(rust_config, rust_session)
        assert cargo.call_count == 1

    def test_missing_cargo_is_skipped(self, rust_config, rust_session, monkeypatch):
        monkeypatch.setattr("tenx.checks.rust.shutil.which", lambda name: None)
        assert run_validators(rust_config, rust_session) == []


# ---------------------------------------------------------------------------
# Python checks and selection
# ---------------------------------------------------------------------------


class TestPythonCompile:
    """Tests for the Python syntax check."""

    def test_passes(self, config, session, project):
        (project / "ok.py").write_text("x = 1\n")
        session.add_editable(config, "ok.py")
        PythonCompile().run(config, session)

    def test_reports_syntax_errors(self, config, session, project):
        (project / "bad.py").write_text("def f(:\n    pass\n")
        session.add_editable(config, "bad.py")
        with pytest.raises(CheckError) as exc_info:
            PythonCompile().run(config, session)
        assert "bad.py:1" in exc_info.value.model_message


class TestActiveChecks:
    """Tests for check selection."""

    def test_disabled_globally(self, config, session, project):
        (project / "m.py").write_text("x = 1\n")
        session.add_editable(config, "m.py")
        assert active_checks(config, session, [PythonCompile()]) == []

    def test_irrelevant_language(self, rust_config, rust_session):
        assert active_checks(rust_config, rust_session, [PythonCompile()]) == []

    def test_run_checks_returns_names(self, config, session, project):
        config.checks.enabled = True
        (project / "m.py").write_text("x = 1\n")
        session.add_editable(config, "m.py")
        assert run_checks(config, session, [PythonCompile()]) == ["python: compile"]
