from pathlib import Path

import pytest

from tenx.config import ChecksConfig, Config, ModelConfig
from tenx.models import ModelSpec
from tenx.session import Session, SessionStore


@pytest.fixture
def project(tmp_path) -> Path:
    """A small project tree with a few text files."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "a.txt").write_text("alpha\n")
    (root / "b.txt").write_text("foo foo\n")
    (root / "x.txt").write_text("foo")
    (root / "src").mkdir()
    (root / "src" / "lib.txt").write_text("one\ntwo\nthree\n")
    return root


@pytest.fixture
def config(project, tmp_path) -> Config:
    return Config(
        project_root=project,
        session_store_dir=tmp_path / "sessions",
        model=ModelConfig(provider="dummy", name="dummy"),
        checks=ChecksConfig(enabled=False),
    )


@pytest.fixture
def session(project) -> Session:
    return Session(root=project, model=ModelSpec(provider="dummy", name="dummy"))


@pytest.fixture
def store(tmp_path) -> SessionStore:
    return SessionStore(tmp_path / "sessions")
