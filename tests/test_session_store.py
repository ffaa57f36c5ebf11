"""Tests for session persistence."""

import pytest

from tenx.context import PathContext, TextContext
from tenx.exceptions import ModelError, SessionStoreError
from tenx.models import StepStatus
from tenx.patch import Patch, Replace
from tenx.session import Session, find_root, normalize_path


class TestFindRoot:
    """Tests for project root discovery."""

    def test_finds_git_ancestor(self, tmp_path):
        (tmp_path / ".git").mkdir()
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_root(nested) == tmp_path

    def test_falls_back_to_path(self, project):
        result = find_root(project / "src")
        assert result == project / "src" or (result / ".git").exists()


class TestNormalizePath:
    """Tests for session file naming."""

    def test_flattens_separators(self, tmp_path):
        name = normalize_path(tmp_path / "my" / "proj")
        assert "/" not in name
        assert name.endswith("my-proj")


class TestSessionStore:
    """Tests for SessionStore save/load."""

    def test_round_trip(self, store, session, config):
        session.add_context(PathContext(pattern="*.txt"))
        session.add_context(TextContext(name="notes", text="remember"))
        session.add_editable(config, "a.txt")
        session.add_prompt("rename")
        session.apply_patch(config, Patch(changes=[Replace(path="a.txt", old="alpha", new="beta")]))
        session.add_prompt("again")
        session.record_error(ModelError("down", "model down"))

        store.save(session)
        loaded = store.load(session.root)

        assert loaded == session
        assert loaded.steps[0].status is StepStatus.APPLIED
        assert loaded.steps[0].patch.cache == {"a.txt": "alpha\n"}
        assert loaded.steps[1].err.kind == "ModelError"
        assert isinstance(loaded.contexts[1], TextContext)

    def test_loaded_patch_can_revert(self, store, session, config, project):
        session.add_prompt("rename")
        session.apply_patch(config, Patch(changes=[Replace(path="a.txt", old="alpha", new="beta")]))
        store.save(session)

        loaded = store.load(session.root)
        loaded.reset(config, 0)
        assert (project / "a.txt").read_text() == "alpha\n"

    def test_exists_and_delete(self, store, session):
        assert not store.exists(session.root)
        store.save(session)
        assert store.exists(session.root)
        store.delete(session.root)
        assert not store.exists(session.root)

    def test_missing_session(self, store, project):
        with pytest.raises(SessionStoreError, match="tenx new"):
            store.load(project)

    def test_corrupt_session(self, store, project):
        path = store.path_for(project)
        path.parent.mkdir(parents=True)
        path.write_text("{not json")
        with pytest.raises(SessionStoreError, match="corrupt"):
            store.load(project)

    def test_save_leaves_no_temp_files(self, store, session):
        store.save(session)
        assert [p.name for p in store.base_dir.iterdir()] == [store.path_for(session.root).name]

    def test_sessions_keyed_by_root(self, store, tmp_path):
        one = Session(root=tmp_path / "one")
        two = Session(root=tmp_path / "two")
        store.save(one)
        store.save(two)
        assert store.load(tmp_path / "one").root == one.root
        assert store.load(tmp_path / "two").root == two.root
