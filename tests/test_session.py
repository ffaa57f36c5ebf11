"""Tests for the session state machine."""

from pathlib import Path

import pytest

from tenx.context import PathContext, TextContext
from tenx.exceptions import ModelError, NoMatchError, SessionError, WriteFailureError
from tenx.models import ModelResponse, StepStatus, StepType
from tenx.patch import Patch, Replace, WriteFile


def read(path: Path) -> str:
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def _apply_step(session, config, prompt, patch):
    session.add_prompt(prompt)
    session.apply_patch(config, patch)


class TestAddPrompt:
    """Tests for starting steps."""

    def test_starts_pending_step(self, session):
        step = session.add_prompt("do it")
        assert session.last_step() is step
        assert step.status is StepStatus.PENDING
        assert step.step_type is StepType.CODE

    def test_refuses_while_pending(self, session):
        session.add_prompt("first")
        with pytest.raises(SessionError):
            session.add_prompt("second")
        assert len(session.steps) == 1

    def test_allowed_after_failure(self, session):
        session.add_prompt("first")
        session.record_error(ModelError("boom"))
        session.add_prompt("second")
        assert len(session.steps) == 2


class TestApplyPatch:
    """Tests for completing a step with a patch."""

    def test_completes_step_and_writes(self, session, config, project):
        session.add_prompt("rename")
        patch = Patch(changes=[Replace(path="a.txt", old="alpha", new="beta")], comment="done")
        session.apply_patch(config, patch)
        step = session.last_step()
        assert step.status is StepStatus.APPLIED
        assert step.patch is patch
        assert step.model_response.comment == "done"
        assert read(project / "a.txt") == "beta\n"

    def test_created_files_become_editable(self, session, config):
        _apply_step(session, config, "create", Patch(changes=[WriteFile(path="new.txt", content="x\n")]))
        assert "new.txt" in session.editable

    def test_failure_keeps_attempted_response(self, session, config):
        session.add_prompt("bad")
        patch = Patch(changes=[Replace(path="a.txt", old="zzz", new="y")])
        with pytest.raises(NoMatchError):
            session.apply_patch(config, patch, ModelResponse(response_text="raw reply"))
        step = session.last_step()
        assert step.status is StepStatus.FAILED
        assert step.err.kind == "NoMatchError"
        assert step.model_response.response_text == "raw reply"
        assert step.patch is patch
        assert patch.cache == {"a.txt": "alpha\n"}
        assert "a.txt" not in session.editable

    def test_requires_pending_step(self, session, config):
        with pytest.raises(SessionError):
            session.apply_patch(config, Patch())

    def test_keeps_response_details(self, session, config):
        session.add_prompt("x")
        response = ModelResponse(comment="from model", response_text="raw")
        session.apply_patch(config, Patch(changes=[WriteFile(path="n.txt", content="")]), response)
        assert session.last_step().model_response.response_text == "raw"
        assert session.last_step().model_response.comment == "from model"


class TestRetry:
    """Tests for retrying the last step."""

    def test_nothing_to_retry(self, session):
        with pytest.raises(SessionError):
            session.retry()

    def test_successful_step_cannot_be_retried(self, session, config):
        _apply_step(session, config, "ok", Patch(changes=[WriteFile(path="n.txt", content="")]))
        with pytest.raises(SessionError):
            session.retry()

    def test_model_error_retries_same_prompt(self, session):
        session.add_prompt("make it faster", StepType.FIX)
        session.record_error(ModelError("timeout"))
        step = session.retry()
        assert step.prompt == "make it faster"
        assert step.step_type is StepType.FIX
        assert len(session.steps) == 2

    def test_patch_error_becomes_error_step(self, session):
        session.add_prompt("edit")
        session.record_error(NoMatchError("no match", "Could not find the text"))
        step = session.retry()
        assert step.step_type is StepType.ERROR
        assert step.prompt == "Could not find the text"

    def test_pending_step_is_replaced(self, session):
        session.add_prompt("in flight")
        step = session.retry()
        assert len(session.steps) == 1
        assert step.prompt == "in flight"
        assert step.is_pending()


class TestReset:
    """Tests for reverting steps."""

    def test_reset_reverts_in_reverse_order(self, session, config, project):
        _apply_step(session, config, "s0", Patch(changes=[Replace(path="a.txt", old="alpha", new="beta")]))
        _apply_step(session, config, "s1", Patch(changes=[Replace(path="a.txt", old="beta", new="gamma")]))
        session.add_prompt("s2")
        session.record_error(NoMatchError("no match"))
        assert read(project / "a.txt") == "gamma\n"

        session.reset(config, 1)

        assert read(project / "a.txt") == "beta\n"
        assert [s.prompt for s in session.steps] == ["s0"]

    def test_reset_leaves_files_of_failed_patch_alone(self, session, config, project):
        _apply_step(session, config, "s0", Patch(changes=[Replace(path="a.txt", old="alpha", new="beta")]))
        session.add_prompt("s1")
        patch = Patch(changes=[WriteFile(path="a.txt", content="x"), Replace(path="b.txt", old="zzz", new="y")])
        with pytest.raises(NoMatchError):
            session.apply_patch(config, patch)
        (project / "a.txt").write_text("edited\n")

        session.reset(config, 1)

        assert read(project / "a.txt") == "edited\n"
        assert [s.prompt for s in session.steps] == ["s0"]

    def test_reset_reverts_partial_write(self, session, config, project, monkeypatch):
        calls = []

        def failing_write(path, content):
            calls.append(path)
            if len(calls) == 2:
                raise OSError("disk full")
            path.write_text(content)

        monkeypatch.setattr("tenx.patch.patch.write_file", failing_write)
        session.add_prompt("s0")
        patch = Patch(changes=[WriteFile(path="a.txt", content="1\n"), WriteFile(path="b.txt", content="2\n")])
        with pytest.raises(WriteFailureError):
            session.apply_patch(config, patch)
        assert read(project / "a.txt") == "1\n"
        assert session.last_step().err.kind == "WriteFailureError"

        monkeypatch.undo()
        session.reset(config, 0)
        assert read(project / "a.txt") == "alpha\n"
        assert read(project / "b.txt") == "foo foo\n"
        assert session.steps == []

    def test_reset_to_zero(self, session, config, project):
        _apply_step(session, config, "s0", Patch(changes=[WriteFile(path="new.txt", content="x")]))
        _apply_step(session, config, "s1", Patch(changes=[Replace(path="new.txt", old="x", new="y")]))
        session.reset(config, 0)
        assert session.steps == []
        assert not (project / "new.txt").exists()

    def test_reset_at_length_is_noop(self, session, config):
        _apply_step(session, config, "s0", Patch(changes=[WriteFile(path="n.txt", content="")]))
        session.reset(config, 1)
        assert len(session.steps) == 1

    @pytest.mark.parametrize("offset", [-1, 2])
    def test_invalid_offset(self, session, config, offset):
        _apply_step(session, config, "s0", Patch(changes=[WriteFile(path="n.txt", content="")]))
        with pytest.raises(SessionError):
            session.reset(config, offset)


class TestEditablesAndContext:
    """Tests for editable files and context specs."""

    def test_add_editable_path(self, session, config):
        assert session.add_editable(config, "a.txt") == 1
        assert session.add_editable(config, "./a.txt") == 0
        assert session.editable == ["a.txt"]

    def test_add_editable_glob(self, session, config):
        assert session.add_editable(config, "*.txt") == 4
        assert session.editable == ["a.txt", "b.txt", "src/lib.txt", "x.txt"]

    def test_abs_editables(self, session, config, project):
        session.add_editable(config, "src/lib.txt")
        assert session.abs_editables(config) == [project / "src" / "lib.txt"]

    def test_add_context_dedupes(self, session):
        assert session.add_context(PathContext(pattern="a.txt"))
        assert not session.add_context(PathContext(pattern="a.txt"))
        assert session.add_context(TextContext(name="notes", text="hi"))
        assert len(session.contexts) == 2

    def test_discard_pending(self, session):
        session.add_prompt("x")
        assert session.discard_pending() is not None
        assert session.steps == []
        assert session.discard_pending() is None

    def test_set_response(self, session):
        session.add_prompt("question")
        session.set_response(ModelResponse(comment="answer"))
        assert session.last_step().status is StepStatus.APPLIED
