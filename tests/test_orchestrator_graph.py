"""Tests for the step pipeline: individual nodes and full graph runs."""

import asyncio
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from tenx.exceptions import CheckError, ModelError, NoMatchError, OrchestratorError
from tenx.models import ModelResponse, Operation, StepStatus, StepType
from tenx.orchestrator.graph import (
    AUTO_PROMPT,
    build_graph,
    make_apply_node,
    make_auto_node,
    make_check_node,
    make_fail_node,
    make_prompt_node,
    make_save_node,
)
from tenx.orchestrator.state import make_initial_state
from tenx.patch import Patch, Replace, WriteFile
from tenx.providers import Dummy

WRITE_REPLY = '<comment>ok</comment><write_file path="a.txt">\nbeta\n</write_file>'
BAD_REPLY = '<replace path="b.txt"><old>foo</old><new>bar</new></replace>'
EDIT_REPLY = '<edit path="src/lib.txt"/>'


def read(path: Path) -> str:
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def run_graph(provider, config, session, store=None, sender=None):
    graph = build_graph(provider, config, store, sender)
    state = make_initial_state(session, config.step_limit)
    return asyncio.run(graph.ainvoke(state, {"recursion_limit": 50}))


# ---------------------------------------------------------------------------
# Node factories
# ---------------------------------------------------------------------------


class TestPromptNode:
    def test_returns_response(self, config, session):
        session.add_prompt("go")
        node = make_prompt_node(Dummy([WRITE_REPLY]), config)
        result = asyncio.run(node(make_initial_state(session)))
        assert result["response"].comment == "ok"

    def test_model_error_goes_to_state(self, config, session):
        session.add_prompt("go")
        node = make_prompt_node(Dummy([ModelError("down")]), config)
        result = asyncio.run(node(make_initial_state(session)))
        assert isinstance(result["error"], ModelError)
        assert result["response"] is None


class TestApplyNode:
    def test_applies_patch(self, config, session, project):
        session.add_prompt("go")
        state = make_initial_state(session)
        state["response"] = ModelResponse(patch=Patch(changes=[WriteFile(path="a.txt", content="new\n")]))
        assert make_apply_node(config)(state) == {}
        assert read(project / "a.txt") == "new\n"
        assert session.last_step().status is StepStatus.APPLIED

    def test_edit_operations_add_editables(self, config, session):
        session.add_prompt("go")
        state = make_initial_state(session)
        state["response"] = ModelResponse(operations=[Operation(path="src/lib.txt")])
        make_apply_node(config)(state)
        assert session.editable == ["src/lib.txt"]
        assert session.last_step().status is StepStatus.APPLIED

    def test_patch_error_goes_to_state(self, config, session):
        session.add_prompt("go")
        state = make_initial_state(session)
        state["response"] = ModelResponse(patch=Patch(changes=[Replace(path="b.txt", old="foo", new="bar")]))
        result = make_apply_node(config)(state)
        assert result["error"].change_index == 0
        assert session.last_step().status is StepStatus.FAILED
        assert session.last_step().patch is state["response"].patch


class TestAutoNode:
    def test_adds_auto_step(self, session):
        session.add_prompt("first")
        session.set_response(ModelResponse())
        result = make_auto_node()(make_initial_state(session))
        assert result["auto_steps"] == 1
        assert session.last_step().step_type is StepType.AUTO
        assert session.last_step().prompt == AUTO_PROMPT


class TestCheckNode:
    def test_skips_without_patch(self, config, session):
        session.add_prompt("q")
        session.set_response(ModelResponse())
        config.checks.enabled = True
        assert make_check_node(config)(make_initial_state(session)) == {}

    def test_check_failure_goes_to_state(self, config, session, monkeypatch):
        config.checks.enabled = True
        session.add_prompt("go")
        session.apply_patch(config, Patch(changes=[WriteFile(path="a.txt", content="x")]))
        monkeypatch.setattr("tenx.orchestrator.graph.run_formatters", lambda c, s: [])
        failure = CheckError("rust: cargo check", "failed")
        monkeypatch.setattr("tenx.orchestrator.graph.run_validators", MagicMock(side_effect=failure))
        result = make_check_node(config)(make_initial_state(session))
        assert result["error"] is failure

    def test_records_checks_run(self, config, session, monkeypatch):
        config.checks.enabled = True
        session.add_prompt("go")
        session.apply_patch(config, Patch(changes=[WriteFile(path="a.txt", content="x")]))
        monkeypatch.setattr("tenx.orchestrator.graph.run_formatters", lambda c, s: ["fmt"])
        monkeypatch.setattr("tenx.orchestrator.graph.run_validators", lambda c, s: ["check"])
        assert make_check_node(config)(make_initial_state(session)) == {"checks_run": ["fmt", "check"]}


class TestSaveAndFailNodes:
    def test_save_persists(self, session, store):
        make_save_node(store)(make_initial_state(session))
        assert store.exists(session.root)

    def test_fail_records_error_on_pending_step(self, session, store):
        session.add_prompt("go")
        state = make_initial_state(session)
        state["error"] = NoMatchError("no match")
        make_fail_node(store)(state)
        assert session.last_step().err.kind == "NoMatchError"
        assert store.load(session.root).last_step().status is StepStatus.FAILED

    def test_fail_leaves_applied_step_on_check_error(self, config, session, store):
        session.add_prompt("go")
        session.apply_patch(config, Patch(changes=[WriteFile(path="a.txt", content="x")]))
        state = make_initial_state(session)
        state["error"] = CheckError("python: compile", "failed")
        make_fail_node(store)(state)
        assert session.last_step().status is StepStatus.APPLIED


# ---------------------------------------------------------------------------
# Full graph
# ---------------------------------------------------------------------------


class TestBuildGraph:
    def test_happy_path(self, config, session, store, project):
        session.add_prompt("rename alpha")
        state = run_graph(Dummy([WRITE_REPLY]), config, session, store)
        assert state["error"] is None
        assert read(project / "a.txt") == "beta\n"
        assert session.last_step().status is StepStatus.APPLIED
        assert store.load(session.root) == session

    def test_patch_failure_is_recorded(self, config, session, store, project):
        session.add_prompt("change b")
        state = run_graph(Dummy([BAD_REPLY]), config, session, store)
        assert state["error"].__class__.__name__ == "AmbiguousMatchError"
        assert session.last_step().status is StepStatus.FAILED
        assert read(project / "b.txt") == "foo foo\n"
        assert store.load(session.root).last_step().err is not None
        assert session.last_step().model_response.response_text == BAD_REPLY
        assert store.load(session.root).last_step().patch is not None

    def test_auto_step_after_edit_request(self, config, session, project):
        session.add_prompt("fix lib")
        provider = Dummy([EDIT_REPLY, '<replace path="src/lib.txt"><old>two</old><new>2</new></replace>'])
        state = run_graph(provider, config, session)
        assert state["auto_steps"] == 1
        assert [s.step_type for s in session.steps] == [StepType.CODE, StepType.AUTO]
        assert read(project / "src" / "lib.txt") == "one\n2\nthree\n"

    def test_step_limit_stops_auto_steps(self, config, session):
        config.step_limit = 1
        session.add_prompt("loop")
        provider = Dummy([EDIT_REPLY, EDIT_REPLY, EDIT_REPLY])
        state = run_graph(provider, config, session)
        assert state["auto_steps"] == 1
        assert provider.calls == 2
        assert len(session.steps) == 2

    def test_streams_to_sender(self, config, session):
        session.add_prompt("go")
        queue: asyncio.Queue = asyncio.Queue()
        run_graph(Dummy([WRITE_REPLY]), config, session, sender=queue)
        assert queue.get_nowait() == WRITE_REPLY

    def test_build_failure_wrapped(self, config, monkeypatch):
        monkeypatch.setattr("tenx.orchestrator.graph.StateGraph", MagicMock(side_effect=RuntimeError("boom")))
        with pytest.raises(OrchestratorError):
            build_graph(Dummy(), config)
