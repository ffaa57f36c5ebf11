"""LangGraph pipeline driving one turn of a session.

Wires the model provider, the patch engine, checks and the session store
into a StateGraph. Every node catches TenxError and hands it to fail_node
through the ``error`` field.
"""

import logging
from typing import TYPE_CHECKING, Awaitable, Callable

from langgraph.graph import END, START, StateGraph

from tenx.checks import run_formatters, run_validators
from tenx.exceptions import CheckError, OrchestratorError, TenxError
from tenx.models import StepType
from tenx.orchestrator.recovery import route_after_apply, route_after_check, route_after_prompt
from tenx.orchestrator.state import TenxState
from tenx.providers import ModelProvider, Sender

if TYPE_CHECKING:
    from tenx.config import Config
    from tenx.session import SessionStore

logger = logging.getLogger(__name__)

AUTO_PROMPT = "The files you asked for are now editable. Please continue with the task."


def make_prompt_node(
    provider: ModelProvider, config: "Config", sender: Sender | None = None
) -> Callable[[TenxState], Awaitable[dict]]:
    """Factory: returns a node closure that calls the model.

    The closure streams text to *sender* and returns {"response": ...}.
    On error: returns {"error": exc, "response": None}
    """

    async def prompt_node(state: TenxState) -> dict:
        try:
            response = await provider.prompt(config, state["session"], sender)
            return {"response": response}
        except TenxError as exc:
            return {"error": exc, "response": None}

    return prompt_node


def make_apply_node(config: "Config") -> Callable[[TenxState], dict]:
    """Factory: returns a node closure that applies the model's response.

    The closure:
    1. Adds any files the model asked to edit to the editable set
    2. Applies the patch through Session.apply_patch, or records a
       patch-free response on the step

    On error: returns {"error": exc}. A failed patch has already marked the
    step failed; other errors leave it in flight for fail_node.
    """

    def apply_node(state: TenxState) -> dict:
        session = state["session"]
        response = state["response"]
        try:
            for operation in response.operations:
                session.add_editable(config, operation.path)
            if response.patch is not None:
                session.apply_patch(config, response.patch, response)
            else:
                session.set_response(response)
            return {}
        except TenxError as exc:
            return {"error": exc}

    return apply_node


def make_auto_node() -> Callable[[TenxState], dict]:
    """Factory: returns a node closure that starts an automatic follow-up step."""

    def auto_node(state: TenxState) -> dict:
        state["session"].add_prompt(AUTO_PROMPT, StepType.AUTO)
        logger.info("starting auto step %d", state["auto_steps"] + 1)
        return {"auto_steps": state["auto_steps"] + 1, "response": None}

    return auto_node


def make_check_node(config: "Config") -> Callable[[TenxState], dict]:
    """Factory: returns a node closure that runs formatters, then validators.

    Checks only run if the last step applied a patch.
    On error: returns {"error": CheckError}
    """

    def check_node(state: TenxState) -> dict:
        session = state["session"]
        last = session.last_step()
        if last is None or last.patch is None or not config.checks.enabled:
            return {}
        try:
            ran = []
            if config.checks.formatters:
                ran.extend(run_formatters(config, session))
            ran.extend(run_validators(config, session))
            return {"checks_run": ran}
        except TenxError as exc:
            return {"error": exc}

    return check_node


def make_save_node(store: "SessionStore | None") -> Callable[[TenxState], dict]:
    """Factory: returns a node closure that persists the session."""

    def save_node(state: TenxState) -> dict:
        if store is not None:
            try:
                store.save(state["session"])
            except TenxError as exc:
                return {"error": exc}
        return {}

    return save_node


def make_fail_node(store: "SessionStore | None") -> Callable[[TenxState], dict]:
    """Factory: returns a node closure that records the error and persists.

    Check failures leave the applied step untouched. Errors are only recorded
    on a step that is still in flight; patch failures record themselves.
    """

    def fail_node(state: TenxState) -> dict:
        session = state["session"]
        error = state["error"]
        last = session.last_step()
        if not isinstance(error, CheckError) and last is not None and last.is_pending():
            session.record_error(error)
        else:
            logger.warning("%s", error)
        if store is not None:
            store.save(session)
        return {}

    return fail_node


def build_graph(
    provider: ModelProvider,
    config: "Config",
    store: "SessionStore | None" = None,
    sender: Sender | None = None,
):
    """Build and compile the step pipeline.

    Edge topology:
      START -> prompt_node -> conditional -> {apply_node, fail_node}
      apply_node -> conditional -> {auto_node, check_node, fail_node}
      auto_node -> prompt_node
      check_node -> conditional -> {save_node, fail_node}
      save_node -> END
      fail_node -> END

    No checkpointer: the session itself is the durable state.

    Args:
        provider: Model provider to prompt.
        config: Project configuration.
        store: Session store to persist to, or None to skip persistence.
        sender: Queue receiving streamed model text.

    Returns:
        CompiledStateGraph ready to invoke.

    Raises:
        OrchestratorError: If graph construction fails.
    """
    try:
        graph = StateGraph(TenxState)

        graph.add_node("prompt_node", make_prompt_node(provider, config, sender))
        graph.add_node("apply_node", make_apply_node(config))
        graph.add_node("auto_node", make_auto_node())
        graph.add_node("check_node", make_check_node(config))
        graph.add_node("save_node", make_save_node(store))
        graph.add_node("fail_node", make_fail_node(store))

        graph.add_edge(START, "prompt_node")
        graph.add_conditional_edges(
            "prompt_node",
            route_after_prompt,
            {"apply": "apply_node", "fail": "fail_node"},
        )
        graph.add_conditional_edges(
            "apply_node",
            route_after_apply,
            {"auto": "auto_node", "check": "check_node", "fail": "fail_node"},
        )
        graph.add_edge("auto_node", "prompt_node")
        graph.add_conditional_edges(
            "check_node",
            route_after_check,
            {"save": "save_node", "fail": "fail_node"},
        )
        graph.add_edge("save_node", END)
        graph.add_edge("fail_node", END)

        return graph.compile()

    except Exception as exc:
        raise OrchestratorError(f"Failed to build step graph: {exc}") from exc
