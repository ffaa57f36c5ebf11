"""Pure routing helpers for the step pipeline.

All functions are stateless and only inspect the pipeline state.
"""

from tenx.orchestrator.state import TenxState


def wants_more_files(state: TenxState) -> bool:
    """True if the model only asked for files and sent no patch."""
    response = state["response"]
    return response is not None and bool(response.operations) and response.patch is None


def route_after_prompt(state: TenxState) -> str:
    """Returns "fail" if the model call failed, else "apply"."""
    return "fail" if state["error"] is not None else "apply"


def route_after_apply(state: TenxState) -> str:
    """Decide what follows a successful apply.

    Returns:
        "fail" on error, "auto" if the model asked for files and the step
        limit allows another step, otherwise "check".
    """
    if state["error"] is not None:
        return "fail"
    if wants_more_files(state) and state["auto_steps"] < state["step_limit"]:
        return "auto"
    return "check"


def route_after_check(state: TenxState) -> str:
    """Returns "fail" if a check failed, else "save"."""
    return "fail" if state["error"] is not None else "save"
