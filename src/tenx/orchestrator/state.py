"""State definition for the LangGraph step pipeline."""

import operator
from typing import Annotated, TypedDict

from tenx.exceptions import TenxError
from tenx.models import ModelResponse
from tenx.session import Session

MAX_STEP_LIMIT = 50


class TenxState(TypedDict):
    """State for one turn of the tenx pipeline.

    ``session`` is mutated in place by the nodes. Fields with
    Annotated[list, operator.add] reducers accumulate across nodes.
    """

    # Input
    session: Session
    step_limit: int

    # Model output for the current step
    response: ModelResponse | None

    # Auto steps taken in this turn
    auto_steps: int

    # Names of checks that ran after the last apply
    checks_run: Annotated[list[str], operator.add]

    # The error that ended the turn, if any
    error: TenxError | None


def make_initial_state(session: Session, step_limit: int = 5) -> TenxState:
    """Create the initial state for one turn.

    Args:
        session: Session whose last step is in flight.
        step_limit: Maximum automatic follow-up steps, clamped to 0..MAX_STEP_LIMIT.

    Returns:
        TenxState dict with all fields initialised to defaults.
    """
    return {
        "session": session,
        "step_limit": max(0, min(step_limit, MAX_STEP_LIMIT)),
        "response": None,
        "auto_steps": 0,
        "checks_run": [],
        "error": None,
    }
