"""LangGraph step pipeline for tenx."""

from tenx.orchestrator.graph import build_graph
from tenx.orchestrator.state import TenxState, make_initial_state

__all__ = [
    "TenxState",
    "build_graph",
    "make_initial_state",
]
