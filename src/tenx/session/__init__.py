"""Session state machine and persistence."""

from tenx.session.session import Session
from tenx.session.store import SessionStore, find_root, normalize_path

__all__ = [
    "Session",
    "SessionStore",
    "find_root",
    "normalize_path",
]
