"""On-disk persistence of sessions, one JSON file per project root."""

import logging
import os
from pathlib import Path

from pydantic import ValidationError

from tenx.exceptions import SessionStoreError
from tenx.session.session import Session
from tenx.utils.fs import atomic_write, read_to_string

logger = logging.getLogger(__name__)


def find_root(path: Path) -> Path:
    """Return the nearest ancestor of *path* holding a ``.git`` entry, else *path*."""
    start = Path(path).absolute()
    for candidate in (start, *start.parents):
        if (candidate / ".git").exists():
            return candidate
    return start


def normalize_path(root: Path) -> str:
    """Turn a project root into a flat file name."""
    return str(Path(root).absolute()).strip(os.sep).replace(os.sep, "-") or "root"


class SessionStore:
    """Stores sessions as JSON files under a base directory."""

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = Path(base_dir).expanduser()

    def path_for(self, root: Path) -> Path:
        return self.base_dir / f"{normalize_path(root)}.json"

    def exists(self, root: Path) -> bool:
        return self.path_for(root).exists()

    def save(self, session: Session) -> Path:
        """Write *session* atomically.

        Raises:
            SessionStoreError: If the file cannot be written
        """
        path = self.path_for(session.root)
        try:
            atomic_write(path, session.model_dump_json(indent=2))
        except OSError as e:
            raise SessionStoreError(f"Could not save session to {path}: {e}") from e
        logger.debug("saved session to %s", path)
        return path

    def load(self, root: Path) -> Session:
        """Load the session for *root*.

        Raises:
            SessionStoreError: If no session exists or it cannot be decoded
        """
        path = self.path_for(root)
        try:
            data = read_to_string(path)
        except FileNotFoundError as e:
            raise SessionStoreError(f"No session found for {root}. Run `tenx new` first.") from e
        except OSError as e:
            raise SessionStoreError(f"Could not read session {path}: {e}") from e
        try:
            return Session.model_validate_json(data)
        except ValidationError as e:
            raise SessionStoreError(f"Session file {path} is corrupt: {e}") from e

    def delete(self, root: Path) -> None:
        self.path_for(root).unlink(missing_ok=True)
