"""Cargo-based checks for Rust projects."""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

from tenx.checks.base import Check, Runnable, has_extension
from tenx.exceptions import CheckError, WorkspaceNotFoundError

if TYPE_CHECKING:
    from tenx.config import Config
    from tenx.session import Session

logger = logging.getLogger(__name__)

CARGO_TIMEOUT = 600


def run_cargo(args: list[str], cwd: Path) -> subprocess.CompletedProcess:
    return subprocess.run(args, cwd=cwd, capture_output=True, text=True, timeout=CARGO_TIMEOUT)


def find_common_ancestor(paths: list[Path]) -> Path:
    """Return the deepest directory containing every path.

    Raises:
        WorkspaceNotFoundError: If no paths are given
    """
    if not paths:
        raise WorkspaceNotFoundError("No paths provided")
    ancestor = paths[0]
    for path in paths[1:]:
        while ancestor != path and ancestor not in path.parents:
            if ancestor.parent == ancestor:
                raise WorkspaceNotFoundError("No common ancestor found")
            ancestor = ancestor.parent
    return ancestor


def find_workspace_root(start: Path) -> Path:
    """Walk up from *start* to the nearest directory holding Cargo.toml."""
    for candidate in (start, *start.parents):
        if (candidate / "Cargo.toml").exists():
            return candidate
    raise WorkspaceNotFoundError("Workspace root not found")


def find_outermost_workspace(config: "Config") -> Path:
    """Return the shallowest directory with a Cargo.toml above any included file."""
    best: Path | None = None
    for path in config.included_files():
        for parent in config.abspath(path).parents:
            if (parent / "Cargo.toml").exists() and (best is None or len(parent.parts) < len(best.parts)):
                best = parent
    if best is None:
        raise WorkspaceNotFoundError("Workspace root not found")
    return best


def discover_workspace(config: "Config", session: "Session") -> Path:
    """Locate the cargo workspace to run in.

    With editable files, this is the innermost Cargo.toml above their common
    ancestor. Otherwise it is the outermost one above any included file.

    Raises:
        WorkspaceNotFoundError: If there are no files or no Cargo.toml
    """
    editables = session.abs_editables(config)
    if editables:
        return find_workspace_root(find_common_ancestor(editables))
    if not config.included_files():
        raise WorkspaceNotFoundError("No files to check")
    return find_outermost_workspace(config)


class CargoCheck(Check):
    """Base for checks that shell out to cargo."""

    args: tuple[str, ...] = ()

    def is_relevant(self, config: "Config", session: "Session") -> bool:
        return has_extension(config, session, ".rs")

    def runnable(self) -> Runnable:
        if shutil.which("cargo") is None:
            return Runnable.error("Cargo is not installed")
        return Runnable()

    def run(self, config: "Config", session: "Session") -> None:
        workspace = discover_workspace(config, session)
        logger.debug("running cargo %s in %s", " ".join(self.args), workspace)
        try:
            result = run_cargo(["cargo", *self.args], cwd=workspace)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise CheckError(self.name, f"Failed to execute cargo: {e}", str(e)) from e
        self.check_output(result)

    def check_output(self, result: subprocess.CompletedProcess) -> None:
        if result.returncode != 0:
            raise CheckError(
                self.name,
                f"cargo {self.args[0]} failed",
                f"stdout:\n{result.stdout}\n\nstderr:\n{result.stderr}",
            )


class RustCargoCheck(CargoCheck):
    name = "rust: cargo check"
    key = "cargo_check"
    args = ("check", "--tests")


class RustCargoTest(CargoCheck):
    name = "rust: cargo test"
    key = "cargo_test"
    args = ("test", "-q")


class RustCargoClippy(CargoCheck):
    name = "rust: cargo clippy"
    key = "cargo_clippy"
    args = ("clippy", "--no-deps", "--all", "--tests", "-q")

    def check_output(self, result: subprocess.CompletedProcess) -> None:
        # clippy reports lints on stderr even when it exits cleanly
        if result.stderr.strip():
            raise CheckError(self.name, "cargo clippy found issues", f"stderr:\n{result.stderr}")
        super().check_output(result)


class CargoFormatter(CargoCheck):
    name = "rust: cargo fmt"
    key = "cargo_fmt"
    formatter = True
    args = ("fmt", "--all")
