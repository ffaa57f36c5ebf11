"""Checks for Python projects."""

from typing import TYPE_CHECKING

from tenx.checks.base import Check, has_extension
from tenx.exceptions import CheckError
from tenx.utils.fs import read_to_string

if TYPE_CHECKING:
    from tenx.config import Config
    from tenx.session import Session


class PythonCompile(Check):
    """Byte-compiles every editable Python file to catch syntax errors."""

    name = "python: compile"
    key = "python_compile"

    def is_relevant(self, config: "Config", session: "Session") -> bool:
        return has_extension(config, session, ".py")

    def run(self, config: "Config", session: "Session") -> None:
        errors = []
        for path in session.editable:
            if not path.endswith(".py"):
                continue
            abspath = config.abspath(path)
            if not abspath.exists():
                continue
            try:
                compile(read_to_string(abspath), path, "exec")
            except SyntaxError as e:
                errors.append(f"{path}:{e.lineno}: {e.msg}")
        if errors:
            raise CheckError(self.name, f"{len(errors)} file(s) failed to compile", "\n".join(errors))
