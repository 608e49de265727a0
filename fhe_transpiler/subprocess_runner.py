"""Running a child program and collecting its output."""

from __future__ import annotations

import os
import subprocess
from collections.abc import Sequence
from pathlib import Path

__all__ = ["SubprocessError", "invoke_subprocess"]

_EXEC_FAILURE_CODE = 127


class SubprocessError(RuntimeError):
    """A child program could not be run or exited with a non-zero status."""

    def __init__(self, program: str, stdout: str, stderr: str, exit_code: int) -> None:
        self.program = program
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code
        super().__init__(
            f'Failed to execute {program}; stdout: """{stdout}"""; '
            f'stderr: """{stderr}"""; exit code: {exit_code}'
        )


def invoke_subprocess(
    argv: Sequence[str | os.PathLike[str]],
    cwd: str | os.PathLike[str] | None = None,
) -> tuple[str, str]:
    """Run ``argv`` (``argv[0]`` is the program) and return (stdout, stderr).

    Raises ``ValueError`` for an empty ``argv`` and ``SubprocessError`` when
    the program cannot be started or exits with a non-zero status.
    """
    args = [os.fspath(arg) for arg in argv]
    if not args:
        raise ValueError("Cannot invoke empty argv list.")
    bin_name = Path(args[0]).name
    workdir = os.fspath(cwd) if cwd else None

    try:
        completed = subprocess.run(args, cwd=workdir, capture_output=True, check=False)
    except OSError as err:
        raise SubprocessError(bin_name, "", str(err), _EXEC_FAILURE_CODE) from err

    stdout = completed.stdout.decode("utf-8", errors="replace")
    stderr = completed.stderr.decode("utf-8", errors="replace")
    if completed.returncode != 0:
        raise SubprocessError(bin_name, stdout, stderr, completed.returncode)
    return stdout, stderr