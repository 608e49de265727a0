"""Locating files that ship next to the running program."""

from __future__ import annotations

import os
import sys
from pathlib import Path

__all__ = ["get_runfile_path"]


def _executable_path() -> Path:
    if sys.argv and sys.argv[0]:
        return Path(sys.argv[0]).resolve()
    return Path(sys.executable).resolve()


def get_runfile_path(
    leaf: str | os.PathLike[str], package: str | None = None
) -> Path:
    """Return the full path to the dependency ``leaf``.

    The program's own path, its ``.runfiles`` directory and the current
    directory are searched in turn; in each, ``leaf`` is tried directly and
    then under the optional ``package`` prefix. Raises ``FileNotFoundError``
    when nothing matches.
    """
    real_path = _executable_path()
    runfile_path = Path(f"{real_path}.runfiles")
    prefixes = [package] if package is not None else []

    for base_path in (real_path, runfile_path, Path(".")):
        candidates = [base_path / leaf]
        candidates.extend(base_path / prefix / leaf for prefix in prefixes)
        for candidate in candidates:
            if os.access(candidate, os.F_OK):
                return candidate

    raise FileNotFoundError(f'Could not find a path to "{os.fspath(leaf)}"')