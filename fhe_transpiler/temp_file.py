"""A temporary file that is deleted when no longer needed."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

__all__ = ["TempFile"]

_logger = logging.getLogger(__name__)


class TempFile:
    """An empty temporary file, removed by ``cleanup`` or on context exit."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path: Path | None = Path(path)

    @classmethod
    def create(cls) -> "TempFile":
        """Create a new empty temporary file."""
        fd, name = tempfile.mkstemp(prefix="fhe_temp_")
        os.close(fd)
        return cls(name)

    @property
    def path(self) -> Path | None:
        """Location of the file, or None once it has been cleaned up."""
        return self._path

    def cleanup(self) -> None:
        """Delete the file; calling it again does nothing."""
        if self._path is None:
            return
        try:
            self._path.unlink()
        except OSError:
            _logger.warning("Unable to delete temp file: %s", self._path)
        self._path = None

    def __enter__(self) -> "TempFile":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    def __del__(self) -> None:
        if getattr(self, "_path", None) is not None:
            self.cleanup()