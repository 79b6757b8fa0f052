from __future__ import annotations

import logging
import shutil
import sys
import tempfile
from pathlib import Path
from typing import Optional

from .compiler_api import ShaderCode
from .diagnostics import TempResourceError, error
from .languages import get_language


class TempWorkspace:
    """Scratch directory for one compilation step.

    Everything written below ``root`` is removed when the workspace closes,
    whichever way the ``with`` block is left.
    """

    def __init__(
        self,
        parent: Optional[Path] = None,
        prefix: str = "shaderchain-",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.parent = parent
        self.prefix = prefix
        self.logger = logger or logging.getLogger("shaderchain.tempfiles")
        self._root: Optional[Path] = None

    @property
    def root(self) -> Path:
        if self._root is None:
            raise RuntimeError("TempWorkspace is not open")
        return self._root

    def open(self) -> "TempWorkspace":
        if self._root is not None:
            return self
        try:
            if self.parent is not None:
                self.parent.mkdir(parents=True, exist_ok=True)
            self._root = Path(tempfile.mkdtemp(prefix=self.prefix, dir=self.parent))
        except OSError as exc:
            raise TempResourceError(
                error(
                    "E-TEMP-CREATE",
                    f"Could not create temporary directory: {exc}",
                    location=str(self.parent) if self.parent else None,
                )
            ) from exc
        return self

    def close(self) -> None:
        if self._root is None:
            return
        root, self._root = self._root, None

        def _report(function, path, exc) -> None:
            if isinstance(exc, tuple):
                exc = exc[1]
            self.logger.warning("Could not remove temporary file %s (%s): %s", path, function.__name__, exc)

        if sys.version_info >= (3, 12):
            shutil.rmtree(root, onexc=_report)
        else:
            shutil.rmtree(root, onerror=_report)

    def __enter__(self) -> "TempWorkspace":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def path(self, name: str) -> Path:
        target = (self.root / name).resolve()
        try:
            target.relative_to(self.root.resolve())
        except ValueError as exc:
            raise ValueError(f"Temporary path escapes workspace: {name}") from exc
        return target

    def write_code(self, code: ShaderCode, stem: str = "shader") -> Path:
        target = self.path(stem + get_language(code.language).file_extension())
        try:
            if code.binary is not None:
                target.write_bytes(code.binary)
            else:
                target.write_text(code.text, encoding="utf-8")
        except OSError as exc:
            raise TempResourceError(
                error("E-TEMP-WRITE", f"Could not write {target.name}: {exc}", location=str(target))
            ) from exc
        return target


def read_text_if_exists(path: Path) -> Optional[str]:
    if not path.is_file():
        return None
    return path.read_text(encoding="utf-8", errors="replace")


def read_bytes_if_exists(path: Path) -> Optional[bytes]:
    if not path.is_file():
        return None
    return path.read_bytes()
