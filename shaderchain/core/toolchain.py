from __future__ import annotations

import re
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from .diagnostics import ToolNotFoundError, error
from .parameters import VERSION

if TYPE_CHECKING:
    from .compiler_api import CompilerArguments


SYSTEM_VERSION = "system"


def _version_key(version: str):
    # "trunk" and other non-numeric names sort after numbered releases
    parts = re.split(r"(\d+)", version)
    numeric = [int(p) for p in parts if p.isdigit()]
    return (0 if numeric else 1, numeric, version)


class Toolchain:
    """Locates tool binaries laid out as ``<binaries_dir>/<tool>/<version>/``.

    Tools with no installed versions resolve through ``PATH`` under the
    pseudo-version ``system``.
    """

    def __init__(self, binaries_dir: Optional[Path] = None) -> None:
        self.binaries_dir = Path(binaries_dir) if binaries_dir is not None else None

    def versions(self, tool: str) -> List[str]:
        tool_dir = self.binaries_dir / tool if self.binaries_dir is not None else None
        if tool_dir is None or not tool_dir.is_dir():
            return [SYSTEM_VERSION]
        versions = sorted((p.name for p in tool_dir.iterdir() if p.is_dir()), key=_version_key)
        return versions or [SYSTEM_VERSION]

    def tool_dir(self, tool: str, version: str) -> Optional[Path]:
        if version == SYSTEM_VERSION or self.binaries_dir is None:
            return None
        return self.binaries_dir / tool / version

    def binary_path(self, tool: str, version: str, executable: str) -> Path:
        tool_dir = self.tool_dir(tool, version)
        if tool_dir is None:
            found = shutil.which(executable)
            if found:
                return Path(found)
        else:
            for name in (executable, f"{executable}.exe"):
                for candidate in (tool_dir / name, tool_dir / "bin" / name):
                    if candidate.is_file():
                        return candidate
        raise ToolNotFoundError(
            error(
                "E-TOOL-NOT-FOUND",
                f"{executable} ({tool} {version}) is not installed",
                location=str(tool_dir) if tool_dir else "PATH",
            )
        )

    def binary_for(self, tool: str, arguments: "CompilerArguments", executable: str) -> Path:
        version = arguments.values.get(VERSION, SYSTEM_VERSION)
        return self.binary_path(tool, version, executable)
