from __future__ import annotations

import logging
import os
import shlex
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

from .config import ProcessConfig
from .diagnostics import ToolLaunchError, error


@dataclass(frozen=True)
class ProcessResult:
    cmd: list[str]
    returncode: int
    stdout: str
    stderr: str
    elapsed_s: float
    timed_out: bool = False
    wrapper: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    def combined_output(self) -> str:
        parts = [part for part in (self.stdout, self.stderr) if part and part.strip()]
        return "\n".join(part.rstrip("\n") for part in parts)


class ProcessRunner:
    """Synchronous tool invocation with captured output.

    Blocks the calling thread until the tool exits, or until ``timeout_s``
    elapses when one is configured.
    """

    def __init__(self, config: Optional[ProcessConfig] = None, logger: Optional[logging.Logger] = None) -> None:
        self.config = config or ProcessConfig()
        self.logger = logger or logging.getLogger("shaderchain.external")

    def run(
        self,
        cmd: Sequence[Union[str, Path]],
        *,
        cwd: Optional[Path] = None,
        stdin: Optional[Union[str, bytes]] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> ProcessResult:
        run_cmd = [str(part) for part in cmd]
        wrapper = self.config.wrapper
        if wrapper:
            run_cmd = shlex.split(wrapper) + run_cmd

        if env is None:
            if self.config.env_mode == "clean":
                env = {"PATH": os.environ.get("PATH", "")}
            else:
                env = os.environ.copy()

        if isinstance(stdin, str):
            stdin = stdin.encode("utf-8")

        self.logger.debug("Running %s", shlex.join(run_cmd))
        start = time.time()
        try:
            proc = subprocess.run(
                run_cmd,
                cwd=cwd,
                env=dict(env),
                input=stdin,
                capture_output=True,
                check=False,
                timeout=self.config.timeout_s,
            )
        except subprocess.TimeoutExpired as exc:
            elapsed = time.time() - start
            self.logger.warning("%s timed out after %.1fs", run_cmd[0], elapsed)
            message = f"Process timed out after {self.config.timeout_s}s"
            return ProcessResult(
                cmd=run_cmd,
                returncode=-1,
                stdout=_decode(exc.stdout),
                stderr="\n".join(part for part in (_decode(exc.stderr), message) if part),
                elapsed_s=elapsed,
                timed_out=True,
                wrapper=wrapper,
            )
        except OSError as exc:
            raise ToolLaunchError(
                error(
                    "E-TOOL-LAUNCH",
                    f"Could not launch {run_cmd[0]}: {exc}",
                    location=run_cmd[0],
                )
            ) from exc
        elapsed = time.time() - start
        return ProcessResult(
            cmd=run_cmd,
            returncode=proc.returncode,
            stdout=_decode(proc.stdout),
            stderr=_decode(proc.stderr),
            elapsed_s=elapsed,
            wrapper=wrapper,
        )


def _decode(data: Optional[Union[str, bytes]]) -> str:
    if data is None:
        return ""
    if isinstance(data, str):
        return data
    return data.decode("utf-8", errors="replace")
