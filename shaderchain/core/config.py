from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .diagnostics import ShaderChainError, error


DEFAULT_CONFIG: Dict[str, Any] = {
    "binaries_dir": None,
    "temp_dir": None,
    "logs_dir": None,
    "process": {"timeout_s": None, "wrapper": None, "env_mode": "inherit"},
    "libs": [],
}

ENV_BINARIES_DIR = "SHADERCHAIN_BINARIES_DIR"
ENV_WRAPPER_CMD = "SHADERCHAIN_WRAPPER_CMD"


class ProcessConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    # None keeps the blocking behaviour: a hung tool hangs its request.
    timeout_s: Optional[float] = Field(default=None, gt=0)
    wrapper: Optional[str] = None
    env_mode: Literal["inherit", "clean"] = "inherit"


class EngineConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    binaries_dir: Optional[Path] = None
    temp_dir: Optional[Path] = None
    logs_dir: Optional[Path] = None
    process: ProcessConfig = Field(default_factory=ProcessConfig)
    libs: List[str] = Field(default_factory=list)


def load_config(path: Path) -> Dict[str, Any]:
    data = load_data(path)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("Engine config must be a mapping")
    return data


def normalize_config(config: Optional[Dict[str, Any]] = None, *, base_dir: Optional[Path] = None) -> EngineConfig:
    merged = json.loads(json.dumps(DEFAULT_CONFIG))
    merged = _deep_merge(merged, dict(config or {}))

    if merged.get("binaries_dir") is None and os.environ.get(ENV_BINARIES_DIR):
        merged["binaries_dir"] = os.environ[ENV_BINARIES_DIR]
    if merged["process"].get("wrapper") is None and os.environ.get(ENV_WRAPPER_CMD):
        merged["process"]["wrapper"] = os.environ[ENV_WRAPPER_CMD]

    if base_dir is not None:
        for key in ("binaries_dir", "temp_dir", "logs_dir"):
            value = merged.get(key)
            if value and not Path(value).is_absolute():
                merged[key] = str((base_dir / value).resolve())

    try:
        return EngineConfig.model_validate(merged)
    except ValidationError as exc:
        raise ShaderChainError(error("E-CONFIG", str(exc), location="config")) from exc


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def load_data(path: Path) -> Any:
    if path.suffix in {".yaml", ".yml"}:
        import yaml  # type: ignore

        with path.open("r", encoding="utf-8") as handle:
            return yaml.safe_load(handle)
    if path.suffix == ".toml":
        try:
            import tomllib
        except ImportError:  # pragma: no cover - python <3.11
            import tomli as tomllib  # type: ignore

        with path.open("rb") as handle:
            return tomllib.load(handle)
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)
