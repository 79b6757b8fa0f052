from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .core.compiler_loader import CompilerRegistry, build_registry
from .core.config import EngineConfig, load_config, normalize_config
from .core.external import ProcessRunner
from .core.pipeline import PipelineResult, execute_pipeline, validate_pipeline
from .core.request import PipelineRequest, parse_request
from .core.serialization import compilers_to_list, pipeline_result_to_dict
from .core.toolchain import Toolchain


RequestLike = Union[PipelineRequest, Dict[str, Any]]
ConfigLike = Union[EngineConfig, Dict[str, Any], Path, str, None]


def compile(
    request: RequestLike,
    *,
    config: ConfigLike = None,
    registry: Optional[CompilerRegistry] = None,
    runner: Optional[ProcessRunner] = None,
) -> PipelineResult:
    """Run a compilation chain and return the structured result."""
    cfg = resolve_config(config)
    registry = registry or load_registry(cfg)
    parsed = _parse(request)
    return execute_pipeline(parsed, registry, cfg, runner=runner)


def compile_to_dict(
    request: RequestLike,
    *,
    config: ConfigLike = None,
    registry: Optional[CompilerRegistry] = None,
    runner: Optional[ProcessRunner] = None,
) -> Dict[str, Any]:
    return pipeline_result_to_dict(compile(request, config=config, registry=registry, runner=runner))


def validate(
    request: RequestLike,
    *,
    config: ConfigLike = None,
    registry: Optional[CompilerRegistry] = None,
) -> List[dict]:
    registry = registry or load_registry(resolve_config(config))
    return validate_pipeline(_parse(request), registry).to_list()


def list_compilers(
    *,
    language: Optional[str] = None,
    config: ConfigLike = None,
    registry: Optional[CompilerRegistry] = None,
) -> List[Dict[str, Any]]:
    registry = registry or load_registry(resolve_config(config))
    return compilers_to_list(registry, language)


def load_registry(config: Optional[EngineConfig] = None) -> CompilerRegistry:
    config = config or EngineConfig()
    return build_registry(Toolchain(config.binaries_dir), config.libs)


def resolve_config(config: ConfigLike) -> EngineConfig:
    if isinstance(config, EngineConfig):
        return config
    if isinstance(config, (str, Path)):
        path = Path(config)
        return normalize_config(load_config(path), base_dir=path.resolve().parent)
    return normalize_config(config)


def _parse(request: RequestLike) -> PipelineRequest:
    if isinstance(request, PipelineRequest):
        return request
    parsed, diagnostics = parse_request(request)
    diagnostics.raise_for_errors()
    return parsed
