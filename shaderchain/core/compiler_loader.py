from __future__ import annotations

import importlib
import inspect
import logging
from importlib import metadata
from typing import Any, Dict, Iterator, List, Optional

from .compiler_api import API_VERSION, CompilerAdapter, CompilerMeta
from .diagnostics import (
    CompilerNotFoundError,
    DuplicateCompilerError,
    InvalidCompilerMetaError,
    RegistryFrozenError,
    error,
)
from .parameters import INPUT_LANGUAGE_FILTER, ParameterKind
from .toolchain import Toolchain


ENTRY_POINT_GROUP = "shaderchain.compilers"

logger = logging.getLogger("shaderchain.registry")


def _major(version: str) -> str:
    return version.split(".")[0]


def _iter_entry_points(group: str):
    eps = metadata.entry_points()
    if hasattr(eps, "select"):
        return list(eps.select(group=group))
    return list(eps.get(group, []))


class CompilerRegistry:
    """Catalog of compiler adapters, filled once at startup and then frozen."""

    def __init__(self, toolchain: Optional[Toolchain] = None) -> None:
        self.toolchain = toolchain or Toolchain()
        self._compilers: Dict[str, CompilerAdapter] = {}
        self._frozen = False

    def register(self, provider: Any) -> CompilerAdapter:
        if self._frozen:
            raise RegistryFrozenError(
                error("E-REGISTRY-FROZEN", "Compiler registry is read-only after startup")
            )
        compiler = _instantiate_compiler(provider, self.toolchain)
        meta = compiler.meta()
        _check_meta(meta)
        if meta.name in self._compilers:
            raise DuplicateCompilerError(
                error(
                    "E-REGISTRY-DUPLICATE",
                    f"Compiler name registered twice: {meta.name}",
                    location=meta.name,
                )
            )
        self._compilers[meta.name] = compiler
        return compiler

    def discover(self, libs: Optional[List[str]] = None) -> None:
        self._register_builtins()

        for ep in _iter_entry_points(ENTRY_POINT_GROUP):
            self.register(ep.load())

        for lib in libs or []:
            try:
                module = importlib.import_module(lib)
            except ImportError as exc:
                logger.warning("Skipping compiler library %s: %s", lib, exc)
                continue
            for provider in getattr(module, "COMPILERS", []):
                self.register(provider)

    def freeze(self) -> "CompilerRegistry":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def find_by_name(self, name: str) -> CompilerAdapter:
        try:
            return self._compilers[name]
        except KeyError:
            raise CompilerNotFoundError(
                error("E-COMPILER-UNKNOWN", f"Unknown compiler: {name}", location=name)
            ) from None

    def get(self, name: str) -> Optional[CompilerAdapter]:
        return self._compilers.get(name)

    def find_by_input_language(self, language: str) -> List[CompilerAdapter]:
        return [c for c in self._compilers.values() if language in c.meta().input_languages]

    def names(self) -> List[str]:
        return list(self._compilers)

    def all(self) -> List[CompilerAdapter]:
        return list(self._compilers.values())

    def __contains__(self, name: object) -> bool:
        return name in self._compilers

    def __iter__(self) -> Iterator[CompilerAdapter]:
        return iter(self.all())

    def __len__(self) -> int:
        return len(self._compilers)

    def _register_builtins(self) -> None:
        from shaderchain.compilers_builtin.dxc import DxcCompiler
        from shaderchain.compilers_builtin.glslang import GlslangCompiler
        from shaderchain.compilers_builtin.metal import (
            MetalCompiler,
            MetalLibCompiler,
            MetalShaderConverter,
        )
        from shaderchain.compilers_builtin.spirv_cross import SpirvCrossCompiler
        from shaderchain.compilers_builtin.spirv_tools import SpirvDisassembler

        for provider in (
            DxcCompiler,
            GlslangCompiler,
            SpirvCrossCompiler,
            SpirvDisassembler,
            MetalCompiler,
            MetalLibCompiler,
            MetalShaderConverter,
        ):
            self.register(provider)


def _instantiate_compiler(provider: Any, toolchain: Toolchain) -> CompilerAdapter:
    obj = provider
    if inspect.isclass(obj):
        params = inspect.signature(obj).parameters
        obj = obj(toolchain=toolchain) if "toolchain" in params else obj()
    elif callable(obj) and not hasattr(obj, "meta"):
        obj = obj()
    if not hasattr(obj, "meta") or not hasattr(obj, "compile"):
        raise InvalidCompilerMetaError(
            error("E-COMPILER-INVALID", f"Loaded object is not a compiler adapter: {type(obj)}")
        )
    return obj


def _check_meta(meta: CompilerMeta) -> None:
    problems: List[str] = []
    if _major(meta.api_version) != _major(API_VERSION):
        problems.append(f"built for compiler API {meta.api_version}, host is {API_VERSION}")
    if not meta.name:
        problems.append("name is empty")
    if not meta.input_languages:
        problems.append("no input languages")
    if not meta.output_languages:
        problems.append("no output languages")
    parameters = meta.all_parameters()
    names = [p.name for p in parameters]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        problems.append(f"duplicate parameters {duplicates}")
    for parameter in parameters:
        if parameter.kind is ParameterKind.COMBO_BOX and parameter.default_value not in parameter.options:
            problems.append(f"default of {parameter.name} is not one of its options")
        flt = parameter.filter
        if flt is not None and flt.name != INPUT_LANGUAGE_FILTER and flt.name not in names:
            problems.append(f"filter of {parameter.name} references unknown parameter {flt.name}")
    if problems:
        raise InvalidCompilerMetaError(
            error(
                "E-COMPILER-INVALID",
                f"Invalid compiler {meta.name or '<unnamed>'}: " + "; ".join(problems),
                location=meta.name or None,
            )
        )


def build_registry(toolchain: Optional[Toolchain] = None, libs: Optional[List[str]] = None) -> CompilerRegistry:
    registry = CompilerRegistry(toolchain)
    registry.discover(libs)
    return registry.freeze()
