from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, Mapping, Optional, Sequence, Tuple

from .parameters import OUTPUT_LANGUAGE, TRUE, CompilerParameter, output_language_parameter

if TYPE_CHECKING:
    from .external import ProcessResult, ProcessRunner
    from .tempfiles import TempWorkspace
    from .toolchain import Toolchain


API_VERSION = "1.0.0"

OUTPUT = "Output"
DEFAULT_FAILURE_CODE = 1


@dataclass(frozen=True)
class ShaderCode:
    language: str
    text: Optional[str] = None
    binary: Optional[bytes] = None

    def __post_init__(self) -> None:
        if (self.text is None) == (self.binary is None):
            raise ValueError("ShaderCode needs exactly one of text or binary")

    @property
    def size(self) -> int:
        if self.binary is not None:
            return len(self.binary)
        return len(self.text.encode("utf-8"))


@dataclass(frozen=True)
class CompilerMeta:
    name: str
    display_name: str
    url: str
    description: str
    input_languages: Tuple[str, ...]
    output_languages: Tuple[str, ...]
    parameters: Tuple[CompilerParameter, ...] = field(default_factory=tuple)
    api_version: str = API_VERSION

    def all_parameters(self) -> Tuple[CompilerParameter, ...]:
        """Declared parameters plus the implicit output-language choice."""
        declared = tuple(self.parameters)
        if len(self.output_languages) > 1 and not any(p.name == OUTPUT_LANGUAGE for p in declared):
            declared += (output_language_parameter(self.output_languages),)
        return declared

    def parameter(self, name: str) -> Optional[CompilerParameter]:
        return next((p for p in self.all_parameters() if p.name == name), None)


@dataclass(frozen=True)
class CompilerArguments:
    compiler: str
    values: Mapping[str, str]
    active: FrozenSet[str] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))
        object.__setattr__(self, "active", frozenset(self.active))

    def get_string(self, name: str) -> str:
        try:
            return self.values[name]
        except KeyError:
            raise KeyError(f"{self.compiler} has no parameter {name!r}") from None

    def get_boolean(self, name: str) -> bool:
        return self.get_string(name) == TRUE

    def is_active(self, name: str) -> bool:
        return name in self.active

    def to_dict(self) -> Dict[str, Any]:
        return {
            "compiler": self.compiler,
            "arguments": dict(self.values),
            "active": sorted(self.active),
        }


@dataclass(frozen=True)
class CompilerOutput:
    display_name: str
    language: Optional[str] = None
    value: Optional[str] = None


@dataclass(frozen=True)
class StepResult:
    success: bool
    code: Optional[ShaderCode] = None
    failure_code: Optional[int] = None
    outputs: Tuple[CompilerOutput, ...] = field(default_factory=tuple)
    selected_output_index: Optional[int] = None

    @property
    def output_size(self) -> Optional[int]:
        return self.code.size if self.code is not None else None

    def output(self, display_name: str) -> Optional[CompilerOutput]:
        return next((o for o in self.outputs if o.display_name == display_name), None)

    @classmethod
    def failed(
        cls,
        message: Optional[str],
        *extra_outputs: CompilerOutput,
        failure_code: int = DEFAULT_FAILURE_CODE,
    ) -> "StepResult":
        outputs = tuple(extra_outputs) + (CompilerOutput(OUTPUT, None, message),)
        return cls(
            success=False,
            code=None,
            failure_code=failure_code,
            outputs=outputs,
            selected_output_index=len(outputs) - 1,
        )

    @classmethod
    def succeeded(
        cls,
        code: ShaderCode,
        *outputs: CompilerOutput,
        selected_output_index: Optional[int] = 0,
    ) -> "StepResult":
        return cls(
            success=True,
            code=code,
            outputs=tuple(outputs),
            selected_output_index=selected_output_index if outputs else None,
        )


@dataclass
class CompileContext:
    runner: "ProcessRunner"
    workspace: "TempWorkspace"
    toolchain: "Toolchain"
    logger: logging.Logger
    input_language: str


class CompilerAdapter(ABC):
    @abstractmethod
    def meta(self) -> CompilerMeta:
        raise NotImplementedError

    @abstractmethod
    def compile(
        self,
        code: ShaderCode,
        arguments: CompilerArguments,
        previous_arguments: Sequence[CompilerArguments],
        ctx: CompileContext,
    ) -> StepResult:
        raise NotImplementedError


def find_previous_arguments(
    previous_arguments: Sequence[CompilerArguments], compiler: str
) -> Optional[CompilerArguments]:
    """Most recent earlier step that ran ``compiler``."""
    for arguments in reversed(previous_arguments):
        if arguments.compiler == compiler:
            return arguments
    return None


def tool_output(result: "ProcessResult", display_name: str = OUTPUT) -> CompilerOutput:
    return CompilerOutput(display_name, None, result.combined_output())
