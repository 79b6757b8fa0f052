from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

import jsonschema
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from .config import load_data
from .diagnostics import Diagnostic, Diagnostics, error

SCHEMA_DIR = Path(__file__).resolve().parent.parent / "schemas"
REQUEST_SCHEMA = SCHEMA_DIR / "compile_request.schema.json"


class CompilationStepModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)
    compiler: str = Field(validation_alias=AliasChoices("compiler", "compilerName"), min_length=1)
    arguments: Dict[str, str] = Field(default_factory=dict)

    @field_validator("arguments", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        return {key: _stringify_value(val) for key, val in value.items()}


class CompileRequestModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)
    source_language: str = Field(
        validation_alias=AliasChoices("sourceLanguage", "source_language"), min_length=1
    )
    code: str
    steps: List[CompilationStepModel] = Field(default_factory=list)


@dataclass(frozen=True)
class CompilationStep:
    compiler: str
    arguments: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "arguments", MappingProxyType(dict(self.arguments)))


@dataclass(frozen=True)
class PipelineRequest:
    source_language: str
    code: str
    steps: Tuple[CompilationStep, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sourceLanguage": self.source_language,
            "code": self.code,
            "steps": [
                {"compiler": step.compiler, "arguments": dict(step.arguments)} for step in self.steps
            ],
        }


def load_request(path: Path) -> Dict[str, Any]:
    data = load_data(path)
    if not isinstance(data, dict):
        raise ValueError("Request must be a JSON object")
    return data


def validate_request_schema(data: Any, schema_path: Path = REQUEST_SCHEMA) -> Diagnostics:
    diagnostics = Diagnostics()
    with schema_path.open("r", encoding="utf-8") as handle:
        schema = json.load(handle)
    schema["$id"] = schema_path.resolve().as_uri()
    validator = jsonschema.Draft202012Validator(schema)
    for err in sorted(validator.iter_errors(data), key=str):
        diagnostics.add(
            Diagnostic(
                code="E-REQUEST-SCHEMA",
                message=err.message,
                location="/".join(str(x) for x in err.path) or "request",
            )
        )
    return diagnostics


def parse_request(data: Any) -> Tuple[Optional[PipelineRequest], Diagnostics]:
    diagnostics = validate_request_schema(data)
    if diagnostics.has_errors():
        return None, diagnostics
    try:
        model = CompileRequestModel.model_validate(data)
    except ValidationError as exc:
        diagnostics.add(error("E-REQUEST-MODEL", str(exc), location="request"))
        return None, diagnostics
    request = PipelineRequest(
        source_language=model.source_language,
        code=model.code,
        steps=tuple(CompilationStep(step.compiler, step.arguments) for step in model.steps),
    )
    return request, diagnostics


def _stringify_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value
