from __future__ import annotations

import base64
from typing import Any, Dict, List, Optional

from .compiler_api import CompilerAdapter, CompilerMeta, CompilerOutput, StepResult
from .compiler_loader import CompilerRegistry
from .languages import LANGUAGES
from .pipeline import PipelineResult


def output_to_dict(output: CompilerOutput) -> Dict[str, Any]:
    return {
        "displayName": output.display_name,
        "language": output.language,
        "value": output.value,
    }


def step_result_to_dict(result: StepResult) -> Dict[str, Any]:
    binary: Optional[str] = None
    if result.code is not None and result.code.binary is not None:
        binary = base64.b64encode(result.code.binary).decode("ascii")
    return {
        "success": result.success,
        "outputSize": result.output_size,
        "binaryOutput": binary,
        "failureCode": result.failure_code,
        "outputs": [output_to_dict(output) for output in result.outputs],
        "selectedOutputIndex": result.selected_output_index,
    }


def pipeline_result_to_dict(result: PipelineResult) -> Dict[str, Any]:
    return {
        "results": [step_result_to_dict(step) for step in result.results],
        "diagnostics": result.diagnostics.to_list(),
    }


def compiler_meta_to_dict(meta: CompilerMeta) -> Dict[str, Any]:
    return {
        "name": meta.name,
        "displayName": meta.display_name,
        "url": meta.url,
        "description": meta.description,
        "inputLanguages": list(meta.input_languages),
        "outputLanguages": list(meta.output_languages),
        "parameters": [parameter.to_dict() for parameter in meta.all_parameters()],
    }


def compilers_to_list(
    registry: CompilerRegistry, language: Optional[str] = None
) -> List[Dict[str, Any]]:
    compilers: List[CompilerAdapter] = (
        registry.find_by_input_language(language) if language else registry.all()
    )
    return [compiler_meta_to_dict(compiler.meta()) for compiler in compilers]


def languages_to_list() -> List[Dict[str, Any]]:
    return [language.to_dict() for language in LANGUAGES.values()]
