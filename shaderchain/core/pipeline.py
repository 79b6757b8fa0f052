from __future__ import annotations

import os
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional, Tuple

from .compiler_api import (
    CompileContext,
    CompilerAdapter,
    CompilerArguments,
    CompilerMeta,
    ShaderCode,
    StepResult,
)
from .compiler_loader import CompilerRegistry
from .config import EngineConfig
from .diagnostics import AdapterContractError, Diagnostics, InfrastructureError, error, warning
from .external import ProcessRunner
from .logging import get_event_logger, get_logger
from .parameters import OUTPUT_LANGUAGE
from .request import CompilationStep, PipelineRequest
from .resolver import resolve_arguments
from .tempfiles import TempWorkspace


class StepState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class PipelineResult:
    results: List[StepResult] = field(default_factory=list)
    states: List[StepState] = field(default_factory=list)
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    run_id: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return all(state is StepState.SUCCEEDED for state in self.states)

    @property
    def failed_index(self) -> Optional[int]:
        return next((i for i, s in enumerate(self.states) if s is StepState.FAILED), None)

    def final_code(self) -> Optional[ShaderCode]:
        if not self.results or not self.results[-1].success:
            return None
        return self.results[-1].code


def output_language(meta: CompilerMeta, arguments: Optional[CompilerArguments] = None) -> str:
    """Language a step produces: the chosen OutputLanguage, else the single fixed one."""
    if arguments is not None and OUTPUT_LANGUAGE in arguments.values:
        return arguments.get_string(OUTPUT_LANGUAGE)
    return meta.output_languages[0]


def check_step(
    registry: CompilerRegistry, step: CompilationStep, language: str, index: int
) -> Tuple[Optional[CompilerAdapter], Diagnostics]:
    diagnostics = Diagnostics()
    location = f"steps/{index}"
    adapter = registry.get(step.compiler)
    if adapter is None:
        diagnostics.add(
            error("E-COMPILER-UNKNOWN", f"Unknown compiler: {step.compiler}", location=location)
        )
        return None, diagnostics
    meta = adapter.meta()
    if language not in meta.input_languages:
        diagnostics.add(
            error(
                "E-CHAIN-INPUT",
                f"{meta.display_name} does not accept {language} input "
                f"(accepts {', '.join(meta.input_languages)})",
                location=location,
                data={"compiler": meta.name, "language": language},
            )
        )
        return None, diagnostics
    return adapter, diagnostics


def validate_pipeline(request: PipelineRequest, registry: CompilerRegistry) -> Diagnostics:
    """Static pre-check of a whole chain before anything runs.

    Unknown compiler names anywhere and an incompatible first step are
    errors. Compatibility of later steps depends on what earlier steps
    actually produce, so it is only predicted here and reported as warnings.
    """
    diagnostics = Diagnostics()
    if not request.steps:
        diagnostics.add(warning("W-PIPELINE-EMPTY", "No compilation steps requested", location="steps"))
        return diagnostics

    for index, step in enumerate(request.steps):
        if step.compiler not in registry:
            diagnostics.add(
                error("E-COMPILER-UNKNOWN", f"Unknown compiler: {step.compiler}", location=f"steps/{index}")
            )
    if diagnostics.has_errors():
        return diagnostics

    _, first = check_step(registry, request.steps[0], request.source_language, 0)
    diagnostics.extend(first)
    if diagnostics.has_errors():
        return diagnostics

    language = _predicted_output(registry, request.steps[0])
    for index, step in enumerate(request.steps[1:], start=1):
        meta = registry.find_by_name(step.compiler).meta()
        if language is not None and language not in meta.input_languages:
            diagnostics.add(
                warning(
                    "W-CHAIN-INPUT",
                    f"{meta.display_name} may not accept {language} produced by the previous step",
                    location=f"steps/{index}",
                )
            )
        language = _predicted_output(registry, step)
    return diagnostics


def execute_pipeline(
    request: PipelineRequest,
    registry: CompilerRegistry,
    config: Optional[EngineConfig] = None,
    *,
    runner: Optional[ProcessRunner] = None,
    run_id: Optional[str] = None,
) -> PipelineResult:
    config = config or EngineConfig()
    logs_dir = config.logs_dir
    logger = get_logger("pipeline", logs_dir)
    event_logger = get_event_logger(logs_dir)
    runner = runner or ProcessRunner(config.process, logger=get_logger("external", logs_dir))
    run_id = run_id or safe_run_id()

    step_count = len(request.steps)
    result = PipelineResult(
        states=[StepState.PENDING if i == 0 else StepState.SKIPPED for i in range(step_count)],
        run_id=run_id,
    )
    pipeline_start = time.perf_counter()
    error_info: Optional[dict] = None

    _log_event(
        event_logger,
        "pipeline.start",
        run_id=run_id,
        source_language=request.source_language,
        steps=[step.compiler for step in request.steps],
    )

    try:
        result.diagnostics.extend(validate_pipeline(request, registry))
        if result.diagnostics.has_errors():
            result.states = [StepState.SKIPPED] * step_count
            rejected = _step_index(result.diagnostics.errors()[0].location)
            if rejected is not None:
                result.states[rejected] = StepState.FAILED
            logger.info("Pipeline %s rejected before execution", run_id)
            return result

        code = ShaderCode(request.source_language, text=request.code)
        previous: List[CompilerArguments] = []

        for index, step in enumerate(request.steps):
            result.states[index] = StepState.PENDING
            adapter, diagnostics = check_step(registry, step, code.language, index)
            result.diagnostics.extend(diagnostics)
            if adapter is None:
                result.states[index] = StepState.FAILED
                logger.info(
                    "Step %d (%s) rejected: %s", index, step.compiler, diagnostics.errors()[0].message
                )
                break

            result.states[index] = StepState.RUNNING
            meta = adapter.meta()
            arguments, diagnostics = resolve_arguments(
                meta, step.arguments, code.language, location=f"steps/{index}"
            )
            result.diagnostics.extend(diagnostics)
            if arguments is None:
                step_result = StepResult.failed("\n".join(d.message for d in diagnostics.errors()))
            else:
                step_result = _run_step(
                    registry,
                    adapter,
                    code,
                    arguments,
                    previous,
                    index,
                    run_id,
                    config,
                    runner,
                    logger,
                    event_logger,
                )
            result.results.append(step_result)

            if not step_result.success:
                result.states[index] = StepState.FAILED
                logger.info("Step %d (%s) failed; stopping chain", index, meta.name)
                break

            if step_result.code is None:
                raise AdapterContractError(
                    error(
                        "E-ADAPTER-CONTRACT",
                        f"{meta.name} reported success without producing code",
                        location=f"steps/{index}",
                    )
                )
            expected = output_language(meta, arguments)
            if step_result.code.language != expected:
                logger.warning(
                    "%s produced %s, expected %s", meta.name, step_result.code.language, expected
                )
            result.states[index] = StepState.SUCCEEDED
            previous.append(arguments)
            code = step_result.code
        return result
    except Exception as exc:
        error_info = {"type": type(exc).__name__, "message": str(exc)}
        if isinstance(exc, InfrastructureError):
            logger.error("Pipeline %s aborted by infrastructure failure: %s", run_id, exc)
        else:
            logger.exception("Pipeline %s aborted", run_id)
        raise
    finally:
        _log_event(
            event_logger,
            "pipeline.end",
            run_id=run_id,
            status="success" if error_info is None and result.succeeded else "failed",
            states=[state.value for state in result.states],
            elapsed_s=time.perf_counter() - pipeline_start,
            error=error_info,
        )


def _run_step(
    registry: CompilerRegistry,
    adapter: CompilerAdapter,
    code: ShaderCode,
    arguments: CompilerArguments,
    previous: List[CompilerArguments],
    index: int,
    run_id: str,
    config: EngineConfig,
    runner: ProcessRunner,
    logger,
    event_logger,
) -> StepResult:
    name = adapter.meta().name
    _log_event(
        event_logger,
        "step.start",
        run_id=run_id,
        index=index,
        compiler=name,
        input_language=code.language,
        arguments=dict(arguments.values),
    )
    step_start = time.perf_counter()
    try:
        with TempWorkspace(config.temp_dir, logger=logger) as workspace:
            ctx = CompileContext(
                runner=runner,
                workspace=workspace,
                toolchain=registry.toolchain,
                logger=logger,
                input_language=code.language,
            )
            step_result = adapter.compile(code, arguments, tuple(previous), ctx)
    except Exception as exc:
        _log_event(
            event_logger,
            "step.error",
            run_id=run_id,
            index=index,
            compiler=name,
            elapsed_s=time.perf_counter() - step_start,
            error=str(exc),
        )
        raise
    if not isinstance(step_result, StepResult):
        raise AdapterContractError(
            error("E-ADAPTER-CONTRACT", f"{name} returned {type(step_result).__name__}, not StepResult")
        )
    _log_event(
        event_logger,
        "step.end",
        run_id=run_id,
        index=index,
        compiler=name,
        success=step_result.success,
        failure_code=step_result.failure_code,
        output_language=step_result.code.language if step_result.code else None,
        output_size=step_result.output_size,
        elapsed_s=time.perf_counter() - step_start,
    )
    return step_result


def _predicted_output(registry: CompilerRegistry, step: CompilationStep) -> Optional[str]:
    meta = registry.find_by_name(step.compiler).meta()
    chosen = step.arguments.get(OUTPUT_LANGUAGE)
    if chosen is not None:
        return chosen if chosen in meta.output_languages else None
    return output_language(meta)


def _step_index(location: Optional[str]) -> Optional[int]:
    if not location or not location.startswith("steps/"):
        return None
    head = location.split("/")[1]
    return int(head) if head.isdigit() else None


def _log_event(event_logger, event: str, **data: Any) -> None:
    if event_logger is None:
        return
    payload = {"event": event}
    payload.update(data)
    try:
        event_logger.record(payload)
    except OSError:
        return


def safe_run_id(prefix: str = "compile") -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    pid = os.getpid()
    nonce = secrets.token_hex(4)
    return f"{prefix}-{ts}-{pid}-{nonce}"
