"""Resolution of submitted step arguments against a compiler's parameter schema."""

from __future__ import annotations

from typing import Dict, FrozenSet, Mapping, Optional, Tuple

from .compiler_api import CompilerArguments, CompilerMeta
from .diagnostics import Diagnostics, error, warning
from .parameters import (
    EXTRA_OPTIONS,
    FALSE,
    INPUT_LANGUAGE_FILTER,
    TRUE,
    CompilerParameter,
    ParameterKind,
    split_extra_options,
)


def resolve_arguments(
    meta: CompilerMeta,
    submitted: Mapping[str, str],
    input_language: str,
    *,
    location: Optional[str] = None,
) -> Tuple[Optional[CompilerArguments], Diagnostics]:
    """Fill defaults, check enumerated values and annotate filter activity.

    Returns ``None`` as the arguments when any submitted value is rejected.
    Inactive parameters keep their resolved value; only the ``active`` set
    tells them apart.
    """
    diagnostics = Diagnostics()
    parameters = meta.all_parameters()
    declared: Dict[str, CompilerParameter] = {p.name: p for p in parameters}
    location = location or meta.name

    for name in submitted:
        if name not in declared:
            diagnostics.add(
                warning(
                    "W-PARAM-UNKNOWN",
                    f"{meta.display_name} has no parameter '{name}'; ignored",
                    location=f"{location}/{name}",
                )
            )

    values: Dict[str, str] = {}
    for parameter in parameters:
        raw = submitted.get(parameter.name)
        if raw is None:
            values[parameter.name] = parameter.default_value
            continue
        value = str(raw)
        problem = _check_value(parameter, value)
        if problem:
            diagnostics.add(
                error(
                    "E-PARAM-VALUE",
                    f"{meta.display_name}: {problem}",
                    location=f"{location}/{parameter.name}",
                    hints=list(parameter.options),
                )
            )
            continue
        values[parameter.name] = value

    if diagnostics.has_errors():
        return None, diagnostics

    active = active_parameters(parameters, values, input_language)
    return CompilerArguments(compiler=meta.name, values=values, active=active), diagnostics


def active_parameters(
    parameters: Tuple[CompilerParameter, ...],
    values: Mapping[str, str],
    input_language: str,
) -> FrozenSet[str]:
    declared = {p.name: p for p in parameters}
    return frozenset(
        p.name for p in parameters if _is_active(p, declared, values, input_language, frozenset())
    )


def _is_active(
    parameter: CompilerParameter,
    declared: Mapping[str, CompilerParameter],
    values: Mapping[str, str],
    input_language: str,
    seen: FrozenSet[str],
) -> bool:
    flt = parameter.filter
    if flt is None:
        return True
    if flt.name == INPUT_LANGUAGE_FILTER:
        return input_language in flt.values
    target = declared.get(flt.name)
    if target is None or parameter.name in seen:
        return False
    if values.get(flt.name) not in flt.values:
        return False
    # hidden when the parameter it depends on is hidden itself
    return _is_active(target, declared, values, input_language, seen | {parameter.name})


def _check_value(parameter: CompilerParameter, value: str) -> Optional[str]:
    if parameter.kind is ParameterKind.COMBO_BOX and value not in parameter.options:
        return f"'{value}' is not a valid value for {parameter.display_name}"
    if parameter.kind is ParameterKind.CHECK_BOX and value not in (TRUE, FALSE):
        return f"{parameter.display_name} must be '{TRUE}' or '{FALSE}', got '{value}'"
    if parameter.name == EXTRA_OPTIONS:
        try:
            split_extra_options(value)
        except ValueError as exc:
            return f"{parameter.display_name} cannot be split into arguments: {exc}"
    return None
