from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from .toolchain import Toolchain


VERSION = "Version"
OUTPUT_LANGUAGE = "OutputLanguage"
EXTRA_OPTIONS = "ExtraOptions"

# Filter target that refers to the step's input language instead of a parameter.
INPUT_LANGUAGE_FILTER = "__InputLanguage"

TRUE = "true"
FALSE = "false"


class ParameterKind(str, Enum):
    TEXT_BOX = "TextBox"
    COMBO_BOX = "ComboBox"
    CHECK_BOX = "CheckBox"


@dataclass(frozen=True)
class ParameterFilter:
    name: str
    values: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "values": list(self.values)}


@dataclass(frozen=True)
class CompilerParameter:
    name: str
    display_name: str
    kind: ParameterKind
    options: Tuple[str, ...] = field(default_factory=tuple)
    default_value: str = ""
    description: str = ""
    filter: Optional[ParameterFilter] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "displayName": self.display_name,
            "parameterType": self.kind.value,
            "options": list(self.options),
            "defaultValue": self.default_value,
            "description": self.description,
            "filter": self.filter.to_dict() if self.filter else None,
        }


def text_parameter(
    name: str,
    display_name: str,
    default_value: str = "",
    description: str = "",
    filter: Optional[ParameterFilter] = None,
) -> CompilerParameter:
    return CompilerParameter(
        name=name,
        display_name=display_name,
        kind=ParameterKind.TEXT_BOX,
        default_value=default_value,
        description=description,
        filter=filter,
    )


def combo_parameter(
    name: str,
    display_name: str,
    options: Sequence[str],
    default_value: Optional[str] = None,
    description: str = "",
    filter: Optional[ParameterFilter] = None,
) -> CompilerParameter:
    options = tuple(options)
    if default_value is None:
        default_value = options[0] if options else ""
    return CompilerParameter(
        name=name,
        display_name=display_name,
        kind=ParameterKind.COMBO_BOX,
        options=options,
        default_value=default_value,
        description=description,
        filter=filter,
    )


def check_parameter(
    name: str,
    display_name: str,
    default_value: bool = False,
    description: str = "",
    filter: Optional[ParameterFilter] = None,
) -> CompilerParameter:
    return CompilerParameter(
        name=name,
        display_name=display_name,
        kind=ParameterKind.CHECK_BOX,
        options=(TRUE, FALSE),
        default_value=TRUE if default_value else FALSE,
        description=description,
        filter=filter,
    )


def when(name: str, *values: str) -> ParameterFilter:
    return ParameterFilter(name=name, values=tuple(values))


def when_input_language(*languages: str) -> ParameterFilter:
    return ParameterFilter(name=INPUT_LANGUAGE_FILTER, values=tuple(languages))


def version_parameter(tool: str, toolchain: "Toolchain") -> CompilerParameter:
    """Installed versions of ``tool``; the newest one is the default."""
    versions = toolchain.versions(tool)
    return combo_parameter(
        VERSION,
        "Version",
        versions,
        default_value=versions[-1],
        description=f"Version of {tool} to run.",
    )


def output_language_parameter(languages: Sequence[str]) -> CompilerParameter:
    return combo_parameter(
        OUTPUT_LANGUAGE,
        "Output format",
        languages,
        description="Language produced by this step.",
    )


EXTRA_OPTIONS_PARAMETER = text_parameter(
    EXTRA_OPTIONS,
    "Extra options",
    description="Additional command-line options passed to the tool as-is.",
)


def split_extra_options(value: str) -> List[str]:
    return shlex.split(value or "")
