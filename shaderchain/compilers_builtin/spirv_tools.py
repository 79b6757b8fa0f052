from __future__ import annotations

from typing import List, Optional, Sequence

from shaderchain.core.compiler_api import (
    CompileContext,
    CompilerAdapter,
    CompilerArguments,
    CompilerMeta,
    CompilerOutput,
    ShaderCode,
    StepResult,
    tool_output,
)
from shaderchain.core.languages import SPIRV, SPIRV_ASSEMBLY
from shaderchain.core.parameters import (
    EXTRA_OPTIONS,
    EXTRA_OPTIONS_PARAMETER,
    check_parameter,
    split_extra_options,
    version_parameter,
)
from shaderchain.core.tempfiles import read_text_if_exists
from shaderchain.core.toolchain import Toolchain


class SpirvDisassembler(CompilerAdapter):
    """spirv-dis; its exit code is not trusted, a missing listing means failure."""

    def __init__(self, toolchain: Optional[Toolchain] = None) -> None:
        self.toolchain = toolchain or Toolchain()
        self._meta = self._describe()

    def meta(self) -> CompilerMeta:
        return self._meta

    def _describe(self) -> CompilerMeta:
        return CompilerMeta(
            name="spirv-dis",
            display_name="spirv-dis",
            url="https://github.com/KhronosGroup/SPIRV-Tools",
            description="Disassembles a SPIR-V binary module into SPIR-V assembly text.",
            input_languages=(SPIRV,),
            output_languages=(SPIRV_ASSEMBLY,),
            parameters=(
                version_parameter("spirv-tools", self.toolchain),
                check_parameter("RawId", "Raw IDs", description="Show raw result IDs instead of friendly names."),
                check_parameter("Offsets", "Offsets", description="Annotate instructions with byte offsets."),
                EXTRA_OPTIONS_PARAMETER,
            ),
        )

    def compile(
        self,
        code: ShaderCode,
        arguments: CompilerArguments,
        previous_arguments: Sequence[CompilerArguments],
        ctx: CompileContext,
    ) -> StepResult:
        source_path = ctx.workspace.write_code(code)
        output_path = ctx.workspace.path("output.spvasm")

        cmd: List[str] = [
            str(ctx.toolchain.binary_for("spirv-tools", arguments, "spirv-dis")),
            "--no-color",
        ]
        if arguments.get_boolean("RawId"):
            cmd.append("--raw-id")
        if arguments.get_boolean("Offsets"):
            cmd.append("--offsets")
        cmd.extend(split_extra_options(arguments.get_string(EXTRA_OPTIONS)))
        cmd.extend(["-o", str(output_path), str(source_path)])

        result = ctx.runner.run(cmd, cwd=ctx.workspace.root)

        text = read_text_if_exists(output_path)
        if text is None:
            return StepResult.failed(result.combined_output())
        return StepResult.succeeded(
            ShaderCode(SPIRV_ASSEMBLY, text=text),
            CompilerOutput("Assembly", SPIRV_ASSEMBLY, text),
            tool_output(result),
        )
