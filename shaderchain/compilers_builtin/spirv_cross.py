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
from shaderchain.core.languages import GLSL, HLSL, METAL, SPIRV, get_language
from shaderchain.core.parameters import (
    EXTRA_OPTIONS,
    EXTRA_OPTIONS_PARAMETER,
    OUTPUT_LANGUAGE,
    check_parameter,
    combo_parameter,
    split_extra_options,
    version_parameter,
    when,
)
from shaderchain.core.tempfiles import read_text_if_exists
from shaderchain.core.toolchain import Toolchain


GLSL_VERSIONS = ["100 es", "300 es", "310 es", "320 es", "110", "330", "410", "420", "430", "450", "460"]

HLSL_SHADER_MODELS = ["30", "40", "50", "51", "60", "61", "62", "63", "64", "65", "66"]

# spirv-cross encodes MSL versions as major * 10000 + minor * 100
MSL_VERSIONS = ["10200", "20000", "20100", "20200", "20300", "20400", "30000", "30100"]


class SpirvCrossCompiler(CompilerAdapter):
    def __init__(self, toolchain: Optional[Toolchain] = None) -> None:
        self.toolchain = toolchain or Toolchain()
        self._meta = self._describe()

    def meta(self) -> CompilerMeta:
        return self._meta

    def _describe(self) -> CompilerMeta:
        return CompilerMeta(
            name="spirv-cross",
            display_name="SPIRV-Cross",
            url="https://github.com/KhronosGroup/SPIRV-Cross",
            description="Parses SPIR-V and converts it to GLSL, HLSL or Metal Shading Language.",
            input_languages=(SPIRV,),
            output_languages=(GLSL, HLSL, METAL),
            parameters=(
                version_parameter("spirv-cross", self.toolchain),
                combo_parameter(
                    "GlslVersion",
                    "GLSL version",
                    GLSL_VERSIONS,
                    "450",
                    filter=when(OUTPUT_LANGUAGE, GLSL),
                ),
                check_parameter(
                    "VulkanSemantics",
                    "Vulkan semantics",
                    description="Emit Vulkan GLSL instead of OpenGL GLSL.",
                    filter=when(OUTPUT_LANGUAGE, GLSL),
                ),
                combo_parameter(
                    "ShaderModel",
                    "HLSL shader model",
                    HLSL_SHADER_MODELS,
                    "50",
                    filter=when(OUTPUT_LANGUAGE, HLSL),
                ),
                combo_parameter(
                    "MslVersion",
                    "MSL version",
                    MSL_VERSIONS,
                    "20000",
                    filter=when(OUTPUT_LANGUAGE, METAL),
                ),
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
        output_language = arguments.get_string(OUTPUT_LANGUAGE)
        source_path = ctx.workspace.write_code(code)
        output_path = ctx.workspace.path("output" + get_language(output_language).file_extension())

        cmd: List[str] = [
            str(ctx.toolchain.binary_for("spirv-cross", arguments, "spirv-cross")),
            str(source_path),
            "--output",
            str(output_path),
        ]
        cmd.extend(_language_options(output_language, arguments))
        cmd.extend(split_extra_options(arguments.get_string(EXTRA_OPTIONS)))

        result = ctx.runner.run(cmd, cwd=ctx.workspace.root)

        text = read_text_if_exists(output_path)
        if result.returncode != 0 or text is None:
            return StepResult.failed(result.combined_output())
        return StepResult.succeeded(
            ShaderCode(output_language, text=text),
            CompilerOutput(output_language, output_language, text),
            tool_output(result),
        )


def _language_options(output_language: str, arguments: CompilerArguments) -> List[str]:
    if output_language == HLSL:
        return ["--hlsl", "--shader-model", arguments.get_string("ShaderModel")]
    if output_language == METAL:
        return ["--msl", "--msl-version", arguments.get_string("MslVersion")]
    version, _, profile = arguments.get_string("GlslVersion").partition(" ")
    options = ["--version", version]
    options.append("--es" if profile == "es" else "--no-es")
    if arguments.get_boolean("VulkanSemantics"):
        options.append("--vulkan-semantics")
    return options
