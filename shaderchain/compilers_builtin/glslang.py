from __future__ import annotations

from typing import List, Optional, Sequence

from shaderchain.core.compiler_api import (
    CompileContext,
    CompilerAdapter,
    CompilerArguments,
    CompilerMeta,
    ShaderCode,
    StepResult,
    tool_output,
)
from shaderchain.core.languages import GLSL, HLSL, SPIRV
from shaderchain.core.parameters import (
    EXTRA_OPTIONS,
    EXTRA_OPTIONS_PARAMETER,
    combo_parameter,
    split_extra_options,
    text_parameter,
    version_parameter,
    when_input_language,
)
from shaderchain.core.tempfiles import read_bytes_if_exists
from shaderchain.core.toolchain import Toolchain


SHADER_STAGES = ["vert", "tesc", "tese", "geom", "frag", "comp"]

TARGET_ENVIRONMENTS = ["vulkan1.0", "vulkan1.1", "vulkan1.2", "vulkan1.3", "opengl"]


class GlslangCompiler(CompilerAdapter):
    def __init__(self, toolchain: Optional[Toolchain] = None) -> None:
        self.toolchain = toolchain or Toolchain()
        self._meta = self._describe()

    def meta(self) -> CompilerMeta:
        return self._meta

    def _describe(self) -> CompilerMeta:
        return CompilerMeta(
            name="glslang",
            display_name="glslang",
            url="https://github.com/KhronosGroup/glslang",
            description="Khronos reference front end for GLSL and ESSL, with partial HLSL support.",
            input_languages=(GLSL, HLSL),
            output_languages=(SPIRV,),
            parameters=(
                version_parameter("glslang", self.toolchain),
                combo_parameter("ShaderStage", "Shader stage", SHADER_STAGES, "frag"),
                combo_parameter("Target", "Target environment", TARGET_ENVIRONMENTS, "vulkan1.0"),
                text_parameter(
                    "EntryPoint",
                    "Entry point",
                    "main",
                    filter=when_input_language(HLSL),
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
        source_path = ctx.workspace.write_code(code)
        output_path = ctx.workspace.path("output.spv")
        target = arguments.get_string("Target")

        cmd: List[str] = [str(ctx.toolchain.binary_for("glslang", arguments, "glslangValidator"))]
        if target == "opengl":
            cmd.append("-G")
        else:
            cmd.extend(["-V", "--target-env", target])
        cmd.extend(["-S", arguments.get_string("ShaderStage")])
        if arguments.is_active("EntryPoint"):
            cmd.extend(["-D", "-e", arguments.get_string("EntryPoint")])
        cmd.extend(["-o", str(output_path)])
        cmd.extend(split_extra_options(arguments.get_string(EXTRA_OPTIONS)))
        cmd.append(str(source_path))

        result = ctx.runner.run(cmd, cwd=ctx.workspace.root)

        binary = read_bytes_if_exists(output_path)
        if result.returncode != 0 or binary is None:
            return StepResult.failed(result.combined_output())
        return StepResult.succeeded(ShaderCode(SPIRV, binary=binary), tool_output(result))
