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
from shaderchain.core.languages import DXIL, HLSL, LLVM_IR, SPIRV, SPIRV_ASSEMBLY
from shaderchain.core.parameters import (
    EXTRA_OPTIONS,
    EXTRA_OPTIONS_PARAMETER,
    OUTPUT_LANGUAGE,
    check_parameter,
    combo_parameter,
    split_extra_options,
    text_parameter,
    version_parameter,
    when,
)
from shaderchain.core.tables import table_output
from shaderchain.core.tempfiles import read_bytes_if_exists, read_text_if_exists
from shaderchain.core.toolchain import Toolchain


TARGET_PROFILES = [
    f"{stage}_6_{minor}"
    for stage in ("vs", "ps", "cs", "gs", "hs", "ds", "as", "ms", "lib")
    for minor in range(0, 9)
]

OPTIMIZATION_LEVELS = ["0", "1", "2", "3"]

SPIRV_TARGETS = ["vulkan1.0", "vulkan1.1", "vulkan1.2", "vulkan1.3"]


class DxcCompiler(CompilerAdapter):
    def __init__(self, toolchain: Optional[Toolchain] = None) -> None:
        self.toolchain = toolchain or Toolchain()
        self._meta = self._describe()

    def meta(self) -> CompilerMeta:
        return self._meta

    def _describe(self) -> CompilerMeta:
        return CompilerMeta(
            name="dxc",
            display_name="DXC",
            url="https://github.com/microsoft/DirectXShaderCompiler",
            description=(
                "The DirectX Shader Compiler compiles HLSL to DXIL for Direct3D 12, "
                "or to SPIR-V for Vulkan."
            ),
            input_languages=(HLSL,),
            output_languages=(DXIL, SPIRV),
            parameters=(
                version_parameter("dxc", self.toolchain),
                text_parameter("EntryPoint", "Entry point", "main"),
                combo_parameter("TargetProfile", "Target profile", TARGET_PROFILES, "ps_6_0"),
                combo_parameter(
                    "OptimizationLevel",
                    "Optimization level",
                    OPTIMIZATION_LEVELS,
                    "3",
                    description="Passed to DXC as -O<level>.",
                ),
                check_parameter(
                    "DisableOptimizations",
                    "Disable optimizations",
                    description="Passed to DXC as -Od; overrides the optimization level.",
                ),
                check_parameter("EnableHlsl2021", "Enable HLSL 2021"),
                combo_parameter(
                    "SpirvTarget",
                    "SPIR-V target environment",
                    SPIRV_TARGETS,
                    "vulkan1.0",
                    filter=when(OUTPUT_LANGUAGE, SPIRV),
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
        is_spirv = output_language == SPIRV

        source_path = ctx.workspace.write_code(code)
        binary_path = ctx.workspace.path("output.spv" if is_spirv else "output.dxil")
        listing_path = ctx.workspace.path("listing.txt")

        cmd: List[str] = [
            str(ctx.toolchain.binary_for("dxc", arguments, "dxc")),
            "-T",
            arguments.get_string("TargetProfile"),
            "-E",
            arguments.get_string("EntryPoint"),
        ]
        if arguments.get_boolean("DisableOptimizations"):
            cmd.append("-Od")
        else:
            cmd.append(f"-O{arguments.get_string('OptimizationLevel')}")
        if arguments.get_boolean("EnableHlsl2021"):
            cmd.extend(["-HV", "2021"])
        if is_spirv:
            cmd.extend(["-spirv", f"-fspv-target-env={arguments.get_string('SpirvTarget')}"])
        cmd.extend(["-Fo", str(binary_path), "-Fc", str(listing_path)])
        cmd.extend(split_extra_options(arguments.get_string(EXTRA_OPTIONS)))
        cmd.append(str(source_path))

        result = ctx.runner.run(cmd, cwd=ctx.workspace.root)

        binary = read_bytes_if_exists(binary_path)
        if result.returncode != 0 or binary is None:
            return StepResult.failed(result.combined_output())

        listing = read_text_if_exists(listing_path)
        return StepResult.succeeded(
            ShaderCode(output_language, binary=binary),
            CompilerOutput("Disassembly", SPIRV_ASSEMBLY if is_spirv else LLVM_IR, listing),
            table_output(
                "Summary",
                ["Property", "Value"],
                [
                    ("Target profile", arguments.get_string("TargetProfile")),
                    ("Entry point", arguments.get_string("EntryPoint")),
                    ("Output language", output_language),
                    ("Output size (bytes)", len(binary)),
                ],
            ),
            tool_output(result),
        )
