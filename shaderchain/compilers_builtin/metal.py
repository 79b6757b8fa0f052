from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from shaderchain.core.compiler_api import (
    CompileContext,
    CompilerAdapter,
    CompilerArguments,
    CompilerMeta,
    CompilerOutput,
    ShaderCode,
    StepResult,
    find_previous_arguments,
    tool_output,
)
from shaderchain.core.languages import DXIL, METAL, METAL_IR, METALLIB
from shaderchain.core.parameters import (
    EXTRA_OPTIONS,
    EXTRA_OPTIONS_PARAMETER,
    combo_parameter,
    split_extra_options,
    version_parameter,
)
from shaderchain.core.tempfiles import read_bytes_if_exists, read_text_if_exists
from shaderchain.core.toolchain import Toolchain


METAL_URL = "https://developer.apple.com/documentation/metal/shader_authoring"
METAL_DESCRIPTION = (
    "Metal is Apple's low-overhead graphics and compute API, with a C++-based "
    "shading language compiled to the AIR intermediate representation."
)

# Language standard -> (platform, minimum OS version) used when linking a metallib.
METAL_PLATFORMS: Dict[str, Tuple[str, str]] = {
    "macos-metal1.0": ("macosx", "10.11.0"),
    "macos-metal1.1": ("macosx", "10.11.0"),
    "macos-metal1.2": ("macosx", "10.12.0"),
    "macos-metal2.0": ("macosx", "10.13.0"),
    "macos-metal2.1": ("macosx", "10.14.0"),
    "macos-metal2.2": ("macosx", "10.15.0"),
    "macos-metal2.3": ("macosx", "11.0.0"),
    "macos-metal2.4": ("macosx", "12.0.0"),
    "ios-metal1.0": ("ios", "8.0.0"),
    "ios-metal1.1": ("ios", "9.0.0"),
    "ios-metal1.2": ("ios", "10.0.0"),
    "ios-metal2.0": ("ios", "11.0.0"),
    "ios-metal2.1": ("ios", "12.0.0"),
    "ios-metal2.2": ("ios", "13.0.0"),
    "ios-metal2.3": ("ios", "14.0.0"),
    "ios-metal2.4": ("ios", "15.0.0"),
    "metal3.0": ("macosx", "13.0.0"),
    "metal3.1": ("macosx", "14.0.0"),
}

METAL_VERSIONS = list(METAL_PLATFORMS)


class MetalCompiler(CompilerAdapter):
    """Metal source to AIR.

    The compiler's exit status is not reliable; a missing output file is
    what marks a failed compilation.
    """

    def __init__(self, toolchain: Optional[Toolchain] = None) -> None:
        self.toolchain = toolchain or Toolchain()
        self._meta = self._describe()

    def meta(self) -> CompilerMeta:
        return self._meta

    def _describe(self) -> CompilerMeta:
        return CompilerMeta(
            name="metal",
            display_name="Metal",
            url=METAL_URL,
            description=METAL_DESCRIPTION,
            input_languages=(METAL,),
            output_languages=(METAL_IR,),
            parameters=(
                version_parameter("metal", self.toolchain),
                combo_parameter("MetalVersion", "Metal language version", METAL_VERSIONS, "metal3.1"),
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
        assembly_path = ctx.workspace.path("output.ll")
        binary_path = ctx.workspace.path("output.air")
        metal = str(ctx.toolchain.binary_for("metal", arguments, "metal"))
        standard = f"-std={arguments.get_string('MetalVersion')}"
        include = _include_options(ctx, arguments)

        result = ctx.runner.run(
            [metal, standard, "-S", "-emit-llvm", *include, "-o", str(assembly_path), str(source_path)],
            cwd=ctx.workspace.root,
        )
        assembly = read_text_if_exists(assembly_path)
        if assembly is None:
            return StepResult.failed(result.stderr)

        binary_result = ctx.runner.run(
            [metal, standard, *include, "-o", str(binary_path), "-c", str(source_path)],
            cwd=ctx.workspace.root,
        )
        binary = read_bytes_if_exists(binary_path)
        if binary is None:
            return StepResult.failed(
                binary_result.stderr, CompilerOutput("Assembly", METAL_IR, assembly)
            )

        return StepResult.succeeded(
            ShaderCode(METAL_IR, binary=binary),
            CompilerOutput("Assembly", METAL_IR, assembly),
            CompilerOutput("Output", None, result.stderr),
        )


class MetalLibCompiler(CompilerAdapter):
    """Links AIR into a metallib for the platform chosen in the earlier Metal step."""

    def __init__(self, toolchain: Optional[Toolchain] = None) -> None:
        self.toolchain = toolchain or Toolchain()
        self._meta = self._describe()

    def meta(self) -> CompilerMeta:
        return self._meta

    def _describe(self) -> CompilerMeta:
        return CompilerMeta(
            name="metallib",
            display_name="Metallib",
            url=METAL_URL,
            description=METAL_DESCRIPTION,
            input_languages=(METAL_IR,),
            output_languages=(METALLIB,),
            parameters=(version_parameter("metal", self.toolchain),),
        )

    def compile(
        self,
        code: ShaderCode,
        arguments: CompilerArguments,
        previous_arguments: Sequence[CompilerArguments],
        ctx: CompileContext,
    ) -> StepResult:
        metal_arguments = find_previous_arguments(previous_arguments, "metal")
        if metal_arguments is None:
            return StepResult.failed("Metallib needs an earlier Metal step to choose the target platform")
        platform, min_version = METAL_PLATFORMS[metal_arguments.get_string("MetalVersion")]

        source_path = ctx.workspace.write_code(code)
        output_path = ctx.workspace.path("output.metallib")

        result = ctx.runner.run(
            [
                str(ctx.toolchain.binary_for("metal", arguments, "air-lld")),
                "-arch",
                "air64",
                f"-{platform}_version_min",
                min_version,
                "-o",
                str(output_path),
                str(source_path),
            ],
            cwd=ctx.workspace.root,
        )

        binary = read_bytes_if_exists(output_path)
        # the linker reports problems on stderr while still exiting with 0
        if result.stderr.strip() or binary is None:
            return StepResult.failed(result.stderr or result.combined_output())
        return StepResult.succeeded(
            ShaderCode(METALLIB, binary=binary),
            CompilerOutput("Output", None, "[Compilation successful; download binary below]"),
        )


class MetalShaderConverter(CompilerAdapter):
    def __init__(self, toolchain: Optional[Toolchain] = None) -> None:
        self.toolchain = toolchain or Toolchain()
        self._meta = self._describe()

    def meta(self) -> CompilerMeta:
        return self._meta

    def _describe(self) -> CompilerMeta:
        return CompilerMeta(
            name="metal-shaderconverter",
            display_name="Metal Shader Converter",
            url="https://developer.apple.com/metal/shader-converter/",
            description=(
                "Converts DXIL bytecode into Metal IR suitable for loading into Metal, "
                "without going through SPIR-V."
            ),
            input_languages=(DXIL,),
            output_languages=(METAL_IR,),
            parameters=(
                version_parameter("metal-shaderconverter", self.toolchain),
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
        output_path = ctx.workspace.path("output.metallib")

        cmd: List[str] = [
            str(ctx.toolchain.binary_for("metal-shaderconverter", arguments, "metal-shaderconverter")),
            f"-o={output_path}",
        ]
        cmd.extend(split_extra_options(arguments.get_string(EXTRA_OPTIONS)))
        cmd.append(str(source_path))
        result = ctx.runner.run(cmd, cwd=ctx.workspace.root)

        binary = read_bytes_if_exists(output_path)
        if binary is None:
            return StepResult.failed(result.stderr or result.combined_output())

        disassembly = ctx.runner.run(
            [
                str(ctx.toolchain.binary_for("metal-shaderconverter", arguments, "metal-objdump")),
                "--disassemble",
                str(output_path),
            ],
            cwd=ctx.workspace.root,
        )
        return StepResult.succeeded(
            ShaderCode(METAL_IR, binary=binary),
            CompilerOutput("Assembly", METAL_IR, disassembly.stdout),
            tool_output(result),
        )


def _include_options(ctx: CompileContext, arguments: CompilerArguments) -> List[str]:
    tool_dir = ctx.toolchain.tool_dir("metal", arguments.get_string("Version"))
    if tool_dir is None:
        return []
    return ["-I", str(tool_dir / "include" / "metal")]
