from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from shaderchain.core.compiler_api import CompileContext, ShaderCode
from shaderchain.core.diagnostics import ToolNotFoundError
from shaderchain.core.resolver import resolve_arguments
from shaderchain.core.tempfiles import TempWorkspace
from shaderchain.core.toolchain import Toolchain
from shaderchain.compilers_builtin.dxc import DxcCompiler
from shaderchain.compilers_builtin.glslang import GlslangCompiler
from shaderchain.compilers_builtin.metal import MetalCompiler, MetalLibCompiler, MetalShaderConverter
from shaderchain.compilers_builtin.spirv_cross import SpirvCrossCompiler
from shaderchain.compilers_builtin.spirv_tools import SpirvDisassembler

from stubs import FakeRunner, arg_after


SPIRV_BYTES = b"\x03\x02\x23\x07\x00\x00\x01\x00"
HLSL_SOURCE = "float4 main() : SV_Target { return 1; }"


def _toolchain(tmp_path, *binaries):
    root = tmp_path / "binaries"
    for relative in binaries:
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("", encoding="utf-8")
    return Toolchain(root)


def _compile(tmp_path, compiler, code, runner, submitted=None, previous=()):
    arguments, diagnostics = resolve_arguments(compiler.meta(), submitted or {}, code.language)
    assert not diagnostics.has_errors()
    with TempWorkspace(tmp_path / "work") as workspace:
        ctx = CompileContext(
            runner=runner,
            workspace=workspace,
            toolchain=compiler.toolchain,
            logger=logging.getLogger("shaderchain.test"),
            input_language=code.language,
        )
        return compiler.compile(code, arguments, tuple(previous), ctx)


def _write(path, data):
    path = Path(path)
    if isinstance(data, bytes):
        path.write_bytes(data)
    else:
        path.write_text(data, encoding="utf-8")


def test_dxc_spirv_output(tmp_path):
    compiler = DxcCompiler(_toolchain(tmp_path, "dxc/1.8.2403/bin/dxc"))

    def tool(cmd):
        _write(arg_after(cmd, "-Fo"), SPIRV_BYTES)
        _write(arg_after(cmd, "-Fc"), "; SPIR-V\n; Version: 1.0\n")

    runner = FakeRunner(tool, stderr="warning: unused variable\n")
    result = _compile(
        tmp_path,
        compiler,
        ShaderCode("HLSL", text=HLSL_SOURCE),
        runner,
        {"OutputLanguage": "SPIR-V", "ExtraOptions": "-Zi -Qembed_debug"},
    )

    cmd = runner.commands[0]
    assert cmd[0].endswith("dxc")
    assert arg_after(cmd, "-T") == "ps_6_0"
    assert arg_after(cmd, "-E") == "main"
    assert "-O3" in cmd
    assert "-spirv" in cmd
    assert "-fspv-target-env=vulkan1.0" in cmd
    assert cmd[-3:-1] == ["-Zi", "-Qembed_debug"]
    assert cmd[-1].endswith("shader.hlsl")

    assert result.success
    assert result.code.language == "SPIR-V"
    assert result.code.binary == SPIRV_BYTES
    assert [o.display_name for o in result.outputs] == ["Disassembly", "Summary", "Output"]
    assert result.outputs[0].language == "SPIR-V Assembly"
    summary = json.loads(result.output("Summary").value)
    assert summary["Header"]["Data"] == ["Property", "Value"]
    assert result.output("Output").value == "warning: unused variable"


def test_dxc_dxil_defaults(tmp_path):
    compiler = DxcCompiler(_toolchain(tmp_path, "dxc/1.8.2403/dxc"))
    runner = FakeRunner(lambda cmd: _write(arg_after(cmd, "-Fo"), b"DXBC"))

    result = _compile(
        tmp_path,
        compiler,
        ShaderCode("HLSL", text=HLSL_SOURCE),
        runner,
        {"DisableOptimizations": "true", "EnableHlsl2021": "true"},
    )

    cmd = runner.commands[0]
    assert "-Od" in cmd
    assert "-O3" not in cmd
    assert arg_after(cmd, "-HV") == "2021"
    assert "-spirv" not in cmd
    assert arg_after(cmd, "-Fo").endswith("output.dxil")
    assert result.success
    assert result.code.language == "DXIL"
    assert result.outputs[0].language == "LLVM IR"
    assert result.outputs[0].value is None


def test_dxc_failure_reports_tool_output(tmp_path):
    compiler = DxcCompiler(_toolchain(tmp_path, "dxc/1.8.2403/dxc"))
    runner = FakeRunner(returncode=1, stderr="error: undeclared identifier 'x'\n")

    result = _compile(tmp_path, compiler, ShaderCode("HLSL", text="x"), runner)

    assert not result.success
    assert result.failure_code == 1
    assert result.output("Output").value == "error: undeclared identifier 'x'"
    assert result.selected_output_index == len(result.outputs) - 1


def test_dxc_missing_binary(tmp_path):
    compiler = DxcCompiler(_toolchain(tmp_path, "dxc/1.8.2403/README"))

    with pytest.raises(ToolNotFoundError):
        _compile(tmp_path, compiler, ShaderCode("HLSL", text="x"), FakeRunner())


@pytest.mark.parametrize(
    "language, entry_point",
    [("HLSL", True), ("GLSL", False)],
)
def test_glslang_entry_point_only_for_hlsl(tmp_path, language, entry_point):
    compiler = GlslangCompiler(_toolchain(tmp_path, "glslang/14.0/glslangValidator"))
    runner = FakeRunner(lambda cmd: _write(arg_after(cmd, "-o"), SPIRV_BYTES))

    result = _compile(tmp_path, compiler, ShaderCode(language, text="void main() {}"), runner)

    cmd = runner.commands[0]
    assert ("-e" in cmd) is entry_point
    assert arg_after(cmd, "--target-env") == "vulkan1.0"
    assert arg_after(cmd, "-S") == "frag"
    assert result.success
    assert result.code.binary == SPIRV_BYTES


def test_glslang_opengl_target(tmp_path):
    compiler = GlslangCompiler(_toolchain(tmp_path, "glslang/14.0/glslangValidator"))
    runner = FakeRunner(lambda cmd: _write(arg_after(cmd, "-o"), SPIRV_BYTES))

    _compile(tmp_path, compiler, ShaderCode("GLSL", text="void main() {}"), runner, {"Target": "opengl"})

    cmd = runner.commands[0]
    assert "-G" in cmd
    assert "-V" not in cmd


@pytest.mark.parametrize(
    "output_language, submitted, expected",
    [
        ("GLSL", {"GlslVersion": "310 es"}, ["--version", "310", "--es"]),
        ("GLSL", {"VulkanSemantics": "true"}, ["--version", "450", "--no-es", "--vulkan-semantics"]),
        ("HLSL", {}, ["--hlsl", "--shader-model", "50"]),
        ("Metal", {"MslVersion": "30000"}, ["--msl", "--msl-version", "30000"]),
    ],
)
def test_spirv_cross_language_options(tmp_path, output_language, submitted, expected):
    compiler = SpirvCrossCompiler(_toolchain(tmp_path, "spirv-cross/2024.1/spirv-cross"))
    runner = FakeRunner(lambda cmd: _write(arg_after(cmd, "--output"), "// cross-compiled\n"))

    result = _compile(
        tmp_path,
        compiler,
        ShaderCode("SPIR-V", binary=SPIRV_BYTES),
        runner,
        dict(submitted, OutputLanguage=output_language),
    )

    cmd = runner.commands[0]
    assert cmd[1].endswith("shader.spv")
    assert cmd[4:] == expected
    assert result.success
    assert result.code.language == output_language
    assert result.code.text == "// cross-compiled\n"


def test_spirv_dis_flags(tmp_path):
    compiler = SpirvDisassembler(_toolchain(tmp_path, "spirv-tools/2024.1/bin/spirv-dis"))
    runner = FakeRunner(lambda cmd: _write(arg_after(cmd, "-o"), "OpCapability Shader\n"))

    result = _compile(
        tmp_path,
        compiler,
        ShaderCode("SPIR-V", binary=SPIRV_BYTES),
        runner,
        {"RawId": "true"},
    )

    cmd = runner.commands[0]
    assert "--no-color" in cmd
    assert "--raw-id" in cmd
    assert "--offsets" not in cmd
    assert result.success
    assert result.code.text == "OpCapability Shader\n"
    assert result.output("Assembly").language == "SPIR-V Assembly"


def test_spirv_dis_without_output_fails(tmp_path):
    compiler = SpirvDisassembler(_toolchain(tmp_path, "spirv-tools/2024.1/spirv-dis"))
    runner = FakeRunner(returncode=1, stderr="error: invalid magic number\n")

    result = _compile(tmp_path, compiler, ShaderCode("SPIR-V", binary=b"junk"), runner)

    assert not result.success
    assert "invalid magic number" in result.output("Output").value


def _metal_toolchain(tmp_path):
    return _toolchain(tmp_path, "metal/32023/bin/metal", "metal/32023/bin/air-lld")


def _fake_metal(cmd):
    target = arg_after(cmd, "-o")
    if "-S" in cmd:
        _write(target, "; ModuleID = 'shader.metal'\n")
    else:
        _write(target, b"AIR")


def test_metal_emits_assembly_and_air(tmp_path):
    compiler = MetalCompiler(_metal_toolchain(tmp_path))
    runner = FakeRunner(_fake_metal)

    result = _compile(tmp_path, compiler, ShaderCode("Metal", text="fragment float4 f() {}"), runner)

    assert len(runner.commands) == 2
    assert "-std=metal3.1" in runner.commands[0]
    assert result.success
    assert result.code.language == "Metal IR"
    assert result.code.binary == b"AIR"
    assert result.output("Assembly").value.startswith("; ModuleID")


def test_metal_missing_output_is_failure(tmp_path):
    compiler = MetalCompiler(_metal_toolchain(tmp_path))
    runner = FakeRunner(stderr="shader.metal:1:1: error: unknown type name\n")

    result = _compile(tmp_path, compiler, ShaderCode("Metal", text="oops"), runner)

    assert not result.success
    assert len(runner.commands) == 1
    assert "unknown type name" in result.output("Output").value


def test_metallib_needs_earlier_metal_step(tmp_path):
    compiler = MetalLibCompiler(_metal_toolchain(tmp_path))
    runner = FakeRunner()

    result = _compile(tmp_path, compiler, ShaderCode("Metal IR", binary=b"AIR"), runner)

    assert not result.success
    assert runner.commands == []


def test_metallib_uses_platform_from_metal_step(tmp_path):
    toolchain = _metal_toolchain(tmp_path)
    metal_arguments, _ = resolve_arguments(
        MetalCompiler(toolchain).meta(), {"MetalVersion": "ios-metal2.0"}, "Metal"
    )
    compiler = MetalLibCompiler(toolchain)
    runner = FakeRunner(lambda cmd: _write(arg_after(cmd, "-o"), b"MTLB"))

    result = _compile(
        tmp_path,
        compiler,
        ShaderCode("Metal IR", binary=b"AIR"),
        runner,
        previous=[metal_arguments],
    )

    cmd = runner.commands[0]
    assert cmd[0].endswith("air-lld")
    assert arg_after(cmd, "-ios_version_min") == "11.0.0"
    assert result.success
    assert result.code.language == "Metallib"
    assert result.code.binary == b"MTLB"
    assert result.output("Output").value == "[Compilation successful; download binary below]"


def test_metallib_linker_diagnostics_fail_step(tmp_path):
    toolchain = _metal_toolchain(tmp_path)
    metal_arguments, _ = resolve_arguments(MetalCompiler(toolchain).meta(), {}, "Metal")
    runner = FakeRunner(lambda cmd: _write(arg_after(cmd, "-o"), b"MTLB"), stderr="error: bad air\n")

    result = _compile(
        tmp_path,
        MetalLibCompiler(toolchain),
        ShaderCode("Metal IR", binary=b"AIR"),
        runner,
        previous=[metal_arguments],
    )

    assert not result.success
    assert "bad air" in result.output("Output").value


def test_metal_shaderconverter(tmp_path):
    toolchain = _toolchain(
        tmp_path,
        "metal-shaderconverter/2.0/metal-shaderconverter",
        "metal-shaderconverter/2.0/metal-objdump",
    )

    def tool(cmd):
        for part in cmd:
            if part.startswith("-o="):
                _write(part[len("-o="):], b"MTLB")

    runner = FakeRunner(tool, stdout="; disassembly\n")

    result = _compile(
        tmp_path,
        MetalShaderConverter(toolchain),
        ShaderCode("DXIL", binary=b"DXBC"),
        runner,
    )

    assert len(runner.commands) == 2
    assert runner.commands[1][1] == "--disassemble"
    assert result.success
    assert result.code.language == "Metal IR"
    assert result.output("Assembly").value == "; disassembly\n"
