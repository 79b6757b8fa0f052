from __future__ import annotations

import json

import pytest

from shaderchain.core.config import ENV_BINARIES_DIR, load_config, normalize_config
from shaderchain.core.diagnostics import ShaderChainError
from shaderchain.core.request import load_request, parse_request, validate_request_schema


def _payload(**overrides):
    payload = {
        "sourceLanguage": "HLSL",
        "code": "float4 main() : SV_Target { return 1; }",
        "steps": [{"compiler": "dxc", "arguments": {"OutputLanguage": "SPIR-V"}}],
    }
    payload.update(overrides)
    return payload


def test_parse_request():
    request, diagnostics = parse_request(_payload())

    assert len(diagnostics) == 0
    assert request.source_language == "HLSL"
    assert request.steps[0].compiler == "dxc"
    assert dict(request.steps[0].arguments) == {"OutputLanguage": "SPIR-V"}


def test_step_accepts_compiler_name_alias_and_scalar_values():
    request, diagnostics = parse_request(
        _payload(
            steps=[
                {"compilerName": "dxc", "arguments": {"EnableHlsl2021": True, "OptimizationLevel": 2}},
                {"compiler": "spirv-dis"},
            ]
        )
    )

    assert not diagnostics.has_errors()
    assert request.steps[0].compiler == "dxc"
    assert request.steps[0].arguments["EnableHlsl2021"] == "true"
    assert request.steps[0].arguments["OptimizationLevel"] == "2"
    assert dict(request.steps[1].arguments) == {}


def test_request_round_trips_to_wire_shape():
    request, _ = parse_request(_payload())

    assert request.to_dict() == _payload()


@pytest.mark.parametrize(
    "payload",
    [
        {"code": "x", "steps": []},
        _payload(steps=[{"arguments": {}}]),
        _payload(steps=[{"compiler": "dxc", "flags": []}]),
        _payload(steps=[{"compiler": "dxc", "arguments": {"EntryPoint": ["a"]}}]),
    ],
)
def test_schema_rejects_malformed_requests(payload):
    request, diagnostics = parse_request(payload)

    assert request is None
    assert diagnostics.has_errors()
    assert {d.code for d in diagnostics.items} == {"E-REQUEST-SCHEMA"}


def test_schema_reports_location():
    diagnostics = validate_request_schema(_payload(steps=[{"compiler": ""}]))

    assert diagnostics.errors()[0].location == "steps/0/compiler"


def test_load_request_from_yaml(tmp_path):
    path = tmp_path / "request.yaml"
    path.write_text(
        "sourceLanguage: GLSL\ncode: |\n  void main() {}\nsteps:\n  - compiler: glslang\n",
        encoding="utf-8",
    )

    request, diagnostics = parse_request(load_request(path))

    assert not diagnostics.has_errors()
    assert request.code == "void main() {}\n"


def test_load_request_requires_object(tmp_path):
    path = tmp_path / "request.json"
    path.write_text(json.dumps([1, 2]), encoding="utf-8")

    with pytest.raises(ValueError):
        load_request(path)


def test_config_defaults(monkeypatch):
    monkeypatch.delenv(ENV_BINARIES_DIR, raising=False)

    config = normalize_config()

    assert config.binaries_dir is None
    assert config.process.timeout_s is None
    assert config.process.env_mode == "inherit"
    assert config.libs == []


def test_config_environment_and_relative_paths(tmp_path, monkeypatch):
    monkeypatch.setenv(ENV_BINARIES_DIR, "/opt/shader-tools")

    from_env = normalize_config({})
    relative = normalize_config({"binaries_dir": "tools", "temp_dir": "tmp"}, base_dir=tmp_path)

    assert str(from_env.binaries_dir) == "/opt/shader-tools"
    assert relative.binaries_dir == (tmp_path / "tools").resolve()
    assert relative.temp_dir == (tmp_path / "tmp").resolve()


def test_config_rejects_bad_values():
    with pytest.raises(ShaderChainError) as excinfo:
        normalize_config({"process": {"timeout_s": -1}})
    assert excinfo.value.diagnostic.code == "E-CONFIG"

    with pytest.raises(ShaderChainError):
        normalize_config({"unknown": True})


def test_config_files(tmp_path):
    toml_path = tmp_path / "shaderchain.toml"
    toml_path.write_text('libs = ["my_compilers"]\n\n[process]\ntimeout_s = 30\n', encoding="utf-8")
    yaml_path = tmp_path / "shaderchain.yaml"
    yaml_path.write_text("process:\n  env_mode: clean\n", encoding="utf-8")

    from_toml = normalize_config(load_config(toml_path))
    from_yaml = normalize_config(load_config(yaml_path))

    assert from_toml.libs == ["my_compilers"]
    assert from_toml.process.timeout_s == 30
    assert from_yaml.process.env_mode == "clean"
    assert from_yaml.process.timeout_s is None
