from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import List, Optional

from .api import load_registry, resolve_config
from .core.diagnostics import Diagnostics, ShaderChainError
from .core.pipeline import execute_pipeline, validate_pipeline
from .core.request import load_request, parse_request
from .core.serialization import compilers_to_list, languages_to_list, pipeline_result_to_dict


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="shaderchain")
    sub = parser.add_subparsers(dest="command", required=True)

    compile_cmd = sub.add_parser("compile")
    compile_cmd.add_argument("-r", "--request", required=True)
    compile_cmd.add_argument("-c", "--config", required=False)

    validate = sub.add_parser("validate")
    validate.add_argument("-r", "--request", required=True)
    validate.add_argument("-c", "--config", required=False)

    compilers = sub.add_parser("compilers")
    compilers.add_argument("-c", "--config", required=False)
    compilers.add_argument("--language", required=False)

    sub.add_parser("languages")

    args = parser.parse_args(argv)

    if args.command == "languages":
        _print(languages_to_list())
        return

    try:
        config = resolve_config(Path(args.config) if args.config else None)
        registry = load_registry(config)
    except ShaderChainError as exc:
        _print([exc.diagnostic.to_dict()])
        raise SystemExit(1)

    if args.command == "compilers":
        _print(compilers_to_list(registry, args.language))
        return

    request, diagnostics = parse_request(load_request(Path(args.request)))
    if request is None:
        _print(diagnostics.to_list())
        raise SystemExit(1)

    if args.command == "validate":
        diagnostics.extend(validate_pipeline(request, registry))
        _print(diagnostics.to_list() if len(diagnostics) else {"status": "ok"})
        if diagnostics.has_errors():
            raise SystemExit(1)
        return

    try:
        result = execute_pipeline(request, registry, config)
    except ShaderChainError as exc:
        failure = Diagnostics()
        failure.add(exc.diagnostic)
        _print({"results": [], "diagnostics": failure.to_list()})
        raise SystemExit(2)
    _print(pipeline_result_to_dict(result))
    if not result.succeeded:
        raise SystemExit(1)


def _print(data) -> None:
    print(json.dumps(data, indent=2, sort_keys=True))


if __name__ == "__main__":
    main()
