"""shaderchain package."""

from .api import compile, compile_to_dict, list_compilers, load_registry, validate
from .core.version import __version__

__all__ = ["compile", "compile_to_dict", "list_compilers", "load_registry", "validate", "__version__"]
