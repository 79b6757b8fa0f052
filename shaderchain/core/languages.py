from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Optional


@dataclass(frozen=True)
class Language:
    name: str
    extension: Optional[str] = None

    def file_extension(self) -> str:
        return self.extension or ".txt"

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"name": self.name, "extension": self.extension}


HLSL = "HLSL"
GLSL = "GLSL"
METAL = "Metal"
SLANG = "Slang"
DXIL = "DXIL"
DXBC = "DXBC"
SPIRV = "SPIR-V"
SPIRV_ASSEMBLY = "SPIR-V Assembly"
METAL_IR = "Metal IR"
METALLIB = "Metallib"
LLVM_IR = "LLVM IR"

LANGUAGES = MappingProxyType(
    {
        lang.name: lang
        for lang in (
            Language(HLSL, ".hlsl"),
            Language(GLSL, ".glsl"),
            Language(METAL, ".metal"),
            Language(SLANG, ".slang"),
            Language(DXIL, ".dxil"),
            Language(DXBC, ".dxbc"),
            Language(SPIRV, ".spv"),
            Language(SPIRV_ASSEMBLY, ".spvasm"),
            Language(METAL_IR, ".air"),
            Language(METALLIB, ".metallib"),
            Language(LLVM_IR, ".ll"),
        )
    }
)


def get_language(name: str) -> Language:
    """Catalog entry for ``name``; names outside the catalog get no extension hint."""
    return LANGUAGES.get(name) or Language(name)
