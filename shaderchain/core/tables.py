from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from .compiler_api import CompilerOutput

JSON_TABLE = "JsonTable"


@dataclass
class JsonTable:
    header: List[str]
    rows: List[List[str]] = field(default_factory=list)

    def add_row(self, *cells: Any) -> None:
        self.rows.append([str(cell) for cell in cells])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Header": {"Data": list(self.header)},
            "Rows": [{"Data": list(row)} for row in self.rows],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


def table_output(display_name: str, header: Sequence[str], rows: Sequence[Sequence[Any]]) -> CompilerOutput:
    table = JsonTable(header=list(header))
    for row in rows:
        table.add_row(*row)
    return CompilerOutput(display_name, JSON_TABLE, table.to_json())
