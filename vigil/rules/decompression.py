# Vigil: Static Security Analyzer for Python
# Copyright (C) 2026 Vigil Project Contributors
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""G110: unbounded reads from decompression streams (decompression bombs).

The rule remembers which local names were bound to a decompressing reader
(``gzip.open``, ``ZipFile.open``, ``TarFile.extractfile``...) and flags a
later bulk copy or size-less ``read()`` of that name in the same file.
Bindings live in the rule's scratch state, so they are forgotten at the
next compilation unit.
"""

from __future__ import annotations

import ast
from typing import Optional

from vigil.engine.calls import CallTable
from vigil.engine.rule import Rule, RunContext
from vigil.models.issue import Finding, Score
from vigil.rules.helpers import argument, int_value

READERS = {
    "gzip": ("open", "GzipFile"),
    "bz2": ("open", "BZ2File"),
    "lzma": ("open", "LZMAFile"),
    "zipfile.ZipFile": ("open",),
    "tarfile.TarFile": ("extractfile",),
}


class DecompressionBomb(Rule[dict[str, str]]):
    title = "Potential DoS vulnerability via decompression bomb"
    severity = Score.MEDIUM
    confidence = Score.MEDIUM
    kinds = (ast.Assign, ast.With, ast.AsyncWith, ast.Call)

    def __init__(self, rule_id: str, settings=None) -> None:
        super().__init__(rule_id, settings)
        self.readers = CallTable()
        for selector, names in READERS.items():
            self.readers.add_all(selector, *names)
        self.copiers = CallTable().add("shutil", "copyfileobj")

    def new_scratch(self) -> dict[str, str]:
        return {}

    def _reader(self, node: Optional[ast.AST], ctx: RunContext) -> Optional[str]:
        if isinstance(node, ast.Name):
            return self.scratch.get(node.id)
        site = self.readers.match(node, ctx.types, strict=True)
        return site.qualified_name if site else None

    def _bind(self, target: ast.AST, value: Optional[ast.AST], ctx: RunContext) -> None:
        if not isinstance(target, ast.Name):
            return
        reader = self._reader(value, ctx) if isinstance(value, ast.Call) else None
        if reader:
            self.scratch[target.id] = reader
        else:
            # Rebinding to anything else ends the tracking.
            self.scratch.pop(target.id, None)

    def evaluate(self, node: ast.AST, ctx: RunContext) -> Optional[Finding]:
        if isinstance(node, ast.Assign):
            for target in node.targets:
                self._bind(target, node.value, ctx)
            return None
        if isinstance(node, (ast.With, ast.AsyncWith)):
            for item in node.items:
                if item.optional_vars is not None:
                    self._bind(item.optional_vars, item.context_expr, ctx)
            return None

        if self.copiers.match(node, ctx.types) is not None:
            reader = self._reader(argument(node, 0, "fsrc"), ctx)
            if reader:
                return self.finding(ctx, node, f"Unbounded copy from decompression reader {reader}")
            return None

        func = node.func
        if isinstance(func, ast.Attribute) and func.attr == "read":
            reader = self._reader(func.value, ctx)
            if reader and _unbounded(node, ctx):
                return self.finding(ctx, node, f"Unbounded read from decompression reader {reader}")
        return None


def _unbounded(call: ast.Call, ctx: RunContext) -> bool:
    size = argument(call, 0, "size")
    if size is None:
        return True
    if isinstance(size, ast.Constant) and size.value is None:
        return True
    if isinstance(size, ast.UnaryOp) and isinstance(size.op, ast.USub):
        return int_value(size.operand) is not None
    return False
