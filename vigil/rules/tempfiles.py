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

"""G303: files created at predictable paths in shared temp directories."""

from __future__ import annotations

import ast
from typing import Optional

from vigil.engine.calls import CallTable
from vigil.engine.rule import Rule, RunContext
from vigil.models.issue import Finding, Score
from vigil.rules.helpers import argument, string_value

SHARED_TMP = ("/tmp/", "/var/tmp/", "/dev/shm/")


def _path_prefix(node: Optional[ast.AST]) -> Optional[str]:
    """Leading constant text of a path expression."""
    text = string_value(node)
    if text is not None:
        return text
    if isinstance(node, ast.JoinedStr) and node.values:
        first = node.values[0]
        if isinstance(first, ast.Constant) and isinstance(first.value, str):
            return first.value
    if isinstance(node, ast.BinOp) and isinstance(node.op, (ast.Add, ast.Mod)):
        return _path_prefix(node.left)
    if isinstance(node, ast.Call) and isinstance(node.func, ast.Attribute) and node.func.attr == "format":
        return _path_prefix(node.func.value)
    return None


def in_shared_tmp(node: Optional[ast.AST]) -> bool:
    prefix = _path_prefix(node)
    return prefix is not None and prefix.startswith(SHARED_TMP)


class PredictableTempFile(Rule[None]):
    title = "Creating tempfile using a predictable path"
    severity = Score.MEDIUM
    confidence = Score.HIGH
    kinds = (ast.Call,)

    def __init__(self, rule_id: str, settings=None) -> None:
        super().__init__(rule_id, settings)
        self.mktemp = CallTable().add("tempfile", "mktemp")
        self.openers = CallTable().add_all("os", "open", "mkfifo").add("io", "open").add("codecs", "open")

    def evaluate(self, node: ast.AST, ctx: RunContext) -> Optional[Finding]:
        if self.mktemp.match(node, ctx.types, strict=True) is not None:
            return self.finding(ctx, node, "Use of insecure and deprecated function tempfile.mktemp")
        if self.openers.match(node, ctx.types, strict=True) is not None or _is_builtin_open(node, ctx):
            if in_shared_tmp(argument(node, 0, "file") or keyword_path(node)):
                return self.finding(ctx, node)
        return None


def keyword_path(call: ast.Call) -> Optional[ast.AST]:
    for kw in call.keywords:
        if kw.arg in ("path", "filename"):
            return kw.value
    return None


def _is_builtin_open(node: ast.Call, ctx: RunContext) -> bool:
    func = node.func
    return isinstance(func, ast.Name) and func.id == "open" and ctx.types.symbol_of(func) is None
