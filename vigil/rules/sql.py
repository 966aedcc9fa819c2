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

"""G201/G202: SQL queries built from strings.

G201 covers formatting (f-strings, ``%`` and ``str.format``), G202 covers
``+`` concatenation. Both look at what reaches a query sink such as
``cursor.execute``: either the expression itself, or a local name that
was bound earlier in the same file to a formatted or concatenated query.
"""

from __future__ import annotations

import ast
import re
from typing import Optional

from vigil.engine.cache import regex_search
from vigil.engine.calls import CallTable
from vigil.engine.rule import Rule, RunContext
from vigil.models.issue import Finding, Score
from vigil.rules.helpers import argument, is_literal, string_value

SQL_PATTERN = re.compile(r"(?i)\b(SELECT|DELETE|INSERT|UPDATE|INTO|FROM|WHERE)(\s)")

FORMAT = "format"
CONCAT = "concat"
LITERAL = "literal"

_CURSOR_METHODS = ("execute", "executemany", "executescript")

SINKS = {
    "sqlite3.Cursor": _CURSOR_METHODS,
    "sqlite3.Connection": _CURSOR_METHODS,
    "psycopg2.extensions.cursor": _CURSOR_METHODS,
    "psycopg2.extensions.connection": ("execute",),
    "pymysql.cursors.Cursor": _CURSOR_METHODS,
    "mysql.connector.cursor.MySQLCursor": _CURSOR_METHODS,
    "sqlalchemy": ("text",),
    "pandas": ("read_sql", "read_sql_query"),
}


def looks_like_sql(text: str) -> bool:
    return regex_search(SQL_PATTERN, text)


def query_style(node: Optional[ast.AST], known: dict[str, str]) -> Optional[str]:
    """How a query expression was built: FORMAT, CONCAT, LITERAL or None."""
    if node is None:
        return None
    if isinstance(node, ast.Name):
        return known.get(node.id)

    text = string_value(node)
    if text is not None:
        return LITERAL if looks_like_sql(text) else None

    if isinstance(node, ast.JoinedStr):
        literal = "".join(
            v.value for v in node.values if isinstance(v, ast.Constant) and isinstance(v.value, str)
        )
        dynamic = any(isinstance(v, ast.FormattedValue) for v in node.values)
        if dynamic and looks_like_sql(literal):
            return FORMAT
        return None

    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.Mod):
        if query_style(node.left, known) == LITERAL and not is_literal(node.right):
            return FORMAT
        return None

    if isinstance(node, ast.Call) and isinstance(node.func, ast.Attribute) and node.func.attr == "format":
        if query_style(node.func.value, known) == LITERAL and (node.args or node.keywords):
            return FORMAT
        return None

    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.Add):
        left = query_style(node.left, known)
        right = query_style(node.right, known)
        if FORMAT in (left, right):
            return FORMAT
        if CONCAT in (left, right):
            return CONCAT
        if LITERAL in (left, right):
            # Only literal pieces means a constant query.
            if is_literal(node.left) and is_literal(node.right):
                return LITERAL
            return CONCAT
    return None


class SqlQueryRule(Rule[dict[str, str]]):
    """Shared tracking for the two SQL rules; ``style`` picks which one reports."""

    style = FORMAT
    severity = Score.MEDIUM
    confidence = Score.HIGH
    kinds = (ast.Assign, ast.AnnAssign, ast.AugAssign, ast.Call)

    def __init__(self, rule_id: str, settings=None) -> None:
        super().__init__(rule_id, settings)
        self.sinks = CallTable()
        for selector, names in SINKS.items():
            self.sinks.add_all(selector, *names)

    def new_scratch(self) -> dict[str, str]:
        return {}

    def _remember(self, target: ast.AST, style: Optional[str]) -> None:
        if not isinstance(target, ast.Name):
            return
        if style:
            self.scratch[target.id] = style
        else:
            self.scratch.pop(target.id, None)

    def evaluate(self, node: ast.AST, ctx: RunContext) -> Optional[Finding]:
        if isinstance(node, ast.Assign):
            style = query_style(node.value, self.scratch)
            for target in node.targets:
                self._remember(target, style)
            return None
        if isinstance(node, ast.AnnAssign):
            if node.value is not None:
                self._remember(node.target, query_style(node.value, self.scratch))
            return None
        if isinstance(node, ast.AugAssign):
            if isinstance(node.op, ast.Add) and isinstance(node.target, ast.Name):
                current = self.scratch.get(node.target.id)
                combined = ast.BinOp(left=node.target, op=ast.Add(), right=node.value)
                if current:
                    self._remember(node.target, query_style(combined, self.scratch))
            return None

        if self.sinks.match(node, ctx.types) is None:
            return None
        query = argument(node, 0, "sql") or argument(node, 0, "operation") or argument(node, 0, "text")
        if query_style(query, self.scratch) == self.style:
            return self.finding(ctx, node)
        return None


class SqlStringFormatting(SqlQueryRule):
    title = "SQL string formatting"
    style = FORMAT


class SqlStringConcat(SqlQueryRule):
    title = "SQL string concatenation"
    style = CONCAT
