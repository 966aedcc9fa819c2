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

"""Small AST helpers shared by rule bodies."""

from __future__ import annotations

import ast
import stat
from typing import Any, Optional

from vigil.engine.rule import RuleConfigError
from vigil.scanner.type_model import TypeModel


def try_extract_literal(node: Optional[ast.AST]) -> tuple[str, bool]:
    """Pessimistic string extraction from an AST node.

    Returns (value, resolved). Only string constants and ``+`` between
    string constants resolve; everything else is ("*", False).
    """
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return (node.value, True)

    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.Add):
        left_val, left_ok = try_extract_literal(node.left)
        right_val, right_ok = try_extract_literal(node.right)
        if left_ok and right_ok:
            return (left_val + right_val, True)

    return ("*", False)


def string_value(node: Optional[ast.AST]) -> Optional[str]:
    value, resolved = try_extract_literal(node)
    return value if resolved else None


def is_literal(node: Optional[ast.AST]) -> bool:
    """Constant, or a list/tuple made only of constants."""
    if isinstance(node, ast.Constant):
        return True
    if isinstance(node, (ast.List, ast.Tuple)):
        return all(is_literal(elt) for elt in node.elts)
    return string_value(node) is not None


def is_true(node: Optional[ast.AST]) -> bool:
    return isinstance(node, ast.Constant) and node.value is True


def is_false(node: Optional[ast.AST]) -> bool:
    return isinstance(node, ast.Constant) and node.value is False


def keyword(call: ast.Call, name: str) -> Optional[ast.expr]:
    for kw in call.keywords:
        if kw.arg == name:
            return kw.value
    return None


def argument(call: ast.Call, position: int, name: Optional[str] = None) -> Optional[ast.expr]:
    """Positional argument ``position`` or keyword ``name``, whichever is given."""
    if position < len(call.args) and not any(isinstance(a, ast.Starred) for a in call.args[: position + 1]):
        return call.args[position]
    if name is not None:
        return keyword(call, name)
    return None


# ── Integer modes ──

_STAT_CONSTANTS = {f"stat.{name}": getattr(stat, name) for name in dir(stat) if name.startswith("S_I")}


def int_value(node: Optional[ast.AST], types: Optional[TypeModel] = None) -> Optional[int]:
    """Integer constant, ``stat.S_I*`` names, and ``|``/``+`` of those."""
    if isinstance(node, ast.Constant) and isinstance(node.value, int) and not isinstance(node.value, bool):
        return node.value
    if isinstance(node, ast.BinOp) and isinstance(node.op, (ast.BitOr, ast.Add)):
        left = int_value(node.left, types)
        right = int_value(node.right, types)
        if left is None or right is None:
            return None
        return left | right if isinstance(node.op, ast.BitOr) else left + right
    if isinstance(node, (ast.Attribute, ast.Name)) and types is not None:
        qualified = types.resolve_qualifier(node)
        if qualified in _STAT_CONSTANTS:
            return _STAT_CONSTANTS[qualified]
    return None


def parse_mode(rule_id: str, value: Any, default: int) -> int:
    """Interpret a permission setting such as 0o600, "0600" or "0o600"."""
    if value is None:
        return default
    if isinstance(value, dict):
        value = value.get("mode", default)
    if isinstance(value, bool):
        raise RuleConfigError(rule_id, f"invalid file mode {value!r}")
    if isinstance(value, int):
        mode = value
    elif isinstance(value, str):
        text = value.strip().lower()
        if text.startswith("0o"):
            text = text[2:]
        try:
            mode = int(text, 8)
        except ValueError:
            raise RuleConfigError(rule_id, f"invalid file mode {value!r}") from None
    else:
        raise RuleConfigError(rule_id, f"invalid file mode {value!r}")
    if not 0 <= mode <= 0o7777:
        raise RuleConfigError(rule_id, f"file mode out of range: {oct(mode)}")
    return mode


def settings_dict(rule_id: str, value: Any) -> dict[str, Any]:
    """Settings that must be a mapping (or absent)."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise RuleConfigError(rule_id, f"settings must be a mapping, got {type(value).__name__}")
    return value
