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

"""G301/G302/G306: permission modes wider than allowed.

Each rule carries a maximum mode (configurable as ``mode``, e.g. "0750")
and flags calls whose literal mode grants any bit outside it. Calls
without an explicit mode, or with one that is not a constant, are left
alone.
"""

from __future__ import annotations

import ast
from typing import Optional

from vigil.engine.calls import CallTable
from vigil.engine.rule import Rule, RunContext
from vigil.models.issue import Finding, Score
from vigil.rules.helpers import argument, int_value, parse_mode


def mode_exceeds(mode: int, maximum: int) -> bool:
    """True when ``mode`` sets a permission bit ``maximum`` does not."""
    return bool(mode & ~maximum & 0o7777)


class FilePermissionRule(Rule[None]):
    """Base for the mode rules; subclasses list (selector, name, position) targets."""

    default_mode = 0o600
    severity = Score.MEDIUM
    confidence = Score.HIGH
    kinds = (ast.Call,)
    # selector -> {name: positional index of the mode argument}
    targets: dict[str, dict[str, int]] = {}

    def __init__(self, rule_id: str, settings=None) -> None:
        super().__init__(rule_id, settings)
        self.max_mode = parse_mode(rule_id, settings, self.default_mode)
        self.calls = CallTable()
        for selector, names in self.targets.items():
            self.calls.add_all(selector, *names)

    def describe(self) -> str:
        return f"{self.title}: expect {self.max_mode:#o} or less"

    def evaluate(self, node: ast.AST, ctx: RunContext) -> Optional[Finding]:
        site = self.calls.match(node, ctx.types, strict=True)
        if site is None:
            return None
        position = self.targets[site.selector][site.name]
        mode = int_value(argument(node, position, "mode"), ctx.types)
        if mode is not None and mode_exceeds(mode, self.max_mode):
            return self.finding(ctx, node, f"{self.describe()}, got {mode:#o}")
        return None


class MkdirPermissions(FilePermissionRule):
    title = "Poor file permissions used when creating a directory"
    default_mode = 0o750
    targets = {
        "os": {"mkdir": 1, "makedirs": 1},
        "pathlib.Path": {"mkdir": 0},
    }


class ChmodPermissions(FilePermissionRule):
    title = "Poor file permissions used with chmod"
    default_mode = 0o600
    targets = {
        "os": {"chmod": 1, "fchmod": 1, "lchmod": 1},
        "pathlib.Path": {"chmod": 0, "lchmod": 0},
    }


class WriteFilePermissions(FilePermissionRule):
    title = "Poor file permissions used when writing to a new file"
    default_mode = 0o600
    targets = {
        "os": {"open": 2},
        "pathlib.Path": {"touch": 0},
    }
