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

"""G204: subprocess launched with a non-constant command."""

from __future__ import annotations

import ast
from typing import Optional

from vigil.engine.calls import CallTable
from vigil.engine.rule import Rule, RunContext
from vigil.models.issue import Finding, Score
from vigil.rules.helpers import argument, is_literal, is_true, keyword
from vigil.scanner.type_model import SymbolKind

SHELL_ALWAYS = {
    "os": ("system", "popen"),
    "subprocess": ("getoutput", "getstatusoutput"),
    "asyncio": ("create_subprocess_shell",),
}

SHELL_OPTIONAL = {
    "subprocess": ("run", "call", "check_call", "check_output", "Popen"),
}

EXEC_STYLE = {
    "os": (
        "execl", "execle", "execlp", "execlpe", "execv", "execve", "execvp", "execvpe",
        "spawnl", "spawnle", "spawnlp", "spawnlpe", "spawnv", "spawnve", "spawnvp", "spawnvpe",
        "posix_spawn", "posix_spawnp",
    ),
    "asyncio": ("create_subprocess_exec",),
}


class SubprocessLaunch(Rule[None]):
    title = "Subprocess launched with variable"
    severity = Score.MEDIUM
    confidence = Score.HIGH
    kinds = (ast.Call,)

    def __init__(self, rule_id: str, settings=None) -> None:
        super().__init__(rule_id, settings)
        self.shell = CallTable()
        for selector, names in SHELL_ALWAYS.items():
            self.shell.add_all(selector, *names)
        self.optional_shell = CallTable()
        for selector, names in SHELL_OPTIONAL.items():
            self.optional_shell.add_all(selector, *names)
        self.exec_style = CallTable()
        for selector, names in EXEC_STYLE.items():
            self.exec_style.add_all(selector, *names)

    def _describe(self, node: ast.AST, ctx: RunContext) -> str:
        if isinstance(node, ast.Call):
            return "Subprocess launched with function call as argument or command arguments"
        if isinstance(node, ast.Name):
            symbol = ctx.types.symbol_of(node)
            if symbol is not None and symbol.kind == SymbolKind.PARAMETER:
                return "Subprocess launched with a potential tainted input or command arguments"
        return self.title

    def _dynamic_part(self, command: Optional[ast.AST]) -> Optional[ast.AST]:
        """First non-constant piece of a command, or None when fully constant."""
        if command is None or is_literal(command):
            return None
        if isinstance(command, (ast.List, ast.Tuple)):
            for elt in command.elts:
                part = self._dynamic_part(elt.value if isinstance(elt, ast.Starred) else elt)
                if part is not None:
                    return part
            return None
        return command

    def evaluate(self, node: ast.AST, ctx: RunContext) -> Optional[Finding]:
        if self.shell.match(node, ctx.types, strict=True) is not None:
            dynamic = self._dynamic_part(argument(node, 0, "cmd") or keyword(node, "command"))
            if dynamic is not None:
                return self.finding(ctx, node, self._describe(dynamic, ctx))
            return None

        if self.optional_shell.match(node, ctx.types, strict=True) is not None:
            dynamic = self._dynamic_part(argument(node, 0, "args"))
            if dynamic is None:
                return None
            message = self._describe(dynamic, ctx)
            if is_true(keyword(node, "shell")):
                return self.finding(ctx, node, f"{message} (shell=True)", severity=Score.HIGH)
            return self.finding(ctx, node, message)

        site = self.exec_style.match(node, ctx.types, strict=True)
        if site is not None:
            # spawn* take the P_WAIT/P_NOWAIT mode first.
            args = node.args[1:] if site.name.startswith("spawn") else node.args
            for arg in args:
                dynamic = self._dynamic_part(arg.value if isinstance(arg, ast.Starred) else arg)
                if dynamic is not None and not _is_environment(dynamic):
                    return self.finding(ctx, node, self._describe(dynamic, ctx))
        return None


def _is_environment(node: ast.AST) -> bool:
    """``os.environ`` passed through to the execve/spawn family."""
    return isinstance(node, ast.Attribute) and node.attr == "environ"
