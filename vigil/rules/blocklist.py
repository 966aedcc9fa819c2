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

"""G501-G505: imports of modules that only offer weak primitives."""

from __future__ import annotations

import ast
from functools import partial
from typing import Any, Mapping, Optional

from vigil.engine.rule import Rule, RunContext
from vigil.models.issue import Finding, Score

WEAK_PRIMITIVE = "weak cryptographic primitive"

MD5_MODULES = {
    "md5": WEAK_PRIMITIVE,
    "Crypto.Hash.MD5": WEAK_PRIMITIVE,
    "Cryptodome.Hash.MD5": WEAK_PRIMITIVE,
}

DES_MODULES = {
    "pyDes": WEAK_PRIMITIVE,
    "Crypto.Cipher.DES": WEAK_PRIMITIVE,
    "Crypto.Cipher.DES3": WEAK_PRIMITIVE,
    "Cryptodome.Cipher.DES": WEAK_PRIMITIVE,
    "Cryptodome.Cipher.DES3": WEAK_PRIMITIVE,
}

RC4_MODULES = {
    "Crypto.Cipher.ARC4": WEAK_PRIMITIVE,
    "Cryptodome.Cipher.ARC4": WEAK_PRIMITIVE,
}

CGI_MODULES = {
    "cgi": "CGI handlers are vulnerable to the Httpoxy attack (CVE-2016-1000110)",
    "cgitb": "CGI tracebacks leak source and local variables",
    "wsgiref.handlers.CGIHandler": "CGI handlers are vulnerable to the Httpoxy attack (CVE-2016-1000110)",
    "http.server.CGIHTTPRequestHandler": "CGI handlers are vulnerable to the Httpoxy attack (CVE-2016-1000110)",
}

SHA1_MODULES = {
    "sha": WEAK_PRIMITIVE,
    "Crypto.Hash.SHA": WEAK_PRIMITIVE,
    "Crypto.Hash.SHA1": WEAK_PRIMITIVE,
    "Cryptodome.Hash.SHA1": WEAK_PRIMITIVE,
}


def _blocked(name: str, blocklist: Mapping[str, str]) -> Optional[str]:
    """The blocklist entry covering ``name`` itself or one of its parents."""
    parts = name.split(".")
    for end in range(len(parts), 0, -1):
        candidate = ".".join(parts[:end])
        if candidate in blocklist:
            return candidate
    return None


class BlocklistedImport(Rule[None]):
    title = "Blocklisted import"
    severity = Score.MEDIUM
    confidence = Score.HIGH
    kinds = (ast.Import, ast.ImportFrom)

    def __init__(self, rule_id: str, settings: Any = None, blocklist: Optional[Mapping[str, str]] = None) -> None:
        super().__init__(rule_id, settings)
        self.blocklist = dict(blocklist or {})

    def _imported_names(self, node: ast.AST) -> list[str]:
        if isinstance(node, ast.Import):
            return [alias.name for alias in node.names]
        # Relative imports never name a third-party or stdlib module.
        if node.level or not node.module:
            return []
        return [node.module] + [f"{node.module}.{alias.name}" for alias in node.names if alias.name != "*"]

    def evaluate(self, node: ast.AST, ctx: RunContext) -> Optional[Finding]:
        for name in self._imported_names(node):
            entry = _blocked(name, self.blocklist)
            if entry:
                return self.finding(ctx, node, f"Blocklisted import {entry}: {self.blocklist[entry]}")
        return None


def blocklist_rule(blocklist: Mapping[str, str]):
    """Builder for a RuleDefinition that blocks the given modules."""
    return partial(BlocklistedImport, blocklist=blocklist)
