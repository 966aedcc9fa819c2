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

"""G402: disabled certificate checks and legacy TLS settings."""

from __future__ import annotations

import ast
from typing import Optional

from vigil.engine.calls import CallTable, canonical_type
from vigil.engine.rule import Rule, RunContext
from vigil.models.issue import Finding, Score
from vigil.rules.helpers import argument, is_false, keyword

HTTP_VERBS = ("get", "post", "put", "patch", "delete", "head", "options", "request", "stream")

VERIFYING_CLIENTS = {
    "requests": HTTP_VERBS,
    "requests.Session": HTTP_VERBS,
    "httpx": HTTP_VERBS + ("Client", "AsyncClient"),
    "httpx.Client": HTTP_VERBS,
    "httpx.AsyncClient": HTTP_VERBS,
    "urllib3": ("PoolManager", "HTTPSConnectionPool"),
}

LEGACY_PROTOCOLS = {
    "ssl.PROTOCOL_SSLv2", "ssl.PROTOCOL_SSLv3", "ssl.PROTOCOL_TLSv1", "ssl.PROTOCOL_TLSv1_1",
    "ssl.TLSVersion.SSLv3", "ssl.TLSVersion.TLSv1", "ssl.TLSVersion.TLSv1_1",
    "OpenSSL.SSL.SSLv2_METHOD", "OpenSSL.SSL.SSLv3_METHOD", "OpenSSL.SSL.TLSv1_METHOD",
    "OpenSSL.SSL.TLSv1_1_METHOD", "OpenSSL.SSL.SSLv23_METHOD",
}

CONTEXT_TYPE = "ssl.SSLContext"


class InsecureTLS(Rule[None]):
    title = "Insecure TLS configuration"
    severity = Score.HIGH
    confidence = Score.HIGH
    kinds = (ast.Call, ast.Assign)

    def __init__(self, rule_id: str, settings=None) -> None:
        super().__init__(rule_id, settings)
        self.clients = CallTable()
        for selector, names in VERIFYING_CLIENTS.items():
            self.clients.add_all(selector, *names)
        self.unverified = CallTable().add("ssl", "_create_unverified_context")
        self.protocol_calls = (
            CallTable()
            .add("ssl", "SSLContext")
            .add("ssl", "wrap_socket")
            .add("OpenSSL.SSL", "Context")
        )

    def _legacy_protocol(self, node: Optional[ast.AST], ctx: RunContext) -> Optional[str]:
        if node is None:
            return None
        qualified = ctx.types.resolve_qualifier(node)
        return qualified if qualified in LEGACY_PROTOCOLS else None

    def _check_call(self, node: ast.Call, ctx: RunContext) -> Optional[Finding]:
        if self.unverified.match(node, ctx.types, strict=True) is not None:
            return self.finding(ctx, node, "Unverified TLS context created with ssl._create_unverified_context")

        site = self.protocol_calls.match(node, ctx.types, strict=True)
        if site is not None:
            if site.name == "wrap_socket":
                protocol = keyword(node, "ssl_version")
                if _names(keyword(node, "cert_reqs"), "CERT_NONE"):
                    return self.finding(ctx, node, "TLS certificate verification disabled (cert_reqs=CERT_NONE)")
            else:
                protocol = argument(node, 0, "protocol") or argument(node, 0, "method")
            legacy = self._legacy_protocol(protocol, ctx)
            if legacy:
                return self.finding(ctx, node, f"Legacy TLS protocol version: {legacy}")
            return None

        site = self.clients.match(node, ctx.types)
        if site is not None:
            if is_false(keyword(node, "verify")):
                return self.finding(ctx, node, f"TLS certificate verification disabled in {site.qualified_name}(verify=False)")
            if _names(keyword(node, "cert_reqs"), "CERT_NONE"):
                return self.finding(ctx, node, f"TLS certificate verification disabled in {site.qualified_name}(cert_reqs=CERT_NONE)")
        return None

    def _receiver_may_be_context(self, node: ast.AST, ctx: RunContext) -> bool:
        type_name = ctx.types.type_of(node)
        return type_name is None or canonical_type(type_name)[0] == CONTEXT_TYPE

    def _check_assign(self, node: ast.Assign, ctx: RunContext) -> Optional[Finding]:
        for target in node.targets:
            if not isinstance(target, ast.Attribute) or not self._receiver_may_be_context(target.value, ctx):
                continue
            if target.attr == "check_hostname" and is_false(node.value):
                return self.finding(ctx, node, "TLS hostname verification disabled (check_hostname = False)")
            if target.attr == "verify_mode" and _names(node.value, "CERT_NONE"):
                return self.finding(ctx, node, "TLS certificate verification disabled (verify_mode = CERT_NONE)")
            if target.attr in ("minimum_version", "maximum_version"):
                legacy = self._legacy_protocol(node.value, ctx)
                if legacy:
                    return self.finding(ctx, node, f"Legacy TLS protocol version: {legacy}")
        return None

    def evaluate(self, node: ast.AST, ctx: RunContext) -> Optional[Finding]:
        if isinstance(node, ast.Call):
            return self._check_call(node, ctx)
        if isinstance(node, ast.Assign):
            return self._check_assign(node, ctx)
        return None


def _names(node: Optional[ast.AST], name: str) -> bool:
    """``name`` or ``anything.name``."""
    if isinstance(node, ast.Name):
        return node.id == name
    if isinstance(node, ast.Attribute):
        return node.attr == name
    return False
