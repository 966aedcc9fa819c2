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

"""G102: servers bound to every network interface."""

from __future__ import annotations

import ast
from typing import Optional

from vigil.engine.calls import CallTable
from vigil.engine.rule import Rule, RunContext
from vigil.models.issue import Finding, Score
from vigil.rules.helpers import argument, keyword, string_value

ALL_INTERFACES = {"", "0.0.0.0", "::", "[::]", "0:0:0:0:0:0:0:0"}


def _host_of(address: Optional[ast.AST]) -> Optional[str]:
    """Host part of an address argument: a (host, port) tuple or "host:port"."""
    if isinstance(address, (ast.Tuple, ast.List)) and address.elts:
        return string_value(address.elts[0])
    text = string_value(address)
    if text is None:
        return None
    if text.startswith(":"):
        return ""
    host, sep, port = text.rpartition(":")
    return host if sep and port.isdigit() else text


class BindAllInterfaces(Rule[None]):
    title = "Binds to all network interfaces"
    severity = Score.MEDIUM
    confidence = Score.HIGH
    kinds = (ast.Call,)

    def __init__(self, rule_id: str, settings=None) -> None:
        super().__init__(rule_id, settings)
        # Address is the first positional argument.
        self.address_calls = (
            CallTable()
            .add("socket.socket", "bind")
            .add("socket", "create_server")
            .add_all("http.server", "HTTPServer", "ThreadingHTTPServer")
            .add_all("socketserver", "TCPServer", "ThreadingTCPServer", "ForkingTCPServer", "UDPServer")
            .add_all("wsgiref.simple_server", "make_server")
        )
        # Host is a keyword argument.
        self.host_calls = CallTable().add_all("uvicorn", "run").add_all("aiohttp.web", "run_app")

    def evaluate(self, node: ast.AST, ctx: RunContext) -> Optional[Finding]:
        site = self.address_calls.match(node, ctx.types)
        if site is not None:
            if site.name == "make_server":
                host = string_value(argument(node, 0, "host"))
            else:
                host = _host_of(argument(node, 0, "address") or keyword(node, "server_address"))
            if host in ALL_INTERFACES:
                return self.finding(ctx, node)
            return None
        if self.host_calls.match(node, ctx.types) is not None:
            host = string_value(keyword(node, "host"))
            if host in ALL_INTERFACES:
                return self.finding(ctx, node)
        return None
