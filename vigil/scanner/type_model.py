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

"""Lightweight symbol and type inference for a package's modules.

The model answers two questions rules and the call resolver ask:
- which symbol does this name refer to (an import, a local variable, a
  parameter, a function or a class)?
- what type does this name most likely hold?

Types are dotted strings spelled the way they are written after import
aliases are expanded, e.g. ``Optional[zipfile.ZipFile]``. Sources of type
facts, in order of trust:
- annotations on parameters and annotated assignments
- constructor calls (``x = zipfile.ZipFile(p)``), including ``with ... as``
- known factory functions and methods (``tarfile.open`` -> ``tarfile.TarFile``)
- copies between names (``y = x``)

Function bodies are visited after their enclosing scope has been fully
bound, so module globals defined below a function are still visible in it.
Facts are flow-insensitive beyond "last binding seen before this use".
"""

from __future__ import annotations

import ast
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from vigil.engine.calls import canonical_type

logger = logging.getLogger(__name__)


class SymbolKind(str, Enum):
    """What kind of declaration a name is bound to."""

    IMPORT = "import"
    VARIABLE = "variable"
    PARAMETER = "parameter"
    FUNCTION = "function"
    CLASS = "class"


@dataclass(frozen=True)
class Symbol:
    """The declaring object of a name.

    For imports ``qualname`` is the fully qualified module or object path
    the local name stands for; for everything else it is the local name
    prefixed by the defining module.
    """

    name: str
    kind: SymbolKind
    qualname: str
    type: Optional[str] = None


# ── Return types of common factories ──
# Keys are fully qualified callables (functions, or "Type.method").

RETURN_TYPES: dict[str, str] = {
    "bz2.open": "bz2.BZ2File",
    "gzip.open": "gzip.GzipFile",
    "lzma.open": "lzma.LZMAFile",
    "tarfile.open": "tarfile.TarFile",
    "tarfile.TarFile.open": "tarfile.TarFile",
    "tarfile.TarFile.extractfile": "tarfile.ExFileObject",
    "zipfile.ZipFile.open": "zipfile.ZipExtFile",
    "socket.socket": "socket.socket",
    "socket.create_connection": "socket.socket",
    "ssl.create_default_context": "ssl.SSLContext",
    "ssl._create_unverified_context": "ssl.SSLContext",
    "sqlite3.connect": "sqlite3.Connection",
    "sqlite3.Connection.cursor": "sqlite3.Cursor",
    "psycopg2.connect": "psycopg2.extensions.connection",
    "psycopg2.extensions.connection.cursor": "psycopg2.extensions.cursor",
    "pymysql.connect": "pymysql.connections.Connection",
    "pymysql.connections.Connection.cursor": "pymysql.cursors.Cursor",
    "mysql.connector.connect": "mysql.connector.connection.MySQLConnection",
    "mysql.connector.connection.MySQLConnection.cursor": "mysql.connector.cursor.MySQLCursor",
    "hashlib.new": "hashlib._Hash",
    "hashlib.md5": "hashlib._Hash",
    "hashlib.sha1": "hashlib._Hash",
    "hashlib.sha256": "hashlib._Hash",
    "random.Random": "random.Random",
    "requests.Session": "requests.Session",
    "requests.session": "requests.Session",
    "httpx.Client": "httpx.Client",
    "pathlib.Path": "pathlib.Path",
}

_LITERAL_TYPES: dict[type, str] = {
    ast.List: "list",
    ast.Dict: "dict",
    ast.Set: "set",
    ast.Tuple: "tuple",
    ast.JoinedStr: "str",
}


def module_name_for(relative_path: str) -> str:
    """Dotted module name for a path relative to the scan root."""
    parts = relative_path.replace("\\", "/").split("/")
    if parts[-1].endswith(".py"):
        parts[-1] = parts[-1][:-3]
    if parts[-1] == "__init__":
        parts = parts[:-1]
    return ".".join(p for p in parts if p)


def dotted_name(node: ast.AST) -> Optional[str]:
    """``a.b.c`` for a Name/Attribute chain, None for anything else."""
    parts = []
    current = node
    while isinstance(current, ast.Attribute):
        parts.append(current.attr)
        current = current.value
    if isinstance(current, ast.Name):
        parts.append(current.id)
        return ".".join(reversed(parts))
    return None


def root_name(node: ast.AST) -> Optional[ast.Name]:
    current = node
    while isinstance(current, ast.Attribute):
        current = current.value
    return current if isinstance(current, ast.Name) else None


class TypeModel:
    """Name-level symbol and type facts for every module of one package.

    Facts are keyed by the ``ast.Name`` node itself, so one model can serve
    all units of a package without per-file lookups. Read-only once built.
    """

    def __init__(self) -> None:
        self._symbols: dict[ast.AST, Symbol] = {}
        self._types: dict[ast.AST, str] = {}
        self.imports: dict[str, dict[str, str]] = {}

    # ── Queries ──

    def symbol_of(self, node: ast.AST) -> Optional[Symbol]:
        return self._symbols.get(node)

    def type_of(self, node: ast.AST) -> Optional[str]:
        """Inferred type of a name, or of a call to a known factory."""
        if isinstance(node, ast.Name):
            return self._types.get(node)
        if isinstance(node, ast.Call):
            return self._types.get(node)
        return None

    def resolve_qualifier(self, node: ast.AST) -> Optional[str]:
        """Module path for a dotted chain rooted at an imported name.

        ``h.sha1`` with ``import hashlib as h`` gives ``hashlib.sha1``;
        anything not rooted at an import gives None.
        """
        root = root_name(node)
        if root is None:
            return None
        symbol = self._symbols.get(root)
        if symbol is None or symbol.kind != SymbolKind.IMPORT:
            return None
        dotted = dotted_name(node)
        if dotted is None:
            return None
        rest = dotted[len(root.id):]
        return symbol.qualname + rest

    def is_declared(self, node: ast.AST) -> bool:
        """True when the root of a chain is bound to any known declaration."""
        root = root_name(node)
        return root is not None and root in self._symbols

    # ── Construction ──

    def record(self, node: ast.AST, symbol: Symbol) -> None:
        self._symbols[node] = symbol
        if symbol.type:
            self._types[node] = symbol.type

    def record_type(self, node: ast.AST, type_name: str) -> None:
        self._types[node] = type_name


class _Scope:
    __slots__ = ("kind", "names")

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self.names: dict[str, Symbol] = {}


class TypeInferrer(ast.NodeVisitor):
    """Populates a TypeModel for one module."""

    def __init__(self, model: TypeModel, module_name: str, is_package: bool = False) -> None:
        self.model = model
        self.module_name = module_name
        self.is_package = is_package
        self.aliases: dict[str, str] = {}
        self._scopes: list[_Scope] = [_Scope("module")]
        self._deferred: list[tuple[ast.AST, list[_Scope]]] = []

    def run(self, tree: ast.Module) -> dict[str, str]:
        """Infer facts for ``tree``; returns the module-level import aliases."""
        self.visit(tree)
        while self._deferred:
            node, scopes = self._deferred.pop(0)
            saved = self._scopes
            self._scopes = scopes
            self._visit_function_body(node)
            self._scopes = saved
        return self.aliases

    # ── Scope helpers ──

    def _lookup(self, name: str) -> Optional[Symbol]:
        innermost = len(self._scopes) - 1
        for idx in range(innermost, -1, -1):
            scope = self._scopes[idx]
            # Class bodies are not visible from the methods nested in them.
            if scope.kind == "class" and idx != innermost:
                continue
            symbol = scope.names.get(name)
            if symbol is not None:
                return symbol
        return None

    def _bind(self, name: str, kind: SymbolKind, qualname: str | None = None, type_name: str | None = None) -> Symbol:
        if qualname is None:
            qualname = f"{self.module_name}.{name}" if self.module_name else name
        symbol = Symbol(name=name, kind=kind, qualname=qualname, type=type_name)
        self._scopes[-1].names[name] = symbol
        return symbol

    def _bind_target(self, target: ast.AST, type_name: Optional[str]) -> None:
        if isinstance(target, ast.Name):
            symbol = self._bind(target.id, SymbolKind.VARIABLE, type_name=type_name)
            self.model.record(target, symbol)
        elif isinstance(target, (ast.Tuple, ast.List)):
            for elt in target.elts:
                self._bind_target(elt, None)
        elif isinstance(target, ast.Starred):
            self._bind_target(target.value, "list")
        else:
            self.visit(target)

    # ── Type expressions ──

    def qualify(self, node: ast.AST) -> Optional[str]:
        """Fully qualified dotted name for a reference, expanding imports."""
        dotted = dotted_name(node)
        if dotted is None:
            return None
        head, _, rest = dotted.partition(".")
        symbol = self._lookup(head)
        if symbol is None:
            return dotted
        if symbol.kind in (SymbolKind.IMPORT, SymbolKind.CLASS):
            return symbol.qualname + ("." + rest if rest else "")
        return dotted

    def annotation_text(self, node: Optional[ast.AST]) -> Optional[str]:
        if node is None:
            return None
        if isinstance(node, ast.Constant):
            if node.value is None:
                return "None"
            if isinstance(node.value, str):
                try:
                    parsed = ast.parse(node.value, mode="eval")
                except SyntaxError:
                    return None
                return self.annotation_text(parsed.body)
            return None
        if isinstance(node, (ast.Name, ast.Attribute)):
            return self.qualify(node)
        if isinstance(node, ast.Subscript):
            base = self.annotation_text(node.value)
            inner = self.annotation_text(node.slice)
            if base is None or inner is None:
                return base
            return f"{base}[{inner}]"
        if isinstance(node, ast.Tuple):
            parts = [self.annotation_text(elt) or "Any" for elt in node.elts]
            return ", ".join(parts)
        if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
            left = self.annotation_text(node.left)
            right = self.annotation_text(node.right)
            if left and right:
                return f"{left} | {right}"
            return left or right
        return None

    def infer(self, node: Optional[ast.AST]) -> Optional[str]:
        """Best-effort type of an expression, or None."""
        if node is None:
            return None
        if isinstance(node, ast.Constant):
            if node.value is None:
                return None
            return type(node.value).__name__
        literal = _LITERAL_TYPES.get(type(node))
        if literal:
            return literal
        if isinstance(node, ast.Name):
            symbol = self._lookup(node.id)
            return symbol.type if symbol else None
        if isinstance(node, ast.Await):
            return self.infer(node.value)
        if isinstance(node, ast.Call):
            return self._infer_call(node)
        return None

    def _infer_call(self, node: ast.Call) -> Optional[str]:
        func = node.func
        if isinstance(func, ast.Attribute):
            receiver_type = self.infer(func.value)
            if receiver_type:
                canonical, _ = canonical_type(receiver_type)
                method = f"{canonical}.{func.attr}"
                if method in RETURN_TYPES:
                    return RETURN_TYPES[method]
        qualified = self.qualify(func)
        if qualified is None:
            return None
        if qualified in RETURN_TYPES:
            return RETURN_TYPES[qualified]
        root = root_name(func)
        symbol = self._lookup(root.id) if root else None
        if symbol is None or symbol.kind not in (SymbolKind.IMPORT, SymbolKind.CLASS):
            return None
        # Constructor call by naming convention.
        if qualified.rsplit(".", 1)[-1][:1].isupper():
            return qualified
        return None

    # ── Imports ──

    def _resolve_relative(self, module: Optional[str], level: int) -> str:
        if level == 0:
            return module or ""
        package = self.module_name if self.is_package else self.module_name.rpartition(".")[0]
        parts = package.split(".") if package else []
        if level > 1:
            parts = parts[: len(parts) - (level - 1)]
        base = ".".join(parts)
        if module:
            return f"{base}.{module}" if base else module
        return base

    def visit_Import(self, node: ast.Import) -> None:
        for alias in node.names:
            if alias.asname:
                # import xml.etree.ElementTree as ET -> ET => xml.etree.ElementTree
                local, target = alias.asname, alias.name
            else:
                # import urllib.request -> local symbol is "urllib"
                local = alias.name.split(".")[0]
                target = local
            self._bind(local, SymbolKind.IMPORT, qualname=target)
            if len(self._scopes) == 1:
                self.aliases[local] = target

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        module = self._resolve_relative(node.module, node.level)
        for alias in node.names:
            if alias.name == "*":
                continue
            local = alias.asname or alias.name
            target = f"{module}.{alias.name}" if module else alias.name
            self._bind(local, SymbolKind.IMPORT, qualname=target)
            if len(self._scopes) == 1:
                self.aliases[local] = target

    # ── Definitions ──

    def _visit_function(self, node: ast.FunctionDef | ast.AsyncFunctionDef | ast.Lambda) -> None:
        if not isinstance(node, ast.Lambda):
            for decorator in node.decorator_list:
                self.visit(decorator)
            if node.returns is not None:
                self.visit(node.returns)
            self._bind(node.name, SymbolKind.FUNCTION)
        for default in node.args.defaults + [d for d in node.args.kw_defaults if d is not None]:
            self.visit(default)
        self._deferred.append((node, self._scopes + [_Scope("function")]))

    def _visit_function_body(self, node: ast.FunctionDef | ast.AsyncFunctionDef | ast.Lambda) -> None:
        args = node.args
        for arg in args.posonlyargs + args.args + args.kwonlyargs:
            annotation = None if isinstance(node, ast.Lambda) else self.annotation_text(arg.annotation)
            self._bind(arg.arg, SymbolKind.PARAMETER, qualname=arg.arg, type_name=annotation)
        if args.vararg:
            self._bind(args.vararg.arg, SymbolKind.PARAMETER, qualname=args.vararg.arg, type_name="tuple")
        if args.kwarg:
            self._bind(args.kwarg.arg, SymbolKind.PARAMETER, qualname=args.kwarg.arg, type_name="dict")
        if isinstance(node, ast.Lambda):
            self.visit(node.body)
        else:
            for stmt in node.body:
                self.visit(stmt)

    visit_FunctionDef = _visit_function
    visit_AsyncFunctionDef = _visit_function
    visit_Lambda = _visit_function

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        for expr in node.decorator_list + node.bases + [k.value for k in node.keywords]:
            self.visit(expr)
        self._scopes.append(_Scope("class"))
        for stmt in node.body:
            self.visit(stmt)
        self._scopes.pop()
        self._bind(node.name, SymbolKind.CLASS)

    # ── Bindings ──

    def visit_Assign(self, node: ast.Assign) -> None:
        self.visit(node.value)
        type_name = self.infer(node.value)
        for target in node.targets:
            self._bind_target(target, type_name)

    def visit_AnnAssign(self, node: ast.AnnAssign) -> None:
        if node.value is not None:
            self.visit(node.value)
        self.visit(node.annotation)
        type_name = self.annotation_text(node.annotation) or self.infer(node.value)
        if isinstance(node.target, ast.Name):
            if node.value is not None or len(self._scopes) > 1:
                self._bind_target(node.target, type_name)
        else:
            self.visit(node.target)

    def visit_AugAssign(self, node: ast.AugAssign) -> None:
        self.visit(node.value)
        if isinstance(node.target, ast.Name):
            symbol = self._lookup(node.target.id)
            if symbol is not None:
                self.model.record(node.target, symbol)
        else:
            self.visit(node.target)

    def visit_NamedExpr(self, node: ast.NamedExpr) -> None:
        self.visit(node.value)
        self._bind_target(node.target, self.infer(node.value))

    def _visit_with(self, node: ast.With | ast.AsyncWith) -> None:
        for item in node.items:
            self.visit(item.context_expr)
            if item.optional_vars is not None:
                self._bind_target(item.optional_vars, self.infer(item.context_expr))
        for stmt in node.body:
            self.visit(stmt)

    visit_With = _visit_with
    visit_AsyncWith = _visit_with

    def _visit_for(self, node: ast.For | ast.AsyncFor) -> None:
        self.visit(node.iter)
        self._bind_target(node.target, None)
        for stmt in node.body + node.orelse:
            self.visit(stmt)

    visit_For = _visit_for
    visit_AsyncFor = _visit_for

    def visit_comprehension(self, node: ast.comprehension) -> None:
        self.visit(node.iter)
        self._bind_target(node.target, None)
        for cond in node.ifs:
            self.visit(cond)

    def visit_ExceptHandler(self, node: ast.ExceptHandler) -> None:
        if node.type is not None:
            self.visit(node.type)
        if node.name:
            self._bind(node.name, SymbolKind.VARIABLE, type_name=self.qualify(node.type) if node.type else None)
        for stmt in node.body:
            self.visit(stmt)

    # ── Uses ──

    def visit_Name(self, node: ast.Name) -> None:
        if isinstance(node.ctx, ast.Store):
            self._bind_target(node, None)
            return
        symbol = self._lookup(node.id)
        if symbol is not None:
            self.model.record(node, symbol)

    def visit_Call(self, node: ast.Call) -> None:
        self.generic_visit(node)
        type_name = self._infer_call(node)
        if type_name:
            self.model.record_type(node, type_name)


def build_type_model(units: list) -> TypeModel:
    """Build one TypeModel covering every parsed unit of a package."""
    model = TypeModel()
    for unit in units:
        inferrer = TypeInferrer(model, unit.module_name, is_package=unit.path.name == "__init__.py")
        model.imports[unit.relative_path] = inferrer.run(unit.tree)
        logger.debug("Inferred types for %s (%d imports)", unit.relative_path, len(model.imports[unit.relative_path]))
    return model
