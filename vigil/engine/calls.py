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

"""Call resolution: does this call site invoke one of a rule's symbols?

A rule declares the symbols it cares about in a CallTable, keyed by a
selector (a module path such as ``hashlib`` or a receiver type such as
``zipfile.ZipFile``) and the function or method names under it. At each
``ast.Call`` the rule asks the table to match the call against the
package's type model:

1. a qualifier rooted at an import is expanded to its module path and
   matched as (module, name);
2. otherwise, if the receiver's type is known it is normalized and
   matched as (type, name);
3. otherwise, in non-strict mode only, the name is matched against any
   selector, because nothing better is known about the receiver.

A receiver whose type IS known never falls through to step 3, so an
unrelated class's ``open`` cannot trigger a rule aimed at ``gzip.open``.
"""

from __future__ import annotations

import ast
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Optional

if TYPE_CHECKING:
    from vigil.scanner.type_model import TypeModel

logger = logging.getLogger(__name__)

ANY_NAME = "*"

_OPTIONAL_PREFIXES = ("Optional[", "typing.Optional[")
_UNION_PREFIXES = ("Union[", "typing.Union[")


# ── Type normalization ──


def _split_top_level(text: str, sep: str) -> list[str]:
    """Split on ``sep`` outside of brackets."""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in text:
        if ch in "[(":
            depth += 1
        elif ch in "])":
            depth -= 1
        if ch == sep and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    parts.append("".join(current).strip())
    return parts


def canonical_type(type_name: str) -> tuple[str, bool]:
    """Normalize a type spelling to its canonical, non-nullable form.

    Returns (canonical, nullable). ``*T``, ``Optional[T]``, ``T | None``,
    ``Union[T, None]`` and quoted forward references all canonicalize to
    ``T``; the second element records whether a pointer or nullable
    wrapper was stripped.
    """
    text = type_name.strip()
    nullable = False
    while True:
        if text.startswith("*"):
            text = text[1:].strip()
            nullable = True
            continue
        if len(text) >= 2 and text[0] == text[-1] and text[0] in "'\"":
            text = text[1:-1].strip()
            continue
        prefix = next((p for p in _OPTIONAL_PREFIXES if text.startswith(p) and text.endswith("]")), None)
        if prefix:
            text = text[len(prefix):-1].strip()
            nullable = True
            continue
        members: Optional[list[str]] = None
        prefix = next((p for p in _UNION_PREFIXES if text.startswith(p) and text.endswith("]")), None)
        if prefix:
            members = _split_top_level(text[len(prefix):-1], ",")
        elif "|" in text:
            members = _split_top_level(text, "|")
        if members and len(members) > 1:
            non_null = [m for m in members if m not in ("None", "NoneType")]
            if len(non_null) == 1:
                text = non_null[0]
                nullable = True
                continue
        return text, nullable


# ── Call table ──


class MatchKind(str, Enum):
    """How a call site was matched against the table."""

    MODULE = "module"
    TYPE = "type"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class CallSite:
    """A call that matched a CallTable entry."""

    node: ast.Call
    selector: str
    name: str
    via: MatchKind
    nullable: bool = False

    @property
    def qualified_name(self) -> str:
        return f"{self.selector}.{self.name}"


class CallTable:
    """Map of selector -> names a rule wants to intercept.

    Built while a rule is constructed, frozen on first query. Lookups after
    that are safe from any number of threads.
    """

    def __init__(self) -> None:
        self._entries: dict[str, set[str]] = {}
        self._frozen = False

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RuntimeError("CallTable cannot be modified after first use")

    def add(self, selector: str, identifier: str) -> CallTable:
        self._check_mutable()
        canonical, _ = canonical_type(selector)
        self._entries.setdefault(canonical, set()).add(identifier)
        return self

    def add_all(self, selector: str, *identifiers: str) -> CallTable:
        """Register several names under one selector; none means any name."""
        self._check_mutable()
        if not identifiers:
            return self.add(selector, ANY_NAME)
        for identifier in identifiers:
            self.add(selector, identifier)
        return self

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def selectors(self) -> list[str]:
        return sorted(self._entries)

    def contains(self, selector: str, identifier: str) -> bool:
        self._frozen = True
        canonical, _ = canonical_type(selector)
        names = self._entries.get(canonical)
        if not names:
            return False
        return identifier in names or ANY_NAME in names

    def __len__(self) -> int:
        return sum(len(v) for v in self._entries.values())

    def _selectors_with(self, identifier: str) -> Iterable[str]:
        for selector in sorted(self._entries):
            names = self._entries[selector]
            if identifier in names or ANY_NAME in names:
                yield selector

    def match(self, node: ast.AST, types: Optional[TypeModel], strict: bool = False) -> Optional[CallSite]:
        """Match a call node against the table; see the module docstring."""
        self._frozen = True
        if not isinstance(node, ast.Call):
            return None
        func = node.func

        # from module import name [as alias]; name(...)
        if isinstance(func, ast.Name):
            symbol = types.symbol_of(func) if types is not None else None
            if symbol is None or symbol.kind.value != "import":
                return None
            selector, _, name = symbol.qualname.rpartition(".")
            if selector and self.contains(selector, name):
                return CallSite(node, selector, name, MatchKind.MODULE)
            return None

        if not isinstance(func, ast.Attribute):
            return None
        name = func.attr
        qualifier = func.value

        if types is not None:
            module_path = types.resolve_qualifier(qualifier)
            if module_path is not None:
                if self.contains(module_path, name):
                    return CallSite(node, canonical_type(module_path)[0], name, MatchKind.MODULE)
                return None

            receiver_type = types.type_of(qualifier)
            if receiver_type:
                canonical, nullable = canonical_type(receiver_type)
                if self.contains(canonical, name):
                    return CallSite(node, canonical, name, MatchKind.TYPE, nullable)
                return None

        if strict:
            return None
        return self._match_unresolved(node, qualifier, name)

    def _match_unresolved(self, node: ast.Call, qualifier: ast.AST, name: str) -> Optional[CallSite]:
        candidates = list(self._selectors_with(name))
        if not candidates:
            return None
        raw = _raw_text(qualifier)
        if raw:
            # Prefer a selector the raw qualifier spells out, e.g. "md5" for md5.new().
            for selector in candidates:
                if selector == raw or selector.endswith("." + raw):
                    return CallSite(node, selector, name, MatchKind.UNRESOLVED)
        logger.debug("Unresolved qualifier %r matched %s by name", raw, name)
        return CallSite(node, candidates[0], name, MatchKind.UNRESOLVED)


def _raw_text(node: ast.AST) -> Optional[str]:
    parts = []
    current = node
    while isinstance(current, ast.Attribute):
        parts.append(current.attr)
        current = current.value
    if isinstance(current, ast.Name):
        parts.append(current.id)
        return ".".join(reversed(parts))
    return None
