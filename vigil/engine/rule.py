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

"""Rule plug-in contract.

A rule is a small stateful object that declares the AST node classes it
wants to see and returns at most one Finding per node. Rules never walk
the tree themselves; the dispatcher hands them nodes in a stable pre-order.

Each rule owns its scratch state. The engine resets it at the start of
every compilation unit (``enter_unit``) and never looks inside it, so a
rule may keep whatever typed bookkeeping it needs between the node that
produces a fact and the node that consumes it.
"""

from __future__ import annotations

import ast
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Generic, Iterable, Optional, TypeVar

from vigil.models.issue import Finding, Score, cwe_for_rule

if TYPE_CHECKING:
    from vigil.scanner.loader import CompilationUnit, PackageModel
    from vigil.scanner.type_model import TypeModel

logger = logging.getLogger(__name__)

S = TypeVar("S")


class RuleConfigError(ValueError):
    """A rule's settings blob is malformed."""

    def __init__(self, rule_id: str, message: str) -> None:
        super().__init__(f"{rule_id}: {message}")
        self.rule_id = rule_id


@dataclass(frozen=True)
class RuleDescriptor:
    """Immutable identity of a rule."""

    id: str
    title: str
    severity: Score
    confidence: Score
    kinds: frozenset[type[ast.AST]]


class RunContext:
    """What a rule can see while evaluating nodes of one unit."""

    def __init__(self, unit: CompilationUnit, package: PackageModel) -> None:
        self.unit = unit
        self.package = package

    @property
    def types(self) -> TypeModel:
        return self.package.types

    @property
    def file(self) -> str:
        return self.unit.relative_path

    def code_snippet(self, start: int, end: Optional[int] = None) -> str:
        """Source lines start-1 .. end+1, each prefixed with its number."""
        lines = self.unit.lines
        end = end or start
        first = max(1, start - 1)
        last = min(len(lines), end + 1)
        return "\n".join(f"{n}: {lines[n - 1]}" for n in range(first, last + 1))


class Rule(ABC, Generic[S]):
    """Base class for every rule.

    Subclasses set ``title``, ``severity``, ``confidence`` and ``kinds`` and
    implement ``evaluate``. Settings arrive as an opaque blob; a subclass
    that accepts settings validates them in ``__init__`` and raises
    RuleConfigError on anything it cannot use.
    """

    title: str = ""
    severity: Score = Score.MEDIUM
    confidence: Score = Score.HIGH
    kinds: tuple[type[ast.AST], ...] = ()

    def __init__(self, rule_id: str, settings: Any = None) -> None:
        self.rule_id = rule_id
        self.settings = settings
        self.scratch: S = self.new_scratch()

    def identity(self) -> RuleDescriptor:
        return RuleDescriptor(
            id=self.rule_id,
            title=self.title,
            severity=self.severity,
            confidence=self.confidence,
            kinds=self.interested_kinds(),
        )

    def interested_kinds(self) -> frozenset[type[ast.AST]]:
        return frozenset(self.kinds)

    def new_scratch(self) -> S:
        return None  # type: ignore[return-value]

    def enter_package(self, package: PackageModel) -> None:
        """Called when the lane moves into a new package."""

    def enter_unit(self, unit: CompilationUnit) -> None:
        self.scratch = self.new_scratch()

    @abstractmethod
    def evaluate(self, node: ast.AST, ctx: RunContext) -> Optional[Finding]:
        ...

    def finding(
        self,
        ctx: RunContext,
        node: ast.AST,
        message: Optional[str] = None,
        severity: Optional[Score] = None,
        confidence: Optional[Score] = None,
    ) -> Finding:
        line = getattr(node, "lineno", 1)
        end_line = getattr(node, "end_lineno", None) or line
        return Finding(
            rule_id=self.rule_id,
            message=message or self.title,
            severity=severity or self.severity,
            confidence=confidence or self.confidence,
            cwe=cwe_for_rule(self.rule_id),
            file=ctx.file,
            line=line,
            col=getattr(node, "col_offset", 0) + 1,
            end_line=end_line,
            code=ctx.code_snippet(line, end_line),
        )


@dataclass(frozen=True)
class RuleDefinition:
    """Registry entry: how to build one rule."""

    id: str
    description: str
    builder: Callable[[str, Any], Rule]

    def build(self, settings: Any = None) -> Rule:
        return self.builder(self.id, settings)


class RuleSet:
    """The rule instances of one lane, indexed by the node classes they want."""

    def __init__(self, rules: Iterable[Rule]) -> None:
        self.rules: list[Rule] = list(rules)
        self._by_type: dict[type, list[Rule]] = {}

    def __iter__(self):
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def rules_for(self, node: ast.AST) -> list[Rule]:
        node_type = type(node)
        cached = self._by_type.get(node_type)
        if cached is None:
            cached = [
                rule for rule in self.rules
                if any(issubclass(node_type, kind) for kind in rule.interested_kinds())
            ]
            self._by_type[node_type] = cached
        return cached


def validate_definitions(
    definitions: Iterable[RuleDefinition],
    settings: dict[str, Any],
    strict: bool = False,
) -> list[RuleDefinition]:
    """Build every rule once so bad settings surface before any dispatch.

    A rule whose settings are rejected is dropped with a warning; with
    ``strict`` the RuleConfigError propagates instead.
    """
    valid: list[RuleDefinition] = []
    for definition in definitions:
        try:
            definition.build(settings.get(definition.id))
        except RuleConfigError as e:
            if strict:
                raise
            logger.warning("Skipping rule %s: %s", definition.id, e)
            continue
        valid.append(definition)
    return valid
