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

"""Single-pass AST dispatcher.

Walks a compilation unit once in pre-order and offers every node to each
rule interested in its class. Findings go through the suppression engine
straight away; a rule that raises is recorded as a per-file error and the
walk carries on for every other rule and node.
"""

from __future__ import annotations

import ast
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from vigil.engine.rule import RuleSet, RunContext
from vigil.engine.suppression import DirectiveIndex, SuppressionEngine
from vigil.models.issue import FileError, Finding, Issue, RunMetrics, Score

if TYPE_CHECKING:
    from vigil.scanner.loader import CompilationUnit, PackageModel

logger = logging.getLogger(__name__)


@dataclass
class UnitOutcome:
    """What one unit contributed to the run."""

    file: str
    issues: list[Issue] = field(default_factory=list)
    metrics: RunMetrics = field(default_factory=RunMetrics)
    errors: list[FileError] = field(default_factory=list)


def preorder(tree: ast.AST):
    """Yield nodes in stable pre-order without recursion."""
    stack = [tree]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(list(ast.iter_child_nodes(node))))


class Dispatcher:
    """Runs one lane's rule set over units, one unit at a time."""

    def __init__(
        self,
        rules: RuleSet,
        suppressor: SuppressionEngine,
        track_suppressions: bool = False,
        min_severity: Score = Score.LOW,
        min_confidence: Score = Score.LOW,
    ) -> None:
        self.rules = rules
        self.suppressor = suppressor
        self.track_suppressions = track_suppressions
        self.min_severity = min_severity
        self.min_confidence = min_confidence
        self._package: PackageModel | None = None

    def enter_package(self, package: PackageModel) -> None:
        if package is self._package:
            return
        self._package = package
        for rule in self.rules:
            rule.enter_package(package)

    def run(self, unit: CompilationUnit, package: PackageModel) -> UnitOutcome:
        self.enter_package(package)
        ctx = RunContext(unit, package)
        index = self.suppressor.index(unit)
        outcome = UnitOutcome(file=unit.relative_path)
        outcome.metrics.files = 1
        outcome.metrics.lines = len(unit.lines)

        for rule in self.rules:
            rule.enter_unit(unit)

        for node in preorder(unit.tree):
            for rule in self.rules.rules_for(node):
                try:
                    finding = rule.evaluate(node, ctx)
                except Exception as e:
                    line = getattr(node, "lineno", 0)
                    col = getattr(node, "col_offset", -1) + 1
                    logger.warning(
                        "Rule %s failed on %s:%d: %s", rule.rule_id, unit.relative_path, line, e
                    )
                    outcome.errors.append(
                        FileError(
                            line=line,
                            column=col,
                            message=f"rule {rule.rule_id} failed: {type(e).__name__}: {e}",
                            rule_id=rule.rule_id,
                        )
                    )
                    continue
                if finding is not None:
                    self._emit(finding, index, outcome)

        logger.debug(
            "Dispatched %s: %d issue(s), %d error(s)",
            unit.relative_path, len(outcome.issues), len(outcome.errors),
        )
        return outcome

    def _emit(self, finding: Finding, index: DirectiveIndex, outcome: UnitOutcome) -> None:
        # Below-threshold findings are dropped before they count anywhere.
        if finding.severity.rank < self.min_severity.rank or finding.confidence.rank < self.min_confidence.rank:
            return
        issue = self.suppressor.apply(Issue.from_finding(finding), index)
        if issue.suppressed_in_source:
            outcome.metrics.nosec += 1
        if not issue.suppressed:
            outcome.metrics.found += 1
        if issue.suppressed and not self.track_suppressions:
            return
        outcome.issues.append(issue)
