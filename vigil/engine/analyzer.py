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

"""Run coordinator: schedules package lanes over a worker pool.

Every package is a lane. A lane is one task that builds its own fresh set
of rule instances and feeds them the package's units one after another,
so a rule instance is only ever touched by the thread running its lane.
Rules may therefore keep plain, unsynchronized state keyed by "current
function" or "current package" without caring how many workers exist.

Lanes run in package order when concurrency is 1. Otherwise they are
submitted to a ThreadPoolExecutor and collected as they complete; the
aggregator canonicalizes the order at the end, so the reported set of
issues never depends on the worker count.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Optional, Sequence

from vigil.config import ScanConfig
from vigil.engine.aggregator import Aggregator
from vigil.engine.dispatcher import Dispatcher
from vigil.engine.rule import RuleDefinition, RuleSet, validate_definitions
from vigil.engine.suppression import SuppressionEngine
from vigil.models.issue import FileError, ScanResult
from vigil.scanner.loader import CompilationUnit, PackageModel, load_packages

logger = logging.getLogger(__name__)


class Analyzer:
    """Turns loaded packages into a ScanResult under one ScanConfig."""

    def __init__(self, config: Optional[ScanConfig] = None, definitions: Optional[Sequence[RuleDefinition]] = None) -> None:
        self.config = config or ScanConfig()
        if definitions is None:
            from vigil.rules import RULE_DEFINITIONS

            definitions = RULE_DEFINITIONS
        self.definitions = validate_definitions(
            self._select(definitions), self.config.rules, strict=self.config.strict_config
        )
        # Excluded rules only run in audit mode, where their findings are
        # kept and marked as externally suppressed.
        self.suppressor = SuppressionEngine(
            tag=self.config.nosec_tag,
            ignore_nosec=self.config.ignore_nosec,
            excluded_rules=self.config.exclude_rules if self.config.track_suppressions else (),
        )
        logger.debug("Loaded %d rule(s): %s", len(self.definitions), ", ".join(d.id for d in self.definitions))

    def _select(self, definitions: Sequence[RuleDefinition]) -> list[RuleDefinition]:
        include = self.config.include_rules
        exclude = self.config.exclude_rules
        selected = []
        for definition in definitions:
            if include and definition.id not in include:
                continue
            if definition.id in exclude and not self.config.track_suppressions:
                continue
            selected.append(definition)
        return selected

    def build_rule_set(self) -> RuleSet:
        return RuleSet(d.build(self.config.rules.get(d.id)) for d in self.definitions)

    def should_scan(self, unit: CompilationUnit) -> bool:
        if unit.test and not self.config.scan_tests:
            logger.debug("Skipping test file %s", unit.relative_path)
            return False
        if unit.generated and self.config.exclude_generated:
            logger.debug("Skipping generated file %s", unit.relative_path)
            return False
        return True

    # ── Lanes ──

    def _run_lane(self, package: PackageModel, aggregator: Aggregator) -> None:
        dispatcher = Dispatcher(
            self.build_rule_set(),
            self.suppressor,
            track_suppressions=self.config.track_suppressions,
            min_severity=self.config.min_severity,
            min_confidence=self.config.min_confidence,
        )
        for unit in package.units:
            if not self.should_scan(unit):
                continue
            aggregator.add_outcome(dispatcher.run(unit, package))

    def _lane_failed(self, package: PackageModel, error: BaseException, aggregator: Aggregator) -> None:
        logger.error("Analysis of package %s failed: %s", package.name, error)
        for unit in package.units:
            aggregator.add_errors(
                unit.relative_path,
                [FileError(line=0, column=0, message=f"analysis failed: {type(error).__name__}: {error}")],
            )

    def process(
        self,
        packages: Sequence[PackageModel],
        errors: Optional[dict[str, list[FileError]]] = None,
    ) -> ScanResult:
        """Analyze every package and merge the results."""
        aggregator = Aggregator()
        for file, file_errors in (errors or {}).items():
            aggregator.add_errors(file, file_errors)

        workers = self.config.concurrency
        if workers <= 1 or len(packages) <= 1:
            for package in packages:
                try:
                    self._run_lane(package, aggregator)
                except Exception as e:
                    self._lane_failed(package, e, aggregator)
            return aggregator.result()

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futs = {pool.submit(self._run_lane, package, aggregator): package for package in packages}
            for fut in as_completed(futs):
                package = futs[fut]
                exc = fut.exception()
                if exc is not None:
                    self._lane_failed(package, exc, aggregator)
                else:
                    logger.debug("Finished package %s", package.name)
        return aggregator.result()

    def scan(self, target: Path) -> ScanResult:
        """Load ``target`` from disk and analyze it."""
        loaded = load_packages(Path(target), exclude_dirs=self.config.exclude_dirs)
        return self.process(loaded.packages, loaded.errors)
