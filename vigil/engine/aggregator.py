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

"""Thread-safe sink for issues, metrics and per-file errors."""

from __future__ import annotations

import threading
from typing import Iterable

from vigil.engine.dispatcher import UnitOutcome
from vigil.models.issue import FileError, Issue, RunMetrics, ScanResult


class Aggregator:
    """Collects results from every worker through one lock.

    Content does not depend on arrival order: ``result()`` sorts issues by
    file, line, column and rule, and each file's errors by position.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._issues: list[Issue] = []
        self._metrics = RunMetrics()
        self._errors: dict[str, list[FileError]] = {}

    def add_outcome(self, outcome: UnitOutcome) -> None:
        with self._lock:
            self._issues.extend(outcome.issues)
            self._metrics.merge(outcome.metrics)
            if outcome.errors:
                self._errors.setdefault(outcome.file, []).extend(outcome.errors)

    def add_errors(self, file: str, errors: Iterable[FileError]) -> None:
        with self._lock:
            self._errors.setdefault(file, []).extend(errors)

    def result(self) -> ScanResult:
        with self._lock:
            issues = sorted(self._issues, key=lambda i: i.sort_key())
            errors = {
                file: sorted(errs, key=lambda e: (e.line, e.column, e.rule_id or ""))
                for file, errs in sorted(self._errors.items())
            }
            metrics = self._metrics.model_copy()
        return ScanResult(issues=issues, metrics=metrics, errors=errors)
