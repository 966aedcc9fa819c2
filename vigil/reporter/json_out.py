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

"""JSON report for CI consumers.

The report is canonical so two runs over the same tree diff cleanly: keys
are sorted, nesting uses two spaces, lines end in LF and the document ends
with a newline. Issues and errors arrive already ordered by the aggregator.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from vigil import __version__
from vigil.models.issue import ScanResult

logger = logging.getLogger(__name__)

VERSION_KEY = "Vigil version"


def to_canonical_json(data: dict[str, Any] | Any) -> str:
    """Serialize a mapping or a pydantic model as canonical JSON text."""
    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")
    # Control characters inside strings are escaped, so the only raw
    # newlines are the ones indent= inserts.
    return json.dumps(data, sort_keys=True, indent=2, ensure_ascii=False) + "\n"


def result_to_dict(result: ScanResult) -> dict[str, Any]:
    """Report layout: Issues, Stats, Errors and the producing version."""
    errors = {file: [e.model_dump(mode="json") for e in items] for file, items in result.errors.items()}
    return {
        "Issues": [issue.model_dump(mode="json") for issue in result.issues],
        "Stats": result.metrics.model_dump(mode="json"),
        "Errors": errors,
        VERSION_KEY: __version__,
    }


def render_report(result: ScanResult) -> str:
    return to_canonical_json(result_to_dict(result))


def write_report(result: ScanResult, output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_report(result), encoding="utf-8", newline="\n")
    logger.info("Wrote JSON report to %s", output_path)
