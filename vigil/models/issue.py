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

"""Pydantic models for findings, issues, suppressions and run metrics."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Score(str, Enum):
    """Severity or confidence level of a finding."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @property
    def rank(self) -> int:
        return _SCORE_RANK[self]


_SCORE_RANK = {Score.LOW: 0, Score.MEDIUM: 1, Score.HIGH: 2}


class SuppressionKind(str, Enum):
    """Where a suppression came from."""

    IN_SOURCE = "inSource"
    EXTERNAL = "external"


GLOBAL_SUPPRESSION_JUSTIFICATION = "Globally suppressed."


# ── CWE references per rule ──

CWE_URL = "https://cwe.mitre.org/data/definitions/{}.html"

RULE_CWE: dict[str, tuple[str, str]] = {
    "G101": ("798", "Use of Hard-coded Credentials"),
    "G102": ("200", "Exposure of Sensitive Information to an Unauthorized Actor"),
    "G110": ("409", "Improper Handling of Highly Compressed Data (Data Amplification)"),
    "G201": ("89", "Improper Neutralization of Special Elements used in an SQL Command"),
    "G202": ("89", "Improper Neutralization of Special Elements used in an SQL Command"),
    "G204": ("78", "Improper Neutralization of Special Elements used in an OS Command"),
    "G301": ("276", "Incorrect Default Permissions"),
    "G302": ("276", "Incorrect Default Permissions"),
    "G303": ("377", "Insecure Temporary File"),
    "G306": ("276", "Incorrect Default Permissions"),
    "G401": ("326", "Inadequate Encryption Strength"),
    "G402": ("295", "Improper Certificate Validation"),
    "G403": ("310", "Cryptographic Issues"),
    "G404": ("338", "Use of Cryptographically Weak Pseudo-Random Number Generator (PRNG)"),
    "G501": ("327", "Use of a Broken or Risky Cryptographic Algorithm"),
    "G502": ("327", "Use of a Broken or Risky Cryptographic Algorithm"),
    "G503": ("327", "Use of a Broken or Risky Cryptographic Algorithm"),
    "G504": ("327", "Use of a Broken or Risky Cryptographic Algorithm"),
    "G505": ("327", "Use of a Broken or Risky Cryptographic Algorithm"),
}


class Cwe(BaseModel):
    """A Common Weakness Enumeration reference."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    url: str = ""


def cwe_for_rule(rule_id: str) -> Optional[Cwe]:
    """Return the CWE reference for a rule ID, or None if it has none."""
    entry = RULE_CWE.get(rule_id)
    if entry is None:
        return None
    cwe_id, name = entry
    return Cwe(id=cwe_id, name=name, url=CWE_URL.format(cwe_id))


class Suppression(BaseModel):
    """One reason an issue was silenced.

    kind           : inSource (a directive comment) or external (run config)
    justification  : free text after ``--`` in the directive, or the fixed
                     global-exclusion text
    """

    model_config = ConfigDict(frozen=True)

    kind: SuppressionKind
    justification: str = ""


class Finding(BaseModel):
    """A candidate issue produced by one rule at one node.

    Positions are 1-based for both line and column, the way editors and
    most CI annotators count them. ``code`` holds the offending line with
    one line of context on each side, prefixed by line numbers.
    """

    rule_id: str
    message: str
    severity: Score
    confidence: Score
    cwe: Optional[Cwe] = None
    file: str
    line: int
    col: int = 1
    end_line: int = 0
    code: str = ""
    autofix: Optional[str] = None


class Issue(Finding):
    """A finding after suppression has been decided."""

    suppressed: bool = False
    suppressions: list[Suppression] = Field(default_factory=list)

    @classmethod
    def from_finding(cls, finding: Finding) -> Issue:
        return cls(**finding.model_dump())

    def add_suppression(self, suppression: Suppression) -> bool:
        """Record a suppression. Returns False if it was already recorded."""
        if suppression in self.suppressions:
            return False
        self.suppressions.append(suppression)
        self.suppressed = True
        return True

    @property
    def suppressed_in_source(self) -> bool:
        return any(s.kind == SuppressionKind.IN_SOURCE for s in self.suppressions)

    def sort_key(self) -> tuple:
        return (self.file, self.line, self.col, self.rule_id, self.message)


class FileError(BaseModel):
    """A per-file failure: a parse error, or a rule that raised on a node."""

    line: int
    column: int
    message: str
    rule_id: Optional[str] = None


class RunMetrics(BaseModel):
    """Counters for a scan run."""

    files: int = 0
    lines: int = 0
    found: int = 0
    nosec: int = 0

    def merge(self, other: RunMetrics) -> None:
        self.files += other.files
        self.lines += other.lines
        self.found += other.found
        self.nosec += other.nosec


class ScanResult(BaseModel):
    """Everything a report formatter needs, already canonically ordered."""

    issues: list[Issue] = Field(default_factory=list)
    metrics: RunMetrics = Field(default_factory=RunMetrics)
    errors: dict[str, list[FileError]] = Field(default_factory=dict)

    @property
    def unsuppressed(self) -> list[Issue]:
        return [i for i in self.issues if not i.suppressed]
