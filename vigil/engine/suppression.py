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

"""In-source suppression directives.

Grammar (case-sensitive, one comment):

    # <tag>[ <ruleID>...| !<ruleID>...][ -- <justification>]

- ``<tag>`` defaults to ``nosec``. An alternate word may replace it, and
  while one is configured the default is not honoured. The tag may carry
  one leading ``#`` (``# #nosec``) and must be the first token of the
  comment's content.
- With no rule IDs the directive is blanket and silences every rule.
- ``!G401`` is the legacy spelling of ``G401``.
- Text after a run of two or more dashes is the justification.
- A token between the tag and the justification that is not a rule ID
  voids the whole directive, so the finding is reported.

A directive belongs to a statement when it sits in the block of comment
lines directly above the statement, or trailing on one of its lines. Clause
headers count too: a directive trailing ``except ...:`` covers that handler,
and one trailing ``else:`` or ``finally:`` covers that clause's block. In a
leading block only the last line starting with the tag counts. A trailing
directive wins over a leading one. The directive then covers every line of
the statement, so one placed above a multi-line literal covers findings
anywhere inside it, and one above ``def`` covers the whole function.
"""

from __future__ import annotations

import ast
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Optional

from vigil.models.issue import (
    GLOBAL_SUPPRESSION_JUSTIFICATION,
    Issue,
    Suppression,
    SuppressionKind,
)

if TYPE_CHECKING:
    from vigil.scanner.loader import Comment, CompilationUnit

logger = logging.getLogger(__name__)

DEFAULT_TAG = "nosec"

_RULE_ID = re.compile(r"^[A-Z]+[0-9]+$")
_JUSTIFICATION_SEPARATOR = re.compile(r"-{2,}")


class DirectiveKind(str, Enum):
    BLANKET = "blanket"
    RULE_LIST = "rule-list"
    NEGATED_RULE_LIST = "negated-rule-list"


@dataclass(frozen=True)
class Directive:
    """A parsed suppression comment."""

    kind: DirectiveKind
    rules: frozenset[str] = frozenset()
    justification: str = ""
    line: int = 0

    def covers(self, rule_id: str) -> bool:
        return not self.rules or rule_id in self.rules


def normalize_tag(tag: Optional[str]) -> str:
    """``#falsePositive`` and ``falsePositive`` name the same tag."""
    if not tag:
        return DEFAULT_TAG
    tag = tag.strip().lstrip("#")
    if not tag or any(ch.isspace() for ch in tag):
        raise ValueError(f"Invalid suppression tag: {tag!r}")
    return tag


def _comment_content(text: str) -> str:
    if text.startswith("#"):
        text = text[1:]
    return text.lstrip()


def starts_with_tag(text: str, tag: str = DEFAULT_TAG) -> bool:
    """True if the comment's first token is the tag."""
    return _after_tag(_comment_content(text), tag) is not None


def _after_tag(content: str, tag: str) -> Optional[str]:
    if content.startswith("#"):
        content = content[1:]
    if not content.startswith(tag):
        return None
    rest = content[len(tag):]
    if rest and not rest[0].isspace():
        return None
    return rest


def parse_directive(text: str, tag: str = DEFAULT_TAG, line: int = 0) -> Optional[Directive]:
    """Parse one comment; None when it is not a well-formed directive."""
    rest = _after_tag(_comment_content(text), tag)
    if rest is None:
        return None

    pieces = _JUSTIFICATION_SEPARATOR.split(rest, maxsplit=1)
    id_text = pieces[0]
    justification = pieces[1].strip() if len(pieces) > 1 else ""

    rules: set[str] = set()
    negated = 0
    for token in id_text.split():
        if token.startswith("!"):
            token = token[1:]
            negated += 1
        if not _RULE_ID.match(token):
            logger.debug("Ignoring malformed suppression directive on line %d: %r", line, text)
            return None
        rules.add(token)

    if not rules:
        kind = DirectiveKind.BLANKET
    elif negated == len(id_text.split()):
        kind = DirectiveKind.NEGATED_RULE_LIST
    else:
        kind = DirectiveKind.RULE_LIST
    return Directive(kind=kind, rules=frozenset(rules), justification=justification, line=line)


# ── Attachment to statements ──


@dataclass(frozen=True)
class _Span:
    start: int
    end: int
    directive: Directive


def _statement_start(stmt: ast.stmt) -> int:
    decorators = getattr(stmt, "decorator_list", None) or []
    return min([stmt.lineno] + [d.lineno for d in decorators])


def _header_end(stmt: ast.stmt) -> int:
    """Last line that trailing comments may sit on to belong to ``stmt``."""
    end = stmt.end_lineno or stmt.lineno
    body = getattr(stmt, "body", None)
    if isinstance(stmt, ast.Match) and stmt.cases:
        end = max(stmt.lineno, stmt.cases[0].pattern.lineno - 1)
    elif isinstance(body, list) and body:
        end = max(stmt.lineno, body[0].lineno - 1)
    return end


def _clause_blocks(stmt: ast.stmt) -> list[tuple[int, int, int]]:
    """``else:`` and ``finally:`` clauses of ``stmt`` as (header start, header end, block end).

    A clause whose first statement shares the keyword's line (``elif``, or
    ``else: x = 1``) has no header of its own and is left out.
    """
    body = getattr(stmt, "body", None)
    if not isinstance(body, list) or not body:
        return []
    previous_end = max(n.end_lineno or n.lineno for n in body)
    for handler in getattr(stmt, "handlers", None) or []:
        previous_end = max(previous_end, handler.end_lineno or handler.lineno)
    clauses = []
    for name in ("orelse", "finalbody"):
        block = getattr(stmt, name, None) or []
        if not block:
            continue
        block_end = max(n.end_lineno or n.lineno for n in block)
        if block[0].lineno > previous_end + 1:
            clauses.append((previous_end + 1, block[0].lineno - 1, block_end))
        previous_end = block_end
    return clauses


    return end


@dataclass
class DirectiveIndex:
    """Directive spans of one compilation unit."""

    spans: list[_Span] = field(default_factory=list)

    @classmethod
    def build(cls, tree: ast.AST, comments: Iterable[Comment], tag: str = DEFAULT_TAG) -> DirectiveIndex:
        by_line: dict[int, list[Comment]] = {}
        for comment in comments:
            by_line.setdefault(comment.line, []).append(comment)
        if not by_line:
            return cls()

        index = cls()
        for stmt in ast.walk(tree):
            if not isinstance(stmt, (ast.stmt, ast.excepthandler)):
                continue
            start = _statement_start(stmt)
            directive = _trailing_directive(stmt, by_line, tag)
            if directive is None:
                directive = _leading_directive(start, by_line, tag)
            if directive is not None:
                index.spans.append(_Span(start, stmt.end_lineno or stmt.lineno, directive))
            for header_start, header_end, block_end in _clause_blocks(stmt):
                directive = _trailing_on(header_start, header_end, by_line, tag, skip_own_line=True)
                if directive is not None:
                    index.spans.append(_Span(header_start, block_end, directive))
        return index

    def directives_for(self, line: int) -> list[Directive]:
        return [s.directive for s in self.spans if s.start <= line <= s.end]

    def __len__(self) -> int:
        return len(self.spans)


def _leading_directive(start: int, by_line: dict[int, list[Comment]], tag: str) -> Optional[Directive]:
    line = start - 1
    while line > 0:
        comments = by_line.get(line)
        if not comments or not comments[0].own_line:
            break
        text = comments[0].text
        if starts_with_tag(text, tag):
            # Nearest tag line governs, even if it turns out malformed.
            return parse_directive(text, tag, line)
        line -= 1
    return None


def _trailing_directive(stmt: ast.AST, by_line: dict[int, list[Comment]], tag: str) -> Optional[Directive]:
    compound = isinstance(stmt, ast.Match) or isinstance(getattr(stmt, "body", None), list)
    return _trailing_on(stmt.lineno, _header_end(stmt), by_line, tag, skip_own_line=compound)


def _trailing_on(
    first: int, last: int, by_line: dict[int, list[Comment]], tag: str, skip_own_line: bool
) -> Optional[Directive]:
    for line in range(last, first - 1, -1):
        for comment in reversed(by_line.get(line, ())):
            # Own-line comments after a header lead the body, not the header.
            if skip_own_line and comment.own_line:
                continue
            if starts_with_tag(comment.text, tag):
                return parse_directive(comment.text, tag, line)
    return None


# ── Applying suppressions ──


class SuppressionEngine:
    """Decides, per finding, whether and why it is silenced.

    ``ignore_nosec`` turns every in-source directive into a no-op.
    ``excluded_rules`` are globally silenced rule IDs; they are recorded as
    an external suppression alongside any in-source one.
    """

    def __init__(
        self,
        tag: Optional[str] = None,
        ignore_nosec: bool = False,
        excluded_rules: Iterable[str] = (),
    ) -> None:
        self.tag = normalize_tag(tag)
        self.ignore_nosec = ignore_nosec
        self.excluded_rules = frozenset(excluded_rules)

    def index(self, unit: CompilationUnit) -> DirectiveIndex:
        return DirectiveIndex.build(unit.tree, unit.comments, self.tag)

    def apply(self, issue: Issue, index: DirectiveIndex) -> Issue:
        """Attach every applicable suppression to ``issue``. Idempotent."""
        if not self.ignore_nosec:
            for directive in index.directives_for(issue.line):
                if directive.covers(issue.rule_id):
                    issue.add_suppression(
                        Suppression(kind=SuppressionKind.IN_SOURCE, justification=directive.justification)
                    )
        if issue.rule_id in self.excluded_rules:
            issue.add_suppression(
                Suppression(kind=SuppressionKind.EXTERNAL, justification=GLOBAL_SUPPRESSION_JUSTIFICATION)
            )
        return issue
