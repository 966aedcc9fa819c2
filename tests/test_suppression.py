"""Tests for the suppression directive grammar and its application."""

import pytest

from vigil.engine.suppression import (
    DirectiveIndex,
    DirectiveKind,
    SuppressionEngine,
    normalize_tag,
    parse_directive,
)
from vigil.models.issue import GLOBAL_SUPPRESSION_JUSTIFICATION, Issue, Score, SuppressionKind
from vigil.scanner.loader import load_source


def _issue(rule_id: str = "G401", line: int = 1) -> Issue:
    return Issue(
        rule_id=rule_id,
        message="Use of weak cryptographic primitive",
        severity=Score.MEDIUM,
        confidence=Score.HIGH,
        file="main.py",
        line=line,
    )


def _index(source: str, tag: str = "nosec") -> DirectiveIndex:
    unit = load_source(source).units[0]
    return DirectiveIndex.build(unit.tree, unit.comments, tag)


class TestParseDirective:
    """The directive micro-language."""

    def test_blanket(self):
        directive = parse_directive("# nosec")
        assert directive is not None
        assert directive.kind == DirectiveKind.BLANKET
        assert directive.covers("G401") and directive.covers("G402")

    def test_rule_list(self):
        directive = parse_directive("# nosec G401 G402")
        assert directive.kind == DirectiveKind.RULE_LIST
        assert directive.rules == frozenset({"G401", "G402"})
        assert directive.covers("G401")
        assert not directive.covers("G404")

    def test_negated_list_is_a_rule_list_alias(self):
        directive = parse_directive("# nosec !G401")
        assert directive.kind == DirectiveKind.NEGATED_RULE_LIST
        assert directive.covers("G401")
        assert not directive.covers("G402")

    def test_justification(self):
        directive = parse_directive("# nosec G401 -- only used for cache keys")
        assert directive.rules == frozenset({"G401"})
        assert directive.justification == "only used for cache keys"

    def test_blanket_with_justification(self):
        directive = parse_directive("# nosec -- reviewed")
        assert directive.kind == DirectiveKind.BLANKET
        assert directive.justification == "reviewed"

    def test_no_justification_is_empty_string(self):
        assert parse_directive("# nosec").justification == ""

    def test_tag_must_lead_the_comment(self):
        assert parse_directive("# Another description nosec G401") is None

    def test_tag_must_be_a_whole_word(self):
        assert parse_directive("# nosecurity") is None

    def test_hash_prefixed_tag(self):
        assert parse_directive("# #nosec G401") is not None

    @pytest.mark.parametrize("text", ["# nosec G40l", "# nosec g401", "# nosec because reasons"])
    def test_malformed_means_no_directive(self, text):
        assert parse_directive(text) is None

    def test_alternate_tag(self):
        assert parse_directive("# #falsePositive", tag="falsePositive") is not None
        assert parse_directive("# nosec", tag="falsePositive") is None


class TestNormalizeTag:
    def test_default(self):
        assert normalize_tag(None) == "nosec"

    def test_strips_hash(self):
        assert normalize_tag("#falsePositive") == "falsePositive"

    def test_rejects_whitespace(self):
        with pytest.raises(ValueError):
            normalize_tag("false positive")


class TestDirectiveAttachment:
    """Which lines a directive covers."""

    def test_trailing_comment(self):
        index = _index("import hashlib\nh = hashlib.md5(b'x')  # nosec\n")
        assert index.directives_for(2)
        assert not index.directives_for(1)

    def test_preceding_comment(self):
        index = _index("import hashlib\n# nosec G401\nh = hashlib.md5(b'x')\n")
        assert index.directives_for(3)[0].rules == frozenset({"G401"})

    def test_description_then_directive(self):
        source = "import hashlib\n# Some description\n# nosec G401\nh = hashlib.md5(b'x')\n"
        assert _index(source).directives_for(4)

    def test_description_before_tag_is_not_a_directive(self):
        source = "import hashlib\n# Some description\n# Another description nosec G401\nh = hashlib.md5(b'x')\n"
        assert not _index(source).directives_for(4)

    def test_stacked_lines_nearest_tag_governs(self):
        source = "import os\n# nosec\n# G301\n# nosec\nos.mkdir('/x', 0o777)\n"
        directives = _index(source).directives_for(5)
        assert directives
        assert directives[0].kind == DirectiveKind.BLANKET

    def test_nearest_rule_list_governs_over_earlier_blanket(self):
        source = "import os\n# nosec\n# nosec G302\nos.mkdir('/x', 0o777)\n"
        directives = _index(source).directives_for(4)
        assert directives[0].rules == frozenset({"G302"})

    def test_blank_line_breaks_adjacency(self):
        source = "import hashlib\n# nosec\n\nh = hashlib.md5(b'x')\n"
        assert not _index(source).directives_for(4)

    def test_multi_line_literal_is_covered(self):
        source = (
            "# nosec G101\n"
            "CONFIG = {\n"
            "    'user': 'admin',\n"
            "    'password': 'hunter2-but-longer',\n"
            "}\n"
        )
        index = _index(source)
        for line in (2, 3, 4, 5):
            assert index.directives_for(line), line

    def test_trailing_on_first_line_covers_multi_line_call(self):
        source = (
            "import subprocess\n"
            "subprocess.run(  # nosec G204\n"
            "    cmd,\n"
            "    shell=True,\n"
            ")\n"
        )
        index = _index(source)
        assert index.directives_for(3)
        assert index.directives_for(4)

    def test_directive_on_compound_header_covers_header_only_lines(self):
        source = (
            "import hashlib\n"
            "def f():  # nosec\n"
            "    return hashlib.md5(b'x')\n"
        )
        index = _index(source)
        # The function statement spans its body, so the body is covered too.
        assert index.directives_for(3)

    def test_comment_leading_a_body_statement_does_not_attach_to_header(self):
        source = (
            "import hashlib\n"
            "def f():\n"
            "    # nosec G401\n"
            "    a = hashlib.md5(b'x')\n"
            "    b = hashlib.md5(b'y')\n"
        )
        index = _index(source)
        assert index.directives_for(4)
        assert not index.directives_for(5)

    def test_decorated_function_leading_comment(self):
        source = "# nosec\n@decorator\ndef f():\n    pass\n"
        assert _index(source).directives_for(3)


class TestClauseHeaders:
    """Directives trailing ``else:``, ``except ...:`` and ``finally:``."""

    def test_else_header_covers_else_block_only(self):
        source = (
            "import hashlib\n"
            "if flag:\n"
            "    a = hashlib.md5()\n"
            "else:  # nosec G401 -- legacy checksum\n"
            "    b = hashlib.md5()\n"
            "    c = hashlib.sha1()\n"
        )
        index = _index(source)
        assert not index.directives_for(3)
        assert index.directives_for(5)[0].justification == "legacy checksum"
        assert index.directives_for(6)

    def test_except_header_covers_handler(self):
        source = (
            "import hashlib\n"
            "try:\n"
            "    x = hashlib.sha256()\n"
            "except ValueError:  # nosec\n"
            "    x = hashlib.md5()\n"
            "y = hashlib.md5()\n"
        )
        index = _index(source)
        assert not index.directives_for(3)
        assert index.directives_for(5)
        assert not index.directives_for(6)

    def test_finally_after_handler_and_else(self):
        source = (
            "import hashlib\n"
            "try:\n"
            "    x = 1\n"
            "except ValueError:\n"
            "    x = 2\n"
            "else:\n"
            "    x = 3\n"
            "finally:  # nosec\n"
            "    h = hashlib.md5()\n"
        )
        index = _index(source)
        assert not index.directives_for(5)
        assert not index.directives_for(7)
        assert index.directives_for(9)

    def test_loop_else(self):
        source = "for item in items:\n    pass\nelse:  # nosec\n    h = make()\n"
        assert _index(source).directives_for(4)

    def test_own_line_comment_before_else_is_not_a_header_directive(self):
        source = (
            "if flag:\n"
            "    a = 1\n"
            "    # nosec\n"
            "else:\n"
            "    b = 2\n"
        )
        assert not _index(source).directives_for(5)

    def test_elif_header(self):
        source = "if a:\n    x = 1\nelif b:  # nosec\n    y = 2\nelse:\n    z = 3\n"
        index = _index(source)
        assert index.directives_for(4)
        assert not index.directives_for(2)

    def test_engine_suppresses_finding_in_else_block(self):
        source = "import hashlib\nif True:\n    pass\nelse:  # nosec\n    h = hashlib.md5()\n"
        issue = SuppressionEngine().apply(_issue(line=5), _index(source))
        assert issue.suppressed
        assert issue.suppressions[0].kind == SuppressionKind.IN_SOURCE


class TestSuppressionEngine:
    """Applying directives and global exclusions to issues."""

    def test_in_source_suppression(self):
        engine = SuppressionEngine()
        index = _index("import hashlib\nh = hashlib.md5(b'x')  # nosec\n")
        issue = engine.apply(_issue(line=2), index)
        assert issue.suppressed
        assert len(issue.suppressions) == 1
        assert issue.suppressions[0].kind == SuppressionKind.IN_SOURCE
        assert issue.suppressions[0].justification == ""

    def test_scoped_directive_leaves_other_rules(self):
        engine = SuppressionEngine()
        index = _index("import hashlib\nh = hashlib.md5(b'x')  # nosec G401\n")
        assert engine.apply(_issue("G401", 2), index).suppressed
        assert not engine.apply(_issue("G402", 2), index).suppressed

    def test_idempotent(self):
        engine = SuppressionEngine(excluded_rules={"G401"})
        index = _index("import hashlib\nh = hashlib.md5(b'x')  # nosec -- legacy\n")
        issue = engine.apply(_issue(line=2), index)
        once = [s.model_dump() for s in issue.suppressions]
        engine.apply(issue, index)
        assert [s.model_dump() for s in issue.suppressions] == once

    def test_in_source_and_external_are_both_recorded(self):
        engine = SuppressionEngine(excluded_rules={"G401"})
        index = _index("import hashlib\nh = hashlib.md5(b'x')  # nosec -- legacy\n")
        issue = engine.apply(_issue(line=2), index)
        kinds = {s.kind for s in issue.suppressions}
        assert kinds == {SuppressionKind.IN_SOURCE, SuppressionKind.EXTERNAL}
        external = [s for s in issue.suppressions if s.kind == SuppressionKind.EXTERNAL][0]
        assert external.justification == GLOBAL_SUPPRESSION_JUSTIFICATION

    def test_ignore_nosec(self):
        engine = SuppressionEngine(ignore_nosec=True)
        index = _index("import hashlib\nh = hashlib.md5(b'x')  # nosec\n")
        assert not engine.apply(_issue(line=2), index).suppressed

    def test_alternate_tag_replaces_default(self):
        engine = SuppressionEngine(tag="falsePositive")
        source = (
            "import hashlib\n"
            "a = hashlib.md5(b'x')  # #falsePositive\n"
            "b = hashlib.md5(b'y')  # nosec\n"
        )
        unit = load_source(source).units[0]
        index = engine.index(unit)
        assert engine.apply(_issue(line=2), index).suppressed
        assert not engine.apply(_issue(line=3), index).suppressed

    def test_message_and_rule_are_untouched(self):
        engine = SuppressionEngine()
        index = _index("import hashlib\nh = hashlib.md5(b'x')  # nosec\n")
        issue = engine.apply(_issue(line=2), index)
        assert issue.rule_id == "G401"
        assert issue.message == "Use of weak cryptographic primitive"
