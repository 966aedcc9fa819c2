"""Tests for JSON and console reporting."""

import json

import pytest

from vigil import __version__
from vigil.models.issue import (
    GLOBAL_SUPPRESSION_JUSTIFICATION,
    FileError,
    Issue,
    RunMetrics,
    ScanResult,
    Score,
    Suppression,
    SuppressionKind,
    cwe_for_rule,
)
from vigil.reporter.console_out import console, print_report
from vigil.reporter.json_out import render_report, result_to_dict, to_canonical_json, write_report


def _result() -> ScanResult:
    open_issue = Issue(
        rule_id="G401",
        message="Use of weak cryptographic primitive: hashlib.md5",
        severity=Score.MEDIUM,
        confidence=Score.HIGH,
        cwe=cwe_for_rule("G401"),
        file="app/crypto.py",
        line=3,
        col=5,
    )
    silenced = Issue(
        rule_id="G404",
        message="Use of weak random number generator (random module instead of secrets)",
        severity=Score.HIGH,
        confidence=Score.MEDIUM,
        cwe=cwe_for_rule("G404"),
        file="app/crypto.py",
        line=9,
        suppressed=True,
        suppressions=[
            Suppression(kind=SuppressionKind.IN_SOURCE, justification="jitter only"),
            Suppression(kind=SuppressionKind.EXTERNAL, justification=GLOBAL_SUPPRESSION_JUSTIFICATION),
        ],
    )
    return ScanResult(
        issues=[open_issue, silenced],
        metrics=RunMetrics(files=2, lines=40, found=1, nosec=1),
        errors={"app/broken.py": [FileError(line=1, column=12, message="invalid syntax")]},
    )


class TestCanonicalJson:
    def test_sorted_keys_and_trailing_newline(self):
        text = to_canonical_json({"b": 1, "a": {"d": 2, "c": 3}})
        assert text == '{\n  "a": {\n    "c": 3,\n    "d": 2\n  },\n  "b": 1\n}\n'

    def test_accepts_models(self):
        data = json.loads(to_canonical_json(RunMetrics(files=1)))
        assert data == {"files": 1, "found": 0, "lines": 0, "nosec": 0}

    def test_report_layout(self):
        data = json.loads(render_report(_result()))
        assert set(data) == {"Issues", "Stats", "Errors", "Vigil version"}
        assert data["Vigil version"] == __version__
        assert data["Stats"] == {"files": 2, "lines": 40, "found": 1, "nosec": 1}
        assert data["Errors"]["app/broken.py"][0]["column"] == 12

    def test_issue_fields(self):
        issue = result_to_dict(_result())["Issues"][1]
        assert issue["rule_id"] == "G404"
        assert issue["severity"] == "HIGH"
        assert issue["cwe"]["id"] == "338"
        assert issue["suppressed"] is True
        assert issue["suppressions"] == [
            {"kind": "inSource", "justification": "jitter only"},
            {"kind": "external", "justification": "Globally suppressed."},
        ]

    def test_deterministic(self):
        assert render_report(_result()) == render_report(_result())

    def test_write_report(self, tmp_path):
        out = tmp_path / "reports" / "vigil.json"
        write_report(_result(), out)
        content = out.read_bytes()
        assert content.endswith(b"}\n")
        assert b"\r\n" not in content
        assert json.loads(content)["Stats"]["found"] == 1


class TestConsoleReport:
    @pytest.fixture(autouse=True)
    def wide_console(self):
        """Keep table cells on one line so substrings can be matched."""
        saved = console.width
        console.width = 200
        yield
        console.width = saved

    def test_issues_and_summary(self):
        with console.capture() as capture:
            print_report(_result(), target="/src")
        out = capture.get()
        assert "VIGIL SECURITY SCAN" in out
        assert "G401" in out
        assert "app/crypto.py:3:5" in out
        assert "CWE-326" in out
        assert "Summary" in out
        assert "app/broken.py" in out

    def test_suppressed_hidden_outside_audit(self):
        with console.capture() as capture:
            print_report(_result())
        assert "G404" not in capture.get()

    def test_audit_lists_suppressed_with_justification(self):
        with console.capture() as capture:
            print_report(_result(), audit=True)
        out = capture.get()
        assert "Suppressed (1)" in out
        assert "G404" in out
        assert "jitter only" in out

    def test_clean_run(self):
        with console.capture() as capture:
            print_report(ScanResult())
        assert "No issues found." in capture.get()
