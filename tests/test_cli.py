"""Integration tests for the Vigil CLI.

Runs the scan command end to end against the fixture trees.
"""

import json
from pathlib import Path

from typer.testing import CliRunner

from vigil import __version__
from vigil.cli import app

runner = CliRunner()
FIXTURES = Path(__file__).parent / "fixtures"
VULNERABLE = FIXTURES / "vulnerable_app"
CLEAN = FIXTURES / "clean_app"


def _scan_json(*args: str):
    result = runner.invoke(app, ["scan", *args, "--json", "--quiet"])
    return result, json.loads(result.stdout)


class TestCleanScan:
    def test_exit_zero(self):
        result = runner.invoke(app, ["scan", str(CLEAN)])
        assert result.exit_code == 0
        assert "No issues found." in result.stdout

    def test_json_output(self):
        result, data = _scan_json(str(CLEAN))
        assert result.exit_code == 0
        assert data["Issues"] == []
        assert data["Stats"]["files"] == 1
        assert data["Vigil version"] == __version__


class TestVulnerableScan:
    """Issues found means exit 1 unless --no-fail."""

    def test_exit_one(self):
        result = runner.invoke(app, ["scan", str(VULNERABLE), "--quiet"])
        assert result.exit_code == 1

    def test_no_fail(self):
        result = runner.invoke(app, ["scan", str(VULNERABLE), "--quiet", "--no-fail"])
        assert result.exit_code == 0

    def test_json_issues_are_ordered(self):
        result, data = _scan_json(str(VULNERABLE))
        assert result.exit_code == 1
        locations = [(i["file"], i["line"], i["rule_id"]) for i in data["Issues"]]
        assert locations == [
            ("app/server.py", 6, "G102"),
            ("app/storage.py", 7, "G401"),
            ("app/storage.py", 15, "G301"),
            ("app/storage.py", 19, "G204"),
        ]
        assert data["Stats"] == {"files": 2, "lines": 27, "found": 4, "nosec": 1}

    def test_shell_true_raises_severity(self):
        _, data = _scan_json(str(VULNERABLE))
        g204 = [i for i in data["Issues"] if i["rule_id"] == "G204"][0]
        assert g204["severity"] == "HIGH"
        assert g204["message"].endswith("(shell=True)")

    def test_single_file_target(self):
        result, data = _scan_json(str(VULNERABLE / "app" / "server.py"))
        assert [i["rule_id"] for i in data["Issues"]] == ["G102"]
        assert data["Issues"][0]["file"] == "server.py"

    def test_parallel_matches_serial(self):
        _, serial = _scan_json(str(VULNERABLE), "-j", "1")
        _, parallel = _scan_json(str(VULNERABLE), "-j", "4")
        assert serial == parallel


class TestSuppressionFlags:
    def test_audit_keeps_suppressed(self):
        _, data = _scan_json(str(VULNERABLE), "--audit")
        suppressed = [i for i in data["Issues"] if i["suppressed"]]
        assert len(suppressed) == 1
        assert suppressed[0]["line"] == 11
        assert suppressed[0]["suppressions"] == [
            {"kind": "inSource", "justification": "interop with the v1 export format"}
        ]

    def test_nosec_flag_ignores_directives(self):
        _, data = _scan_json(str(VULNERABLE), "--nosec")
        assert len(data["Issues"]) == 5
        assert data["Stats"]["nosec"] == 0

    def test_exclude(self):
        _, data = _scan_json(str(VULNERABLE), "--exclude", "G401,G301")
        assert sorted(i["rule_id"] for i in data["Issues"]) == ["G102", "G204"]

    def test_include(self):
        _, data = _scan_json(str(VULNERABLE), "--include", "G102")
        assert [i["rule_id"] for i in data["Issues"]] == ["G102"]

    def test_only_suppressed_issues_exit_zero(self):
        result = runner.invoke(
            app, ["scan", str(VULNERABLE), "--quiet", "--audit", "--include", "G401", "--exclude", "G401"]
        )
        assert result.exit_code == 0


class TestFilteringFlags:
    def test_severity_floor(self):
        result, data = _scan_json(str(VULNERABLE), "--severity", "high")
        assert result.exit_code == 1
        assert [i["rule_id"] for i in data["Issues"]] == ["G204"]
        assert data["Stats"]["found"] == 1
        assert data["Stats"]["nosec"] == 0

    def test_confidence_floor(self):
        _, data = _scan_json(str(VULNERABLE), "--confidence", "high")
        assert len(data["Issues"]) == 4

    def test_exclude_dir(self):
        result, data = _scan_json(str(VULNERABLE), "--exclude-dir", "app")
        assert result.exit_code == 0
        assert data["Issues"] == []
        assert data["Stats"]["files"] == 0

    def test_exclude_dir_repeatable(self, tmp_path):
        (tmp_path / "a").mkdir()
        (tmp_path / "b").mkdir()
        (tmp_path / "a" / "x.py").write_text("import hashlib\nhashlib.md5(b'x')\n", encoding="utf-8")
        (tmp_path / "b" / "y.py").write_text("import hashlib\nhashlib.md5(b'x')\n", encoding="utf-8")
        _, data = _scan_json(str(tmp_path), "--exclude-dir", "a", "--exclude-dir", "b")
        assert data["Stats"]["files"] == 0

    def test_unknown_severity(self):
        result = runner.invoke(app, ["scan", str(CLEAN), "--severity", "extreme"])
        assert result.exit_code == 1


class TestOutputOptions:
    def test_output_file(self, tmp_path):
        out = tmp_path / "report.json"
        result = runner.invoke(app, ["scan", str(VULNERABLE), "--quiet", "--no-fail", "-o", str(out)])
        assert result.exit_code == 0
        assert len(json.loads(out.read_text(encoding="utf-8"))["Issues"]) == 4

    def test_fix_attaches_static_advice(self):
        _, data = _scan_json(str(VULNERABLE), "--fix")
        assert all(i["autofix"] for i in data["Issues"])
        g204 = [i for i in data["Issues"] if i["rule_id"] == "G204"][0]
        assert "shell=True" in g204["autofix"]

    def test_console_report(self):
        result = runner.invoke(app, ["scan", str(VULNERABLE)])
        assert result.exit_code == 1
        assert "Summary" in result.stdout
        assert "G102" in result.stdout


class TestErrors:
    def test_missing_path(self, tmp_path):
        result = runner.invoke(app, ["scan", str(tmp_path / "nope")])
        assert result.exit_code == 1
        assert "Path not found" in result.stdout

    def test_non_python_file(self, tmp_path):
        target = tmp_path / "notes.txt"
        target.write_text("hello\n", encoding="utf-8")
        result = runner.invoke(app, ["scan", str(target)])
        assert result.exit_code == 1
        assert "not a Python source file" in result.stdout

    def test_invalid_config_file(self, tmp_path):
        (tmp_path / "app.py").write_text("x = 1\n", encoding="utf-8")
        (tmp_path / "vigil.yaml").write_text("rulez: {}\n", encoding="utf-8")
        result = runner.invoke(app, ["scan", str(tmp_path)])
        assert result.exit_code == 1
        assert "unknown config section" in result.stdout

    def test_strict_rule_settings(self, tmp_path):
        config = tmp_path / "strict.yaml"
        config.write_text("global:\n  strict-config: true\nrules:\n  G302: rwx\n", encoding="utf-8")
        result = runner.invoke(app, ["scan", str(CLEAN), "--config", str(config)])
        assert result.exit_code == 1
        assert "G302" in result.stdout

    def test_lenient_rule_settings(self, tmp_path):
        config = tmp_path / "lenient.yaml"
        config.write_text("rules:\n  G302: rwx\n", encoding="utf-8")
        result = runner.invoke(app, ["scan", str(CLEAN), "--config", str(config)])
        assert result.exit_code == 0

    def test_bad_nosec_tag(self):
        result = runner.invoke(app, ["scan", str(CLEAN), "--nosec-tag", "two words"])
        assert result.exit_code == 1


class TestOtherCommands:
    def test_rules(self):
        result = runner.invoke(app, ["rules"])
        assert result.exit_code == 0
        assert "G101" in result.stdout
        assert "G505" in result.stdout

    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout
