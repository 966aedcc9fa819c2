"""Tests for run configuration loading and overrides."""

import pytest

from vigil.config import AISettings, ConfigError, ScanConfig, config_from_dict, find_config, load_config
from vigil.models.issue import Score


class TestScanConfigDefaults:
    def test_defaults(self):
        config = ScanConfig()
        assert config.concurrency == 1
        assert config.track_suppressions is False
        assert config.ignore_nosec is False
        assert config.nosec_tag is None
        assert config.exclude_rules == set()
        assert config.rules == {}
        assert config.ai is None

    def test_comma_separated_rule_ids(self):
        config = ScanConfig(exclude_rules="G401, G404,,")
        assert config.exclude_rules == {"G401", "G404"}

    def test_tag_is_normalized(self):
        assert ScanConfig(nosec_tag="#falsePositive").nosec_tag == "falsePositive"

    @pytest.mark.parametrize("tag", ["two words", "#", "   "])
    def test_bad_tag(self, tag):
        with pytest.raises(ValueError):
            ScanConfig(nosec_tag=tag)

    def test_concurrency_must_be_positive(self):
        with pytest.raises(ValueError):
            ScanConfig(concurrency=0)


class TestConfigFromDict:
    """YAML document layout."""

    def test_aliases_and_dashes(self):
        config = config_from_dict(
            {
                "global": {
                    "audit": True,
                    "nosec": True,
                    "nosec-tag": "falsePositive",
                    "exclude": ["G404"],
                    "tests": True,
                    "exclude-generated": True,
                    "concurrency": 4,
                },
            }
        )
        assert config.track_suppressions is True
        assert config.ignore_nosec is True
        assert config.nosec_tag == "falsePositive"
        assert config.exclude_rules == {"G404"}
        assert config.scan_tests is True
        assert config.exclude_generated is True
        assert config.concurrency == 4

    def test_rule_settings_are_passed_through(self):
        config = config_from_dict({"rules": {"G302": "0o640", "G101": {"pattern": "secret"}}})
        assert config.rules == {"G302": "0o640", "G101": {"pattern": "secret"}}

    def test_ai_section(self):
        config = config_from_dict({"ai": {"provider": "OpenAI", "api-key-env": "MY_KEY"}})
        assert config.ai == AISettings(provider="openai", api_key_env="MY_KEY")

    def test_unknown_section(self):
        with pytest.raises(ConfigError, match="unknown config section"):
            config_from_dict({"global": {}, "rulez": {}})

    def test_unknown_global_key(self):
        with pytest.raises(ConfigError):
            config_from_dict({"global": {"colour": "red"}})

    def test_unknown_provider(self):
        with pytest.raises(ConfigError):
            config_from_dict({"ai": {"provider": "carrier-pigeon"}})

    def test_non_mapping_document(self):
        with pytest.raises(ConfigError):
            config_from_dict(["G401"])


class TestFilteringOptions:
    """Severity/confidence floors and excluded directories."""

    def test_defaults(self):
        config = ScanConfig()
        assert config.min_severity == Score.LOW
        assert config.min_confidence == Score.LOW
        assert config.exclude_dirs == []

    def test_scores_are_case_insensitive(self):
        config = ScanConfig(min_severity="medium", min_confidence=" High ")
        assert config.min_severity == Score.MEDIUM
        assert config.min_confidence == Score.HIGH

    def test_unknown_score(self):
        with pytest.raises(ValueError):
            ScanConfig(min_severity="critical")

    def test_exclude_dirs_from_string(self):
        assert ScanConfig(exclude_dirs="vendor, app/legacy/ ,").exclude_dirs == ["vendor", "app/legacy"]

    def test_yaml_keys(self):
        config = config_from_dict(
            {"global": {"severity": "high", "confidence": "medium", "exclude-dir": ["vendor", "/build/"]}}
        )
        assert config.min_severity == Score.HIGH
        assert config.min_confidence == Score.MEDIUM
        assert config.exclude_dirs == ["vendor", "build"]

    def test_overrides(self):
        merged = ScanConfig(exclude_dirs=["vendor"]).with_overrides(min_severity="high", exclude_dirs=None)
        assert merged.min_severity == Score.HIGH
        assert merged.exclude_dirs == ["vendor"]

    def test_bad_override(self):
        with pytest.raises(ConfigError):
            ScanConfig().with_overrides(min_confidence="sure")


class TestLoadConfig:
    def test_load_yaml(self, tmp_path):
        path = tmp_path / "vigil.yaml"
        path.write_text("global:\n  audit: true\nrules:\n  G403:\n    min_bits: 3072\n", encoding="utf-8")
        config = load_config(path)
        assert config.track_suppressions is True
        assert config.rules["G403"] == {"min_bits": 3072}

    def test_empty_file(self, tmp_path):
        path = tmp_path / "vigil.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == ScanConfig()

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "vigil.yaml"
        path.write_text("global: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="invalid YAML"):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="could not read"):
            load_config(tmp_path / "nope.yaml")

    def test_find_config(self, tmp_path):
        assert find_config(tmp_path) is None
        (tmp_path / ".vigil.yml").write_text("{}\n", encoding="utf-8")
        assert find_config(tmp_path) == tmp_path / ".vigil.yml"
        (tmp_path / "vigil.yaml").write_text("{}\n", encoding="utf-8")
        assert find_config(tmp_path) == tmp_path / "vigil.yaml"

    def test_find_config_next_to_a_file(self, tmp_path):
        (tmp_path / "vigil.yaml").write_text("{}\n", encoding="utf-8")
        target = tmp_path / "app.py"
        target.write_text("x = 1\n", encoding="utf-8")
        assert find_config(target) == tmp_path / "vigil.yaml"


class TestWithOverrides:
    def test_none_keeps_file_value(self):
        base = ScanConfig(track_suppressions=True, concurrency=3)
        merged = base.with_overrides(track_suppressions=None, concurrency=None)
        assert merged.track_suppressions is True
        assert merged.concurrency == 3

    def test_values_override(self):
        merged = ScanConfig().with_overrides(exclude_rules="G401,G402", nosec_tag="#fp")
        assert merged.exclude_rules == {"G401", "G402"}
        assert merged.nosec_tag == "fp"

    def test_original_is_untouched(self):
        base = ScanConfig()
        base.with_overrides(concurrency=8)
        assert base.concurrency == 1

    def test_invalid_override(self):
        with pytest.raises(ConfigError):
            ScanConfig().with_overrides(concurrency=0)
