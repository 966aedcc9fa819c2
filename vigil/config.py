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

"""Run configuration: pydantic models plus YAML loading.

Config file layout (``vigil.yaml`` in the scan root, or ``--config``):

    global:
      concurrency: 4
      audit: true              # alias of track-suppressions
      nosec: false             # true ignores every in-source directive
      nosec-tag: falsePositive
      exclude: [G404]
      include: []
      tests: false
      exclude-generated: true
      strict-config: false
      severity: medium         # drop issues below this severity
      confidence: low
      exclude-dir: [vendor, migrations]
    rules:
      G101:
        pattern: "(?i)passwd|secret"
      G302: "0o600"
    ai:
      provider: ollama
      model: llama3

Keys may use dashes or underscores. CLI flags override file values.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, PositiveInt, ValidationError, field_validator

from vigil.models.issue import Score

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = ("vigil.yaml", "vigil.yml", ".vigil.yaml", ".vigil.yml")

_GLOBAL_ALIASES = {
    "audit": "track_suppressions",
    "nosec": "ignore_nosec",
    "exclude": "exclude_rules",
    "include": "include_rules",
    "tests": "scan_tests",
    "severity": "min_severity",
    "confidence": "min_confidence",
    "exclude_dir": "exclude_dirs",
}


class ConfigError(ValueError):
    """The config file is unreadable or does not validate."""


class AISettings(BaseModel):
    """Optional LLM provider used to phrase fix suggestions."""

    model_config = ConfigDict(extra="forbid")

    provider: str = "ollama"
    model: Optional[str] = None
    host: Optional[str] = None
    api_key_env: Optional[str] = None
    timeout: float = 120.0

    @field_validator("provider")
    @classmethod
    def _known_provider(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ("ollama", "openai", "local"):
            raise ValueError(f"unknown AI provider {value!r} (expected ollama, openai or local)")
        return value


class ScanConfig(BaseModel):
    """Everything the engine needs to know about a run."""

    model_config = ConfigDict(extra="forbid")

    concurrency: PositiveInt = 1
    track_suppressions: bool = False
    ignore_nosec: bool = False
    nosec_tag: Optional[str] = None
    exclude_rules: set[str] = Field(default_factory=set)
    include_rules: set[str] = Field(default_factory=set)
    scan_tests: bool = False
    exclude_generated: bool = False
    strict_config: bool = False
    min_severity: Score = Score.LOW
    min_confidence: Score = Score.LOW
    exclude_dirs: list[str] = Field(default_factory=list)
    rules: dict[str, Any] = Field(default_factory=dict)
    ai: Optional[AISettings] = None

    @field_validator("exclude_rules", "include_rules", mode="before")
    @classmethod
    def _split_ids(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {v.strip() for v in value.split(",") if v.strip()}
        return value

    @field_validator("min_severity", "min_confidence", mode="before")
    @classmethod
    def _upper_score(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("exclude_dirs", mode="before")
    @classmethod
    def _split_dirs(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, (list, tuple)):
            cleaned = (str(v).strip().strip("/") for v in value)
            return [d for d in cleaned if d]
        return value

    @field_validator("nosec_tag")
    @classmethod
    def _single_word_tag(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        tag = value.strip().lstrip("#")
        if not tag or any(ch.isspace() for ch in tag):
            raise ValueError(f"suppression tag must be a single word, got {value!r}")
        return tag

    def with_overrides(self, **overrides: Any) -> ScanConfig:
        """Copy with every non-None override applied and re-validated."""
        data = self.model_dump()
        data.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return ScanConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigError(str(e)) from e


def _normalize_keys(section: dict[str, Any]) -> dict[str, Any]:
    normalized = {}
    for key, value in section.items():
        key = str(key).replace("-", "_")
        normalized[_GLOBAL_ALIASES.get(key, key)] = value
    return normalized


def config_from_dict(data: dict[str, Any]) -> ScanConfig:
    """Validate a parsed config document."""
    if not isinstance(data, dict):
        raise ConfigError("config document must be a mapping")
    unknown = set(data) - {"global", "rules", "ai"}
    if unknown:
        raise ConfigError(f"unknown config section(s): {', '.join(sorted(unknown))}")

    global_section = data.get("global") or {}
    if not isinstance(global_section, dict):
        raise ConfigError("'global' must be a mapping")
    values = _normalize_keys(global_section)
    rules = data.get("rules") or {}
    if not isinstance(rules, dict):
        raise ConfigError("'rules' must be a mapping of rule ID to settings")
    values["rules"] = {str(k): v for k, v in rules.items()}
    if data.get("ai") is not None:
        values["ai"] = _normalize_keys(data["ai"]) if isinstance(data["ai"], dict) else data["ai"]

    try:
        return ScanConfig.model_validate(values)
    except ValidationError as e:
        raise ConfigError(str(e)) from e


def load_config(path: Path) -> ScanConfig:
    """Load and validate a YAML config file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"could not read config {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e
    config = config_from_dict(data)
    logger.debug("Loaded config from %s", path)
    return config


def find_config(root: Path) -> Optional[Path]:
    """First config file found in ``root``, if any."""
    base = root if root.is_dir() else root.parent
    for name in CONFIG_FILENAMES:
        candidate = base / name
        if candidate.is_file():
            return candidate
    return None
