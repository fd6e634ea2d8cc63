"""Tests for configuration loading from the environment and JSON files."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterator

import pytest

from planscope.config import (
    Config,
    WarningThresholds,
    get_config,
    load_config_from_env,
    load_config_from_file,
    reset_config,
)
from planscope.exceptions import ConfigurationError
from planscope.parser.models import WarningKind


@pytest.fixture(autouse=True)
def fresh_config() -> Iterator[None]:
    reset_config()
    yield
    reset_config()


class TestDefaults:
    def test_threshold_defaults(self) -> None:
        thresholds = Config().thresholds
        assert thresholds.large_seq_scan_rows == 10_000
        assert thresholds.estimate_ratio_warning == 10.0
        assert thresholds.estimate_ratio_critical == 100.0
        assert thresholds.nested_loop_max_loops == 1_000
        assert thresholds.over_filter_ratio == 0.9
        assert thresholds.buffer_hit_ratio == 0.9

    def test_all_rules_enabled(self) -> None:
        config = Config()
        assert all(config.is_rule_enabled(kind) for kind in WarningKind)

    def test_frozen(self) -> None:
        with pytest.raises(ValueError):
            Config().timeline_min_width_percent = 2.0  # type: ignore[misc]

    def test_unknown_threshold_rejected(self) -> None:
        with pytest.raises(ValueError):
            WarningThresholds(no_such_threshold=1)  # type: ignore[call-arg]


class TestEnvironment:
    def test_thresholds(self) -> None:
        config = load_config_from_env({
            "PLANSCOPE_LARGE_SEQ_SCAN_ROWS": "50000",
            "PLANSCOPE_BUFFER_HIT_RATIO": "0.95",
        })
        assert config.thresholds.large_seq_scan_rows == 50_000
        assert config.thresholds.buffer_hit_ratio == 0.95
        assert config.thresholds.over_filter_ratio == 0.9

    def test_parser_limits(self) -> None:
        config = load_config_from_env({"PLANSCOPE_MAX_DEPTH": "200", "PLANSCOPE_MAX_NODES": "10"})
        assert config.parser.max_depth == 200
        assert config.parser.max_nodes == 10

    def test_timeline_width(self) -> None:
        config = load_config_from_env({"PLANSCOPE_TIMELINE_MIN_WIDTH_PERCENT": "2.5"})
        assert config.timeline_min_width_percent == 2.5

    def test_disabled_rules(self) -> None:
        config = load_config_from_env({"PLANSCOPE_DISABLED_RULES": "over_filtering, parallel_shortfall,"})
        assert config.disabled_rules == {WarningKind.OVER_FILTERING, WarningKind.PARALLEL_SHORTFALL}
        assert not config.is_rule_enabled(WarningKind.OVER_FILTERING)
        assert config.is_rule_enabled(WarningKind.DISK_SORT)

    def test_not_a_number(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            load_config_from_env({"PLANSCOPE_LARGE_SEQ_SCAN_ROWS": "lots"})
        assert exc_info.value.config_key == "PLANSCOPE_LARGE_SEQ_SCAN_ROWS"

    def test_out_of_range(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            load_config_from_env({"PLANSCOPE_OVER_FILTER_RATIO": "1.5"})
        assert exc_info.value.config_key == "thresholds.over_filter_ratio"

    def test_unknown_rule(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            load_config_from_env({"PLANSCOPE_DISABLED_RULES": "no_such_rule"})
        assert exc_info.value.config_key is not None
        assert exc_info.value.config_key.startswith("disabled_rules")

    def test_empty_environment(self) -> None:
        assert load_config_from_env({}) == Config()


class TestFile:
    def test_valid(self, tmp_path: Path) -> None:
        path = tmp_path / "planscope.json"
        path.write_text(json.dumps({
            "thresholds": {"nested_loop_max_loops": 50},
            "disabled_rules": ["lossy_bitmap"],
            "parser": {"max_depth": 20},
        }))
        config = load_config_from_file(path)

        assert config.thresholds.nested_loop_max_loops == 50
        assert config.disabled_rules == {WarningKind.LOSSY_BITMAP}
        assert config.parser.max_depth == 20

    def test_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Cannot read"):
            load_config_from_file(tmp_path / "absent.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{thresholds: }")
        with pytest.raises(ConfigurationError, match="not valid JSON"):
            load_config_from_file(path)

    def test_not_an_object(self, tmp_path: Path) -> None:
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigurationError, match="JSON object"):
            load_config_from_file(path)


class TestGetConfig:
    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PLANSCOPE_HASH_MAX_BATCHES", "4")
        assert get_config().thresholds.hash_max_batches == 4

    def test_cached_until_reset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        first = get_config()
        monkeypatch.setenv("PLANSCOPE_HASH_MAX_BATCHES", "8")
        assert get_config() is first

        reset_config()
        assert get_config().thresholds.hash_max_batches == 8

    def test_config_file_takes_precedence(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        path = tmp_path / "planscope.json"
        path.write_text(json.dumps({"thresholds": {"hash_max_batches": 2}}))
        monkeypatch.setenv("PLANSCOPE_CONFIG_FILE", str(path))
        monkeypatch.setenv("PLANSCOPE_HASH_MAX_BATCHES", "16")

        assert get_config().thresholds.hash_max_batches == 2
