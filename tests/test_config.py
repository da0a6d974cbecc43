from pathlib import Path

import pytest
from pydantic import ValidationError

from txn_dedupe.config import (
    DedupSettings,
    ScoringWeights,
    apply_overrides,
    generate_default_config,
    load_config,
)
from txn_dedupe.utils.exceptions import ConfigurationError


def test_defaults_match_documented_tunables() -> None:
    settings = load_config().dedup

    assert settings.similarity_threshold == 0.82
    assert settings.soft_similarity_threshold == 0.72
    assert settings.date_window_days == 2
    assert settings.amount_tolerance == 1.5
    assert settings.amount_tolerance_percent == 0.05
    assert settings.bucket_amount_width == 5
    assert settings.batch_size == 500
    assert settings.weights == ScoringWeights(text=0.6, amount=0.25, date=0.15)


@pytest.mark.parametrize(
    "overrides",
    [
        {"similarity_threshold": 1.2},
        {"soft_similarity_threshold": -0.1},
        {"date_window_days": -1},
        {"amount_tolerance": -0.5},
        {"bucket_amount_width": 0},
        {"batch_size": 0},
        {"similarity_threshold": 0.7, "soft_similarity_threshold": 0.75},
    ],
)
def test_invalid_settings_fail_at_construction(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        DedupSettings(**overrides)


def test_weights_must_sum_to_one() -> None:
    with pytest.raises(ValidationError, match="sum to 1.0"):
        ScoringWeights(text=0.5, amount=0.25, date=0.15)


def test_yaml_overrides_are_merged(tmp_path: Path) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text("dedup:\n  similarity_threshold: 0.9\n  batch_size: 100\n")

    config = load_config(config_file)

    assert config.dedup.similarity_threshold == 0.9
    assert config.dedup.batch_size == 100
    assert config.dedup.date_window_days == 2
    assert config.config_file_path == str(config_file)


def test_invalid_yaml_value_raises_configuration_error(tmp_path: Path) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text("dedup:\n  date_window_days: -3\n")

    with pytest.raises(ConfigurationError, match="date_window_days"):
        load_config(config_file)


def test_non_mapping_yaml_is_rejected(tmp_path: Path) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text("- just\n- a list\n")

    with pytest.raises(ConfigurationError):
        load_config(config_file)


def test_apply_overrides_validates_and_ignores_none() -> None:
    config = load_config()

    updated = apply_overrides(config, similarity_threshold=0.95, batch_size=None)
    assert updated.dedup.similarity_threshold == 0.95
    assert updated.dedup.batch_size == 500
    assert config.dedup.similarity_threshold == 0.82

    with pytest.raises(ConfigurationError):
        apply_overrides(config, similarity_threshold=3)


def test_generated_config_loads_back(tmp_path: Path) -> None:
    output = tmp_path / "nested" / "config.yaml"

    generate_default_config(output)
    config = load_config(output)

    assert output.read_text().startswith("# Transaction deduplication configuration")
    assert config.dedup == DedupSettings()
