"""Configuration loader and validation for deduplication settings."""

from pathlib import Path
from typing import Any, Optional
import logging
import math

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from .utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class ScoringWeights(BaseModel):
    """Weights of the three similarity sub-scores."""

    text: float = Field(default=0.6, ge=0.0, le=1.0)
    amount: float = Field(default=0.25, ge=0.0, le=1.0)
    date: float = Field(default=0.15, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_sum(self) -> "ScoringWeights":
        total = self.text + self.amount + self.date
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise ValueError(f"scoring weights must sum to 1.0, got {total:.4f}")
        return self


class DedupSettings(BaseModel):
    """Tunables of the deduplication engine."""

    similarity_threshold: float = Field(default=0.82, ge=0.0, le=1.0)
    soft_similarity_threshold: float = Field(default=0.72, ge=0.0, le=1.0)
    date_window_days: int = Field(default=2, ge=0)
    amount_tolerance: float = Field(default=1.5, ge=0.0)
    amount_tolerance_percent: float = Field(default=0.05, ge=0.0)
    bucket_amount_width: float = Field(default=5.0, gt=0.0)
    batch_size: int = Field(default=500, ge=1)
    max_workers: int = Field(default=1, ge=1)
    weights: ScoringWeights = Field(default_factory=ScoringWeights)

    @model_validator(mode="after")
    def _check_thresholds(self) -> "DedupSettings":
        if self.soft_similarity_threshold > self.similarity_threshold:
            raise ValueError(
                "soft_similarity_threshold "
                f"({self.soft_similarity_threshold}) must not exceed "
                f"similarity_threshold ({self.similarity_threshold})"
            )
        return self


class InputConfig(BaseModel):
    """Configuration for CSV record loading."""

    encoding: str = "utf-8"
    delimiter: str = ","
    date_format: Optional[str] = None
    column_mappings: dict[str, str] = Field(
        default_factory=lambda: {
            "id": "id",
            "date": "date",
            "amount": "amount",
            "description": "description",
            "source": "source",
            "is_duplicate": "is_duplicate",
            "canonical_id": "canonical_id",
        }
    )


class SheetConfig(BaseModel):
    """Configuration for a report sheet."""

    enabled: bool = True
    name: str


class SheetsConfig(BaseModel):
    """Configuration for all report sheets."""

    summary: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Summary"))
    groups: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Duplicate Groups"))
    updates: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Updates"))


class ExcelOutputConfig(BaseModel):
    """Configuration for Excel output."""

    filename_template: str = "dedupe_report_{date}_{time}.xlsx"
    include_timestamp: bool = True


class OutputConfig(BaseModel):
    """Configuration for output."""

    excel: ExcelOutputConfig = Field(default_factory=ExcelOutputConfig)
    sheets: SheetsConfig = Field(default_factory=SheetsConfig)


class SchedulerConfig(BaseModel):
    """Configuration for periodic maintenance."""

    interval_minutes: float = Field(default=30.0, gt=0.0)


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class DedupConfig(BaseModel):
    """Main configuration model."""

    dedup: DedupSettings = Field(default_factory=DedupSettings)
    input: InputConfig = Field(default_factory=InputConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    config_file_path: Optional[str] = None


def get_default_config() -> dict[str, Any]:
    """Return the default configuration as a dictionary."""
    return {
        "dedup": {
            "similarity_threshold": 0.82,
            "soft_similarity_threshold": 0.72,
            "date_window_days": 2,
            "amount_tolerance": 1.5,
            "amount_tolerance_percent": 0.05,
            "bucket_amount_width": 5.0,
            "batch_size": 500,
            "max_workers": 1,
            "weights": {
                "text": 0.6,
                "amount": 0.25,
                "date": 0.15,
            },
        },
        "input": {
            "encoding": "utf-8",
            "delimiter": ",",
            "date_format": None,
            "column_mappings": {
                "id": "id",
                "date": "date",
                "amount": "amount",
                "description": "description",
                "source": "source",
                "is_duplicate": "is_duplicate",
                "canonical_id": "canonical_id",
            },
        },
        "output": {
            "excel": {
                "filename_template": "dedupe_report_{date}_{time}.xlsx",
                "include_timestamp": True,
            },
            "sheets": {
                "summary": {"enabled": True, "name": "Summary"},
                "groups": {"enabled": True, "name": "Duplicate Groups"},
                "updates": {"enabled": True, "name": "Updates"},
            },
        },
        "scheduler": {
            "interval_minutes": 30.0,
        },
        "logging": {
            "level": "INFO",
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        },
    }


def load_config(config_path: Optional[Path] = None) -> DedupConfig:
    """
    Load configuration from a YAML file or use defaults.

    Args:
        config_path: Path to YAML configuration file (optional)

    Returns:
        DedupConfig object with loaded or default settings

    Raises:
        ConfigurationError: If the file is unreadable or any value is invalid
    """
    config_dict = get_default_config()

    if config_path and config_path.exists():
        logger.info(f"Loading configuration from: {config_path}")
        try:
            with open(config_path, "r") as f:
                user_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(user_config, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")

        config_dict = _deep_merge(config_dict, user_config)
        config_dict["config_file_path"] = str(config_path)
    else:
        logger.info("Using default configuration")

    return _validate(config_dict)


def apply_overrides(config: DedupConfig, **overrides: Any) -> DedupConfig:
    """
    Return a copy of ``config`` with engine settings overridden.

    ``None`` values are ignored so CLI options can be passed straight through.
    The result is re-validated, so an out-of-range override fails here.
    """
    values = {k: v for k, v in overrides.items() if v is not None}
    if not values:
        return config

    config_dict = config.model_dump()
    config_dict["dedup"].update(values)
    logger.debug(f"Applying configuration overrides: {values}")
    return _validate(config_dict)


def _validate(config_dict: dict[str, Any]) -> DedupConfig:
    try:
        return DedupConfig(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary to merge on top

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def generate_default_config(output_path: Path) -> None:
    """
    Generate a default configuration file.

    Args:
        output_path: Path to write the configuration file
    """
    config_dict = get_default_config()

    yaml_content = """# Transaction deduplication configuration
# Generated configuration file - customize as needed
#
# dedup.similarity_threshold       score needed to call two records duplicates
# dedup.soft_similarity_threshold  lower bar used by bulk clustering when dates are close
# dedup.date_window_days           max calendar-day distance between duplicates
# dedup.amount_tolerance           fixed amount slack for candidate selection
# dedup.amount_tolerance_percent   relative amount slack (0.05 = 5%)
# dedup.bucket_amount_width        amount band width for bulk clustering buckets
# dedup.batch_size                 records per bulk clustering batch

"""
    yaml_content += yaml.dump(config_dict, default_flow_style=False, sort_keys=False)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        f.write(yaml_content)

    logger.info(f"Generated configuration file: {output_path}")
