"""
Pydantic settings schema for the QMS inspection core.

config/settings.yaml conforms to this model. Every field has a default,
so an empty mapping is a valid (if minimal) configuration.
"""

from __future__ import annotations

import logging
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from qms.inspection.backends import DEFAULT_STORAGE_KEY
from qms.reporting.generator import DEFAULT_DATETIME_FORMAT, DEFAULT_TITLE


class StorageConfig(BaseModel):
    """Where and how the record set is persisted."""
    data_path: str = Field(
        "data/inspections.json",
        description="JSON file holding the record set (relative to the working dir)",
    )
    storage_key: str = Field(
        DEFAULT_STORAGE_KEY,
        min_length=1,
        description="Top-level key the record list is stored under",
    )
    seed_sample_data: bool = Field(
        True, description="Seed two demo inspections into an empty store"
    )


class ReportingConfig(BaseModel):
    """Presentation of exported artifacts."""
    title: str = DEFAULT_TITLE
    datetime_format: str = Field(
        DEFAULT_DATETIME_FORMAT,
        description="strftime pattern for timestamps in CSV and HTML reports",
    )
    recent_limit: int = Field(3, ge=1, le=50)

    @field_validator("datetime_format")
    @classmethod
    def validate_datetime_format(cls, v: str) -> str:
        try:
            datetime(2024, 1, 2, 3, 4, 5).strftime(v)
        except ValueError as e:
            raise ValueError(f"invalid strftime pattern {v!r}: {e}") from e
        return v


class LoggingConfig(BaseModel):
    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v = v.upper()
        if not isinstance(logging.getLevelName(v), int):
            raise ValueError(f"unknown log level {v!r}")
        return v


class QMSSettings(BaseModel):
    """Top-level settings object."""
    storage: StorageConfig = Field(default_factory=StorageConfig)
    reporting: ReportingConfig = Field(default_factory=ReportingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
