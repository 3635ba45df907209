"""Configuration schema for cms_json_sync.

Pydantic models for the YAML config file, one per section, plus the adapter
that flattens them into the runtime ``Config`` dataclass.

Usage:
    from cms_json_sync.config_loader import load_hierarchical_config
    from cms_json_sync.config_schema import build_config, to_fallbacks

    unified = build_config(load_hierarchical_config())
    config = load_config(yaml_fallbacks=to_fallbacks(unified))
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ConflictStrategy = Literal["interactive", "update-all", "skip-all"]

DEFAULT_STORE_PATH = ".cms_json_sync/workspace.json"


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class StoreConfig(BaseModel):
    """Where collections are read from and written to."""

    path: str = Field(
        default=DEFAULT_STORE_PATH, description="Workspace JSON file"
    )
    default_collection: str | None = Field(
        default=None,
        description="Collection id or name used when none is given",
    )

    model_config = {"frozen": True}


class ImportConfig(BaseModel):
    """Import behaviour."""

    conflict_strategy: ConflictStrategy = Field(
        default="interactive",
        description="How records whose slug already exists are handled",
    )

    model_config = {"frozen": True}


class ExportConfig(BaseModel):
    """Export output formatting."""

    indent: int = Field(default=2, ge=0, le=8, description="JSON indentation")
    draft_key: str = Field(
        default=":draft",
        min_length=1,
        description="Key marking draft items in exported records",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Every config section; ``UnifiedConfig()`` alone is a valid config.

    ``import`` is a keyword, so that section is the ``import_`` attribute
    and keeps ``import`` as its YAML key.
    """

    store: StoreConfig = Field(default_factory=StoreConfig)
    import_: ImportConfig = Field(default_factory=ImportConfig, alias="import")
    export: ExportConfig = Field(default_factory=ExportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True, "populate_by_name": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Validate the merged YAML dict; absent sections take their defaults.

    Raises:
        pydantic.ValidationError: If a section holds invalid values.
    """
    if not raw_data:
        return UnifiedConfig()
    return UnifiedConfig.model_validate(raw_data)


def to_fallbacks(unified: UnifiedConfig) -> dict:
    """Flatten *unified* into the ``yaml_fallbacks`` dict of ``load_config``."""
    return {
        "store_path": unified.store.path,
        "collection": unified.store.default_collection,
        "conflict_strategy": unified.import_.conflict_strategy,
        "export_indent": unified.export.indent,
        "draft_key": unified.export.draft_key,
        "debug": unified.logging.level.upper() == "DEBUG",
        "log_file": unified.logging.file,
    }
