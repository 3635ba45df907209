"""Runtime configuration for the CLI and the MCP server.

Reads settings from CLI args, environment variables, .env files, and YAML
config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    CMS_STORE_PATH: Workspace JSON file (optional, default: .cms_json_sync/workspace.json)
    CMS_COLLECTION: Default collection id or name (optional)
    CMS_CONFLICT_STRATEGY: interactive, update-all or skip-all (optional, default: interactive)
    CMS_DEBUG: Enable debug logging (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from .config_loader import discover_config_files, load_hierarchical_config
from .config_schema import DEFAULT_STORE_PATH, build_config, to_fallbacks
from .sync.resolver import CONFLICT_STRATEGIES

logger = logging.getLogger(__name__)


@dataclass
class Config:
    store_path: str = DEFAULT_STORE_PATH
    collection: str | None = None
    conflict_strategy: str = "interactive"
    export_indent: int = 2
    draft_key: str = ":draft"
    debug: bool = False
    log_file: str | None = None


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the store path is empty or a directory, or the
            conflict strategy is unknown.
    """
    config.store_path = config.store_path.strip()
    if not config.store_path:
        raise ValueError(
            "Store path cannot be empty. Set CMS_STORE_PATH environment variable."
        )
    if Path(config.store_path).expanduser().is_dir():
        raise ValueError(
            f"Invalid store path '{config.store_path}': must be a file, not a directory"
        )

    if config.conflict_strategy not in CONFLICT_STRATEGIES:
        raise ValueError(
            f"Invalid conflict strategy '{config.conflict_strategy}': "
            f"must be one of {', '.join(CONFLICT_STRATEGIES)}"
        )

    if config.collection is not None:
        config.collection = config.collection.strip() or None


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def load_config(
    store_path: str | None = None,
    collection: str | None = None,
    conflict_strategy: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        store_path: Override workspace file (CLI ``--store``).
        collection: Override default collection (CLI argument).
        conflict_strategy: Override conflict strategy (CLI ``--on-conflict``).
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flattened YAML values, see
            ``config_schema.to_fallbacks``.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a resolved value is invalid.
    """
    fb = yaml_fallbacks or {}

    final_store_path = (
        store_path
        or os.getenv("CMS_STORE_PATH")
        or fb.get("store_path")
        or DEFAULT_STORE_PATH
    )
    final_collection = (
        collection or os.getenv("CMS_COLLECTION") or fb.get("collection")
    )
    final_strategy = (
        conflict_strategy
        or os.getenv("CMS_CONFLICT_STRATEGY")
        or fb.get("conflict_strategy")
        or "interactive"
    )

    if debug:
        final_debug = True
    else:
        env_debug = _get_bool_env("CMS_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    config = Config(
        store_path=final_store_path,
        collection=final_collection,
        conflict_strategy=final_strategy.strip(),
        export_indent=int(fb.get("export_indent", 2)),
        draft_key=fb.get("draft_key") or ":draft",
        debug=final_debug,
        log_file=fb.get("log_file"),
    )

    validate_config(config)

    return config


def load_layered_config(
    overrides: dict | None = None,
) -> tuple[Config, list[str]]:
    """Merge YAML files, environment and CLI overrides into one ``Config``.

    The caller loads ``.env`` first so ``${VAR}`` interpolation in YAML and
    the env var lookups both see its values.

    Args:
        overrides: CLI values keyed by ``load_config`` argument name.

    Returns:
        The validated config and a description of the sources that were
        consulted, highest precedence last.

    Raises:
        ValueError: If a config file or a resolved value is invalid.
    """
    sources: list[str] = []
    yaml_fallbacks: dict | None = None

    config_files = discover_config_files()
    if config_files:
        try:
            unified = build_config(load_hierarchical_config())
        except ValidationError as e:
            raise ValueError(
                f"Invalid config file {config_files[0]}: {e.errors()[0]['msg']}"
            ) from e
        yaml_fallbacks = {
            k: v for k, v in to_fallbacks(unified).items() if v is not None
        }
        sources.append(f"config file: {config_files[0]}")

    sources.append("environment variables")
    overrides = overrides or {}
    if overrides:
        sources.append("CLI arguments")

    config = load_config(
        store_path=overrides.get("store_path"),
        collection=overrides.get("collection"),
        conflict_strategy=overrides.get("conflict_strategy"),
        debug=overrides.get("debug", False),
        yaml_fallbacks=yaml_fallbacks,
    )
    return config, sources
