"""Settings loader.

Resolves the configuration file (explicit path or default locations),
applies environment overrides and turns validation problems into
:class:`~reelvault.shared.errors.InvalidConfigError`.
"""

from __future__ import annotations

import logging
from pathlib import Path

import toml
from pydantic import ValidationError

from reelvault.config.models.settings import Settings
from reelvault.shared.errors import (
    ErrorCode,
    ErrorContext,
    InvalidConfigError,
    create_config_error,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATHS = (
    Path("config/config.toml"),
    Path("config.toml"),
)


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from a TOML configuration file or the environment.

    Args:
        config_path: Optional path to a TOML file. If None, the default
            locations are tried before falling back to defaults.

    Returns:
        Validated Settings instance

    Raises:
        InvalidConfigError: If the file is missing, unparsable or invalid
    """
    candidates = [Path(config_path)] if config_path else [p for p in DEFAULT_CONFIG_PATHS if p.exists()]

    try:
        if candidates:
            settings = Settings.from_toml_file(candidates[0])
            logger.info("Configuration loaded from %s", candidates[0])
            return settings
        logger.debug("No configuration file found, using defaults")
        return Settings()
    except FileNotFoundError as e:
        raise InvalidConfigError(
            str(e),
            code=ErrorCode.CONFIG_FILE_NOT_FOUND,
            context=ErrorContext(operation="load_settings", file_path=str(config_path)),
            original_error=e,
        ) from e
    except (toml.TomlDecodeError, ValidationError) as e:
        raise create_config_error(
            f"Invalid configuration: {e}",
            operation="load_settings",
            original_error=e,
        ) from e
