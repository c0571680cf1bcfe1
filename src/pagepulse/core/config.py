# src/pagepulse/core/config.py
"""
Configuration schema and loading for the pagepulse collector.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

import os
import re
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, Field, field_validator

logger = structlog.get_logger(__name__)

DEFAULT_ENDPOINT = "https://collect.pagepulse.dev"


class CollectorSettings(BaseModel):
    """Collector configuration supplied at construction.

    Example YAML:
        endpoint: https://collect.example.com/
        domain_id: ${PAGEPULSE_SITE:-marketing-site}
        batch_size: 20
        batch_interval: 5000
        debug: false
    """

    model_config = {"frozen": True, "extra": "forbid"}

    endpoint: str = Field(
        default=DEFAULT_ENDPOINT,
        description="Collection endpoint base URL (trailing slash stripped)",
    )
    domain_id: str | None = Field(
        default=None,
        description="Opaque tenant/site id. The collector only auto-starts when set.",
    )
    batch_size: int = Field(
        default=10,
        gt=0,
        description="Queue length that triggers a flush, and the maximum events per confirmable batch",
    )
    batch_interval: int = Field(
        default=5000,
        gt=0,
        description="Timer flush interval in milliseconds",
    )
    debug: bool = Field(
        default=False,
        description="Log every tracked event at DEBUG",
    )
    request_timeout: float = Field(
        default=10.0,
        gt=0,
        description="HTTP timeout in seconds for collect, beacon and probe requests",
    )
    command_buffer_size: int = Field(
        default=100,
        gt=0,
        description="Commands held before the collector starts; oldest dropped beyond this",
    )

    @field_validator("endpoint")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize endpoint so path joins never produce '//'."""
        v = v.strip().rstrip("/")
        if not v:
            raise ValueError("endpoint must not be empty")
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"endpoint must be an http(s) URL, got {v!r}")
        return v

    @field_validator("domain_id")
    @classmethod
    def blank_domain_is_none(cls, v: str | None) -> str | None:
        """Treat an empty domain id like a missing one."""
        if v is not None and not v.strip():
            return None
        return v

    @property
    def collect_url(self) -> str:
        """Delivery URL for event batches."""
        return f"{self.endpoint}/collect"

    @property
    def beacon_url(self) -> str:
        """Connection-probe URL."""
        return f"{self.endpoint}/beacon"

    @property
    def batch_interval_seconds(self) -> float:
        """Timer interval converted to seconds."""
        return self.batch_interval / 1000.0


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")

_ENV_PREFIX = "PAGEPULSE"


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Expand ${VAR} and ${VAR:-default} patterns in string values.

    Settings are flat, so only top-level strings are expanded. Other
    values pass through unchanged.
    """

    def replacer(match: re.Match[str]) -> str:
        env_value = os.environ.get(match.group(1))
        if env_value is not None:
            return env_value
        if match.group(2) is not None:
            return match.group(2)
        # No env var and no default - keep original (validation will complain)
        return match.group(0)

    return {k: _ENV_VAR_PATTERN.sub(replacer, v) if isinstance(v, str) else v for k, v in config.items()}


def _drop_unrelated_env_keys(config: dict[str, Any]) -> dict[str, Any]:
    """Remove keys that only exist because a PAGEPULSE_* variable is set.

    Variables such as PAGEPULSE_SITE are free for use in ${VAR}
    references. Unknown keys from the settings file are kept so that
    validation still rejects them.
    """
    kept: dict[str, Any] = {}
    for key, value in config.items():
        if key not in CollectorSettings.model_fields and f"{_ENV_PREFIX}_{key.upper()}" in os.environ:
            logger.debug("Ignoring environment variable with no matching setting", variable=f"{_ENV_PREFIX}_{key.upper()}")
            continue
        kept[key] = value
    return kept


def load_settings(config_path: Path) -> CollectorSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (PAGEPULSE_*) - highest priority
    2. Config file
    3. Defaults from the Pydantic schema - lowest priority

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated CollectorSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix=_ENV_PREFIX,
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys; filter out its internal settings
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}

    raw_config = _expand_env_vars(_drop_unrelated_env_keys(raw_config))

    return CollectorSettings(**raw_config)
