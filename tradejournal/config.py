"""Configuration loading for TradeJournal.

Settings live in a TOML file, by default
``~/.config/tradejournal/config.toml``. The ``TRADEJOURNAL_CONFIG``
environment variable points at an alternative file. A missing file is not
an error: every setting has a default.
"""

import os
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, ValidationError, field_validator

from tradejournal.errors import ConfigError

CONFIG_DIR = Path.home() / ".config" / "tradejournal"
DEFAULT_CONFIG_PATH = CONFIG_DIR / "config.toml"
DEFAULT_DB_PATH = CONFIG_DIR / "tradejournal.db"
CONFIG_ENV_VAR = "TRADEJOURNAL_CONFIG"


class JournalConfig(BaseModel):
    """Resolved application settings."""

    db_path: Path = Field(default=DEFAULT_DB_PATH, description="SQLite database file")
    owner: str = Field(default="default", min_length=1, description="Default journal account")
    reporting_timezone: str = Field(
        default="UTC", description="IANA timezone that defines calendar days"
    )
    default_multiplier: float = Field(default=1.0, gt=0, description="Fallback point value")
    multipliers: dict[str, float] = Field(
        default_factory=dict, description="Point value by symbol root"
    )

    model_config = {"frozen": True}

    @field_validator("db_path")
    @classmethod
    def _expand_path(cls, value: Path) -> Path:
        return Path(value).expanduser()

    @field_validator("reporting_timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.reporting_timezone)

    def multiplier_for(self, symbol: str) -> float:
        """Look up the contract point value for a symbol.

        Futures symbols carry a month/year suffix (``MNQU5``), so the
        longest configured root that prefixes the symbol wins.
        """
        symbol = symbol.upper()
        for root in sorted(self.multipliers, key=len, reverse=True):
            if symbol.startswith(root.upper()):
                return self.multipliers[root]
        return self.default_multiplier


def get_config_path() -> Path:
    """Return the configuration file path, honouring the environment override."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return DEFAULT_CONFIG_PATH


def load_config(path: Optional[Path] = None) -> JournalConfig:
    """Load configuration from a TOML file.

    Args:
        path: Explicit config file. Defaults to :func:`get_config_path`.

    Returns:
        Parsed configuration (defaults if the file does not exist).

    Raises:
        ConfigError: If the file exists but cannot be parsed.
    """
    import toml

    config_path = path or get_config_path()
    if not config_path.exists():
        return JournalConfig()

    try:
        raw = toml.load(config_path)
    except (toml.TomlDecodeError, OSError) as e:
        raise ConfigError(f"Failed to read {config_path}: {e}") from e

    journal = raw.get("journal", {})
    import_section = raw.get("import", {})

    values = {
        key: journal[key]
        for key in ("db_path", "owner", "reporting_timezone")
        if key in journal
    }
    if "default_multiplier" in import_section:
        values["default_multiplier"] = import_section["default_multiplier"]
    if "multipliers" in import_section:
        values["multipliers"] = import_section["multipliers"]

    try:
        return JournalConfig(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e
