"""Configuration loading and validation for the contribution ledger."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from mkoba_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

DATABASE_URL_ENV = "MKOBA_DATABASE_URL"
DEFAULT_DATABASE_URL = "sqlite:///mkoba_ledger.db"


class ConfigError(Exception):
    """Exception raised for configuration errors."""

    pass


@dataclass
class StoreConfig:
    """Configuration for the persistence backend.

    Attributes:
        url: SQLAlchemy database URL.
        timeout_seconds: Upper bound on every store call.
    """

    url: str = DEFAULT_DATABASE_URL
    timeout_seconds: float = 10.0

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "StoreConfig":
        """Create from dictionary."""
        timeout = float(data.get("timeout_seconds", 10.0))  # type: ignore[arg-type]
        if timeout <= 0:
            raise ConfigError(f"store.timeout_seconds must be positive, got {timeout}")
        return cls(
            url=str(data.get("url", DEFAULT_DATABASE_URL)),
            timeout_seconds=timeout,
        )


@dataclass
class OutputConfig:
    """Configuration for exports and on-screen amounts.

    Attributes:
        currency_symbol: Prefix for money formats in the workbook.
        decimal_places: Number of decimal places shown.
        sheet_name: Worksheet name in the exported workbook.
        spreadsheet_name: File name of the workbook export.
        document_name: File name of the PDF export.
        title: Heading printed on the PDF export.
    """

    currency_symbol: str = ""
    decimal_places: int = 0
    sheet_name: str = "Payments"
    spreadsheet_name: str = "MKoba_Payments.xlsx"
    document_name: str = "MKoba_Payments.pdf"
    title: str = "Payments Ledger"

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "OutputConfig":
        """Create from dictionary."""
        decimal_places = int(data.get("decimal_places", 0))  # type: ignore[arg-type]
        if decimal_places < 0:
            raise ConfigError(f"output.decimal_places must not be negative, got {decimal_places}")
        return cls(
            currency_symbol=str(data.get("currency_symbol", "")),
            decimal_places=decimal_places,
            sheet_name=str(data.get("sheet_name", "Payments"))[:31],
            spreadsheet_name=str(data.get("spreadsheet_name", "MKoba_Payments.xlsx")),
            document_name=str(data.get("document_name", "MKoba_Payments.pdf")),
            title=str(data.get("title", "Payments Ledger")),
        )


@dataclass
class LoggingConfig:
    """Configuration for logging.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Path to log file.
    """

    level: str = "INFO"
    file: str = "mkoba_ledger.log"

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "LoggingConfig":
        """Create from dictionary."""
        return cls(
            level=str(data.get("level", "INFO")),
            file=str(data.get("file", "mkoba_ledger.log")),
        )


@dataclass
class Config:
    """Main configuration container."""

    store: StoreConfig = field(default_factory=StoreConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_yaml_file(path: Path) -> dict[str, object]:
    """Load a YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content (empty dict for an empty file).

    Raises:
        FileNotFoundError: If file doesn't exist.
        ConfigError: If the file is not a YAML mapping.
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        try:
            content = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(content).__name__}")
    return content


def _section(data: dict[str, object], name: str) -> dict[str, object]:
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping, got {type(section).__name__}")
    return section


def load_config(
    settings_path: Optional[Path] = None,
    config_dir: Optional[Path] = None,
    database_url: Optional[str] = None,
) -> Config:
    """Load configuration from settings.yaml and the environment.

    Precedence for the database URL: ``database_url`` argument, then the
    ``MKOBA_DATABASE_URL`` environment variable, then the file, then the default.

    Args:
        settings_path: Path to settings.yaml (or None to use default).
        config_dir: Base config directory (default: ./config).
        database_url: Explicit database URL override.

    Returns:
        Complete Config object.
    """
    if config_dir is None:
        config_dir = Path("config")
    if settings_path is None:
        settings_path = config_dir / "settings.yaml"

    config = Config()

    if settings_path.exists():
        data = load_yaml_file(settings_path)
        config.store = StoreConfig.from_dict(_section(data, "store"))
        config.output = OutputConfig.from_dict(_section(data, "output"))
        config.logging = LoggingConfig.from_dict(_section(data, "logging"))
        logger.info(f"Loaded settings from {settings_path}")
    else:
        logger.warning(f"Settings file not found: {settings_path}, using defaults")

    env_url = os.environ.get(DATABASE_URL_ENV)
    if database_url:
        config.store.url = database_url
    elif env_url:
        config.store.url = env_url
        logger.debug(f"Database URL taken from {DATABASE_URL_ENV}")

    return config
