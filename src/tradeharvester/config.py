from dataclasses import dataclass, field, is_dataclass
from pathlib import Path
import tomllib
from typing import Any, ClassVar, TypeVar

from loguru import logger

# --- Constants ---
APP_NAME = "tradeharvester"

# Looked up in the working directory when no explicit path is given.
CONFIG_FILE = Path(f"{APP_NAME}.toml")

# --- Dataclass Models for Settings ---
T = TypeVar("T")


@dataclass
class GeneralSettings:
    """Logging settings."""

    log_level_console: str = "INFO"
    log_level_file: str = "DEBUG"
    log_directory: str | None = None


@dataclass
class HarvestSettings:
    """Which pairs to harvest and how each worker walks its cursor."""

    symbols: list[str] = field(
        default_factory=lambda: ["ETHUSDC", "ETHUSDT", "ETHBTC"]
    )
    start_id: int = 0
    page_size: int = 1000
    error_backoff_seconds: float = 5.0
    # None runs every symbol at once.
    max_concurrent_symbols: int | None = None


@dataclass
class SourceSettings:
    """Settings for the upstream trade-history endpoint."""

    endpoint: str = "https://api.binance.com/api/v3/aggTrades"
    timeout_seconds: float = 10.0


@dataclass
class BudgetSettings:
    """Settings for the shared request budget."""

    # 6000 request weight per minute / 4 weight per aggTrades call.
    max_requests_per_minute: int = 1499
    window_seconds: float = 61.0


@dataclass
class PersistenceSettings:
    """Settings for CSV partition output."""

    output_directory: str = "."


@dataclass
class Settings:
    """Root container for all application settings."""

    general: GeneralSettings = field(default_factory=GeneralSettings)
    harvest: HarvestSettings = field(default_factory=HarvestSettings)
    source: SourceSettings = field(default_factory=SourceSettings)
    budget: BudgetSettings = field(default_factory=BudgetSettings)
    persistence: PersistenceSettings = field(default_factory=PersistenceSettings)

    _instance: ClassVar["Settings | None"] = None

    @classmethod
    def get_instance(cls) -> "Settings":
        """Returns the process-wide Settings, loading them on first use."""
        if cls._instance is None:
            cls._instance = load_config()
        return cls._instance


def _update_dataclass(dc_instance: T, data: dict[str, Any]) -> T:
    """Recursively updates a dataclass instance from a dictionary."""
    for f in field_names(dc_instance):
        if f in data:
            field_value = getattr(dc_instance, f)
            if is_dataclass(field_value):
                if isinstance(data[f], dict):
                    _update_dataclass(field_value, data[f])
                else:
                    logger.warning(f"Ignoring non-table value for section '{f}'.")
            else:
                setattr(dc_instance, f, data[f])
    return dc_instance


def field_names(dc_instance: Any) -> list[str]:
    """Helper to get field names from a dataclass instance."""
    return [f.name for f in dc_instance.__dataclass_fields__.values()]


def load_config(path: Path = CONFIG_FILE) -> Settings:
    """Loads settings from a TOML file, merging them over the defaults.

    A missing or unreadable file is not an error: the defaults are used.

    Args:
        path: The path to the configuration file.

    Returns:
        A populated Settings object.
    """
    settings_obj = Settings()
    logger.info(f"Loading configuration from '{path}'...")

    if not path.exists():
        logger.warning(f"Configuration file '{path}' not found. Using defaults.")
        return settings_obj

    try:
        with path.open("rb") as f:
            user_config = tomllib.load(f)
        _update_dataclass(settings_obj, user_config)
        logger.success("Successfully loaded user configuration.")
    except tomllib.TOMLDecodeError as e:
        logger.error(f"Error decoding TOML from '{path}': {e}")
        logger.warning("Using default settings due to configuration error.")
        settings_obj = Settings()
    except OSError as e:
        logger.error(f"Could not read configuration file '{path}': {e}")
        logger.warning("Using default settings due to configuration error.")
        settings_obj = Settings()

    return settings_obj
