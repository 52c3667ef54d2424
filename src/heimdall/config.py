"""
# Configuration Management Module

This module provides the **configuration system** for the Heimdall data-access layer.
Built on **Pydantic Settings**, it loads values from environment variables and an optional
configuration file, validates them at startup and exposes a single `settings` instance.

## Configuration Loading Hierarchy

```
┌─────────────────────────────────────────────────────────────┐
│  1. Environment Variables (HIGHEST PRIORITY)                │
├─────────────────────────────────────────────────────────────┤
│  2. HEIMDALL_CONFIG_PATH (custom config file)               │
├─────────────────────────────────────────────────────────────┤
│  3. .heimdall file (project root)                           │
├─────────────────────────────────────────────────────────────┤
│  4. .env file (project root)                                │
├─────────────────────────────────────────────────────────────┤
│  5. Default values (LOWEST PRIORITY)                        │
└─────────────────────────────────────────────────────────────┘
```

If no configuration file is found the application runs in **environment-only mode**.

## Configuration Groups

- **MongoDB**: connection URL, database name, credentials, timeouts and pool sizes.
- **Logging**: default log level and line format consumed by `managers.logging_manager`.
- **Maintenance**: toggles and intervals for the background sweeps that publish due
  scheduled content and release expired account locks.

## Usage Example

```python
from heimdall.config import settings

print(settings.MONGODB_DATABASE)
if settings.is_production:
    ...
```

## Module Attributes

Attributes:
    HEIMDALL_FILENAME (str): Name of the primary config file (`.heimdall`).
    DEFAULT_ENV_FILENAME (str): Name of the fallback dotenv file (`.env`).
    CONFIG_ENV_VAR (str): Environment variable pointing at a custom config file.
    PROJECT_ROOT (Path): Repository root used for config file discovery.
    CONFIG_PATH (Optional[str]): The config file actually loaded, if any.
    settings (Settings): Global settings instance.
"""

import os
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Constants ---
HEIMDALL_FILENAME: str = ".heimdall"
DEFAULT_ENV_FILENAME: str = ".env"
CONFIG_ENV_VAR: str = "HEIMDALL_CONFIG_PATH"
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent.parent
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET")


# --- Config file discovery (no logging) ---
def get_config_path() -> Optional[str]:
    """
    Determines the configuration file path based on a predefined precedence order.

    This function checks for the existence of configuration files in the following order:
    1.  **Environment Variable**: `HEIMDALL_CONFIG_PATH` (if set and file exists).
    2.  **Heimdall Config**: `.heimdall` file in the project root directory.
    3.  **Dotenv Config**: `.env` file in the project root directory.
    4.  **Fallback**: Returns `None` if no file is found, triggering environment-variable-only mode.

    Returns:
        Optional[str]: The absolute path to the configuration file, or `None` if not found.
    """
    env_path: Optional[str] = os.environ.get(CONFIG_ENV_VAR)
    if env_path and os.path.exists(env_path):
        return env_path
    heimdall_path: Path = PROJECT_ROOT / HEIMDALL_FILENAME
    if heimdall_path.exists():
        return str(heimdall_path)
    env_path_file: Path = PROJECT_ROOT / DEFAULT_ENV_FILENAME
    if env_path_file.exists():
        return str(env_path_file)
    return None


CONFIG_PATH: Optional[str] = get_config_path()
if CONFIG_PATH:
    load_dotenv(dotenv_path=CONFIG_PATH, override=True)


class Settings(BaseSettings):
    """
    Application configuration settings model.

    **Configuration Groups:**
    *   **Database**: MongoDB connection details and pool sizing.
    *   **Logging**: Level and format of the application loggers.
    *   **Maintenance**: Background sweep toggles and intervals.

    **Validation:**
    The MongoDB URL must not be empty, numeric settings must be positive and the log level
    must be one of the standard `logging` level names.
    """

    model_config = SettingsConfigDict(
        env_file=CONFIG_PATH if CONFIG_PATH else None,
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",
    )

    DEBUG: bool = True

    # MongoDB configuration
    MONGODB_URL: str = "mongodb://127.0.0.1:27017"
    MONGODB_DATABASE: str = "heimdall"
    MONGODB_CONNECTION_TIMEOUT: int = 10000
    MONGODB_SERVER_SELECTION_TIMEOUT: int = 5000
    MONGODB_MAX_POOL_SIZE: int = 50
    MONGODB_MIN_POOL_SIZE: int = 5

    # Authentication (optional)
    MONGODB_USERNAME: Optional[str] = None
    MONGODB_PASSWORD: Optional[SecretStr] = None

    # Logging configuration
    DEFAULT_LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

    # Maintenance sweeps
    MAINTENANCE_ENABLED: bool = True
    SCHEDULED_PUBLISH_INTERVAL_SECONDS: int = 60
    LOCK_SWEEP_INTERVAL_SECONDS: int = 300

    @field_validator("MONGODB_URL", mode="before")
    @classmethod
    def no_empty_urls(cls, v: Any, info: Any) -> Any:
        """
        Validates that the MongoDB URL is not empty.

        Raises:
            ValueError: If the URL is empty or whitespace.
        """
        if not v or not str(v).strip():
            raise ValueError(f"{info.field_name} must be set via environment or .heimdall and not empty!")
        return v

    @field_validator(
        "MONGODB_CONNECTION_TIMEOUT",
        "MONGODB_SERVER_SELECTION_TIMEOUT",
        "MONGODB_MAX_POOL_SIZE",
        "SCHEDULED_PUBLISH_INTERVAL_SECONDS",
        "LOCK_SWEEP_INTERVAL_SECONDS",
        mode="before",
    )
    @classmethod
    def validate_positive_integers(cls, v: Any, info: Any) -> int:
        """
        Validates that numeric settings are positive integers.

        Raises:
            ValueError: If the value is not a positive integer.
        """
        value = int(v)
        if value <= 0:
            raise ValueError(f"{info.field_name} must be a positive integer")
        return value

    @field_validator("DEFAULT_LOG_LEVEL", mode="before")
    @classmethod
    def validate_log_level(cls, v: Any) -> str:
        level = str(v).upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"DEFAULT_LOG_LEVEL must be a standard logging level, got {v!r}")
        return level

    @property
    def is_production(self) -> bool:
        """
        Determine if the application is running in production mode.

        Returns:
            `bool`: `True` if running in production (`DEBUG=False`), `False` otherwise.
        """
        return not self.DEBUG


# Global settings instance
settings: Settings = Settings()
