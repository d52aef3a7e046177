"""
Configuration management with three-tier precedence system:
1. Default values from codebase
2. Environment variables from .env
3. Explicit overrides passed by the caller (HTTP options, constructor args)

Precedence: Explicit override > Environment Variables > Defaults
"""

import logging
import os
from typing import Any, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


class ConfigManager:
    """Manages configuration with three-tier precedence."""

    # Default values (Tier 1 - Codebase defaults)
    DEFAULTS = {
        "API_BASE_URL": "http://localhost:5001",
        "GOOGLE_API_KEY": "",
        "GOOGLE_APPLICATION_CREDENTIALS": "",
        "SPEECH_API_BASE_URL": "https://speech.googleapis.com/v1",
        "STORAGE_BUCKET": "audiomind-temp-storage",
        "OPENAI_API_KEY": "",
        "LLM_MODEL": "gpt-4o-mini",
        "LLM_API_BASE_URL": "",
        "MAX_CONCURRENT_JOBS": "2",
        "SESSIONS_DIR": "sessions",
        "LOG_LEVEL": "WARNING",
    }

    @staticmethod
    def get(key: str, override: Optional[Any] = None) -> Any:
        """
        Get configuration value with three-tier precedence.

        Args:
            key: Configuration key
            override: Explicit value (highest priority)

        Returns:
            Configuration value from highest priority source

        Priority:
            1. Explicit override (if provided and not empty)
            2. Environment variable
            3. Default value
        """
        value, _ = ConfigManager.get_display_value(key, override)
        return value

    @staticmethod
    def get_int(key: str, override: Optional[Any] = None) -> int:
        """Get a configuration value as an integer, falling back to the default on bad input."""
        value, source = ConfigManager.get_display_value(key, override)
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid integer for {key} from {source}: {value!r}, using default")
            return int(ConfigManager.DEFAULTS.get(key) or 0)

    @staticmethod
    def get_display_value(key: str, override: Optional[Any] = None) -> tuple[Any, str]:
        """
        Get configuration value and its source.

        Returns:
            Tuple of (value, source) where source is 'override', 'env', or 'default'
        """
        if override is not None and override != "":
            return override, "override"

        env_value = os.getenv(key)
        if env_value is not None and env_value != "":
            return env_value, "env"

        default_value = ConfigManager.DEFAULTS.get(key, "")
        return default_value, "default"

    @staticmethod
    def is_using_default(key: str, override: Optional[Any] = None) -> bool:
        """Check if configuration is using default value."""
        _, source = ConfigManager.get_display_value(key, override)
        return source == "default"
