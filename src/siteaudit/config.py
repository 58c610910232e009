from dotenv import load_dotenv
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import json
import os

from siteaudit.constants import (
    DEFAULT_CRAWL_DELAY_MS,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_PAGES_TO_CRAWL,
    DEFAULT_MAX_RETRIES,
    NAVIGATION_TIMEOUT_MS,
    NETWORK_IDLE_TIMEOUT_MS,
)

load_dotenv()  # Loads variables from .env file


class Settings:
    """
    Manages application settings loaded from environment variables.
    """
    LOG_LEVEL = os.getenv("SITEAUDIT_LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("SITEAUDIT_LOG_FILE")
    LIGHTHOUSE_BINARY = os.getenv("SITEAUDIT_LIGHTHOUSE_BINARY", "lighthouse")


settings = Settings()


@dataclass
class CrawlConfig:
    """Configuration for a single crawl."""
    max_depth: int = DEFAULT_MAX_DEPTH
    max_pages: int = DEFAULT_MAX_PAGES_TO_CRAWL
    headless: bool = True
    navigation_timeout_ms: int = NAVIGATION_TIMEOUT_MS
    network_idle_timeout_ms: int = NETWORK_IDLE_TIMEOUT_MS
    default_crawl_delay_ms: int = DEFAULT_CRAWL_DELAY_MS
    max_retries: int = DEFAULT_MAX_RETRIES
    user_agent: Optional[str] = None

    @classmethod
    def from_env(cls) -> "CrawlConfig":
        """Load configuration from environment variables.

        Environment variables are prefixed with SITEAUDIT_,
        e.g. SITEAUDIT_MAX_PAGES=100. Values that fail to convert
        keep their default.

        Returns:
            CrawlConfig with values from environment
        """
        config = cls()
        prefix = "SITEAUDIT_"

        for field_name in config.__dataclass_fields__:
            env_value = os.getenv(f"{prefix}{field_name.upper()}")
            if env_value is None:
                continue

            field_type = config.__dataclass_fields__[field_name].type
            try:
                if field_type in (int, "int"):
                    setattr(config, field_name, int(env_value))
                elif field_type in (bool, "bool"):
                    setattr(config, field_name, env_value.strip().lower() in ("1", "true", "yes", "on"))
                else:
                    setattr(config, field_name, env_value)
            except ValueError:
                pass  # Keep default if conversion fails

        return config

    @classmethod
    def from_file(cls, path: str) -> "CrawlConfig":
        """Load crawl configuration from a JSON file.

        Args:
            path: Path to JSON configuration file

        Returns:
            CrawlConfig with values from file (defaults when the file is missing)
        """
        config = cls()
        file_path = Path(path)

        if not file_path.exists():
            return config

        with open(file_path, 'r') as f:
            data = json.load(f)

        crawl_data = data.get('crawl', data)
        for field_name in config.__dataclass_fields__:
            if field_name in crawl_data:
                setattr(config, field_name, crawl_data[field_name])

        return config

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return {
            field_name: getattr(self, field_name)
            for field_name in self.__dataclass_fields__
        }
