"""Configuration management."""

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).parent.parent / "config"
DEFAULT_CONFIG_PATH = CONFIG_DIR / "config.yaml"


class Config(BaseModel):
    """Application configuration."""

    ledger_path: Path = Path("job_applications.csv")
    emails_path: Path = Path("emails.json")
    days_back: int = Field(7, ge=1)
    batch_size: int = Field(5, ge=1)
    rate_limit_delay: float = Field(1.0, ge=0.0)
    log_level: str = "INFO"
    model: str = "google/gemini-2.0-flash-001"
    api_url: str = "https://openrouter.ai/api/v1/chat/completions"
    request_timeout: int = 60
    max_content_chars: int = 1000
    gmail_query: str = ""
    spreadsheet_id: Optional[str] = None
    sheet_name: str = "Applications"
    high_confidence_threshold: float = Field(0.8, ge=0.0, le=1.0)


_config: Optional[Config] = None


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from YAML file.

    An explicitly given path must exist; when the default file is absent
    the built-in defaults are used.
    """
    global _config

    if _config is not None:
        return _config

    if config_path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            logger.debug(f"No config at {DEFAULT_CONFIG_PATH}, using defaults")
            _config = Config()
            return _config
        config_path = DEFAULT_CONFIG_PATH

    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}. "
            "Copy config/config.yaml.example to config/config.yaml and fill in your settings."
        )

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    _config = Config(**data)
    return _config


def get_config() -> Config:
    """Get the loaded configuration."""
    if _config is None:
        return load_config()
    return _config
