from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env file from the project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DEFAULT_AZURE_API_VERSION = "2024-02-15-preview"


@dataclass(frozen=True)
class ServerConfig:
    provider: str
    default_model: str
    azure_endpoint: str
    azure_deployment: str
    azure_api_version: str
    log_level: str


def load_config() -> ServerConfig:
    """Read server configuration from the environment (and ``.env``)."""
    return ServerConfig(
        provider=os.getenv("AI_PROVIDER", "openai"),
        default_model=os.getenv("DEFAULT_MODEL", "gpt-4o"),
        azure_endpoint=os.getenv("AZURE_OPENAI_ENDPOINT", ""),
        azure_deployment=os.getenv("AZURE_OPENAI_DEPLOYMENT", ""),
        azure_api_version=os.getenv("AZURE_OPENAI_API_VERSION", DEFAULT_AZURE_API_VERSION),
        log_level=os.getenv("DOCSTOFIELDS_LOG_LEVEL", "INFO"),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
