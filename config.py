"""
Configuration management for the missed-call relay.

Loads environment variables from .env file and provides typed access to
service-level settings. Relay wiring settings live in infra/config.py.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent / ".env"
load_dotenv(env_path)


class Config:
    """Service-level configuration."""

    # HTTP server
    PORT = int(os.getenv("PORT", "3000"))

    # Environment
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Operator routes (/followups/*); empty leaves them open
    ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "")

    @classmethod
    def log_level(cls) -> int:
        import logging
        return getattr(logging, cls.LOG_LEVEL.upper(), logging.INFO)
