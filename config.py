"""
Configuration management for the WhatsApp bridge.

Loads environment variables from .env file and provides typed access to configuration.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent / ".env"
load_dotenv(env_path)

logger = logging.getLogger(__name__)

DEFAULT_WEBHOOK_URL = "http://localhost:8080/webhook/whatsapp"


def _optional_float(name: str) -> Optional[float]:
    value = os.getenv(name, "").strip()
    return float(value) if value else None


@dataclass
class BridgeConfig:
    """Configuration for the WhatsApp bridge."""

    # HTTP surface
    host: str
    port: int

    # Backend webhook
    webhook_url: str
    webhook_timeout: Optional[float]  # None = no timeout

    # Messaging session
    auth_folder: str
    provider: str  # "package.module:attribute"
    browser_name: str

    # Reconnect backoff (seconds)
    reconnect_base_delay: float
    reconnect_max_delay: float

    log_level: str

    @classmethod
    def from_env(cls) -> "BridgeConfig":
        """Load configuration from environment variables."""
        return cls(
            host=os.getenv("BRIDGE_HOST", "0.0.0.0"),
            port=int(os.getenv("BRIDGE_PORT", "3000")),
            webhook_url=os.getenv("BACKEND_WEBHOOK_URL", DEFAULT_WEBHOOK_URL),
            webhook_timeout=_optional_float("WEBHOOK_TIMEOUT_SECONDS"),
            auth_folder=os.getenv("AUTH_FOLDER", "auth_info"),
            provider=os.getenv("WHATSAPP_PROVIDER", ""),
            browser_name=os.getenv("BROWSER_NAME", "Clario"),
            reconnect_base_delay=float(os.getenv("RECONNECT_BASE_DELAY", "5")),
            reconnect_max_delay=float(os.getenv("RECONNECT_MAX_DELAY", "60")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    @property
    def browser(self) -> tuple[str, str, str]:
        """Browser identity shown under Linked Devices."""
        return (self.browser_name, "Chrome", "22.04.4")

    def validate(self) -> bool:
        """Validate that required configuration is set."""
        required = ["provider"]
        missing = [key for key in required if not getattr(self, key)]

        if missing:
            logger.warning(
                f"Missing required configuration: {', '.join(missing)} "
                f"(set WHATSAPP_PROVIDER in .env)"
            )
            return False

        return True


def get_config() -> BridgeConfig:
    """Build configuration from the current environment."""
    return BridgeConfig.from_env()


if __name__ == "__main__":
    config = get_config()
    print("Configuration loaded:")
    print(f"  Port: {config.port}")
    print(f"  Webhook URL: {config.webhook_url}")
    print(f"  Auth folder: {config.auth_folder}")
    print(f"  Provider: {config.provider or '✗ Missing'}")
    print(f"\n  Validation: {'✓ PASSED' if config.validate() else '✗ FAILED'}")
