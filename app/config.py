"""
Settings: environment-driven configuration for the Canvas relay.
Values are read once at startup; missing required values degrade
/initialize to a configuration message instead of crashing the process.
"""

import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_INTERCOM_API_BASE_URL = "https://api.intercom.io"
DEFAULT_INTERCOM_API_VERSION = "2.11"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid value for %s: %r, using default %s", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid value for %s: %r, using default %s", name, raw, default)
        return default


@dataclass(frozen=True)
class Settings:
    intercom_access_token: Optional[str] = None
    intercom_client_secret: Optional[str] = None
    intercom_api_base_url: str = DEFAULT_INTERCOM_API_BASE_URL
    intercom_api_version: str = DEFAULT_INTERCOM_API_VERSION
    automation_webhook_url: Optional[str] = None

    # Optional customer directory (X-Service-Token API)
    api_token: Optional[str] = None
    api_base_url: Optional[str] = None

    recommendation_timeout_seconds: float = 30.0
    recommendation_max_workers: int = 8
    intercom_timeout_seconds: float = 15.0
    result_ttl_seconds: float = 300.0
    port: int = 3000

    @classmethod
    def from_env(cls) -> "Settings":
        port_raw = os.getenv("PORT", "3000")
        try:
            port = int(port_raw)
        except ValueError:
            logger.warning("Invalid PORT %r, using 3000", port_raw)
            port = 3000

        return cls(
            intercom_access_token=os.getenv("INTERCOM_ACCESS_TOKEN") or None,
            intercom_client_secret=os.getenv("INTERCOM_CLIENT_SECRET") or None,
            intercom_api_base_url=(os.getenv("INTERCOM_API_BASE_URL") or DEFAULT_INTERCOM_API_BASE_URL).rstrip("/"),
            intercom_api_version=os.getenv("INTERCOM_API_VERSION") or DEFAULT_INTERCOM_API_VERSION,
            automation_webhook_url=os.getenv("AUTOMATION_WEBHOOK_URL") or None,
            api_token=os.getenv("API_TOKEN") or None,
            api_base_url=(os.getenv("API_BASE_URL") or "").rstrip("/") or None,
            recommendation_timeout_seconds=_env_float("RECOMMENDATION_TIMEOUT_SECONDS", 30.0),
            recommendation_max_workers=max(1, _env_int("RECOMMENDATION_MAX_WORKERS", 8)),
            intercom_timeout_seconds=_env_float("INTERCOM_TIMEOUT_SECONDS", 15.0),
            result_ttl_seconds=_env_float("RESULT_TTL_SECONDS", 300.0),
            port=port,
        )

    def missing_for_initialize(self) -> List[str]:
        """Names of the env vars /initialize cannot work without."""
        missing = []
        if not self.intercom_access_token:
            missing.append("INTERCOM_ACCESS_TOKEN")
        if not self.automation_webhook_url:
            missing.append("AUTOMATION_WEBHOOK_URL")
        return missing

    @property
    def customer_directory_enabled(self) -> bool:
        return bool(self.api_token and self.api_base_url)

    def log_summary(self) -> None:
        """Logs which integrations are configured, never the secrets themselves."""
        logger.info("Intercom API: %s", self.intercom_api_base_url)
        logger.info("Intercom token: %s", "Configured" if self.intercom_access_token else "Not configured")
        logger.info("Signature secret: %s", "Configured" if self.intercom_client_secret else "Not configured (verification skipped)")
        logger.info("Automation webhook: %s", "Configured" if self.automation_webhook_url else "Not configured")
        logger.info("Customer directory: %s", self.api_base_url or "Not configured")
