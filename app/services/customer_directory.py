"""
CustomerDirectory: optional lookup of the customer's profile in the internal
user API (API_BASE_URL + API_TOKEN). The profile is attached to the
recommendation payload as extra context; any failure just means no profile.
"""

import logging
from typing import Optional

import requests

from app.config import Settings
from app.utils.helpers import UNKNOWN_EMAIL

logger = logging.getLogger(__name__)


class CustomerDirectory:

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.base_url = settings.api_base_url
        self.token = settings.api_token
        self.timeout = settings.intercom_timeout_seconds
        self._session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self.base_url and self.token)

    def dashboard_url(self, email: str) -> Optional[str]:
        if not self.base_url or not email or email == UNKNOWN_EMAIL:
            return None
        return requests.Request('GET', f"{self.base_url}/dashboard", params={'email': email}).prepare().url

    def find_by_email(self, email: str) -> Optional[dict]:
        """Returns the profile dict, or None if disabled, not found or on error."""
        if not self.enabled or not email or email == UNKNOWN_EMAIL:
            return None

        try:
            response = self._session.get(
                f"{self.base_url}/users",
                params={'email': email},
                headers={'X-Service-Token': self.token, 'Content-Type': 'application/json'},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("Customer directory unreachable: %s", e)
            return None

        if response.status_code == 404:
            logger.info("No customer profile found for %s", email)
            return None
        if not response.ok:
            logger.warning("Customer directory responded with status %s", response.status_code)
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning("Customer directory returned non-JSON body")
            return None

        # Some deployments wrap the record in a list
        if isinstance(data, list):
            data = data[0] if data else None
        return data if isinstance(data, dict) else None
