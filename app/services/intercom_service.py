import logging
from typing import Optional

import requests

from app.config import Settings
from app.exceptions import RemoteFetchError

logger = logging.getLogger(__name__)


class IntercomService:
    """
    Client for the Intercom conversations REST API.
    Only the single-conversation lookup is needed by the Canvas flow.
    """

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.base_url = settings.intercom_api_base_url
        self.token = settings.intercom_access_token
        self.api_version = settings.intercom_api_version
        self.timeout = settings.intercom_timeout_seconds
        self._session = session or requests.Session()

        if not self.token:
            logger.warning("INTERCOM_ACCESS_TOKEN not found in env")

    def _headers(self) -> dict:
        return {
            'Authorization': f'Bearer {self.token}',
            'Intercom-Version': self.api_version,
            'Accept': 'application/json',
        }

    def get_conversation(self, conversation_id: str) -> dict:
        """
        Fetches the full conversation (state, timestamps, source, conversation_parts).
        Raises RemoteFetchError on non-2xx status or network failure.
        """
        url = f"{self.base_url}/conversations/{conversation_id}"

        logger.info("Fetching Intercom conversation %s...", conversation_id)
        try:
            response = self._session.get(url, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Intercom request failed for conversation %s: %s", conversation_id, e)
            raise RemoteFetchError(None, str(e)) from e

        if not response.ok:
            body = response.text[:500]
            logger.error("Intercom API responded %s for conversation %s: %s", response.status_code, conversation_id, body)
            raise RemoteFetchError(response.status_code, body)

        try:
            data = response.json()
        except ValueError as e:
            raise RemoteFetchError(response.status_code, f"Invalid JSON from conversation API: {e}") from e

        parts = (data.get('conversation_parts') or {}).get('conversation_parts') or []
        logger.info("Conversation %s fetched: state=%s, parts=%d", conversation_id, data.get('state'), len(parts))
        return data
