"""
Dailymotion partner API integration.
Client-credentials login followed by a URL-based video upload.
"""

import json
import logging
import requests

from shopreel.core.error_codes import ProviderError
from shopreel.core.security_utils import get_secret, truncate_url
from shopreel.core.constants import (
    ErrorCode, DAILYMOTION_API_BASE, DAILYMOTION_TOKEN_URL, DAILYMOTION_SCOPE,
    DAILYMOTION_WATCH_URL, DAILYMOTION_FIELDS,
    PUBLISH_CHANNEL, PUBLISH_LANGUAGE, PUBLISH_FOR_KIDS, PUBLISH_PRIVATE,
    REQUEST_TIMEOUT_SEC, ENV_DAILYMOTION_CLIENT_ID,
    ENV_DAILYMOTION_CLIENT_SECRET, ENV_DAILYMOTION_USER_ID,
)

logger = logging.getLogger(__name__)


def watch_url(video_id: str) -> str:
    """Public watch page for a published video id."""
    return DAILYMOTION_WATCH_URL.format(video_id=video_id)


def _error_detail(resp: requests.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}: {resp.text[:300]}"
    if isinstance(data, dict):
        return (data.get('error_message') or data.get('error_description')
                or data.get('reason') or data.get('error') or "Unknown error")
    return json.dumps(data)[:300]


class DailymotionClient:
    """Stateless Dailymotion client; credentials are never cached as tokens."""

    def __init__(self, client_id: str | None = None, client_secret: str | None = None,
                 user_id: str | None = None, timeout: float = REQUEST_TIMEOUT_SEC):
        self._client_id = client_id
        self._client_secret = client_secret
        self._user_id = user_id
        self.timeout = timeout

    def authenticate(self) -> str:
        """Exchange client credentials for a fresh access token."""
        form = {
            "client_id": self._client_id or get_secret(ENV_DAILYMOTION_CLIENT_ID),
            "client_secret": self._client_secret or get_secret(ENV_DAILYMOTION_CLIENT_SECRET),
            "grant_type": "client_credentials",
            "scope": DAILYMOTION_SCOPE,
        }
        try:
            resp = requests.post(DAILYMOTION_TOKEN_URL, data=form, timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise ProviderError("Dailymotion authentication timed out",
                                code=ErrorCode.PROVIDER_TIMEOUT)
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"Dailymotion authentication error: {e}",
                                code=ErrorCode.PUBLISH_AUTH_FAILED)

        logger.debug("Dailymotion auth response status: %s", resp.status_code)
        if not resp.ok:
            raise ProviderError(f"Authentication failed: {_error_detail(resp)}",
                                code=ErrorCode.PUBLISH_AUTH_FAILED)
        try:
            data = resp.json()
        except ValueError:
            raise ProviderError("Invalid response from Dailymotion auth",
                                code=ErrorCode.PUBLISH_AUTH_FAILED)

        if data.get('error') or data.get('error_message'):
            raise ProviderError(
                f"Authentication failed: {data.get('error_message') or data.get('error')}",
                code=ErrorCode.PUBLISH_AUTH_FAILED)
        token = data.get('access_token')
        if not token:
            raise ProviderError("No access token received from Dailymotion",
                                code=ErrorCode.PUBLISH_AUTH_FAILED)

        logger.info("Dailymotion authentication successful, scope: %s", data.get('scope'))
        return token

    def publish_video(self, token: str, video_url: str, title: str,
                      description: str, thumbnail_url: str) -> dict:
        """
        Create a video from a remote URL. Returns the provider JSON, which
        carries 'id' on success.
        """
        user_id = self._user_id or get_secret(ENV_DAILYMOTION_USER_ID)
        form = {
            "title": title,
            "description": description,
            "url": video_url,
            "thumbnail_url": thumbnail_url,
            "channel": PUBLISH_CHANNEL,
            "language": PUBLISH_LANGUAGE,
            "is_created_for_kids": PUBLISH_FOR_KIDS,
            "private": PUBLISH_PRIVATE,
            "published": "true",
            "fields": DAILYMOTION_FIELDS,
        }
        headers = {"Authorization": f"Bearer {token}"}

        logger.info("Publishing video to Dailymotion: title=%r video=%s thumbnail=%s",
                    title, truncate_url(video_url), truncate_url(thumbnail_url))
        try:
            resp = requests.post(
                f"{DAILYMOTION_API_BASE}/rest/user/{user_id}/videos",
                data=form, headers=headers, timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            raise ProviderError("Dailymotion publish request timed out",
                                code=ErrorCode.PROVIDER_TIMEOUT)
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"Dailymotion publish request failed: {e}",
                                code=ErrorCode.PUBLISH_FAILED)

        logger.debug("Dailymotion publish response status: %s", resp.status_code)
        if not resp.ok:
            raise ProviderError(f"Dailymotion API error: {_error_detail(resp)}",
                                code=ErrorCode.PUBLISH_FAILED)
        try:
            data = resp.json()
        except ValueError:
            raise ProviderError(f"Failed to parse response: {resp.text[:300]}",
                                code=ErrorCode.PUBLISH_FAILED)
        if not isinstance(data, dict):
            raise ProviderError("Unexpected Dailymotion response",
                                code=ErrorCode.PUBLISH_FAILED)
        return data
