"""
Kling AI image-to-video integration.
Submits a generation task from a product image and polls its status.
Every request signs a fresh short-lived JWT; nothing is cached between calls.
"""

import base64
import logging
import time
from dataclasses import dataclass
from typing import Optional

import jwt
import requests

from shopreel.core.error_codes import ProviderError
from shopreel.core.security_utils import get_secret, truncate_url
from shopreel.core.constants import (
    ErrorCode, KLING_API_BASE, KLING_MODEL, KLING_MODE, KLING_DURATION,
    KLING_CFG_SCALE, KLING_TOKEN_TTL_SEC, KLING_TOKEN_LEEWAY_SEC,
    REQUEST_TIMEOUT_SEC, ENV_KLING_ACCESS_KEY, ENV_KLING_SECRET_KEY,
)

logger = logging.getLogger(__name__)

IMAGE2VIDEO_URL = f"{KLING_API_BASE}/videos/image2video"


@dataclass
class VideoTask:
    """Provider view of one generation task."""
    code: int
    message: str = ""
    task_id: Optional[str] = None
    task_status: Optional[str] = None
    task_status_msg: Optional[str] = None
    video_url: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.code == 0 and bool(self.task_id)


def build_api_token(access_key: str, secret_key: str, now: float | None = None) -> str:
    """HS256 token: issuer is the access key, valid for 30 minutes."""
    now = int(now if now is not None else time.time())
    payload = {
        "iss": access_key,
        "exp": now + KLING_TOKEN_TTL_SEC,
        "nbf": now - KLING_TOKEN_LEEWAY_SEC,
    }
    return jwt.encode(payload, secret_key, algorithm="HS256",
                      headers={"typ": "JWT"})


def parse_task_response(data: dict) -> VideoTask:
    """Map the provider's JSON envelope to a VideoTask."""
    if not isinstance(data, dict):
        raise ProviderError("Unexpected Kling AI response", code=ErrorCode.VIDEO_POLL_FAILED)

    body = data.get('data')
    if not isinstance(body, dict):
        body = {}
    result = body.get('task_result')
    if not isinstance(result, dict):
        result = {}
    videos = result.get('videos') or []
    video_url = None
    if videos and isinstance(videos[0], dict):
        video_url = videos[0].get('url') or None

    try:
        code = int(data.get('code', -1))
    except (TypeError, ValueError):
        code = -1

    task_id = body.get('task_id')
    return VideoTask(
        code=code,
        message=data.get('message') or "",
        task_id=str(task_id) if task_id else None,
        task_status=body.get('task_status'),
        task_status_msg=body.get('task_status_msg'),
        video_url=video_url,
    )


class KlingClient:
    """Stateless Kling AI client."""

    def __init__(self, access_key: str | None = None, secret_key: str | None = None,
                 mode: str = KLING_MODE, duration: str = KLING_DURATION,
                 cfg_scale: float = KLING_CFG_SCALE,
                 timeout: float = REQUEST_TIMEOUT_SEC):
        self._access_key = access_key
        self._secret_key = secret_key
        self.mode = mode
        self.duration = duration
        self.cfg_scale = cfg_scale
        self.timeout = timeout

    def _auth_headers(self) -> dict:
        token = build_api_token(
            self._access_key or get_secret(ENV_KLING_ACCESS_KEY),
            self._secret_key or get_secret(ENV_KLING_SECRET_KEY),
        )
        return {"Authorization": f"Bearer {token}"}

    def fetch_image_base64(self, image_url: str) -> str:
        """Download an image and return it as a bare base64 string."""
        try:
            resp = requests.get(image_url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"Failed to convert image to base64: {e}",
                                code=ErrorCode.VIDEO_SUBMIT_FAILED)
        if resp.status_code != 200:
            raise ProviderError(
                f"Failed to fetch image: {resp.status_code} {resp.reason}",
                code=ErrorCode.VIDEO_SUBMIT_FAILED)
        return base64.b64encode(resp.content).decode('ascii')

    def submit_video_job(self, image_url: str, prompt: str) -> VideoTask:
        """Submit an image-to-video task. HTTP/network failures raise ProviderError."""
        image = self.fetch_image_base64(image_url)
        request_body = {
            "model_name": KLING_MODEL,
            "mode": self.mode,
            "duration": self.duration,
            "image": image,
            "prompt": prompt,
            "cfg_scale": self.cfg_scale,
        }
        headers = self._auth_headers()
        headers["Content-Type"] = "application/json"

        logger.info("Submitting Kling AI task for image %s", truncate_url(image_url))
        try:
            resp = requests.post(IMAGE2VIDEO_URL, headers=headers,
                                 json=request_body, timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise ProviderError("Kling AI request timed out",
                                code=ErrorCode.PROVIDER_TIMEOUT)
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"Failed to create video: {e}",
                                code=ErrorCode.VIDEO_SUBMIT_FAILED)

        if not resp.ok:
            body = resp.text[:300] if resp.text else "No response body"
            raise ProviderError(
                f"Failed to create video: Kling AI API error: {resp.status_code} {resp.reason} - {body}",
                code=ErrorCode.VIDEO_SUBMIT_FAILED)

        try:
            return parse_task_response(resp.json())
        except ValueError:
            raise ProviderError("Failed to parse Kling AI response JSON",
                                code=ErrorCode.VIDEO_SUBMIT_FAILED)

    def poll_video_job(self, task_id: str) -> VideoTask:
        """Fetch the current state of a task. HTTP/network failures raise ProviderError."""
        try:
            resp = requests.get(f"{IMAGE2VIDEO_URL}/{task_id}",
                                headers=self._auth_headers(), timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise ProviderError("Kling AI status request timed out",
                                code=ErrorCode.PROVIDER_TIMEOUT)
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"Failed to get task status: {e}",
                                code=ErrorCode.VIDEO_POLL_FAILED)

        if not resp.ok:
            raise ProviderError(
                f"Failed to get task status: Kling AI API error: {resp.status_code} {resp.reason}",
                code=ErrorCode.VIDEO_POLL_FAILED)

        try:
            return parse_task_response(resp.json())
        except ValueError:
            raise ProviderError("Failed to parse Kling AI status JSON",
                                code=ErrorCode.VIDEO_POLL_FAILED)
