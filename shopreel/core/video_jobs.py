"""
Video job controller: per-product image-to-video generation.

Status machine: unavailable → processing → finish, error from processing.
error is retryable by calling start_generation again. Status is pulled from
the provider only when a caller asks (reconcile_status); there is no
background poller.
"""

import logging
import sqlite3
from dataclasses import dataclass
from typing import Optional

from shopreel.core.constants import (
    VideoStatus, PublishStatus, VIDEO_TERMINAL, VIDEO_PROMPT,
    KLING_TASK_SUBMITTED, KLING_TASK_PROCESSING, KLING_TASK_SUCCEED,
    KLING_TASK_FAILED, ErrorCode,
)
from shopreel.core.db_sqlite import Database
from shopreel.core.error_codes import (
    NotFoundError, ConflictError, PreconditionFailedError, ProviderError,
    InternalError, error_message,
)
from shopreel.core.models_sqlite import Product

logger = logging.getLogger(__name__)

REFRESH_FAILED_MESSAGE = "Failed to check latest status"

# Provider task status → local video status
_TASK_STATUS_MAP = {
    KLING_TASK_SUBMITTED: VideoStatus.PROCESSING,
    KLING_TASK_PROCESSING: VideoStatus.PROCESSING,
    KLING_TASK_SUCCEED: VideoStatus.FINISH,
    KLING_TASK_FAILED: VideoStatus.ERROR,
}


@dataclass
class VideoStartResult:
    task_id: str
    task_status: Optional[str]
    message: str = "Video generation started successfully"


@dataclass
class VideoStatusResult:
    video_status: VideoStatus
    video_url: Optional[str] = None
    task_id: Optional[str] = None
    task_status: Optional[str] = None
    status_message: Optional[str] = None
    # Set when the provider could not be reached; the cached fields are still valid.
    refresh_error: Optional[str] = None


def map_task_status(task_status: str | None, current: VideoStatus) -> VideoStatus:
    """Unknown provider states leave the local status unchanged."""
    return _TASK_STATUS_MAP.get(task_status, current)


class VideoJobController:
    """Starts generation jobs and reconciles their provider status."""

    def __init__(self, db: Database, video_client, prompt: str = VIDEO_PROMPT):
        self.db = db
        self.video_client = video_client
        self.prompt = prompt

    def _get_product(self, product_id: int) -> Product:
        try:
            product = self.db.get_product(product_id)
        except sqlite3.Error as e:
            raise InternalError(f"Failed to load product {product_id}: {e}")
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    # ── Start ─────────────────────────────────────────────────────────

    def start_generation(self, product_id: int) -> VideoStartResult:
        product = self._get_product(product_id)

        if not product.images:
            raise PreconditionFailedError(
                f"Product {product_id} has no images for video generation")

        try:
            claimed = self.db.claim_video_generation(product_id)
        except sqlite3.Error as e:
            raise InternalError(f"Failed to claim product {product_id} for video: {e}") from e
        if not claimed:
            self._raise_claim_failure(product_id)

        image_url = product.images[0]
        try:
            task = self.video_client.submit_video_job(image_url, self.prompt)
        except Exception as e:
            self._mark_error(product_id)
            logger.error("Video generation error for product %s: %s", product_id, e)
            if isinstance(e, ProviderError):
                raise
            raise ProviderError(error_message(e), code=ErrorCode.VIDEO_SUBMIT_FAILED) from e

        if not task.accepted:
            self._mark_error(product_id)
            message = task.message or "Failed to start video generation"
            logger.error("Kling AI rejected product %s: code=%s message=%s",
                         product_id, task.code, task.message)
            raise ProviderError(message, code=ErrorCode.VIDEO_SUBMIT_FAILED)

        try:
            self.db.update_product(product_id, video_task_id=task.task_id)
        except sqlite3.Error as e:
            logger.error("Could not record task %s for product %s: %s",
                         task.task_id, product_id, e)
            self._mark_error(product_id)
            raise InternalError(
                f"Failed to record video task for product {product_id}: {e}") from e
        logger.info("Video generation started for product %s (task %s, %s)",
                    product_id, task.task_id, task.task_status)
        return VideoStartResult(task_id=task.task_id, task_status=task.task_status)

    def _raise_claim_failure(self, product_id: int):
        product = self._get_product(product_id)
        if product.video_status == VideoStatus.PROCESSING:
            raise ConflictError("Video generation already in progress")
        if product.publish_status in (PublishStatus.PUBLISHING, PublishStatus.PUBLISHED):
            raise ConflictError(
                "Video is being or has been published; it cannot be regenerated")
        # Lost a race with a concurrent writer; report it as a conflict.
        raise ConflictError("Video status changed concurrently, try again")

    def _mark_error(self, product_id: int):
        try:
            self.db.transition_product(product_id, 'video_status',
                                       VideoStatus.PROCESSING, VideoStatus.ERROR)
        except sqlite3.Error as e:
            logger.error("Could not persist video error for product %s: %s", product_id, e)

    # ── Reconcile ─────────────────────────────────────────────────────

    def reconcile_status(self, product_id: int) -> VideoStatusResult:
        product = self._get_product(product_id)

        if not product.video_task_id:
            return VideoStatusResult(product.video_status, product.video_url)

        if product.video_status in VIDEO_TERMINAL:
            return VideoStatusResult(product.video_status, product.video_url,
                                     task_id=product.video_task_id)

        try:
            task = self.video_client.poll_video_job(product.video_task_id)
        except Exception as e:
            logger.warning("Video status check failed for product %s: %s", product_id, e)
            return VideoStatusResult(product.video_status, product.video_url,
                                     task_id=product.video_task_id,
                                     refresh_error=REFRESH_FAILED_MESSAGE)

        if task.code != 0:
            raise ProviderError(task.message or "Failed to check video status",
                                code=ErrorCode.VIDEO_POLL_FAILED)

        new_status = map_task_status(task.task_status, product.video_status)
        video_url = product.video_url
        if task.task_status == KLING_TASK_SUCCEED and task.video_url:
            video_url = task.video_url

        if new_status != product.video_status or video_url != product.video_url:
            try:
                applied = self.db.apply_video_poll(product_id, product.video_task_id,
                                                   new_status, video_url)
            except sqlite3.Error as e:
                raise InternalError(
                    f"Failed to store video status for product {product_id}: {e}") from e
            if applied:
                logger.info("Product %s video %s → %s", product_id,
                            product.video_status.value, new_status.value)
            else:
                # A newer job replaced the one we polled; report what is stored now.
                current = self._get_product(product_id)
                return VideoStatusResult(current.video_status, current.video_url,
                                         task_id=current.video_task_id)

        return VideoStatusResult(
            video_status=new_status,
            video_url=video_url,
            task_id=product.video_task_id,
            task_status=task.task_status,
            status_message=task.task_status_msg,
        )

    # ── Listing ───────────────────────────────────────────────────────

    def list_domain_videos(self, domain_id: int) -> list[Product]:
        """Products of a domain with their current (cached) video fields."""
        return self.db.get_products_by_domain(domain_id)
