"""
Publish job controller: push a finished product video to Dailymotion.

Status machine: not_published → publishing → published, error from
publishing. error is retryable. The provider call is synchronous inside
start_publish, so get_status never talks to the provider.
"""

import logging
import sqlite3
from dataclasses import dataclass
from typing import Optional

from shopreel.core.constants import (
    VideoStatus, PublishStatus, PUBLISH_TRANSITIONS, ErrorCode,
)
from shopreel.core.dailymotion import watch_url
from shopreel.core.db_sqlite import Database
from shopreel.core.error_codes import (
    NotFoundError, ConflictError, PreconditionFailedError, ProviderError,
    InternalError, error_message,
)
from shopreel.core.models_sqlite import Product

logger = logging.getLogger(__name__)


@dataclass
class PublishResult:
    publish_id: str
    publish_url: str
    provider_status: Optional[str] = None
    message: str = "Video published to Dailymotion successfully"


@dataclass
class PublishStatusResult:
    publish_status: PublishStatus
    publish_url: Optional[str] = None
    publish_id: Optional[str] = None


class PublishJobController:

    def __init__(self, db: Database, publish_client):
        self.db = db
        self.publish_client = publish_client

    def _get_product(self, product_id: int) -> Product:
        try:
            product = self.db.get_product(product_id)
        except sqlite3.Error as e:
            raise InternalError(f"Failed to load product {product_id}: {e}")
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    def start_publish(self, product_id: int) -> PublishResult:
        product = self._get_product(product_id)
        self._check_preconditions(product)

        try:
            claimed = self.db.claim_publish(product_id)
        except sqlite3.Error as e:
            raise InternalError(f"Failed to claim product {product_id} for publishing: {e}") from e
        if not claimed:
            # Re-read to report why the claim lost; raises in every case.
            self._check_preconditions(self._get_product(product_id))
            raise ConflictError("Publish status changed concurrently, try again")

        # claim_publish guarantees a finished video; re-read for the URL it saw.
        product = self._get_product(product_id)
        thumbnail = product.first_image or ""

        try:
            token = self.publish_client.authenticate()
            response = self.publish_client.publish_video(
                token, product.video_url, product.title,
                product.description, thumbnail,
            )
        except Exception as e:
            message = error_message(e)
            logger.error("Dailymotion publishing error for product %s: %s", product_id, message)
            self._mark_error(product_id)
            code = e.code if isinstance(e, ProviderError) else ErrorCode.PUBLISH_FAILED
            raise ProviderError(f"Dailymotion publishing failed: {message}", code=code) from e

        publish_id = response.get('id') if isinstance(response, dict) else None
        if not publish_id:
            logger.error("No ID returned from Dailymotion API for product %s: %r",
                         product_id, response)
            self._mark_error(product_id)
            raise ProviderError("Failed to publish to Dailymotion - no video ID returned",
                                code=ErrorCode.PUBLISH_FAILED)

        publish_id = str(publish_id)
        url = watch_url(publish_id)
        try:
            self.db.transition_product(product_id, 'publish_status',
                                       PublishStatus.PUBLISHING, PublishStatus.PUBLISHED,
                                       publish_id=publish_id, publish_url=url)
        except sqlite3.Error as e:
            logger.error("Published product %s as %s but could not store it: %s",
                         product_id, url, e)
            self._mark_error(product_id)
            raise InternalError(
                f"Published as {publish_id} but failed to store the result: {e}") from e
        logger.info("Successfully published product %s to Dailymotion: %s", product_id, url)
        return PublishResult(publish_id=publish_id, publish_url=url,
                             provider_status=response.get('status'))

    def get_status(self, product_id: int) -> PublishStatusResult:
        product = self._get_product(product_id)
        return PublishStatusResult(product.publish_status, product.publish_url,
                                   product.publish_id)

    @staticmethod
    def _check_preconditions(product: Product):
        if product.video_status != VideoStatus.FINISH or not product.video_url:
            raise PreconditionFailedError(
                "No video available for publishing. Generate video first.")
        current = product.publish_status
        if current == PublishStatus.PUBLISHED and not product.publish_id:
            # never completed; publishable again
            current = PublishStatus.NOT_PUBLISHED
        if PublishStatus.PUBLISHING not in PUBLISH_TRANSITIONS[current]:
            if current == PublishStatus.PUBLISHING:
                raise ConflictError("Video is already being published to Dailymotion")
            raise ConflictError("Video is already published to Dailymotion")

    def _mark_error(self, product_id: int):
        try:
            self.db.transition_product(product_id, 'publish_status',
                                       PublishStatus.PUBLISHING, PublishStatus.ERROR)
        except sqlite3.Error as e:
            logger.error("Could not persist publish error for product %s: %s", product_id, e)
