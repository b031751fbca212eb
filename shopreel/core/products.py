"""
Product editing: title, description and image order.

The first image is what video generation animates and what publishing uses
as the thumbnail, so reordering images changes both.
"""

import logging
import sqlite3
from typing import Optional

from shopreel.core.db_sqlite import Database
from shopreel.core.error_codes import NotFoundError, ValidationError, InternalError
from shopreel.core.models_sqlite import Product
from shopreel.core.url_parse import normalize_url

logger = logging.getLogger(__name__)


def clean_images(images) -> list[str]:
    """Validate an edited image list; order is kept, duplicates are dropped."""
    if isinstance(images, str) or not isinstance(images, (list, tuple)):
        raise ValidationError("images must be a list of URLs")
    cleaned = []
    for image in images:
        url = normalize_url(image) if isinstance(image, str) else None
        if not url:
            raise ValidationError(f"Invalid image URL: {image!r}")
        if url not in cleaned:
            cleaned.append(url)
    if not cleaned:
        raise ValidationError("A product needs at least one image")
    return cleaned


class ProductController:

    def __init__(self, db: Database):
        self.db = db

    def get_product(self, product_id: int) -> Product:
        try:
            product = self.db.get_product(product_id)
        except sqlite3.Error as e:
            raise InternalError(f"Failed to load product {product_id}: {e}") from e
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    def list_products(self) -> list[Product]:
        return self.db.list_products()

    def update_product(self, product_id: int, title: Optional[str] = None,
                       description: Optional[str] = None,
                       images: Optional[list[str]] = None) -> Product:
        """
        Partial update. Omitted fields are left alone; an empty description
        falls back to the title, as it does for scraped products.
        """
        if title is None and description is None and images is None:
            raise ValidationError("Nothing to update")

        product = self.get_product(product_id)
        fields = {}
        if title is not None:
            title = title.strip()
            if not title:
                raise ValidationError("Title must not be empty")
            fields['title'] = title
        if description is not None:
            fields['description'] = description.strip() or fields.get('title', product.title)
        if images is not None:
            fields['images'] = clean_images(images)

        try:
            updated = self.db.update_product(product_id, **fields)
        except sqlite3.Error as e:
            raise InternalError(f"Failed to update product {product_id}: {e}") from e
        if not updated:
            raise NotFoundError(f"Product {product_id} not found")
        logger.info("Updated product %s (%s)", product_id, ", ".join(sorted(fields)))
        return self.get_product(product_id)

    def delete_product(self, product_id: int):
        try:
            deleted = self.db.delete_product(product_id)
        except sqlite3.Error as e:
            raise InternalError(f"Failed to delete product {product_id}: {e}") from e
        if not deleted:
            raise NotFoundError(f"Product {product_id} not found")
        logger.info("Deleted product %s", product_id)
