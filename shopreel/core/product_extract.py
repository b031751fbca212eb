"""
Scraped product normalization.
Turns the provider's loose records into validated Product rows.
"""

import logging

from shopreel.core.models_sqlite import Product

logger = logging.getLogger(__name__)

# (canonical, alternate) field names used by the provider
_TITLE_KEYS = ('title', 'product_title')
_DESCRIPTION_KEYS = ('description', 'product_description')
_URL_KEYS = ('url', 'product_url')
_IMAGE_KEYS = ('image', 'product_image')


def _first(record: dict, keys: tuple[str, ...]):
    for key in keys:
        value = record.get(key)
        if value:
            return value
    return None


def _clean_text(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def normalize_record(record) -> dict | None:
    """
    Normalize one raw record to {title, description, url, images}.
    Returns None if the record lacks a title, a URL or at least one image.
    """
    if not isinstance(record, dict):
        return None

    title = _clean_text(_first(record, _TITLE_KEYS))
    url = _clean_text(_first(record, _URL_KEYS))
    images = _first(record, _IMAGE_KEYS)

    if not isinstance(images, list):
        return None
    images = [i.strip() for i in images if isinstance(i, str) and i.strip()]

    if not title or not url or not images:
        return None

    description = _clean_text(_first(record, _DESCRIPTION_KEYS)) or title
    return {
        'title': title,
        'description': description,
        'url': url,
        'images': images,
    }


def extract_products(response: dict) -> list[dict]:
    """Extract and validate products from a normalized scrape response."""
    raw = response.get('products') or []
    if not isinstance(raw, list):
        raise ValueError(f"Malformed products payload: {type(raw).__name__}")
    if not raw:
        logger.warning("No products found in scrape response")
        return []

    products = []
    for record in raw:
        normalized = normalize_record(record)
        if normalized is None:
            logger.warning("Dropping invalid product record: %.200r", record)
            continue
        products.append(normalized)
    return products


def to_product_rows(domain_id: int, products: list[dict]) -> list[Product]:
    """Fresh Product rows (video 'unavailable', publish 'not_published')."""
    return [
        Product(
            id=None,
            domain_id=domain_id,
            title=p['title'],
            description=p['description'],
            url=p['url'],
            images=list(p['images']),
        )
        for p in products
    ]
