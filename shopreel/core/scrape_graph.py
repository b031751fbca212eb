"""
ScrapeGraph AI integration.
Single-shot "smart scraper" call that returns a loosely structured product list.
"""

import json
import logging
import requests

from shopreel.core.error_codes import ProviderError
from shopreel.core.security_utils import get_secret
from shopreel.core.constants import (
    ErrorCode, SCRAPE_GRAPH_API_BASE, SCRAPE_USER_PROMPT,
    SCRAPE_NUMBER_OF_SCROLLS, REQUEST_TIMEOUT_SEC,
    ENV_SCRAPE_GRAPH_API_KEY,
)

logger = logging.getLogger(__name__)

SMART_SCRAPER_URL = f"{SCRAPE_GRAPH_API_BASE}/smartscraper"
HEALTHZ_URL = f"{SCRAPE_GRAPH_API_BASE}/healthz"


class ScrapeGraphClient:
    """Stateless ScrapeGraph client; the API key is resolved per call."""

    def __init__(self, api_key: str | None = None,
                 number_of_scrolls: int = SCRAPE_NUMBER_OF_SCROLLS,
                 timeout: float = REQUEST_TIMEOUT_SEC):
        self._api_key = api_key
        self.number_of_scrolls = number_of_scrolls
        self.timeout = timeout

    def _headers(self) -> dict:
        api_key = self._api_key or get_secret(ENV_SCRAPE_GRAPH_API_KEY)
        return {
            "SGAI-APIKEY": api_key,
            "Content-Type": "application/json",
        }

    def scrape_products(self, website_url: str) -> dict:
        """
        Scrape products from a website. Returns the provider response with a
        top-level 'products' list regardless of which shape the provider used.
        """
        logger.info("Starting to scrape: %s", website_url)
        payload = {
            "website_url": website_url,
            "user_prompt": SCRAPE_USER_PROMPT,
            "number_of_scrolls": self.number_of_scrolls,
        }
        try:
            resp = requests.post(
                SMART_SCRAPER_URL,
                headers=self._headers(),
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            raise ProviderError("ScrapeGraph request timed out",
                                code=ErrorCode.PROVIDER_TIMEOUT)
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"Failed to scrape website: {e}",
                                code=ErrorCode.SCRAPE_FAILED)

        if resp.status_code != 200:
            body = resp.text[:300] if resp.text else "No response body"
            raise ProviderError(
                f"Failed to scrape website: ScrapeGraph returned {resp.status_code}: {body}",
                code=ErrorCode.SCRAPE_FAILED)

        try:
            data = resp.json()
        except ValueError:
            raise ProviderError("Failed to parse ScrapeGraph response JSON",
                                code=ErrorCode.SCRAPE_FAILED)

        response = normalize_scrape_response(data)
        products = response['products']
        logger.info("Scraping completed for %s (request_id=%s, status=%s, products=%s)",
                    website_url, response.get('request_id'), response.get('status'),
                    len(products) if isinstance(products, list) else type(products).__name__)
        return response

    def health_check(self) -> bool:
        """Check if the ScrapeGraph API is reachable with the configured key."""
        try:
            resp = requests.get(HEALTHZ_URL, headers=self._headers(),
                                timeout=min(self.timeout, 10))
            return resp.status_code == 200
        except (requests.exceptions.RequestException, ProviderError) as e:
            logger.warning("ScrapeGraph health check failed: %s", e)
            return False


def normalize_scrape_response(data) -> dict:
    """
    The provider sometimes wraps the JSON in a string and sometimes nests the
    list under 'result'. Flatten both into {'products': [...], ...}; a missing
    list becomes [], anything else is left as-is.
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError:
            raise ProviderError("ScrapeGraph returned a non-JSON string result",
                                code=ErrorCode.SCRAPE_FAILED)
    if not isinstance(data, dict):
        raise ProviderError(f"Unexpected ScrapeGraph response type: {type(data).__name__}",
                            code=ErrorCode.SCRAPE_FAILED)

    result = data.get('result')
    if isinstance(result, str):
        try:
            result = json.loads(result)
        except json.JSONDecodeError:
            result = None

    products = data.get('products')
    if not products and isinstance(result, dict):
        products = result.get('products')

    response = dict(data)
    # a malformed value is passed through so extraction can reject it
    response['products'] = [] if products is None else products
    return response
