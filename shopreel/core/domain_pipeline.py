"""
Domain pipeline: scrape a shop URL and persist its products.
Each domain runs on its own fire-and-forget worker thread.
"""

import logging
import threading
from typing import Callable, Optional

from shopreel.core.constants import DomainStatus, DOMAIN_TRANSITIONS
from shopreel.core.db_sqlite import Database
from shopreel.core.error_codes import NotFoundError, InternalError
from shopreel.core.models_sqlite import Domain, DomainWithProducts
from shopreel.core.product_extract import extract_products, to_product_rows
from shopreel.core.url_parse import validate_source_url, parse_input_lines

logger = logging.getLogger(__name__)


class DomainPipeline:
    """
    Owns the domain status machine:
    pending → processing → generating → complete, with error from
    processing/generating. Terminal domains are never retried automatically.
    """

    def __init__(self, db: Database, scraper):
        self.db = db
        self.scraper = scraper
        self._workers: dict[int, threading.Thread] = {}
        self._workers_lock = threading.Lock()

        # Callbacks
        self.on_domain_updated: Optional[Callable[[Domain], None]] = None

    # ── Public operations ─────────────────────────────────────────────

    def create_domain(self, url: str) -> Domain:
        """Persist a pending domain and start scraping it in the background."""
        url = validate_source_url(url)
        domain = self.db.create_domain(url)
        logger.info("Created domain %s for %s", domain.id, url)
        self._start_worker(domain.id, url)
        return domain

    def submit_urls(self, text: str) -> list[Domain]:
        """Create one domain per valid URL in pasted text. Invalid lines are skipped."""
        return [self.create_domain(url) for url in parse_input_lines(text)]

    def get_domain(self, domain_id: int) -> Domain:
        domain = self.db.get_domain(domain_id)
        if domain is None:
            raise NotFoundError(f"Domain {domain_id} not found")
        return domain

    def get_domain_with_products(self, domain_id: int) -> DomainWithProducts:
        result = self.db.get_domain_with_products(domain_id)
        if result is None:
            raise NotFoundError(f"Domain {domain_id} not found")
        return result

    def list_domains(self) -> list[Domain]:
        return self.db.list_domains()

    def delete_domain(self, domain_id: int):
        """Client-initiated delete; products cascade."""
        if not self.db.delete_domain(domain_id):
            raise NotFoundError(f"Domain {domain_id} not found")
        logger.info("Deleted domain %s", domain_id)

    def wait(self, domain_id: int | None = None, timeout: float | None = None) -> bool:
        """
        Join running workers (all of them, or just one domain's).
        Returns True if none of the awaited workers is still alive.
        """
        with self._workers_lock:
            if domain_id is None:
                threads = list(self._workers.values())
            else:
                threads = [t for t in [self._workers.get(domain_id)] if t]
        for t in threads:
            t.join(timeout)
        return not any(t.is_alive() for t in threads)

    # ── Worker ────────────────────────────────────────────────────────

    def _start_worker(self, domain_id: int, url: str):
        t = threading.Thread(
            target=self._run_safely, args=(domain_id, url),
            name=f"domain-{domain_id}", daemon=True,
        )
        with self._workers_lock:
            # registered-but-unstarted threads have no ident yet and must stay
            self._workers = {k: v for k, v in self._workers.items()
                             if v.ident is None or v.is_alive()}
            self._workers[domain_id] = t
        t.start()

    def _run_safely(self, domain_id: int, url: str):
        """Worker entry point. Nothing escapes back to the creating caller."""
        try:
            self.run(domain_id, url)
        except Exception as e:
            logger.error("Unexpected error scraping domain %s: %s", domain_id, e, exc_info=True)
            try:
                self._set_status(domain_id, DomainStatus.ERROR)
            except Exception as e2:
                logger.error("Could not mark domain %s as error: %s", domain_id, e2)

    def run(self, domain_id: int, url: str):
        """Run the pipeline synchronously for one domain."""
        self._set_status(domain_id, DomainStatus.PROCESSING)
        logger.info("Starting scraping for domain %s: %s", domain_id, url)

        try:
            response = self.scraper.scrape_products(url)
        except Exception as e:
            logger.error("Error scraping domain %s: %s", domain_id, e)
            self._set_status(domain_id, DomainStatus.ERROR)
            return

        self._set_status(domain_id, DomainStatus.GENERATING)
        try:
            products = extract_products(response)
            if not products:
                logger.warning("No products found for domain %s", domain_id)
                self._set_status(domain_id, DomainStatus.COMPLETE)
                return

            self.db.insert_products(to_product_rows(domain_id, products))
            self._set_status(domain_id, DomainStatus.COMPLETE)
            logger.info("Successfully scraped %d products for domain %s",
                        len(products), domain_id)
        except Exception as e:
            logger.error("Error processing products for domain %s: %s",
                         domain_id, e, exc_info=True)
            self._set_status(domain_id, DomainStatus.ERROR)

    # ── Helpers ───────────────────────────────────────────────────────

    def _set_status(self, domain_id: int, status: DomainStatus):
        current = self.db.get_domain(domain_id)
        if current is None:
            # deleted while the worker was running
            raise NotFoundError(f"Domain {domain_id} disappeared during scraping")
        if current.status == status:
            return
        if status not in DOMAIN_TRANSITIONS[current.status]:
            raise InternalError(
                f"Illegal domain transition {current.status.value} → {status.value}")
        self.db.update_domain(domain_id, status=status)
        self._notify_domain_updated(domain_id)

    def _notify_domain_updated(self, domain_id: int):
        if self.on_domain_updated:
            domain = self.db.get_domain(domain_id)
            if domain:
                try:
                    self.on_domain_updated(domain)
                except Exception as e:
                    logger.warning("on_domain_updated callback failed: %s", e)
