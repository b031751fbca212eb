"""
Diagnostics: credential presence and provider reachability checks.
"""

import logging

from shopreel.core.constants import ALL_SECRET_NAMES, APP_VERSION
from shopreel.core.security_utils import find_secret

logger = logging.getLogger(__name__)


def check_secrets() -> dict[str, bool]:
    """Which provider secrets are configured (values are never returned)."""
    return {name: bool(find_secret(name)) for name in ALL_SECRET_NAMES}


def get_diagnostics(services) -> dict:
    """Gather all diagnostic information."""
    secrets = check_secrets()
    return {
        "version": APP_VERSION,
        "db_path": str(services.db.db_path),
        "secrets": secrets,
        "scrape_graph_reachable": services.scraper.health_check(),
        "domains": len(services.db.list_domains()),
    }
