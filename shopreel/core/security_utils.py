"""
Security utilities for ShopReel.
- Secret lookup (environment first, then macOS Keychain)
- Redaction of URLs for logging
"""

import os
import subprocess
import logging

from shopreel.core.constants import (
    KEYCHAIN_SERVICE_PREFIX,
    KEYCHAIN_ACCOUNT,
    MAX_LOGGED_URL_LEN,
    ErrorCode,
)
from shopreel.core.error_codes import ProviderError

logger = logging.getLogger(__name__)


# ── Secrets ───────────────────────────────────────────────────────────

def _keychain_command(name: str) -> list[str]:
    service = f"{KEYCHAIN_SERVICE_PREFIX}{name}"
    return ["security", "find-generic-password", "-s", service, "-a", KEYCHAIN_ACCOUNT, "-w"]


def keychain_get_secret(name: str) -> str | None:
    """Read a provider secret stored under service 'ShopReel:<name>', or None."""
    try:
        # argument list, never shell=True
        proc = subprocess.run(_keychain_command(name), capture_output=True,
                              text=True, timeout=10, check=False)
    except (subprocess.TimeoutExpired, FileNotFoundError):
        return None
    except OSError as e:
        logger.warning("Keychain lookup for %s failed: %s", name, type(e).__name__)
        return None
    secret = proc.stdout.strip()
    if proc.returncode == 0 and secret:
        return secret
    return None


def find_secret(name: str) -> str | None:
    """Environment variable wins; Keychain is the fallback."""
    value = os.environ.get(name, "").strip()
    if value:
        return value
    return keychain_get_secret(name)


def get_secret(name: str) -> str:
    """Like find_secret(), but a missing secret is a provider failure."""
    value = find_secret(name)
    if not value:
        raise ProviderError(f"{name} is not configured",
                            code=ErrorCode.MISSING_CREDENTIALS)
    return value


# ── Logging helpers ───────────────────────────────────────────────────

def truncate_url(url: str | None, limit: int = MAX_LOGGED_URL_LEN) -> str:
    """Shorten long (often signed) media URLs before they hit the log."""
    if not url:
        return ""
    return url if len(url) <= limit else url[:limit] + "..."
