"""
Shared constants for ShopReel.
Single source of truth, imported by every other module.
"""

import pathlib
from enum import Enum

# ── Application identity ──────────────────────────────────────────────
APP_NAME = "ShopReel"
APP_VERSION = "1.0.0"

# ── Filesystem paths ─────────────────────────────────────────────────
HOME = pathlib.Path.home()

APP_SUPPORT_DIR = HOME / ".shopreel"
LOG_DIR = APP_SUPPORT_DIR / "logs"
DB_PATH = APP_SUPPORT_DIR / "shopreel.db"
CONFIG_PATH = APP_SUPPORT_DIR / "config.json"

# ── Keychain identifiers ─────────────────────────────────────────────
KEYCHAIN_SERVICE_PREFIX = "ShopReel:"
KEYCHAIN_ACCOUNT = "default"


# ── Status values ─────────────────────────────────────────────────────
class DomainStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    GENERATING = "generating"
    COMPLETE = "complete"
    ERROR = "error"


class VideoStatus(str, Enum):
    UNAVAILABLE = "unavailable"
    PROCESSING = "processing"
    FINISH = "finish"
    ERROR = "error"


class PublishStatus(str, Enum):
    NOT_PUBLISHED = "not_published"
    PUBLISHING = "publishing"
    PUBLISHED = "published"
    ERROR = "error"


# Allowed transitions, keyed by current status.
DOMAIN_TRANSITIONS = {
    DomainStatus.PENDING: {DomainStatus.PROCESSING},
    DomainStatus.PROCESSING: {DomainStatus.GENERATING, DomainStatus.ERROR},
    DomainStatus.GENERATING: {DomainStatus.COMPLETE, DomainStatus.ERROR},
    DomainStatus.COMPLETE: set(),
    DomainStatus.ERROR: set(),
}

VIDEO_TRANSITIONS = {
    VideoStatus.UNAVAILABLE: {VideoStatus.PROCESSING},
    VideoStatus.PROCESSING: {VideoStatus.FINISH, VideoStatus.ERROR},
    # finish may be regenerated while the product is not published
    VideoStatus.FINISH: {VideoStatus.PROCESSING},
    VideoStatus.ERROR: {VideoStatus.PROCESSING},
}

PUBLISH_TRANSITIONS = {
    PublishStatus.NOT_PUBLISHED: {PublishStatus.PUBLISHING},
    PublishStatus.PUBLISHING: {PublishStatus.PUBLISHED, PublishStatus.ERROR},
    PublishStatus.PUBLISHED: set(),
    PublishStatus.ERROR: {PublishStatus.PUBLISHING},
}

VIDEO_TERMINAL = {VideoStatus.FINISH, VideoStatus.ERROR}


# ── Error codes ───────────────────────────────────────────────────────
class ErrorCode:
    NOT_FOUND = "ERR_NOT_FOUND"
    CONFLICT = "ERR_CONFLICT"
    PRECONDITION_FAILED = "ERR_PRECONDITION_FAILED"
    VALIDATION = "ERR_VALIDATION"
    INTERNAL = "ERR_INTERNAL"

    # Provider failures
    SCRAPE_FAILED = "ERR_SCRAPE_FAILED"
    VIDEO_SUBMIT_FAILED = "ERR_VIDEO_SUBMIT_FAILED"
    VIDEO_POLL_FAILED = "ERR_VIDEO_POLL_FAILED"
    PUBLISH_AUTH_FAILED = "ERR_PUBLISH_AUTH_FAILED"
    PUBLISH_FAILED = "ERR_PUBLISH_FAILED"
    MISSING_CREDENTIALS = "ERR_MISSING_CREDENTIALS"
    PROVIDER_FAILED = "ERR_PROVIDER_FAILED"
    PROVIDER_TIMEOUT = "ERR_PROVIDER_TIMEOUT"


# ── Secrets (environment variable names) ──────────────────────────────
ENV_SCRAPE_GRAPH_API_KEY = "SCRAPE_GRAPH_API_KEY"
ENV_KLING_ACCESS_KEY = "KLING_AI_ACCESS_KEY"
ENV_KLING_SECRET_KEY = "KLING_AI_SECRET_KEY"
ENV_DAILYMOTION_CLIENT_ID = "DAILYMOTION_CLIENT_ID"
ENV_DAILYMOTION_CLIENT_SECRET = "DAILYMOTION_CLIENT_SECRET"
ENV_DAILYMOTION_USER_ID = "DAILYMOTION_USER_ID"

ALL_SECRET_NAMES = (
    ENV_SCRAPE_GRAPH_API_KEY,
    ENV_KLING_ACCESS_KEY,
    ENV_KLING_SECRET_KEY,
    ENV_DAILYMOTION_CLIENT_ID,
    ENV_DAILYMOTION_CLIENT_SECRET,
    ENV_DAILYMOTION_USER_ID,
)

# ── Network ───────────────────────────────────────────────────────────
REQUEST_TIMEOUT_SEC = 60

# ── ScrapeGraph ───────────────────────────────────────────────────────
SCRAPE_GRAPH_API_BASE = "https://api.scrapegraphai.com/v1"
SCRAPE_NUMBER_OF_SCROLLS = 2
SCRAPE_USER_PROMPT = (
    "Extract Product Image, Description, and Title, and product URL, to get "
    "the product image, you need to go to product detail, and take the HD "
    "image. If there's more than one image, put that as an array."
)

# ── Kling AI ──────────────────────────────────────────────────────────
KLING_API_BASE = "https://api-singapore.klingai.com/v1"
KLING_MODEL = "kling-v2-5-turbo"
KLING_MODE = "pro"
KLING_DURATION = "10"
KLING_CFG_SCALE = 0.5
KLING_TOKEN_TTL_SEC = 1800
KLING_TOKEN_LEEWAY_SEC = 5

# Product-agnostic motion prompt, tuned for the provider.
VIDEO_PROMPT = (
    "The subject should remain realistic and detailed — keep all text, logos, "
    "and labels perfectly clear and unchanged. Use creative but realistic "
    "motion, such as: A subtle parallax effect, as if the camera gently moves "
    "around the product (without showing unseen sides). Soft dynamic "
    "lighting, like a slow light sweep across the surface to highlight gloss "
    "and texture. Shallow depth of field, with a slight focus shift from top "
    "to bottom or front to back. Avoid any rotation or label distortion. "
    "Keep the camera motion cinematic, not static zoom."
)

# Provider task states
KLING_TASK_SUBMITTED = "submitted"
KLING_TASK_PROCESSING = "processing"
KLING_TASK_SUCCEED = "succeed"
KLING_TASK_FAILED = "failed"

# ── Dailymotion ───────────────────────────────────────────────────────
DAILYMOTION_API_BASE = "https://partner.api.dailymotion.com"
DAILYMOTION_TOKEN_URL = f"{DAILYMOTION_API_BASE}/oauth/v1/token"
DAILYMOTION_SCOPE = "manage_videos"
DAILYMOTION_WATCH_URL = "https://www.dailymotion.com/video/{video_id}"
DAILYMOTION_FIELDS = "status,id,title,publishing_progress,created_time,private_id"

# Publishing policy defaults
PUBLISH_CHANNEL = "creation"
PUBLISH_LANGUAGE = "en"
PUBLISH_FOR_KIDS = "false"
PUBLISH_PRIVATE = "true"

# ── Misc ──────────────────────────────────────────────────────────────
MAX_ERROR_MESSAGE_LEN = 2000
MAX_LOGGED_URL_LEN = 50
