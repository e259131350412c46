"""
ReelVault Constants

Centralized defaults and magic values. Configuration models read their
defaults from here so that the settings layer and the runtime components
agree on a single source of truth.
"""

from __future__ import annotations

# Base time units
BASE_SECOND = 1.0
BASE_MINUTE = 60 * BASE_SECOND
BASE_HOUR = 60 * BASE_MINUTE
BASE_DAY = 24 * BASE_HOUR

MIB = 1024 * 1024


class VideoFormats:
    """Video extensions recognised by the scanner and the rollback lookup."""

    EXTENSIONS = (
        ".mp4",
        ".avi",
        ".mkv",
        ".mov",
        ".wmv",
        ".flv",
        ".webm",
        ".m4v",
        ".mpg",
        ".mpeg",
        ".3gp",
    )


class ExclusionPatterns:
    """Directory names never descended into while scanning."""

    DIRECTORIES = (
        "node_modules",
        "temp",
        "downloads",
        "@eaDir",
        "output",
        ".log",
        ".cache",
    )


class CacheDefaults:
    DIR_NAME = ".cache"
    MAX_MEMORY_ITEMS = 1000
    MAX_AGE = BASE_DAY
    CLEANUP_INTERVAL = BASE_HOUR
    FILE_SUFFIX = ".json"
    TEMP_SUFFIX = ".tmp"
    METADATA_KEY_PREFIX = "metadata:"


class QueueDefaults:
    CONCURRENCY = 32
    HISTORY_LIMIT = 1000
    ENQUEUE_TIMEOUT = 0.0


class RetryDefaults:
    """Backoff profiles (attempts, base delay, max delay in seconds)."""

    MAX_ATTEMPTS = 3

    NETWORK_BASE_DELAY = 2.0
    NETWORK_MAX_DELAY = 10.0

    IMAGE_BASE_DELAY = 1.0
    IMAGE_MAX_DELAY = 10.0

    LOCAL_BASE_DELAY = 1.0
    LOCAL_MAX_DELAY = 5.0


class ScraperDefaults:
    BASE_URL = "https://javdb.com"
    COOKIE_DOMAIN = "javdb.com"
    COOKIE_FILE = "config/cookie.txt"
    LOCALE = "zh"
    TIMEOUT = 10.0
    RATE_LIMIT_RPS = 2.0
    USER_AGENT = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )


class ImageDefaults:
    TIMEOUT = 30.0
    FANART_NAME = "fanart"
    POSTER_NAME = "poster"
    DEFAULT_EXTENSION = ".jpg"


class NfoDefaults:
    MPAA = "R18+"
    COUNTRY = "JP"
    POSTER_FILE = "poster.jpg"
    FANART_FILE = "fanart.jpg"
    EXTENSION = ".nfo"


class LogDefaults:
    DIR_NAME = ".log"
    FILENAME = "app.log"
    LEVEL = "INFO"
    MAX_BYTES = 10 * MIB
    BACKUP_COUNT = 5


class PipelineSteps:
    """Step names reported to the step observer."""

    METADATA = "metadata"
    DIRECTORY = "directory"
    NFO = "nfo"
    COVERS = "covers"
    MOVE = "move"
    ROLLBACK = "rollback"
    BATCH = "batch"


class StepStatus:
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"
    PROGRESS = "progress"


class ExitCodes:
    SUCCESS = 0
    FAILURE = 1
    INTERRUPTED = 130
