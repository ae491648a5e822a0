"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    VIOLATIONS = 1
    ERROR = 2


class DefaultRiskSignals(Enum):
    """Default thresholds for risk signals.

    Args:
        Enum (int): Default thresholds for risk signals.
    """

    LOW_DOWNLOADS_THRESHOLD = 1000
    STALE_GEM_THRESHOLD_YEARS = 3


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    PROGRAM_NAME = "gemgate"
    VERSION = "0.1.0"

    REGISTRY_URL_RUBYGEMS = "https://rubygems.org/api/v1"
    PUBLIC_REGISTRY_HOST = "rubygems.org"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests

    DEFAULT_COOLDOWN_DAYS = 14
    DEFAULT_MAX_THREADS = 32

    CONFIG_FILENAME = ".gemgate.yml"
    LOCKFILE_NAME = "Gemfile.lock"
    CACHE_DIRNAME = ".bundle"
    CACHE_FILENAME = "gemgate-cache.yml"
    CACHE_VERSION = 1

    OUTDATED_COMMAND = ["bundle", "outdated", "--parseable"]
    AUDIT_VERSION_COMMAND = ["bundle", "audit", "--version"]
    AUDIT_COMMAND = ["bundle", "audit", "check", "--update"]

    SECONDS_PER_DAY = 86400
    SECONDS_PER_YEAR = 365.25 * 86400

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    ENV_LOG_LEVEL = "GEMGATE_LOG_LEVEL"
    ANALYSIS = "[ANALYSIS]"
