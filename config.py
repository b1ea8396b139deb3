"""
Configuration for the ICHRA quote engine.
Settings are read from environment variables (a local .env is honoured).
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv

from constants import (
    DEFAULT_PLAN_YEAR,
    DEFAULT_MAX_WORKERS,
    DEFAULT_GROUP_TIMEOUT_SECONDS,
    DEFAULT_RECOMMENDED_PLAN_COUNT,
    SUPPORTED_PLAN_YEARS,
)

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    if not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"CONFIG: {name}={raw!r} is not an integer, using {default}")
        return default


def _float_from_env(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    if not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"CONFIG: {name}={raw!r} is not a number, using {default}")
        return default


@dataclass
class QuoteConfig:
    """Configuration for group quoting."""
    reference_data_dir: Optional[str] = None
    plan_year: int = DEFAULT_PLAN_YEAR
    max_workers: int = DEFAULT_MAX_WORKERS
    group_timeout_seconds: float = DEFAULT_GROUP_TIMEOUT_SECONDS
    recommended_plan_count: int = DEFAULT_RECOMMENDED_PLAN_COUNT
    log_level: str = "INFO"

    @classmethod
    def from_environment(cls) -> "QuoteConfig":
        """Load configuration from environment variables."""
        return cls(
            reference_data_dir=os.getenv("REFERENCE_DATA_DIR") or None,
            plan_year=_int_from_env("QUOTE_PLAN_YEAR", DEFAULT_PLAN_YEAR),
            max_workers=_int_from_env("QUOTE_MAX_WORKERS", DEFAULT_MAX_WORKERS),
            group_timeout_seconds=_float_from_env(
                "QUOTE_GROUP_TIMEOUT_SECONDS", DEFAULT_GROUP_TIMEOUT_SECONDS
            ),
            recommended_plan_count=_int_from_env(
                "QUOTE_RECOMMENDED_PLAN_COUNT", DEFAULT_RECOMMENDED_PLAN_COUNT
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def validate(self) -> Tuple[bool, str]:
        """Validate configuration. Returns (is_valid, error_message)."""
        if self.plan_year not in SUPPORTED_PLAN_YEARS:
            return False, (
                f"QUOTE_PLAN_YEAR {self.plan_year} is not supported "
                f"(supported: {', '.join(str(y) for y in SUPPORTED_PLAN_YEARS)})"
            )
        if self.max_workers < 1:
            return False, "QUOTE_MAX_WORKERS must be at least 1"
        if self.group_timeout_seconds <= 0:
            return False, "QUOTE_GROUP_TIMEOUT_SECONDS must be greater than 0"
        if self.recommended_plan_count < 1:
            return False, "QUOTE_RECOMMENDED_PLAN_COUNT must be at least 1"
        if self.log_level not in LOG_LEVELS:
            return False, f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}"
        if self.reference_data_dir and not os.path.isdir(self.reference_data_dir):
            return False, f"REFERENCE_DATA_DIR {self.reference_data_dir} does not exist"
        return True, ""
