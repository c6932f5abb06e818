"""
P24 Client - Configuration.

============================================================
PURPOSE
============================================================
All configuration for the P24 client.

CRITICAL CONSTRAINTS:
- Limited retries, never on signature or envelope errors
- One shared request budget per transport
- Credentials come from the environment, never from code

============================================================
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Optional

from dotenv import load_dotenv

from p24_client.exceptions import ValidationError
from p24_client.signature import Merchant


logger = logging.getLogger(__name__)


DEFAULT_BALANCE_URL = "https://api.privatbank.ua/p24api/balance"
DEFAULT_STATEMENTS_URL = "https://api.privatbank.ua/p24api/rest_fiz"


# ============================================================
# RETRY CONFIGURATION
# ============================================================

@dataclass
class RetryConfig:
    """
    Retry configuration for HTTP attempts.

    Backoff before retry n (0-based) is min(max, min * 2^n) unless
    the server sends Retry-After.
    """

    max_retries: int = 4
    """Maximum number of retries after the first attempt."""

    min_backoff_seconds: float = 1.0
    """Delay before the first retry."""

    max_backoff_seconds: float = 30.0
    """Maximum delay between retries."""

    def backoff(self, attempt: int) -> float:
        return min(self.max_backoff_seconds, self.min_backoff_seconds * (2 ** attempt))


# ============================================================
# RATE LIMIT CONFIGURATION
# ============================================================

@dataclass
class RateLimitConfig:
    """
    Rate limit configuration.

    Shared by every request of a transport, retries included.
    """

    requests_per_second: float = 2.0
    """Sustained request rate."""

    burst: int = 2
    """Maximum burst of requests."""


# ============================================================
# TIMEOUT CONFIGURATION
# ============================================================

@dataclass
class TimeoutConfig:
    """
    Timeout configuration of a single HTTP attempt.
    """

    connect_timeout_seconds: float = 10.0
    """Connection timeout."""

    total_timeout_seconds: float = 90.0
    """Timeout of one complete request/response exchange."""


# ============================================================
# CLIENT CONFIGURATION
# ============================================================

@dataclass
class ClientConfig:
    """
    Complete P24 client configuration.
    """

    retry: RetryConfig = field(default_factory=RetryConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)

    balance_url: str = DEFAULT_BALANCE_URL
    statements_url: str = DEFAULT_STATEMENTS_URL

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """
        Build config from defaults overridden by environment variables.

        Reads P24_MAX_RETRIES, P24_REQUESTS_PER_SECOND, P24_HTTP_TIMEOUT,
        P24_BALANCE_URL and P24_STATEMENTS_URL.
        """
        load_dotenv()
        config = cls()

        max_retries = _env_number("P24_MAX_RETRIES", int)
        if max_retries is not None:
            config.retry.max_retries = max_retries

        requests_per_second = _env_number("P24_REQUESTS_PER_SECOND", float)
        if requests_per_second is not None:
            config.rate_limit.requests_per_second = requests_per_second

        http_timeout = _env_number("P24_HTTP_TIMEOUT", float)
        if http_timeout is not None:
            config.timeout.total_timeout_seconds = http_timeout

        config.balance_url = os.getenv("P24_BALANCE_URL") or config.balance_url
        config.statements_url = os.getenv("P24_STATEMENTS_URL") or config.statements_url
        return config

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "max_retries": self.retry.max_retries,
            "min_backoff_seconds": self.retry.min_backoff_seconds,
            "max_backoff_seconds": self.retry.max_backoff_seconds,
            "requests_per_second": self.rate_limit.requests_per_second,
            "burst": self.rate_limit.burst,
            "connect_timeout_seconds": self.timeout.connect_timeout_seconds,
            "total_timeout_seconds": self.timeout.total_timeout_seconds,
            "balance_url": self.balance_url,
            "statements_url": self.statements_url,
        }


def _env_number(name: str, convert: type) -> Optional[Any]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return convert(raw.strip())
    except ValueError as e:
        raise ValidationError(f"invalid {name}: {raw!r}", field_name=name, original_error=e)


def load_merchant_from_env() -> Merchant:
    """
    Load merchant credentials from P24_MERCHANT_ID / P24_MERCHANT_PASSWORD.

    A .env file in the working directory is read first.

    Raises:
        ValidationError: If either variable is missing or empty
    """
    load_dotenv()

    merchant_id = os.getenv("P24_MERCHANT_ID", "").strip()
    password = os.getenv("P24_MERCHANT_PASSWORD", "")

    if not merchant_id:
        raise ValidationError("P24_MERCHANT_ID environment variable not set", field_name="P24_MERCHANT_ID")
    if not password:
        raise ValidationError(
            "P24_MERCHANT_PASSWORD environment variable not set",
            field_name="P24_MERCHANT_PASSWORD",
        )

    logger.debug(f"[config] Loaded merchant {merchant_id} from environment")
    return Merchant(id=merchant_id, password=password)
