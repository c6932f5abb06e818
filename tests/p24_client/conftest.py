"""
Shared fixtures for P24 client tests.
"""

from typing import Optional

import pytest

from p24_client import (
    ClientConfig,
    Merchant,
    P24Client,
    RateLimitConfig,
    RateLimitedRetryTransport,
    RetryConfig,
    TokenBucket,
)
from tests.p24_client.helpers import FakeSession, Reply


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def merchant() -> Merchant:
    """Merchant with test credentials."""
    return Merchant(id="121212", password="secret-password")


@pytest.fixture
def fast_config() -> ClientConfig:
    """Config with tiny backoff and an effectively unlimited rate."""
    return ClientConfig(
        retry=RetryConfig(max_retries=4, min_backoff_seconds=0.001, max_backoff_seconds=0.01),
        rate_limit=RateLimitConfig(requests_per_second=1000.0, burst=100),
    )


@pytest.fixture
def make_client(merchant, fast_config):
    """Factory building a client over a FakeSession; unlimited rate unless a limiter is given."""

    def factory(
        *replies: Reply,
        config: Optional[ClientConfig] = None,
        limiter: Optional[TokenBucket] = None,
    ) -> tuple[P24Client, FakeSession]:
        session = FakeSession(*replies)
        transport = RateLimitedRetryTransport(
            config=config or fast_config,
            session=session,
            limiter=limiter or TokenBucket.unlimited(),
        )
        return P24Client(merchant, transport=transport), session

    return factory
