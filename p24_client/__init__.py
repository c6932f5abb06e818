"""
P24 Client Package - PrivatBank P24 merchant information API client.

Provides signed, rate-limited, concurrent access to card balances and
statements of a P24 merchant.

Features:
- Chained-hash signing of every request, verification of every response
- Typed results with fixed-point amounts
- Shared token bucket and bounded retries with backoff
- Arbitrary statement ranges split into concurrent 90 day windows
- Classified errors carrying request/response context

Quick Start:
    from datetime import date

    from p24_client import (
        BalanceQuery,
        P24Client,
        StatementQuery,
        load_merchant_from_env,
    )

    async def report():
        async with P24Client(load_merchant_from_env()) as client:
            balance = await client.get_balance(BalanceQuery("5168123412341234"))
            print(f"{balance.card.currency}: {balance.balance}")

            statements = await client.get_statements(
                StatementQuery(date(2024, 1, 1), date(2024, 12, 31), "5168123412341234")
            )
            for entry in statements.entries:
                print(f"{entry.transaction_time}: {entry.card_amount} {entry.description}")

Environment:
    P24_MERCHANT_ID, P24_MERCHANT_PASSWORD (required, .env supported)
    P24_MAX_RETRIES, P24_REQUESTS_PER_SECOND, P24_HTTP_TIMEOUT (optional)
"""

from p24_client.amount import Amount, Funds
from p24_client.client import CallState, P24Client
from p24_client.config import (
    ClientConfig,
    RateLimitConfig,
    RetryConfig,
    TimeoutConfig,
    load_merchant_from_env,
)
from p24_client.context import RequestContext
from p24_client.exceptions import (
    FormatError,
    MalformedResponseError,
    P24Error,
    RemoteError,
    RequestCancelledError,
    SignatureMismatchError,
    TransportError,
    TransportTimeoutError,
    ValidationError,
)
from p24_client.models import (
    BalanceQuery,
    Card,
    CardBalance,
    CommonQueryOptions,
    DateRange,
    Statement,
    StatementQuery,
    Statements,
    check_card_number,
)
from p24_client.planner import merge_statements, split_date_range
from p24_client.rate_limiter import TokenBucket
from p24_client.signature import Merchant, MerchantSignature
from p24_client.transport import HttpRequest, RateLimitedRetryTransport


__version__ = "1.0.0"

__all__ = [
    # Client
    "P24Client",
    "CallState",
    # Configuration
    "ClientConfig",
    "RetryConfig",
    "RateLimitConfig",
    "TimeoutConfig",
    "load_merchant_from_env",
    # Transport
    "RateLimitedRetryTransport",
    "HttpRequest",
    "TokenBucket",
    "RequestContext",
    # Signing
    "Merchant",
    "MerchantSignature",
    # Models
    "Amount",
    "Funds",
    "BalanceQuery",
    "StatementQuery",
    "CommonQueryOptions",
    "Card",
    "CardBalance",
    "Statement",
    "Statements",
    "DateRange",
    "check_card_number",
    # Planning
    "split_date_range",
    "merge_statements",
    # Exceptions
    "P24Error",
    "FormatError",
    "ValidationError",
    "TransportError",
    "TransportTimeoutError",
    "RemoteError",
    "SignatureMismatchError",
    "MalformedResponseError",
    "RequestCancelledError",
]
