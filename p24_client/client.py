"""
P24 Client - Main client.

============================================================
PURPOSE
============================================================
Public entry point for the P24 information API.

get_balance:
    validate -> build signed request -> send -> verify and decode

get_statements:
    validate -> plan <=90 day windows -> fetch every window concurrently
    -> merge in planning order

The first failing window cancels its siblings and is the only error
raised. No partial statements are ever returned.

============================================================
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from p24_client.codec import (
    SignedEnvelope,
    build_balance_request,
    build_statements_request,
    parse_balance_response,
    parse_statements_response,
)
from p24_client.config import ClientConfig
from p24_client.context import RequestContext
from p24_client.exceptions import P24Error
from p24_client.logging_utils import mask_body, mask_card_number, mask_signature, mask_text
from p24_client.models import BalanceQuery, CardBalance, StatementQuery, Statements
from p24_client.planner import merge_statements, split_date_range
from p24_client.signature import Merchant
from p24_client.transport import HttpRequest, RateLimitedRetryTransport


logger = logging.getLogger(__name__)


class CallState(Enum):
    """Lifecycle of a single API call."""

    IDLE = "idle"
    BUILT = "built"
    SENT = "sent"
    PARSED = "parsed"
    FAILED = "failed"


class P24Client:
    """
    P24 merchant API client.

    Usage:
        async with P24Client(load_merchant_from_env()) as client:
            balance = await client.get_balance(BalanceQuery("5168..."))
            statements = await client.get_statements(
                StatementQuery(date(2024, 1, 1), date(2024, 12, 31), "5168...")
            )
    """

    name = "p24"

    def __init__(
        self,
        merchant: Merchant,
        transport: Optional[RateLimitedRetryTransport] = None,
        config: Optional[ClientConfig] = None,
    ) -> None:
        self.merchant = merchant
        if config is None:
            config = transport.config if transport is not None else ClientConfig()
        self.config = config
        self._transport = transport or RateLimitedRetryTransport(config)
        self._owns_transport = transport is None

    @property
    def transport(self) -> RateLimitedRetryTransport:
        return self._transport

    # ============================================================
    # OPERATIONS
    # ============================================================

    async def get_balance(
        self,
        query: BalanceQuery,
        context: Optional[RequestContext] = None,
    ) -> CardBalance:
        """
        Fetch the balance of a merchant card.

        Raises:
            ValidationError: Invalid card number, before any I/O
            P24Error: Classified transport, bank or response error
        """
        query.validate()
        return await self._call(
            "balance",
            self.config.balance_url,
            build_balance_request(self.merchant, query),
            parse_balance_response,
            context,
            card_number=query.card_number,
        )

    async def fetch_statements(
        self,
        query: StatementQuery,
        context: Optional[RequestContext] = None,
    ) -> Statements:
        """
        Fetch statements with a single request.

        The range may not exceed 90 days; use get_statements for longer ones.
        """
        query.validate()
        return await self._call(
            "statements",
            self.config.statements_url,
            build_statements_request(self.merchant, query),
            parse_statements_response,
            context,
            card_number=query.card_number,
        )

    async def get_statements(
        self,
        query: StatementQuery,
        context: Optional[RequestContext] = None,
    ) -> Statements:
        """
        Fetch statements for an arbitrary date range.

        The range is split into windows of at most 90 days that are fetched
        concurrently. Entries are returned in chronological window order
        whatever the completion order.

        Raises:
            ValidationError: Invalid card number or start after end
            RequestCancelledError: Context cancelled before all windows completed
            P24Error: The first window failure
        """
        query.validate_order()

        windows = split_date_range(query.start_date, query.end_date)
        sub_queries = [query.with_range(window.start, window.end) for window in windows]
        for sub_query in sub_queries:
            sub_query.validate()

        logger.debug(
            f"[{self.name}] statements {mask_card_number(query.card_number)} "
            f"{query.start_date}..{query.end_date}: {len(windows)} window(s)"
        )
        results = await self._fetch_all(sub_queries, context or RequestContext.background())
        return merge_statements(results)

    # ============================================================
    # FAN-OUT
    # ============================================================

    async def _fetch_all(
        self,
        queries: Sequence[StatementQuery],
        context: RequestContext,
    ) -> list[Statements]:
        """Fetch every query concurrently; all or nothing."""
        slots: list[Optional[Statements]] = [None] * len(queries)
        errors: list[BaseException] = []

        async def worker(slot: int, query: StatementQuery) -> None:
            try:
                slots[slot] = await self.fetch_statements(query, context)
            except Exception as e:
                errors.append(e)
                raise

        tasks = [asyncio.create_task(worker(slot, query)) for slot, query in enumerate(queries)]
        try:
            _, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        except asyncio.CancelledError:
            await self._cancel_all(tasks)
            raise

        if errors:
            if pending:
                logger.debug(f"[{self.name}] Cancelling {len(pending)} sibling window(s) after failure")
            await self._cancel_all(tasks)
            raise errors[0]

        return list(slots)

    @staticmethod
    async def _cancel_all(tasks: Sequence["asyncio.Future[Any]"]) -> None:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # ============================================================
    # SINGLE CALL
    # ============================================================

    async def _call(
        self,
        operation: str,
        url: str,
        envelope: SignedEnvelope,
        parse: Callable[[bytes, Merchant], Any],
        context: Optional[RequestContext],
        card_number: str = "",
    ) -> Any:
        tag = f"[{self.name}] {operation} {mask_card_number(card_number)}"
        state = CallState.BUILT
        logger.debug(
            f"{tag}: {CallState.IDLE.value} -> {state.value} "
            f"(merchant {envelope.signature.merchant_id}, "
            f"signature {mask_signature(envelope.signature.signature)})"
        )

        request = HttpRequest(url=url, body=envelope.body)
        response: Optional[bytes] = None
        try:
            response = await self._transport.execute(request, context)
            state = self._transition(tag, state, CallState.SENT)
            result = parse(response, self.merchant)
        except P24Error as e:
            self._transition(tag, state, CallState.FAILED, f": {mask_text(e.message)}")
            logger.debug(f"{tag}: request {mask_body(request.body)!r}")
            raise e.annotate(
                request_url=request.url,
                method=request.method,
                request_body=request.body,
                response_body=response,
            )

        self._transition(tag, state, CallState.PARSED)
        return result

    @staticmethod
    def _transition(tag: str, current: CallState, new: CallState, detail: str = "") -> CallState:
        logger.debug(f"{tag}: {current.value} -> {new.value}{detail}")
        return new

    # ============================================================
    # LIFECYCLE
    # ============================================================

    async def close(self) -> None:
        """Close the transport if this client created it."""
        if self._owns_transport:
            await self._transport.close()

    async def __aenter__(self) -> "P24Client":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<P24Client(merchant={self.merchant.id!r})>"
