"""
Test helpers for P24 client tests.

HTTP is replaced by FakeSession, an aiohttp-like session replaying a
scripted list of responses or exceptions.
"""

import asyncio
from typing import Any, Callable, Optional, Union

from p24_client import Merchant


CARD_NUMBER = "5168123412341234"

BALANCE_INFO = (
    "<cardbalance>"
    "<card>"
    "<account>5168123412341234980</account>"
    "<card_number>5168123412341234</card_number>"
    "<acc_name>Card for payments</acc_name>"
    "<acc_type>CC</acc_type>"
    "<currency>UAH</currency>"
    "<card_type>Universal</card_type>"
    "<main_card_number>5168123412341234</main_card_number>"
    "<card_stat>norm</card_stat>"
    "<src>M</src>"
    "</card>"
    "<av_balance>19.37</av_balance>"
    "<bal_date>11.09.13 15:56</bal_date>"
    "<bal_dyn>E</bal_dyn>"
    "<balance>19.37</balance>"
    "<fin_limit>0.0</fin_limit>"
    "<trade_limit>0.0</trade_limit>"
    "</cardbalance>"
)


def statement_xml(
    appcode: str,
    trandate: str = "2013-09-02",
    trantime: str = "13:14:00",
    amount: str = "3.50 UAH",
    description: str = "Payment",
) -> str:
    return (
        f'<statement card="{CARD_NUMBER}" appcode="{appcode}" trandate="{trandate}" '
        f'trantime="{trantime}" amount="{amount}" cardamount="-{amount}" '
        f'rest="100.00 UAH" terminal="PrivatBank" description="{description}"/>'
    )


def statements_info(*entries: str, status: str = "excellent", credit: str = "0.0", debet: str = "3.5") -> str:
    return (
        f'<statements status="{status}" credit="{credit}" debet="{debet}">'
        + "".join(entries)
        + "</statements>"
    )


def signed_response(merchant: Merchant, info: str, oper: str = "cmt") -> bytes:
    """Response document correctly signed by merchant."""
    fragment = f"<oper>{oper}</oper><info>{info}</info>".encode("utf-8")
    signature = merchant.sign(fragment)
    return (
        b'<?xml version="1.0" encoding="UTF-8"?>\n'
        b'<response version="1.0"><merchant>'
        + f"<id>{signature.merchant_id}</id><signature>{signature.signature}</signature>".encode("utf-8")
        + b"</merchant><data>"
        + fragment
        + b"</data></response>"
    )


# ============================================================
# FAKE HTTP
# ============================================================

class FakeResponse:
    """Subset of aiohttp.ClientResponse used by the transport."""

    def __init__(self, status: int = 200, body: bytes = b"", headers: Optional[dict[str, str]] = None):
        self.status = status
        self.body = body
        self.headers = headers or {}

    async def read(self) -> bytes:
        return self.body

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None


Reply = Union[FakeResponse, BaseException, Callable[[dict[str, Any]], Any]]


class FakeSession:
    """
    aiohttp-like session replaying scripted replies in order.

    A reply is a FakeResponse, an exception to raise, or a callable
    receiving the call record and returning either (may be async).
    The last reply repeats once the script is exhausted.
    """

    def __init__(self, *replies: Reply):
        self.replies = list(replies)
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def request(self, method: str, url: str, data: bytes = b"", headers: Optional[dict[str, str]] = None):
        call = {"method": method, "url": url, "data": data, "headers": headers or {}}
        self.calls.append(call)
        index = min(len(self.calls), len(self.replies)) - 1
        return _FakeRequestContext(self.replies[index], call)

    async def close(self) -> None:
        self.closed = True


class _FakeRequestContext:
    def __init__(self, reply: Reply, call: dict[str, Any]):
        self.reply = reply
        self.call = call

    async def __aenter__(self) -> FakeResponse:
        reply = self.reply
        if callable(reply) and not isinstance(reply, (FakeResponse, BaseException)):
            reply = reply(self.call)
            if asyncio.iscoroutine(reply):
                reply = await reply
        if isinstance(reply, BaseException):
            raise reply
        return reply

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None
