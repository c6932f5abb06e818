"""
P24 Client - XML Protocol Codec.

============================================================
PURPOSE
============================================================
Builds signed XML requests and parses signed XML responses.

Request:
    <request version="1.0">
        <merchant><id>..</id><signature>..</signature></merchant>
        <data><oper>cmt</oper><wait>0</wait><test>0</test>
              <payment id=""><prop name=".." value=".."/></payment></data>
    </request>

Response:
    <response version="1.0">
        <merchant><id>..</id><signature>..</signature></merchant>
        <data><oper>..</oper><info>..</info></data>
    </response>

The signature covers the serialized content of <data> only.

============================================================
RESPONSE CHECKS (in order)
============================================================
1. In-band bank errors (three wire shapes) -> RemoteError
2. Envelope structure and <data> fragment  -> MalformedResponseError
3. Merchant signature over <data> content  -> SignatureMismatchError
4. <info> decoded into the expected shape  -> MalformedResponseError

============================================================
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional, Sequence, Union

from p24_client.amount import Amount, Funds
from p24_client.exceptions import (
    MalformedResponseError,
    RemoteError,
    SignatureMismatchError,
)
from p24_client.models import (
    BalanceQuery,
    Card,
    CardBalance,
    CommonQueryOptions,
    Statement,
    StatementQuery,
    Statements,
)
from p24_client.signature import Merchant, MerchantSignature
from p24_client.timezone import parse_bank_time


logger = logging.getLogger(__name__)


PROTOCOL_VERSION = "1.0"

XML_HEADER = b'<?xml version="1.0" encoding="UTF-8"?>\n'

DATA_OPEN = b"<data>"
DATA_CLOSE = b"</data>"

STATEMENTS_REQUEST_DATE_LAYOUT = "%d.%m.%Y"
STATEMENTS_RESPONSE_TIME_LAYOUT = "%Y-%m-%d %H:%M:%S"
BALANCE_RESPONSE_TIME_LAYOUT = "%d.%m.%y %H:%M"


# ============================================================
# REQUEST ENCODING
# ============================================================

@dataclass(frozen=True)
class SignedEnvelope:
    """Signed request ready to be sent."""

    signature: MerchantSignature
    data_fragment: bytes
    """Signed content of the <data> element."""

    body: bytes
    """Complete request document."""

    version: str = PROTOCOL_VERSION


def data_fragment(document: bytes) -> bytes:
    """
    Raw content between the first <data> and the last </data> tag.

    Raises:
        MalformedResponseError: If either tag is missing
    """
    start, end = document.find(DATA_OPEN), document.rfind(DATA_CLOSE)
    if start == -1 or end == -1 or end < start + len(DATA_OPEN):
        raise MalformedResponseError("invalid '<data>' tag: not found", field_name="data")
    return document[start + len(DATA_OPEN):end]


def _serialize(element: ET.Element) -> bytes:
    return ET.tostring(element, encoding="unicode", short_empty_elements=False).encode("utf-8")


def build_request(
    merchant: Merchant,
    properties: Sequence[tuple[str, str]],
    options: Optional[CommonQueryOptions] = None,
) -> SignedEnvelope:
    """
    Build a signed request document.

    Args:
        merchant: Merchant credentials used for signing
        properties: (name, value) pairs rendered as <prop> elements
        options: Common options, defaults when unset or zero-valued

    Returns:
        SignedEnvelope whose body embeds exactly the signed fragment
    """
    options = (options or CommonQueryOptions()).or_default()

    data = ET.Element("data")
    ET.SubElement(data, "oper").text = options.operation
    ET.SubElement(data, "wait").text = str(options.wait)
    ET.SubElement(data, "test").text = str(options.test)
    payment = ET.SubElement(data, "payment", {"id": ""})
    for name, value in properties:
        ET.SubElement(payment, "prop", {"name": name, "value": value})

    fragment = data_fragment(_serialize(data))
    signature = merchant.sign(fragment)

    request = ET.Element("request", {"version": PROTOCOL_VERSION})
    merchant_element = ET.SubElement(request, "merchant")
    ET.SubElement(merchant_element, "id").text = signature.merchant_id
    ET.SubElement(merchant_element, "signature").text = signature.signature
    request.append(data)

    return SignedEnvelope(
        signature=signature,
        data_fragment=fragment,
        body=XML_HEADER + _serialize(request),
    )


def build_balance_request(merchant: Merchant, query: BalanceQuery) -> SignedEnvelope:
    """Signed card balance request."""
    return build_request(
        merchant,
        [("cardnum", query.card_number), ("country", query.country)],
        query.options,
    )


def build_statements_request(merchant: Merchant, query: StatementQuery) -> SignedEnvelope:
    """Signed statements request for a single date range."""
    return build_request(
        merchant,
        [
            ("sd", query.start_date.strftime(STATEMENTS_REQUEST_DATE_LAYOUT)),
            ("ed", query.end_date.strftime(STATEMENTS_REQUEST_DATE_LAYOUT)),
            ("card", query.card_number),
        ],
        query.options,
    )


# ============================================================
# IN-BAND ERROR DETECTION
# ============================================================

def _own_text(element: ET.Element) -> str:
    """Character data directly inside element, children excluded."""
    parts = [element.text or ""]
    parts.extend(child.tail or "" for child in element)
    return "".join(parts).strip()


def _root_error(root: ET.Element) -> Optional[str]:
    # <error>For input string: "some input"</error>
    if root.tag != "error":
        return None
    return _own_text(root) or None


def _data_error(root: ET.Element) -> Optional[str]:
    # <response><data><error message="invalid signature"/></data></response>
    if root.tag != "response":
        return None
    error = root.find("data/error")
    if error is None:
        return None
    return error.get("message") or None


def _info_error(root: ET.Element) -> Optional[str]:
    # <response><data><oper>cmt</oper><info>an error msg</info></data></response>
    if root.tag != "response":
        return None
    info = root.find("data/info")
    if info is None or len(info):
        return None
    return _own_text(info) or None


ERROR_DETECTORS: tuple[tuple[str, Callable[[ET.Element], Optional[str]]], ...] = (
    ("error", _root_error),
    ("data_error", _data_error),
    ("info_text", _info_error),
)
"""Error shapes in priority order; the first match wins."""


def detect_error(root: Optional[ET.Element]) -> Optional[RemoteError]:
    """Return a RemoteError for the first matching error shape, if any."""
    if root is None:
        return None
    for shape, detector in ERROR_DETECTORS:
        message = detector(root)
        if message:
            return RemoteError(message, shape=shape)
    return None


# ============================================================
# INFO DECODING
# ============================================================

class InfoShape(Enum):
    """Expected content of the <info> element."""

    BALANCE = "cardbalance"
    STATEMENTS = "statements"


def _decode_field(field_name: str, parse: Callable[[str], Any], text: str) -> Any:
    try:
        return parse(text)
    except ValueError as e:
        raise MalformedResponseError(
            f"can`t decode {field_name} {text!r}",
            field_name=field_name,
            original_error=e,
        )


def _amount(field_name: str, text: Optional[str]) -> Amount:
    text = (text or "").strip()
    if not text:
        return Amount()
    return _decode_field(field_name, Amount.parse, text)


def _funds(field_name: str, text: Optional[str]) -> Funds:
    if text is None:
        return Funds(Amount())
    return _decode_field(field_name, Funds.parse, text)


def _time(field_name: str, text: str, layout: str) -> datetime:
    return _decode_field(field_name, lambda value: parse_bank_time(value, layout), text)


def decode_card_balance(info: ET.Element) -> CardBalance:
    """Decode <info><cardbalance>..</cardbalance></info>."""
    element = info.find(InfoShape.BALANCE.value)
    if element is None or not len(element):
        raise MalformedResponseError("empty info", field_name="info")

    def text(path: str) -> str:
        return (element.findtext(path) or "").strip()

    card = Card(
        account=text("card/account"),
        number=text("card/card_number"),
        account_name=text("card/acc_name"),
        account_type=text("card/acc_type"),
        currency=text("card/currency"),
        card_type=text("card/card_type"),
        main_card_number=text("card/main_card_number"),
        status=text("card/card_stat"),
        source=text("card/src"),
    )

    return CardBalance(
        as_of=_time("bal_date", text("bal_date"), BALANCE_RESPONSE_TIME_LAYOUT),
        card=card,
        available=_amount("av_balance", text("av_balance")),
        balance=_amount("balance", text("balance")),
        finance_limit=_amount("fin_limit", text("fin_limit")),
        trade_limit=_amount("trade_limit", text("trade_limit")),
        dynamic=text("bal_dyn"),
    )


def _decode_statement(element: ET.Element) -> Statement:
    moment = f"{element.get('trandate', '')} {element.get('trantime', '')}"
    return Statement(
        card=element.get("card", ""),
        approval_code=element.get("appcode", ""),
        transaction_time=_time("trandate", moment, STATEMENTS_RESPONSE_TIME_LAYOUT),
        terminal=element.get("terminal", ""),
        description=element.get("description", ""),
        amount=_funds("amount", element.get("amount")),
        card_amount=_funds("cardamount", element.get("cardamount")),
        rest=_funds("rest", element.get("rest")),
    )


def decode_statements(info: ET.Element) -> Statements:
    """Decode <info><statements ..><statement ../>..</statements></info>."""
    element = info.find(InfoShape.STATEMENTS.value)
    if element is None or (not element.attrib and not len(element)):
        raise MalformedResponseError("empty info", field_name="info")

    return Statements(
        status=element.get("status", ""),
        entries=tuple(_decode_statement(entry) for entry in element.findall("statement")),
        total_debit=_amount("debet", element.get("debet")),
        total_credit=_amount("credit", element.get("credit")),
    )


INFO_DECODERS: dict[InfoShape, Callable[[ET.Element], Any]] = {
    InfoShape.BALANCE: decode_card_balance,
    InfoShape.STATEMENTS: decode_statements,
}


# ============================================================
# RESPONSE PARSING
# ============================================================

def _parse_root(document: bytes) -> Optional[ET.Element]:
    try:
        return ET.fromstring(document)
    except ET.ParseError:
        return None


def _declared_signature(root: ET.Element) -> MerchantSignature:
    return MerchantSignature(
        merchant_id=(root.findtext("merchant/id") or "").strip(),
        signature=(root.findtext("merchant/signature") or "").strip(),
    )


def parse_response(
    document: bytes,
    merchant: Merchant,
    shape: InfoShape,
) -> Union[CardBalance, Statements]:
    """
    Validate a response document and decode its <info> into shape.

    Raises:
        RemoteError: Bank error embedded in the response
        MalformedResponseError: Invalid envelope or undecodable info
        SignatureMismatchError: Signature does not match <data> content
    """
    root = _parse_root(document)

    remote_error = detect_error(root)
    if remote_error is not None:
        raise remote_error

    if root is None:
        raise MalformedResponseError("can`t unmarshal common response: not well-formed xml")
    if root.tag != "response":
        raise MalformedResponseError(f"can`t unmarshal common response: unexpected root <{root.tag}>")

    fragment = data_fragment(document)
    data = root.find("data")
    if data is None or not fragment.strip():
        raise MalformedResponseError("invalid '<data>' tag: empty", field_name="data")

    if not merchant.verify(fragment, _declared_signature(root)):
        raise SignatureMismatchError("xml response with invalid signature")

    info = data.find("info")
    if info is None:
        raise MalformedResponseError("empty info", field_name="info")

    result = INFO_DECODERS[shape](info)
    logger.debug(f"[codec] Decoded {shape.value} response ({len(document)} bytes)")
    return result


def parse_balance_response(document: bytes, merchant: Merchant) -> CardBalance:
    return parse_response(document, merchant, InfoShape.BALANCE)


def parse_statements_response(document: bytes, merchant: Merchant) -> Statements:
    return parse_response(document, merchant, InfoShape.STATEMENTS)
