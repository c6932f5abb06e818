"""
P24 Client - Fixed-point Amounts.

============================================================
PURPOSE
============================================================
Exact two-decimal currency values as used by the P24 API.

- Stored as an integer number of hundredths
- Parsing truncates digits past the second decimal place
  ("123.6789" is 123.67, never 123.68)
- Arithmetic is integer arithmetic only

============================================================
"""

import re
from dataclasses import dataclass
from typing import Any, Union

from p24_client.exceptions import FormatError


DECIMAL_PRECISION = 100

_INTEGER = re.compile(r"[+-]?[0-9]+")


def _as_text(text: Union[str, bytes]) -> str:
    if isinstance(text, bytes):
        return text.decode("ascii", errors="replace")
    return text


@dataclass(frozen=True, order=True)
class Amount:
    """
    P24 amount with two decimal places, e.g. 123.45, -12, 12.02, 33.2.

    `cents` holds the value scaled by DECIMAL_PRECISION.
    """

    cents: int = 0

    @classmethod
    def parse(cls, text: Union[str, bytes]) -> "Amount":
        """
        Parse an amount from its text form.

        Everything after the second decimal place is dropped.

        Raises:
            FormatError: If text is empty or not a number
        """
        text = _as_text(text)
        if not text:
            raise FormatError(f"parsing {text!r}: invalid syntax", text)

        digits = text + "00"
        point = digits.find(".")
        if point != -1:
            digits = digits[:point + 3].replace(".", "", 1)

        if not _INTEGER.fullmatch(digits):
            raise FormatError(f"parsing {text!r}: invalid syntax", text)

        return cls(int(digits))

    def format(self) -> str:
        """Render as decimal text; an exact ".00" collapses to an integer."""
        sign = "-" if self.cents < 0 else ""
        integer, fraction = divmod(abs(self.cents), DECIMAL_PRECISION)
        text = f"{integer}.{fraction:02d}".rstrip("0").rstrip(".")
        return f"{sign}{text}"

    def to_float(self) -> float:
        """Lossy float value, for tabular export only."""
        return float(self.format())

    def __str__(self) -> str:
        return self.format()

    def __add__(self, other: Any) -> "Amount":
        if not isinstance(other, Amount):
            return NotImplemented
        return Amount(self.cents + other.cents)

    def __sub__(self, other: Any) -> "Amount":
        if not isinstance(other, Amount):
            return NotImplemented
        return Amount(self.cents - other.cents)

    def __neg__(self) -> "Amount":
        return Amount(-self.cents)

    def __bool__(self) -> bool:
        return self.cents != 0


@dataclass(frozen=True)
class Funds:
    """
    Amount with a currency code.

    Text form is "<amount> <currency>" where the currency may be empty,
    e.g. "23.12 UAH", "-12 USD", "0.05 ".
    """

    amount: Amount
    currency: str = ""

    @classmethod
    def parse(cls, text: Union[str, bytes]) -> "Funds":
        """
        Parse funds from "<amount> <currency>".

        Raises:
            FormatError: If the text is not exactly two space-separated parts
        """
        text = _as_text(text)
        parts = text.split(" ")
        if len(parts) != 2:
            raise FormatError(f"parsing {text!r}: invalid syntax", text)

        amount_text, currency = parts
        return cls(amount=Amount.parse(amount_text), currency=currency)

    def format(self) -> str:
        return f"{self.amount} {self.currency}"

    def __str__(self) -> str:
        return self.format()
