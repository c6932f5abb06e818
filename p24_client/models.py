"""
P24 Client Models - Queries and typed results.

Provides strict typing for the P24 balance and statements operations.
All models are immutable value objects built per call.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

from p24_client.amount import Amount, Funds
from p24_client.exceptions import ValidationError
from p24_client.timezone import bank_date


DEFAULT_OPERATION = "cmt"

MAX_STATEMENTS_RANGE = timedelta(days=90)

_ONLY_DIGITS = re.compile(r"[0-9]+")


def check_card_number(card_number: str) -> None:
    """
    Check that card_number is exactly sixteen ASCII digits.

    Raises:
        ValidationError: If the card number is invalid
    """
    if len(card_number) != 16:
        raise ValidationError("invalid card number: should be sixteen length", field_name="card_number")
    if not _ONLY_DIGITS.fullmatch(card_number):
        raise ValidationError("invalid card number: should contains digits only", field_name="card_number")


@dataclass(frozen=True)
class CommonQueryOptions:
    """Options shared by every P24 request."""

    operation: str = DEFAULT_OPERATION
    wait: int = 0
    test: int = 0

    def is_zero(self) -> bool:
        """True when every field is zero-valued."""
        return not self.operation and self.wait == 0 and self.test == 0

    def or_default(self) -> "CommonQueryOptions":
        """Default options if self is zero-valued, else self."""
        return CommonQueryOptions() if self.is_zero() else self


@dataclass(frozen=True)
class BalanceQuery:
    """Card balance request parameters."""

    card_number: str
    country: str = ""
    options: CommonQueryOptions = field(default_factory=CommonQueryOptions)

    def validate(self) -> None:
        check_card_number(self.card_number)


@dataclass(frozen=True)
class StatementQuery:
    """
    Statements request parameters.

    Dates are calendar dates in the bank timezone; datetimes are converted.
    A single P24 request may cover at most 90 days.
    """

    start_date: date
    end_date: date
    card_number: str
    options: CommonQueryOptions = field(default_factory=CommonQueryOptions)

    def __post_init__(self) -> None:
        object.__setattr__(self, "start_date", bank_date(self.start_date))
        object.__setattr__(self, "end_date", bank_date(self.end_date))

    def validate_order(self) -> None:
        """Check card number and that start_date <= end_date."""
        if self.start_date > self.end_date:
            raise ValidationError(
                "invalid date range: start date should be <= end date",
                field_name="start_date",
            )
        check_card_number(self.card_number)

    def validate(self) -> None:
        """
        Check the query for a single P24 request.

        Raises:
            ValidationError: On inverted or overlong range, or bad card number
        """
        if self.start_date > self.end_date:
            raise ValidationError(
                "invalid date range: start date should be <= end date",
                field_name="start_date",
            )
        if self.end_date - self.start_date > MAX_STATEMENTS_RANGE:
            raise ValidationError(
                "invalid date range: should be no longer than 90 days",
                field_name="end_date",
            )
        check_card_number(self.card_number)

    def with_range(self, start_date: date, end_date: date) -> "StatementQuery":
        """Copy of this query for another date range."""
        return StatementQuery(
            start_date=start_date,
            end_date=end_date,
            card_number=self.card_number,
            options=self.options,
        )


@dataclass(frozen=True)
class DateRange:
    """One planned statements sub-range, both ends inclusive."""

    start: date
    end: date

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


@dataclass(frozen=True)
class Card:
    """State of a merchant card."""

    account: str = ""
    number: str = ""
    account_name: str = ""
    account_type: str = ""
    currency: str = ""
    card_type: str = ""
    main_card_number: str = ""
    status: str = ""
    source: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "account": self.account,
            "number": self.number,
            "account_name": self.account_name,
            "account_type": self.account_type,
            "currency": self.currency,
            "card_type": self.card_type,
            "main_card_number": self.main_card_number,
            "status": self.status,
            "source": self.source,
        }


@dataclass(frozen=True)
class CardBalance:
    """Balance snapshot of a merchant card."""

    as_of: datetime
    card: Card
    available: Amount
    balance: Amount
    finance_limit: Amount
    trade_limit: Amount
    dynamic: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "as_of": self.as_of.isoformat(),
            "card": self.card.to_dict(),
            "available": str(self.available),
            "balance": str(self.balance),
            "finance_limit": str(self.finance_limit),
            "trade_limit": str(self.trade_limit),
            "dynamic": self.dynamic,
        }


@dataclass(frozen=True)
class Statement:
    """A single statement entry."""

    card: str
    approval_code: str
    transaction_time: datetime
    terminal: str
    description: str
    amount: Funds
    card_amount: Funds
    rest: Funds

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "card": self.card,
            "approval_code": self.approval_code,
            "transaction_time": self.transaction_time.isoformat(),
            "terminal": self.terminal,
            "description": self.description,
            "amount": str(self.amount),
            "card_amount": str(self.card_amount),
            "rest": str(self.rest),
        }


@dataclass(frozen=True)
class Statements:
    """
    Statements list of a merchant card.

    Entries keep the order returned by the bank.
    """

    status: str = ""
    entries: tuple[Statement, ...] = ()
    total_debit: Amount = field(default_factory=Amount)
    total_credit: Amount = field(default_factory=Amount)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "status": self.status,
            "total_debit": str(self.total_debit),
            "total_credit": str(self.total_credit),
            "entries": [entry.to_dict() for entry in self.entries],
        }

