"""
P24 Client - Bank timezone.

All timestamps in P24 responses are local times of the bank
(Europe/Kyiv), regardless of the caller's timezone. The zone is loaded
once at import time from the IANA database (system or the `tzdata`
package) and shared read-only.
"""

from datetime import date, datetime
from zoneinfo import ZoneInfo


BANK_TIMEZONE_NAME = "Europe/Kyiv"

BANK_TIMEZONE = ZoneInfo(BANK_TIMEZONE_NAME)


def parse_bank_time(text: str, layout: str) -> datetime:
    """Parse text with a strptime layout as a bank-local timestamp."""
    return datetime.strptime(text, layout).replace(tzinfo=BANK_TIMEZONE)


def bank_date(value: date) -> date:
    """Calendar date of value in the bank timezone."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(BANK_TIMEZONE).date()
    return value
