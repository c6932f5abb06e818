"""
P24 Client - Statements range planner.

P24 serves at most 90 days of statements per request. Longer ranges are
split into consecutive windows that are fetched independently and merged
back in planning order.
"""

import logging
from datetime import date, timedelta
from typing import Iterable

from p24_client.amount import Amount
from p24_client.models import MAX_STATEMENTS_RANGE, DateRange, Statements


logger = logging.getLogger(__name__)


ONE_DAY = timedelta(days=1)


def split_date_range(start: date, end: date) -> list[DateRange]:
    """
    Split [start, end] into windows of at most 90 days.

    Windows are [s, min(s + 90 days, end)], the next one starting the day
    after the previous one ends. Ranges of 90 days or less, inverted
    ranges included, are returned as a single unmodified window.

    Args:
        start: First day, inclusive
        end: Last day, inclusive

    Returns:
        Windows in chronological order
    """
    if end - start <= MAX_STATEMENTS_RANGE:
        return [DateRange(start, end)]

    windows = []
    window_start = start
    while window_start <= end:
        window_end = min(window_start + MAX_STATEMENTS_RANGE, end)
        windows.append(DateRange(window_start, window_end))
        window_start = window_end + ONE_DAY

    logger.debug(f"[planner] Split {start}..{end} into {len(windows)} windows")
    return windows


def merge_statements(results: Iterable[Statements]) -> Statements:
    """
    Merge per-window results.

    Entries are concatenated in input order, debit and credit totals are
    summed and the status of the last result wins.
    """
    status = ""
    entries = []
    total_debit = Amount()
    total_credit = Amount()

    for result in results:
        status = result.status
        entries.extend(result.entries)
        total_debit += result.total_debit
        total_credit += result.total_credit

    return Statements(
        status=status,
        entries=tuple(entries),
        total_debit=total_debit,
        total_credit=total_credit,
    )
