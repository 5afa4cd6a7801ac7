"""Calendar arithmetic for subscription terms.

Terms are extended in calendar months, never in fixed day counts: one month
after 2024-01-31 is 2024-02-29 and twelve months after 2024-02-29 is
2025-02-28 (the day is clamped to the last day of a shorter month).
Trials are the exception and always last exactly ``TRIAL_PERIOD_DAYS``.
"""
from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta

TRIAL_PERIOD_DAYS = 7


def add_months(start: datetime, months: int) -> datetime:
    """Add calendar months to ``start``, clamping to the end of short months."""
    return start + relativedelta(months=months)


def extend_term(current_end: datetime | None, months: int, now: datetime) -> datetime:
    """New end date after paying for ``months`` more.

    A term that has already lapsed restarts from ``now`` so a renewal never
    back-dates access; a live term is extended from its current end.
    """
    base = current_end if current_end is not None and current_end > now else now
    return add_months(base, months)


def trial_end(now: datetime) -> datetime:
    return now + timedelta(days=TRIAL_PERIOD_DAYS)


def initial_term_end(now: datetime, months: int, is_trial: bool) -> datetime:
    """End date of a brand-new subscription."""
    if is_trial:
        return trial_end(now)
    return add_months(now, months)
