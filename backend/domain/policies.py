"""Pure business rules for cancellation deadlines and rating aggregation."""

from __future__ import annotations

from datetime import date, timedelta


def cancellation_deadline(check_in_date: date, window_days: int = 1) -> date:
    """Last calendar day on which a booking is still cancellable.

    Cancellation requires ``today + window_days < check_in_date``, so with the
    default one-day window the check-in must be more than one day away.
    """
    if window_days < 0:
        raise ValueError("window_days must be >= 0")
    return check_in_date - timedelta(days=window_days + 1)


def is_cancellation_open(check_in_date: date, today: date, window_days: int = 1) -> bool:
    return today <= cancellation_deadline(check_in_date, window_days)


def validate_stay_dates(check_in_date: date, check_out_date: date) -> None:
    if check_out_date <= check_in_date:
        raise ValueError("check_out_date must be after check_in_date")


def incremental_mean(previous_mean: float, previous_count: int, sample: float) -> float:
    """Fold one sample into a running mean, rounded to 2 decimals."""
    if previous_count < 0:
        raise ValueError("previous_count must be >= 0")
    total = previous_mean * previous_count + sample
    return round(total / (previous_count + 1), 2)
