"""Cliff-plus-linear vesting schedule calculation."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from captable.core.decimals import ONE_HUNDRED, ZERO, to_decimal


@dataclass(slots=True, frozen=True)
class VestingSchedule:
    quantity: Decimal
    grant_date: date
    cliff_months: int
    vesting_duration_months: int
    cliff_percentage: Decimal
    exercised: Decimal = ZERO


@dataclass(slots=True, frozen=True)
class VestingSummary:
    quantity: Decimal
    exercised: Decimal
    vested: Decimal
    unvested: Decimal
    vested_unexercised: Decimal
    months_elapsed: int
    cliff_reached: bool
    fully_vested: bool


def months_between(start: date, end: date) -> int:
    """Calendar-month difference; the day of month is ignored."""

    return (end.year - start.year) * 12 + (end.month - start.month)


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def vested_quantity(schedule: VestingSchedule, now: date | datetime) -> Decimal:
    quantity = to_decimal(schedule.quantity)
    duration = schedule.vesting_duration_months or 0
    cliff = schedule.cliff_months or 0

    if duration <= 0:
        return quantity

    elapsed = months_between(schedule.grant_date, _as_date(now))
    if elapsed < cliff:
        return ZERO
    if elapsed >= duration:
        return quantity

    linear_months = duration - cliff
    if linear_months <= 0:
        return quantity

    cliff_amount = quantity * to_decimal(schedule.cliff_percentage) / ONE_HUNDRED
    remaining = quantity - cliff_amount
    vested = cliff_amount + remaining * Decimal(elapsed - cliff) / Decimal(linear_months)
    return min(vested, quantity)


def calculate_vesting(schedule: VestingSchedule, now: date | datetime) -> VestingSummary:
    """Summarise how much of a grant has vested at ``now``."""

    quantity = to_decimal(schedule.quantity)
    exercised = to_decimal(schedule.exercised)
    vested = vested_quantity(schedule, now)
    elapsed = months_between(schedule.grant_date, _as_date(now))
    return VestingSummary(
        quantity=quantity,
        exercised=exercised,
        vested=vested,
        unvested=quantity - vested,
        vested_unexercised=max(vested - exercised, ZERO),
        months_elapsed=elapsed,
        cliff_reached=elapsed >= (schedule.cliff_months or 0),
        fully_vested=vested >= quantity,
    )


__all__ = ["VestingSchedule", "VestingSummary", "calculate_vesting", "months_between", "vested_quantity"]
