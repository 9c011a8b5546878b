"""Pydantic schemas for option grant resources."""
from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel

from captable.core.decimals import format_decimal
from captable.models import OptionGrant, OptionGrantStatus
from captable.services.vesting import VestingSummary


class ExerciseRequest(BaseModel):
    quantity: Decimal


class VestingRead(BaseModel):
    grant_id: str
    quantity: str
    exercised: str
    vested: str
    unvested: str
    vested_unexercised: str
    months_elapsed: int
    cliff_reached: bool
    fully_vested: bool

    @classmethod
    def from_summary(cls, grant_id: str, summary: VestingSummary) -> "VestingRead":
        return cls(
            grant_id=grant_id,
            quantity=format_decimal(summary.quantity) or "0",
            exercised=format_decimal(summary.exercised) or "0",
            vested=format_decimal(summary.vested) or "0",
            unvested=format_decimal(summary.unvested) or "0",
            vested_unexercised=format_decimal(summary.vested_unexercised) or "0",
            months_elapsed=summary.months_elapsed,
            cliff_reached=summary.cliff_reached,
            fully_vested=summary.fully_vested,
        )


class OptionGrantRead(BaseModel):
    id: str
    employee_name: str
    quantity: str
    exercised: str
    status: OptionGrantStatus

    @classmethod
    def from_model(cls, grant: OptionGrant) -> "OptionGrantRead":
        return cls(
            id=grant.id,
            employee_name=grant.employee_name,
            quantity=format_decimal(grant.quantity) or "0",
            exercised=format_decimal(grant.exercised) or "0",
            status=grant.status,
        )


__all__ = ["ExerciseRequest", "OptionGrantRead", "VestingRead"]
