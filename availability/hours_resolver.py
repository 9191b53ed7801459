"""
Effective opening hours for a (barbershop, staff, date) triple.

Hours come from four configuration layers. They are merged by an ordered
chain of rules: each rule either decides the outcome or returns None to pass
to the next one. Precedence, most specific first:

    past date > blocked date > special hours > staff schedule > business hours

When no rule decides, the date is not bookable ("no hours configured").
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional, Sequence

from models.availability import ReasonCode, ValidationResult
from models.schedule import ScheduleSnapshot, Weekday
from utils.datetime_utils import Clock, get_default_clock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolutionContext:
    """Inputs shared by every rule in the chain."""

    snapshot: ScheduleSnapshot
    target_date: date
    staff_id: Optional[str]
    today: date

    @property
    def weekday(self) -> Weekday:
        return Weekday.from_date(self.target_date)


HoursRule = Callable[[ResolutionContext], Optional[ValidationResult]]


def past_date_rule(ctx: ResolutionContext) -> Optional[ValidationResult]:
    if ctx.target_date < ctx.today:
        return ValidationResult.invalid(
            ReasonCode.PAST_DATE, "This date is in the past"
        )
    return None


def blocked_date_rule(ctx: ResolutionContext) -> Optional[ValidationResult]:
    if ctx.snapshot.is_blocked(ctx.target_date):
        return ValidationResult.invalid(
            ReasonCode.BLOCKED, "This date is blocked for bookings"
        )
    return None


def special_hours_rule(ctx: ResolutionContext) -> Optional[ValidationResult]:
    special = ctx.snapshot.special_for(ctx.target_date)
    if special is None:
        return None
    if not special.is_open:
        reason = "The barbershop is closed on this date (special hours)"
        if special.reason:
            reason = f"{reason}: {special.reason}"
        return ValidationResult.invalid(ReasonCode.SPECIAL_CLOSED, reason)
    return ValidationResult.valid(special.to_window())


def staff_schedule_rule(ctx: ResolutionContext) -> Optional[ValidationResult]:
    """
    A staff member's own hours replace the shop hours entirely.

    Multi-unit staff are first checked against their unit assignment for the
    weekday; single-unit staff use their custom schedule if they have one.
    """
    if not ctx.staff_id:
        return None

    snapshot = ctx.snapshot
    unit_days = snapshot.staff_unit_days(ctx.staff_id, ctx.weekday)
    if unit_days:
        try:
            assigned = snapshot.assigned_unit(ctx.staff_id, ctx.weekday)
        except ValueError as e:
            logger.warning(f"Inconsistent unit schedule: {e}")
            return ValidationResult.invalid(ReasonCode.INCONSISTENT_CONFIG, str(e))
        if assigned is None:
            return ValidationResult.invalid(
                ReasonCode.STAFF_OFF, "This professional does not work on this day"
            )
        if assigned.unit_id != snapshot.barbershop_id:
            return ValidationResult.invalid(
                ReasonCode.STAFF_OTHER_UNIT,
                "This professional works at another unit on this day",
            )
        return ValidationResult.valid(assigned.to_window())

    custom = snapshot.staff_day(ctx.staff_id, ctx.weekday)
    if custom is None:
        return None
    if not custom.is_open:
        return ValidationResult.invalid(
            ReasonCode.STAFF_OFF, "This professional does not work on this day"
        )
    return ValidationResult.valid(custom.to_window())


def business_hours_rule(ctx: ResolutionContext) -> Optional[ValidationResult]:
    hours = ctx.snapshot.business_day(ctx.weekday)
    if hours is None:
        return None
    if not hours.is_open:
        return ValidationResult.invalid(
            ReasonCode.SHOP_CLOSED, "The barbershop is closed on this weekday"
        )
    return ValidationResult.valid(hours.to_window())


DEFAULT_RULES: Sequence[HoursRule] = (
    past_date_rule,
    blocked_date_rule,
    special_hours_rule,
    staff_schedule_rule,
    business_hours_rule,
)


class HoursResolver:
    """Resolves the effective window of a date from a schedule snapshot."""

    def __init__(
        self,
        clock: Optional[Clock] = None,
        rules: Sequence[HoursRule] = DEFAULT_RULES,
    ):
        self.clock = clock or get_default_clock()
        self.rules = tuple(rules)

    def resolve(
        self,
        snapshot: ScheduleSnapshot,
        target_date: date,
        staff_id: Optional[str] = None,
    ) -> ValidationResult:
        ctx = ResolutionContext(
            snapshot=snapshot,
            target_date=target_date,
            staff_id=staff_id,
            today=self.clock.today(),
        )
        for rule in self.rules:
            result = rule(ctx)
            if result is not None:
                return result

        return ValidationResult.invalid(
            ReasonCode.NO_HOURS, "No opening hours configured for this day"
        )
