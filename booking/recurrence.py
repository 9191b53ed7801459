"""
Recurring appointment series.

A series is a set of ordinary appointments sharing a recurring_group_id,
numbered by recurrence_index. Every occurrence goes through the same checks
as a single booking; edits, cancellations and pauses can target one
occurrence, this-and-following, or the whole series.
"""

from datetime import date, time
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from uuid import uuid4

from dateutil.relativedelta import relativedelta

from availability.hours_resolver import HoursResolver
from config import settings
from models.appointment import (
    ACTIVE_STATUSES,
    MUTABLE_STATUSES,
    Appointment,
    AppointmentStatus,
)
from models.booking import (
    OccurrenceCheck,
    OccurrenceFailure,
    RejectionKind,
    ScopedChangeResult,
    SeriesCheck,
    SeriesRequest,
    SeriesResult,
)
from models.recurrence import RecurrencePattern, RecurrenceRule, RecurrenceScope
from models.service import Service
from notifications.dispatcher import NotificationDispatcher, SupabaseFunctionTransport
from utils.constants import DEFAULT_CUSTOM_INTERVAL_DAYS, MAX_NOTES_LENGTH
from utils.datetime_utils import Clock, get_default_clock
from utils.exceptions import ConflictError, PersistenceError
from utils.logging_config import setup_logging
from utils.validation import sanitize_text

from .transaction import (
    build_appointment,
    check_slot,
    divergence_changes,
    notification_data,
    resolve_client_id,
)

logger = setup_logging(name=__name__, log_file="booking.log")

_RULE_STEPS = {
    RecurrenceRule.WEEKLY: relativedelta(weeks=1),
    RecurrenceRule.BIWEEKLY: relativedelta(weeks=2),
    RecurrenceRule.TRIWEEKLY: relativedelta(weeks=3),
    RecurrenceRule.MONTHLY: relativedelta(months=1),
}

_RULE_LABELS = {
    RecurrenceRule.WEEKLY: "Every week",
    RecurrenceRule.BIWEEKLY: "Every 2 weeks",
    RecurrenceRule.TRIWEEKLY: "Every 3 weeks",
    RecurrenceRule.MONTHLY: "Every month",
}


def _step(pattern: RecurrencePattern) -> relativedelta:
    if pattern.rule == RecurrenceRule.CUSTOM:
        days = pattern.custom_interval_days or DEFAULT_CUSTOM_INTERVAL_DAYS
        return relativedelta(days=days)
    return _RULE_STEPS[pattern.rule]


def expand_occurrences(
    start_date: date,
    pattern: RecurrencePattern,
    max_occurrences: Optional[int] = None,
) -> List[date]:
    """
    Dates of a series, first one included.

    Each date is computed from the start date (start + i * step), so monthly
    series keep their day of month and clamp to shorter months without
    drifting. An end date is inclusive; every series is capped.
    """
    cap = max_occurrences or settings.max_recurrence_occurrences
    limit = min(pattern.count, cap) if pattern.count else cap
    step = _step(pattern)

    dates: List[date] = []
    index = 0
    while len(dates) < limit:
        current = start_date + step * index
        if pattern.end_date is not None and current > pattern.end_date:
            break
        dates.append(current)
        index += 1
    return dates


def describe_pattern(pattern: RecurrencePattern) -> str:
    """Human-readable summary, e.g. "Every 2 weeks, 6 times"."""
    if pattern.rule == RecurrenceRule.CUSTOM:
        days = pattern.custom_interval_days or DEFAULT_CUSTOM_INTERVAL_DAYS
        label = "Every day" if days == 1 else f"Every {days} days"
    else:
        label = _RULE_LABELS[pattern.rule]

    if pattern.count:
        return f"{label}, {pattern.count} time{'s' if pattern.count != 1 else ''}"
    return f"{label} until {pattern.end_date.strftime('%d/%m/%Y')}"


def series_total_price(unit_price: Optional[Decimal], occurrences: int) -> Decimal:
    return (unit_price or Decimal("0")) * occurrences


def shift_dates(
    appointments: Sequence[Appointment], delta_days: int
) -> List[Tuple[Appointment, date]]:
    """Pair each appointment with its own current date moved by delta_days."""
    delta = relativedelta(days=delta_days)
    return [(a, a.appointment_date + delta) for a in appointments]


# ========== Scope handlers ==========


def _single_scope(target: Appointment, series: List[Appointment]) -> List[Appointment]:
    return [target]


def _future_scope(target: Appointment, series: List[Appointment]) -> List[Appointment]:
    start = target.recurrence_index or 0
    return [
        a
        for a in series
        if (a.recurrence_index or 0) >= start and a.status in MUTABLE_STATUSES
    ]


def _all_scope(target: Appointment, series: List[Appointment]) -> List[Appointment]:
    return [a for a in series if a.status in MUTABLE_STATUSES]


ScopeHandler = Callable[[Appointment, List[Appointment]], List[Appointment]]

SCOPE_HANDLERS: Dict[RecurrenceScope, ScopeHandler] = {
    RecurrenceScope.SINGLE: _single_scope,
    RecurrenceScope.FUTURE: _future_scope,
    RecurrenceScope.ALL: _all_scope,
}


def _failure(appointment: Appointment, kind: str, reason: str, on: Optional[date] = None):
    return OccurrenceFailure(
        occurrence_date=on or appointment.appointment_date,
        appointment_id=appointment.id,
        kind=kind,
        reason=reason,
    )


class RecurrenceManager:
    """Creates series and applies scoped changes to them."""

    def __init__(
        self,
        db=None,
        notifier: Optional[NotificationDispatcher] = None,
        resolver: Optional[HoursResolver] = None,
        clock: Optional[Clock] = None,
        max_occurrences: Optional[int] = None,
    ):
        if db is None:
            from db import get_db_client

            db = get_db_client()
        self.db = db
        self.clock = clock or get_default_clock()
        self.resolver = resolver or HoursResolver(clock=self.clock)
        self.notifier = notifier or NotificationDispatcher(SupabaseFunctionTransport(db))
        self.max_occurrences = (
            settings.max_recurrence_occurrences if max_occurrences is None else max_occurrences
        )

    def expand(self, request: SeriesRequest) -> List[date]:
        return expand_occurrences(
            request.appointment_date, request.pattern, self.max_occurrences
        )

    async def _check(self, request: SeriesRequest) -> Tuple[Service, SeriesCheck]:
        service = await self.db.get_service(request.service_id)
        dates = self.expand(request)
        if not dates:
            return service, SeriesCheck()
        snapshot = await self.db.get_schedule_snapshot(
            request.barbershop_id, request.staff_id, dates[0], dates[-1]
        )
        appointments = await self.db.list_staff_appointments(
            request.staff_id, dates[0], dates[-1], ACTIVE_STATUSES
        )

        occurrences = []
        for index, occurrence_date in enumerate(dates):
            rejection = check_slot(
                self.resolver,
                snapshot,
                request.staff_id,
                occurrence_date,
                request.appointment_time,
                service.duration_minutes,
                appointments,
            )
            occurrences.append(
                OccurrenceCheck(
                    index=index,
                    occurrence_date=occurrence_date,
                    available=rejection is None,
                    kind=rejection.kind if rejection else None,
                    reason=rejection.reason if rejection else None,
                )
            )
        return service, SeriesCheck(occurrences=occurrences)

    async def check_series(self, request: SeriesRequest) -> SeriesCheck:
        """Bookability of every date of the series. Writes nothing."""
        _, check = await self._check(request)
        return check

    async def create_series(
        self, request: SeriesRequest, continue_with_available: bool = False
    ) -> SeriesResult:
        """
        Persist a series.

        With any unavailable date nothing is written unless the caller
        explicitly chose to continue with the available dates only.
        """
        service, check = await self._check(request)
        conflicts = check.conflicts

        if conflicts and not continue_with_available:
            logger.info(
                f"Series for staff {request.staff_id} not created: "
                f"{len(conflicts)} of {len(check.occurrences)} dates unavailable"
            )
            return SeriesResult(committed=False, conflicts=conflicts)

        dates = check.available_dates
        if not dates:
            return SeriesResult(committed=False, conflicts=conflicts)

        client_id = await resolve_client_id(self.db, request)
        group_id = str(uuid4())
        created: List[Appointment] = []
        failed: List[OccurrenceFailure] = []

        for index, occurrence_date in enumerate(dates):
            data = build_appointment(
                request,
                service,
                client_id,
                occurrence_date,
                is_recurring=True,
                recurring_group_id=group_id,
                recurrence_rule=request.pattern.rule.value,
                recurrence_index=index,
            )
            try:
                created.append(await self.db.insert_appointment(data))
            except (ConflictError, PersistenceError) as e:
                logger.warning(f"Series {group_id}: {occurrence_date} not created: {e}")
                failed.append(
                    OccurrenceFailure(
                        occurrence_date=occurrence_date, kind=e.kind, reason=e.reason
                    )
                )

        logger.info(
            f"Series {group_id}: {len(created)} created, {len(failed)} failed, "
            f"{len(conflicts)} skipped"
        )
        if created:
            self.notifier.fire_and_forget(
                request.client_phone,
                "series_created",
                notification_data(
                    created[0],
                    count=len(created),
                    description=describe_pattern(request.pattern),
                    total_price=str(series_total_price(service.price, len(created))),
                ),
            )
        return SeriesResult(
            committed=bool(created),
            recurring_group_id=group_id,
            created=created,
            conflicts=conflicts,
            failed=failed,
        )

    async def _affected(
        self, target: Appointment, scope: RecurrenceScope
    ) -> List[Appointment]:
        if scope == RecurrenceScope.SINGLE or not target.recurring_group_id:
            return [target]
        series = await self.db.list_series(target.recurring_group_id)
        # Occurrences already behind us stay as they are
        today = self.clock.today()
        return [
            a
            for a in SCOPE_HANDLERS[scope](target, series)
            if a.id == target.id or a.appointment_date >= today
        ]


    async def _validate_moves(
        self, moves: List[Tuple[Appointment, date, time]]
    ) -> List[OccurrenceFailure]:
        first = moves[0][0]
        dates = [new_date for _, new_date, _ in moves]
        snapshot = await self.db.get_schedule_snapshot(
            first.barbershop_id, first.staff_id, min(dates), max(dates)
        )
        appointments = await self.db.list_staff_appointments(
            first.staff_id, min(dates), max(dates), ACTIVE_STATUSES
        )
        batch_ids = {a.id for a, _, _ in moves}

        failures = []
        for appointment, new_date, new_time in moves:
            rejection = check_slot(
                self.resolver,
                snapshot,
                appointment.staff_id,
                new_date,
                new_time,
                appointment.duration,
                appointments,
                batch_ids,
            )
            if rejection is not None:
                failures.append(
                    _failure(appointment, rejection.kind.value, rejection.reason, new_date)
                )
        return failures

    async def _write(
        self, changes: List[Tuple[Appointment, Dict[str, Any]]]
    ) -> ScopedChangeResult:
        updated: List[Appointment] = []
        failed: List[OccurrenceFailure] = []
        for appointment, row in changes:
            try:
                updated.append(await self.db.update_appointment(appointment.id, row))
            except (ConflictError, PersistenceError) as e:
                logger.warning(f"Occurrence {appointment.id} not updated: {e}")
                failed.append(_failure(appointment, e.kind, e.reason))
        return ScopedChangeResult(committed=bool(updated), updated=updated, failed=failed)

    async def update_occurrences(
        self,
        appointment_id: str,
        scope: RecurrenceScope,
        new_date: Optional[date] = None,
        new_time: Optional[time] = None,
        notes: Optional[str] = None,
    ) -> ScopedChangeResult:
        """
        Move and/or annotate occurrences of a series.

        The day delta between new_date and the target's current date is
        applied to every affected occurrence's own date. All moves are
        validated first; if any fails nothing is written.
        """
        target = await self.db.get_appointment(appointment_id)
        if target.status not in MUTABLE_STATUSES:
            return ScopedChangeResult(
                committed=False,
                conflicts=[
                    _failure(
                        target,
                        RejectionKind.VALIDATION.value,
                        f"A {target.status.value} appointment cannot be changed",
                    )
                ],
            )

        affected = await self._affected(target, scope)
        delta_days = (new_date - target.appointment_date).days if new_date else 0
        moving = delta_days != 0 or (
            new_time is not None and new_time != target.appointment_time
        )

        moves = [
            (appointment, moved_date, new_time or appointment.appointment_time)
            for appointment, moved_date in shift_dates(affected, delta_days)
        ]
        if moving:
            failures = await self._validate_moves(moves)
            if failures:
                logger.info(
                    f"Change to {appointment_id} ({scope.value}) rejected: "
                    f"{len(failures)} occurrences cannot move"
                )
                return ScopedChangeResult(committed=False, conflicts=failures)

        # Write in the direction of travel so no row lands on a slot another
        # row of the same batch still holds
        if delta_days > 0:
            moves.sort(key=lambda m: m[0].appointment_date, reverse=True)
        else:
            moves.sort(key=lambda m: m[0].appointment_date)

        changes = []
        for appointment, moved_date, moved_time in moves:
            row: Dict[str, Any] = {}
            if moving:
                row["appointment_date"] = moved_date
                row["appointment_time"] = moved_time
                if scope == RecurrenceScope.SINGLE:
                    row.update(divergence_changes(appointment, moved_date))
            if notes is not None:
                row["notes"] = sanitize_text(notes, MAX_NOTES_LENGTH)
            if row:
                changes.append((appointment, row))

        result = await self._write(changes)
        if moving and result.updated:
            first = min(result.updated, key=lambda a: a.appointment_date)
            self.notifier.fire_and_forget(
                target.client_phone,
                "booking_rescheduled",
                notification_data(first, count=len(result.updated)),
            )
        return result

    async def cancel_occurrences(
        self, appointment_id: str, scope: RecurrenceScope
    ) -> ScopedChangeResult:
        target = await self.db.get_appointment(appointment_id)
        affected = [
            a for a in await self._affected(target, scope) if a.status in MUTABLE_STATUSES
        ]
        result = await self._write(
            [(a, {"status": AppointmentStatus.CANCELED}) for a in affected]
        )
        logger.info(
            f"Canceled {len(result.updated)} occurrences from {appointment_id} ({scope.value})"
        )
        if result.updated:
            self.notifier.fire_and_forget(
                target.client_phone,
                "booking_canceled",
                notification_data(target, count=len(result.updated)),
            )
        return result

    async def pause_occurrences(
        self,
        appointment_id: str,
        scope: RecurrenceScope,
        paused_until: Optional[date] = None,
        reason: Optional[str] = None,
    ) -> ScopedChangeResult:
        """Pause occurrences. They keep their slot but get no reminders."""
        target = await self.db.get_appointment(appointment_id)
        affected = [
            a
            for a in await self._affected(target, scope)
            if a.status in MUTABLE_STATUSES and not a.is_paused
        ]
        row = {
            "is_paused": True,
            "paused_at": self.clock.now(),
            "paused_until": paused_until,
            "pause_reason": sanitize_text(reason or "", MAX_NOTES_LENGTH) or None,
        }
        return await self._write([(a, dict(row)) for a in affected])

    async def resume_occurrences(
        self, appointment_id: str, scope: RecurrenceScope
    ) -> ScopedChangeResult:
        target = await self.db.get_appointment(appointment_id)
        affected = [a for a in await self._affected(target, scope) if a.is_paused]
        row = {
            "is_paused": False,
            "paused_at": None,
            "paused_until": None,
            "pause_reason": None,
        }
        return await self._write([(a, dict(row)) for a in affected])
