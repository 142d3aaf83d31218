"""
Subscription scheduling engine

Pure functions only: no database, no clock reads. Callers pass the reference
instant explicitly so every result is reproducible.

- validate_config: raw payload -> SubscriptionConfig (first failing rule wins)
- compute_next_delivery: schedule + reference -> next slot strictly after it
- transition: lifecycle state machine (active / paused / cancelled)
- roll_forward: move a passed next-delivery onto the following slot

Weekdays use the storefront convention: Sunday=0 .. Saturday=6.
"""

import calendar
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional, Union

from .errors import (
    AlreadyCancelledError,
    AlreadyPausedError,
    EmptyItemsError,
    InvalidDeliveryDateError,
    InvalidFrequencyError,
    InvalidItemError,
    InvalidPaymentMethodError,
    InvalidTimeError,
    MissingAddressError,
    MissingDeliveryDaysError,
    NotPausedError,
)

FREQUENCIES = ("daily", "weekly", "monthly")
PAYMENT_METHODS = ("wallet", "cod", "card", "upi")
DAY_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


# ============================================================================
# VALUE OBJECTS
# ============================================================================


@dataclass(frozen=True)
class DeliveryTime:
    hour: int
    minute: int

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class DailySchedule:
    time: DeliveryTime
    frequency: str = field(default="daily", init=False)


@dataclass(frozen=True)
class WeeklySchedule:
    time: DeliveryTime
    days: frozenset
    frequency: str = field(default="weekly", init=False)


@dataclass(frozen=True)
class MonthlySchedule:
    time: DeliveryTime
    day: int
    frequency: str = field(default="monthly", init=False)


Schedule = Union[DailySchedule, WeeklySchedule, MonthlySchedule]


@dataclass(frozen=True)
class ConfigItem:
    product_id: str
    quantity: int


@dataclass(frozen=True)
class SubscriptionConfig:
    """A validated subscription request. Never mutated after validation."""

    items: tuple
    schedule: Schedule
    delivery_address_id: str
    payment_method: str = "wallet"
    customer_notes: Optional[str] = None
    start_date: Optional[datetime] = None

    @property
    def frequency(self) -> str:
        return self.schedule.frequency


# Lifecycle states. Each variant only carries the fields valid for it.


@dataclass(frozen=True)
class ActiveState:
    next_delivery: datetime
    status: str = field(default="active", init=False)


@dataclass(frozen=True)
class PausedState:
    next_delivery: datetime
    paused_until: Optional[datetime] = None
    reason: Optional[str] = None
    status: str = field(default="paused", init=False)


@dataclass(frozen=True)
class CancelledState:
    cancelled_at: datetime
    reason: Optional[str] = None
    status: str = field(default="cancelled", init=False)


LifecycleState = Union[ActiveState, PausedState, CancelledState]


@dataclass(frozen=True)
class Pause:
    reason: Optional[str] = None
    resume_date: Optional[datetime] = None


@dataclass(frozen=True)
class Resume:
    pass


@dataclass(frozen=True)
class Cancel:
    reason: Optional[str] = None


Action = Union[Pause, Resume, Cancel]


# ============================================================================
# VALIDATION
# ============================================================================


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _get(source: Any, key: str, default: Any = None) -> Any:
    if isinstance(source, dict):
        return source.get(key, default)
    return getattr(source, key, default)


def parse_delivery_time(raw: Any) -> DeliveryTime:
    """Validate a {hour, minute} mapping"""
    if raw is None:
        raise InvalidTimeError("delivery time is required")

    hour = _get(raw, "hour")
    minute = _get(raw, "minute")
    if not _is_int(hour) or not 0 <= hour <= 23:
        raise InvalidTimeError(f"hour must be between 0 and 23 (got {hour!r})")
    if not _is_int(minute) or not 0 <= minute <= 59:
        raise InvalidTimeError(f"minute must be between 0 and 59 (got {minute!r})")
    return DeliveryTime(hour=hour, minute=minute)


def build_schedule(frequency: Any, delivery_time: Any, delivery_days: Any, delivery_date: Any) -> Schedule:
    """
    Build the schedule variant for a frequency.

    The field that does not belong to the frequency is ignored entirely,
    so a stale deliveryDate on a weekly request is never looked at.
    """
    if frequency not in FREQUENCIES:
        raise InvalidFrequencyError(frequency)

    time = parse_delivery_time(delivery_time)

    if frequency == "weekly":
        if not delivery_days:
            raise MissingDeliveryDaysError()
        for day in delivery_days:
            if not _is_int(day) or not 0 <= day <= 6:
                raise MissingDeliveryDaysError(f"days must be between 0 (Sun) and 6 (Sat), got {day!r}")
        return WeeklySchedule(time=time, days=frozenset(delivery_days))

    if frequency == "monthly":
        if not _is_int(delivery_date) or not 1 <= delivery_date <= 31:
            raise InvalidDeliveryDateError(delivery_date)
        return MonthlySchedule(time=time, day=delivery_date)

    return DailySchedule(time=time)


def validate_config(payload: Any) -> SubscriptionConfig:
    """
    Validate a raw subscription request (dict or schema object with the
    storefront's camelCase keys). Checks run in a fixed order and the first
    failure is raised.

    Raises:
        SubscriptionConfigError subclass naming the offending field
    """
    raw_items = _get(payload, "items") or []
    if not raw_items:
        raise EmptyItemsError()

    items = []
    for index, raw_item in enumerate(raw_items):
        product_id = _get(raw_item, "productId")
        quantity = _get(raw_item, "quantity")
        if not product_id or not isinstance(product_id, str):
            raise InvalidItemError(index, "product is required")
        if not _is_int(quantity) or quantity < 1:
            raise InvalidItemError(index, "quantity must be at least 1")
        items.append(ConfigItem(product_id=product_id, quantity=quantity))

    frequency = _get(payload, "frequency")
    if frequency not in FREQUENCIES:
        raise InvalidFrequencyError(frequency)

    address_id = _get(payload, "deliveryAddressId")
    if not address_id or not isinstance(address_id, str) or not address_id.strip():
        raise MissingAddressError()

    schedule = build_schedule(
        frequency,
        _get(payload, "deliveryTime"),
        _get(payload, "deliveryDays"),
        _get(payload, "deliveryDate"),
    )

    payment_method = _get(payload, "paymentMethod") or "wallet"
    if payment_method not in PAYMENT_METHODS:
        raise InvalidPaymentMethodError(payment_method)

    return SubscriptionConfig(
        items=tuple(items),
        schedule=schedule,
        delivery_address_id=address_id.strip(),
        payment_method=payment_method,
        customer_notes=_get(payload, "customerNotes") or None,
        start_date=_get(payload, "startDate"),
    )


# ============================================================================
# NEXT DELIVERY
# ============================================================================


def storefront_weekday(moment: datetime) -> int:
    """Sunday=0 .. Saturday=6 (Python's weekday() has Monday=0)"""
    return (moment.weekday() + 1) % 7


def _slot(day: datetime, time: DeliveryTime) -> datetime:
    return day.replace(hour=time.hour, minute=time.minute, second=0, microsecond=0)


def _next_daily(schedule: DailySchedule, reference: datetime) -> datetime:
    candidate = _slot(reference, schedule.time)
    if candidate <= reference:
        candidate = _slot(reference + timedelta(days=1), schedule.time)
    return candidate


def _next_weekly(schedule: WeeklySchedule, reference: datetime) -> datetime:
    # Offset 7 revisits today's weekday next week, so a match always exists
    for offset in range(8):
        day = reference + timedelta(days=offset)
        if storefront_weekday(day) not in schedule.days:
            continue
        candidate = _slot(day, schedule.time)
        if candidate > reference:
            return candidate
    raise ValueError(f"Weekly schedule has no delivery days: {schedule!r}")


def clamp_day(year: int, month: int, day: int) -> int:
    """Day 31 in a 30-day month (or February) resolves to the month's last day"""
    return min(day, calendar.monthrange(year, month)[1])


def _next_monthly(schedule: MonthlySchedule, reference: datetime) -> datetime:
    year, month = reference.year, reference.month
    # The slot in the reference month either lies ahead or has passed;
    # in the latter case the following month always works.
    for _ in range(2):
        candidate = reference.replace(
            year=year,
            month=month,
            day=clamp_day(year, month, schedule.day),
            hour=schedule.time.hour,
            minute=schedule.time.minute,
            second=0,
            microsecond=0,
        )
        if candidate > reference:
            return candidate
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)
    raise ValueError(f"No monthly slot found after {reference.isoformat()}")


def compute_next_delivery(schedule: Schedule, reference: datetime) -> datetime:
    """
    Next delivery slot strictly after ``reference``.

    The result keeps ``reference``'s tzinfo; slots are wall-clock times.
    """
    if isinstance(schedule, DailySchedule):
        return _next_daily(schedule, reference)
    if isinstance(schedule, WeeklySchedule):
        return _next_weekly(schedule, reference)
    if isinstance(schedule, MonthlySchedule):
        return _next_monthly(schedule, reference)
    raise TypeError(f"Unknown schedule type: {type(schedule).__name__}")


def upcoming_deliveries(schedule: Schedule, reference: datetime, count: int) -> list[datetime]:
    """The next ``count`` slots after ``reference``, in order"""
    slots = []
    cursor = reference
    for _ in range(count):
        cursor = compute_next_delivery(schedule, cursor)
        slots.append(cursor)
    return slots


def roll_forward(schedule: Schedule, next_delivery: Optional[datetime], now: datetime) -> datetime:
    """Keep a future next-delivery; replace a passed (or missing) one with the next slot after now"""
    if next_delivery is not None and next_delivery > now:
        return next_delivery
    return compute_next_delivery(schedule, now)


def describe_schedule(schedule: Schedule) -> str:
    if isinstance(schedule, WeeklySchedule):
        days = ", ".join(DAY_LABELS[d] for d in sorted(schedule.days))
        return f"Weekly on {days} at {schedule.time}"
    if isinstance(schedule, MonthlySchedule):
        return f"Monthly on day {schedule.day} at {schedule.time}"
    return f"Daily at {schedule.time}"


# ============================================================================
# LIFECYCLE
# ============================================================================


def transition(state: LifecycleState, action: Action, schedule: Schedule, now: datetime) -> LifecycleState:
    """
    Apply a user action to a lifecycle state and return the new state.

    active  --pause-->  paused     (next delivery kept, paused_until stored as given)
    paused  --resume--> active     (next delivery recomputed from now)
    active|paused --cancel--> cancelled (terminal)

    Every other combination raises a SubscriptionTransitionError; the input
    state is never modified.
    """
    if isinstance(state, CancelledState):
        raise AlreadyCancelledError()

    if isinstance(action, Cancel):
        return CancelledState(cancelled_at=now, reason=action.reason)

    if isinstance(action, Pause):
        if isinstance(state, PausedState):
            raise AlreadyPausedError()
        # A resume date in the past is stored as-is; resuming stays explicit
        return PausedState(
            next_delivery=state.next_delivery,
            paused_until=action.resume_date,
            reason=action.reason,
        )

    if isinstance(action, Resume):
        if not isinstance(state, PausedState):
            raise NotPausedError()
        return ActiveState(next_delivery=compute_next_delivery(schedule, now))

    raise TypeError(f"Unknown action: {type(action).__name__}")
