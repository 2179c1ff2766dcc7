# Overview: Analytics over an already-fetched payment history; pure functions, no database access.

"""
Collection analytics

Every function takes the full list of PaymentDetail rows (typically the
latest emission of payment_service.get_all_payment_details()) and computes
from scratch. Nothing is cached between calls; each emission of the live
query is a complete replacement, so the caller simply recomputes.

Dates are the stored YYYY-MM-DD strings. Day, week and month filters work
on those strings directly (equality, inclusive range, "YYYY-MM" prefix).
``today`` defaults to the local date and can be pinned for reproducible
reports.

Amounts are summed from monto_cobrado (what was charged), not from the
money received.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import ROUND_FLOOR, Decimal
from typing import Iterable, Sequence

from ..composites import DailyTotal, PaymentDetail


ZERO = Decimal("0")
TOP_STALLS_LIMIT = 5
TREND_MONTHS = 6


def _today(today: date | None) -> date:
    return today if today is not None else date.today()


def _amount(detail: PaymentDetail) -> Decimal:
    return Decimal(detail.payment.monto_cobrado)


def _sum(details: Iterable[PaymentDetail]) -> Decimal:
    return sum((_amount(d) for d in details), ZERO)


def _month_label(day: date) -> str:
    return day.isoformat()[:7]


def week_bounds(today: date | None = None) -> tuple[str, str]:
    """Monday..Sunday of the week containing ``today`` (Sunday closes the week)."""
    day = _today(today)
    monday = day - timedelta(days=day.weekday())
    sunday = monday + timedelta(days=6)
    return monday.isoformat(), sunday.isoformat()


def total_for_day(details: Sequence[PaymentDetail], day: str | date | None = None) -> Decimal:
    label = day.isoformat() if isinstance(day, date) else (day or _today(None).isoformat())
    return _sum(d for d in details if d.payment.fecha_cobro == label)


def total_for_week(details: Sequence[PaymentDetail], today: date | None = None) -> Decimal:
    start, end = week_bounds(today)
    return _sum(d for d in details if start <= d.payment.fecha_cobro <= end)


def total_for_month(details: Sequence[PaymentDetail], month: str | None = None, today: date | None = None) -> Decimal:
    prefix = month or _month_label(_today(today))
    return _sum(d for d in details if d.payment.fecha_cobro.startswith(prefix))


def grand_total(details: Sequence[PaymentDetail]) -> Decimal:
    return _sum(details)


def distinct_payment_days(details: Sequence[PaymentDetail]) -> int:
    return len({d.payment.fecha_cobro for d in details})


def average_per_day(details: Sequence[PaymentDetail]) -> Decimal:
    """Grand total divided by the number of dates that have at least one payment."""
    days = distinct_payment_days(details)
    if days == 0:
        return ZERO
    return grand_total(details) / days


def year_over_year_delta(details: Sequence[PaymentDetail], today: date | None = None) -> int:
    """
    Percent change of this month's total against the same month last year,
    rounded half up to an integer.

    Policy: 0 when last year's month has no collections.
    """
    day = _today(today)
    current = total_for_month(details, _month_label(day))
    prior_month = f"{day.year - 1:04d}-{day.month:02d}"
    prior = total_for_month(details, prior_month)
    if prior <= 0:
        return 0
    delta = (current - prior) / prior * 100
    return int((delta + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR))


def _grouped_totals(details: Iterable[PaymentDetail], width: int) -> list[DailyTotal]:
    totals: dict[str, Decimal] = {}
    for detail in details:
        label = detail.payment.fecha_cobro[:width]
        totals[label] = totals.get(label, ZERO) + _amount(detail)
    return [DailyTotal(label=label, total=totals[label]) for label in sorted(totals)]


def daily_totals(details: Sequence[PaymentDetail]) -> list[DailyTotal]:
    """One DailyTotal per date with payments, chronological."""
    return _grouped_totals(details, 10)


def monthly_totals(details: Sequence[PaymentDetail]) -> list[DailyTotal]:
    """One DailyTotal per YYYY-MM with payments, chronological."""
    return _grouped_totals(details, 7)


def last_7_days(details: Sequence[PaymentDetail], today: date | None = None) -> list[DailyTotal]:
    """The seven calendar days ending today, oldest first; days without payments total 0."""
    day = _today(today)
    labels = [(day - timedelta(days=offset)).isoformat() for offset in range(6, -1, -1)]
    return [DailyTotal(label=label, total=total_for_day(details, label)) for label in labels]


def monthly_trend(details: Sequence[PaymentDetail], months: int = TREND_MONTHS) -> list[DailyTotal]:
    """
    The last ``months`` distinct months that have payments, chronological.

    Charts need at least two points; see AnalyticsSummary.has_trend.
    """
    return monthly_totals(details)[-months:]


def top_stalls(details: Sequence[PaymentDetail], limit: int = TOP_STALLS_LIMIT) -> list[tuple[str, Decimal]]:
    """
    Stall numbers ranked by collected amount, highest first.

    Ties keep the order in which the stalls were first met in ``details``.
    """
    totals: OrderedDict[str, Decimal] = OrderedDict()
    for detail in details:
        key = detail.stall.numero_puesto
        totals[key] = totals.get(key, ZERO) + _amount(detail)
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return ranked[:limit]


def totals_by_merchant(details: Sequence[PaymentDetail]) -> list[tuple[str, Decimal]]:
    """Collected amount per merchant name, highest first. Rows without a merchant are skipped."""
    totals: OrderedDict[str, Decimal] = OrderedDict()
    for detail in details:
        merchant = detail.merchant
        if merchant is None:
            continue
        key = merchant.nombre_comerciante
        totals[key] = totals.get(key, ZERO) + _amount(detail)
    return sorted(totals.items(), key=lambda item: item[1], reverse=True)


@dataclass(frozen=True)
class AnalyticsSummary:
    today: str
    total_today: Decimal
    total_week: Decimal
    total_month: Decimal
    grand_total: Decimal
    average_per_day: Decimal
    payment_days: int
    yoy_delta: int
    stall_count: int
    merchant_count: int
    last_7_days: list[DailyTotal] = field(default_factory=list)
    monthly_trend: list[DailyTotal] = field(default_factory=list)
    top_stalls: list[tuple[str, Decimal]] = field(default_factory=list)
    merchant_totals: list[tuple[str, Decimal]] = field(default_factory=list)

    @property
    def has_trend(self) -> bool:
        return len(self.monthly_trend) >= 2

    def to_dict(self) -> dict:
        return {
            "today": self.today,
            "total_today": str(self.total_today),
            "total_week": str(self.total_week),
            "total_month": str(self.total_month),
            "grand_total": str(self.grand_total),
            "average_per_day": str(self.average_per_day),
            "payment_days": self.payment_days,
            "yoy_delta": self.yoy_delta,
            "stall_count": self.stall_count,
            "merchant_count": self.merchant_count,
            "last_7_days": [{"label": t.label, "total": str(t.total)} for t in self.last_7_days],
            "monthly_trend": [{"label": t.label, "total": str(t.total)} for t in self.monthly_trend],
            "top_stalls": [{"numero_puesto": k, "total": str(v)} for k, v in self.top_stalls],
            "merchant_totals": [{"nombre_comerciante": k, "total": str(v)} for k, v in self.merchant_totals],
        }


def build_summary(
    details: Sequence[PaymentDetail],
    *,
    stall_count: int = 0,
    merchant_count: int = 0,
    today: date | None = None,
) -> AnalyticsSummary:
    day = _today(today)
    return AnalyticsSummary(
        today=day.isoformat(),
        total_today=total_for_day(details, day),
        total_week=total_for_week(details, day),
        total_month=total_for_month(details, today=day),
        grand_total=grand_total(details),
        average_per_day=average_per_day(details),
        payment_days=distinct_payment_days(details),
        yoy_delta=year_over_year_delta(details, day),
        stall_count=stall_count,
        merchant_count=merchant_count,
        last_7_days=last_7_days(details, day),
        monthly_trend=monthly_trend(details),
        top_stalls=top_stalls(details),
        merchant_totals=totals_by_merchant(details),
    )
