from __future__ import annotations

import math
from datetime import date, timedelta
from typing import Any, Optional

from .models import ContractInfo, DailyPoint, ElectricityWidgetData, MonthlyPoint
from .readings import ReadingBatch, reading_date, reading_value

# Monday first, matching date.weekday()
FR_WEEKDAYS = ("lun.", "mar.", "mer.", "jeu.", "ven.", "sam.", "dim.")
FR_MONTHS = (
    "janv.", "févr.", "mars", "avr.", "mai", "juin",
    "juil.", "août", "sept.", "oct.", "nov.", "déc.",
)


def round2(value: float) -> float:
    """Round half-up to 2 decimals."""
    return math.floor(value * 100 + 0.5) / 100


def day_label(day: date) -> str:
    return f"{FR_WEEKDAYS[day.weekday()]} {day.day}"


def month_label(month: date) -> str:
    return f"{FR_MONTHS[month.month - 1]} {month.year}"


def add_months(day: date, months: int) -> date:
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def month_range(first: date, last: date) -> list[date]:
    """First day of every month from ``first`` to ``last`` inclusive."""
    out = []
    cursor = date(first.year, first.month, 1)
    while cursor <= last:
        out.append(cursor)
        cursor = add_months(cursor, 1)
    return out


def daily_chart(batch: ReadingBatch, today: date, days: int) -> list[DailyPoint]:
    points = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        points.append(DailyPoint(
            date=day.isoformat(),
            date_label=day_label(day),
            value=round2(batch.value_on(day.isoformat())),
        ))
    return points


def monthly_chart(batch: Optional[ReadingBatch], today: date) -> list[MonthlyPoint]:
    totals: dict[str, float] = {}
    if batch is not None:
        for r in batch.readings:
            d = reading_date(r)
            if not d or reading_value(r) is None:
                continue
            key = d[:7]
            totals[key] = totals.get(key, 0.0) + batch.kwh(r)

    points = []
    for month in month_range(add_months(today, -12), today):
        key = month.strftime("%Y-%m")
        points.append(MonthlyPoint(
            month=key,
            month_label=month_label(month),
            value=round2(totals[key]) if key in totals else 0,
        ))
    return points


def parse_contract(raw: Any) -> Optional[ContractInfo]:
    if isinstance(raw, list):
        contracts = raw
    elif isinstance(raw, dict) and isinstance(raw.get("contracts"), list):
        contracts = raw["contracts"]
    elif isinstance(raw, dict) and isinstance(raw.get("contract"), dict):
        contracts = [raw["contract"]]
    else:
        return None
    if not contracts or not isinstance(contracts[0], dict):
        return None
    c = contracts[0]
    return ContractInfo(
        subscribed_power=c.get("subscribed_power") or c.get("subscribedPower") or c.get("power") or None,
        contract_type=c.get("contract_type") or c.get("contractType") or c.get("type") or None,
    )


def build_widget_data(
    main: ReadingBatch,
    today: date,
    daily_chart_days: int,
    last_update: str,
    previous_week: Optional[ReadingBatch] = None,
    monthly: Optional[ReadingBatch] = None,
    monthly_failed: bool = False,
    contract: Optional[ContractInfo] = None,
) -> ElectricityWidgetData:
    """Aggregate the fetched batches into the widget payload.

    Each aggregate re-scans ``main`` with its own date predicate. A missing
    previous-week batch yields 0; a failed monthly fetch yields an empty chart.
    """
    def iso(d: date) -> str:
        return d.isoformat()

    week_total = main.total_between(iso(today - timedelta(days=7)), iso(today))
    previous_total = previous_week.total() if previous_week is not None else 0.0

    return ElectricityWidgetData(
        today=round2(main.value_on(iso(today))),
        yesterday=round2(main.value_on(iso(today - timedelta(days=1)))),
        day_before_yesterday=round2(main.value_on(iso(today - timedelta(days=2)))),
        week_total=round2(week_total),
        week_average=round2(week_total / 7),
        previous_week_total=round2(previous_total),
        daily_chart_data=daily_chart(main, today, daily_chart_days),
        monthly_chart_data=[] if monthly_failed else monthly_chart(monthly, today),
        contract_info=contract,
        last_update=last_update,
    )
