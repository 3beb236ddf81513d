from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from clientdesk.core.labels import Client360Labels, get_labels
from clientdesk.core.money import ZERO_MONEY, to_money
from clientdesk.core.observability import log_event
from clientdesk.models.sales import Sale
from clientdesk.schemas.client360 import ClientProfitabilityOut, MonthBucketOut
from clientdesk.services.client_facts import (
    InvoiceFact,
    as_utc,
    load_client_sales,
    load_invoice_facts,
    resolve_now,
)

logger = logging.getLogger("clientdesk.services.profitability")

MONTH_WINDOW = 12
TREND_WINDOW = 3
TREND_THRESHOLD_PERCENT = Decimal("5")


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def month_keys(today: date, count: int = MONTH_WINDOW) -> list[str]:
    """Calendar months ending with the month of ``today``, oldest first."""
    year, month = today.year, today.month
    keys: list[str] = []
    for _ in range(count):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year -= 1
            month = 12
    keys.reverse()
    return keys


def sale_cost(sale: Sale) -> Decimal:
    return Decimal(str(sale.price)) - Decimal(str(sale.discount or 0))


def compute_trend(revenues: list[Decimal] | list[float]) -> str:
    if len(revenues) < TREND_WINDOW * 2:
        return "stable"

    recent = sum(Decimal(str(value)) for value in revenues[-TREND_WINDOW:]) / TREND_WINDOW
    previous = sum(
        Decimal(str(value)) for value in revenues[-TREND_WINDOW * 2 : -TREND_WINDOW]
    ) / TREND_WINDOW

    if previous == 0 and recent == 0:
        return "stable"
    if previous == 0:
        return "up"

    change_percent = (recent - previous) / previous * 100
    if change_percent > TREND_THRESHOLD_PERCENT:
        return "up"
    if change_percent < -TREND_THRESHOLD_PERCENT:
        return "down"
    return "stable"


def _pick_best_and_worst(
    months: list[MonthBucketOut],
) -> tuple[MonthBucketOut | None, MonthBucketOut | None]:
    active = [bucket for bucket in months if bucket.revenue > 0]
    if not active:
        return None, None

    best = active[0]
    worst = active[0]
    for bucket in active[1:]:
        if bucket.revenue > best.revenue:
            best = bucket
        if bucket.revenue < worst.revenue:
            worst = bucket

    if worst.month == best.month:
        return best, None
    return best, worst


def analyze_profitability(
    invoices: list[InvoiceFact],
    sales: list[Sale],
    *,
    today: date,
    labels: Client360Labels,
) -> ClientProfitabilityOut:
    keys = month_keys(today)
    revenue_by_month = {key: ZERO_MONEY for key in keys}
    cost_by_month = {key: ZERO_MONEY for key in keys}

    total_revenue = ZERO_MONEY
    for invoice in invoices:
        total_revenue += invoice.total
        key = month_key(invoice.issue_date)
        if key in revenue_by_month:
            revenue_by_month[key] += invoice.total

    total_cost = ZERO_MONEY
    for sale in sales:
        cost = sale_cost(sale)
        total_cost += cost
        key = month_key(as_utc(sale.sale_date).date())
        if key in cost_by_month:
            cost_by_month[key] += cost

    months = [
        MonthBucketOut(
            month=key,
            label=labels.month_label(key),
            revenue=float(to_money(revenue_by_month[key])),
            cost=float(to_money(cost_by_month[key])),
            profit=float(to_money(revenue_by_month[key] - cost_by_month[key])),
        )
        for key in keys
    ]
    best_month, worst_month = _pick_best_and_worst(months)

    total_revenue = to_money(total_revenue)
    total_cost = to_money(total_cost)
    has_cost_data = bool(sales)

    profit = None
    margin_percent = None
    if has_cost_data:
        profit = to_money(total_revenue - total_cost)
        if total_revenue > 0:
            margin_percent = float(to_money(profit / total_revenue * 100))

    return ClientProfitabilityOut(
        total_revenue=float(total_revenue),
        total_cost=float(total_cost) if has_cost_data else None,
        profit=float(profit) if profit is not None else None,
        margin_percent=margin_percent,
        has_cost_data=has_cost_data,
        best_month=best_month,
        worst_month=worst_month,
        trend=compute_trend([revenue_by_month[key] for key in keys]),
        months=months,
    )


def get_client_profitability(
    db: Session,
    client_id: str,
    user_id: str,
    *,
    labels: Client360Labels | None = None,
    now: datetime | None = None,
) -> ClientProfitabilityOut:
    labels = labels or get_labels()
    invoices = load_invoice_facts(db, client_id, user_id)
    sales = load_client_sales(db, client_id, user_id)
    result = analyze_profitability(
        invoices,
        sales,
        today=resolve_now(now).date(),
        labels=labels,
    )
    log_event(
        logger,
        "client_profitability_computed",
        level=logging.DEBUG,
        client_id=client_id,
        has_cost_data=result.has_cost_data,
        trend=result.trend,
    )
    return result
