from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from clientdesk.core.money import ZERO_MONEY, to_money, to_whole
from clientdesk.core.observability import log_event
from clientdesk.models.sales import Sale
from clientdesk.schemas.client360 import ClientFinancialKPIsOut
from clientdesk.services.client_facts import (
    InvoiceFact,
    as_utc,
    load_client_sales,
    load_invoice_facts,
    resolve_now,
)

logger = logging.getLogger("clientdesk.services.kpis")


def average_payment_days(invoices: list[InvoiceFact]) -> int:
    days = [invoice.payment_days() for invoice in invoices if invoice.is_settled]
    if not days:
        return 0
    return to_whole(Decimal(sum(days)) / len(days))


def summarize_kpis(
    invoices: list[InvoiceFact],
    sales: list[Sale],
    *,
    now: datetime,
) -> ClientFinancialKPIsOut:
    year_start = as_utc(now).date().replace(month=1, day=1)

    total_revenue = ZERO_MONEY
    revenue_ytd = ZERO_MONEY
    pending = ZERO_MONEY
    overdue = ZERO_MONEY
    for invoice in invoices:
        total_revenue += invoice.total
        if invoice.issue_date >= year_start:
            revenue_ytd += invoice.total
        if not invoice.is_paid:
            pending += invoice.outstanding
            if invoice.is_overdue(now):
                overdue += invoice.outstanding

    total_revenue = to_money(total_revenue)
    profitability = None
    if sales:
        # Subtracts (total - price) per sale; the profitability view uses price - discount.
        sales_cost = sum((Decimal(str(sale.total)) - Decimal(str(sale.price)) for sale in sales), ZERO_MONEY)
        profitability = float(to_money(total_revenue - sales_cost))

    return ClientFinancialKPIsOut(
        total_revenue=float(total_revenue),
        revenue_ytd=float(to_money(revenue_ytd)),
        pending=float(to_money(pending)),
        overdue=float(to_money(overdue)),
        avg_payment_days=average_payment_days(invoices),
        profitability=profitability,
    )


def get_client_financial_kpis(
    db: Session,
    client_id: str,
    user_id: str,
    *,
    now: datetime | None = None,
) -> ClientFinancialKPIsOut:
    current = resolve_now(now)
    invoices = load_invoice_facts(db, client_id, user_id)
    sales = load_client_sales(db, client_id, user_id)
    kpis = summarize_kpis(invoices, sales, now=current)
    log_event(
        logger,
        "client_kpis_computed",
        level=logging.DEBUG,
        client_id=client_id,
        invoice_count=len(invoices),
        sale_count=len(sales),
    )
    return kpis
