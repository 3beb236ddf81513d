from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from clientdesk.core.config import settings
from clientdesk.core.labels import Client360Labels, get_labels
from clientdesk.core.money import ZERO_MONEY, to_money
from clientdesk.core.observability import log_event
from clientdesk.models.invoice import INVOICE_STATUS_CANCELED
from clientdesk.schemas.client360 import (
    Client360OverviewOut,
    ClientBaseOut,
    ClientInvoiceListOut,
    ClientInvoiceRowOut,
    ClientPaymentRowOut,
    ClientPaymentsKPIsOut,
    ClientPaymentsOut,
    ClientSaleRowOut,
    ClientSalesKPIsOut,
    ClientSalesOut,
)
from clientdesk.services.client_facts import (
    as_utc,
    load_client,
    load_client_sales,
    load_invoice_facts,
    load_issued_invoice_facts,
    load_payment_facts,
    resolve_now,
)
from clientdesk.services.kpi_service import summarize_kpis
from clientdesk.services.profitability_service import analyze_profitability
from clientdesk.services.risk_service import build_risk_facts, score_risk
from clientdesk.services.timeline_service import merge_timeline

logger = logging.getLogger("clientdesk.services.client360")


def get_client_base(db: Session, client_id: str, user_id: str) -> ClientBaseOut | None:
    client = load_client(db, client_id, user_id)
    if client is None:
        return None
    return ClientBaseOut.model_validate(client)


def list_client_invoices(
    db: Session,
    client_id: str,
    user_id: str,
    *,
    now: datetime | None = None,
) -> ClientInvoiceListOut:
    current = resolve_now(now)
    items = [
        ClientInvoiceRowOut(
            id=invoice.id,
            number=invoice.number,
            status=invoice.status,
            currency=invoice.currency,
            total=float(invoice.total),
            paid_amount=float(invoice.paid_amount),
            outstanding=float(to_money(invoice.outstanding)),
            issue_date=invoice.issue_date,
            due_date=invoice.due_date,
            paid_at=invoice.paid_at,
            is_overdue=invoice.status != INVOICE_STATUS_CANCELED and invoice.is_overdue(current),
        )
        for invoice in load_issued_invoice_facts(db, client_id, user_id)
    ]
    return ClientInvoiceListOut(items=items)


def get_client_sales(db: Session, client_id: str, user_id: str) -> ClientSalesOut:
    sales = load_client_sales(db, client_id, user_id)

    total_purchased = sum((to_money(sale.total) for sale in sales), ZERO_MONEY)
    order_count = len(sales)
    average_ticket = to_money(total_purchased / order_count) if order_count else ZERO_MONEY
    last_purchase = max((as_utc(sale.sale_date) for sale in sales), default=None)

    return ClientSalesOut(
        items=[
            ClientSaleRowOut(
                id=sale.id,
                product=sale.product,
                price=float(to_money(sale.price)),
                discount=float(to_money(sale.discount or 0)),
                total=float(to_money(sale.total)),
                status=sale.status,
                currency=sale.currency,
                sale_date=sale.sale_date,
            )
            for sale in sales
        ],
        kpis=ClientSalesKPIsOut(
            total_purchased=float(to_money(total_purchased)),
            average_ticket=float(average_ticket),
            order_count=order_count,
            last_purchase=last_purchase,
        ),
    )


def get_client_payments(
    db: Session,
    client_id: str,
    user_id: str,
    *,
    now: datetime | None = None,
) -> ClientPaymentsOut:
    current = resolve_now(now)
    payments = load_payment_facts(db, client_id, user_id)

    total_paid = ZERO_MONEY
    paid_this_month = ZERO_MONEY
    for payment in payments:
        total_paid += payment.amount
        paid_at = as_utc(payment.paid_at)
        if paid_at.year == current.year and paid_at.month == current.month:
            paid_this_month += payment.amount

    average_payment = (
        to_money(total_paid / Decimal(len(payments))) if payments else ZERO_MONEY
    )
    last_payment = max((as_utc(payment.paid_at) for payment in payments), default=None)

    return ClientPaymentsOut(
        items=[
            ClientPaymentRowOut(
                id=payment.id,
                invoice_id=payment.invoice_id,
                invoice_number=payment.invoice_number,
                amount=float(payment.amount),
                currency=payment.currency,
                method=payment.method,
                paid_at=payment.paid_at,
            )
            for payment in payments
        ],
        kpis=ClientPaymentsKPIsOut(
            total_paid=float(to_money(total_paid)),
            paid_this_month=float(to_money(paid_this_month)),
            average_payment=float(average_payment),
            last_payment=last_payment,
        ),
    )


def get_client_overview(
    db: Session,
    client_id: str,
    user_id: str,
    *,
    labels: Client360Labels | None = None,
    limit: int | None = None,
    now: datetime | None = None,
) -> Client360OverviewOut | None:
    """Header, KPIs, risk, profitability and the latest timeline events in one payload.

    Returns ``None`` when the client does not belong to ``user_id``. Rows are
    loaded once and shared between the four computed views.
    """
    client = load_client(db, client_id, user_id)
    if client is None:
        return None

    labels = labels or get_labels()
    limit = settings.timeline_default_limit if limit is None else limit
    current = resolve_now(now)

    invoices = load_invoice_facts(db, client_id, user_id)
    sales = load_client_sales(db, client_id, user_id)
    timeline = merge_timeline(
        client,
        sales,
        load_issued_invoice_facts(db, client_id, user_id),
        load_payment_facts(db, client_id, user_id),
        labels=labels,
        now=current,
    )
    risk = score_risk(build_risk_facts(invoices, now=current), labels=labels)

    overview = Client360OverviewOut(
        client=ClientBaseOut.model_validate(client),
        kpis=summarize_kpis(invoices, sales, now=current),
        risk=risk,
        profitability=analyze_profitability(invoices, sales, today=current.date(), labels=labels),
        timeline=timeline[:limit],
    )
    log_event(
        logger,
        "client_overview_built",
        client_id=client_id,
        locale=labels.locale,
        risk_score=risk.score,
        timeline_events=len(timeline),
    )
    return overview
