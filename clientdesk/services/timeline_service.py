"""Merged activity feed for a single client.

Creation, sales, invoice milestones and payments are turned into a flat list
of events and sorted newest first. The sort is stable, so events that share a
timestamp keep the order they were emitted in: creation, sales, invoices,
payments.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from clientdesk.core.config import settings
from clientdesk.core.labels import Client360Labels, get_labels
from clientdesk.core.money import to_money
from clientdesk.core.observability import log_event
from clientdesk.models.client import Client
from clientdesk.models.invoice import INVOICE_STATUS_CANCELED
from clientdesk.models.sales import Sale
from clientdesk.schemas.client360 import TimelineEventOut, TimelineOut
from clientdesk.services.client_facts import (
    InvoiceFact,
    PaymentFact,
    as_utc,
    load_client,
    load_client_sales,
    load_issued_invoice_facts,
    load_payment_facts,
    resolve_now,
    utc_midnight,
)

logger = logging.getLogger("clientdesk.services.timeline")


def _creation_event(client: Client, labels: Client360Labels) -> TimelineEventOut:
    return TimelineEventOut(
        id=f"creation-{client.id}",
        type="creation",
        date=as_utc(client.created_at),
        title=labels.timeline_text("creation"),
        subtitle=client.name,
        amount=None,
        currency=settings.default_currency,
        resource_id=client.id,
        resource_type="client",
    )


def _sale_event(sale: Sale, labels: Client360Labels) -> TimelineEventOut:
    return TimelineEventOut(
        id=f"sale-{sale.id}",
        type="sale",
        date=as_utc(sale.sale_date),
        title=labels.timeline_text("sale", product=sale.product),
        subtitle=sale.status,
        amount=float(to_money(sale.total)),
        currency=sale.currency,
        resource_id=sale.id,
        resource_type="sale",
    )


def _invoice_events(
    invoice: InvoiceFact,
    labels: Client360Labels,
    *,
    now: datetime,
) -> list[TimelineEventOut]:
    amount = float(invoice.total)
    canceled = invoice.status == INVOICE_STATUS_CANCELED

    events = [
        TimelineEventOut(
            id=f"inv-issued-{invoice.id}",
            type="invoice_issued",
            date=utc_midnight(invoice.issue_date),
            title=labels.timeline_text("invoice_issued", number=invoice.number),
            subtitle=labels.timeline_text("invoice_canceled") if canceled else None,
            amount=amount,
            currency=invoice.currency,
            resource_id=invoice.id,
            resource_type="invoice",
        )
    ]

    if invoice.is_settled:
        events.append(
            TimelineEventOut(
                id=f"inv-paid-{invoice.id}",
                type="invoice_paid",
                date=as_utc(invoice.paid_at),
                title=labels.timeline_text("invoice_paid", number=invoice.number),
                subtitle=None,
                amount=amount,
                currency=invoice.currency,
                resource_id=invoice.id,
                resource_type="invoice",
            )
        )
    elif not canceled and invoice.is_overdue(now):
        age = labels.relative_age((as_utc(now).date() - invoice.due_date).days)
        events.append(
            TimelineEventOut(
                id=f"inv-overdue-{invoice.id}",
                type="invoice_overdue",
                date=utc_midnight(invoice.due_date),
                title=labels.timeline_text("invoice_overdue", number=invoice.number),
                subtitle=labels.timeline_text("overdue_since", age=age),
                amount=amount,
                currency=invoice.currency,
                resource_id=invoice.id,
                resource_type="invoice",
            )
        )

    return events


def _payment_event(payment: PaymentFact, labels: Client360Labels) -> TimelineEventOut:
    subtitle = labels.timeline_text("payment_invoice", number=payment.invoice_number)
    if payment.method:
        subtitle = f"{subtitle} · {payment.method}"
    return TimelineEventOut(
        id=f"payment-{payment.id}",
        type="payment",
        date=as_utc(payment.paid_at),
        title=labels.timeline_text("payment"),
        subtitle=subtitle,
        amount=float(payment.amount),
        currency=payment.currency,
        resource_id=payment.invoice_id,
        resource_type="invoice",
    )


def merge_timeline(
    client: Client | None,
    sales: list[Sale],
    invoices: list[InvoiceFact],
    payments: list[PaymentFact],
    *,
    labels: Client360Labels,
    now: datetime,
) -> list[TimelineEventOut]:
    events: list[TimelineEventOut] = []
    if client is not None:
        events.append(_creation_event(client, labels))
    events.extend(_sale_event(sale, labels) for sale in sales)
    for invoice in invoices:
        events.extend(_invoice_events(invoice, labels, now=now))
    events.extend(_payment_event(payment, labels) for payment in payments)

    events.sort(key=lambda event: event.date, reverse=True)
    return events


def get_client_timeline(
    db: Session,
    client_id: str,
    user_id: str,
    *,
    labels: Client360Labels | None = None,
    now: datetime | None = None,
) -> TimelineOut:
    labels = labels or get_labels()
    # Loaded one after another: a Session must not be shared across threads.
    events = merge_timeline(
        load_client(db, client_id, user_id),
        load_client_sales(db, client_id, user_id),
        load_issued_invoice_facts(db, client_id, user_id),
        load_payment_facts(db, client_id, user_id),
        labels=labels,
        now=resolve_now(now),
    )
    log_event(
        logger,
        "client_timeline_built",
        level=logging.DEBUG,
        client_id=client_id,
        event_count=len(events),
    )
    return TimelineOut(items=events, total=len(events))
