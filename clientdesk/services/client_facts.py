"""Row loaders shared by the client-360 services.

Everything downstream of these functions is pure arithmetic over the
returned facts, which keeps the scoring and analysis code testable without a
database.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from clientdesk.core.money import ZERO_MONEY, to_money
from clientdesk.models.client import Client
from clientdesk.models.invoice import (
    INVOICE_STATUS_DRAFT,
    INVOICE_STATUS_PAID,
    INVOICE_TYPE_CUSTOMER,
    NON_BILLABLE_STATUSES,
    Invoice,
    InvoicePayment,
)
from clientdesk.models.sales import Sale


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_now(now: datetime | None = None) -> datetime:
    return as_utc(now) if now is not None else datetime.now(timezone.utc)


def utc_midnight(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


@dataclass(frozen=True)
class InvoiceFact:
    id: str
    number: str
    status: str
    currency: str
    total: Decimal
    paid_amount: Decimal
    issue_date: date
    due_date: date
    paid_at: datetime | None = None

    @property
    def outstanding(self) -> Decimal:
        # Not clamped: overpayments surface as negative outstanding.
        return self.total - self.paid_amount

    @property
    def is_paid(self) -> bool:
        return self.status == INVOICE_STATUS_PAID

    @property
    def is_settled(self) -> bool:
        return self.is_paid and self.paid_at is not None

    def is_overdue(self, now: datetime) -> bool:
        # Overdue from 00:00 UTC of the due date.
        return not self.is_paid and utc_midnight(self.due_date) < as_utc(now)

    def payment_days(self) -> int | None:
        if not self.is_settled:
            return None
        return (as_utc(self.paid_at).date() - self.issue_date).days

    def delay_days(self) -> int | None:
        if not self.is_settled:
            return None
        return max(0, (as_utc(self.paid_at).date() - self.due_date).days)


@dataclass(frozen=True)
class PaymentFact:
    id: str
    invoice_id: str
    invoice_number: str
    currency: str
    amount: Decimal
    method: str | None
    paid_at: datetime


def _client_invoice_filters(*, client_id: str, user_id: str):
    return (
        Invoice.user_id == user_id,
        Invoice.client_id == client_id,
        Invoice.type == INVOICE_TYPE_CUSTOMER,
    )


def _paid_amount_subquery():
    return (
        select(
            InvoicePayment.invoice_id.label("invoice_id"),
            func.coalesce(func.sum(InvoicePayment.amount), 0).label("paid_amount"),
        )
        .group_by(InvoicePayment.invoice_id)
        .subquery()
    )


def _load_invoices(db: Session, *, client_id: str, user_id: str, excluded_statuses) -> list[InvoiceFact]:
    paid = _paid_amount_subquery()
    rows = db.execute(
        select(Invoice, paid.c.paid_amount)
        .outerjoin(paid, paid.c.invoice_id == Invoice.id)
        .where(
            *_client_invoice_filters(client_id=client_id, user_id=user_id),
            Invoice.status.not_in(excluded_statuses),
        )
        .order_by(Invoice.issue_date.desc(), Invoice.created_at.desc(), Invoice.id.asc())
    ).all()

    return [
        InvoiceFact(
            id=invoice.id,
            number=invoice.number,
            status=invoice.status,
            currency=invoice.currency,
            total=to_money(invoice.total),
            paid_amount=to_money(paid_amount) if paid_amount is not None else ZERO_MONEY,
            issue_date=invoice.issue_date,
            due_date=invoice.due_date,
            paid_at=invoice.paid_at,
        )
        for invoice, paid_amount in rows
    ]


def load_invoice_facts(db: Session, client_id: str, user_id: str) -> list[InvoiceFact]:
    """Billable customer invoices (drafts and canceled excluded), newest first."""
    return _load_invoices(
        db,
        client_id=client_id,
        user_id=user_id,
        excluded_statuses=NON_BILLABLE_STATUSES,
    )


def load_issued_invoice_facts(db: Session, client_id: str, user_id: str) -> list[InvoiceFact]:
    """Every customer invoice that left draft, canceled ones included."""
    return _load_invoices(
        db,
        client_id=client_id,
        user_id=user_id,
        excluded_statuses=(INVOICE_STATUS_DRAFT,),
    )


def load_payment_facts(db: Session, client_id: str, user_id: str) -> list[PaymentFact]:
    rows = db.execute(
        select(InvoicePayment, Invoice.number, Invoice.currency)
        .join(Invoice, Invoice.id == InvoicePayment.invoice_id)
        .where(
            *_client_invoice_filters(client_id=client_id, user_id=user_id),
            Invoice.status != INVOICE_STATUS_DRAFT,
        )
        .order_by(InvoicePayment.paid_at.desc(), InvoicePayment.id.asc())
    ).all()

    return [
        PaymentFact(
            id=payment.id,
            invoice_id=payment.invoice_id,
            invoice_number=number,
            currency=currency,
            amount=to_money(payment.amount),
            method=payment.method,
            paid_at=payment.paid_at,
        )
        for payment, number, currency in rows
    ]


def load_client_sales(db: Session, client_id: str, user_id: str) -> list[Sale]:
    return list(
        db.execute(
            select(Sale)
            .where(Sale.user_id == user_id, Sale.client_id == client_id)
            .order_by(Sale.sale_date.desc(), Sale.id.asc())
        ).scalars()
    )


def load_client(db: Session, client_id: str, user_id: str) -> Client | None:
    return db.execute(
        select(Client).where(Client.id == client_id, Client.user_id == user_id)
    ).scalar_one_or_none()
