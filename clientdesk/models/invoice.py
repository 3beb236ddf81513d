from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from clientdesk.core.id_utils import generate_shortuuid
from clientdesk.db.base import Base, one_of

INVOICE_TYPE_CUSTOMER = "customer"
INVOICE_TYPE_SUPPLIER = "supplier"
ALLOWED_INVOICE_TYPES = {INVOICE_TYPE_CUSTOMER, INVOICE_TYPE_SUPPLIER}

INVOICE_STATUS_DRAFT = "draft"
INVOICE_STATUS_PAID = "paid"
INVOICE_STATUS_CANCELED = "canceled"
ALLOWED_INVOICE_STATUSES = {
    INVOICE_STATUS_DRAFT,
    "issued",
    "sent",
    "partial",
    INVOICE_STATUS_PAID,
    "overdue",
    INVOICE_STATUS_CANCELED,
}
# Invoices in these states never count towards revenue, pending or risk.
NON_BILLABLE_STATUSES = (INVOICE_STATUS_DRAFT, INVOICE_STATUS_CANCELED)


class Invoice(Base):
    __tablename__ = "invoices"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_shortuuid)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    client_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("clients.id"), nullable=True, index=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default=INVOICE_TYPE_CUSTOMER, server_default=INVOICE_TYPE_CUSTOMER)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=INVOICE_STATUS_DRAFT, server_default=INVOICE_STATUS_DRAFT)
    number: Mapped[str] = mapped_column(String(40), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR", server_default="EUR")
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        CheckConstraint(one_of("type", ALLOWED_INVOICE_TYPES), name="ck_invoices_type"),
        CheckConstraint(one_of("status", ALLOWED_INVOICE_STATUSES), name="ck_invoices_status"),
        Index("ix_invoices_user_client_type_status", "user_id", "client_id", "type", "status"),
        Index("ix_invoices_user_issue_date", "user_id", "issue_date"),
    )


class InvoicePayment(Base):
    __tablename__ = "invoice_payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_shortuuid)
    invoice_id: Mapped[str] = mapped_column(String(36), ForeignKey("invoices.id"), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    method: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    reference: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_invoice_payments_invoice_paid_at", "invoice_id", "paid_at"),
    )
