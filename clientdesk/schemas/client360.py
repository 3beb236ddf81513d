from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

RiskLevel = Literal["low", "medium", "high"]
ProfitTrend = Literal["up", "down", "stable"]
TimelineEventType = Literal[
    "creation",
    "sale",
    "invoice_issued",
    "invoice_paid",
    "invoice_overdue",
    "payment",
]
TimelineResourceType = Literal["client", "sale", "invoice", "payment"]


class ClientBaseOut(BaseModel):
    id: str
    name: str
    email: str | None = None
    phone: str | None = None
    tax_id: str | None = None
    status: str
    risk_level: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ClientFinancialKPIsOut(BaseModel):
    total_revenue: float
    revenue_ytd: float
    pending: float
    overdue: float
    avg_payment_days: int
    profitability: float | None = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "total_revenue": 12400.0,
                "revenue_ytd": 4800.0,
                "pending": 1500.0,
                "overdue": 600.0,
                "avg_payment_days": 21,
                "profitability": 3100.0,
            }
        }
    )


class ClientFinancialRiskOut(BaseModel):
    score: int = Field(ge=0, le=100)
    level: RiskLevel
    label: str
    avg_delay_days: int
    worst_delay_days: int
    invoices_sent: int
    invoices_paid: int
    overdue_count: int
    overdue_amount: float
    pending_amount: float
    avg_payment_days: int
    reasons: list[str]

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "score": 42,
                "level": "medium",
                "label": "Medium",
                "avg_delay_days": 40,
                "worst_delay_days": 40,
                "invoices_sent": 10,
                "invoices_paid": 10,
                "overdue_count": 0,
                "overdue_amount": 0.0,
                "pending_amount": 0.0,
                "avg_payment_days": 40,
                "reasons": [
                    "Average delay of 40 days (>30)",
                    "Worst recorded delay: 40 days",
                    "100% of invoices paid late",
                    "Average payment time: 40 days (>30)",
                    "100% of invoices paid",
                ],
            }
        }
    )


class MonthBucketOut(BaseModel):
    month: str
    label: str
    revenue: float
    cost: float
    profit: float


class ClientProfitabilityOut(BaseModel):
    total_revenue: float
    total_cost: float | None = None
    profit: float | None = None
    margin_percent: float | None = None
    has_cost_data: bool
    best_month: MonthBucketOut | None = None
    worst_month: MonthBucketOut | None = None
    trend: ProfitTrend
    months: list[MonthBucketOut]


class TimelineEventOut(BaseModel):
    id: str
    type: TimelineEventType
    date: datetime
    title: str
    subtitle: str | None = None
    amount: float | None = None
    currency: str
    resource_id: str | None = None
    resource_type: TimelineResourceType | None = None


class TimelineOut(BaseModel):
    items: list[TimelineEventOut]
    total: int


class ClientInvoiceRowOut(BaseModel):
    id: str
    number: str
    status: str
    currency: str
    total: float
    paid_amount: float
    outstanding: float
    issue_date: date
    due_date: date
    paid_at: datetime | None = None
    is_overdue: bool


class ClientInvoiceListOut(BaseModel):
    items: list[ClientInvoiceRowOut]


class ClientSaleRowOut(BaseModel):
    id: str
    product: str
    price: float
    discount: float
    total: float
    status: str
    currency: str
    sale_date: datetime


class ClientSalesKPIsOut(BaseModel):
    total_purchased: float
    average_ticket: float
    order_count: int
    last_purchase: datetime | None = None


class ClientSalesOut(BaseModel):
    items: list[ClientSaleRowOut]
    kpis: ClientSalesKPIsOut


class ClientPaymentRowOut(BaseModel):
    id: str
    invoice_id: str
    invoice_number: str
    amount: float
    currency: str
    method: str | None = None
    paid_at: datetime


class ClientPaymentsKPIsOut(BaseModel):
    total_paid: float
    paid_this_month: float
    average_payment: float
    last_payment: datetime | None = None


class ClientPaymentsOut(BaseModel):
    items: list[ClientPaymentRowOut]
    kpis: ClientPaymentsKPIsOut


class Client360OverviewOut(BaseModel):
    client: ClientBaseOut
    kpis: ClientFinancialKPIsOut
    risk: ClientFinancialRiskOut
    profitability: ClientProfitabilityOut
    timeline: list[TimelineEventOut]
