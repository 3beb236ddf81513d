from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from clientdesk.core.api_docs import error_responses
from clientdesk.core.config import settings
from clientdesk.core.deps import get_db
from clientdesk.core.labels import Client360Labels, UnsupportedLocaleError, get_labels
from clientdesk.core.security_current import get_current_user
from clientdesk.models.user import User
from clientdesk.schemas.client360 import (
    Client360OverviewOut,
    ClientBaseOut,
    ClientFinancialKPIsOut,
    ClientFinancialRiskOut,
    ClientInvoiceListOut,
    ClientPaymentsOut,
    ClientProfitabilityOut,
    ClientSalesOut,
    TimelineOut,
)
from clientdesk.services.client360_service import (
    get_client_base,
    get_client_overview,
    get_client_payments,
    get_client_sales,
    list_client_invoices,
)
from clientdesk.services.kpi_service import get_client_financial_kpis
from clientdesk.services.profitability_service import get_client_profitability
from clientdesk.services.risk_service import get_client_financial_risk
from clientdesk.services.timeline_service import get_client_timeline

router = APIRouter(prefix="/clients", tags=["clients"])


def get_request_labels(
    locale: str | None = Query(default=None, description="Label language (en, es)"),
) -> Client360Labels:
    try:
        return get_labels(locale)
    except UnsupportedLocaleError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.get(
    "/{client_id}/overview",
    response_model=Client360OverviewOut,
    summary="Get client 360 overview",
    responses={
        200: {
            "description": "Header, KPIs, risk, profitability and latest timeline events",
        },
        **error_responses(401, 404, 422, 500),
    },
)
def client_overview(
    client_id: str,
    limit: int | None = Query(
        default=None,
        ge=1,
        le=100,
        description=f"Timeline events to include (default {settings.timeline_default_limit})",
    ),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    labels: Client360Labels = Depends(get_request_labels),
):
    overview = get_client_overview(db, client_id, user.id, labels=labels, limit=limit)
    if overview is None:
        raise HTTPException(status_code=404, detail="Client not found")
    return overview


@router.get(
    "/{client_id}",
    response_model=ClientBaseOut,
    summary="Get client header",
    responses={
        200: {
            "description": "Client identity and status",
            "content": {
                "application/json": {
                    "example": {
                        "id": "client-id",
                        "name": "Acme Studio",
                        "email": "billing@acme.test",
                        "phone": "+34 600 000 000",
                        "tax_id": "B12345678",
                        "status": "active",
                        "risk_level": None,
                        "created_at": "2025-03-01T09:00:00Z",
                    }
                }
            },
        },
        **error_responses(401, 404, 500),
    },
)
def client_header(
    client_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    client = get_client_base(db, client_id, user.id)
    if client is None:
        raise HTTPException(status_code=404, detail="Client not found")
    return client


@router.get(
    "/{client_id}/kpis",
    response_model=ClientFinancialKPIsOut,
    summary="Get client financial KPIs",
    responses=error_responses(401, 500),
)
def client_kpis(
    client_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return get_client_financial_kpis(db, client_id, user.id)


@router.get(
    "/{client_id}/risk",
    response_model=ClientFinancialRiskOut,
    summary="Get client payment risk score",
    responses=error_responses(401, 422, 500),
)
def client_risk(
    client_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    labels: Client360Labels = Depends(get_request_labels),
):
    return get_client_financial_risk(db, client_id, user.id, labels=labels)


@router.get(
    "/{client_id}/profitability",
    response_model=ClientProfitabilityOut,
    summary="Get client profitability and monthly breakdown",
    responses={
        200: {
            "description": "Revenue, cost, margin and the last 12 monthly buckets",
            "content": {
                "application/json": {
                    "example": {
                        "total_revenue": 4800.0,
                        "total_cost": 1900.0,
                        "profit": 2900.0,
                        "margin_percent": 60.42,
                        "has_cost_data": True,
                        "best_month": {
                            "month": "2026-09",
                            "label": "Sep 2026",
                            "revenue": 1800.0,
                            "cost": 600.0,
                            "profit": 1200.0,
                        },
                        "worst_month": None,
                        "trend": "up",
                        "months": [],
                    }
                }
            },
        },
        **error_responses(401, 422, 500),
    },
)
def client_profitability(
    client_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    labels: Client360Labels = Depends(get_request_labels),
):
    return get_client_profitability(db, client_id, user.id, labels=labels)


@router.get(
    "/{client_id}/timeline",
    response_model=TimelineOut,
    summary="Get client activity timeline",
    responses=error_responses(401, 422, 500),
)
def client_timeline(
    client_id: str,
    limit: int | None = Query(default=None, ge=1, le=500, description="Keep only the newest N events"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    labels: Client360Labels = Depends(get_request_labels),
):
    timeline = get_client_timeline(db, client_id, user.id, labels=labels)
    if limit is not None:
        timeline.items = timeline.items[:limit]
    return timeline


@router.get(
    "/{client_id}/invoices",
    response_model=ClientInvoiceListOut,
    summary="List client invoices",
    responses=error_responses(401, 500),
)
def client_invoices(
    client_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return list_client_invoices(db, client_id, user.id)


@router.get(
    "/{client_id}/sales",
    response_model=ClientSalesOut,
    summary="List client sales with purchase KPIs",
    responses=error_responses(401, 500),
)
def client_sales(
    client_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return get_client_sales(db, client_id, user.id)


@router.get(
    "/{client_id}/payments",
    response_model=ClientPaymentsOut,
    summary="List client payments with collection KPIs",
    responses=error_responses(401, 500),
)
def client_payments(
    client_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return get_client_payments(db, client_id, user.id)
