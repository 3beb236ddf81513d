import json
import logging
from datetime import date, datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from clientdesk.core.labels import get_labels
from clientdesk.db.base import one_of
from clientdesk.services.client360_service import (
    get_client_base,
    get_client_overview,
    get_client_payments,
    get_client_sales,
    list_client_invoices,
)
from clientdesk.services.kpi_service import get_client_financial_kpis
from clientdesk.services.profitability_service import (
    compute_trend,
    get_client_profitability,
    month_keys,
)
from clientdesk.services.risk_service import get_client_financial_risk
from clientdesk.services.timeline_service import get_client_timeline

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def scenario(owner):
    """One client with paid, partial, open, draft, canceled and supplier invoices plus two sales."""
    _, session_local, user_id, _, seed = owner
    client = seed.client(name="Acme Studio", email="billing@acme.test")

    paid = seed.invoice(
        client.id,
        total="1000.00",
        status="paid",
        issue_date=date(2025, 11, 1),
        due_date=date(2025, 12, 1),
        paid_at=datetime(2025, 12, 11, 15, 0, tzinfo=timezone.utc),
    )
    seed.payment(paid.id, amount="1000.00", paid_at=datetime(2025, 12, 11, 15, 0, tzinfo=timezone.utc))

    partial = seed.invoice(
        client.id,
        total="500.00",
        status="partial",
        issue_date=date(2026, 2, 1),
        due_date=date(2026, 3, 1),
    )
    seed.payment(partial.id, amount="200.00", paid_at=datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc))

    open_invoice = seed.invoice(
        client.id,
        total="250.00",
        status="sent",
        issue_date=date(2026, 6, 1),
        due_date=date(2026, 7, 1),
    )
    seed.payment(
        open_invoice.id,
        amount="50.00",
        paid_at=datetime(2026, 6, 10, 9, 0, tzinfo=timezone.utc),
        method=None,
    )

    seed.invoice(client.id, total="999.00", status="draft", issue_date=date(2026, 6, 5))
    canceled = seed.invoice(
        client.id,
        total="400.00",
        status="canceled",
        issue_date=date(2026, 1, 15),
        due_date=date(2026, 2, 15),
    )
    seed.invoice(client.id, total="700.00", status="sent", type="supplier", issue_date=date(2026, 4, 1))

    seed.sale(
        client.id,
        product="Logo design",
        price="80.00",
        total="100.00",
        sale_date=datetime(2026, 5, 20, 10, 0, tzinfo=timezone.utc),
    )
    seed.sale(
        client.id,
        product="Brand book",
        price="200.00",
        discount="20.00",
        total="230.00",
        sale_date=datetime(2026, 6, 2, 10, 0, tzinfo=timezone.utc),
    )

    return {
        "session_local": session_local,
        "user_id": user_id,
        "client_id": client.id,
        "paid_id": paid.id,
        "partial_id": partial.id,
        "open_id": open_invoice.id,
        "canceled_id": canceled.id,
    }


def test_kpis_aggregate_billable_customer_invoices(scenario):
    with scenario["session_local"]() as db:
        kpis = get_client_financial_kpis(db, scenario["client_id"], scenario["user_id"], now=NOW)

    assert kpis.total_revenue == 1750.0
    assert kpis.revenue_ytd == 750.0
    assert kpis.pending == 500.0
    assert kpis.overdue == 300.0
    assert kpis.avg_payment_days == 40
    assert kpis.profitability == 1700.0


def test_kpis_for_unknown_client_are_zeroed(owner):
    _, session_local, user_id, _, _ = owner
    with session_local() as db:
        kpis = get_client_financial_kpis(db, "missing-client", user_id, now=NOW)

    assert kpis.total_revenue == 0.0
    assert kpis.revenue_ytd == 0.0
    assert kpis.pending == 0.0
    assert kpis.overdue == 0.0
    assert kpis.avg_payment_days == 0
    assert kpis.profitability is None


def test_overpayment_surfaces_as_negative_pending(owner):
    _, session_local, user_id, _, seed = owner
    client = seed.client()
    invoice = seed.invoice(client.id, total="100.00", status="partial", due_date=date(2026, 7, 1))
    seed.payment(invoice.id, amount="130.00", paid_at=datetime(2026, 6, 1, tzinfo=timezone.utc))

    with session_local() as db:
        kpis = get_client_financial_kpis(db, client.id, user_id, now=NOW)

    assert kpis.pending == -30.0
    assert kpis.overdue == 0.0


def test_risk_uses_loaded_invoice_facts(scenario):
    with scenario["session_local"]() as db:
        risk = get_client_financial_risk(db, scenario["client_id"], scenario["user_id"], now=NOW)

    assert risk.invoices_sent == 3
    assert risk.invoices_paid == 1
    assert risk.overdue_count == 1
    assert risk.overdue_amount == 300.0
    assert risk.pending_amount == 500.0
    assert risk.avg_delay_days == 10
    assert risk.worst_delay_days == 10
    assert risk.avg_payment_days == 40
    assert risk.score == 10 + 10 + 10 + 4 + 12 + 5
    assert risk.level == "medium"
    assert risk.label == "Medium"
    assert risk.reasons == [
        "1 overdue invoice (€300)",
        "More than 50% of pending volume is overdue",
        "Average delay of 10 days",
        "100% of invoices paid late",
        "Average payment time: 40 days (>30)",
    ]


def test_risk_service_logs_scored_level(scenario):
    records: list[logging.LogRecord] = []

    class _Collect(logging.Handler):
        def emit(self, record):
            records.append(record)

    risk_logger = logging.getLogger("clientdesk.services.risk")
    handler = _Collect()
    previous_level = risk_logger.level
    risk_logger.addHandler(handler)
    risk_logger.setLevel(logging.INFO)
    try:
        with scenario["session_local"]() as db:
            risk = get_client_financial_risk(db, scenario["client_id"], scenario["user_id"], now=NOW)
    finally:
        risk_logger.removeHandler(handler)
        risk_logger.setLevel(previous_level)

    assert len(records) == 1
    assert records[0].levelno == logging.INFO
    payload = json.loads(records[0].getMessage())
    assert payload["event"] == "client_risk_scored"
    assert payload["risk_level"] == risk.level == "medium"
    assert payload["score"] == risk.score


def test_risk_without_billing_history_is_low(owner):
    _, session_local, user_id, _, seed = owner
    client = seed.client()

    with session_local() as db:
        empty = get_client_financial_risk(db, client.id, user_id, now=NOW)
        missing = get_client_financial_risk(db, "missing-client", user_id, now=NOW)

    for risk in (empty, missing):
        assert risk.score == 0
        assert risk.level == "low"
        assert risk.reasons == ["No billing history"]
        assert risk.invoices_sent == 0


def test_invoice_due_today_is_overdue_across_views(owner):
    _, session_local, user_id, _, seed = owner
    client = seed.client()
    invoice = seed.invoice(
        client.id,
        total="100.00",
        status="sent",
        issue_date=date(2026, 5, 16),
        due_date=NOW.date(),
    )

    with session_local() as db:
        kpis = get_client_financial_kpis(db, client.id, user_id, now=NOW)
        risk = get_client_financial_risk(db, client.id, user_id, now=NOW)
        timeline = get_client_timeline(db, client.id, user_id, now=NOW)
        rows = list_client_invoices(db, client.id, user_id, now=NOW)
        before_midnight = get_client_financial_kpis(
            db, client.id, user_id, now=datetime(2026, 6, 14, 23, 59, tzinfo=timezone.utc)
        )

    assert kpis.overdue == 100.0
    assert risk.overdue_count == 1
    assert rows.items[0].is_overdue is True
    assert before_midnight.overdue == 0.0

    overdue = [item for item in timeline.items if item.type == "invoice_overdue"]
    assert len(overdue) == 1
    assert overdue[0].resource_id == invoice.id
    assert overdue[0].subtitle == "Since today"
    assert overdue[0].date == datetime(2026, 6, 15, tzinfo=timezone.utc)


def test_profitability_builds_twelve_zero_filled_months(scenario):
    with scenario["session_local"]() as db:
        result = get_client_profitability(db, scenario["client_id"], scenario["user_id"], now=NOW)

    assert [bucket.month for bucket in result.months] == month_keys(NOW.date())
    assert len(result.months) == 12
    assert result.months[0].month == "2025-07"
    assert result.months[0].label == "Jul 2025"
    assert result.months[-1].month == "2026-06"

    by_month = {bucket.month: bucket for bucket in result.months}
    assert by_month["2025-11"].revenue == 1000.0
    assert by_month["2026-02"].revenue == 500.0
    assert by_month["2026-05"].cost == 80.0
    assert by_month["2026-06"].revenue == 250.0
    assert by_month["2026-06"].cost == 180.0
    assert by_month["2026-06"].profit == 70.0
    assert by_month["2025-09"].revenue == 0.0

    assert result.total_revenue == 1750.0
    assert result.total_cost == 260.0
    assert result.profit == 1490.0
    assert result.margin_percent == 85.14
    assert result.has_cost_data is True
    assert result.best_month.month == "2025-11"
    assert result.worst_month.month == "2026-06"
    assert result.trend == "down"


def test_profitability_without_sales_has_no_cost_data(owner):
    _, session_local, user_id, _, seed = owner
    client = seed.client()
    seed.invoice(client.id, total="300.00", issue_date=date(2026, 5, 3), due_date=date(2026, 6, 3))

    with session_local() as db:
        result = get_client_profitability(
            db, client.id, user_id, labels=get_labels("es"), now=NOW
        )

    assert result.has_cost_data is False
    assert result.total_cost is None
    assert result.profit is None
    assert result.margin_percent is None
    assert result.best_month.label == "May 2026"
    assert result.worst_month is None
    assert all(bucket.cost == 0.0 for bucket in result.months)
    assert result.months[0].label == "Jul 2025"
    assert result.months[5].label == "Dic 2025"


def test_month_keys_cross_year_boundary():
    keys = month_keys(date(2026, 2, 10))

    assert keys[0] == "2025-03"
    assert keys[-1] == "2026-02"
    assert keys == sorted(keys)


@pytest.mark.parametrize(
    ("revenues", "expected"),
    [
        ([200, 200, 200, 100, 100, 100], "down"),
        ([0, 0, 0, 0, 0, 0], "stable"),
        ([0, 0, 0, 0, 0, 10], "up"),
        ([100, 100, 100, 104, 104, 104], "stable"),
        ([100, 100, 100, 110, 110, 110], "up"),
        ([100, 100, 100], "stable"),
    ],
)
def test_compute_trend(revenues, expected):
    assert compute_trend(revenues) == expected


def test_timeline_merges_all_sources_newest_first(scenario):
    with scenario["session_local"]() as db:
        timeline = get_client_timeline(db, scenario["client_id"], scenario["user_id"], now=NOW)

    assert timeline.total == 12
    assert [event.type for event in timeline.items] == [
        "payment",
        "sale",
        "invoice_issued",
        "sale",
        "payment",
        "invoice_overdue",
        "invoice_issued",
        "invoice_issued",
        "invoice_paid",
        "payment",
        "invoice_issued",
        "creation",
    ]
    dates = [event.date for event in timeline.items]
    assert dates == sorted(dates, reverse=True)

    by_id = {event.id: event for event in timeline.items}
    overdue = by_id[f"inv-overdue-{scenario['partial_id']}"]
    assert overdue.title == "Invoice INV-0002 overdue"
    assert overdue.subtitle == "Since 3 months ago"
    assert by_id[f"inv-issued-{scenario['canceled_id']}"].subtitle == "Canceled"
    assert by_id[f"inv-paid-{scenario['paid_id']}"].resource_type == "invoice"
    assert timeline.items[0].subtitle == "Invoice INV-0003"
    assert timeline.items[4].subtitle == "Invoice INV-0002 · transfer"
    assert timeline.items[-1].id == f"creation-{scenario['client_id']}"
    assert timeline.items[-1].subtitle == "Acme Studio"


def test_timeline_event_count_law(scenario):
    with scenario["session_local"]() as db:
        items = get_client_timeline(db, scenario["client_id"], scenario["user_id"], now=NOW).items

    issued = [event for event in items if event.type == "invoice_issued"]
    for event in issued:
        followups = [
            other
            for other in items
            if other.resource_id == event.resource_id
            and other.type in {"invoice_paid", "invoice_overdue"}
        ]
        assert len(followups) <= 1
    assert len(issued) == 4


def test_timeline_uses_spanish_labels(scenario):
    with scenario["session_local"]() as db:
        items = get_client_timeline(
            db,
            scenario["client_id"],
            scenario["user_id"],
            labels=get_labels("es"),
            now=NOW,
        ).items

    titles = {event.id: event.title for event in items}
    assert titles[f"creation-{scenario['client_id']}"] == "Cliente creado"
    assert titles[f"inv-paid-{scenario['paid_id']}"] == "Factura INV-0001 pagada"
    overdue = next(event for event in items if event.type == "invoice_overdue")
    assert overdue.subtitle == "Desde hace 3 meses"


def test_invoice_sales_and_payment_lists(scenario):
    with scenario["session_local"]() as db:
        invoices = list_client_invoices(db, scenario["client_id"], scenario["user_id"], now=NOW)
        sales = get_client_sales(db, scenario["client_id"], scenario["user_id"])
        payments = get_client_payments(db, scenario["client_id"], scenario["user_id"], now=NOW)

    assert [row.id for row in invoices.items] == [
        scenario["open_id"],
        scenario["partial_id"],
        scenario["canceled_id"],
        scenario["paid_id"],
    ]
    rows = {row.id: row for row in invoices.items}
    assert rows[scenario["partial_id"]].outstanding == 300.0
    assert rows[scenario["partial_id"]].is_overdue is True
    assert rows[scenario["canceled_id"]].is_overdue is False
    assert rows[scenario["open_id"]].paid_amount == 50.0

    assert [row.product for row in sales.items] == ["Brand book", "Logo design"]
    assert sales.kpis.total_purchased == 330.0
    assert sales.kpis.average_ticket == 165.0
    assert sales.kpis.order_count == 2
    assert sales.kpis.last_purchase == datetime(2026, 6, 2, 10, 0, tzinfo=timezone.utc)

    assert [row.amount for row in payments.items] == [50.0, 200.0, 1000.0]
    assert payments.items[1].invoice_number == "INV-0002"
    assert payments.kpis.total_paid == 1250.0
    assert payments.kpis.paid_this_month == 50.0
    assert payments.kpis.average_payment == 416.67
    assert payments.kpis.last_payment == datetime(2026, 6, 10, 9, 0, tzinfo=timezone.utc)


def test_empty_client_lists_have_zero_kpis(owner):
    _, session_local, user_id, _, seed = owner
    client = seed.client()

    with session_local() as db:
        sales = get_client_sales(db, client.id, user_id)
        payments = get_client_payments(db, client.id, user_id, now=NOW)

    assert sales.items == []
    assert sales.kpis.average_ticket == 0.0
    assert sales.kpis.last_purchase is None
    assert payments.kpis.average_payment == 0.0
    assert payments.kpis.last_payment is None


def test_overview_combines_views_and_caps_timeline(scenario):
    with scenario["session_local"]() as db:
        overview = get_client_overview(
            db, scenario["client_id"], scenario["user_id"], limit=5, now=NOW
        )
        base = get_client_base(db, scenario["client_id"], scenario["user_id"])

    assert overview.client.id == base.id == scenario["client_id"]
    assert overview.kpis.total_revenue == 1750.0
    assert overview.risk.level == "medium"
    assert overview.profitability.trend == "down"
    assert len(overview.timeline) == 5
    assert overview.timeline[0].type == "payment"


def test_other_tenant_sees_nothing(scenario, other_owner):
    other_user_id, _, _ = other_owner
    with scenario["session_local"]() as db:
        assert get_client_base(db, scenario["client_id"], other_user_id) is None
        assert get_client_overview(db, scenario["client_id"], other_user_id, now=NOW) is None
        risk = get_client_financial_risk(db, scenario["client_id"], other_user_id, now=NOW)
        timeline = get_client_timeline(db, scenario["client_id"], other_user_id, now=NOW)

    assert risk.reasons == ["No billing history"]
    assert timeline.total == 0


def test_unknown_statuses_and_types_are_rejected_by_the_database(owner):
    _, _, _, _, seed = owner
    client = seed.client()

    with pytest.raises(IntegrityError):
        seed.invoice(client.id, status="archived")
    with pytest.raises(IntegrityError):
        seed.invoice(client.id, type="expense")
    with pytest.raises(IntegrityError):
        seed.client(name="Lost Co", status="lost")

    assert seed.invoice(client.id, status="overdue", type="supplier").status == "overdue"
    assert seed.client(name="Key Account", status="vip").status == "vip"
    assert one_of("status", {"sent", "draft"}) == "status IN ('draft', 'sent')"
