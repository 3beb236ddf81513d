import pytest
import os
from datetime import date, datetime, timezone
from decimal import Decimal

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import clientdesk.models  # noqa: F401
from clientdesk.core.config import settings
from clientdesk.core.deps import get_db
from clientdesk.core.security import create_access_token
from clientdesk.db.base import Base
from clientdesk.main import app
from clientdesk.models.client import Client
from clientdesk.models.invoice import Invoice, InvoicePayment
from clientdesk.models.sales import Sale
from clientdesk.models.user import User


class Seeder:
    """Inserts rows for one tenant and commits after each call."""

    def __init__(self, session_local, user_id: str):
        self.session_local = session_local
        self.user_id = user_id
        self._invoice_seq = 0

    def _add(self, row):
        with self.session_local() as db:
            db.add(row)
            db.commit()
            db.refresh(row)
            db.expunge(row)
        return row

    def client(self, *, name: str = "Acme Studio", created_at: datetime | None = None, **fields) -> Client:
        return self._add(
            Client(
                user_id=self.user_id,
                name=name,
                created_at=created_at or datetime(2025, 1, 10, 9, 0, tzinfo=timezone.utc),
                **fields,
            )
        )

    def invoice(
        self,
        client_id: str | None,
        *,
        total: str | Decimal = "100.00",
        status: str = "issued",
        issue_date: date = date(2026, 5, 1),
        due_date: date | None = None,
        paid_at: datetime | None = None,
        type: str = "customer",
        number: str | None = None,
        currency: str = "EUR",
    ) -> Invoice:
        self._invoice_seq += 1
        return self._add(
            Invoice(
                user_id=self.user_id,
                client_id=client_id,
                type=type,
                status=status,
                number=number or f"INV-{self._invoice_seq:04d}",
                currency=currency,
                total=Decimal(str(total)),
                issue_date=issue_date,
                due_date=due_date or issue_date,
                paid_at=paid_at,
            )
        )

    def payment(
        self,
        invoice_id: str,
        *,
        amount: str | Decimal,
        paid_at: datetime,
        method: str | None = "transfer",
    ) -> InvoicePayment:
        return self._add(
            InvoicePayment(
                invoice_id=invoice_id,
                amount=Decimal(str(amount)),
                paid_at=paid_at,
                method=method,
            )
        )

    def sale(
        self,
        client_id: str,
        *,
        product: str = "Consulting pack",
        price: str | Decimal = "80.00",
        discount: str | Decimal = "0",
        total: str | Decimal = "100.00",
        sale_date: datetime = datetime(2026, 5, 20, 10, 0, tzinfo=timezone.utc),
        status: str = "paid",
    ) -> Sale:
        return self._add(
            Sale(
                user_id=self.user_id,
                client_id=client_id,
                product=product,
                price=Decimal(str(price)),
                discount=Decimal(str(discount)),
                total=Decimal(str(total)),
                sale_date=sale_date,
                status=status,
            )
        )


@pytest.fixture()
def test_context():
    original_secret = settings.secret_key
    settings.secret_key = "test-secret-key"

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as client:
        yield client, session_local

    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)
    settings.secret_key = original_secret


def _create_user(session_local, email: str) -> str:
    with session_local() as db:
        user = User(email=email, full_name="Owner")
        db.add(user)
        db.commit()
        return user.id


@pytest.fixture()
def owner(test_context):
    """An active user, its bearer headers and a seeder scoped to it."""
    client, session_local = test_context
    user_id = _create_user(session_local, "owner@clientdesk.test")
    headers = {"Authorization": f"Bearer {create_access_token(user_id)}"}
    return client, session_local, user_id, headers, Seeder(session_local, user_id)


@pytest.fixture()
def other_owner(test_context):
    _, session_local = test_context
    user_id = _create_user(session_local, "other@clientdesk.test")
    headers = {"Authorization": f"Bearer {create_access_token(user_id)}"}
    return user_id, headers, Seeder(session_local, user_id)
