"""Client payment-behaviour risk score.

The score starts at ``BASE_SCORE`` and every rule in ``RISK_RULES`` may add
(or subtract) points. Within a rule the tiers are exclusive and the first
matching tier wins; across rules the deltas add up. The final score is
clamped to 0..100 and mapped to a level:

    score <= 30  -> low
    score <= 65  -> medium
    otherwise    -> high

Reasons are emitted in rule order so the UI can show why a client scored the
way it did.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from clientdesk.core.labels import Client360Labels, get_labels
from clientdesk.core.money import ZERO_MONEY, to_money, to_whole
from clientdesk.core.observability import log_event
from clientdesk.schemas.client360 import ClientFinancialRiskOut
from clientdesk.services.client_facts import InvoiceFact, load_invoice_facts, resolve_now

logger = logging.getLogger("clientdesk.services.risk")

BASE_SCORE = 10
MIN_SCORE = 0
MAX_SCORE = 100
LOW_RISK_MAX = 30
MEDIUM_RISK_MAX = 65


@dataclass(frozen=True)
class RiskFacts:
    invoices_sent: int
    invoices_paid: int
    overdue_count: int
    overdue_amount: Decimal
    pending_amount: Decimal
    avg_payment_days: int
    avg_delay_days: int
    worst_delay_days: int
    late_count: int
    late_share_percent: int


def build_risk_facts(invoices: list[InvoiceFact], *, now: datetime) -> RiskFacts:
    settled = [invoice for invoice in invoices if invoice.is_settled]
    payment_days = [invoice.payment_days() for invoice in settled]
    delays = [invoice.delay_days() for invoice in settled]
    late_delays = [delay for delay in delays if delay > 0]

    overdue_count = 0
    overdue_amount = ZERO_MONEY
    pending_amount = ZERO_MONEY
    for invoice in invoices:
        if invoice.is_paid:
            continue
        pending_amount += invoice.outstanding
        if invoice.is_overdue(now):
            overdue_count += 1
            overdue_amount += invoice.outstanding

    invoices_paid = len(settled)
    late_count = len(late_delays)
    return RiskFacts(
        invoices_sent=len(invoices),
        invoices_paid=invoices_paid,
        overdue_count=overdue_count,
        overdue_amount=to_money(overdue_amount),
        pending_amount=to_money(pending_amount),
        avg_payment_days=to_whole(Decimal(sum(payment_days)) / len(payment_days)) if payment_days else 0,
        avg_delay_days=to_whole(Decimal(sum(late_delays)) / late_count) if late_delays else 0,
        worst_delay_days=max(delays, default=0),
        late_count=late_count,
        late_share_percent=(
            to_whole(Decimal(late_count) / invoices_paid * 100) if invoices_paid else 0
        ),
    )


@dataclass(frozen=True)
class RiskTier:
    applies: Callable[[RiskFacts], bool]
    points: Callable[[RiskFacts], int]
    reason: Callable[[RiskFacts, Client360Labels], str]


@dataclass(frozen=True)
class RiskRule:
    key: str
    tiers: tuple[RiskTier, ...]

    def evaluate(self, facts: RiskFacts) -> RiskTier | None:
        for tier in self.tiers:
            if tier.applies(facts):
                return tier
        return None


def _fixed(points: int) -> Callable[[RiskFacts], int]:
    return lambda _facts: points


def _reason(key: str, **fields: Callable[[RiskFacts], object]):
    def render(facts: RiskFacts, labels: Client360Labels) -> str:
        return labels.reason(key, **{name: getter(facts) for name, getter in fields.items()})

    return render


def _overdue_reason(facts: RiskFacts, labels: Client360Labels) -> str:
    amount = labels.format_currency(facts.overdue_amount)
    if facts.overdue_count == 1:
        return labels.reason("overdue_one", amount=amount)
    return labels.reason("overdue_many", count=facts.overdue_count, amount=amount)


def _overdue_share_exceeds_half(facts: RiskFacts) -> bool:
    if facts.pending_amount <= 0:
        return False
    return facts.overdue_amount / facts.pending_amount > Decimal("0.5")


_avg_delay = _reason("avg_delay_over_30", days=lambda f: f.avg_delay_days)
_worst_delay = _reason("worst_delay", days=lambda f: f.worst_delay_days)
_late_share = _reason("late_share", percent=lambda f: f.late_share_percent)

RISK_RULES: tuple[RiskRule, ...] = (
    RiskRule(
        key="overdue_invoices",
        tiers=(
            RiskTier(
                applies=lambda f: f.overdue_count > 0,
                points=lambda f: min(25, f.overdue_count * 10),
                reason=_overdue_reason,
            ),
        ),
    ),
    RiskRule(
        key="overdue_share",
        tiers=(
            RiskTier(
                applies=_overdue_share_exceeds_half,
                points=_fixed(10),
                reason=_reason("overdue_share"),
            ),
        ),
    ),
    RiskRule(
        key="avg_delay",
        tiers=(
            RiskTier(lambda f: f.avg_delay_days > 30, _fixed(15), _avg_delay),
            RiskTier(
                lambda f: f.avg_delay_days > 15,
                _fixed(8),
                _reason("avg_delay_over_15", days=lambda f: f.avg_delay_days),
            ),
            RiskTier(
                lambda f: f.avg_delay_days > 7,
                _fixed(4),
                _reason("avg_delay_over_7", days=lambda f: f.avg_delay_days),
            ),
        ),
    ),
    RiskRule(
        key="worst_delay",
        tiers=(
            RiskTier(lambda f: f.worst_delay_days > 60, _fixed(10), _worst_delay),
            RiskTier(lambda f: f.worst_delay_days > 30, _fixed(5), _worst_delay),
        ),
    ),
    RiskRule(
        key="late_share",
        tiers=(
            RiskTier(lambda f: f.late_share_percent > 50, _fixed(12), _late_share),
            RiskTier(lambda f: f.late_share_percent > 25, _fixed(6), _late_share),
        ),
    ),
    RiskRule(
        key="avg_payment_days",
        tiers=(
            RiskTier(
                lambda f: f.avg_payment_days > 45,
                _fixed(10),
                _reason("avg_payment_over_45", days=lambda f: f.avg_payment_days),
            ),
            RiskTier(
                lambda f: f.avg_payment_days > 30,
                _fixed(5),
                _reason("avg_payment_over_30", days=lambda f: f.avg_payment_days),
            ),
        ),
    ),
    RiskRule(
        key="clean_history",
        tiers=(
            RiskTier(
                lambda f: f.late_count == 0 and f.invoices_paid >= 3,
                _fixed(-10),
                _reason("clean_history"),
            ),
        ),
    ),
    RiskRule(
        key="fully_paid",
        tiers=(
            RiskTier(
                lambda f: (
                    f.invoices_paid > 0
                    and f.invoices_paid == f.invoices_sent
                    and f.overdue_count == 0
                ),
                _fixed(-5),
                _reason("fully_paid"),
            ),
        ),
    ),
)


def score_to_level(score: int) -> str:
    if score <= LOW_RISK_MAX:
        return "low"
    if score <= MEDIUM_RISK_MAX:
        return "medium"
    return "high"


def _no_history(labels: Client360Labels) -> ClientFinancialRiskOut:
    return ClientFinancialRiskOut(
        score=0,
        level="low",
        label=labels.risk_label("low"),
        avg_delay_days=0,
        worst_delay_days=0,
        invoices_sent=0,
        invoices_paid=0,
        overdue_count=0,
        overdue_amount=0.0,
        pending_amount=0.0,
        avg_payment_days=0,
        reasons=[labels.reason("no_history")],
    )


def score_risk(
    facts: RiskFacts,
    *,
    labels: Client360Labels,
    rules: tuple[RiskRule, ...] = RISK_RULES,
) -> ClientFinancialRiskOut:
    if facts.invoices_sent == 0:
        return _no_history(labels)

    score = BASE_SCORE
    reasons: list[str] = []
    for rule in rules:
        tier = rule.evaluate(facts)
        if tier is None:
            continue
        score += tier.points(facts)
        reasons.append(tier.reason(facts, labels))

    score = int(round(max(MIN_SCORE, min(MAX_SCORE, score))))
    level = score_to_level(score)
    return ClientFinancialRiskOut(
        score=score,
        level=level,
        label=labels.risk_label(level),
        avg_delay_days=facts.avg_delay_days,
        worst_delay_days=facts.worst_delay_days,
        invoices_sent=facts.invoices_sent,
        invoices_paid=facts.invoices_paid,
        overdue_count=facts.overdue_count,
        overdue_amount=float(facts.overdue_amount),
        pending_amount=float(facts.pending_amount),
        avg_payment_days=facts.avg_payment_days,
        reasons=reasons,
    )


def get_client_financial_risk(
    db: Session,
    client_id: str,
    user_id: str,
    *,
    labels: Client360Labels | None = None,
    now: datetime | None = None,
) -> ClientFinancialRiskOut:
    labels = labels or get_labels()
    invoices = load_invoice_facts(db, client_id, user_id)
    facts = build_risk_facts(invoices, now=resolve_now(now))
    risk = score_risk(facts, labels=labels)
    log_event(
        logger,
        "client_risk_scored",
        client_id=client_id,
        score=risk.score,
        risk_level=risk.level,
        invoices_sent=facts.invoices_sent,
        overdue_count=facts.overdue_count,
    )
    return risk
