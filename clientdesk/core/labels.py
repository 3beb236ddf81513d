"""Localised strings for the client-360 views.

Catalogs are plain frozen objects handed to the services by the caller, so a
request always renders with the locale it asked for.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from clientdesk.core.config import settings

_CURRENCY_SYMBOLS = {
    "EUR": "€",
    "USD": "$",
    "GBP": "£",
    "JPY": "¥",
}


@dataclass(frozen=True)
class Client360Labels:
    locale: str
    risk_levels: dict[str, str]
    month_names: tuple[str, ...]
    reasons: dict[str, str]
    timeline: dict[str, str]
    relative: dict[str, str]
    thousands_separator: str
    symbol_after_amount: bool
    # Amounts with more digits than this get thousands separators.
    grouping_min_digits: int

    def risk_label(self, level: str) -> str:
        return self.risk_levels[level]

    def reason(self, key: str, **values) -> str:
        return self.reasons[key].format(**values)

    def timeline_text(self, key: str, **values) -> str:
        return self.timeline[key].format(**values)

    def month_label(self, month_key: str) -> str:
        year, month = month_key.split("-")
        return f"{self.month_names[int(month) - 1]} {year}"

    def format_currency(self, amount: Decimal | float | int, currency: str | None = None) -> str:
        code = (currency or settings.default_currency).upper()
        symbol = _CURRENCY_SYMBOLS.get(code, code)
        whole = int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        digits = str(abs(whole))
        if len(digits) > self.grouping_min_digits:
            groups = []
            while digits:
                groups.insert(0, digits[-3:])
                digits = digits[:-3]
            digits = self.thousands_separator.join(groups)
        sign = "-" if whole < 0 else ""
        if self.symbol_after_amount:
            return f"{sign}{digits} {symbol}"
        if len(symbol) > 1:
            return f"{sign}{symbol} {digits}"
        return f"{sign}{symbol}{digits}"

    def relative_age(self, days: int) -> str:
        if days <= 0:
            return self.relative["today"]
        if days == 1:
            return self.relative["yesterday"]
        if days < 7:
            return self.relative["days"].format(n=days)
        if days < 30:
            return self.relative["weeks"].format(n=days // 7)
        if days < 365:
            return self.relative["months"].format(n=days // 30)
        return self.relative["years"].format(n=days // 365)


EN_LABELS = Client360Labels(
    locale="en",
    risk_levels={"low": "Low", "medium": "Medium", "high": "High"},
    month_names=("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"),
    reasons={
        "no_history": "No billing history",
        "overdue_one": "1 overdue invoice ({amount})",
        "overdue_many": "{count} overdue invoices ({amount})",
        "overdue_share": "More than 50% of pending volume is overdue",
        "avg_delay_over_30": "Average delay of {days} days (>30)",
        "avg_delay_over_15": "Average delay of {days} days (>15)",
        "avg_delay_over_7": "Average delay of {days} days",
        "worst_delay": "Worst recorded delay: {days} days",
        "late_share": "{percent}% of invoices paid late",
        "avg_payment_over_45": "Average payment time: {days} days (>45)",
        "avg_payment_over_30": "Average payment time: {days} days (>30)",
        "clean_history": "Clean history: no late payments recorded",
        "fully_paid": "100% of invoices paid",
    },
    timeline={
        "creation": "Client created",
        "sale": "Sale: {product}",
        "invoice_issued": "Invoice {number} issued",
        "invoice_paid": "Invoice {number} paid",
        "invoice_overdue": "Invoice {number} overdue",
        "invoice_canceled": "Canceled",
        "overdue_since": "Since {age}",
        "payment": "Payment recorded",
        "payment_invoice": "Invoice {number}",
    },
    relative={
        "today": "today",
        "yesterday": "yesterday",
        "days": "{n} days ago",
        "weeks": "{n} wk ago",
        "months": "{n} months ago",
        "years": "{n} years ago",
    },
    thousands_separator=",",
    symbol_after_amount=False,
    grouping_min_digits=3,
)

ES_LABELS = Client360Labels(
    locale="es",
    risk_levels={"low": "Bajo", "medium": "Medio", "high": "Alto"},
    month_names=("Ene", "Feb", "Mar", "Abr", "May", "Jun", "Jul", "Ago", "Sep", "Oct", "Nov", "Dic"),
    reasons={
        "no_history": "Sin historial de facturación",
        "overdue_one": "1 factura vencida ({amount})",
        "overdue_many": "{count} facturas vencidas ({amount})",
        "overdue_share": "Más del 50% del volumen pendiente está vencido",
        "avg_delay_over_30": "Retraso medio de {days} días (>30)",
        "avg_delay_over_15": "Retraso medio de {days} días (>15)",
        "avg_delay_over_7": "Retraso medio de {days} días",
        "worst_delay": "Peor retraso histórico: {days} días",
        "late_share": "{percent}% de facturas pagadas con retraso",
        "avg_payment_over_45": "Tiempo medio de pago: {days} días (>45)",
        "avg_payment_over_30": "Tiempo medio de pago: {days} días (>30)",
        "clean_history": "Historial limpio: sin retrasos registrados",
        "fully_paid": "100% de facturas pagadas",
    },
    timeline={
        "creation": "Cliente creado",
        "sale": "Venta: {product}",
        "invoice_issued": "Factura {number} emitida",
        "invoice_paid": "Factura {number} pagada",
        "invoice_overdue": "Factura {number} vencida",
        "invoice_canceled": "Cancelada",
        "overdue_since": "Desde {age}",
        "payment": "Pago registrado",
        "payment_invoice": "Factura {number}",
    },
    relative={
        "today": "hoy",
        "yesterday": "ayer",
        "days": "hace {n} días",
        "weeks": "hace {n} sem.",
        "months": "hace {n} meses",
        "years": "hace {n} años",
    },
    thousands_separator=".",
    symbol_after_amount=True,
    grouping_min_digits=4,
)

LABEL_CATALOGS: dict[str, Client360Labels] = {
    EN_LABELS.locale: EN_LABELS,
    ES_LABELS.locale: ES_LABELS,
}
SUPPORTED_LOCALES = frozenset(LABEL_CATALOGS)


class UnsupportedLocaleError(ValueError):
    pass


def get_labels(locale: str | None = None) -> Client360Labels:
    code = (locale or settings.default_locale or "en").strip().lower()
    labels = LABEL_CATALOGS.get(code)
    if labels is None:
        allowed = ", ".join(sorted(SUPPORTED_LOCALES))
        raise UnsupportedLocaleError(f"Unsupported locale '{code}'. Allowed: {allowed}")
    return labels
