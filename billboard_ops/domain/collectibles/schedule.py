"""
Payment schedule generation for booking collectibles.

Everything here is pure: callers rebuild the schedule by calling
recompute() after every form change instead of relying on reactive state.
"""

import re
from datetime import date, datetime
from typing import Any, Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from .schemas import BillingConfiguration, BillingType, PaymentScheduleEntry

ON_INVOICE_LABEL = "On Invoice"
DEPOSIT_LABEL = "Deposit (deductible)"
LABEL_DATE_FORMAT = "%b %d, %Y"
PERIOD_FORMAT = "%B %Y"
ONE_TIME_PERIOD = "One Time"
DEPOSIT_PERIOD = "Deposit"


def terms_months(terms: Optional[str]) -> int:
    """Leading month count of a terms label ("2 months" -> 2); 1 when unreadable"""
    match = re.match(r"\s*(\d+)", terms or "")
    months = int(match.group(1)) if match else 0
    return months or 1


def format_label_date(value: date) -> str:
    return value.strftime(LABEL_DATE_FORMAT)


def compute_schedule(config: BillingConfiguration) -> list[PaymentScheduleEntry]:
    """
    Build the ordered payment lines for a billing configuration.

    One Time billing yields a single "On Invoice" line for the deposit (when
    required) plus rate x total_months. Monthly billing yields the deposit
    first (when required and positive), then one line per billing month.
    total_months is trusted as given, never re-derived from the dates.
    """
    deposit = config.deposit_amount if config.deposit_required == "Yes" else 0

    if config.billing_type == BillingType.ONE_TIME:
        total = deposit + config.rate * config.total_months
        return [PaymentScheduleEntry(label=ON_INVOICE_LABEL, amount=total)]

    entries: list[PaymentScheduleEntry] = []
    if config.deposit_required == "Yes" and config.deposit_amount > 0:
        entries.append(PaymentScheduleEntry(label=DEPOSIT_LABEL, amount=config.deposit_amount))

    if config.total_months > 0 and config.start_date is None:
        raise ValueError("A start date is required for monthly billing")

    for i in range(config.total_months):
        # Offsets are taken from the original start so month-end days clamp per month
        period_start = config.start_date + relativedelta(months=i)
        period_end = config.start_date + relativedelta(months=i + 1)
        entries.append(
            PaymentScheduleEntry(
                label=f"{format_label_date(period_start)}-{format_label_date(period_end)}",
                amount=config.rate,
            )
        )

    return entries


recompute = compute_schedule


def schedule_total(entries: list[PaymentScheduleEntry]) -> float:
    return sum(entry.amount for entry in entries)


def apply_field_change(config: BillingConfiguration, field: str, value: Any) -> BillingConfiguration:
    """
    Apply one form edit and the deposit rules that follow from it.

    - deposit_required -> "No" clears the deposit amount
    - deposit_terms or rate changes while a deposit is required re-derive
      deposit_amount = rate x terms months
    - a manual deposit_amount edit stands until rate or terms change again
    """
    updated = BillingConfiguration.model_validate({**config.model_dump(), field: value})

    if field == "deposit_required" and updated.deposit_required == "No":
        updated = updated.model_copy(update={"deposit_amount": 0})
    elif field in ("deposit_terms", "rate") and updated.deposit_required == "Yes":
        derived = updated.rate * terms_months(updated.deposit_terms)
        updated = updated.model_copy(update={"deposit_amount": derived})

    return updated


def derive_total_months(start: date, end: date) -> int:
    """Inclusive month count between two dates (Jan 15 -> Mar 20 is 3)"""
    delta = relativedelta(end, start)
    return max(delta.years * 12 + delta.months + 1, 0)


def _as_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date_parser.isoparse(str(value)).date()


def config_from_booking(booking: dict) -> BillingConfiguration:
    """Prefill billing terms from a booking record"""
    start = _as_date(booking.get("start_date"))
    end = _as_date(booking.get("end_date"))
    price = (booking.get("costDetails") or {}).get("pricePerMonth") or 0

    return BillingConfiguration(
        rate=float(price),
        start_date=start,
        end_date=end,
        total_months=derive_total_months(start, end) if start and end else 0,
        deposit_amount=float(price),
    )


def due_date_and_period(
    entry: PaymentScheduleEntry, config: BillingConfiguration
) -> tuple[Optional[date], Optional[str]]:
    """Due date and human period for a schedule line"""
    if config.billing_type == BillingType.ONE_TIME:
        return config.start_date, ONE_TIME_PERIOD
    if entry.label == DEPOSIT_LABEL:
        return config.start_date, DEPOSIT_PERIOD
    if "-" in entry.label:
        # "Jan 01, 2024-Feb 01, 2024": the billing month starts at the first date
        start_text = entry.label.split("-", 1)[0]
        due = datetime.strptime(start_text, LABEL_DATE_FORMAT).date()
        return due, due.strftime(PERIOD_FORMAT)
    return None, None
