"""Read-side views derived from a snapshot of ledger transactions.

Every function here is pure: it folds the given transactions in memory and
never touches the store. Month filters use the transaction's own ``date``,
not its ``createdAt``.
"""

from calendar import month_abbr
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from ..errors import ValidationError
from ..schemas import CategoryAmount, DashboardSummary, MonthSummary, Transaction, TrendPoint, TransactionType

DEFAULT_TREND_MONTHS = 6

_ZERO = Decimal("0")


def _check_month(year: int, month: int) -> None:
    if not 1 <= month <= 12:
        raise ValidationError(f"month out of range: {month}", [("month", "must be between 1 and 12")])
    if year < 1:
        raise ValidationError(f"year out of range: {year}", [("year", "must be positive")])


def _shift_month(year: int, month: int, months: int) -> tuple[int, int]:
    total_month = (month - 1) + months
    return year + total_month // 12, (total_month % 12) + 1


def _in_month(tx: Transaction, year: int, month: int) -> bool:
    return tx.date.year == year and tx.date.month == month


def _is_expense(tx: Transaction) -> bool:
    return tx.type == TransactionType.expense


def _signed(tx: Transaction) -> Decimal:
    return tx.amount if tx.type == TransactionType.income else -tx.amount


def compute_balance(transactions: Iterable[Transaction]) -> Decimal:
    return sum((_signed(tx) for tx in transactions), _ZERO)


def compute_month_summary(transactions: Iterable[Transaction], year: int, month: int) -> MonthSummary:
    """Income and expense totals for one calendar month, kept separate."""
    _check_month(year, month)
    income = _ZERO
    expenses = _ZERO
    for tx in transactions:
        if not _in_month(tx, year, month):
            continue
        if _is_expense(tx):
            expenses += tx.amount
        else:
            income += tx.amount
    return MonthSummary(totalIncome=income, totalExpenses=expenses)


def compute_category_breakdown(transactions: Iterable[Transaction], year: int, month: int) -> list[CategoryAmount]:
    """Expense totals per category for one month, largest first.

    Categories with equal totals keep the order in which they were first seen
    in ``transactions``; ``sorted`` is stable, so grouping in a dict (which
    preserves insertion order) and sorting by amount alone gives that
    tie-break.
    """
    _check_month(year, month)
    totals: dict[str, Decimal] = {}
    for tx in transactions:
        if _is_expense(tx) and _in_month(tx, year, month):
            totals[tx.category] = totals.get(tx.category, _ZERO) + tx.amount
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [CategoryAmount(category=name, amount=amount) for name, amount in ranked]


def compute_monthly_trend(
    transactions: Iterable[Transaction],
    now: datetime,
    month_count: int = DEFAULT_TREND_MONTHS,
) -> list[TrendPoint]:
    """Expense totals for the ``month_count`` months ending at ``now``'s month, oldest first.

    Months without expenses are still emitted with a zero value.
    """
    if month_count < 1:
        raise ValidationError(f"month_count must be positive: {month_count}", [("monthCount", "must be >= 1")])
    window = [_shift_month(now.year, now.month, -offset) for offset in range(month_count - 1, -1, -1)]
    totals = {key: _ZERO for key in window}
    for tx in transactions:
        key = (tx.date.year, tx.date.month)
        if key in totals and _is_expense(tx):
            totals[key] += tx.amount
    return [TrendPoint(label=month_abbr[month], value=totals[(year, month)], year=year, month=month) for year, month in window]


def build_dashboard(
    transactions: Iterable[Transaction],
    now: datetime,
    month_count: int = DEFAULT_TREND_MONTHS,
) -> DashboardSummary:
    snapshot = list(transactions)
    return DashboardSummary(
        year=now.year,
        month=now.month,
        balance=compute_balance(snapshot),
        summary=compute_month_summary(snapshot, now.year, now.month),
        categoryBreakdown=compute_category_breakdown(snapshot, now.year, now.month),
        monthlyTrend=compute_monthly_trend(snapshot, now, month_count),
    )
