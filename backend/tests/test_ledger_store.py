import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from pocket_ledger.errors import NotFoundError, StorageInitError, ValidationError
from pocket_ledger.schemas import TransactionCreate, TransactionUpdate
from pocket_ledger.services.aggregation import compute_month_summary

EVENT_DATE = datetime(2026, 10, 19, 9, 30)


def _draft(**overrides) -> dict:
    draft = {
        "amount": Decimal("25.50"),
        "category": "Food & Dining",
        "description": "Lunch at cafe",
        "date": EVENT_DATE,
        "type": "expense",
    }
    draft.update(overrides)
    return draft


def test_create_then_read_returns_the_draft(ledger) -> None:
    tx_id = ledger.create_transaction(_draft())
    tx = ledger.get_transaction(tx_id)
    assert tx.id == tx_id
    assert tx.amount == Decimal("25.50")
    assert tx.category == "Food & Dining"
    assert tx.description == "Lunch at cafe"
    assert tx.date == EVENT_DATE
    assert tx.type == "expense"
    assert tx.createdAt == tx.updatedAt


def test_create_accepts_model_and_normalizes_fields(ledger) -> None:
    draft = TransactionCreate(amount=3000, category="  Salary ", date=EVENT_DATE, type="INCOME")
    tx = ledger.get_transaction(ledger.create_transaction(draft))
    assert tx.category == "Salary"
    assert tx.type == "income"
    assert tx.description == ""


def test_aware_date_keeps_its_local_month(ledger) -> None:
    early_november = datetime(2026, 11, 1, 7, 0, tzinfo=timezone(timedelta(hours=8)))
    tx = ledger.get_transaction(ledger.create_transaction(_draft(amount=10, date=early_november)))
    assert tx.date == datetime(2026, 11, 1, 7, 0)

    transactions = ledger.list_transactions()
    assert compute_month_summary(transactions, 2026, 11).totalExpenses == Decimal("10")
    assert compute_month_summary(transactions, 2026, 10).totalExpenses == Decimal("0")
    in_november = ledger.list_transactions_in_range(datetime(2026, 11, 1), datetime(2026, 11, 30, 23, 59, 59))
    assert [t.id for t in in_november] == [tx.id]


@pytest.mark.parametrize("amount", ["123456789012.34", "0.01", "25.5"])
def test_amount_round_trips_exactly(ledger, amount) -> None:
    tx = ledger.get_transaction(ledger.create_transaction(_draft(amount=Decimal(amount))))
    assert tx.amount == Decimal(amount)
    assert str(tx.amount) == str(Decimal(amount).quantize(Decimal("0.01")))


@pytest.mark.parametrize("amount", ["123456789012.345678", "1.005", "1234567890123.45"])
def test_create_rejects_amounts_beyond_column_precision(ledger, amount) -> None:
    with pytest.raises(ValidationError):
        ledger.create_transaction(_draft(amount=Decimal(amount)))
    with pytest.raises(ValidationError):
        ledger.update_transaction(ledger.create_transaction(_draft()), {"amount": Decimal(amount)})


def test_rejected_draft_is_logged(ledger, caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="pocket_ledger.persistence"):
        with pytest.raises(ValidationError):
            ledger.create_transaction(_draft(amount=-3))
    assert any("Rejected TransactionCreate" in record.getMessage() for record in caplog.records)


@pytest.mark.parametrize("amount", [0, -5, "abc", "NaN"])
def test_create_rejects_invalid_amount(ledger, amount) -> None:
    with pytest.raises(ValidationError) as exc_info:
        ledger.create_transaction(_draft(amount=amount))
    assert any(field == "amount" for field, _ in exc_info.value.details)
    assert ledger.count_transactions() == 0


@pytest.mark.parametrize("category", ["", "   "])
def test_create_rejects_empty_category(ledger, category) -> None:
    with pytest.raises(ValidationError):
        ledger.create_transaction(_draft(category=category))
    assert ledger.list_transactions() == []


def test_create_rejects_unknown_type(ledger) -> None:
    with pytest.raises(ValidationError):
        ledger.create_transaction(_draft(type="transfer"))


def test_ids_are_unique(ledger) -> None:
    ids = {ledger.create_transaction(_draft()) for _ in range(50)}
    assert len(ids) == 50


def test_update_amount_changes_only_amount_and_updated_at(ledger) -> None:
    tx_id = ledger.create_transaction(_draft())
    before = ledger.get_transaction(tx_id)

    after = ledger.update_transaction(tx_id, {"amount": Decimal("40.00")})

    assert after.amount == Decimal("40.00")
    assert after.updatedAt >= before.updatedAt
    assert after.createdAt == before.createdAt
    for field in ("id", "category", "description", "date", "type"):
        assert getattr(after, field) == getattr(before, field)
    assert ledger.get_transaction(tx_id) == after


def test_update_applies_several_fields(ledger) -> None:
    tx_id = ledger.create_transaction(_draft())
    new_date = EVENT_DATE - timedelta(days=40)
    updated = ledger.update_transaction(
        tx_id,
        TransactionUpdate(category="Shopping", description="", date=new_date, type="income"),
    )
    assert updated.category == "Shopping"
    assert updated.description == ""
    assert updated.date == new_date
    assert updated.type == "income"
    assert updated.amount == Decimal("25.50")


def test_update_missing_transaction_raises_not_found(ledger) -> None:
    with pytest.raises(NotFoundError):
        ledger.update_transaction("does-not-exist", {"amount": 10})


def test_update_with_invalid_amount_leaves_record_untouched(ledger) -> None:
    tx_id = ledger.create_transaction(_draft())
    before = ledger.get_transaction(tx_id)
    with pytest.raises(ValidationError):
        ledger.update_transaction(tx_id, {"amount": -1})
    assert ledger.get_transaction(tx_id) == before


def test_delete_is_idempotent_and_removes_one(ledger) -> None:
    keep = ledger.create_transaction(_draft())
    gone = ledger.create_transaction(_draft(category="Shopping"))
    assert ledger.count_transactions() == 2

    ledger.delete_transaction(gone)
    ledger.delete_transaction(gone)

    remaining = [tx.id for tx in ledger.list_transactions()]
    assert remaining == [keep]
    assert ledger.count_transactions() == 1
    with pytest.raises(NotFoundError):
        ledger.get_transaction(gone)


def test_list_orders_by_recording_time_not_event_date(ledger) -> None:
    first = ledger.create_transaction(_draft(date=EVENT_DATE))
    second = ledger.create_transaction(_draft(date=EVENT_DATE - timedelta(days=30)))
    third = ledger.create_transaction(_draft(date=EVENT_DATE + timedelta(days=1)))
    assert [tx.id for tx in ledger.list_transactions()] == [third, second, first]


def test_list_paging(ledger) -> None:
    ids = [ledger.create_transaction(_draft(amount=n)) for n in range(1, 6)]
    newest_first = list(reversed(ids))
    assert [tx.id for tx in ledger.list_transactions(limit=2)] == newest_first[:2]
    assert [tx.id for tx in ledger.list_transactions(limit=2, offset=2)] == newest_first[2:4]
    assert [tx.id for tx in ledger.list_transactions(offset=3)] == newest_first[3:]
    assert ledger.list_transactions(limit=0) == []
    with pytest.raises(ValidationError):
        ledger.list_transactions(limit=-1)


def test_list_in_range_is_inclusive(ledger) -> None:
    start = datetime(2026, 10, 1)
    end = datetime(2026, 10, 31, 23, 59, 59)
    on_start = ledger.create_transaction(_draft(date=start))
    on_end = ledger.create_transaction(_draft(date=end))
    ledger.create_transaction(_draft(date=start - timedelta(microseconds=1)))
    ledger.create_transaction(_draft(date=datetime(2026, 11, 1)))

    in_range = [tx.id for tx in ledger.list_transactions_in_range(start, end)]
    assert in_range == [on_end, on_start]


def test_list_in_range_rejects_inverted_bounds(ledger) -> None:
    with pytest.raises(ValidationError):
        ledger.list_transactions_in_range(datetime(2026, 10, 2), datetime(2026, 10, 1))


def test_settings_defaults(ledger) -> None:
    current = ledger.get_settings()
    assert current.currency == "MYR"
    assert current.language == "en"
    assert current.theme == "system"
    assert current.isPremium is False


def test_update_settings_touches_only_supplied_fields(ledger) -> None:
    updated = ledger.update_settings({"currency": "usd"})
    assert updated.currency == "USD"
    current = ledger.get_settings()
    assert current.currency == "USD"
    assert current.language == "en"
    assert current.theme == "system"
    assert current.isPremium is False

    ledger.update_settings({"isPremium": True, "theme": "dark"})
    current = ledger.get_settings()
    assert current.isPremium is True
    assert current.theme == "dark"
    assert current.currency == "USD"


def test_update_settings_with_empty_partial_is_noop(ledger) -> None:
    before = ledger.get_settings()
    assert ledger.update_settings({}) == before
    assert ledger.get_settings() == before


@pytest.mark.parametrize("partial", [{"theme": "sepia"}, {"currency": "DOLLAR"}])
def test_update_settings_rejects_invalid_values(ledger, partial) -> None:
    before = ledger.get_settings()
    with pytest.raises(ValidationError):
        ledger.update_settings(partial)
    assert ledger.get_settings() == before


def test_initialize_is_idempotent(ledger) -> None:
    ledger.update_settings({"currency": "EUR"})
    tx_id = ledger.create_transaction(_draft())
    ledger.initialize()
    assert ledger.get_settings().currency == "EUR"
    assert ledger.get_transaction(tx_id).id == tx_id


def test_operations_require_initialize(make_ledger) -> None:
    fresh = make_ledger()
    with pytest.raises(NotFoundError):
        fresh.get_settings()
    with pytest.raises(StorageInitError):
        fresh.create_transaction(_draft())
