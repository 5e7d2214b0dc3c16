from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import text

from pocket_ledger.errors import StorageInitError, StorageReadError, StorageWriteError
from pocket_ledger.persistence import SqlPersistence


def _draft() -> dict:
    return {"amount": "89.99", "category": "Shopping", "date": datetime(2026, 10, 15), "type": "expense"}


def test_data_survives_reopen(tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'ledger.db'}"
    first = SqlPersistence(url)
    first.initialize()
    tx_id = first.create_transaction(_draft())
    first.update_settings({"isPremium": True})
    first.close()

    second = SqlPersistence(url)
    second.initialize()
    assert second.get_transaction(tx_id).amount == Decimal("89.99")
    assert second.get_settings().isPremium is True
    second.close()


def test_settings_table_holds_a_single_row(tmp_path) -> None:
    ledger = SqlPersistence(f"sqlite:///{tmp_path / 'ledger.db'}")
    ledger.initialize()
    ledger.initialize()
    with ledger.engine.connect() as conn:
        assert conn.execute(text("select count(*) from settings")).scalar_one() == 1
    ledger.close()


def test_in_memory_url_shares_one_connection() -> None:
    ledger = SqlPersistence("sqlite://")
    ledger.initialize()
    tx_id = ledger.create_transaction(_draft())
    assert [tx.id for tx in ledger.list_transactions()] == [tx_id]
    ledger.close()


def test_unopenable_medium_raises_init_error(tmp_path) -> None:
    ledger = SqlPersistence(f"sqlite:///{tmp_path / 'missing' / 'nested' / 'ledger.db'}")
    with pytest.raises(StorageInitError):
        ledger.initialize()
    assert ledger.engine is None


def test_medium_failure_on_write_raises_write_error(tmp_path) -> None:
    ledger = SqlPersistence(f"sqlite:///{tmp_path / 'ledger.db'}")
    ledger.initialize()
    with ledger.engine.begin() as conn:
        conn.execute(text("drop table transactions"))
    with pytest.raises(StorageWriteError):
        ledger.create_transaction(_draft())
    ledger.close()


def test_close_is_idempotent_and_blocks_further_use(tmp_path) -> None:
    ledger = SqlPersistence(f"sqlite:///{tmp_path / 'ledger.db'}")
    ledger.initialize()
    ledger.close()
    ledger.close()
    with pytest.raises(StorageInitError):
        ledger.list_transactions()


def test_medium_failure_on_read_raises_read_error(tmp_path) -> None:
    ledger = SqlPersistence(f"sqlite:///{tmp_path / 'ledger.db'}")
    ledger.initialize()
    with ledger.engine.begin() as conn:
        conn.execute(text("drop table transactions"))
    with pytest.raises(StorageReadError):
        ledger.list_transactions()
    with pytest.raises(StorageReadError):
        ledger.count_transactions()
    ledger.close()
