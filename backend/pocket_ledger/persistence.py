from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Mapping, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from .config import settings
from .errors import NotFoundError, StorageInitError, StorageReadError, StorageWriteError, ValidationError
from .log import get_logger
from .schemas import AppSettings, AppSettingsUpdate, Transaction, TransactionCreate, TransactionUpdate
from .store import InMemoryStore, make_id

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_CENTS = Decimal("0.01")

SETTINGS_ROW_ID = 1

# model field -> column
_TRANSACTION_COLUMNS = {
    "amount": "amount",
    "category": "category",
    "description": "description",
    "date": "date",
    "type": "type",
}
_SETTINGS_COLUMNS = {
    "currency": "currency",
    "language": "language",
    "theme": "theme",
    "isPremium": "is_premium",
}


def _validate(model: type[ModelT], payload: ModelT | Mapping[str, Any]) -> ModelT:
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        details = [(".".join(str(p) for p in err.get("loc", ())) or "body", err.get("msg", "invalid value")) for err in exc.errors()]
        logger.warning("Rejected %s: %s", model.__name__, details)
        raise ValidationError(f"invalid {model.__name__}", details) from exc


def _naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is not None:
        return moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def _wall_clock(moment: datetime) -> datetime:
    # event dates keep the caller's local fields; the offset is dropped, not applied
    return moment.replace(tzinfo=None)


def _to_db_ts(moment: datetime) -> str:
    return _naive_utc(moment).isoformat(timespec="microseconds")


def _from_db_ts(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _check_paging(limit: int | None, offset: int | None) -> None:
    if limit is not None and limit < 0:
        raise ValidationError("limit must not be negative", [("limit", "must be >= 0")])
    if offset is not None and offset < 0:
        raise ValidationError("offset must not be negative", [("offset", "must be >= 0")])


def _check_range(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    start, end = _wall_clock(start), _wall_clock(end)
    if start > end:
        raise ValidationError("start must not be after end", [("start", "must be <= end")])
    return start, end


def _page(rows: list[Any], limit: int | None, offset: int | None) -> list[Any]:
    begin = offset or 0
    if limit is None:
        return rows[begin:]
    return rows[begin : begin + limit]


def _transaction_updates(payload: TransactionUpdate) -> dict[str, Any]:
    updates = payload.model_dump(exclude_none=True)
    if "date" in updates:
        updates["date"] = _wall_clock(updates["date"])
    return updates


def _row_to_transaction(row: Mapping[str, Any]) -> Transaction:
    return Transaction(
        id=row["id"],
        amount=Decimal(str(row["amount"])).quantize(_CENTS),
        category=row["category"],
        description=row.get("description") or "",
        date=_from_db_ts(row["date"]),
        type=row["type"],
        createdAt=_from_db_ts(row["created_at"]),
        updatedAt=_from_db_ts(row["updated_at"]),
    )


class Persistence:
    def initialize(self) -> None:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError

    def create_transaction(self, draft: TransactionCreate | Mapping[str, Any]) -> str:
        raise NotImplementedError

    def get_transaction(self, transaction_id: str) -> Transaction:
        raise NotImplementedError

    def update_transaction(self, transaction_id: str, payload: TransactionUpdate | Mapping[str, Any]) -> Transaction:
        raise NotImplementedError

    def delete_transaction(self, transaction_id: str) -> None:
        raise NotImplementedError

    def list_transactions(self, limit: int | None = None, offset: int | None = None) -> list[Transaction]:
        raise NotImplementedError

    def list_transactions_in_range(self, start: datetime, end: datetime) -> list[Transaction]:
        raise NotImplementedError

    def count_transactions(self) -> int:
        raise NotImplementedError

    def get_settings(self) -> AppSettings:
        raise NotImplementedError

    def update_settings(self, payload: AppSettingsUpdate | Mapping[str, Any]) -> AppSettings:
        raise NotImplementedError


class InMemoryPersistence(Persistence):
    def __init__(self, store: InMemoryStore | None = None, default_currency: str | None = None) -> None:
        self.store = store or InMemoryStore()
        self.default_currency = default_currency or settings.default_currency

    def _require_ready(self) -> None:
        if self.store.settings is None:
            raise StorageInitError("ledger store is not initialized")

    def initialize(self) -> None:
        if self.store.settings is None:
            self.store.settings = AppSettings(currency=self.default_currency).model_dump()
            logger.info("Seeded default settings (currency=%s)", self.default_currency)

    def close(self) -> None:
        logger.debug("In-memory ledger closed with %d transactions", len(self.store.transactions))

    def create_transaction(self, draft: TransactionCreate | Mapping[str, Any]) -> str:
        self._require_ready()
        payload = _validate(TransactionCreate, draft)
        now = self.store.now()
        entity_id = self.store.make_id()
        row = {
            "id": entity_id,
            "amount": payload.amount,
            "category": payload.category,
            "description": payload.description or "",
            "date": _wall_clock(payload.date),
            "type": payload.type,
            "created_at": now,
            "updated_at": now,
        }
        self.store.transactions[entity_id] = row
        logger.info("Created %s transaction %s (%s)", payload.type, entity_id, payload.category)
        return entity_id

    def get_transaction(self, transaction_id: str) -> Transaction:
        self._require_ready()
        row = self.store.transactions.get(transaction_id)
        if row is None:
            raise NotFoundError(f"transaction not found: {transaction_id}")
        return _row_to_transaction(row)

    def update_transaction(self, transaction_id: str, payload: TransactionUpdate | Mapping[str, Any]) -> Transaction:
        self._require_ready()
        updates = _transaction_updates(_validate(TransactionUpdate, payload))
        original = self.store.transactions.get(transaction_id)
        if original is None:
            logger.warning("Update of missing transaction %s", transaction_id)
            raise NotFoundError(f"transaction not found: {transaction_id}")
        row = original.copy()
        for field, column in _TRANSACTION_COLUMNS.items():
            if field in updates:
                row[column] = updates[field]
        row["updated_at"] = max(self.store.now(), row["created_at"])
        self.store.transactions[transaction_id] = row
        logger.info("Updated transaction %s fields=%s", transaction_id, sorted(updates))
        return _row_to_transaction(row)

    def delete_transaction(self, transaction_id: str) -> None:
        self._require_ready()
        if self.store.transactions.pop(transaction_id, None) is None:
            logger.debug("Delete of missing transaction %s ignored", transaction_id)
            return
        logger.info("Deleted transaction %s", transaction_id)

    def _sorted_rows(self) -> list[dict]:
        return sorted(self.store.transactions.values(), key=lambda r: (r["created_at"], r["id"]), reverse=True)

    def list_transactions(self, limit: int | None = None, offset: int | None = None) -> list[Transaction]:
        self._require_ready()
        _check_paging(limit, offset)
        return [_row_to_transaction(r) for r in _page(self._sorted_rows(), limit, offset)]

    def list_transactions_in_range(self, start: datetime, end: datetime) -> list[Transaction]:
        self._require_ready()
        start, end = _check_range(start, end)
        return [_row_to_transaction(r) for r in self._sorted_rows() if start <= r["date"] <= end]

    def count_transactions(self) -> int:
        self._require_ready()
        return len(self.store.transactions)

    def get_settings(self) -> AppSettings:
        if self.store.settings is None:
            raise NotFoundError("settings not found: store was never initialized")
        return AppSettings(**self.store.settings)

    def update_settings(self, payload: AppSettingsUpdate | Mapping[str, Any]) -> AppSettings:
        current = self.get_settings()
        updates = _validate(AppSettingsUpdate, payload).model_dump(exclude_none=True)
        if not updates:
            return current
        self.store.settings.update(updates)
        logger.info("Updated settings fields=%s", sorted(updates))
        return AppSettings(**self.store.settings)


_CREATE_TRANSACTIONS = """
create table if not exists transactions (
  id varchar(64) primary key,
  amount numeric(14, 2) not null check (amount > 0),
  category varchar(100) not null,
  description text not null default '',
  date varchar(32) not null,
  type varchar(16) not null check (type in ('income', 'expense')),
  created_at varchar(32) not null,
  updated_at varchar(32) not null
)
"""

_CREATE_SETTINGS = """
create table if not exists settings (
  id integer primary key check (id = 1),
  currency varchar(8) not null,
  language varchar(16) not null default 'en',
  theme varchar(16) not null default 'system' check (theme in ('light', 'dark', 'system')),
  is_premium boolean not null default false
)
"""

_TRANSACTION_SELECT = "select id, amount, category, description, date, type, created_at, updated_at from transactions"


class SqlPersistence(Persistence):
    def __init__(self, database_url: str, default_currency: str | None = None) -> None:
        self.database_url = database_url
        self.default_currency = default_currency or settings.default_currency
        self.engine: Engine | None = None

    def _create_engine(self) -> Engine:
        kwargs: dict[str, Any] = {"future": True, "pool_pre_ping": True}
        if self.database_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if self.database_url.rstrip("/").endswith(("sqlite:", ":memory:")) or "mode=memory" in self.database_url:
                kwargs["poolclass"] = StaticPool
        return create_engine(self.database_url, **kwargs)

    def _require_engine(self) -> Engine:
        if self.engine is None:
            raise StorageInitError("ledger store is not initialized")
        return self.engine

    def _run(self, sql: str, params: dict[str, Any] | None = None, *, write: bool = False) -> list[dict[str, Any]]:
        engine = self._require_engine()
        try:
            with engine.begin() as conn:
                result = conn.execute(text(sql), params or {})
                if result.returns_rows:
                    return [dict(row._mapping) for row in result.fetchall()]
                return [{"rowcount": result.rowcount}]
        except SQLAlchemyError as exc:
            logger.exception("Ledger %s failed", "write" if write else "read")
            error_cls = StorageWriteError if write else StorageReadError
            raise error_cls(f"storage error: {exc.__class__.__name__}") from exc

    def initialize(self) -> None:
        try:
            if self.engine is None:
                self.engine = self._create_engine()
            with self.engine.begin() as conn:
                conn.execute(text(_CREATE_TRANSACTIONS))
                conn.execute(text("create index if not exists idx_transactions_created on transactions(created_at desc, id desc)"))
                conn.execute(text("create index if not exists idx_transactions_date on transactions(date)"))
                conn.execute(text(_CREATE_SETTINGS))
                existing = conn.execute(text("select 1 from settings where id = :id"), {"id": SETTINGS_ROW_ID}).first()
                if existing is None:
                    defaults = AppSettings(currency=self.default_currency)
                    conn.execute(
                        text(
                            """
                            insert into settings (id, currency, language, theme, is_premium)
                            values (:id, :currency, :language, :theme, :is_premium)
                            """
                        ),
                        {
                            "id": SETTINGS_ROW_ID,
                            "currency": defaults.currency,
                            "language": defaults.language,
                            "theme": defaults.theme,
                            "is_premium": defaults.isPremium,
                        },
                    )
                    logger.info("Seeded default settings (currency=%s)", defaults.currency)
        except SQLAlchemyError as exc:
            logger.exception("Cannot initialize ledger storage at %s", self.database_url)
            if self.engine is not None:
                self.engine.dispose()
                self.engine = None
            raise StorageInitError(f"cannot initialize storage: {exc.__class__.__name__}") from exc

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
            logger.info("Ledger storage closed")

    def create_transaction(self, draft: TransactionCreate | Mapping[str, Any]) -> str:
        self._require_engine()
        payload = _validate(TransactionCreate, draft)
        now = _to_db_ts(datetime.now(timezone.utc))
        entity_id = make_id()
        self._run(
            """
            insert into transactions (id, amount, category, description, date, type, created_at, updated_at)
            values (:id, :amount, :category, :description, :date, :type, :created_at, :updated_at)
            """,
            {
                "id": entity_id,
                "amount": str(payload.amount),
                "category": payload.category,
                "description": payload.description or "",
                "date": _to_db_ts(_wall_clock(payload.date)),
                "type": payload.type,
                "created_at": now,
                "updated_at": now,
            },
            write=True,
        )
        logger.info("Created %s transaction %s (%s)", payload.type, entity_id, payload.category)
        return entity_id

    def get_transaction(self, transaction_id: str) -> Transaction:
        rows = self._run(f"{_TRANSACTION_SELECT} where id = :id limit 1", {"id": transaction_id})
        if not rows:
            raise NotFoundError(f"transaction not found: {transaction_id}")
        return _row_to_transaction(rows[0])

    def update_transaction(self, transaction_id: str, payload: TransactionUpdate | Mapping[str, Any]) -> Transaction:
        self._require_engine()
        updates = _transaction_updates(_validate(TransactionUpdate, payload))
        assignments = []
        params: dict[str, Any] = {"id": transaction_id}
        for field, column in _TRANSACTION_COLUMNS.items():
            if field not in updates:
                continue
            value = updates[field]
            if field == "amount":
                value = str(value)
            elif field == "date":
                value = _to_db_ts(value)
            assignments.append(f"{column} = :{column}")
            params[column] = value
        # keep updated_at >= created_at
        assignments.append("updated_at = case when created_at > :updated_at then created_at else :updated_at end")
        params["updated_at"] = _to_db_ts(datetime.now(timezone.utc))
        result = self._run(f"update transactions set {', '.join(assignments)} where id = :id", params, write=True)
        if not result or result[0]["rowcount"] == 0:
            logger.warning("Update of missing transaction %s", transaction_id)
            raise NotFoundError(f"transaction not found: {transaction_id}")
        logger.info("Updated transaction %s fields=%s", transaction_id, sorted(updates))
        return self.get_transaction(transaction_id)

    def delete_transaction(self, transaction_id: str) -> None:
        result = self._run("delete from transactions where id = :id", {"id": transaction_id}, write=True)
        if result and result[0]["rowcount"]:
            logger.info("Deleted transaction %s", transaction_id)
        else:
            logger.debug("Delete of missing transaction %s ignored", transaction_id)

    def list_transactions(self, limit: int | None = None, offset: int | None = None) -> list[Transaction]:
        _check_paging(limit, offset)
        sql = f"{_TRANSACTION_SELECT} order by created_at desc, id desc"
        if limit is None:
            return [_row_to_transaction(r) for r in _page(self._run(sql), None, offset)]
        rows = self._run(f"{sql} limit :limit offset :offset", {"limit": limit, "offset": offset or 0})
        return [_row_to_transaction(r) for r in rows]

    def list_transactions_in_range(self, start: datetime, end: datetime) -> list[Transaction]:
        start, end = _check_range(start, end)
        rows = self._run(
            f"{_TRANSACTION_SELECT} where date >= :start and date <= :end order by created_at desc, id desc",
            {"start": _to_db_ts(start), "end": _to_db_ts(end)},
        )
        return [_row_to_transaction(r) for r in rows]

    def count_transactions(self) -> int:
        rows = self._run("select count(*) as total from transactions")
        return int(rows[0]["total"]) if rows else 0

    def get_settings(self) -> AppSettings:
        if self.engine is None:
            raise NotFoundError("settings not found: store was never initialized")
        rows = self._run(
            "select currency, language, theme, is_premium from settings where id = :id",
            {"id": SETTINGS_ROW_ID},
        )
        if not rows:
            raise NotFoundError("settings not found")
        row = rows[0]
        return AppSettings(
            currency=row["currency"],
            language=row["language"],
            theme=row["theme"],
            isPremium=bool(row["is_premium"]),
        )

    def update_settings(self, payload: AppSettingsUpdate | Mapping[str, Any]) -> AppSettings:
        current = self.get_settings()
        updates = _validate(AppSettingsUpdate, payload).model_dump(exclude_none=True)
        if not updates:
            return current
        assignments = []
        params: dict[str, Any] = {"id": SETTINGS_ROW_ID}
        for field, column in _SETTINGS_COLUMNS.items():
            if field in updates:
                assignments.append(f"{column} = :{column}")
                params[column] = updates[field]
        self._run(f"update settings set {', '.join(assignments)} where id = :id", params, write=True)
        logger.info("Updated settings fields=%s", sorted(updates))
        return AppSettings(**{**current.model_dump(), **updates})


def get_persistence() -> Persistence:
    if settings.storage_backend in {"sql", "sqlite"}:
        return SqlPersistence(settings.database_url)
    return InMemoryPersistence()
