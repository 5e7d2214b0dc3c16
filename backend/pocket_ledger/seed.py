from datetime import datetime, timedelta
from decimal import Decimal

from .log import get_logger
from .persistence import Persistence
from .schemas import TransactionCreate

logger = get_logger(__name__)

# (amount, category, description, days ago, type)
SAMPLE_TRANSACTIONS = (
    (Decimal("25.50"), "Food & Dining", "Lunch at cafe", 1, "expense"),
    (Decimal("500.00"), "Transportation", "Monthly bus pass", 2, "expense"),
    (Decimal("3000.00"), "Salary", "Monthly salary", 3, "income"),
    (Decimal("89.99"), "Shopping", "New headphones", 4, "expense"),
    (Decimal("45.00"), "Entertainment", "Movie tickets", 5, "expense"),
    (Decimal("200.00"), "Bills & Utilities", "Electricity bill", 6, "expense"),
)


def sample_drafts(now: datetime) -> list[TransactionCreate]:
    return [
        TransactionCreate(amount=amount, category=category, description=description, date=now - timedelta(days=days), type=kind)
        for amount, category, description, days, kind in SAMPLE_TRANSACTIONS
    ]


def seed_sample_data(persistence: Persistence, now: datetime | None = None) -> int:
    """Insert the sample transactions into an empty ledger. Returns how many were added."""
    if persistence.list_transactions(limit=1):
        logger.info("Ledger already has transactions; skipping sample data")
        return 0
    drafts = sample_drafts(now or datetime.now())
    for draft in drafts:
        persistence.create_transaction(draft)
    logger.info("Inserted %d sample transactions", len(drafts))
    return len(drafts)
