from dataclasses import dataclass

from .schemas import TransactionType


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    icon: str
    color: str
    type: TransactionType


EXPENSE_CATEGORIES: tuple[Category, ...] = (
    Category("1", "Food & Dining", "restaurant", "#FF6B6B", TransactionType.expense),
    Category("2", "Transportation", "car", "#4ECDC4", TransactionType.expense),
    Category("3", "Shopping", "shopping-bag", "#45B7D1", TransactionType.expense),
    Category("4", "Entertainment", "movie", "#96CEB4", TransactionType.expense),
    Category("5", "Bills & Utilities", "receipt", "#FFEAA7", TransactionType.expense),
    Category("6", "Healthcare", "medical", "#DDA0DD", TransactionType.expense),
    Category("7", "Education", "school", "#98D8C8", TransactionType.expense),
    Category("8", "Others", "ellipsis-horizontal", "#F7DC6F", TransactionType.expense),
)

INCOME_CATEGORIES: tuple[Category, ...] = (
    Category("9", "Salary", "card", "#6BCF7F", TransactionType.income),
    Category("10", "Business", "business", "#4D96FF", TransactionType.income),
    Category("11", "Investment", "trending-up", "#9B59B6", TransactionType.income),
    Category("12", "Gift", "gift", "#F39C12", TransactionType.income),
    Category("13", "Others", "add-circle", "#1ABC9C", TransactionType.income),
)

ALL_CATEGORIES: tuple[Category, ...] = EXPENSE_CATEGORIES + INCOME_CATEGORIES

DEFAULT_COLOR = "#8E8E93"


def find_category(name: str, type: TransactionType | str | None = None) -> Category | None:
    for category in ALL_CATEGORIES:
        if category.name == name and (type is None or category.type == type):
            return category
    return None


def category_color(name: str, fallback: str = DEFAULT_COLOR) -> str:
    category = find_category(name)
    return category.color if category else fallback
