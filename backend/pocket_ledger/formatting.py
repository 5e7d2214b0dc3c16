"""Display-side helpers: currency symbols and category percentages.

These live at the boundary between the aggregation views and whatever renders
them; the aggregation engine itself never formats or divides.
"""

from decimal import ROUND_HALF_UP, Decimal

CURRENCIES: dict[str, dict[str, str]] = {
    "MYR": {"symbol": "RM", "name": "Malaysian Ringgit"},
    "USD": {"symbol": "$", "name": "US Dollar"},
    "EUR": {"symbol": "€", "name": "Euro"},
    "GBP": {"symbol": "£", "name": "British Pound"},
    "JPY": {"symbol": "¥", "name": "Japanese Yen"},
    "SGD": {"symbol": "S$", "name": "Singapore Dollar"},
    "THB": {"symbol": "฿", "name": "Thai Baht"},
    "IDR": {"symbol": "Rp", "name": "Indonesian Rupiah"},
}

_CENTS = Decimal("0.01")
_TENTHS = Decimal("0.1")


def get_currency_symbol(code: str) -> str:
    currency = CURRENCIES.get(code.upper())
    return currency["symbol"] if currency else code


def format_currency(amount: Decimal, code: str) -> str:
    value = Decimal(amount).quantize(_CENTS, rounding=ROUND_HALF_UP)
    currency = CURRENCIES.get(code.upper())
    if currency is None:
        return f"{value}"
    sign = "-" if value < 0 else ""
    return f"{sign}{currency['symbol']}{abs(value)}"


def category_share(amount: Decimal, total: Decimal) -> Decimal:
    """Percentage of ``total`` taken by ``amount``, one decimal place.

    A month without expenses has no meaningful share; 0.0 is returned instead
    of dividing by zero.
    """
    if not total:
        return Decimal("0.0")
    return (Decimal(amount) * 100 / Decimal(total)).quantize(_TENTHS, rounding=ROUND_HALF_UP)
