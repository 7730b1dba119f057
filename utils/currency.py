from utils.constants import CURRENCY_SYMBOLS, DEFAULT_CURRENCY


def currency_symbol(currency: str | None) -> str:
    """Symbol for a currency code, falling back to the code itself."""
    code = currency or DEFAULT_CURRENCY
    return CURRENCY_SYMBOLS.get(code, code)


def format_currency(amount: float, currency: str | None = None) -> str:
    """Format an amount with its currency symbol, e.g. '¥1,234.56'."""
    return f"{currency_symbol(currency)}{amount:,.2f}"
