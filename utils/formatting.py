"""
Formatting utilities for report and rationale text.
"""

from typing import Optional


CURRENCY_SYMBOLS = {
    "ILS": "₪",
    "USD": "$",
    "EUR": "€",
}


def format_currency(amount: Optional[int], currency: str = "ILS", missing: str = "N/A") -> str:
    """
    Format a whole-shekel amount as currency.

    Args:
        amount: The amount in whole units (shekels, not agorot). None renders as `missing`.
        currency: Currency code (default ILS).
        missing: Placeholder for an unknown amount.

    Returns:
        Formatted currency string, e.g. "₪1,250,000".
    """
    if amount is None:
        return missing
    symbol = CURRENCY_SYMBOLS.get(currency, currency + " ")
    return f"{symbol}{amount:,}"


def format_range(low: int, high: int, currency: str = "ILS") -> str:
    """Format a value range as "low - high"."""
    return f"{format_currency(low, currency)} - {format_currency(high, currency)}"


def format_percent(fraction: float, decimals: int = 1) -> str:
    """
    Format a fraction in [0, 1] as a percentage (0.123 -> "12.3%").
    """
    return f"{fraction * 100:.{decimals}f}%"
