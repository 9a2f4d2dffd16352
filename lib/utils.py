# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Common utilities used across the application:
# - ApplicationError: base class for errors raised by lib/ modules
# - slugify: URL-friendly identifiers (link_rewrite)
# - format_price: locale-style currency display strings
# - as_bool / utc_timestamp: small conversions used at the storage boundary
# =============================================================================

import re
import unicodedata
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any


# =============================================================================
# Base Error Class
# =============================================================================

class ApplicationError(Exception):
    """
    Base error class for application-specific errors.

    Attributes:
        code: Error code for categorization
        message: Human-readable error message
        details: Additional context for debugging

    Example:
        class MyServiceError(ApplicationError):
            def __init__(self, message: str, **kwargs):
                super().__init__(message, code="MY_SERVICE_ERROR", **kwargs)
    """

    def __init__(
        self,
        message: str,
        code: str = "APPLICATION_ERROR",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


# =============================================================================
# Text Utilities
# =============================================================================

def slugify(value: str) -> str:
    """
    Convert text to a URL-friendly slug.

    Example:
        slugify("Crème Brûlée T-Shirt")  # "creme-brulee-t-shirt"
    """
    value = unicodedata.normalize("NFKD", value or "")
    value = value.encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^a-zA-Z0-9]+", "-", value).strip("-").lower()
    return value


# =============================================================================
# Number / Currency Formatting
# =============================================================================

CURRENCY_SYMBOLS = {
    "EUR": "€",
    "USD": "$",
    "GBP": "£",
    "CHF": "CHF",
    "JPY": "¥",
}

# language -> (thousands separator, decimal separator, symbol goes first)
NUMBER_FORMATS = {
    "en": (",", ".", True),
    "fr": ("\u202f", ",", False),
    "de": (".", ",", False),
    "es": (".", ",", False),
    "it": (".", ",", False),
    "nl": (".", ",", True),
}


def format_price(amount: Any, currency: str, language: str) -> str:
    """
    Render an amount as a display string for a language.

    Args:
        amount: Numeric amount (int, float, Decimal or numeric string)
        currency: ISO 4217 code
        language: Language code selecting separators and symbol position

    Returns:
        Display string, e.g. "€1,234.50" (en) or "1 234,50 €" (fr)
    """
    thousands, decimal_sep, symbol_first = NUMBER_FORMATS.get(
        language, NUMBER_FORMATS["en"]
    )
    symbol = CURRENCY_SYMBOLS.get(currency.upper(), currency.upper())

    quantized = Decimal(str(amount or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if quantized < 0 else ""
    whole, fraction = f"{abs(quantized):.2f}".split(".")

    groups = []
    while len(whole) > 3:
        groups.insert(0, whole[-3:])
        whole = whole[:-3]
    groups.insert(0, whole)
    number = f"{thousands.join(groups)}{decimal_sep}{fraction}"

    if symbol_first:
        return f"{sign}{symbol}{number}"
    return f"{sign}{number} {symbol}"


# =============================================================================
# Conversions
# =============================================================================

def as_bool(value: Any) -> bool:
    """Normalize 0/1, "0"/"1", "true"/"false" and bools to a real bool."""
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def utc_timestamp() -> str:
    """Current UTC time as 'YYYY-MM-DD HH:MM:SS'."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
