"""Minor-unit amount helpers shared by the payment providers, and key obfuscation for logging.

Amounts are stored as integers in the smallest currency unit, which is what
Stripe expects on the wire. PayPal and buyer-facing text want a decimal
string in the standard unit instead. Most currencies have 100 minor units per
unit; a subset of "zero-decimal" currencies such as JPY have none, so the
integer amount *is* the unit amount.
"""

from decimal import Decimal

_VISIBLE_TAIL = 4

ZERO_DECIMAL_CURRENCIES = frozenset(
    "BIF CLP DJF GNF JPY KMF KRW MGA PYG RWF UGX VND VUV XAF XOF XPF".split(),
)


def to_major_units(amount: int, currency: str) -> Decimal:
    """Convert an integer minor-unit amount to a Decimal in the standard unit.

    ``5550`` USD becomes ``Decimal("55.50")``; ``5550`` JPY stays
    ``Decimal("5550")``.

    Args:
        amount: The amount in the smallest currency unit.
        currency: An ISO 4217 currency code (case-insensitive).

    Returns:
        The amount as a :class:`~decimal.Decimal` with the currency's precision.
    """
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return Decimal(amount)
    return (Decimal(amount) / 100).quantize(Decimal("0.01"))


def format_amount(amount: int, currency: str) -> str:
    """Format a minor-unit amount for buyers, e.g. ``"55.50 USD"``."""
    return f"{to_major_units(amount, currency)} {currency.upper()}"


def obfuscate_key(key: str) -> str:
    """Mask a secret for log output, keeping only its last four characters.

    ``"sk_live_abc123"`` becomes ``"****c123"``; anything shorter than the
    visible tail is masked completely.
    """
    tail = key[-_VISIBLE_TAIL:] if len(key) >= _VISIBLE_TAIL else ""
    return f"****{tail}"
