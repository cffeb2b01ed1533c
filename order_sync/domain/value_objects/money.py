"""
Money value object for handling monetary amounts with currency.

Square reports money in the smallest denomination of the currency
(cents for USD), so conversion goes through the currency exponent.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

# ISO 4217 currencies without minor units
ZERO_DECIMAL_CURRENCIES = frozenset(
    {"BIF", "CLP", "DJF", "GNF", "ISK", "JPY", "KMF", "KRW", "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF"}
)
# ISO 4217 currencies with three minor units
THREE_DECIMAL_CURRENCIES = frozenset({"BHD", "IQD", "JOD", "KWD", "LYD", "OMR", "TND"})


def currency_exponent(currency: str) -> int:
    """Number of minor-unit digits for a currency code."""
    if currency in ZERO_DECIMAL_CURRENCIES:
        return 0
    if currency in THREE_DECIMAL_CURRENCIES:
        return 3
    return 2


@dataclass(frozen=True)
class Money:
    """
    Amount of a single currency, quantized to its minor units.

    Attributes:
        amount: The monetary amount as Decimal for precision
        currency: Currency code (e.g., "USD", "JPY")

    Example:
        >>> Money.from_minor_units(1999, "USD").amount
        Decimal('19.99')
    """

    amount: Decimal
    currency: str = "USD"

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, "amount", Decimal(str(self.amount)))

        if not self.currency or len(self.currency) != 3:
            raise ValueError(f"Invalid currency code: {self.currency}")

        object.__setattr__(self, "currency", self.currency.upper())

        quantum = Decimal(1).scaleb(-currency_exponent(self.currency))
        object.__setattr__(self, "amount", self.amount.quantize(quantum, rounding=ROUND_HALF_UP))

    def __str__(self) -> str:
        return f"{self.currency} {self.amount}"

    @property
    def minor_units(self) -> int:
        """Amount expressed in the smallest denomination."""
        return int(self.amount.scaleb(currency_exponent(self.currency)))

    @classmethod
    def from_minor_units(cls, amount: int, currency: str = "USD") -> "Money":
        """Create Money from Square's smallest-denomination integer."""
        return cls(amount=Decimal(int(amount)).scaleb(-currency_exponent(currency.upper())), currency=currency)
