"""PriceQuote: Pyth fixed-point price representation.

Pyth publishes prices as a signed integer mantissa and a base-10 exponent.
Display values are computed with Decimal so exponents down to -20 and 64-bit
mantissas convert without rounding.

.. code-block:: python

    >>> to_display_value(12345, -2)
    Decimal('123.45')
    >>> format_price(to_display_value("123450", -2))
    '1234.50'
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal


def to_display_value(mantissa: int | str, exponent: int) -> Decimal:
    """Compute ``mantissa * 10**exponent`` exactly.

    :param mantissa: Integer mantissa, or its decimal string encoding.
    :param exponent: Base-10 exponent.
    :returns: Exact display value.
    :raises ValueError: If mantissa is not an integer.
    """
    try:
        value = Decimal(int(mantissa))
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid price mantissa: {mantissa!r}") from e
    return value.scaleb(int(exponent))


def format_price(value: Decimal | float, decimals: int = 2) -> str:
    """Format a display value with a fixed number of decimals.

    :param value: Display value.
    :param decimals: Number of digits after the decimal point.
    :returns: Formatted string, e.g. "1234.50".
    """
    quantum = Decimal(1).scaleb(-decimals)
    return str(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_EVEN))


@dataclass(frozen=True)
class PriceQuote:
    """A price quote from Hermes or from the on-chain contract.

    :ivar price: Signed mantissa, string-encoded.
    :ivar expo: Base-10 exponent.
    :ivar conf: Confidence interval mantissa, string-encoded.
    :ivar publish_time: Publish time in Unix seconds.
    """

    price: str
    expo: int
    conf: str
    publish_time: int

    @property
    def display_value(self) -> Decimal:
        """Price as an exact decimal."""
        return to_display_value(self.price, self.expo)

    @property
    def display_confidence(self) -> Decimal:
        """Confidence interval as an exact decimal."""
        return to_display_value(self.conf, self.expo)

    @classmethod
    def from_hermes(cls, data: dict) -> PriceQuote:
        """Build a quote from a Hermes ``parsed[].price`` object.

        :param data: Dict with price, expo, conf and publish_time keys.
        :returns: New PriceQuote.
        :raises KeyError: If a field is missing.
        :raises ValueError: If a field cannot be converted.
        """
        return cls(
            price=str(int(data["price"])),
            expo=int(data["expo"]),
            conf=str(int(data["conf"])),
            publish_time=int(data["publish_time"]),
        )

    @classmethod
    def from_contract(cls, result: list | tuple) -> PriceQuote:
        """Build a quote from a ``getPriceNoOlderThan`` return value.

        :param result: (price, conf, expo, publishTime) as returned by web3.
        :returns: New PriceQuote.
        """
        price, conf, expo, publish_time = result
        return cls(
            price=str(int(price)),
            expo=int(expo),
            conf=str(int(conf)),
            publish_time=int(publish_time),
        )
