"""
Money Representation

Money is held as integer cents (minor currency units). 1 unit = 100 cents,
so 50.00 is stored as 5000. No floating point is used anywhere in the ledger.

The canonical string form is "-?<units>.<two digits>", produced by
format_cents and accepted by parse_cents.
"""

import re

from ledger.models.errors import MoneyFormatError


Cents = int

# Cents is a signed 64-bit quantity
CENTS_MIN = -(2 ** 63)
CENTS_MAX = 2 ** 63 - 1

MONEY_PATTERN = re.compile(r"^-?\d+\.\d{2}$")


def format_cents(cents: Cents) -> str:
    """
    Format cents as a two-decimal string.

    Example: 5000 -> "50.00", -1234 -> "-12.34", -1 -> "-0.01"
    """
    sign = "-" if cents < 0 else ""
    units, remainder = divmod(abs(cents), 100)
    return f"{sign}{units}.{remainder:02d}"


def _parse_digits(part: str, value: str) -> int:
    # str.isdigit accepts unicode digits such as "²"; only ASCII is money.
    if not part or not (part.isascii() and part.isdigit()):
        raise MoneyFormatError(value)
    return int(part)


def parse_cents(value: str) -> Cents:
    """
    Parse a decimal string into cents.

    Rules:
    - Surrounding whitespace is ignored, a leading "-" negates
    - "100" -> 10000 (whole units)
    - "12.5" -> 1250 (one digit means tens of cents)
    - "12.34" -> 1234
    - "100.999" -> 10099 (extra digits are truncated, never rounded)
    - ".50" -> 50 (empty integer part is zero)

    Raises:
        MoneyFormatError: on empty input, non-digit content, more than one "."
            or a result outside the signed 64-bit range
    """
    text = value.strip()
    negative = text.startswith("-")
    if negative:
        text = text[1:]

    parts = text.split(".")
    if len(parts) == 1:
        cents = _parse_digits(parts[0], value) * 100
    elif len(parts) == 2:
        units_part, decimal_part = parts
        units = _parse_digits(units_part, value) if units_part else 0

        if not decimal_part:
            if not units_part:
                raise MoneyFormatError(value)
            decimal_cents = 0
        elif len(decimal_part) == 1:
            decimal_cents = _parse_digits(decimal_part, value) * 10
        else:
            # Validate every digit, then keep only the first two.
            _parse_digits(decimal_part, value)
            decimal_cents = int(decimal_part[:2])

        cents = units * 100 + decimal_cents
    else:
        raise MoneyFormatError(value, "more than one decimal point")

    cents = -cents if negative else cents
    if not CENTS_MIN <= cents <= CENTS_MAX:
        raise MoneyFormatError(value, "amount out of range")
    return cents
