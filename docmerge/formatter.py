# docmerge/formatter.py

import re
from decimal import Decimal, InvalidOperation


# Plain decimal text: optional sign, digits, optional fraction. No exponent,
# no thousands separators.
_DECIMAL_RE = re.compile(r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)\s*$")


def format_value(raw: str) -> str:
    """
    Normalize a cell's text for substitution.

    Integer-valued decimals lose their fractional part ("5.0" -> "5").
    Anything else, fractional numbers included, is returned unchanged.
    """
    if not raw or not _DECIMAL_RE.match(raw):
        return raw

    try:
        number = Decimal(raw.strip())
    except InvalidOperation:
        return raw

    if number != number.to_integral_value():
        return raw

    return str(int(number))
