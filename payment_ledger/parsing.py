"""Parsing of raw cell values into ledger types."""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from payment_ledger.exceptions import InvalidAmountError, InvalidDateError

_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%d/%m/%Y")
_CURRENCY_PREFIX_RE = re.compile(r"^(?:[A-Z]{3}\s*)?[$€£R]?\s*")
_NUMBER_RE = re.compile(r"^(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")


def parse_date(value: Any, field: str = "date") -> date:
    """Parse a calendar date.

    Accepts ``date`` and ``datetime`` objects (the time is dropped), ISO
    dates and date-times, ``YYYY/MM/DD`` and ``DD/MM/YYYY``.

    Raises
    ------
    InvalidDateError
        If the value is empty or in none of the accepted formats.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None:
        raise InvalidDateError("Date is missing", field=field)

    text = str(value).strip()
    if not text:
        raise InvalidDateError("Date is empty", field=field)

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass

    raise InvalidDateError(f"Invalid date format: {text!r}", field=field)


def parse_amount(value: Any, places: int = 2, field: str = "amount") -> Decimal:
    """Parse a signed, non-zero decimal amount.

    Parameters
    ----------
    value : Any
        ``Decimal``, ``int``, ``float`` or a string such as ``"1,500.00"``,
        ``"R 2000"`` or ``"(12.34)"``.
    places : int
        Maximum number of decimal places (the currency's minor unit).
    field : str
        Field name reported on failure.

    Raises
    ------
    InvalidAmountError
        If the value is not a finite non-zero decimal with at most
        ``places`` decimal places, or has too many digits to
        hold at that precision.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidAmountError(f"Invalid amount: {value!r}", field=field)

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    else:
        # str() keeps floats at their shortest repr, not their binary value
        amount = _parse_amount_text(str(value), field)

    if not amount.is_finite():
        raise InvalidAmountError(f"Amount is not finite: {value!r}", field=field)
    if amount == 0:
        raise InvalidAmountError("Amount must not be zero", field=field)

    exponent = amount.normalize().as_tuple().exponent
    if isinstance(exponent, int) and -exponent > places:
        raise InvalidAmountError(
            f"Amount {amount} has more than {places} decimal places", field=field
        )

    try:
        return amount.quantize(Decimal(1).scaleb(-places))
    except InvalidOperation as exc:
        raise InvalidAmountError(f"Amount is too large: {value!r}", field=field) from exc


def _parse_amount_text(text: str, field: str) -> Decimal:
    s = text.strip()
    if not s:
        raise InvalidAmountError("Amount is empty", field=field)

    negative = False
    if s.startswith("(") and s.endswith(")"):
        negative = True
        s = s[1:-1].strip()

    sign, s = _take_sign(s)
    s = _CURRENCY_PREFIX_RE.sub("", s, count=1)
    if sign is None:
        sign, s = _take_sign(s)
    if sign == "-":
        if negative:
            raise InvalidAmountError(f"Amount has two signs: {text!r}", field=field)
        negative = True

    s = s.replace(",", "").replace(" ", "")
    if not _NUMBER_RE.match(s):
        raise InvalidAmountError(f"Invalid amount: {text!r}", field=field)

    amount = Decimal(s)
    return -amount if negative else amount


def _take_sign(s: str) -> tuple[str | None, str]:
    if s[:1] in ("-", "+"):
        return s[0], s[1:].strip()
    return None, s
