"""Value normalization shared by the diff tracker and the verification pass.

Two values of a field are considered equal when their normalized forms are
equal:

- text fields: ``None`` and ``''`` both normalize to ``None``
- numeric fields: blank input normalizes to ``None``, numbers and numeric
  strings compare by value (``'5'``, ``'5.0'`` and ``5`` are equal)
- numeric strings of 10**16 or more are not taken as quantities: strict
  normalization rejects them, lenient normalization keeps the text

``0`` is a real quantity and never equals ``None``.
"""
import math
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from ..settings.lib import EDITABLE_FIELDS

NUMERIC = 'int'
TEXT = 'string'

# Largest decimal exponent a quantity may have
MAX_MAGNITUDE = 15


def field_kind(field: str) -> str:
    """Return the value kind of an editable field.

    Raises:
        ValueError: If the field is not editable.
    """
    try:
        return EDITABLE_FIELDS[field]
    except KeyError:
        raise ValueError(f'"{field}" is not an editable field.') from None


def _number(value: Any, strict: bool) -> Any:
    if isinstance(value, bool):
        if strict:
            raise ValueError(f'Expected a number, got {value!r}.')
        return str(value)

    if isinstance(value, int):
        return value

    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            if strict:
                raise ValueError(f'Expected a finite number, got {value!r}.')
            return str(value)
        return int(value) if value.is_integer() else value

    text = str(value).strip().replace(',', '')
    try:
        number = Decimal(text)
    except InvalidOperation:
        if strict:
            raise ValueError(f'Expected a number, got {value!r}.') from None
        return str(value).strip()
    if not number.is_finite():
        if strict:
            raise ValueError(f'Expected a finite number, got {value!r}.')
        return str(value).strip()
    if number.adjusted() > MAX_MAGNITUDE:
        if strict:
            raise ValueError(f'Number out of range: {value!r}.')
        return str(value).strip()
    if number == number.to_integral_value():
        return int(number)
    return float(number)


def _text(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def normalize(kind: str, value: Any, strict: bool = True) -> Optional[Any]:
    """Normalize a cell value for comparison.

    Args:
        kind: ``'int'`` for numeric fields, ``'string'`` for text fields.
        value: The raw value, as typed by the operator or read back from the sheet.
        strict: Raise on numeric fields that do not hold a number. Read-back
            values are normalized non-strictly so that garbage compares unequal
            instead of failing the verification.

    Returns:
        The normalized value, ``None`` for blank.

    Raises:
        ValueError: If ``strict`` and a numeric value cannot be parsed, or ``kind`` is unknown.
    """
    if value is None:
        return None

    if kind == TEXT:
        return None if value == '' else _text(value)

    if kind == NUMERIC:
        if isinstance(value, str) and not value.strip():
            return None
        return _number(value, strict)

    raise ValueError(f'Unknown field kind: {kind}')


def normalize_field(field: str, value: Any, strict: bool = True) -> Optional[Any]:
    """Normalize a value of an editable field."""
    return normalize(field_kind(field), value, strict=strict)


def values_equal(field: str, a: Any, b: Any) -> bool:
    """Compare two values of a field after normalization.

    Both sides are normalized non-strictly: the values come from the baseline,
    the tracker or the remote store and have already been accepted once.
    """
    return normalize_field(field, a, strict=False) == normalize_field(field, b, strict=False)
