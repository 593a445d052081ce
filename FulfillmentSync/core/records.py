"""Order line records and the immutable baseline snapshot.

A :class:`Record` is one order line as loaded from the worksheet. Records are
identified by their natural key, the order number and barcode joined by a
separator that appears in neither part.

The :class:`BaselineSnapshot` holds every record of one load. It is the only
reference the diff tracker compares edits against and is never mutated; a
reload replaces it as a whole.
"""
import dataclasses
import logging
import types
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from ..settings.lib import EDITABLE_FIELDS, READONLY_FIELDS

DEFAULT_SEPARATOR: str = '|'


def make_natural_key(order_number: Any, barcode: Any, separator: str = DEFAULT_SEPARATOR) -> str:
    """Build the natural key of an order line.

    Args:
        order_number: The order number. Surrounding whitespace is ignored.
        barcode: The product barcode. Surrounding whitespace is ignored.
        separator: String joining the two parts.

    Returns:
        str: ``'<order_number><separator><barcode>'``.

    Raises:
        ValueError: If a part is blank or contains the separator.
    """
    if not separator:
        raise ValueError('Natural key separator must not be empty.')

    parts = []
    for name, value in (('order number', order_number), ('barcode', barcode)):
        text = '' if value is None else str(value).strip()
        if not text:
            raise ValueError(f'Cannot build a natural key from a blank {name}.')
        if separator in text:
            raise ValueError(f'The {name} "{text}" contains the key separator "{separator}".')
        parts.append(text)
    return separator.join(parts)


@dataclasses.dataclass(frozen=True)
class Record:
    """One order line.

    Only the editable fields are ever written back; the remaining fields are
    context for the operator.
    """
    order_number: str
    barcode: str
    import_qty: Optional[int] = None
    cancel_qty: Optional[int] = None
    export_qty: Optional[int] = None
    note: Optional[str] = None

    product_name: Optional[str] = None
    option_name: Optional[str] = None
    img_url: Optional[str] = None
    order_qty: Optional[int] = None
    delivery_status: Optional[str] = None

    separator: str = dataclasses.field(default=DEFAULT_SEPARATOR, repr=False, compare=False)

    @property
    def natural_key(self) -> str:
        return make_natural_key(self.order_number, self.barcode, self.separator)

    def value(self, field: str) -> Any:
        """Return the value of an editable or read-only field.

        Raises:
            ValueError: If the field is unknown.
        """
        if field not in EDITABLE_FIELDS and field not in READONLY_FIELDS:
            raise ValueError(f'Unknown record field "{field}".')
        return getattr(self, field)


class BaselineSnapshot:
    """Read-only view of the records of one load, keyed by natural key.

    Iteration yields natural keys in load order.
    """

    def __init__(self, records: Iterable[Record]) -> None:
        """
        Args:
            records: The loaded records.

        Raises:
            ValueError: If two records share a natural key.
        """
        by_key: Dict[str, Record] = {}
        for record in records:
            key = record.natural_key
            if key in by_key:
                raise ValueError(f'Duplicate natural key "{key}" in baseline.')
            by_key[key] = record

        self._records: Mapping[str, Record] = types.MappingProxyType(by_key)
        logging.debug(f'Baseline snapshot created with {len(by_key)} record(s).')

    def __contains__(self, natural_key: object) -> bool:
        return natural_key in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def keys(self) -> List[str]:
        return list(self._records)

    def records(self) -> List[Record]:
        return list(self._records.values())

    def get(self, natural_key: str) -> Record:
        """Return the baseline record for a natural key.

        Raises:
            KeyError: If the key was not part of the load.
        """
        try:
            return self._records[natural_key]
        except KeyError:
            raise KeyError(f'No record with natural key "{natural_key}" in baseline.') from None

    def value(self, natural_key: str, field: str) -> Any:
        """Return the baseline value of a field."""
        return self.get(natural_key).value(field)
