"""Ready-set aggregation of dirty cells for operator review.

A :class:`ReadyItem` groups the dirty cells of one record, merges their
pending values onto the baseline record for display and derives the
quantity delta: how many units arrived on top of what was already booked.

The operator may hand-adjust the delta of an item (for example to print
fewer labels than units received). Such overrides belong to the aggregator
only. They are never fed back into the diff tracker, are not tracked for
reversion and are discarded when the baseline is reloaded. An override
outlives the dirty cells of its record until it is consumed or discarded, so
reverting an edit never silently drops a quantity the operator typed.
"""
import dataclasses
import logging
from typing import Any, Dict, List, Optional

from .records import BaselineSnapshot, Record
from .tracker import DiffTracker


def compute_delta_qty(baseline_import_qty: Optional[int], pending_import_qty: Optional[int]) -> int:
    """Return the non-negative increase of the import quantity.

    Missing quantities count as zero; a decrease yields zero.
    """
    original = baseline_import_qty or 0
    new = pending_import_qty or 0
    return max(0, new - original)


@dataclasses.dataclass(frozen=True)
class ReadyItem:
    """Display-ready aggregate of the dirty cells of one record.

    Attributes:
        natural_key: The record's natural key.
        record: The baseline record.
        modified_fields: Pending values of the dirty fields.
        delta_qty: Derived import quantity increase.
        delta_override: Operator adjusted delta, if any.
    """
    natural_key: str
    record: Record
    modified_fields: Dict[str, Any]
    delta_qty: int
    delta_override: Optional[int] = None

    @property
    def override_only(self) -> bool:
        """True when the item is kept alive only by an unconsumed override."""
        return not self.modified_fields

    @property
    def effective_delta_qty(self) -> int:
        return self.delta_qty if self.delta_override is None else self.delta_override

    @property
    def original_import_qty(self) -> Optional[int]:
        return self.record.import_qty

    def display_value(self, field: str) -> Any:
        """Return the pending value of a field if modified, else its baseline value."""
        if field in self.modified_fields:
            return self.modified_fields[field]
        return self.record.value(field)


class ReadySetAggregator:
    """Builds the ready set from a diff tracker and owns the delta overrides."""

    def __init__(self) -> None:
        self._items: Dict[str, ReadyItem] = {}
        self._overrides: Dict[str, int] = {}

    def rebuild(self, baseline: BaselineSnapshot, tracker: DiffTracker) -> List[ReadyItem]:
        """Regenerate every ready item from the tracker's current contents.

        Items are ordered by the baseline load order.

        Returns:
            list[ReadyItem]: The new ready set.
        """
        dirty_keys = set(tracker.dirty_keys())
        items: Dict[str, ReadyItem] = {}

        for key in baseline:
            if key not in dirty_keys and key not in self._overrides:
                continue

            record = baseline.get(key)
            modified = tracker.dirty_fields(key)
            if 'import_qty' in modified:
                delta = compute_delta_qty(record.import_qty, modified['import_qty'])
            else:
                delta = 0

            items[key] = ReadyItem(
                natural_key=key,
                record=record,
                modified_fields=modified,
                delta_qty=delta,
                delta_override=self._overrides.get(key),
            )

        removed = set(self._items) - set(items)
        if removed:
            logging.debug(f'Removed {len(removed)} ready item(s) with no remaining changes.')
        self._items = items
        return self.items()

    def items(self) -> List[ReadyItem]:
        return list(self._items.values())

    def get(self, natural_key: str) -> Optional[ReadyItem]:
        return self._items.get(natural_key)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, natural_key: object) -> bool:
        return natural_key in self._items

    def set_delta_override(self, natural_key: str, qty: int) -> ReadyItem:
        """Hand-adjust the delta quantity of a ready item.

        Args:
            natural_key: Key of an existing ready item.
            qty: The adjusted, non-negative quantity.

        Returns:
            ReadyItem: The updated item.

        Raises:
            KeyError: If there is no ready item for the key.
            ValueError: If qty is not a non-negative integer.
        """
        if natural_key not in self._items:
            raise KeyError(f'No ready item for natural key "{natural_key}".')
        if isinstance(qty, bool) or not isinstance(qty, int) or qty < 0:
            raise ValueError(f'Delta override must be a non-negative integer, got {qty!r}.')

        self._overrides[natural_key] = qty
        item = dataclasses.replace(self._items[natural_key], delta_override=qty)
        self._items[natural_key] = item
        logging.debug(f'Delta of {natural_key} overridden to {qty}.')
        return item

    def override(self, natural_key: str) -> Optional[int]:
        return self._overrides.get(natural_key)

    def consume_override(self, natural_key: str) -> Optional[int]:
        """Hand over and forget the override of a record.

        An item kept alive only by the override disappears.

        Returns:
            The override, or None if there was none.
        """
        qty = self._overrides.pop(natural_key, None)
        item = self._items.get(natural_key)
        if item is not None:
            if item.override_only:
                del self._items[natural_key]
            else:
                self._items[natural_key] = dataclasses.replace(item, delta_override=None)
        return qty

    def discard_override(self, natural_key: str) -> None:
        """Forget the override of a record without handing it over."""
        self.consume_override(natural_key)

    def clear(self) -> None:
        """Drop every ready item and override."""
        self._items.clear()
        self._overrides.clear()
