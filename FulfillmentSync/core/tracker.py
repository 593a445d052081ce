"""Dirty cell tracking against the baseline snapshot.

The tracker answers one question: which ``(natural key, field)`` slots hold a
value that differs from what was loaded. Every edit is compared against the
baseline value only, never against the previously edited value, so editing a
field back to what was loaded always removes it again.

The tracker performs no I/O.
"""
import dataclasses
import logging
from typing import Any, Dict, List, Optional, Tuple

from . import normalize
from .records import BaselineSnapshot


@dataclasses.dataclass(frozen=True)
class DirtyCell:
    """A single field of a single record whose pending value differs from baseline."""
    natural_key: str
    field: str
    value: Any

    @property
    def slot(self) -> Tuple[str, str]:
        return self.natural_key, self.field


class DiffTracker:
    """Map of ``(natural key, field)`` to pending value for one baseline."""

    def __init__(self, baseline: BaselineSnapshot) -> None:
        self._baseline = baseline
        self._cells: Dict[Tuple[str, str], Any] = {}
        self.revision: int = 0

    @property
    def baseline(self) -> BaselineSnapshot:
        return self._baseline

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, slot: object) -> bool:
        return slot in self._cells

    def _bump(self) -> None:
        self.revision += 1

    def _differs(self, natural_key: str, field: str, value: Any) -> bool:
        return not normalize.values_equal(field, self._baseline.value(natural_key, field), value)

    def record_edit(self, natural_key: str, field: str, new_value: Any) -> bool:
        """Commit an operator edit of one cell.

        Args:
            natural_key: The edited record.
            field: The edited editable field.
            new_value: The value as entered. Numeric fields accept numbers and
                numeric strings; blank input means "no value".

        Returns:
            bool: True if the slot is dirty after the edit.

        Raises:
            KeyError: If the natural key is not in the baseline.
            ValueError: If the field is not editable or a numeric value cannot be parsed.
        """
        if natural_key not in self._baseline:
            raise KeyError(f'No record with natural key "{natural_key}" in baseline.')

        value = normalize.normalize_field(field, new_value)
        slot = (natural_key, field)

        if not self._differs(natural_key, field, value):
            if slot in self._cells:
                del self._cells[slot]
                self._bump()
                logging.debug(f'Edit of {natural_key}.{field} reverted to baseline, cell is clean.')
            return False

        if slot not in self._cells or self._cells[slot] != value:
            self._cells[slot] = value
            self._bump()
            logging.debug(f'Cell {natural_key}.{field} is dirty: {value!r}.')
        return True

    def restore(self, natural_key: str, field: str, value: Any) -> bool:
        """Set the pending value of a slot without operator input.

        Used to put back the intended value of a cell whose write did not
        stick. A value equal to the baseline leaves the slot clean.

        Returns:
            bool: True if the slot is dirty afterwards.
        """
        return self.record_edit(natural_key, field, value)

    def get_dirty_cells(self) -> Tuple[DirtyCell, ...]:
        """Return a snapshot of all pending cells in the order they became dirty."""
        return tuple(DirtyCell(k, f, v) for (k, f), v in self._cells.items())

    def pending(self, natural_key: str, field: str, default: Any = None) -> Any:
        """Return the pending value of a slot, or ``default`` if it is clean."""
        return self._cells.get((natural_key, field), default)

    def is_dirty(self, natural_key: str, field: Optional[str] = None) -> bool:
        """Whether a slot, or any field of a record when ``field`` is omitted, is dirty."""
        if field is not None:
            return (natural_key, field) in self._cells
        return any(k == natural_key for k, _ in self._cells)

    def dirty_fields(self, natural_key: str) -> Dict[str, Any]:
        """Return the pending values of a record, keyed by field."""
        return {f: v for (k, f), v in self._cells.items() if k == natural_key}

    def dirty_keys(self) -> List[str]:
        """Return the natural keys with at least one dirty cell, without duplicates."""
        return list(dict.fromkeys(k for k, _ in self._cells))

    def clear(self, natural_key: str, field: str) -> None:
        """Remove a slot. Clearing a clean slot is a no-op."""
        slot = (natural_key, field)
        if slot in self._cells:
            del self._cells[slot]
            self._bump()

    def clear_all(self) -> None:
        """Remove every pending cell."""
        if self._cells:
            logging.debug(f'Clearing {len(self._cells)} dirty cell(s).')
        self._cells.clear()
        self._bump()
