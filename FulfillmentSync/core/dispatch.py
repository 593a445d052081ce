"""Batch write dispatch of dirty cells to the remote sheet.

Every dirty cell is addressed through the column mapping and the target's
row index before anything is sent. Cells that cannot be addressed are
reported as failures and never reach the transport. All addressable cells
go out in a single ``values.batchUpdate`` call.

A successful call only means the sheet *accepted* the cells; whether the
values actually landed is established by :mod:`.verify`.
"""
import dataclasses
import logging
import types
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

from .tracker import DirtyCell
from ..settings import lib
from ..status import status
from ..status.status import FailureKind


def idx_to_col(idx: int) -> str:
    """Convert zero-based column index to spreadsheet letter(s).

    Args:
        idx: The zero-based column index.

    Returns:
        The spreadsheet column letter(s) (e.g., A, B, AA).
    """
    letters = ''
    while idx >= 0:
        letters = chr((idx % 26) + ord('A')) + letters
        idx = idx // 26 - 1
    return letters


def col_to_idx(column: str) -> int:
    """Convert spreadsheet column letter(s) to a zero-based index.

    Raises:
        ValueError: If the column is not in letter notation.
    """
    if not lib.is_valid_column(column):
        raise ValueError(f'Invalid column letter: "{column}"')
    idx = 0
    for char in column:
        idx = idx * 26 + (ord(char) - ord('A') + 1)
    return idx - 1


def quote_worksheet(worksheet: str) -> str:
    """Quote a worksheet name for use in A1 notation when required."""
    if worksheet and all(c.isalnum() or c == '_' for c in worksheet):
        return worksheet
    return "'" + worksheet.replace("'", "''") + "'"


def a1_address(worksheet: str, column: str, row: int) -> str:
    """Return the A1 address of a single cell, e.g. ``Sheet1!N5``."""
    return f'{quote_worksheet(worksheet)}!{column}{row}'


class Transport(Protocol):
    """Batched read/write access to the remote store."""

    def batch_write(self, spreadsheet_id: str, data: List[Dict[str, Any]],
                    timeout: Optional[float] = None) -> List[bool]:
        """Write all ranges in one call; return one acknowledgement per entry of ``data``."""
        ...

    def batch_read(self, spreadsheet_id: str, ranges: List[str],
                   timeout: Optional[float] = None) -> List[Any]:
        """Read all ranges in one call; return one value (or None) per range."""
        ...


class ColumnMapping:
    """Static field to column table used to address writes.

    Fields without an entry are unsupported.
    """

    def __init__(self, columns: Mapping[str, str]) -> None:
        """
        Raises:
            ValueError: If a column is not in letter notation.
        """
        for field, column in columns.items():
            if not lib.is_valid_column(column):
                raise ValueError(f'Invalid column "{column}" for field "{field}".')
        self._columns: Dict[str, str] = dict(columns)

    @classmethod
    def from_settings(cls) -> 'ColumnMapping':
        """Build the mapping from the 'columns' settings section."""
        return cls(lib.settings.get_section('columns'))

    def column(self, field: str) -> Optional[str]:
        """Return the column letter of a field, or None if the field is unsupported."""
        return self._columns.get(field)

    def fields(self) -> List[str]:
        return list(self._columns)

    def __contains__(self, field: object) -> bool:
        return field in self._columns


@dataclasses.dataclass(frozen=True)
class SheetTarget:
    """Where a commit writes to: spreadsheet, worksheet and natural key to row index.

    Row numbers are 1-based sheet rows.
    """
    spreadsheet_id: str
    worksheet: str
    rows: Mapping[str, int] = dataclasses.field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, 'rows', types.MappingProxyType(dict(self.rows)))

    @classmethod
    def from_settings(cls, rows: Mapping[str, int]) -> 'SheetTarget':
        config = lib.settings.get_section('spreadsheet')
        return cls(config.get('id', ''), config.get('worksheet', ''), rows)

    def validate(self) -> None:
        """Check that the target is complete enough to address any cell.

        Raises:
            status.CommitTargetInvalidException: If the spreadsheet or worksheet is not set.
        """
        if not self.spreadsheet_id:
            raise status.CommitTargetInvalidException('Spreadsheet id is not set.')
        if not self.worksheet:
            raise status.CommitTargetInvalidException('Worksheet name is not set.')

    def row(self, natural_key: str) -> Optional[int]:
        return self.rows.get(natural_key)


@dataclasses.dataclass(frozen=True)
class AcceptedCell:
    """A dirty cell the remote store accepted for writing."""
    cell: DirtyCell
    address: str


@dataclasses.dataclass(frozen=True)
class CellFailure:
    """A dirty cell that could not be written or confirmed."""
    cell: DirtyCell
    kind: FailureKind
    reason: str

    @property
    def sent(self) -> bool:
        return self.kind.sent


@dataclasses.dataclass(frozen=True)
class DispatchResult:
    """Outcome of one batch write.

    Attributes:
        succeeded: Cells accepted by the remote store, in request order.
        failed: Cells that were not sent, or were sent and not accepted.
    """
    succeeded: Tuple[AcceptedCell, ...] = ()
    failed: Tuple[CellFailure, ...] = ()

    @property
    def not_sent(self) -> List[CellFailure]:
        return [f for f in self.failed if not f.sent]

    @property
    def send_errors(self) -> List[CellFailure]:
        return [f for f in self.failed if f.sent]


def cell_payload_value(value: Any) -> Any:
    """Return the value to send for a cell.

    ``None`` is sent as an empty string: the Sheets API skips ``null`` entries
    instead of clearing the cell.
    """
    return '' if value is None else value


class BatchWriteDispatcher:
    """Sends dirty cells as a single batched write and classifies the outcome."""

    def __init__(self, transport: Transport, mapping: ColumnMapping) -> None:
        self.transport = transport
        self.mapping = mapping

    def address(self, cell: DirtyCell, target: SheetTarget) -> Tuple[Optional[str], Optional[CellFailure]]:
        """Resolve the remote address of a cell.

        Returns:
            ``(address, None)`` on success, ``(None, failure)`` otherwise.
        """
        column = self.mapping.column(cell.field)
        if column is None:
            return None, CellFailure(
                cell, FailureKind.UnsupportedField,
                f'Field "{cell.field}" has no column mapping.'
            )
        row = target.row(cell.natural_key)
        if row is None:
            return None, CellFailure(
                cell, FailureKind.RowNotFound,
                f'No sheet row found for "{cell.natural_key}".'
            )
        return a1_address(target.worksheet, column, row), None

    def dispatch(self, cells: Iterable[DirtyCell], target: SheetTarget,
                 timeout: Optional[float] = None) -> DispatchResult:
        """Write the given cells in one batch.

        Args:
            cells: Snapshot of the dirty cells to write.
            target: The addressing context.
            timeout: Transport timeout in seconds; a timeout fails every sent cell.

        Returns:
            DispatchResult: Accepted and failed cells. Every input cell appears exactly once.

        Raises:
            status.CommitTargetInvalidException: If the target is incomplete. Nothing is sent.
        """
        target.validate()

        failed: List[CellFailure] = []
        to_send: List[Tuple[DirtyCell, str]] = []
        for cell in cells:
            address, failure = self.address(cell, target)
            if failure is not None:
                logging.warning(f'Not sending {cell.natural_key}.{cell.field}: {failure.reason}')
                failed.append(failure)
                continue
            to_send.append((cell, address))

        if not to_send:
            logging.info(f'No addressable cells to write; {len(failed)} cell(s) not sent.')
            return DispatchResult((), tuple(failed))

        data = self.build_payload(to_send)
        logging.info(f'Writing {len(data)} cell(s) to "{target.worksheet}" in one batch.')
        try:
            acks: Sequence[bool] = self.transport.batch_write(target.spreadsheet_id, data, timeout=timeout)
        except status.BaseStatusException as ex:
            logging.error(f'Batch write failed, {len(to_send)} cell(s) not written: {ex}')
            failed.extend(CellFailure(c, FailureKind.TransportError, str(ex)) for c, _ in to_send)
            return DispatchResult((), tuple(failed))
        except Exception as ex:
            logging.exception('Batch write failed due to an unexpected error.')
            failed.extend(
                CellFailure(c, FailureKind.TransportError, f'Batch write failed: {ex}') for c, _ in to_send
            )
            return DispatchResult((), tuple(failed))

        succeeded: List[AcceptedCell] = []
        for i, (cell, address) in enumerate(to_send):
            if i < len(acks) and acks[i]:
                succeeded.append(AcceptedCell(cell, address))
            else:
                logging.warning(f'Write of {address} was not acknowledged by the sheet.')
                failed.append(CellFailure(cell, FailureKind.Rejected, f'The sheet did not accept {address}.'))

        logging.info(f'Sheet accepted {len(succeeded)} of {len(to_send)} cell(s).')
        return DispatchResult(tuple(succeeded), tuple(failed))

    @staticmethod
    def build_payload(to_send: Iterable[Tuple[DirtyCell, str]]) -> List[Dict[str, Any]]:
        """Build the ``data`` entries of a ``values.batchUpdate`` request body."""
        return [
            {'range': address, 'values': [[cell_payload_value(cell.value)]]}
            for cell, address in to_send
        ]
