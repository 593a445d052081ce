"""Worksheet loading.

Reads the order worksheet in one batched call into a pandas DataFrame
indexed by sheet row number, then turns its rows into :class:`Record`
objects and the natural key to row index used to address writes.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pandas as pd

from . import normalize
from .dispatch import SheetTarget, a1_address, col_to_idx, idx_to_col
from .records import DEFAULT_SEPARATOR, Record, make_natural_key
from ..settings import lib
from ..signals import signals
from ..status import status


def _last_column(layout: Mapping[str, Any], columns: Mapping[str, str]) -> str:
    letters = [layout['order_number'], layout['barcode']]
    letters += list(layout.get('fields', {}).values())
    letters += list(columns.values())
    return idx_to_col(max(col_to_idx(c) for c in letters))


def fetch_frame(transport: Any, spreadsheet_id: str, worksheet: str, last_col: str,
                header_rows: int = 1, timeout: Optional[float] = None) -> pd.DataFrame:
    """Read the data rows of a worksheet.

    Args:
        transport: A transport providing ``batch_get``.
        spreadsheet_id: The spreadsheet to read.
        worksheet: The worksheet (tab) name.
        last_col: Right-most column to read.
        header_rows: Number of rows at the top of the sheet to skip.
        timeout: Transport timeout in seconds.

    Returns:
        pd.DataFrame: One column per sheet column letter, indexed by 1-based sheet row.
            Missing trailing cells are ``None``.
    """
    first_row = header_rows + 1
    data_range = f'{a1_address(worksheet, "A", first_row)}:{last_col}'
    logging.debug(f'Fetching "{data_range}".')

    values = transport.batch_get(spreadsheet_id, [data_range], timeout=timeout)[0]

    width = col_to_idx(last_col) + 1
    rows: List[List[Any]] = [(list(r) + [None] * width)[:width] for r in values]
    df = pd.DataFrame(
        rows,
        columns=[idx_to_col(i) for i in range(width)],
        index=pd.RangeIndex(first_row, first_row + len(rows)),
        dtype=object,
    )
    logging.debug(f'Constructed DataFrame: {df.shape[0]} rows x {df.shape[1]} columns from sheet "{worksheet}".')
    return df


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def _number(value: Any, row_number: int, field: str) -> Optional[Any]:
    result = normalize.normalize(normalize.NUMERIC, value, strict=False)
    if result is not None and not isinstance(result, (int, float)):
        logging.warning(f'Row {row_number}: "{field}" holds a non-numeric value {value!r}, treating it as empty.')
        return None
    return result


def records_from_frame(df: pd.DataFrame, layout: Mapping[str, Any],
                       columns: Mapping[str, str]) -> Tuple[List[Record], Dict[str, int]]:
    """Build records and the row index from a worksheet frame.

    Rows without an order number or barcode are skipped. When two rows share a
    natural key the first one wins: the record and its row index come from the
    upper row, and every later row with that key is skipped with a warning.
    A later duplicate never redirects writes away from the row that was loaded.

    Args:
        df: Frame returned by :func:`fetch_frame`.
        layout: The 'layout' settings section.
        columns: The 'columns' settings section.

    Returns:
        tuple: The records in sheet order and a mapping of natural key to sheet row.
    """
    separator = layout.get('key_separator', DEFAULT_SEPARATOR)

    field_columns: Dict[str, str] = dict(layout.get('fields', {}))
    field_columns.update(columns)

    records: List[Record] = []
    rows: Dict[str, int] = {}
    for row_number, row in df.iterrows():
        order_number = _text(row.get(layout['order_number']))
        barcode = _text(row.get(layout['barcode']))
        if not order_number or not barcode:
            continue

        try:
            key = make_natural_key(order_number, barcode, separator)
        except ValueError as ex:
            logging.warning(f'Row {row_number} skipped: {ex}')
            continue

        if key in rows:
            logging.warning(f'Row {row_number} skipped: "{key}" already loaded from row {rows[key]}.')
            continue

        kwargs: Dict[str, Any] = {}
        for field, column in field_columns.items():
            value = row.get(column)
            if field in lib.EDITABLE_FIELDS and lib.EDITABLE_FIELDS[field] == 'string':
                kwargs[field] = _text(value)
            elif field in lib.EDITABLE_FIELDS or field == 'order_qty':
                kwargs[field] = _number(value, row_number, field)
            elif field in lib.READONLY_FIELDS:
                kwargs[field] = _text(value)

        records.append(Record(order_number=order_number, barcode=barcode, separator=separator, **kwargs))
        rows[key] = int(row_number)

    logging.info(f'Loaded {len(records)} record(s) from {len(df)} row(s).')
    return records, rows


def load_target(transport: Any, timeout: Optional[float] = None) -> Tuple[List[Record], SheetTarget]:
    """Load the configured worksheet.

    Args:
        transport: A transport providing ``batch_get``.
        timeout: Transport timeout in seconds. Defaults to the 'transport' setting.

    Returns:
        tuple: The records and the :class:`SheetTarget` addressing them.

    Raises:
        status.SpreadsheetIdNotConfiguredException: If no spreadsheet is configured.
        status.SpreadsheetWorksheetNotConfiguredException: If no worksheet is configured.
        status.SpreadsheetEmptyException: If the worksheet has no data rows.
        status.WorksheetNotFoundException: If the worksheet does not exist.
        status.ServiceUnavailableException: If the read fails.
    """
    config = lib.settings.get_section('spreadsheet')
    spreadsheet_id = config.get('id', '')
    if not spreadsheet_id:
        raise status.SpreadsheetIdNotConfiguredException
    worksheet = config.get('worksheet', '')
    if not worksheet:
        raise status.SpreadsheetWorksheetNotConfiguredException

    layout = lib.settings.get_section('layout')
    columns = lib.settings.get_section('columns')
    if timeout is None:
        timeout = lib.settings.get_section('transport').get('timeout')

    signals.dataAboutToBeLoaded.emit()

    df = fetch_frame(
        transport, spreadsheet_id, worksheet, _last_column(layout, columns),
        header_rows=layout.get('header_rows', 1), timeout=timeout,
    )
    if df.empty:
        raise status.SpreadsheetEmptyException(f'No data rows found in "{worksheet}".')

    records, rows = records_from_frame(df, layout, columns)
    target = SheetTarget(spreadsheet_id, worksheet, rows)

    signals.dataLoaded.emit(len(records))
    return records, target
