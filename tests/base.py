"""Unittest base class and an in-memory Sheets stand-in for a clean test environment."""
import json
import logging
import shutil
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set
import unittest

import httplib2
from PySide6 import QtCore, QtTest
from googleapiclient.errors import HttpError

# Keep the real application data directory out of reach
QtCore.QStandardPaths.setTestModeEnabled(True)

from FulfillmentSync.core import service
from FulfillmentSync.core.dispatch import ColumnMapping, SheetTarget
from FulfillmentSync.core.records import Record
from FulfillmentSync.core.transport import SheetsTransport
from FulfillmentSync.settings import lib

SPREADSHEET_ID = 'test-spreadsheet'
WORKSHEET = 'Orders'

COLUMNS = {
    'import_qty': 'N',
    'cancel_qty': 'O',
    'note': 'R',
}


def http_error(code: int, message: str = 'error') -> HttpError:
    """Build an HttpError carrying a JSON error body, as returned by the Sheets API."""
    content = json.dumps({'error': {'code': code, 'message': message}})
    return HttpError(httplib2.Response({'status': code}), content.encode('utf-8'))


def make_records() -> List[Record]:
    """Three order lines; the first is the ``{import_qty: 2}`` record used in the scenarios."""
    return [
        Record(
            order_number='A-1001', barcode='8801234567890',
            import_qty=2, cancel_qty=0, note=None,
            product_name='Stoneware mug', option_name='Blue', order_qty=10,
        ),
        Record(
            order_number='A-1002', barcode='8801234567891',
            import_qty=None, cancel_qty=None, note='fragile',
            product_name='Tea towel', order_qty=4,
        ),
        Record(
            order_number='A-1003', barcode='8801234567892',
            import_qty=7, cancel_qty=1, note='',
            product_name='Bread knife', order_qty=7,
        ),
    ]


KEY_1 = 'A-1001|8801234567890'
KEY_2 = 'A-1002|8801234567891'
KEY_3 = 'A-1003|8801234567892'

ROWS = {KEY_1: 2, KEY_2: 3, KEY_3: 4}


def make_target(rows: Optional[Dict[str, int]] = None) -> SheetTarget:
    return SheetTarget(SPREADSHEET_ID, WORKSHEET, ROWS if rows is None else rows)


def make_mapping() -> ColumnMapping:
    return ColumnMapping(COLUMNS)


class StubRequest:
    """Mimics an ``HttpRequest``: nothing happens until :meth:`execute`."""

    def __init__(self, func):
        self.func = func

    def execute(self, http=None, num_retries=0):
        return self.func()


class StubValues:
    def __init__(self, sheet: 'StubSheetsService') -> None:
        self.sheet = sheet

    def batchUpdate(self, spreadsheetId: str, body: Dict[str, Any]) -> StubRequest:
        self.sheet.update_calls.append({'spreadsheetId': spreadsheetId, 'body': body})
        return StubRequest(lambda: self.sheet.apply_update(body))

    def batchGet(self, spreadsheetId: str, ranges: List[str], **kwargs: Any) -> StubRequest:
        self.sheet.get_calls.append({'spreadsheetId': spreadsheetId, 'ranges': list(ranges), **kwargs})
        return StubRequest(lambda: self.sheet.read(ranges))


class StubSpreadsheets:
    def __init__(self, sheet: 'StubSheetsService') -> None:
        self.sheet = sheet

    def values(self) -> StubValues:
        return StubValues(self.sheet)


class StubSheetsService:
    """In-memory replacement for the ``spreadsheets().values()`` part of the Sheets API.

    Attributes:
        cells: Single cell values keyed by A1 address (``Orders!N2``).
        grid: Rows returned for any multi-cell range read.
        write_error: Raised on executing a batch update.
        read_error: Raised on executing a batch get.
        reject: Addresses the sheet does not acknowledge.
        ignore: Addresses acknowledged but not stored.
        transform: Values stored in place of the written value, keyed by address.
    """

    def __init__(self) -> None:
        self.cells: Dict[str, Any] = {}
        self.grid: List[List[Any]] = []

        self.update_calls: List[Dict[str, Any]] = []
        self.get_calls: List[Dict[str, Any]] = []

        self.write_error: Optional[Exception] = None
        self.read_error: Optional[Exception] = None
        self.reject: Set[str] = set()
        self.ignore: Set[str] = set()
        self.transform: Dict[str, Any] = {}

    def spreadsheets(self) -> StubSpreadsheets:
        return StubSpreadsheets(self)

    def apply_update(self, body: Dict[str, Any]) -> Dict[str, Any]:
        if self.write_error is not None:
            raise self.write_error

        responses = []
        for entry in body['data']:
            address = entry['range']
            if address in self.reject:
                responses.append({})
                continue
            if address not in self.ignore:
                self.cells[address] = self.transform.get(address, entry['values'][0][0])
            responses.append({'updatedRange': address, 'updatedCells': 1})

        return {
            'spreadsheetId': SPREADSHEET_ID,
            'totalUpdatedCells': sum(1 for r in responses if r),
            'responses': responses,
        }

    def read(self, ranges: List[str]) -> Dict[str, Any]:
        if self.read_error is not None:
            raise self.read_error

        value_ranges = []
        for address in ranges:
            if ':' in address:
                value_ranges.append({'values': self.grid} if self.grid else {})
                continue
            value = self.cells.get(address)
            value_ranges.append({} if value in (None, '') else {'values': [[value]]})
        return {'valueRanges': value_ranges}

    @property
    def written(self) -> List[Dict[str, Any]]:
        """Data entries of every batch update sent so far."""
        return [entry for call in self.update_calls for entry in call['body']['data']]


class BaseTestCase(unittest.TestCase):
    """Base test case that sets up and tears down a temporary config directory."""

    config_paths: lib.ConfigPaths

    def setUp(self) -> None:
        """Set up a clean config directory and reinitialize the settings API."""
        if not QtCore.QCoreApplication.instance():
            QtCore.QCoreApplication([])  # type: ignore
            logging.debug('QtCore.QCoreApplication initialized for tests.')

        self.config_paths = lib.ConfigPaths()
        config_dir: Path = self.config_paths.config_dir
        if config_dir.exists():
            shutil.rmtree(config_dir)
            logging.debug(f'Removed test config directory {config_dir}')

        lib.settings = lib.SettingsAPI()
        logging.debug('SettingsAPI reinitialized.')

        service.clear_service()

    def tearDown(self) -> None:
        """Remove the test config directory."""
        service.clear_service()

        config_dir: Path = self.config_paths.config_dir
        if config_dir.exists():
            shutil.rmtree(config_dir)


class BaseSheetTestCase(BaseTestCase):
    """Base test case wiring a :class:`SheetsTransport` to a :class:`StubSheetsService`."""

    def setUp(self) -> None:
        super().setUp()
        self.sheet = StubSheetsService()
        self.transport = SheetsTransport(service=self.sheet)
        self.target = make_target()
        self.mapping = make_mapping()


def wait_until(predicate: Callable[[], bool], timeout_ms: int = 5000) -> bool:
    """Process events until predicate holds or the timeout expires."""
    elapsed = 0
    while not predicate() and elapsed < timeout_ms:
        QtTest.QTest.qWait(20)
        elapsed += 20
    return predicate()
