"""
FulfillmentSync: edit-and-sync engine for order fulfillment worksheets kept in Google Sheets.

This package provides:

- :mod:`FulfillmentSync.core` – Baseline snapshot, diff tracking, ready-set aggregation and the
  write-then-verify commit flow against the remote sheet.
- :mod:`FulfillmentSync.settings` – Settings management and schema validation of ``sync.json``.
- :mod:`FulfillmentSync.status` – Status codes, per-cell failure kinds and status exceptions.
- :mod:`FulfillmentSync.log` – Application logging with an in-memory log tank.

"""

import sys

# Fail on Python < 3.11
if not (sys.version_info.major == 3 and sys.version_info.minor >= 11):
    raise RuntimeError('FulfillmentSync requires Python 3.11 or higher.')

__version__ = '0.1.0'
__description__ = 'FulfillmentSync: edit-and-sync engine for order fulfillment worksheets kept in Google Sheets.'

from .log import log

log.setup_logging()
