"""Batched read/write transport over the Google Sheets values API.

:class:`SheetsTransport` issues exactly one ``values.batchUpdate`` per write
and one ``values.batchGet`` per read. Every transport-level failure (HTTP
errors, authentication, socket timeouts, SSL and connection errors) is
raised as :class:`~FulfillmentSync.status.status.ServiceUnavailableException`,
except a range naming a missing worksheet, which raises
:class:`~FulfillmentSync.status.status.WorksheetNotFoundException`.
"""
import logging
import ssl
from typing import Any, Callable, Dict, List, Optional

import google.auth.exceptions
import httplib2
from googleapiclient.errors import HttpError

from . import service as sheets_service
from ..status import status

VALUE_INPUT_OPTION: str = 'RAW'


class SheetsTransport:
    """Sheets-backed implementation of the dispatcher's transport interface."""

    def __init__(self, service: Any = None, credentials: Any = None) -> None:
        """
        Args:
            service: A Sheets API resource. Defaults to the shared cached client.
            credentials: Credentials used to build per-call timeout HTTP objects.
                Defaults to the configured service account when ``service`` is not given.
                An injected ``service`` without credentials cannot apply per-call
                timeouts; the client's own HTTP object is used as is.
        """
        self._service = service
        self._credentials = credentials

    @property
    def service(self) -> Any:
        if self._service is None:
            self._service = sheets_service.get_service()
            if self._credentials is None:
                self._credentials = sheets_service.get_credentials()
        return self._service

    def _execute(self, request: Any, timeout: Optional[float], what: str) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {}
        if timeout is not None and self._credentials is not None:
            kwargs['http'] = sheets_service.build_http(self._credentials, timeout)
        elif timeout is not None:
            logging.debug(f'{what}: no credentials to build a timeout HTTP object, {timeout}s timeout not applied.')

        try:
            return request.execute(**kwargs) or {}
        except HttpError as ex:
            stat = getattr(ex.resp, 'status', 'Unknown')
            logging.error(f'{what} HTTPError: status={stat} detail={getattr(ex, "error_details", ex)}')
            if stat == 400 and 'Unable to parse range' in str(ex):
                raise status.WorksheetNotFoundException(str(ex)) from ex
            raise status.ServiceUnavailableException(f'{what} failed with HTTP {stat}.') from ex
        except google.auth.exceptions.GoogleAuthError as ex:
            raise status.ServiceUnavailableException(f'{what} failed to authenticate: {ex}') from ex
        except TimeoutError as ex:
            raise status.ServiceUnavailableException(f'{what} timed out: {ex}') from ex
        except ssl.SSLError as ex:
            raise status.ServiceUnavailableException(f'{what} SSL error: {ex}') from ex
        except (httplib2.HttpLib2Error, OSError) as ex:
            raise status.ServiceUnavailableException(f'{what} connection error: {ex}') from ex

    def batch_write(self, spreadsheet_id: str, data: List[Dict[str, Any]],
                    timeout: Optional[float] = None) -> List[bool]:
        """Write every range of ``data`` in a single ``values.batchUpdate``.

        Args:
            spreadsheet_id: Target spreadsheet.
            data: ``[{'range': 'Sheet!N5', 'values': [[value]]}, ...]``.
            timeout: Socket timeout in seconds.

        Returns:
            list[bool]: One acknowledgement per entry of ``data``.

        Raises:
            status.ServiceUnavailableException: On any transport failure.
        """
        body = {'valueInputOption': VALUE_INPUT_OPTION, 'data': data}
        request = self.service.spreadsheets().values().batchUpdate(
            spreadsheetId=spreadsheet_id, body=body
        )
        response = self._execute(request, timeout, 'Batch update')

        responses: List[Dict[str, Any]] = response.get('responses', [])
        if responses:
            acks = [bool(r and r.get('updatedRange')) for r in responses[:len(data)]]
            acks.extend([False] * (len(data) - len(acks)))
        else:
            total = response.get('totalUpdatedCells')
            acks = [total is not None and total >= len(data)] * len(data)

        logging.debug(
            f'Batch update acknowledged {sum(acks)} of {len(data)} range(s), '
            f'totalUpdatedCells={response.get("totalUpdatedCells")}.'
        )
        return acks

    def batch_get(self, spreadsheet_id: str, ranges: List[str], timeout: Optional[float] = None,
                  value_render_option: str = 'UNFORMATTED_VALUE') -> List[List[List[Any]]]:
        """Read several ranges in a single ``values.batchGet``.

        Returns:
            One 2D list of values per range, in request order. Empty ranges yield ``[]``.

        Raises:
            status.WorksheetNotFoundException: If a range names a worksheet that does not exist.
            status.ServiceUnavailableException: On any transport failure.
        """
        request = self.service.spreadsheets().values().batchGet(
            spreadsheetId=spreadsheet_id,
            ranges=ranges,
            valueRenderOption=value_render_option,
            dateTimeRenderOption='SERIAL_NUMBER',
            fields='valueRanges(values)',
        )
        response = self._execute(request, timeout, 'Batch get')

        value_ranges: List[Dict[str, Any]] = response.get('valueRanges', [])
        result: List[List[List[Any]]] = []
        for i in range(len(ranges)):
            vr = value_ranges[i] if i < len(value_ranges) else {}
            result.append(vr.get('values', []) if vr else [])
        return result

    def batch_read(self, spreadsheet_id: str, ranges: List[str],
                   timeout: Optional[float] = None) -> List[Any]:
        """Read single cells in one call.

        Returns:
            list: The value of each cell, or None for an empty cell, in request order.
        """
        first: Callable[[List[List[Any]]], Any] = lambda values: values[0][0] if values and values[0] else None
        return [first(values) for values in self.batch_get(spreadsheet_id, ranges, timeout=timeout)]
