"""Google Sheets API client construction.

Builds (and caches) the Sheets service from the service account key file
configured in the 'transport' settings section.
"""
import logging
from typing import Any, Optional

import google.auth.exceptions
import httplib2
from google.oauth2 import service_account
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build

from ..settings import lib
from ..signals import signals
from ..status import status

DEFAULT_SCOPES = ['https://www.googleapis.com/auth/spreadsheets', ]

# Cached Sheets API client to avoid repeated discovery/auth costs
_cached_service: Any = None
_cached_creds: Optional[service_account.Credentials] = None


def get_credentials() -> service_account.Credentials:
    """
    Loads the service account credentials.

    Returns:
        The service account credentials, scoped for spreadsheet access.

    Raises:
        status.CredsNotFoundException: If the key file does not exist.
        status.CredsInvalidException: If the key file cannot be parsed.
    """
    global _cached_creds
    if _cached_creds is not None:
        return _cached_creds

    path = lib.settings.credentials_path
    if not path.exists():
        raise status.CredsNotFoundException(f'Key file not found: {path}')
    try:
        creds = service_account.Credentials.from_service_account_file(str(path), scopes=DEFAULT_SCOPES)
    except (ValueError, KeyError, google.auth.exceptions.GoogleAuthError) as ex:
        raise status.CredsInvalidException(str(ex)) from ex

    logging.debug(f'Loaded service account credentials for {creds.service_account_email}.')
    _cached_creds = creds
    return creds


def get_service() -> Any:
    """
    Builds (or returns cached) Google Sheets service client.

    Returns:
        The Sheets API Resource, reusing a single client per app run.

    Raises:
        status.ServiceUnavailableException: If the client cannot be built.
    """
    global _cached_service
    creds = get_credentials()
    if _cached_service is not None:
        return _cached_service
    try:
        service: Any = build('sheets', 'v4', credentials=creds, cache_discovery=False)
    except Exception as ex:
        raise status.ServiceUnavailableException(f'Could not build the Sheets client: {ex}') from ex
    logging.debug('Google Sheets service client created successfully.')
    _cached_service = service
    return service


def clear_service() -> None:
    """
    Clears the cached Sheets API client and credentials.
    """
    global _cached_service, _cached_creds

    try:
        if _cached_service:
            _cached_service.close()
    except Exception as ex:
        logging.debug(f'Failed closing cached Sheets service client: {ex}')

    _cached_service = None
    _cached_creds = None


def build_http(credentials: Any, timeout: float) -> AuthorizedHttp:
    """
    Returns an authorized HTTP object whose socket operations time out after ``timeout`` seconds.
    """
    return AuthorizedHttp(credentials, http=httplib2.Http(timeout=timeout))


def _reset_cached_service(section: str) -> None:
    """Clear the cached Sheets client when the credentials setting changes."""
    if section == 'transport':
        logging.debug('Clearing cached Sheets service client due to transport settings change')
        clear_service()


signals.configSectionChanged.connect(_reset_cached_service)
