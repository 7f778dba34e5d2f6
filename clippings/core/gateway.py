"""
Remote call gateway for the inventory store.

The store is a Google Apps Script web app exposing one endpoint. Every
operation is a GET carrying the server function name and a JSON blob of
parameters; GET with query parameters keeps the call free of a CORS
preflight when the same endpoint is used from a browser.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import requests
from django.conf import settings

from .exceptions import (
    ApplicationError, ClippingsError, ConfigurationError, TransportError
)

logger = logging.getLogger(__name__)

PLACEHOLDER_API_URL = 'YOUR_GOOGLE_APPS_SCRIPT_URL_HERE'

# API timeout in milliseconds (30 seconds default)
DEFAULT_TIMEOUT_MS = 30000

TIMEOUT_MESSAGE = 'Request timed out. Please try again.'

# Server functions published by the Apps Script project
ASK_INVENTORY = 'askInventory'
UPDATE_INVENTORY = 'updateInventory'
BATCH_IMPORT_ITEMS = 'batchImportItems'
FIND_DUPLICATES = 'findDuplicates'
MERGE_DUPLICATES = 'mergeDuplicates'

REMOTE_FUNCTIONS = (
    ASK_INVENTORY, UPDATE_INVENTORY, BATCH_IMPORT_ITEMS,
    FIND_DUPLICATES, MERGE_DUPLICATES,
)


def debug_log(*args):
    """Trace to the clippings logger when CLIPPINGS_DEBUG is on"""
    if getattr(settings, 'CLIPPINGS_DEBUG', False):
        logger.debug('[Clippings] ' + ' '.join(str(arg) for arg in args))


def serialize_parameters(parameters: Any) -> str:
    """Compact JSON matching what the Apps Script side parses"""
    return json.dumps(parameters, ensure_ascii=False, separators=(',', ':'))


@dataclass(frozen=True)
class RemoteRequest:
    function_name: str
    parameters: Any = None

    def as_query(self) -> dict:
        return {
            'function': self.function_name,
            'parameters': serialize_parameters(self.parameters),
        }


@dataclass(frozen=True)
class Success:
    payload: Any
    ok = True


@dataclass(frozen=True)
class Failure:
    message: str
    error: Optional[ClippingsError] = field(default=None, compare=False)
    ok = False


class RemoteGateway:
    """
    Issues calls to the remote endpoint.

    `call` raises one of the ClippingsError subclasses; `invoke` never
    raises for remote failures and returns Success or Failure instead.
    """

    def __init__(self, api_url=None, timeout=None, session=None):
        self.api_url = api_url if api_url is not None else getattr(
            settings, 'CLIPPINGS_API_URL', PLACEHOLDER_API_URL
        )
        self.timeout = timeout if timeout is not None else getattr(
            settings, 'CLIPPINGS_TIMEOUT', DEFAULT_TIMEOUT_MS
        )
        # Without an injected session each call is a plain requests.get
        self.session = session

    @property
    def is_configured(self) -> bool:
        return bool(self.api_url) and self.api_url != PLACEHOLDER_API_URL

    def call(self, function_name: str, parameters: Any = None) -> Any:
        """
        Call a server function and return its `result` payload.

        Args:
            function_name: Name of the server function to call
            parameters: Any JSON-serializable value

        Raises:
            ConfigurationError: endpoint URL not set, nothing was sent
            TransportError: timeout, network failure or non-2xx status
            ApplicationError: the server answered with an `error` field
        """
        remote_request = RemoteRequest(function_name, parameters)
        debug_log(f'Calling API: {function_name}', remote_request.parameters)

        if not self.is_configured:
            raise ConfigurationError('API URL not configured. Please set CLIPPINGS_API_URL.')

        try:
            http = self.session if self.session is not None else requests
            response = http.get(
                self.api_url,
                params=remote_request.as_query(),
                timeout=self.timeout / 1000,
                allow_redirects=True,
            )
        except requests.exceptions.Timeout:
            logger.warning(f'API timeout ({function_name}) after {self.timeout} ms')
            raise TransportError(TIMEOUT_MESSAGE)
        except requests.exceptions.RequestException as e:
            logger.error(f'API Error ({function_name}): {str(e)}')
            raise TransportError(str(e))

        if not 200 <= response.status_code < 300:
            logger.error(f'API Error ({function_name}): HTTP {response.status_code}')
            raise TransportError(f'HTTP error! status: {response.status_code}')

        try:
            data = response.json()
        except ValueError:
            logger.error(f'API Error ({function_name}): response body is not JSON')
            raise TransportError('Invalid response from server.')

        debug_log(f'API Response from {function_name}:', data)

        if not isinstance(data, dict):
            raise ApplicationError('Unexpected response from server.')

        # Transport succeeded but the server function failed
        if data.get('error'):
            logger.error(f'API Error ({function_name}): {data["error"]}')
            raise ApplicationError(str(data['error']))

        return data.get('result')

    def invoke(self, function_name: str, parameters: Any = None):
        """Call a server function, folding every failure into a Failure"""
        try:
            return Success(self.call(function_name, parameters))
        except ClippingsError as e:
            return Failure(e.message, e)


def get_gateway() -> RemoteGateway:
    """Gateway built from the current Django settings"""
    return RemoteGateway()
