"""
Test utilities and factories for remote payloads
"""
import random
import string

from .exceptions import ApplicationError, TransportError
from .gateway import Failure, Success


class FakeResponse:
    """Stand-in for requests.Response"""

    def __init__(self, status_code=200, json_data=None, body_error=False):
        self.status_code = status_code
        self._json_data = json_data
        self._body_error = body_error

    def json(self):
        if self._body_error:
            raise ValueError('No JSON object could be decoded')
        return self._json_data


class FakeSession:
    """Records GET calls and replays a queued response or exception"""

    def __init__(self, response=None, exception=None):
        self.response = response
        self.exception = exception
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.exception is not None:
            raise self.exception
        return self.response


class StubGateway:
    """
    Gateway double for views and controllers.

    Queue results per function name; each invoke pops the next one.
    """

    def __init__(self, **results):
        self.results = {name: list(values) for name, values in results.items()}
        self.calls = []
        self.is_configured = True
        self.timeout = 30000

    def queue(self, function_name, result):
        self.results.setdefault(function_name, []).append(result)

    def invoke(self, function_name, parameters=None):
        self.calls.append((function_name, parameters))
        queued = self.results.get(function_name)
        if not queued:
            raise AssertionError(f'No result queued for {function_name}')
        return queued.pop(0)

    def called(self, function_name):
        return [params for name, params in self.calls if name == function_name]


class TestDataFactory:
    """Factory class for building remote payloads"""

    @staticmethod
    def random_string(length=8):
        return ''.join(random.choices(string.ascii_letters, k=length))

    @staticmethod
    def success(payload):
        return Success(payload)

    @staticmethod
    def transport_failure(message='HTTP error! status: 500'):
        return Failure(message, TransportError(message))

    @staticmethod
    def application_failure(message='Script function not found'):
        return Failure(message, ApplicationError(message))

    @staticmethod
    def item_ref(name=None, quantity=5, unit='kg', location='Pantry', row=2):
        return {
            'name': name or f'Item {TestDataFactory.random_string(5)}',
            'quantity': quantity,
            'unit': unit,
            'location': location,
            'row': row,
        }

    @staticmethod
    def duplicate(name1='Flour', name2='Flour (bulk)', similarity=87, row1=2, row2=9):
        return {
            'item1': TestDataFactory.item_ref(name=name1, row=row1),
            'item2': TestDataFactory.item_ref(name=name2, quantity=3, row=row2),
            'similarity': similarity,
        }

    @staticmethod
    def duplicates_payload(*duplicates):
        return {'success': True, 'duplicates': list(duplicates)}
