"""
Test suite for the remote call gateway
Tests: request encoding, timeout, HTTP errors, server errors, configuration check
"""
import json
from unittest import mock

import requests
from django.core.checks import run_checks
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient

from clippings.core.exceptions import (
    ApplicationError, ConfigurationError, TransportError
)
from clippings.core.gateway import (
    Failure, PLACEHOLDER_API_URL, RemoteGateway, Success, serialize_parameters
)
from clippings.core.test_utils import FakeResponse, FakeSession

API_URL = 'https://script.google.com/macros/s/test-deployment/exec'


class GatewayRequestTests(SimpleTestCase):
    """Test how calls are put on the wire"""

    def test_function_and_parameters_sent_as_query(self):
        """Test function name and JSON parameters travel as query values"""
        session = FakeSession(FakeResponse(json_data={'result': {'success': True}}))
        gateway = RemoteGateway(api_url=API_URL, timeout=30000, session=session)

        gateway.call('updateInventory', {'itemName': 'Flour', 'quantity': 10})

        url, kwargs = session.calls[0]
        self.assertEqual(url, API_URL)
        self.assertEqual(kwargs['params']['function'], 'updateInventory')
        self.assertEqual(
            json.loads(kwargs['params']['parameters']),
            {'itemName': 'Flour', 'quantity': 10}
        )
        self.assertEqual(kwargs['timeout'], 30)
        self.assertTrue(kwargs['allow_redirects'])

    def test_default_gateway_uses_requests_get(self):
        """Test no session is created when none is injected"""
        gateway = RemoteGateway(api_url=API_URL, timeout=30000)
        self.assertIsNone(gateway.session)
        response = FakeResponse(json_data={'result': 'ok'})
        with mock.patch('clippings.core.gateway.requests.get', return_value=response) as get:
            self.assertEqual(gateway.call('askInventory', 'flour'), 'ok')
        get.assert_called_once()
        self.assertEqual(get.call_args.args[0], API_URL)
        self.assertEqual(get.call_args.kwargs['params']['function'], 'askInventory')

    def test_none_parameters_serialize_to_null(self):
        """Test findDuplicates sends the literal null"""
        self.assertEqual(serialize_parameters(None), 'null')

    def test_string_parameters_keep_unicode(self):
        """Test search text is JSON-quoted without escaping"""
        self.assertEqual(serialize_parameters('crème'), '"crème"')

    def test_compact_separators(self):
        self.assertEqual(serialize_parameters({'a': 1, 'b': [1, 2]}), '{"a":1,"b":[1,2]}')


class GatewayResultTests(SimpleTestCase):
    """Test how responses are normalized"""

    def make_gateway(self, **session_kwargs):
        return RemoteGateway(api_url=API_URL, timeout=30000, session=FakeSession(**session_kwargs))

    def test_success_returns_result_field(self):
        gateway = self.make_gateway(response=FakeResponse(json_data={'result': {'answer': 'hi'}}))
        self.assertEqual(gateway.call('askInventory', 'flour'), {'answer': 'hi'})

    def test_invoke_wraps_success(self):
        gateway = self.make_gateway(response=FakeResponse(json_data={'result': 42}))
        self.assertEqual(gateway.invoke('askInventory', 'flour'), Success(42))

    def test_timeout(self):
        """Test a timeout becomes the retry message"""
        gateway = self.make_gateway(exception=requests.exceptions.Timeout())
        with self.assertRaises(TransportError) as ctx:
            gateway.call('askInventory', 'flour')
        self.assertEqual(ctx.exception.message, 'Request timed out. Please try again.')

    def test_connection_error(self):
        gateway = self.make_gateway(exception=requests.exceptions.ConnectionError('connection refused'))
        result = gateway.invoke('askInventory', 'flour')
        self.assertIsInstance(result, Failure)
        self.assertIsInstance(result.error, TransportError)
        self.assertIn('connection refused', result.message)

    def test_http_error_status(self):
        """Test non-2xx statuses report the code"""
        gateway = self.make_gateway(response=FakeResponse(status_code=500))
        result = gateway.invoke('askInventory', 'flour')
        self.assertFalse(result.ok)
        self.assertEqual(result.message, 'HTTP error! status: 500')

    def test_non_2xx_final_status_is_error(self):
        gateway = self.make_gateway(response=FakeResponse(status_code=302))
        self.assertEqual(gateway.invoke('askInventory', 'x').message, 'HTTP error! status: 302')

    def test_error_field_is_application_error(self):
        """Test an error field fails the call even with HTTP 200"""
        gateway = self.make_gateway(response=FakeResponse(json_data={'error': 'Unknown function: foo'}))
        with self.assertRaises(ApplicationError) as ctx:
            gateway.call('foo')
        self.assertEqual(str(ctx.exception), 'Unknown function: foo')

    def test_empty_error_field_is_ignored(self):
        gateway = self.make_gateway(response=FakeResponse(json_data={'error': '', 'result': 'ok'}))
        self.assertEqual(gateway.call('askInventory', 'x'), 'ok')

    def test_non_json_body(self):
        gateway = self.make_gateway(response=FakeResponse(body_error=True))
        result = gateway.invoke('askInventory', 'x')
        self.assertIsInstance(result.error, TransportError)
        self.assertEqual(result.message, 'Invalid response from server.')

    def test_non_object_body(self):
        gateway = self.make_gateway(response=FakeResponse(json_data=['unexpected']))
        self.assertIsInstance(gateway.invoke('askInventory', 'x').error, ApplicationError)


class GatewayConfigurationTests(SimpleTestCase):
    """Test the unconfigured endpoint fails fast"""

    def test_placeholder_url_fails_without_network(self):
        session = FakeSession(FakeResponse(json_data={'result': 1}))
        gateway = RemoteGateway(api_url=PLACEHOLDER_API_URL, session=session)
        with self.assertRaises(ConfigurationError):
            gateway.call('askInventory', 'flour')
        self.assertEqual(session.calls, [])

    def test_empty_url_is_unconfigured(self):
        gateway = RemoteGateway(api_url='', session=FakeSession())
        self.assertFalse(gateway.is_configured)
        self.assertIsInstance(gateway.invoke('findDuplicates').error, ConfigurationError)

    @override_settings(CLIPPINGS_API_URL=API_URL, CLIPPINGS_TIMEOUT=5000)
    def test_defaults_come_from_settings(self):
        gateway = RemoteGateway(session=FakeSession())
        self.assertEqual(gateway.api_url, API_URL)
        self.assertEqual(gateway.timeout, 5000)

    @override_settings(CLIPPINGS_API_URL=PLACEHOLDER_API_URL)
    def test_system_check_warns_on_placeholder(self):
        ids = [message.id for message in run_checks()]
        self.assertIn('clippings.W001', ids)

    @override_settings(CLIPPINGS_API_URL=API_URL)
    def test_system_check_silent_when_configured(self):
        ids = [message.id for message in run_checks()]
        self.assertNotIn('clippings.W001', ids)


class GatewayDebugTraceTests(SimpleTestCase):
    """Test the debug trace follows CLIPPINGS_DEBUG"""

    @override_settings(CLIPPINGS_DEBUG=True)
    def test_trace_emitted_when_enabled(self):
        gateway = RemoteGateway(api_url=API_URL, session=FakeSession(FakeResponse(json_data={'result': 1})))
        with self.assertLogs('clippings.core.gateway', level='DEBUG') as logs:
            gateway.call('askInventory', 'flour')
        self.assertTrue(any('[Clippings] Calling API: askInventory' in line for line in logs.output))
        self.assertTrue(any('API Response from askInventory' in line for line in logs.output))

    @override_settings(CLIPPINGS_DEBUG=False)
    def test_no_trace_when_disabled(self):
        gateway = RemoteGateway(api_url=API_URL, session=FakeSession(FakeResponse(json_data={'result': 1})))
        with mock.patch('clippings.core.gateway.logger') as logger:
            gateway.call('askInventory', 'flour')
        logger.debug.assert_not_called()


class ClientStatusAPITests(TestCase):
    """Test the status endpoint"""

    def setUp(self):
        self.client = APIClient()

    @override_settings(CLIPPINGS_API_URL=API_URL, CLIPPINGS_TIMEOUT=30000)
    def test_configured(self):
        response = self.client.get('/api/v1/status/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['configured'])
        self.assertEqual(response.data['timeout'], 30000)
        self.assertIn('mergeDuplicates', response.data['functions'])

    @override_settings(CLIPPINGS_API_URL=PLACEHOLDER_API_URL)
    def test_unconfigured(self):
        response = self.client.get('/api/v1/status/')
        self.assertFalse(response.data['configured'])
