"""
Test suite for the update and batch-import submission flow
Tests: preconditions, form retention, per-line batch results, API endpoints, CLI
"""
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase, TestCase
from rest_framework import status
from rest_framework.test import APIClient

from clippings.core.exceptions import ValidationError
from clippings.core.test_utils import StubGateway, TestDataFactory
from clippings.inventory.submission import (
    DEFAULT_MIN_STOCK, FORM_DEFAULTS, UpdateRequest, parse_int, submit_batch, submit_update
)


def flour_form(**overrides):
    data = {
        'itemName': '  Flour ',
        'quantity': '10',
        'unit': 'kg',
        'location': 'Pantry',
        'notes': 'bulk bag',
        'reason': '',
        'minStock': '5',
    }
    data.update(overrides)
    return data


class ParseIntTests(SimpleTestCase):

    def test_values(self):
        self.assertEqual(parse_int('10'), 10)
        self.assertEqual(parse_int(' 12 kg'), 12)
        self.assertEqual(parse_int(7), 7)
        self.assertEqual(parse_int('-3'), -3)
        self.assertIsNone(parse_int('abc'))
        self.assertIsNone(parse_int(''))
        self.assertIsNone(parse_int(None))


class UpdateRequestTests(SimpleTestCase):
    """Test building and validating update requests"""

    def test_from_form(self):
        request = UpdateRequest.from_form('add', flour_form())
        self.assertEqual(request.item_name, 'Flour')
        self.assertEqual(request.quantity, 10)
        self.assertEqual(request.min_stock, 5)
        self.assertEqual(request.to_payload(), {
            'action': 'add', 'itemName': 'Flour', 'quantity': 10, 'unit': 'kg',
            'location': 'Pantry', 'notes': 'bulk bag', 'reason': '', 'minStock': 5,
        })

    def test_min_stock_defaults(self):
        """Test absent or invalid min stock falls back to 10"""
        self.assertEqual(UpdateRequest.from_form('add', flour_form(minStock='')).min_stock, DEFAULT_MIN_STOCK)
        self.assertEqual(UpdateRequest.from_form('add', flour_form(minStock='lots')).min_stock, DEFAULT_MIN_STOCK)
        del_form = flour_form()
        del del_form['minStock']
        self.assertEqual(UpdateRequest.from_form('add', del_form).min_stock, DEFAULT_MIN_STOCK)

    def test_zero_min_stock_falls_back(self):
        request = UpdateRequest.from_form('add', flour_form(minStock='0'))
        self.assertEqual(request.min_stock, DEFAULT_MIN_STOCK)
        self.assertEqual(request.to_payload()['minStock'], 10)

    def test_non_numeric_quantity_passes_through_as_null(self):
        request = UpdateRequest.from_form('add', flour_form(quantity='ten'))
        self.assertIsNone(request.quantity)
        request.validate()

    def test_item_name_required(self):
        with self.assertRaisesMessage(ValidationError, 'Please enter an item name.'):
            UpdateRequest.from_form('update', flour_form(itemName='   ')).validate()

    def test_unit_required_for_stock_moves(self):
        for action in ('add', 'subtract'):
            with self.subTest(action=action):
                with self.assertRaisesMessage(ValidationError, 'Please select a unit.'):
                    UpdateRequest.from_form(action, flour_form(unit='')).validate()

    def test_unit_optional_for_update(self):
        UpdateRequest.from_form('update', flour_form(unit='')).validate()

    def test_action_required(self):
        with self.assertRaisesMessage(ValidationError, 'Please choose an action.'):
            UpdateRequest.from_form('', flour_form()).validate()


class SubmitUpdateTests(SimpleTestCase):
    """Test submit_update against a stub gateway"""

    def test_success_resets_form(self):
        gateway = StubGateway(updateInventory=[TestDataFactory.success(
            {'success': True, 'message': 'Added 10 kg of Flour'}
        )])
        outcome = submit_update(UpdateRequest.from_form('add', flour_form()), gateway)
        self.assertTrue(outcome.success)
        self.assertEqual(outcome.message, 'Added 10 kg of Flour')
        self.assertEqual(outcome.form, FORM_DEFAULTS)
        self.assertEqual(gateway.called('updateInventory')[0]['itemName'], 'Flour')

    def test_rejection_keeps_form(self):
        """Test the Item not found example"""
        gateway = StubGateway(updateInventory=[TestDataFactory.success(
            {'success': False, 'message': 'Item not found'}
        )])
        outcome = submit_update(UpdateRequest.from_form('subtract', flour_form()), gateway)
        self.assertFalse(outcome.success)
        self.assertEqual(outcome.message, 'Item not found')
        self.assertEqual(outcome.form['itemName'], 'Flour')
        self.assertEqual(outcome.form['quantity'], '10')
        self.assertEqual(outcome.form['location'], 'Pantry')

    def test_validation_failure_sends_nothing(self):
        gateway = StubGateway()
        outcome = submit_update(UpdateRequest.from_form('add', flour_form(unit='')), gateway)
        self.assertFalse(outcome.success)
        self.assertEqual(outcome.message, 'Please select a unit.')
        self.assertIsInstance(outcome.error, ValidationError)
        self.assertEqual(gateway.calls, [])

    def test_transport_failure(self):
        gateway = StubGateway(updateInventory=[TestDataFactory.transport_failure()])
        outcome = submit_update(UpdateRequest.from_form('add', flour_form()), gateway)
        self.assertEqual(outcome.message, 'Error: HTTP error! status: 500')
        self.assertEqual(outcome.form['itemName'], 'Flour')


class SubmitBatchTests(SimpleTestCase):
    """Test submit_batch against a stub gateway"""

    def test_blank_input(self):
        gateway = StubGateway()
        batch = submit_batch('  \n ', gateway)
        self.assertFalse(batch.success)
        self.assertEqual(batch.summary, 'Please enter items to import.')
        self.assertIsInstance(batch.error, ValidationError)
        self.assertEqual(gateway.calls, [])

    def test_all_lines_succeed_clears_buffer(self):
        gateway = StubGateway(batchImportItems=[TestDataFactory.success({
            'success': True,
            'summary': 'Imported 2 of 2 items',
            'results': [
                {'success': True, 'message': 'Added Flour'},
                {'success': True, 'message': 'Added Sugar'},
            ],
        })])
        batch = submit_batch(' Flour, 10, kg\nSugar, 2, kg \n', gateway)
        self.assertTrue(batch.clear_buffer)
        self.assertEqual(gateway.called('batchImportItems'), ['Flour, 10, kg\nSugar, 2, kg'])
        self.assertEqual([line.display_text for line in batch.lines], ['✓ Added Flour', '✓ Added Sugar'])

    def test_one_failing_line_keeps_buffer(self):
        """Test the two-line example with one failure"""
        gateway = StubGateway(batchImportItems=[TestDataFactory.success({
            'success': True,
            'summary': 'Imported 1 of 2 items',
            'results': [
                {'success': True, 'message': 'Added Flour'},
                {'success': False, 'line': 'Sugar, two, kg', 'message': 'Invalid quantity'},
            ],
        })])
        batch = submit_batch('Flour, 10, kg\nSugar, two, kg', gateway)
        self.assertTrue(batch.success)
        self.assertEqual(batch.summary, 'Imported 1 of 2 items')
        self.assertFalse(batch.clear_buffer)
        self.assertEqual(len(batch.failed_lines), 1)
        self.assertEqual(batch.failed_lines[0].display_text, '✗ Sugar, two, kg - Invalid quantity')

    def test_server_rejects_batch(self):
        gateway = StubGateway(batchImportItems=[TestDataFactory.success(
            {'success': False, 'message': 'Inventory sheet is locked'}
        )])
        batch = submit_batch('Flour, 10, kg', gateway)
        self.assertFalse(batch.success)
        self.assertFalse(batch.clear_buffer)
        self.assertEqual(batch.summary, 'Inventory sheet is locked')


class InventoryAPITests(TestCase):
    """Test the update and batch endpoints"""

    def setUp(self):
        self.client = APIClient()
        self.gateway = StubGateway()
        patcher = mock.patch('clippings.inventory.views.get_gateway', return_value=self.gateway)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_update_success(self):
        self.gateway.queue('updateInventory', TestDataFactory.success({'success': True, 'message': 'Updated Flour'}))
        data = flour_form(action='update', quantity=10)
        response = self.client.post('/api/v1/inventory/update/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['form']['quantity'], '1')

    def test_update_not_found(self):
        self.gateway.queue('updateInventory', TestDataFactory.success({'success': False, 'message': 'Item not found'}))
        response = self.client.post('/api/v1/inventory/update/', flour_form(action='subtract'), format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['message'], 'Item not found')
        self.assertEqual(response.data['form']['itemName'], 'Flour')

    def test_update_validation(self):
        response = self.client.post('/api/v1/inventory/update/', flour_form(action='add', itemName=''), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Please enter an item name.')
        self.assertEqual(self.gateway.calls, [])

    def test_update_remote_failure(self):
        self.gateway.queue('updateInventory', TestDataFactory.application_failure('Script error'))
        response = self.client.post('/api/v1/inventory/update/', flour_form(action='add'), format='json')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(response.data['message'], 'Error: Script error')

    def test_batch_partial_failure(self):
        self.gateway.queue('batchImportItems', TestDataFactory.success({
            'success': True,
            'summary': 'Imported 1 of 2 items',
            'results': [
                {'success': True, 'message': 'Added Flour'},
                {'success': False, 'line': 'Sugar, two, kg', 'message': 'Invalid quantity'},
            ],
        }))
        response = self.client.post('/api/v1/inventory/batch/', {'batchData': 'Flour, 10, kg\nSugar, two, kg'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['clear_buffer'])
        self.assertEqual(response.data['lines'][1]['display_text'], '✗ Sugar, two, kg - Invalid quantity')

    def test_batch_blank(self):
        response = self.client.post('/api/v1/inventory/batch/', {'batchData': ''}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['summary'], 'Please enter items to import.')


class BatchImportCommandTests(SimpleTestCase):
    """Test the batch_import management command"""

    def test_reads_stdin(self):
        gateway = StubGateway(batchImportItems=[TestDataFactory.success({
            'success': True,
            'summary': 'Imported 1 of 1 items',
            'results': [{'success': True, 'message': 'Added Flour'}],
        })])
        out = StringIO()
        with mock.patch('clippings.inventory.management.commands.batch_import.get_gateway', return_value=gateway):
            call_command('batch_import', '-', stdin=StringIO('Flour, 10, kg\n'), stdout=out)
        self.assertIn('Imported 1 of 1 items', out.getvalue())
        self.assertIn('✓ Added Flour', out.getvalue())

    def test_missing_file(self):
        with self.assertRaises(CommandError):
            call_command('batch_import', '/nonexistent/clippings-batch.txt', stdout=StringIO())
