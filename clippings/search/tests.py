"""
Test suite for the search response interpreter
Tests: inventory line grammar, fallbacks, source labels, search API, CLI
"""
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase, TestCase
from rest_framework import status
from rest_framework.test import APIClient

from clippings.core.test_utils import StubGateway, TestDataFactory
from clippings.search.display import (
    InventoryDisplay, InventoryLine, NoResults, PreformattedDisplay, TextDisplay,
    parse_inventory_line, render
)


class InventoryLineGrammarTests(SimpleTestCase):
    """Test parsing of single inventory answer lines"""

    def test_full_line(self):
        """Test the documented Flour example"""
        entry = parse_inventory_line('• Flour: Quantity: 10 kg Location: Pantry Notes: bulk bag')
        self.assertEqual(entry, InventoryLine(
            item_name='Flour', quantity=10, unit='kg',
            location='Pantry', notes='bulk bag', low_stock=False,
        ))

    def test_low_stock_glyph(self):
        entry = parse_inventory_line('⚠️ Sugar: Quantity: 2 bags Location: Shelf 3')
        self.assertEqual(entry.item_name, 'Sugar')
        self.assertEqual(entry.quantity, 2)
        self.assertEqual(entry.unit, 'bags')
        self.assertEqual(entry.location, 'Shelf 3')
        self.assertIsNone(entry.notes)
        self.assertTrue(entry.low_stock)

    def test_location_stops_at_next_bullet(self):
        entry = parse_inventory_line('• Rice: Quantity: 4 kg • Location: Cellar • Notes: basmati')
        self.assertEqual(entry.location, 'Cellar')
        self.assertEqual(entry.notes, 'basmati')

    def test_bullet_is_optional(self):
        entry = parse_inventory_line('Oats: Quantity: 7 kg')
        self.assertEqual(entry.item_name, 'Oats')
        self.assertIsNone(entry.location)

    def test_other_bullets(self):
        self.assertEqual(parse_inventory_line('✓ Salt: Quantity: 1 box').item_name, 'Salt')
        self.assertEqual(parse_inventory_line('✗ Yeast: Quantity: 0 packs').quantity, 0)

    def test_numbered_bullet_line(self):
        """Test list numbering before the bullet is not part of the name"""
        entry = parse_inventory_line('1. • Flour: Quantity: 10 kg Location: Pantry')
        self.assertEqual(entry.item_name, 'Flour')
        self.assertEqual(entry.quantity, 10)
        self.assertEqual(entry.location, 'Pantry')
        self.assertEqual(parse_inventory_line('2. ⚠️ Sugar: Quantity: 2 kg').item_name, 'Sugar')

    def test_line_without_marker(self):
        self.assertIsNone(parse_inventory_line('Here is what I found:'))

    def test_non_integer_quantity_skipped(self):
        self.assertIsNone(parse_inventory_line('• Milk: Quantity: 2.5 litres'))


class RenderTests(SimpleTestCase):
    """Test render() for each source"""

    def test_none_is_no_results(self):
        self.assertIsInstance(render(None), NoResults)

    def test_empty_mapping_is_no_results(self):
        self.assertIsInstance(render({}), NoResults)

    def test_empty_answer_is_no_results(self):
        self.assertIsInstance(render({'answer': '', 'source': 'inventory'}), NoResults)

    def test_inventory_entries_match_line_count(self):
        """Test every matching line becomes one entry"""
        answer = '\n'.join([
            'Found 3 items:',
            '',
            '• Flour: Quantity: 10 kg Location: Pantry',
            '⚠️ Sugar: Quantity: 2 kg Location: Pantry Notes: reorder',
            '• Eggs: Quantity: 24 pcs',
        ])
        display = render({'answer': answer, 'source': 'inventory'})
        self.assertIsInstance(display, InventoryDisplay)
        self.assertEqual(len(display.entries), 3)
        self.assertEqual([e.item_name for e in display.entries], ['Flour', 'Sugar', 'Eggs'])
        self.assertEqual(display.source_label, 'Inventory Database')

    def test_inventory_fallback_is_verbatim(self):
        """Test an answer with no matching line is shown as-is"""
        answer = 'No items matched "flour".\nTry another spelling.'
        display = render({'answer': answer, 'source': 'inventory'})
        self.assertEqual(display, PreformattedDisplay(text=answer, source_label='Inventory Database'))

    def test_fallback_is_idempotent(self):
        answer = 'Quantity: unknown'
        self.assertEqual(render({'answer': answer, 'source': 'inventory'}),
                         render({'answer': answer, 'source': 'inventory'}))

    def test_trucks(self):
        answer = 'Truck 12: in service\nTruck 14: maintenance'
        display = render({'answer': answer, 'source': 'trucks'})
        self.assertIsInstance(display, PreformattedDisplay)
        self.assertEqual(display.text, answer)
        self.assertEqual(display.title, 'Fleet Information')
        self.assertEqual(display.source_label, 'Fleet Database')

    def test_text_sources(self):
        cases = {
            'knowledge': 'Knowledge Base',
            'ai': 'AI Assistant',
            'unknown': 'System',
            None: 'System',
        }
        for source, label in cases.items():
            with self.subTest(source=source):
                display = render({'answer': 'Store flour cool and dry.', 'source': source})
                self.assertEqual(display, TextDisplay(text='Store flour cool and dry.', source_label=label))


class SearchAPITests(TestCase):
    """Test the search endpoint"""

    def setUp(self):
        self.client = APIClient()
        self.gateway = StubGateway()
        patcher = mock.patch('clippings.search.views.get_gateway', return_value=self.gateway)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_search_inventory(self):
        self.gateway.queue('askInventory', TestDataFactory.success({
            'answer': '• Flour: Quantity: 10 kg Location: Pantry Notes: bulk bag',
            'source': 'inventory',
        }))
        response = self.client.post('/api/v1/search/', {'query': ' flour '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['kind'], 'inventory')
        self.assertEqual(response.data['entries'][0]['item_name'], 'Flour')
        self.assertEqual(response.data['entries'][0]['location'], 'Pantry')
        self.assertEqual(self.gateway.called('askInventory'), ['flour'])

    def test_search_no_results(self):
        self.gateway.queue('askInventory', TestDataFactory.success(None))
        response = self.client.post('/api/v1/search/', {'query': 'unicorn'}, format='json')
        self.assertEqual(response.data['kind'], 'no_results')

    def test_blank_query_never_calls_remote(self):
        response = self.client.post('/api/v1/search/', {'query': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['query'][0], 'Please enter a search term.')
        self.assertEqual(self.gateway.calls, [])

    def test_remote_failure(self):
        self.gateway.queue('askInventory', TestDataFactory.transport_failure('Request timed out. Please try again.'))
        response = self.client.post('/api/v1/search/', {'query': 'flour'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(response.data['error'], 'Error: Request timed out. Please try again.')


class AskInventoryCommandTests(SimpleTestCase):
    """Test the ask_inventory management command"""

    def run_command(self, gateway, *args):
        out = StringIO()
        with mock.patch('clippings.search.management.commands.ask_inventory.get_gateway', return_value=gateway):
            call_command('ask_inventory', *args, stdout=out)
        return out.getvalue()

    def test_prints_inventory_entries(self):
        gateway = StubGateway(askInventory=[TestDataFactory.success({
            'answer': '⚠️ Sugar: Quantity: 2 kg Location: Pantry',
            'source': 'inventory',
        })])
        output = self.run_command(gateway, 'sugar')
        self.assertIn('Sugar: 2 kg @ Pantry', output)
        self.assertIn('Source: Inventory Database', output)

    def test_failure_raises_command_error(self):
        gateway = StubGateway(askInventory=[TestDataFactory.application_failure('Sheet not found')])
        with self.assertRaises(CommandError):
            self.run_command(gateway, 'sugar')
