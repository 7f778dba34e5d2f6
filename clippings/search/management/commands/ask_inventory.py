"""
Django management command to ask the inventory store a question from the shell
"""
from django.core.management.base import BaseCommand, CommandError

from clippings.core.gateway import ASK_INVENTORY, get_gateway
from clippings.search.display import InventoryDisplay, NoResults, render


class Command(BaseCommand):
    help = 'Search the remote inventory store and print the rendered answer'

    def add_arguments(self, parser):
        parser.add_argument('query', nargs='+', help='Search text')

    def handle(self, *args, **options):
        query = ' '.join(options['query']).strip()
        if not query:
            raise CommandError('Please enter a search term.')

        result = get_gateway().invoke(ASK_INVENTORY, query)
        if not result.ok:
            raise CommandError(f'Error: {result.message}')

        display = render(result.payload)

        if isinstance(display, NoResults):
            self.stdout.write(self.style.WARNING(display.message))
            return

        if getattr(display, 'title', None):
            self.stdout.write(self.style.SUCCESS(display.title))

        if isinstance(display, InventoryDisplay):
            for entry in display.entries:
                name = f'⚠️ {entry.item_name}' if entry.low_stock else entry.item_name
                line = f'{name}: {entry.quantity} {entry.unit}'
                if entry.location:
                    line += f' @ {entry.location}'
                self.stdout.write(line)
                if entry.notes:
                    self.stdout.write(f'    {entry.notes}')
        else:
            self.stdout.write(display.text)

        self.stdout.write(f'Source: {display.source_label}')
