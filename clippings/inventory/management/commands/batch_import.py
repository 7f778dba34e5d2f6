"""
Django management command to batch-import inventory lines from a text file
"""
import sys

from django.core.management.base import BaseCommand, CommandError

from clippings.core.gateway import get_gateway
from clippings.inventory.submission import submit_batch


class Command(BaseCommand):
    help = 'Submit a text file (one item per line) as a single batch import'
    stealth_options = ('stdin',)

    def add_arguments(self, parser):
        parser.add_argument('path', help='Text file with one item per line, or - for stdin')

    def handle(self, *args, **options):
        path = options['path']
        if path == '-':
            raw_text = options.get('stdin', sys.stdin).read()
        else:
            try:
                with open(path, encoding='utf-8') as fh:
                    raw_text = fh.read()
            except OSError as e:
                raise CommandError(f'Cannot read {path}: {e}')

        batch = submit_batch(raw_text, get_gateway())
        if not batch.success:
            raise CommandError(batch.summary)

        self.stdout.write(self.style.SUCCESS(batch.summary))
        for line in batch.lines:
            style = self.style.SUCCESS if line.success else self.style.ERROR
            self.stdout.write(style(line.display_text))

        if batch.failed_lines:
            self.stdout.write(self.style.WARNING(
                f'{len(batch.failed_lines)} line(s) failed; fix them and run the import again.'
            ))
