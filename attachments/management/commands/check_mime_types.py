"""
Django management command checking that every emitted extension is served
back with the content type it was generated for.
"""
from django.core.management.base import BaseCommand, CommandError

from attachments.service.constants import EXTENSIONS
from attachments.service.errors import ConfigurationError
from attachments.service.naming import mime_type_for, verify_extension_table


class Command(BaseCommand):
    help = 'Verify the extension to MIME type table used when serving stored styles'

    def handle(self, *args, **options):
        for content_type, extension in EXTENSIONS.items():
            resolved = mime_type_for(extension)
            marker = '✓' if resolved == content_type else '✗'
            self.stdout.write(f'  {marker} {extension:<6} {content_type} -> {resolved}')

        try:
            verify_extension_table()
        except ConfigurationError as e:
            raise CommandError(str(e))

        self.stdout.write(self.style.SUCCESS('All extensions resolve to their content type'))
