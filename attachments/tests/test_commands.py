"""
Tests for the process_media and check_mime_types management commands
"""

import json
import shutil
import tempfile
from io import StringIO
from pathlib import Path
from unittest.mock import patch

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, override_settings

from attachments.models import MediaAttachment
from attachments.service.errors import ConfigurationError
from attachments.tests.samples import image_bytes


class ProcessMediaCommandTest(TestCase):
    """Test the process_media command"""

    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        self.settings_override = override_settings(MEDIA_ROOT=str(Path(self.tmp_dir) / 'media'))
        self.settings_override.enable()
        self.png_path = Path(self.tmp_dir) / 'cat.png'
        self.png_path.write_bytes(image_bytes('PNG'))

    def tearDown(self):
        self.settings_override.disable()
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def test_human_output(self):
        out = StringIO()
        call_command('process_media', str(self.png_path), stdout=out)

        output = out.getvalue()
        self.assertIn('Processing complete', output)
        self.assertIn('Type: image', output)
        self.assertEqual(MediaAttachment.objects.count(), 1)

    def test_json_output(self):
        out = StringIO()
        call_command(
            'process_media', str(self.png_path), '--json', '--shortcode', 'cli1', '--focus', '0,0',
            stdout=out,
        )

        result = json.loads(out.getvalue())
        self.assertTrue(result['success'])
        self.assertEqual(result['param'], 'cli1')
        self.assertEqual(result['type'], 'image')
        self.assertEqual(result['content_type'], 'image/png')
        self.assertEqual(sorted(result['styles']), ['original', 'small'])
        self.assertEqual(result['meta']['focus'], {'x': 0.0, 'y': 0.0})

    def test_remote_url(self):
        call_command(
            'process_media', str(self.png_path), '--remote-url', 'https://example.com/cat.png',
            stdout=StringIO(),
        )
        attachment = MediaAttachment.objects.get()
        self.assertFalse(attachment.local)
        self.assertFalse(attachment.needs_redownload)

    def test_verbose_forwards_service_log(self):
        out = StringIO()
        call_command('process_media', str(self.png_path), '--verbose', stdout=out)
        self.assertIn('State: created -> classified', out.getvalue())

    def test_dry_run(self):
        out = StringIO()
        call_command('process_media', str(self.png_path), '--dry-run', '--json', stdout=out)

        result = json.loads(out.getvalue())
        self.assertTrue(result['dry_run'])
        self.assertEqual(result['type'], 'image')
        self.assertEqual(result['content_type'], 'image/png')
        self.assertEqual(MediaAttachment.objects.count(), 0)

    def test_unsupported_file(self):
        text_path = Path(self.tmp_dir) / 'notes.txt'
        text_path.write_text('not media')

        with self.assertRaises(CommandError) as ctx:
            call_command('process_media', str(text_path), stdout=StringIO())
        self.assertIn('file:', str(ctx.exception))

    def test_unsupported_file_json(self):
        text_path = Path(self.tmp_dir) / 'notes.txt'
        text_path.write_text('not media')
        out = StringIO()

        with self.assertRaises(SystemExit):
            call_command('process_media', str(text_path), '--json', stdout=out)
        self.assertFalse(json.loads(out.getvalue())['success'])

    def test_dry_run_too_large(self):
        with override_settings(MEDIAKIT_IMAGE_LIMIT=10):
            with self.assertRaises(CommandError) as ctx:
                call_command('process_media', str(self.png_path), '--dry-run', stdout=StringIO())
        self.assertIn('too large', str(ctx.exception))

    def test_missing_path(self):
        with self.assertRaises(CommandError):
            call_command('process_media', str(Path(self.tmp_dir) / 'missing.png'), stdout=StringIO())


class CheckMimeTypesCommandTest(TestCase):
    """Test the check_mime_types command"""

    def test_table_is_consistent(self):
        out = StringIO()
        call_command('check_mime_types', stdout=out)
        self.assertIn('.jpeg', out.getvalue())
        self.assertIn('All extensions resolve', out.getvalue())

    def test_mismatch_fails(self):
        with patch(
            'attachments.management.commands.check_mime_types.verify_extension_table',
            side_effect=ConfigurationError('Extension .mp4 resolves to None'),
        ):
            with self.assertRaises(CommandError):
                call_command('check_mime_types', stdout=StringIO())
