"""
Tests for attachments/operations.py

Tests the attachment lifecycle as called from tasks and commands.
"""

import base64
import shutil
import tempfile
from pathlib import Path
from unittest.mock import patch

from django.core.exceptions import ValidationError
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import IntegrityError
from django.test import TestCase, override_settings

from attachments.models import MediaAttachment
from attachments.operations import (
    attach_fetched_media,
    create_media_attachment,
    destroy_media_attachment,
    register_remote_attachment,
)
from attachments.service.errors import CodecError
from attachments.tests.samples import (
    animated_bytes,
    audio_bytes,
    image_bytes,
    jpeg_bytes,
    requires_ffmpeg,
)


class StorageTestCase(TestCase):
    """Runs every test against a throwaway MEDIA_ROOT"""

    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.settings_override = override_settings(MEDIA_ROOT=self.media_root)
        self.settings_override.enable()

    def tearDown(self):
        self.settings_override.disable()
        shutil.rmtree(self.media_root, ignore_errors=True)

    def stored_files(self):
        return sorted(
            str(path.relative_to(self.media_root))
            for path in Path(self.media_root).rglob('*')
            if path.is_file()
        )


class CreateMediaAttachmentTest(StorageTestCase):
    """Test the create operation"""

    def test_png_upload(self):
        upload = SimpleUploadedFile('600x400.png', image_bytes('PNG'), content_type='image/png')

        attachment = create_media_attachment(upload)

        attachment.refresh_from_db()
        self.assertEqual(attachment.type, MediaAttachment.TYPE_IMAGE)
        self.assertEqual(attachment.processing, MediaAttachment.PROCESSING_COMPLETE)
        self.assertEqual(attachment.file_content_type, 'image/png')
        self.assertEqual(attachment.file_file_size, attachment.file.file_size)
        self.assertTrue(attachment.file_file_name.endswith('.png'))
        self.assertFalse(attachment.file_file_name.startswith('600x400'))
        self.assertEqual(attachment.file_meta['small']['size'], '588x392')
        self.assertEqual(attachment.file_meta['small']['aspect'], 1.5)
        self.assertEqual(len(attachment.blurhash), 36)
        self.assertTrue(attachment.local)

        self.assertEqual(list(attachment.style_map()), ['original', 'small'])
        for style in attachment.styles.all():
            self.assertTrue(default_storage.exists(style.file_name))
            self.assertTrue(style.file_name.startswith(f'media_attachments/{style.name}/'))

    def test_stored_bytes_match_style(self):
        attachment = create_media_attachment(jpeg_bytes())
        original = attachment.file
        with default_storage.open(original.file_name) as f:
            self.assertEqual(len(f.read()), original.file_size)
        self.assertEqual(original.extension, '.jpeg')
        self.assertEqual((original.width, original.height), (600, 400))

    def test_data_uri(self):
        uri = 'data:image/jpeg;base64,' + base64.b64encode(jpeg_bytes()).decode('ascii')
        attachment = create_media_attachment(uri)
        self.assertEqual(attachment.file_content_type, 'image/jpeg')
        self.assertTrue(attachment.file_file_name.endswith('.jpeg'))

    def test_shortcode_and_description(self):
        attachment = create_media_attachment(
            image_bytes('PNG'), shortcode='kitten', description='A red square', focus='0.5,0.5'
        )
        self.assertEqual(attachment.to_param(), 'kitten')
        self.assertEqual(attachment.description, 'A red square')
        self.assertEqual(attachment.file_meta['focus'], {'x': 0.5, 'y': 0.5})

    def test_missing_file(self):
        with self.assertRaises(ValidationError) as ctx:
            create_media_attachment(None)
        self.assertIn('file', ctx.exception.message_dict)
        self.assertEqual(MediaAttachment.objects.count(), 0)

    def test_unsupported_file(self):
        with self.assertRaises(ValidationError) as ctx:
            create_media_attachment(b'just some text')
        self.assertEqual(ctx.exception.error_dict['file'][0].code, 'unsupported')
        self.assertEqual(MediaAttachment.objects.count(), 0)
        self.assertEqual(self.stored_files(), [])

    def test_invalid_focus(self):
        with self.assertRaises(ValidationError) as ctx:
            create_media_attachment(image_bytes('PNG'), focus='3,3')
        self.assertIn('focus', ctx.exception.message_dict)

    def test_image_limit(self):
        data = image_bytes('PNG')
        with override_settings(MEDIAKIT_IMAGE_LIMIT=len(data)):
            with self.assertRaises(ValidationError) as ctx:
                create_media_attachment(data)
        self.assertEqual(ctx.exception.error_dict['file'][0].code, 'too_large')
        self.assertEqual(MediaAttachment.objects.count(), 0)

        with override_settings(MEDIAKIT_IMAGE_LIMIT=len(data) + 1):
            self.assertEqual(create_media_attachment(data).type, 'image')

    def test_codec_failure_persists_nothing(self):
        with patch('attachments.service.codec.Codec.resize', side_effect=CodecError('boom', operation='resize')):
            with self.assertRaises(CodecError):
                create_media_attachment(image_bytes('PNG'))
        self.assertEqual(MediaAttachment.objects.count(), 0)
        self.assertEqual(self.stored_files(), [])

    def test_database_failure_removes_new_blobs(self):
        create_media_attachment(image_bytes('PNG'), shortcode='taken')
        before = self.stored_files()

        with self.assertRaises(IntegrityError):
            create_media_attachment(image_bytes('PNG'), shortcode='taken')

        self.assertEqual(self.stored_files(), before)
        self.assertEqual(MediaAttachment.objects.count(), 1)

    def test_logger(self):
        messages = []
        create_media_attachment(image_bytes('PNG'), logger=messages.append)
        self.assertTrue(any(m.startswith('Stored original') for m in messages))
        self.assertTrue(any(m.startswith('Created attachment') for m in messages))

    @requires_ffmpeg
    def test_animated_gif(self):
        attachment = create_media_attachment(animated_bytes('GIF'))
        self.assertEqual(attachment.type, MediaAttachment.TYPE_GIFV)
        self.assertEqual(attachment.file_content_type, 'video/mp4')
        self.assertTrue(attachment.file_file_name.endswith('.mp4'))
        self.assertEqual(attachment.thumbnail.content_type, 'image/png')

    @requires_ffmpeg
    def test_audio_without_cover(self):
        attachment = create_media_attachment(audio_bytes())
        self.assertEqual(attachment.type, MediaAttachment.TYPE_AUDIO)
        self.assertEqual(attachment.file_content_type, 'audio/mpeg')
        self.assertIsNone(attachment.thumbnail)
        self.assertEqual(attachment.blurhash, '')


class RemoteAttachmentTest(StorageTestCase):
    """Test remote registration and fetched media"""

    def test_register(self):
        attachment = register_remote_attachment('https://example.com/cat.png', shortcode='remote1')
        self.assertFalse(attachment.local)
        self.assertTrue(attachment.needs_redownload)
        self.assertEqual(attachment.processing, MediaAttachment.PROCESSING_QUEUED)
        self.assertEqual(attachment.type, MediaAttachment.TYPE_UNKNOWN)

    def test_register_requires_url(self):
        with self.assertRaises(ValidationError):
            register_remote_attachment('  ')

    def test_attach_fetched_media(self):
        attachment = register_remote_attachment('https://example.com/cat.png')

        attach_fetched_media(attachment, image_bytes('PNG'), filename='cat.png')

        attachment.refresh_from_db()
        self.assertFalse(attachment.needs_redownload)
        self.assertTrue(attachment.processing_complete)
        self.assertEqual(attachment.remote_url, 'https://example.com/cat.png')

    def test_attach_failure_marks_failed(self):
        attachment = register_remote_attachment('https://example.com/cat.png')

        with self.assertRaises(ValidationError):
            attach_fetched_media(attachment, b'<html>not found</html>')

        attachment.refresh_from_db()
        self.assertEqual(attachment.processing, MediaAttachment.PROCESSING_FAILED)
        self.assertTrue(attachment.needs_redownload)

    def test_reprocessing_replaces_styles_after_commit(self):
        attachment = register_remote_attachment('https://example.com/cat.png')
        attach_fetched_media(attachment, image_bytes('PNG'), focus='0.1,0.1')
        old_files = self.stored_files()

        with self.captureOnCommitCallbacks(execute=True):
            attach_fetched_media(attachment, jpeg_bytes())

        attachment.refresh_from_db()
        self.assertEqual(attachment.file_content_type, 'image/jpeg')
        self.assertEqual(attachment.file_meta['focus'], {'x': 0.1, 'y': 0.1})
        self.assertEqual(attachment.styles.count(), 2)
        new_files = self.stored_files()
        self.assertEqual(len(new_files), 2)
        self.assertFalse(set(old_files) & set(new_files))

    def test_failed_reprocessing_keeps_complete_state(self):
        attachment = register_remote_attachment('https://example.com/cat.png')
        attach_fetched_media(attachment, image_bytes('PNG'))

        with self.assertRaises(ValidationError):
            attach_fetched_media(attachment, b'garbage')

        attachment.refresh_from_db()
        self.assertTrue(attachment.processing_complete)
        self.assertEqual(attachment.file_content_type, 'image/png')


class DestroyMediaAttachmentTest(StorageTestCase):
    """Test destroy and blob cleanup"""

    def test_destroy_removes_blobs_on_commit(self):
        attachment = create_media_attachment(image_bytes('PNG'))
        paths = [style.file_name for style in attachment.styles.all()]

        with self.captureOnCommitCallbacks(execute=True):
            scheduled = destroy_media_attachment(attachment)

        self.assertEqual(sorted(scheduled), sorted(paths))
        self.assertEqual(MediaAttachment.objects.count(), 0)
        self.assertEqual(self.stored_files(), [])

    def test_bulk_delete_removes_blobs(self):
        create_media_attachment(image_bytes('PNG'))
        create_media_attachment(jpeg_bytes())

        with self.captureOnCommitCallbacks(execute=True):
            MediaAttachment.objects.all().delete()

        self.assertEqual(self.stored_files(), [])

    def test_blobs_kept_until_commit(self):
        attachment = create_media_attachment(image_bytes('PNG'))

        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            destroy_media_attachment(attachment)

        self.assertEqual(len(self.stored_files()), 2)
        self.assertEqual(len(callbacks), 1)
