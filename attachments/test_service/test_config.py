"""
Tests for service/config.py
"""

from django.test import SimpleTestCase, override_settings

from attachments.service import config
from attachments.service.codec import Codec, shared_codec


class ConfigTest(SimpleTestCase):
    """Test the settings adapter"""

    def test_default_limits(self):
        limits = config.get_processing_limits()
        self.assertEqual(limits.image_limit, 16 * 1024 * 1024)
        self.assertEqual(limits.video_limit, 99 * 1024 * 1024)

    @override_settings(MEDIAKIT_IMAGE_LIMIT='2048', MEDIAKIT_VIDEO_LIMIT=4096)
    def test_overridden_limits(self):
        limits = config.get_processing_limits()
        self.assertEqual(limits.image_limit, 2048)
        self.assertEqual(limits.video_limit, 4096)

    @override_settings(MEDIAKIT_CODEC_CONCURRENCY=0, MEDIAKIT_STYLE_WORKERS=-3)
    def test_worker_counts_have_a_floor(self):
        self.assertEqual(config.get_codec_concurrency(), 1)
        self.assertEqual(config.get_style_workers(), 1)

    @override_settings(MEDIAKIT_STORAGE_PREFIX='/uploads/')
    def test_storage_prefix_is_stripped(self):
        self.assertEqual(config.get_storage_prefix(), 'uploads')

    @override_settings(
        MEDIAKIT_FFMPEG_BINARY='/opt/ffmpeg/bin/ffmpeg',
        MEDIAKIT_FFPROBE_BINARY='/opt/ffmpeg/bin/ffprobe',
        MEDIAKIT_CODEC_TIMEOUT='12.5',
    )
    def test_codec_from_settings(self):
        codec = Codec.from_settings()
        self.assertEqual(codec.ffmpeg_binary, '/opt/ffmpeg/bin/ffmpeg')
        self.assertEqual(codec.ffprobe_binary, '/opt/ffmpeg/bin/ffprobe')
        self.assertEqual(codec.timeout, 12.5)

    def test_shared_codec_is_reused(self):
        self.assertIs(shared_codec(), shared_codec())

    def test_shared_codec_follows_settings(self):
        codec = shared_codec()
        with override_settings(MEDIAKIT_CODEC_TIMEOUT=7):
            self.assertIsNot(shared_codec(), codec)
            self.assertEqual(shared_codec().timeout, 7)
