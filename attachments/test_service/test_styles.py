"""
Tests for service/styles.py
"""

from unittest.mock import MagicMock

from django.test import SimpleTestCase

from attachments.service.codec import Codec, ProbeResult
from attachments.service.errors import CodecError
from attachments.service.styles import (
    PIPELINES,
    RenderedStyle,
    output_image_type,
    render_styles,
)
from attachments.tests.samples import (
    animated_bytes,
    audio_bytes,
    image_bytes,
    jpeg_bytes,
    requires_ffmpeg,
    video_bytes,
)


class StyleTableTest(SimpleTestCase):
    """Test the style table and output type rules"""

    def test_every_pipeline_has_original_first(self):
        for media_type, specs in PIPELINES.items():
            self.assertEqual(specs[0].name, 'original', media_type)
            self.assertEqual(specs[1].name, 'small', media_type)

    def test_only_cover_art_is_optional(self):
        optional = [(t, s.name) for t, specs in PIPELINES.items() for s in specs if s.optional]
        self.assertEqual(optional, [('audio', 'small')])

    def test_browser_formats_keep_their_type(self):
        for content_type in ('image/jpeg', 'image/png', 'image/gif', 'image/webp'):
            self.assertEqual(output_image_type(content_type), content_type)

    def test_other_stills_become_jpeg(self):
        self.assertEqual(output_image_type('image/heic'), 'image/jpeg')
        self.assertEqual(output_image_type('image/avif'), 'image/jpeg')

    def test_rendered_style_aspect(self):
        style = RenderedStyle('small', b'', 'image/png', width=588, height=392)
        self.assertEqual(style.aspect, 1.5)
        self.assertEqual(style.extension, '.png')


class RenderImageStylesTest(SimpleTestCase):
    """Still image styles only need Pillow"""

    def setUp(self):
        self.codec = Codec()

    def test_png_styles(self):
        styles = render_styles('image', image_bytes('PNG'), 'image/png', self.codec)

        self.assertEqual([s.name for s in styles], ['original', 'small'])
        original, small = styles
        self.assertEqual(original.content_type, 'image/png')
        self.assertEqual((original.width, original.height), (600, 400))
        self.assertEqual(small.content_type, 'image/png')
        self.assertEqual((small.width, small.height), (588, 392))
        self.assertIsNone(small.duration)

    def test_jpeg_styles(self):
        original, small = render_styles('image', jpeg_bytes(), 'image/jpeg', self.codec)
        self.assertEqual(original.content_type, 'image/jpeg')
        self.assertEqual(small.content_type, 'image/jpeg')
        self.assertEqual(small.aspect, 1.5)

    def test_webp_styles(self):
        original, small = render_styles('image', image_bytes('WEBP'), 'image/webp', self.codec)
        self.assertEqual(original.content_type, 'image/webp')
        self.assertEqual(small.content_type, 'image/webp')

    def test_log_messages(self):
        messages = []
        render_styles('image', image_bytes('PNG'), 'image/png', self.codec, logger=messages.append)
        self.assertTrue(any(m.startswith('Style original') for m in messages))
        self.assertTrue(any(m.startswith('Style small') for m in messages))


class RenderStylesFailureTest(SimpleTestCase):
    """One failing style fails the whole run"""

    def fake_codec(self):
        codec = MagicMock()
        codec.probe.return_value = ProbeResult(width=600, height=400)
        return codec

    def test_failure_is_raised(self):
        codec = self.fake_codec()
        codec.reencode_image.side_effect = CodecError('boom', operation='reencode')
        codec.resize.return_value = b'small'

        with self.assertRaises(CodecError) as ctx:
            render_styles('image', b'src', 'image/png', codec)
        self.assertEqual(ctx.exception.operation, 'reencode')

    def test_output_without_dimensions_fails(self):
        codec = MagicMock()
        codec.probe.side_effect = [
            ProbeResult(width=600, height=400),
            ProbeResult(),
            ProbeResult(),
        ]
        codec.reencode_image.return_value = b'original'
        codec.resize.return_value = b'small'

        with self.assertRaises(CodecError) as ctx:
            render_styles('image', b'src', 'image/png', codec, workers=1)
        self.assertIn('no dimensions', str(ctx.exception))

    def test_animated_still_output_fails(self):
        codec = MagicMock()
        codec.probe.side_effect = [
            ProbeResult(width=600, height=400),
            ProbeResult(width=600, height=400, animated=True),
            ProbeResult(width=588, height=392),
        ]
        codec.reencode_image.return_value = b'original'
        codec.resize.return_value = b'small'

        with self.assertRaises(CodecError) as ctx:
            render_styles('image', b'src', 'image/png', codec, workers=1)
        self.assertIn('animated', str(ctx.exception))

    def test_source_without_video_stream_fails(self):
        codec = MagicMock()
        codec.probe.return_value = ProbeResult(audio_codec='aac')

        with self.assertRaises(CodecError) as ctx:
            render_styles('video', b'src', 'video/mp4', codec)
        self.assertIn('no video stream', str(ctx.exception))

    def test_unknown_type_has_no_pipeline(self):
        with self.assertRaises(CodecError):
            render_styles('unknown', b'src', None, MagicMock())

    def test_audio_without_cover_art_skips_small(self):
        codec = MagicMock()
        codec.probe.side_effect = [
            ProbeResult(audio_codec='mp3', duration=2.0),
            ProbeResult(audio_codec='mp3', duration=2.0),
        ]
        codec.transcode.return_value = b'mp3'
        codec.extract_embedded_image.return_value = None

        styles = render_styles('audio', b'src', 'audio/mpeg', codec, workers=1)

        self.assertEqual([s.name for s in styles], ['original'])
        self.assertEqual(styles[0].content_type, 'audio/mpeg')
        self.assertEqual(styles[0].duration, 2.0)


@requires_ffmpeg
class RenderTimeBasedStylesTest(SimpleTestCase):
    """gifv, video and audio styles through the real ffmpeg"""

    def setUp(self):
        self.codec = Codec(timeout=120)

    def test_animated_gif(self):
        original, small = render_styles('gifv', animated_bytes('GIF'), 'image/gif', self.codec)

        self.assertEqual(original.content_type, 'video/mp4')
        self.assertEqual((original.width, original.height), (600, 400))
        # ffmpeg builds differ on whether the last frame delay counts
        self.assertGreaterEqual(original.duration, 2.0)
        self.assertLessEqual(original.duration, 3.1)
        self.assertIsNotNone(original.frame_rate)
        self.assertEqual(small.content_type, 'image/png')
        self.assertEqual((small.width, small.height), (600, 400))

    def test_animated_webp(self):
        original, small = render_styles('gifv', animated_bytes('WEBP'), 'image/webp', self.codec)
        self.assertEqual(original.content_type, 'video/mp4')
        self.assertEqual(small.content_type, 'image/png')

    def test_video(self):
        original, small = render_styles('video', video_bytes(), 'video/mp4', self.codec)

        self.assertEqual(original.content_type, 'video/mp4')
        self.assertEqual((original.width, original.height), (600, 400))
        self.assertEqual(original.frame_rate, '25/1')
        self.assertEqual(small.content_type, 'image/png')
        self.assertEqual((small.width, small.height), (600, 400))

    def test_audio_with_cover_art(self):
        source = audio_bytes(seconds=2, cover=image_bytes('PNG', size=(300, 300)))
        original, small = render_styles('audio', source, 'audio/mpeg', self.codec)

        self.assertEqual(original.content_type, 'audio/mpeg')
        self.assertAlmostEqual(original.duration, 2.0, delta=0.1)
        self.assertIsNone(original.width)
        self.assertEqual(small.content_type, 'image/png')
        self.assertEqual((small.width, small.height), (300, 300))

    def test_audio_without_cover_art(self):
        styles = render_styles('audio', audio_bytes(seconds=1), 'audio/mpeg', self.codec)
        self.assertEqual([s.name for s in styles], ['original'])
