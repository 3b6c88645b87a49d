"""
Codec adapter.

Thin capability layer over ffmpeg/ffprobe and Pillow: probe, resize,
re-encode, transcode, frame and cover art extraction, dominant color.

Every external invocation runs under a timeout and a bounded semaphore, so a
single adapter can be shared by concurrently processed attachments.
"""
import io
import json
import math
import subprocess
import tempfile
import threading
from dataclasses import dataclass
from fractions import Fraction
from functools import lru_cache
from pathlib import Path
from typing import Optional

from PIL import Image, ImageOps, ImageSequence, UnidentifiedImageError
from pillow_heif import register_heif_opener

from attachments.service.constants import (
    GIFV_MAX_FRAMES,
    TARGET_MP3,
    TARGET_MP4,
    TYPE_GIFV,
    TYPE_IMAGE,
)
from attachments.service.errors import CodecError

register_heif_opener()

EXIF_ORIENTATION = 0x0112
TRANSPOSED_ORIENTATIONS = {5, 6, 7, 8}

EVEN_DIMENSIONS_FILTER = "scale='trunc(iw/2)*2:trunc(ih/2)*2'"

SAVE_OPTIONS = {
    'JPEG': {'quality': 90, 'optimize': True},
    'PNG': {'optimize': True},
    'WEBP': {'quality': 90},
    'GIF': {},
}


@dataclass
class ProbeResult:
    """Measured properties of a blob"""
    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[float] = None
    frame_rate: Optional[str] = None
    video_codec: Optional[str] = None
    audio_codec: Optional[str] = None
    format_name: Optional[str] = None
    attached_picture_index: Optional[int] = None
    animated: bool = False

    @property
    def has_video(self):
        return self.video_codec is not None

    @property
    def has_audio(self):
        return self.audio_codec is not None

    @property
    def has_dimensions(self):
        return bool(self.width) and bool(self.height)


def fit_within(width, height, max_width, max_height):
    """
    Scale dimensions down to fit a bounding box, keeping aspect ratio.

    Never upscales.

    Returns:
        tuple[int, int]
    """
    scale = min(max_width / width, max_height / height, 1.0)
    if scale >= 1.0:
        return width, height
    return max(1, round(width * scale)), max(1, round(height * scale))


def fit_pixels(width, height, pixels):
    """
    Scale dimensions down to an area budget, keeping aspect ratio.

    600x400 with a 640x360 budget gives 588x392.

    Returns:
        tuple[int, int]
    """
    if width * height <= pixels:
        return width, height
    new_width = max(1, round(math.sqrt(pixels * width / height)))
    new_height = max(1, round(new_width * height / width))
    return new_width, new_height


def normalize_frame_rate(value):
    """
    Normalize an ffprobe rational such as '30000/1001' or '2/2'.

    Returns:
        str | None: Reduced 'num/den' string, None for '0/0' or garbage
    """
    if not value:
        return None
    try:
        num, _, den = str(value).partition('/')
        rate = Fraction(int(num), int(den or 1))
    except (ValueError, ZeroDivisionError):
        return None
    if rate <= 0:
        return None
    return f'{rate.numerator}/{rate.denominator}'


def parse_ffprobe_output(payload):
    """
    Build a ProbeResult from ffprobe's JSON output.

    Args:
        payload: dict parsed from `ffprobe -print_format json -show_format -show_streams`

    Returns:
        ProbeResult
    """
    result = ProbeResult()
    fmt = payload.get('format', {}) or {}
    result.format_name = fmt.get('format_name')

    duration = fmt.get('duration')
    if duration is not None:
        try:
            result.duration = float(duration)
        except (TypeError, ValueError):
            result.duration = None

    for stream in payload.get('streams', []) or []:
        codec_type = stream.get('codec_type')
        disposition = stream.get('disposition', {}) or {}

        if codec_type == 'video' and disposition.get('attached_pic'):
            if result.attached_picture_index is None:
                result.attached_picture_index = stream.get('index')
            continue

        if codec_type == 'video' and result.video_codec is None:
            result.video_codec = stream.get('codec_name')
            result.width = stream.get('width')
            result.height = stream.get('height')
            result.frame_rate = (
                normalize_frame_rate(stream.get('avg_frame_rate'))
                or normalize_frame_rate(stream.get('r_frame_rate'))
            )
            if result.duration is None and stream.get('duration') is not None:
                result.duration = float(stream['duration'])
        elif codec_type == 'audio' and result.audio_codec is None:
            result.audio_codec = stream.get('codec_name')

    return result


class Codec:
    """ffmpeg/ffprobe/Pillow backed codec capability"""

    def __init__(self, ffmpeg_binary='ffmpeg', ffprobe_binary='ffprobe', timeout=60, concurrency=4):
        self.ffmpeg_binary = ffmpeg_binary
        self.ffprobe_binary = ffprobe_binary
        self.timeout = timeout
        self._slots = threading.BoundedSemaphore(concurrency)

    @classmethod
    def from_settings(cls):
        """Build a codec from Django settings"""
        from attachments.service import config

        return cls(
            ffmpeg_binary=config.get_ffmpeg_binary(),
            ffprobe_binary=config.get_ffprobe_binary(),
            timeout=config.get_codec_timeout(),
            concurrency=config.get_codec_concurrency(),
        )

    # External processes

    def _run(self, args, operation):
        """
        Run an external codec command.

        Raises:
            CodecError: On timeout, missing binary or non-zero exit
        """
        with self._slots:
            try:
                result = subprocess.run(args, capture_output=True, timeout=self.timeout)
            except subprocess.TimeoutExpired:
                raise CodecError(f'timed out after {self.timeout:g}s', operation=operation)
            except FileNotFoundError:
                raise CodecError(f'{args[0]} is not installed', operation=operation)

        if result.returncode != 0:
            stderr = result.stderr.decode('utf-8', 'replace')[-2000:]
            raise CodecError(
                f'{Path(args[0]).name} failed with code {result.returncode}',
                operation=operation,
                stderr=stderr,
            )
        return result

    def _ffmpeg(self, data, output_name, output_args, operation):
        """Run ffmpeg over a blob and return the produced bytes"""
        with tempfile.TemporaryDirectory(prefix='mediakit-') as tmp_dir:
            input_path = Path(tmp_dir) / 'input'
            output_path = Path(tmp_dir) / output_name
            input_path.write_bytes(data)

            cmd = [
                self.ffmpeg_binary,
                '-nostdin',
                '-loglevel', 'error',
                '-y',
                '-i', str(input_path),
            ] + output_args + [str(output_path)]
            self._run(cmd, operation)

            if not output_path.exists() or output_path.stat().st_size == 0:
                raise CodecError('produced no output', operation=operation)
            return output_path.read_bytes()

    def _ffprobe(self, data):
        with tempfile.TemporaryDirectory(prefix='mediakit-') as tmp_dir:
            input_path = Path(tmp_dir) / 'input'
            input_path.write_bytes(data)
            result = self._run(
                [
                    self.ffprobe_binary,
                    '-v', 'error',
                    '-print_format', 'json',
                    '-show_format',
                    '-show_streams',
                    str(input_path),
                ],
                'probe',
            )

        try:
            payload = json.loads(result.stdout)
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise CodecError('unparseable ffprobe output', operation='probe')
        return parse_ffprobe_output(payload)

    # Pillow helpers

    def _open_image(self, data, operation):
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
            raise CodecError(f'cannot decode image ({e})', operation=operation)
        return image

    def _encode_image(self, image, output_format):
        if output_format == 'JPEG' and image.mode not in ('RGB', 'L', 'CMYK'):
            image = flatten(image)
        elif output_format == 'WEBP' and image.mode not in ('RGB', 'RGBA'):
            image = image.convert('RGBA' if has_alpha(image) else 'RGB')

        options = dict(SAVE_OPTIONS.get(output_format, {}))
        icc_profile = image.info.get('icc_profile')
        if icc_profile and output_format != 'GIF':
            options['icc_profile'] = icc_profile

        buffer = io.BytesIO()
        image.save(buffer, format=output_format, **options)
        return buffer.getvalue()

    # Capabilities

    def probe(self, data, content_type):
        """
        Measure a blob.

        Still images are measured with Pillow, everything else with ffprobe.

        Args:
            data: Blob bytes
            content_type: Content type of the blob

        Returns:
            ProbeResult
        """
        if content_type and content_type.startswith('image/'):
            image = self._open_image(data, 'probe')
            with image:
                frames = getattr(image, 'n_frames', 1)
                width, height = image.size
                # Report dimensions as displayed after EXIF orientation
                if image.getexif().get(EXIF_ORIENTATION) in TRANSPOSED_ORIENTATIONS:
                    width, height = height, width
                return ProbeResult(width=width, height=height, animated=frames > 1)
        return self._ffprobe(data)

    def reencode_image(self, data, output_format):
        """
        Re-encode a still image, applying EXIF orientation and dropping metadata.

        Args:
            data: Source image bytes
            output_format: Pillow format name ('JPEG', 'PNG', 'GIF', 'WEBP')

        Returns:
            bytes
        """
        image = self._open_image(data, 'reencode')
        with image:
            oriented = ImageOps.exif_transpose(image)
            return self._encode_image(oriented, output_format)

    def resize(self, data, max_width, max_height, output_format):
        """
        Downscale a still image to fit a bounding box.

        Returns:
            bytes
        """
        image = self._open_image(data, 'resize')
        with image:
            oriented = ImageOps.exif_transpose(image)
            # Palette and bilevel images cannot be resampled with LANCZOS
            if oriented.mode == 'P':
                oriented = oriented.convert('RGBA' if has_alpha(oriented) else 'RGB')
            elif oriented.mode == '1':
                oriented = oriented.convert('L')
            size = fit_within(oriented.width, oriented.height, max_width, max_height)
            if size != oriented.size:
                oriented = oriented.resize(size, Image.Resampling.LANCZOS)
            return self._encode_image(oriented, output_format)

    def transcode(self, data, target, media_type, source_probe=None, source_type=None):
        """
        Transcode or remux a time-based blob into a target container.

        Args:
            data: Source bytes
            target: TARGET_MP4 or TARGET_MP3
            media_type: Classified type of the source
            source_probe: ProbeResult of the source, used to pick stream copy
            source_type: Sniffed content type of the source

        Returns:
            bytes
        """
        if target == TARGET_MP4:
            if media_type == TYPE_GIFV:
                if source_type == 'image/webp':
                    data = self._animated_to_apng(data)
                return self._ffmpeg(data, 'output.mp4', gifv_args(), 'transcode')
            return self._ffmpeg(data, 'output.mp4', video_args(source_probe), 'transcode')

        if target == TARGET_MP3:
            return self._ffmpeg(data, 'output.mp3', audio_args(source_probe), 'transcode')

        raise CodecError(f'unsupported target {target!r}', operation='transcode')

    def extract_frame(self, data, media_type):
        """
        Extract the first frame of an animation or video as PNG.

        Returns:
            bytes
        """
        if media_type in (TYPE_GIFV, TYPE_IMAGE):
            image = self._open_image(data, 'extract_frame')
            with image:
                image.seek(0)
                frame = image.convert('RGBA' if has_alpha(image) else 'RGB')
                return self._encode_image(frame, 'PNG')

        return self._ffmpeg(
            data,
            'frame.png',
            ['-map', '0:v:0', '-frames:v', '1', '-c:v', 'png', '-f', 'image2'],
            'extract_frame',
        )

    def extract_embedded_image(self, data, source_probe=None):
        """
        Extract embedded cover art from an audio file.

        Returns:
            bytes | None: PNG bytes, None when the file carries no picture
        """
        probe = source_probe or self._ffprobe(data)
        if probe.attached_picture_index is None:
            return None
        return self._ffmpeg(
            data,
            'cover.png',
            ['-map', f'0:{probe.attached_picture_index}', '-frames:v', '1', '-c:v', 'png', '-f', 'image2'],
            'extract_embedded_image',
        )

    def dominant_color(self, data):
        """
        Find the dominant color of an image.

        Deterministic: a fixed downscale followed by median-cut quantization.

        Returns:
            str: '#rrggbb'
        """
        image = self._open_image(data, 'dominant_color')
        with image:
            rgb = flatten(image) if has_alpha(image) else image.convert('RGB')
            rgb.thumbnail((64, 64), Image.Resampling.BILINEAR)
            quantized = rgb.quantize(colors=8, method=Image.Quantize.MEDIANCUT)
            palette = quantized.getpalette()
            _count, index = sorted(quantized.getcolors(), key=lambda c: (-c[0], c[1]))[0]
            red, green, blue = palette[index * 3:index * 3 + 3]
            return f'#{red:02x}{green:02x}{blue:02x}'

    def _animated_to_apng(self, data):
        """Convert an animation ffmpeg cannot demux (animated WebP) to APNG"""
        image = self._open_image(data, 'transcode')
        with image:
            frames = []
            durations = []
            for frame in ImageSequence.Iterator(image):
                frames.append(frame.convert('RGBA'))
                durations.append(frame.info.get('duration', 100) or 100)

        buffer = io.BytesIO()
        frames[0].save(
            buffer,
            format='PNG',
            save_all=True,
            append_images=frames[1:],
            duration=durations,
            loop=0,
        )
        return buffer.getvalue()


@lru_cache(maxsize=None)
def _codec_for(ffmpeg_binary, ffprobe_binary, timeout, concurrency):
    return Codec(ffmpeg_binary, ffprobe_binary, timeout, concurrency)


def shared_codec():
    """
    Get the process-wide codec for the current settings.

    Attachments processed by the same process share one adapter, so the
    concurrency bound applies to all of them together.
    """
    from attachments.service import config

    return _codec_for(
        config.get_ffmpeg_binary(),
        config.get_ffprobe_binary(),
        config.get_codec_timeout(),
        config.get_codec_concurrency(),
    )


def has_alpha(image):
    return image.mode in ('RGBA', 'LA', 'PA') or (
        image.mode == 'P' and 'transparency' in image.info
    )


def flatten(image, background=(255, 255, 255)):
    """Composite an image onto a solid background and return RGB"""
    if not has_alpha(image):
        return image.convert('RGB')
    rgba = image.convert('RGBA')
    canvas = Image.new('RGB', rgba.size, background)
    canvas.paste(rgba, mask=rgba.getchannel('A'))
    return canvas


def gifv_args():
    """ffmpeg output arguments for animated rasters: silent, constant-rate H.264"""
    return [
        '-an',
        '-map_metadata', '-1',
        '-movflags', '+faststart',
        '-pix_fmt', 'yuv420p',
        '-vf', EVEN_DIMENSIONS_FILTER,
        '-fps_mode', 'cfr',
        '-c:v', 'h264',
        '-crf', '18',
        '-maxrate', '1300K',
        '-bufsize', '1300K',
        '-frames:v', str(GIFV_MAX_FRAMES),
    ]


def can_copy_video(probe):
    """H.264 in an MP4 container with AAC or no audio is served as-is"""
    if probe is None or probe.video_codec != 'h264':
        return False
    if not probe.format_name or 'mp4' not in probe.format_name:
        return False
    return probe.audio_codec in (None, 'aac')


def video_args(probe=None):
    """ffmpeg output arguments for video"""
    if can_copy_video(probe):
        return [
            '-map', '0:v:0',
            '-map', '0:a:0?',
            '-c', 'copy',
            '-map_metadata', '-1',
            '-movflags', '+faststart',
        ]
    return [
        '-map', '0:v:0',
        '-map', '0:a:0?',
        '-map_metadata', '-1',
        '-movflags', '+faststart',
        '-pix_fmt', 'yuv420p',
        '-vf', EVEN_DIMENSIONS_FILTER,
        '-c:v', 'h264',
        '-crf', '23',
        '-c:a', 'aac',
        '-b:a', '192k',
    ]


def audio_args(probe=None):
    """ffmpeg output arguments for audio; cover art and tags are dropped"""
    if probe is not None and probe.audio_codec == 'mp3':
        return ['-map', '0:a:0', '-c:a', 'copy', '-map_metadata', '-1']
    return ['-map', '0:a:0', '-c:a', 'libmp3lame', '-q:a', '2', '-map_metadata', '-1']
