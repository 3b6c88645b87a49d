"""
Media type classification.

Inspects the leading bytes of a blob to decide which processing pipeline it
belongs to. Neither the file extension nor a declared content type is
consulted. Containers that may hold audio or video come back provisional
and are settled from their probed streams.
"""
import io
from dataclasses import dataclass
from typing import Optional

from PIL import Image, UnidentifiedImageError
from pillow_heif import register_heif_opener

from attachments.service.constants import (
    TYPE_AUDIO,
    TYPE_AUDIO_VIDEO,
    TYPE_GIFV,
    TYPE_IMAGE,
    TYPE_UNKNOWN,
    TYPE_VIDEO,
)

register_heif_opener()

# ISO base media file format brands
AVIF_BRANDS = {b'avif', b'avis'}
HEIF_BRANDS = {b'heic', b'heix', b'heim', b'heis', b'hevc', b'hevx', b'mif1', b'msf1'}
AUDIO_BRANDS = {b'M4A ', b'M4B ', b'M4P ', b'F4A '}
QUICKTIME_BRANDS = {b'qt  '}
GENERIC_MP4_BRANDS = {b'isom', b'iso2', b'iso4', b'iso5', b'iso6', b'mp41', b'mp42', b'dash'}

ASF_HEADER = bytes.fromhex('3026b2758e66cf11a6d900aa0062ce6c')
EBML_HEADER = b'\x1a\x45\xdf\xa3'

ANIMATED_IMAGE_TYPES = {'image/gif', 'image/png', 'image/webp'}


@dataclass(frozen=True)
class Classification:
    """Result of sniffing a blob"""
    media_type: str
    content_type: Optional[str] = None
    audio_content_type: Optional[str] = None

    @property
    def is_unknown(self):
        return self.media_type == TYPE_UNKNOWN

    @property
    def is_provisional(self):
        return self.media_type == TYPE_AUDIO_VIDEO

    def settle(self, probe):
        """
        Resolve a provisional audio/video classification from probed streams.

        A real video stream makes it video. Cover art (attached pictures)
        does not count, so a WebM or MP4 holding only sound is audio.

        Args:
            probe: ProbeResult of the source

        Returns:
            Classification
        """
        if not self.is_provisional:
            return self
        if probe.has_video:
            return Classification(TYPE_VIDEO, self.content_type)
        return Classification(TYPE_AUDIO, self.audio_content_type)


UNKNOWN = Classification(TYPE_UNKNOWN)


def _audio_or_video(audio_type, video_type):
    """Provisional classification for a container that may hold either"""
    return Classification(TYPE_AUDIO_VIDEO, video_type, audio_content_type=audio_type)


def _classify_raster(data, content_type):
    """Open a raster with Pillow and tell still images from animations"""
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            frames = getattr(image, 'n_frames', 1)
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        return UNKNOWN

    # Multi-picture JPEGs and HEIF collections are still images
    if content_type in ANIMATED_IMAGE_TYPES and frames > 1:
        return Classification(TYPE_GIFV, content_type)
    return Classification(TYPE_IMAGE, content_type)


def _sniff_iso_bmff(data):
    brand = data[8:12]
    compatible = {data[i:i + 4] for i in range(16, min(len(data), 64), 4)}
    brands = {brand} | compatible

    if brand in AVIF_BRANDS:
        return 'image', 'image/avif'
    if brand in HEIF_BRANDS or (brands & HEIF_BRANDS and not brands & GENERIC_MP4_BRANDS):
        return 'image', 'image/heic'
    if brand in AUDIO_BRANDS:
        return 'classified', Classification(TYPE_AUDIO, 'audio/mp4')
    if brand in QUICKTIME_BRANDS:
        return 'classified', Classification(TYPE_VIDEO, 'video/quicktime')
    if brand.startswith(b'3g'):
        return 'classified', Classification(TYPE_VIDEO, 'video/3gpp')
    return 'classified', _audio_or_video('audio/mp4', 'video/mp4')


def _sniff_ogg(data):
    head = data[:512]
    if b'theora' in head:
        return Classification(TYPE_VIDEO, 'video/ogg')
    if b'OpusHead' in head:
        return Classification(TYPE_AUDIO, 'audio/opus')
    if b'\x01vorbis' in head or b'fLaC' in head or b'Speex' in head:
        return Classification(TYPE_AUDIO, 'audio/ogg')
    return _audio_or_video('audio/ogg', 'video/ogg')


def _is_adts_frame(data):
    # 12 sync bits, layer bits '00'
    return len(data) >= 2 and data[0] == 0xFF and (data[1] & 0xF6) == 0xF0


def _is_mpeg_audio_frame(data):
    # 11 sync bits, layer bits must not be '00'
    return (
        len(data) >= 2
        and data[0] == 0xFF
        and (data[1] & 0xE0) == 0xE0
        and (data[1] & 0x06) != 0x00
    )


def sniff(data):
    """
    Identify the container from magic bytes alone.

    Returns:
        tuple[str, object]: ('image', content_type) for rasters that still
        need a decode check, ('classified', Classification) otherwise
    """
    if data[:3] == b'\xff\xd8\xff':
        return 'image', 'image/jpeg'
    if data[:8] == b'\x89PNG\r\n\x1a\n':
        return 'image', 'image/png'
    if data[:6] in (b'GIF87a', b'GIF89a'):
        return 'image', 'image/gif'
    if data[:4] == b'RIFF' and data[8:12] == b'WEBP':
        return 'image', 'image/webp'
    if data[:4] == b'RIFF' and data[8:12] == b'WAVE':
        return 'classified', Classification(TYPE_AUDIO, 'audio/wav')
    if data[4:8] == b'ftyp':
        return _sniff_iso_bmff(data)
    if data[4:8] in (b'moov', b'mdat', b'wide', b'free'):
        return 'classified', Classification(TYPE_VIDEO, 'video/quicktime')
    if data[:4] == EBML_HEADER:
        if b'webm' in data[:64]:
            return 'classified', _audio_or_video('audio/webm', 'video/webm')
        return 'classified', _audio_or_video('audio/x-matroska', 'video/x-matroska')
    if data[:4] == b'OggS':
        return 'classified', _sniff_ogg(data)
    if data[:4] == b'fLaC':
        return 'classified', Classification(TYPE_AUDIO, 'audio/flac')
    if data[:3] == b'ID3':
        return 'classified', Classification(TYPE_AUDIO, 'audio/mpeg')
    if data[:16] == ASF_HEADER:
        return 'classified', Classification(TYPE_AUDIO, 'video/x-ms-asf')
    if _is_adts_frame(data):
        return 'classified', Classification(TYPE_AUDIO, 'audio/aac')
    if _is_mpeg_audio_frame(data):
        return 'classified', Classification(TYPE_AUDIO, 'audio/mpeg')
    return 'classified', UNKNOWN


def classify(data, declared_type=None):
    """
    Classify a blob as image, gifv, video, audio or unknown.

    Pure and idempotent: the same bytes always classify the same way.
    WebM, Matroska, generic MP4 and unrecognized Ogg come back as the
    provisional TYPE_AUDIO_VIDEO; see Classification.settle().

    Args:
        data: Raw bytes
        declared_type: Caller-declared content type. Accepted for the
            record, never consulted over the bytes themselves.

    Returns:
        Classification
    """
    if not data:
        return UNKNOWN

    kind, value = sniff(data)
    if kind == 'image':
        return _classify_raster(data, value)
    return value
