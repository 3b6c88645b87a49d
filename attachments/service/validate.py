"""
Input validation.

Rejects missing, unsupported and oversized input before any codec work is
done, and checks outputs whose size can only be known after rendering.
"""

from attachments.service.constants import (
    STYLE_ORIGINAL,
    TYPE_AUDIO,
    TYPE_AUDIO_VIDEO,
    TYPE_GIFV,
    TYPE_IMAGE,
    TYPE_UNKNOWN,
    TYPE_VIDEO,
)
from attachments.service.errors import file_error


def format_size(size):
    """Format a byte count for error messages"""
    for unit in ('B', 'KB', 'MB', 'GB'):
        if size < 1024 or unit == 'GB':
            return f'{size:.0f} {unit}' if unit == 'B' else f'{size:.1f} {unit}'
        size /= 1024


class Validator:
    """Enforces the configured per-type size ceilings"""

    def __init__(self, limits):
        self.limits = limits

    def limit_for(self, media_type):
        """
        Get the raw input ceiling for a classified type.

        Animated rasters are still raster sources, so they share the image
        ceiling; their rendered mp4 is checked against the video ceiling.
        """
        if media_type in (TYPE_IMAGE, TYPE_GIFV):
            return self.limits.image_limit
        if media_type in (TYPE_VIDEO, TYPE_AUDIO, TYPE_AUDIO_VIDEO):
            return self.limits.video_limit
        return None

    def validate(self, media_input, classification):
        """
        Validate raw input against its classification.

        Args:
            media_input: MediaInput
            classification: Classification from the type classifier

        Raises:
            ValidationError: On the "file" field
        """
        if media_input is None or media_input.is_empty:
            raise file_error('No file was supplied', code='blank')

        media_type = classification.media_type
        if media_type == TYPE_UNKNOWN:
            raise file_error('Unsupported or unreadable file type', code='unsupported')

        self._check_size(media_input.size, self.limit_for(media_type), media_type)

    def validate_output(self, media_type, style_name, size):
        """Check a rendered style whose size could not be known up front"""
        if media_type == TYPE_GIFV and style_name == STYLE_ORIGINAL:
            self._check_size(size, self.limits.video_limit, media_type)

    def _check_size(self, size, limit, media_type):
        if limit is not None and size >= limit:
            raise file_error(
                f'File is too large for {media_type} ({format_size(size)}, '
                f'limit {format_size(limit)})',
                code='too_large',
            )
