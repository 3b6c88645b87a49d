"""
Configuration adapter for media processing settings.

Centralizes access to Django settings, so the service layer receives
explicit values instead of reading global state while it runs.
"""

from dataclasses import dataclass

from django.conf import settings


@dataclass(frozen=True)
class ProcessingLimits:
    """Raw input size ceilings in bytes"""
    image_limit: int
    video_limit: int


def get_image_limit():
    """Get the size ceiling for still and animated raster input"""
    return int(settings.MEDIAKIT_IMAGE_LIMIT)


def get_video_limit():
    """Get the size ceiling for video and audio input, and gifv output"""
    return int(settings.MEDIAKIT_VIDEO_LIMIT)


def get_processing_limits():
    """
    Snapshot the configured size limits.

    Returns:
        ProcessingLimits
    """
    return ProcessingLimits(image_limit=get_image_limit(), video_limit=get_video_limit())


def get_ffmpeg_binary():
    return settings.MEDIAKIT_FFMPEG_BINARY


def get_ffprobe_binary():
    return settings.MEDIAKIT_FFPROBE_BINARY


def get_codec_timeout():
    """Get the timeout in seconds for a single codec invocation"""
    return float(settings.MEDIAKIT_CODEC_TIMEOUT)


def get_codec_concurrency():
    """Get the maximum number of codec subprocesses running at once"""
    return max(1, int(settings.MEDIAKIT_CODEC_CONCURRENCY))


def get_style_workers():
    """Get the number of threads used to render the styles of one attachment"""
    return max(1, int(settings.MEDIAKIT_STYLE_WORKERS))


def get_storage_prefix():
    """Get the storage directory all style blobs are written under"""
    return settings.MEDIAKIT_STORAGE_PREFIX.strip('/')


def get_log_dir():
    """Get the directory for per-attachment processing logs ('' disables them)"""
    return getattr(settings, 'MEDIAKIT_LOG_DIR', '') or ''
