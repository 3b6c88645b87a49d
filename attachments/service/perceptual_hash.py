"""
Blurhash computation for thumbnail styles.
"""
import io

import blurhash
from PIL import Image, UnidentifiedImageError

from attachments.service.codec import flatten
from attachments.service.constants import (
    BLURHASH_SAMPLE_SIZE,
    BLURHASH_X_COMPONENTS,
    BLURHASH_Y_COMPONENTS,
    STYLE_ORIGINAL,
)
from attachments.service.errors import CodecError


def blurhash_sample(data, size=BLURHASH_SAMPLE_SIZE):
    """
    Reduce an image to a small RGB PNG sample.

    The downscale depends on pixels alone, so identical images always give
    identical samples.

    Returns:
        bytes
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.seek(0)
            rgb = flatten(image)
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise CodecError(f'cannot decode thumbnail ({e})', operation='blurhash')

    rgb.thumbnail((size, size), Image.Resampling.BILINEAR)
    buffer = io.BytesIO()
    rgb.save(buffer, format='PNG')
    return buffer.getvalue()


def compute_blurhash(data):
    """
    Compute the blurhash of a raster thumbnail.

    Args:
        data: Thumbnail bytes, or None

    Returns:
        str | None: 36 character signature, None without a thumbnail
    """
    if not data:
        return None
    sample = blurhash_sample(data)
    return blurhash.encode(
        io.BytesIO(sample),
        x_components=BLURHASH_X_COMPONENTS,
        y_components=BLURHASH_Y_COMPONENTS,
    )


def thumbnail_style(styles):
    """Pick the raster thumbnail-class style from rendered styles, if any"""
    for style in styles:
        if style.name != STYLE_ORIGINAL and style.is_raster:
            return style
    return None
