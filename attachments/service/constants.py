"""
Media type and style constants.

Centralized definitions of classified types, style names, target formats
and the extensions produced files are stored under.
"""

# Classified media types
TYPE_IMAGE = 'image'
TYPE_GIFV = 'gifv'
TYPE_VIDEO = 'video'
TYPE_AUDIO = 'audio'
TYPE_UNKNOWN = 'unknown'

# Provisional type for containers that hold audio, video or both; settled
# to video or audio once the streams are probed
TYPE_AUDIO_VIDEO = 'av'

# Style names, in pipeline order
STYLE_ORIGINAL = 'original'
STYLE_SMALL = 'small'

# Still image formats served as-is (content type -> Pillow format)
BROWSER_IMAGE_FORMATS = {
    'image/jpeg': 'JPEG',
    'image/png': 'PNG',
    'image/gif': 'GIF',
    'image/webp': 'WEBP',
}

# Still images outside the browser family are normalized to this type
NORMALIZED_IMAGE_TYPE = 'image/jpeg'

# Produced content types -> file extension
EXTENSIONS = {
    'image/jpeg': '.jpeg',
    'image/png': '.png',
    'image/gif': '.gif',
    'image/webp': '.webp',
    'video/mp4': '.mp4',
    'audio/mpeg': '.mp3',
}

# Types the serving layer does not know about out of the box
EXTRA_MIME_TYPES = {
    '.webp': 'image/webp',
    '.avif': 'image/avif',
    '.heic': 'image/heic',
}

# Transcode targets
TARGET_MP4 = 'mp4'
TARGET_MP3 = 'mp3'

TARGET_CONTENT_TYPES = {
    TARGET_MP4: 'video/mp4',
    TARGET_MP3: 'audio/mpeg',
}

THUMBNAIL_CONTENT_TYPE = 'image/png'

# Area budget for the small style of still images (640x360)
IMAGE_SMALL_PIXELS = 640 * 360

# Bounding box for every small style
THUMBNAIL_MAX_SIZE = 640

# Blurhash components; 4x4 yields a 36 character signature
BLURHASH_X_COMPONENTS = 4
BLURHASH_Y_COMPONENTS = 4
BLURHASH_SAMPLE_SIZE = 100

# Longest gifv clip we keep (frames at the output rate)
GIFV_MAX_FRAMES = 60 * 60 * 3
