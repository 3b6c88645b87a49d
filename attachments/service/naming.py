"""
Storage naming.

Every style gets a random NanoID file name; the extension comes from the
produced content type and must be one the serving layer maps back to that
same content type.
"""
import mimetypes
import re
from pathlib import Path

from nanoid import generate

from attachments.service.constants import EXTENSIONS, EXTRA_MIME_TYPES
from attachments.service.errors import ConfigurationError

NAME_ALPHABET = 'ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789'
NAME_SIZE = 21

DIMENSIONS_RE = re.compile(r'^\d+x\d+', re.IGNORECASE)


def register_mime_types():
    """Teach the MIME table about formats it does not ship with"""
    for extension, content_type in EXTRA_MIME_TYPES.items():
        mimetypes.add_type(content_type, extension)


def extension_for(content_type):
    """
    Get the file extension for a produced content type.

    Raises:
        ConfigurationError: If the content type has no known extension
    """
    try:
        return EXTENSIONS[content_type]
    except KeyError:
        raise ConfigurationError(f'No extension configured for {content_type}')


def mime_type_for(extension):
    """Look an extension up the way the static file server does"""
    content_type, _encoding = mimetypes.guess_type(f'file{extension}', strict=False)
    return content_type


def verify_extension_table(extensions=None):
    """
    Check that every extension we emit resolves to its content type.

    Args:
        extensions: Optional {content_type: extension} mapping (default: all emitted)

    Raises:
        ConfigurationError: On the first extension the MIME table gets wrong
    """
    for content_type, extension in (extensions or EXTENSIONS).items():
        resolved = mime_type_for(extension)
        if resolved != content_type:
            raise ConfigurationError(
                f'Extension {extension} resolves to {resolved!r}, expected {content_type!r}'
            )


def leaks_upload_name(token, original_filename=None):
    """True if a token could be mistaken for the uploaded name or its dimensions"""
    if DIMENSIONS_RE.match(token):
        return True
    if original_filename:
        stem = Path(original_filename).stem
        if stem and (token.startswith(stem) or stem in token):
            return True
    return False


def generate_file_name(content_type, original_filename=None):
    """
    Generate a storage file name for a style.

    Args:
        content_type: Content type of the produced blob
        original_filename: Uploaded file name, only used to make sure it never leaks

    Returns:
        str: e.g. 'V1StGXR8Z5jdHi6BmyT0a.jpeg'
    """
    extension = extension_for(content_type)
    while True:
        token = generate(NAME_ALPHABET, size=NAME_SIZE)
        if not leaks_upload_name(token, original_filename):
            return f'{token}{extension}'


def assign_file_names(styles, original_filename=None):
    """Give each rendered style its own file name, in place"""
    for style in styles:
        style.file_name = generate_file_name(style.content_type, original_filename)
    return styles
