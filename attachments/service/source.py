"""
Raw input handling.

Turns whatever the caller hands over (bytes, an uploaded file, a path or a
data: URI) into a MediaInput holding the bytes plus the untrusted hints that
came with them.
"""
import base64
import binascii
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import unquote_to_bytes

from attachments.service.errors import file_error

# Marker for a remote attachment whose bytes have not been fetched yet
PENDING_DOWNLOAD = object()

DATA_URI_RE = re.compile(
    r'^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[\w.+-]+=[\w.+-]+)*)(?P<base64>;base64)?,(?P<payload>.*)$',
    re.DOTALL,
)


@dataclass
class MediaInput:
    """Raw bytes plus caller-supplied hints (never trusted for classification)"""
    data: bytes
    filename: Optional[str] = None
    declared_type: Optional[str] = None

    @property
    def size(self):
        return len(self.data)

    @property
    def is_empty(self):
        return not self.data


def is_data_uri(value):
    return isinstance(value, str) and value.startswith('data:')


def decode_data_uri(uri):
    """
    Decode a data: URI.

    Args:
        uri: String such as 'data:image/jpeg;base64,/9j/4AAQ...'

    Returns:
        tuple[bytes, str | None]: (payload, declared mime type)

    Raises:
        ValidationError: If the URI is malformed
    """
    match = DATA_URI_RE.match(uri)
    if not match:
        raise file_error('Malformed data URI', code='invalid')

    payload = match.group('payload')
    if match.group('base64'):
        try:
            data = base64.b64decode(''.join(payload.split()), validate=True)
        except (binascii.Error, ValueError):
            raise file_error('Malformed base64 payload in data URI', code='invalid')
    else:
        data = unquote_to_bytes(payload)

    return data, match.group('mime')


def read_input(raw, filename=None, content_type=None):
    """
    Normalize raw input into a MediaInput.

    Args:
        raw: bytes, file-like object, pathlib.Path, data: URI string,
             PENDING_DOWNLOAD or None
        filename: Original upload filename, if known
        content_type: Declared content type, if known

    Returns:
        MediaInput: empty when no input was supplied
    """
    if raw is None or raw is PENDING_DOWNLOAD:
        return MediaInput(data=b'', filename=filename, declared_type=content_type)

    if isinstance(raw, MediaInput):
        return raw

    if isinstance(raw, (bytes, bytearray, memoryview)):
        return MediaInput(data=bytes(raw), filename=filename, declared_type=content_type)

    if is_data_uri(raw):
        data, declared = decode_data_uri(raw)
        return MediaInput(data=data, filename=filename, declared_type=content_type or declared)

    if isinstance(raw, Path):
        return MediaInput(
            data=raw.read_bytes(),
            filename=filename or raw.name,
            declared_type=content_type,
        )

    if hasattr(raw, 'read'):
        # Django File / UploadedFile or any binary stream
        if hasattr(raw, 'seek'):
            raw.seek(0)
        if hasattr(raw, 'chunks'):
            data = b''.join(raw.chunks())
        else:
            data = raw.read()
        name = filename or getattr(raw, 'name', None)
        if name:
            name = Path(str(name)).name
        declared = content_type or getattr(raw, 'content_type', None)
        return MediaInput(data=data, filename=name, declared_type=declared)

    raise TypeError(f'Unsupported input type: {type(raw).__name__}')
