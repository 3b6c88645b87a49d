"""
Django-specific persistence of processed media.

This module bridges the ORM-free service layer and the models. Its functions
are used by both:
- High-level operations (attachments/operations.py)
- Huey background tasks (attachments/tasks.py)

Blobs are written through Django's storage API before the database
transaction starts. If the transaction fails the new blobs are removed again;
blobs replaced by a successful run are removed only once it has committed.
"""

import os
from datetime import datetime

from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.db import transaction

from attachments.models import MediaAttachment, MediaStyle
from attachments.service.config import get_storage_prefix
from attachments.service.constants import STYLE_ORIGINAL


def write_log(log_path, message):
    """Append message to log file with timestamp"""
    if log_path:
        os.makedirs(os.path.dirname(log_path), exist_ok=True)
        with open(log_path, 'a') as f:
            timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
            f.write(f'[{timestamp}] {message}\n')


def style_path(style_name, file_name, prefix=None):
    """
    Build the storage path of a style blob.

    Args:
        style_name: Style the blob belongs to ('original', 'small')
        file_name: Generated file name, e.g. 'V1StGXR8Z5jdHi6BmyT0a.jpeg'
        prefix: Storage directory (default: MEDIAKIT_STORAGE_PREFIX)

    Returns:
        str: e.g. 'media_attachments/original/V1StGXR8Z5jdHi6BmyT0a.jpeg'
    """
    if prefix is None:
        prefix = get_storage_prefix()
    return '/'.join(part for part in (prefix, style_name, file_name) if part)


def delete_blobs(paths, storage=None):
    """Delete stored blobs, skipping the ones that are already gone"""
    storage = storage or default_storage
    for path in paths:
        try:
            if storage.exists(path):
                storage.delete(path)
        except OSError as e:
            # Log error but keep deleting the rest
            print(f'Error deleting blob {path}: {e}')


def store_styles(processed, storage=None, logger=None):
    """
    Write every rendered style to storage.

    Args:
        processed: ProcessedMedia with file names assigned
        storage: Django storage (default: default_storage)
        logger: Optional callable(message) for logging

    Returns:
        dict: {style_name: stored path}, in pipeline order
    """
    storage = storage or default_storage

    def log(message):
        if logger:
            logger(message)

    stored = {}
    try:
        for style in processed.styles:
            path = style_path(style.name, style.file_name)
            stored[style.name] = storage.save(path, ContentFile(style.data))
            log(f'Stored {style.name}: {stored[style.name]} ({style.size:,} bytes)')
    except Exception:
        delete_blobs(stored.values(), storage)
        raise
    return stored


def apply_processed_media(attachment, processed, storage=None, logger=None):
    """
    Persist a pipeline result on an attachment.

    The attachment fields and its style rows are written in one transaction,
    so readers see either the previous state or the complete new one.

    Args:
        attachment: MediaAttachment instance (saved or not)
        processed: ProcessedMedia from the pipeline
        storage: Django storage (default: default_storage)
        logger: Optional callable(message) for logging

    Returns:
        MediaAttachment: The saved attachment
    """
    storage = storage or default_storage
    stored = store_styles(processed, storage=storage, logger=logger)
    replaced = []

    try:
        with transaction.atomic():
            if attachment.pk is not None:
                replaced = list(attachment.styles.values_list('file_name', flat=True))
                attachment.styles.all().delete()

            original = processed.style(STYLE_ORIGINAL)
            attachment.type = processed.media_type
            attachment.file_file_name = original.file_name
            attachment.file_content_type = original.content_type
            attachment.file_file_size = original.size
            attachment.file_meta = processed.meta
            attachment.blurhash = processed.blurhash or ''
            attachment.processing = MediaAttachment.PROCESSING_COMPLETE
            attachment.save()

            MediaStyle.objects.bulk_create([
                MediaStyle(
                    attachment=attachment,
                    name=style.name,
                    position=position,
                    file_name=stored[style.name],
                    content_type=style.content_type,
                    extension=style.extension,
                    file_size=style.size,
                    width=style.width,
                    height=style.height,
                    aspect=style.aspect,
                    duration=style.duration,
                    frame_rate=style.frame_rate or '',
                )
                for position, style in enumerate(processed.styles)
            ])
    except Exception:
        delete_blobs(stored.values(), storage)
        raise

    if replaced:
        transaction.on_commit(lambda: delete_blobs(replaced, storage))
    return attachment
