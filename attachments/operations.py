"""
High-level operations that can be used by tasks, management commands and
any future upload endpoint.

This module provides testable functions that encapsulate the attachment
lifecycle, making it easy to test it without going through a view or a
management command.
"""

from django.core.exceptions import ValidationError
from django.db import transaction

from attachments.models import MediaAttachment
from attachments.processing import apply_processed_media
from attachments.service.codec import shared_codec
from attachments.service.config import get_processing_limits, get_style_workers
from attachments.service.metadata import parse_focus
from attachments.service.pipeline import MediaProcessor
from attachments.service.validate import Validator


def build_processor(logger=None):
    """Create a MediaProcessor configured from Django settings"""
    return MediaProcessor(
        codec=shared_codec(),
        validator=Validator(get_processing_limits()),
        workers=get_style_workers(),
        logger=logger,
    )


def _parse_focus(focus):
    try:
        return parse_focus(focus)
    except (TypeError, ValueError) as e:
        raise ValidationError({'focus': ValidationError(str(e), code='invalid')})


def create_media_attachment(
    raw,
    remote_url='',
    shortcode=None,
    filename=None,
    content_type=None,
    focus=None,
    description='',
    logger=None,
):
    """
    Create a media attachment from raw input.

    This is the core operation used by:
    - Management command: ./manage.py process_media
    - Upload handlers

    The input is processed completely before anything is saved; when
    validation or a codec step fails nothing is persisted.

    Args:
        raw: bytes, file-like object, Path or data: URI
        remote_url: Source URL for media fetched from elsewhere ('' for uploads)
        shortcode: Optional public identifier
        filename: Original upload filename (never reused for storage)
        content_type: Declared content type (advisory only)
        focus: Optional focal point 'x,y'
        description: Optional alt text
        logger: Optional callable(message) for logging

    Returns:
        MediaAttachment: The saved, complete attachment

    Raises:
        ValidationError: Missing, unsupported or oversized input
        CodecError: Any codec failure

    Example:
        >>> attachment = create_media_attachment(Path('cat.png').read_bytes())
        >>> attachment.type, attachment.file_content_type
        ('image', 'image/png')
    """

    def log(message):
        if logger:
            logger(message)

    focus_point = _parse_focus(focus)
    processed = build_processor(logger=logger).process(
        raw, filename=filename, content_type=content_type, focus=focus_point
    )

    attachment = MediaAttachment(
        remote_url=remote_url or '',
        shortcode=shortcode or None,
        description=description or '',
    )
    apply_processed_media(attachment, processed, logger=logger)
    log(f'Created attachment: {attachment.to_param()}')
    return attachment


def register_remote_attachment(remote_url, shortcode=None, description='', logger=None):
    """
    Record remote media whose bytes have not been fetched yet.

    The attachment is saved without a file, so needs_redownload is true
    until attach_fetched_media() runs for it.

    Returns:
        MediaAttachment
    """
    if not (remote_url or '').strip():
        raise ValidationError(
            {'remote_url': ValidationError('A remote attachment needs a URL', code='blank')}
        )

    attachment = MediaAttachment.objects.create(
        remote_url=remote_url.strip(),
        shortcode=shortcode or None,
        description=description or '',
    )
    if logger:
        logger(f'Registered remote attachment: {attachment.to_param()} ({attachment.remote_url})')
    return attachment


def attach_fetched_media(attachment, raw, filename=None, content_type=None, focus=None, logger=None):
    """
    Process the fetched bytes of a remote attachment.

    A failed run marks the attachment failed and re-raises. An attachment
    that is already complete keeps its state and its previous styles on
    failure.

    Args:
        attachment: MediaAttachment instance
        raw: Anything read_input() accepts
        filename: Name of the fetched file, if known
        content_type: Content type reported by the remote server (advisory)
        focus: Optional focal point; defaults to the one already stored
        logger: Optional callable(message) for logging

    Returns:
        MediaAttachment: The saved, complete attachment
    """

    def log(message):
        if logger:
            logger(message)

    if focus is None:
        focus_point = (attachment.file_meta or {}).get('focus')
    else:
        focus_point = _parse_focus(focus)

    if not attachment.processing_complete:
        attachment.processing = MediaAttachment.PROCESSING_IN_PROGRESS
        attachment.save(update_fields=['processing', 'updated_at'])
    log(f'Processing fetched media for {attachment.to_param()}')

    try:
        processed = build_processor(logger=logger).process(
            raw, filename=filename, content_type=content_type, focus=focus_point
        )
        apply_processed_media(attachment, processed, logger=logger)
    except Exception as e:
        log(f'Processing failed: {e}')
        attachment.refresh_from_db()
        if not attachment.processing_complete:
            attachment.processing = MediaAttachment.PROCESSING_FAILED
            attachment.save(update_fields=['processing', 'updated_at'])
        raise

    log(f'Attachment {attachment.to_param()} complete')
    return attachment


def destroy_media_attachment(attachment, logger=None):
    """
    Delete an attachment and, once the deletion commits, its stored blobs.

    Returns:
        list: Storage paths scheduled for deletion
    """
    paths = list(attachment.styles.values_list('file_name', flat=True))
    label = attachment.to_param()
    with transaction.atomic():
        attachment.delete()
    if logger:
        logger(f'Deleted attachment {label} ({len(paths)} blobs)')
    return paths
