import os
from pathlib import Path

from huey.contrib.djhuey import db_task

from attachments.models import MediaAttachment
from attachments.operations import attach_fetched_media
from attachments.processing import write_log
from attachments.service.config import get_log_dir


def attachment_log_path(attachment_id):
    """Per-attachment log file, or None when logging to files is disabled"""
    log_dir = get_log_dir()
    if not log_dir:
        return None
    return os.path.join(log_dir, f'attachment-{attachment_id}.log')


@db_task()
def process_remote_media(attachment_id, path, content_type=None, remove_source=True):
    """
    Process remote media whose bytes were already fetched to a local file.

    Steps:
    1. IN_PROGRESS - Classify, validate and render every style
    2. COMPLETE - Store blobs and persist the attachment
    3. FAILED - On any error; the error is re-raised for the task queue

    The fetched file is removed afterwards unless remove_source is False.
    """
    try:
        attachment = MediaAttachment.objects.get(pk=attachment_id)
    except MediaAttachment.DoesNotExist:
        return

    source = Path(path)
    log_path = attachment_log_path(attachment_id)

    def log(message):
        write_log(log_path, message)

    try:
        log(f'=== PROCESSING {attachment.remote_url} ===')
        attach_fetched_media(
            attachment,
            source,
            filename=source.name,
            content_type=content_type,
            logger=log,
        )
        log('=== COMPLETE ===')
    except Exception as e:
        log('=== FAILED ===')
        log(f'Error: {e}')
        raise
    finally:
        if remove_source and source.exists():
            source.unlink()
