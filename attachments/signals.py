from django.db import transaction
from django.db.models.signals import pre_delete
from django.dispatch import receiver

from attachments.models import MediaAttachment
from attachments.processing import delete_blobs


@receiver(pre_delete, sender=MediaAttachment)
def cleanup_media_files(sender, instance, **kwargs):
    """
    Delete the stored style blobs when a MediaAttachment is deleted.
    This handles both single and bulk deletions; nothing is removed if the
    deletion is rolled back.
    """
    paths = list(instance.styles.values_list('file_name', flat=True))
    if paths:
        transaction.on_commit(lambda: delete_blobs(paths))
