from django.db import models

from attachments.service.constants import (
    STYLE_ORIGINAL,
    STYLE_SMALL,
    TYPE_AUDIO,
    TYPE_GIFV,
    TYPE_IMAGE,
    TYPE_UNKNOWN,
    TYPE_VIDEO,
)


class MediaAttachment(models.Model):
    """Uploaded or remotely fetched media with its rendered styles"""

    # Type choices
    TYPE_IMAGE = TYPE_IMAGE
    TYPE_GIFV = TYPE_GIFV
    TYPE_VIDEO = TYPE_VIDEO
    TYPE_AUDIO = TYPE_AUDIO
    TYPE_UNKNOWN = TYPE_UNKNOWN

    TYPE_CHOICES = [
        (TYPE_IMAGE, "Image"),
        (TYPE_GIFV, "GIFV"),
        (TYPE_VIDEO, "Video"),
        (TYPE_AUDIO, "Audio"),
        (TYPE_UNKNOWN, "Unknown"),
    ]

    # Processing choices
    PROCESSING_QUEUED = "queued"
    PROCESSING_IN_PROGRESS = "in_progress"
    PROCESSING_COMPLETE = "complete"
    PROCESSING_FAILED = "failed"

    PROCESSING_CHOICES = [
        (PROCESSING_QUEUED, "Queued"),
        (PROCESSING_IN_PROGRESS, "In progress"),
        (PROCESSING_COMPLETE, "Complete"),
        (PROCESSING_FAILED, "Failed"),
    ]

    remote_url = models.URLField(max_length=2048, blank=True, default="")
    shortcode = models.CharField(max_length=64, unique=True, null=True, blank=True)
    type = models.CharField(max_length=10, choices=TYPE_CHOICES, default=TYPE_UNKNOWN)
    processing = models.CharField(
        max_length=20, choices=PROCESSING_CHOICES, default=PROCESSING_QUEUED, db_index=True
    )

    # Original style, denormalized for quick checks
    file_file_name = models.CharField(max_length=255, blank=True)
    file_content_type = models.CharField(max_length=100, blank=True)
    file_file_size = models.BigIntegerField(null=True, blank=True)

    file_meta = models.JSONField(default=dict, blank=True)
    blurhash = models.CharField(max_length=64, blank=True)
    description = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["remote_url"], name="attachment_remote_url_idx"),
            models.Index(fields=["type"], name="attachment_type_idx"),
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_remote_url = self.remote_url if not self._state.adding else None
        self._saved_processing = self.processing if not self._state.adding else None

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._saved_remote_url = instance.remote_url
        instance._saved_processing = instance.processing
        return instance

    def refresh_from_db(self, *args, **kwargs):
        super().refresh_from_db(*args, **kwargs)
        self._saved_remote_url = self.remote_url
        self._saved_processing = self.processing

    def __str__(self):
        return f"{self.type} attachment {self.to_param()}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            if self._saved_remote_url is not None and self.remote_url != self._saved_remote_url:
                raise ValueError("remote_url cannot change once an attachment is saved")
            if (
                self._saved_processing == self.PROCESSING_COMPLETE
                and self.processing != self.PROCESSING_COMPLETE
            ):
                raise ValueError("A complete attachment cannot go back to processing")
        if self.processing == self.PROCESSING_COMPLETE and self.type == self.TYPE_UNKNOWN:
            raise ValueError("An unknown type attachment cannot be complete")
        super().save(*args, **kwargs)
        self._saved_remote_url = self.remote_url
        self._saved_processing = self.processing

    @property
    def local(self):
        """True when the media was uploaded here rather than fetched from remote_url"""
        return not (self.remote_url or "").strip()

    @property
    def needs_redownload(self):
        """True for remote media whose file has not been fetched (or was lost)"""
        return not self.file_file_name and not self.local

    @property
    def processing_complete(self):
        return self.processing == self.PROCESSING_COMPLETE

    @property
    def origin(self):
        return "local" if self.local else "remote"

    def to_param(self):
        """Public identifier: the shortcode if assigned, else the id"""
        if self.shortcode:
            return self.shortcode
        return str(self.pk)

    def style_map(self):
        """Styles keyed by name, in pipeline order"""
        if self.pk is None:
            return {}
        return {style.name: style for style in self.styles.all()}

    @property
    def file(self):
        return self.style_map().get(STYLE_ORIGINAL)

    @property
    def thumbnail(self):
        return self.style_map().get(STYLE_SMALL)


class MediaStyle(models.Model):
    """One rendered derivative of a MediaAttachment"""

    attachment = models.ForeignKey(MediaAttachment, on_delete=models.CASCADE, related_name="styles")
    name = models.CharField(max_length=32)
    position = models.PositiveSmallIntegerField(default=0)

    # Storage reference, relative to the storage root
    file_name = models.CharField(max_length=500)
    content_type = models.CharField(max_length=100)
    extension = models.CharField(max_length=10)
    file_size = models.BigIntegerField()

    width = models.PositiveIntegerField(null=True, blank=True)
    height = models.PositiveIntegerField(null=True, blank=True)
    aspect = models.FloatField(null=True, blank=True)
    duration = models.FloatField(null=True, blank=True)
    frame_rate = models.CharField(max_length=32, blank=True)

    class Meta:
        ordering = ["position"]
        constraints = [
            models.UniqueConstraint(fields=["attachment", "name"], name="unique_style_per_attachment"),
        ]

    def __str__(self):
        return f"{self.name}: {self.file_name}"

    @property
    def blob_ref(self):
        return self.file_name
