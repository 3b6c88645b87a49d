from django.apps import AppConfig


class AttachmentsConfig(AppConfig):
    name = 'attachments'
    default_auto_field = 'django.db.models.BigAutoField'

    def ready(self):
        """Register MIME types, check emitted extensions and import signals"""
        from attachments.service.naming import register_mime_types, verify_extension_table

        register_mime_types()
        verify_extension_table()

        import attachments.signals  # noqa: F401
