"""
Django management command for processing a media file into an attachment.

This is a thin CLI wrapper around attachments.operations.
"""
import json
import sys
from pathlib import Path

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from attachments.operations import create_media_attachment
from attachments.service.errors import CodecError


def validation_message(error):
    """Flatten a ValidationError into one line"""
    if hasattr(error, 'message_dict'):
        return '; '.join(
            f'{field}: {" ".join(messages)}' for field, messages in error.message_dict.items()
        )
    return ' '.join(error.messages)


class Command(BaseCommand):
    help = 'Classify, validate and render a media file, and store it as an attachment'

    def add_arguments(self, parser):
        parser.add_argument(
            'path',
            type=str,
            help='Path to the media file'
        )
        parser.add_argument(
            '--content-type',
            type=str,
            default=None,
            help='Declared content type (advisory, only used to tell audio from video)'
        )
        parser.add_argument(
            '--remote-url',
            type=str,
            default='',
            help='Record the file as fetched from this URL'
        )
        parser.add_argument(
            '--shortcode',
            type=str,
            default=None,
            help='Public identifier for the attachment'
        )
        parser.add_argument(
            '--focus',
            type=str,
            default=None,
            help='Focal point as x,y within [-1, 1]'
        )
        parser.add_argument(
            '--description',
            type=str,
            default='',
            help='Alt text'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Classify and validate only, without rendering or storing anything'
        )
        parser.add_argument(
            '--verbose',
            action='store_true',
            help='Enable verbose output'
        )
        parser.add_argument(
            '--json',
            action='store_true',
            help='Output result as JSON'
        )

    def handle(self, *args, **options):
        path = Path(options['path'])
        content_type = options['content_type']
        dry_run = options['dry_run']
        verbose = options['verbose']
        output_json = options['json']

        if not path.is_file():
            raise CommandError(f'File not found: {path}')

        if dry_run:
            self.dry_run(path, content_type, output_json)
            return

        logger = None
        if verbose and not output_json:
            logger = self.stdout.write

        try:
            if logger:
                self.stdout.write(self.style.NOTICE(f'Processing: {path}'))

            attachment = create_media_attachment(
                path,
                remote_url=options['remote_url'],
                shortcode=options['shortcode'],
                filename=path.name,
                content_type=content_type,
                focus=options['focus'],
                description=options['description'],
                logger=logger,
            )
        except (ValidationError, CodecError) as e:
            message = validation_message(e) if isinstance(e, ValidationError) else str(e)
            self.fail(message, output_json)
            return

        styles = list(attachment.styles.all())

        if output_json:
            output = {
                'success': True,
                'id': attachment.pk,
                'param': attachment.to_param(),
                'type': attachment.type,
                'content_type': attachment.file_content_type,
                'file_name': attachment.file_file_name,
                'file_size': attachment.file_file_size,
                'blurhash': attachment.blurhash or None,
                'meta': attachment.file_meta,
                'styles': {style.name: style.file_name for style in styles},
            }
            self.stdout.write(json.dumps(output, indent=2))
            return

        self.stdout.write(self.style.SUCCESS('✓ Processing complete'))
        self.stdout.write(f'  Attachment: {attachment.to_param()}')
        self.stdout.write(f'  Type: {attachment.type}')
        self.stdout.write(f'  Content type: {attachment.file_content_type}')
        self.stdout.write(f'  Size: {attachment.file_file_size:,} bytes')
        for style in styles:
            self.stdout.write(f'  {style.name}: {style.file_name}')
        if attachment.blurhash:
            self.stdout.write(f'  Blurhash: {attachment.blurhash}')

    def dry_run(self, path, content_type, output_json):
        from attachments.service.classify import classify
        from attachments.service.config import get_processing_limits
        from attachments.service.source import read_input
        from attachments.service.validate import Validator

        media_input = read_input(path, filename=path.name, content_type=content_type)
        classification = classify(media_input.data, media_input.declared_type)

        if not output_json:
            self.stdout.write(self.style.WARNING('DRY RUN MODE - Nothing will be rendered or stored'))
            self.stdout.write(f'Input: {path}')
            self.stdout.write(f'Size: {media_input.size:,} bytes')
            self.stdout.write(f'Type: {classification.media_type}')
            self.stdout.write(f'Content type: {classification.content_type or "unrecognized"}')

        try:
            Validator(get_processing_limits()).validate(media_input, classification)
        except ValidationError as e:
            self.fail(validation_message(e), output_json)
            return

        if output_json:
            result = {
                'dry_run': True,
                'input': str(path),
                'size': media_input.size,
                'type': classification.media_type,
                'content_type': classification.content_type,
                'valid': True,
            }
            self.stdout.write(json.dumps(result, indent=2))
        else:
            self.stdout.write(self.style.SUCCESS('Dry run complete'))

    def fail(self, message, output_json):
        if output_json:
            error_output = {
                'success': False,
                'error': message
            }
            self.stdout.write(json.dumps(error_output, indent=2))
            sys.exit(1)
        raise CommandError(f'Processing failed: {message}')
