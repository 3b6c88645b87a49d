import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='MediaAttachment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('remote_url', models.URLField(blank=True, default='', max_length=2048)),
                ('shortcode', models.CharField(blank=True, max_length=64, null=True, unique=True)),
                (
                    'type',
                    models.CharField(
                        choices=[
                            ('image', 'Image'),
                            ('gifv', 'GIFV'),
                            ('video', 'Video'),
                            ('audio', 'Audio'),
                            ('unknown', 'Unknown'),
                        ],
                        default='unknown',
                        max_length=10,
                    ),
                ),
                (
                    'processing',
                    models.CharField(
                        choices=[
                            ('queued', 'Queued'),
                            ('in_progress', 'In progress'),
                            ('complete', 'Complete'),
                            ('failed', 'Failed'),
                        ],
                        db_index=True,
                        default='queued',
                        max_length=20,
                    ),
                ),
                ('file_file_name', models.CharField(blank=True, max_length=255)),
                ('file_content_type', models.CharField(blank=True, max_length=100)),
                ('file_file_size', models.BigIntegerField(blank=True, null=True)),
                ('file_meta', models.JSONField(blank=True, default=dict)),
                ('blurhash', models.CharField(blank=True, max_length=64)),
                ('description', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['remote_url'], name='attachment_remote_url_idx'),
                    models.Index(fields=['type'], name='attachment_type_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='MediaStyle',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=32)),
                ('position', models.PositiveSmallIntegerField(default=0)),
                ('file_name', models.CharField(max_length=500)),
                ('content_type', models.CharField(max_length=100)),
                ('extension', models.CharField(max_length=10)),
                ('file_size', models.BigIntegerField()),
                ('width', models.PositiveIntegerField(blank=True, null=True)),
                ('height', models.PositiveIntegerField(blank=True, null=True)),
                ('aspect', models.FloatField(blank=True, null=True)),
                ('duration', models.FloatField(blank=True, null=True)),
                ('frame_rate', models.CharField(blank=True, max_length=32)),
                (
                    'attachment',
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name='styles',
                        to='attachments.mediaattachment',
                    ),
                ),
            ],
            options={
                'ordering': ['position'],
                'constraints': [
                    models.UniqueConstraint(fields=('attachment', 'name'), name='unique_style_per_attachment'),
                ],
            },
        ),
    ]
