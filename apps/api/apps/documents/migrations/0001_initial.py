# Generated migration for documents app - document and analysis tables

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Document',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('original_filename', models.CharField(help_text='Filename as supplied by the client', max_length=255)),
                ('file_id', models.CharField(help_text='Generated storage file id, independent of the filename', max_length=64, unique=True)),
                ('file_size', models.BigIntegerField(help_text='File size in bytes')),
                ('mime_type', models.CharField(help_text='MIME type (e.g., application/pdf)', max_length=128)),
                ('file_extension', models.CharField(blank=True, default='', help_text="Lower-cased extension including the dot, e.g. '.pdf'", max_length=32)),
                ('object_key', models.CharField(help_text='MinIO object key (path) within the bucket', max_length=512, unique=True)),
                ('bucket_name', models.CharField(help_text='MinIO bucket name', max_length=64)),
                ('url', models.TextField(blank=True, help_text='Last issued presigned URL (ephemeral)', null=True)),
                ('document_type', models.CharField(blank=True, help_text='Document category, e.g. lab_report. Triggers an analysis when set.', max_length=64, null=True)),
                ('tags', models.JSONField(blank=True, default=list, help_text='Ordered list of free-form tags')),
                ('is_deleted', models.BooleanField(default=False, help_text='Soft delete flag')),
                ('uploaded_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('user', models.ForeignKey(
                    help_text='Owner of the document',
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='documents',
                    to=settings.AUTH_USER_MODEL
                )),
            ],
            options={
                'verbose_name': 'Document',
                'verbose_name_plural': 'Documents',
                'db_table': 'document',
                'ordering': ['-uploaded_at', '-id'],
            },
        ),
        migrations.CreateModel(
            name='Analysis',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(
                    choices=[
                        ('pending', 'Pending'),
                        ('in_progress', 'In progress'),
                        ('completed', 'Completed'),
                        ('failed', 'Failed'),
                    ],
                    db_index=True,
                    default='pending',
                    max_length=20
                )),
                ('analysis_type', models.CharField(help_text='Kind of analysis, taken from the document type', max_length=64)),
                ('version', models.CharField(help_text='Analysis pipeline version tag', max_length=32)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('document', models.ForeignKey(
                    help_text='The document being analysed',
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='analyses',
                    to='documents.document'
                )),
                ('user', models.ForeignKey(
                    help_text='Owner of the analysed document',
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='analyses',
                    to=settings.AUTH_USER_MODEL
                )),
            ],
            options={
                'verbose_name': 'Analysis',
                'verbose_name_plural': 'Analyses',
                'db_table': 'analysis',
                'ordering': ['-created_at', '-id'],
            },
        ),
        migrations.AddIndex(
            model_name='document',
            index=models.Index(fields=['user', 'is_deleted', 'uploaded_at'], name='idx_document_user_listing'),
        ),
        migrations.AddIndex(
            model_name='document',
            index=models.Index(fields=['document_type'], name='idx_document_type'),
        ),
        migrations.AddIndex(
            model_name='analysis',
            index=models.Index(fields=['document', 'created_at'], name='idx_analysis_document'),
        ),
    ]
