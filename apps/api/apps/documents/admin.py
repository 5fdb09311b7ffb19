from django.contrib import admin
from .models import Analysis, Document


class AnalysisInline(admin.TabularInline):
    model = Analysis
    extra = 0
    fields = ['status', 'analysis_type', 'version', 'completed_at', 'created_at']
    readonly_fields = ['created_at']


@admin.register(Document)
class DocumentAdmin(admin.ModelAdmin):
    list_display = [
        'original_filename',
        'user',
        'document_type',
        'mime_type',
        'file_size',
        'is_deleted',
        'uploaded_at'
    ]
    list_filter = ['is_deleted', 'document_type', 'mime_type', 'uploaded_at']
    search_fields = ['original_filename', 'file_id', 'object_key']
    readonly_fields = [
        'id',
        'file_id',
        'object_key',
        'bucket_name',
        'url',
        'uploaded_at'
    ]
    inlines = [AnalysisInline]

    fieldsets = (
        ('Document Info', {
            'fields': ('id', 'user', 'original_filename', 'document_type', 'tags')
        }),
        ('Storage', {
            'fields': ('file_id', 'bucket_name', 'object_key', 'url')
        }),
        ('File Metadata', {
            'fields': ('mime_type', 'file_extension', 'file_size')
        }),
        ('Soft Delete', {
            'fields': ('is_deleted',)
        }),
        ('Audit', {
            'fields': ('uploaded_at',)
        }),
    )


@admin.register(Analysis)
class AnalysisAdmin(admin.ModelAdmin):
    list_display = ['id', 'document', 'user', 'analysis_type', 'status', 'version', 'created_at', 'completed_at']
    list_filter = ['status', 'analysis_type', 'version']
    readonly_fields = ['created_at']
