"""
URL configuration for the documents app.
"""
from django.urls import path
from . import views

app_name = 'documents'

urlpatterns = [
    path('upload/', views.DocumentUploadView.as_view(), name='upload'),
    path('documents/', views.DocumentListView.as_view(), name='list'),
]
