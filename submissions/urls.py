"""
URL Configuration for Submission Validation API
"""

from django.urls import path
from .views import SubmissionValidationViewSet

app_name = 'submissions'

urlpatterns = [
    path('validate/', SubmissionValidationViewSet.as_view({'post': 'validate_submission'}), name='validate'),
    path('sanitize/', SubmissionValidationViewSet.as_view({'post': 'sanitize'}), name='sanitize'),
]
