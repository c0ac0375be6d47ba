"""
Root URL configuration
"""

from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView

urlpatterns = [
    path('api/logic/', include('formbuilder.urls')),
    path('api/submissions/', include('submissions.urls')),
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
]
