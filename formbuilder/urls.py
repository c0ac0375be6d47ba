"""
URL Configuration for Form Logic API
"""

from django.urls import path
from .views import FormLogicViewSet

app_name = 'formbuilder'

urlpatterns = [
    path('evaluate/', FormLogicViewSet.as_view({'post': 'evaluate'}), name='evaluate'),
    path('explain/', FormLogicViewSet.as_view({'post': 'explain'}), name='explain'),
    path('validate-logic/', FormLogicViewSet.as_view({'post': 'validate_logic'}), name='validate-logic'),
    path('validate-configuration/', FormLogicViewSet.as_view({'post': 'validate_configuration'}), name='validate-configuration'),
]
