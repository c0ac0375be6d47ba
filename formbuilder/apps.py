from django.apps import AppConfig


class FormBuilderConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'formbuilder'
    verbose_name = 'Form Builder Logic'
