"""
Engine settings with defaults.

Values are read from the ``FORM_ENGINE`` dict in Django settings on every
call so that overrides (e.g. ``override_settings`` in tests) take effect.
"""

from django.conf import settings

DEFAULTS = {
    'PHONE_MIN_DIGITS': 7,
    'PHONE_MAX_DIGITS': 15,
    'MAX_EXPRESSION_LENGTH': 500,
    'SANITIZE_SUBMISSIONS': True,
    'VALIDATE_HIDDEN_FIELDS': False,
}


def get_setting(name):
    """Return an engine setting, falling back to the built-in default."""
    overrides = getattr(settings, 'FORM_ENGINE', None) or {}
    if name in overrides:
        return overrides[name]
    return DEFAULTS[name]
