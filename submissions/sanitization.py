"""
Basic XSS stripping for submitted answers.

Removes script blocks, ``javascript:`` URLs and inline event handler
attributes from string answers before they are stored. Non-string answers
pass through unchanged.
"""

from typing import Any, Dict
import re

SCRIPT_BLOCK_PATTERN = re.compile(r'<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>', re.IGNORECASE)
JAVASCRIPT_URL_PATTERN = re.compile(r'javascript:', re.IGNORECASE)
EVENT_HANDLER_PATTERN = re.compile(r'on\w+\s*=', re.IGNORECASE)


def sanitize_value(value: Any) -> Any:
    if isinstance(value, str):
        value = SCRIPT_BLOCK_PATTERN.sub('', value)
        value = JAVASCRIPT_URL_PATTERN.sub('', value)
        return EVENT_HANDLER_PATTERN.sub('', value)

    if isinstance(value, list):
        return [sanitize_value(item) if isinstance(item, str) else item for item in value]

    return value


def sanitize_form_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return a sanitized copy of the answer map."""
    return {key: sanitize_value(value) for key, value in data.items()}
