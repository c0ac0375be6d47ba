"""
Answer Validation

Checks a finished answer map against each field's type and rules. Rule
violations are returned as ``ValidationError`` records, all of them, so the
form can show every problem at once. Nothing here raises for bad answers.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging
import re

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import RegexValidator, URLValidator
from django.utils.dateparse import parse_date, parse_datetime

from formbuilder.conf import get_setting
from formbuilder.exceptions import ExpressionError
from formbuilder.expressions import evaluate_expression
from formbuilder.schema import Field, FormValidationResult, ValidationError, parse_fields
from formbuilder.values import is_empty, is_nan, to_display_string, to_number

logger = logging.getLogger(__name__)


def _limit(value: Any) -> Optional[float]:
    """Read a configured limit as a number; None when unset or not numeric."""
    if value is None:
        return None
    number = to_number(value)
    return None if is_nan(number) else number


class FieldValidator:
    """
    Validates one answer against one field.

    Order of checks:
    1. required and empty: a single ``required`` error, nothing else runs
    2. empty and optional: no errors
    3. type-specific checks
    4. length, pattern and custom expression rules
    """

    email_validator = RegexValidator(regex=r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
    url_validator = URLValidator()

    def __init__(self, field: Field):
        self.field = field

    def validate(self, value: Any, all_answers: Optional[Dict[str, Any]] = None) -> List[ValidationError]:
        field = self.field

        if field.required and is_empty(value):
            return [self._error(
                'required',
                field.validation.error_message or f"{field.label} is required",
            )]

        if is_empty(value):
            return []

        errors = self._validate_type(value)
        errors.extend(self._validate_rules(value, all_answers or {}))
        return errors

    def _error(self, error_type: str, message: str) -> ValidationError:
        return ValidationError(
            field_id=self.field.id,
            field_label=self.field.label,
            type=error_type,
            message=message,
        )

    # ========================================================================
    # Type checks
    # ========================================================================

    def _validate_type(self, value: Any) -> List[ValidationError]:
        field_type = self.field.type

        if field_type == 'email':
            return self._validate_email(value)

        elif field_type == 'phone':
            return self._validate_phone(value)

        elif field_type == 'number':
            return self._validate_number(value)

        elif field_type == 'url':
            return self._validate_url(value)

        elif field_type == 'date':
            return self._validate_date(value)

        elif field_type == 'file':
            return self._validate_file(value)

        elif field_type in ('select', 'radio'):
            return self._validate_choice(value)

        elif field_type in ('multiselect', 'checkbox'):
            return self._validate_multiple_choice(value)

        return []

    def _validate_email(self, value):
        """Validate email format."""
        try:
            self.email_validator(to_display_string(value))
        except DjangoValidationError:
            return [self._error('email', "Please enter a valid email address")]
        return []

    def _validate_phone(self, value):
        """Count digits, ignoring separators and a leading +."""
        digits = re.sub(r'\D', '', to_display_string(value))
        min_digits = get_setting('PHONE_MIN_DIGITS')
        max_digits = get_setting('PHONE_MAX_DIGITS')
        if not min_digits <= len(digits) <= max_digits:
            return [self._error('phone', "Please enter a valid phone number")]
        return []

    def _validate_number(self, value):
        """Validate numeric value and range."""
        if isinstance(value, bool) or not isinstance(value, (int, float, Decimal, str)):
            return [self._error('number', "Please enter a valid number")]

        number = to_number(value)
        if is_nan(number):
            return [self._error('number', "Please enter a valid number")]

        errors = []
        validation = self.field.validation
        minimum = _limit(validation.min)
        maximum = _limit(validation.max)
        if minimum is not None and number < minimum:
            errors.append(self._error('min', f"Value must be at least {to_display_string(validation.min)}"))
        if maximum is not None and number > maximum:
            errors.append(self._error('max', f"Value must be at most {to_display_string(validation.max)}"))
        return errors

    def _validate_url(self, value):
        """Validate URL format."""
        try:
            self.url_validator(to_display_string(value))
        except DjangoValidationError:
            return [self._error('url', "Please enter a valid URL")]
        return []

    def _validate_date(self, value):
        """Accept date objects and ISO 8601 date or datetime strings."""
        if isinstance(value, (date, datetime)):
            return []

        parsed = None
        if isinstance(value, str):
            text = value.strip()
            try:
                parsed = parse_datetime(text) or parse_date(text)
            except ValueError:
                parsed = None

        if parsed is None:
            return [self._error('date', "Please enter a valid date")]
        return []

    def _validate_file(self, value):
        """Check upload count, size and type against the field options."""
        if not self._is_valid_file_list(value):
            return [self._error('file', "Please upload a valid file")]
        return []

    def _is_valid_file_list(self, value) -> bool:
        if not isinstance(value, list):
            return False

        options = self.field.options
        max_files = _limit(options.max_files)
        if max_files and len(value) > max_files:
            return False

        uploads = [item for item in value if isinstance(item, dict)]

        max_file_size = _limit(options.max_file_size)
        if max_file_size:
            for upload in uploads:
                size = upload.get('fileSize')
                if size is not None and to_number(size) > max_file_size:
                    return False

        if options.allowed_types:
            for upload in uploads:
                if 'fileType' in upload and upload['fileType'] not in options.allowed_types:
                    return False

        return True

    def _validate_choice(self, value):
        """Validate choice field value against options."""
        valid_values = self.field.options.choice_values
        if valid_values is not None and value not in valid_values:
            return [self._error('select', "Please select a valid option")]
        return []

    def _validate_multiple_choice(self, value):
        valid_values = self.field.options.choice_values
        if not isinstance(value, list):
            return [self._error('multiselect', "Please select valid options")]
        if valid_values is not None and any(v not in valid_values for v in value):
            return [self._error('multiselect', "Please select valid options")]
        return []

    # ========================================================================
    # Rules
    # ========================================================================

    def _validate_rules(self, value: Any, all_answers: Dict[str, Any]) -> List[ValidationError]:
        validation = self.field.validation
        errors = []

        if isinstance(value, str):
            min_length = _limit(validation.min_length)
            max_length = _limit(validation.max_length)
            if min_length is not None and len(value) < min_length:
                errors.append(self._error('minLength', f"Must be at least {validation.min_length} characters"))

            if max_length is not None and len(value) > max_length:
                errors.append(self._error('maxLength', f"Must be no more than {validation.max_length} characters"))

            if validation.pattern and not self._matches_pattern(value):
                errors.append(self._error('pattern', validation.error_message or "Invalid format"))

        if validation.custom_validation:
            errors.extend(self._validate_custom(value, all_answers))

        return errors

    def _matches_pattern(self, value: str) -> bool:
        try:
            return re.search(self.field.validation.pattern, value) is not None
        except re.error as e:
            logger.warning(f"Field {self.field.id} has an invalid pattern: {e}")
            return False

    def _validate_custom(self, value, all_answers):
        validation = self.field.validation
        try:
            accepted = evaluate_expression(validation.custom_validation, value, all_answers)
        except ExpressionError as e:
            logger.warning(f"Custom validation failed for field {self.field.id}: {e}")
            return [self._error('custom', "Validation error occurred")]

        if not accepted:
            return [self._error('custom', validation.error_message or "Invalid value")]
        return []


class FormValidator:
    """Runs the field validator over every field of a form."""

    def __init__(self, fields):
        self.fields = parse_fields(list(fields))

    def validate(self, answers: Dict[str, Any], field_ids: Optional[List[str]] = None) -> FormValidationResult:
        """
        Validate the answer map.

        Args:
            answers: field id to answer
            field_ids: restrict validation to these fields (e.g. visible ones)
        """
        errors = []
        for field in self.fields:
            if field_ids is not None and field.id not in field_ids:
                continue
            errors.extend(FieldValidator(field).validate(answers.get(field.id), answers))

        return FormValidationResult(errors)


def validate_field(field, value: Any, all_answers: Optional[Dict[str, Any]] = None) -> List[ValidationError]:
    if not isinstance(field, Field):
        field = Field.from_dict(field)
    return FieldValidator(field).validate(value, all_answers)


def validate_form_data(fields, answers: Dict[str, Any]) -> FormValidationResult:
    """Validate every field's answer, collecting errors in field order."""
    return FormValidator(fields).validate(answers)
