"""
Static checks for a form definition.

Run when a form is saved, independently of any answers. Problems are
returned as human readable strings so the builder can show all of them at
once; nothing here raises for a bad configuration.
"""

from typing import Any, Iterable, List, Optional, Tuple
import logging
import re

from .expressions import check_expression
from .logic_engine import ConditionalLogicEngine
from .schema import CHOICE_FIELD_TYPES, FIELD_TYPE_VALUES, ConfigurationResult

logger = logging.getLogger(__name__)


def _duplicates(values: Iterable[Any]) -> List[Any]:
    seen = []
    duplicates = []
    for value in values:
        if value in seen and value not in duplicates:
            duplicates.append(value)
        seen.append(value)
    return duplicates


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_integer(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _invalid_limits(field) -> List[Tuple[str, str]]:
    """Return (attribute, expected kind) for every limit that is set but not numeric."""
    limits = [
        ('order', field.order, _is_integer, 'an integer'),
        ('minLength', field.validation.min_length, _is_integer, 'an integer'),
        ('maxLength', field.validation.max_length, _is_integer, 'an integer'),
        ('min', field.validation.min, _is_number, 'a number'),
        ('max', field.validation.max, _is_number, 'a number'),
        ('maxFiles', field.options.max_files, _is_integer, 'an integer'),
        ('maxFileSize', field.options.max_file_size, _is_number, 'a number'),
    ]
    return [(name, kind) for name, value, check, kind in limits if value is not None and not check(value)]


def _validate_field_configuration(field) -> List[str]:
    errors = []
    invalid = _invalid_limits(field)
    invalid_names = {name for name, _ in invalid}

    if not field.id:
        errors.append(f"Field {field.id or 'unknown'}: ID is required")
    if not field.type:
        errors.append(f"Field {field.id}: Type is required")
    elif field.type not in FIELD_TYPE_VALUES:
        errors.append(f"Field {field.id}: Unknown field type {field.type}")
    if not field.label:
        errors.append(f"Field {field.id}: Label is required")
    errors.extend(f"Field {field.id}: {name} must be {kind}" for name, kind in invalid)
    if field.order is not None and 'order' not in invalid_names and field.order < 0:
        errors.append(f"Field {field.id}: Order must be non-negative")

    if field.type in CHOICE_FIELD_TYPES and not field.options.choices:
        errors.append(f"Field {field.id}: Choices are required for {field.type} fields")

    validation = field.validation
    if validation.min_length is not None and validation.max_length is not None:
        if not invalid_names & {'minLength', 'maxLength'} and validation.min_length > validation.max_length:
            errors.append(f"Field {field.id}: minLength cannot be greater than maxLength")

    if validation.min is not None and validation.max is not None:
        if not invalid_names & {'min', 'max'} and validation.min > validation.max:
            errors.append(f"Field {field.id}: min cannot be greater than max")

    if validation.pattern:
        try:
            re.compile(validation.pattern)
        except re.error as e:
            errors.append(f"Field {field.id}: Invalid pattern ({e})")

    if validation.custom_validation:
        message = check_expression(validation.custom_validation)
        if message:
            errors.append(f"Field {field.id}: Invalid custom validation ({message})")

    return errors


def validate_form_configuration(fields, steps: Optional[Iterable[Any]] = None) -> ConfigurationResult:
    """
    Check a form's fields (and optional steps) for internal consistency.

    Covers duplicate ids and orders, missing attributes, choice fields
    without choices, inverted min/max pairs, unusable patterns and
    expressions, and every logic block's references.
    """
    engine = ConditionalLogicEngine(fields, steps)
    errors: List[str] = []

    duplicate_ids = _duplicates(f.id for f in engine.fields)
    if duplicate_ids:
        errors.append(f"Duplicate field IDs found: {', '.join(duplicate_ids)}")

    duplicate_orders = _duplicates(f.order for f in engine.fields if f.order is not None)
    if duplicate_orders:
        errors.append(f"Duplicate field orders found: {', '.join(str(o) for o in duplicate_orders)}")

    for field in engine.fields:
        errors.extend(_validate_field_configuration(field))
        if field.conditional_logic is not None:
            result = engine.validate_logic_configuration(field.conditional_logic)
            errors.extend(f"Field {field.id}: {message}" for message in result.errors)

    duplicate_steps = _duplicates(s.id for s in engine.steps)
    if duplicate_steps:
        errors.append(f"Duplicate step IDs found: {', '.join(duplicate_steps)}")

    for step in engine.steps:
        for field_id in step.field_ids:
            if field_id not in engine.field_map:
                errors.append(f"Step {step.id}: references non-existent field: {field_id}")
        if step.conditions is not None:
            result = engine.validate_logic_configuration(step.conditions)
            errors.extend(f"Step {step.id}: {message}" for message in result.errors)

    if errors:
        logger.info(f"Form configuration has {len(errors)} problem(s)")

    return ConfigurationResult(errors)
