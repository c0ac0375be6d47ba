"""
Submit-time processing.

Runs a submitted answer map through sanitization, conditional logic and
validation in one pass, returning the answers the caller should persist.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

from formbuilder.conf import get_setting
from formbuilder.logic_engine import ConditionalLogicEngine
from formbuilder.schema import ValidationError

from .sanitization import sanitize_form_data
from .validation import FormValidator

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    answers: Dict[str, Any] = field(default_factory=dict)
    visible_field_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'isValid': self.is_valid,
            'errors': [e.to_dict() for e in self.errors],
            'answers': dict(self.answers),
            'visibleFieldIds': list(self.visible_field_ids),
        }


def prepare_submission(fields, answers: Dict[str, Any], steps=None, sanitize: Optional[bool] = None) -> SubmissionResult:
    """
    Process a submitted answer map.

    1. Strip XSS payloads from string answers (unless disabled)
    2. Apply every set_value / clear_value action
    3. Validate the fields that are visible after logic runs

    Hidden fields are not validated unless ``VALIDATE_HIDDEN_FIELDS`` is set,
    so a required field hidden by logic never blocks a submission.
    """
    if sanitize is None:
        sanitize = get_setting('SANITIZE_SUBMISSIONS')

    cleaned = sanitize_form_data(answers) if sanitize else dict(answers)

    engine = ConditionalLogicEngine(fields, steps)
    state = engine.evaluate_form(cleaned)

    field_ids = None if get_setting('VALIDATE_HIDDEN_FIELDS') else state.visible_field_ids
    validation = FormValidator(engine.fields).validate(state.answers, field_ids)

    logger.info(
        f"Processed submission: {len(state.visible_field_ids)} visible field(s), "
        f"{len(validation.errors)} error(s)"
    )

    return SubmissionResult(
        is_valid=validation.is_valid,
        errors=validation.errors,
        answers=state.answers,
        visible_field_ids=state.visible_field_ids,
    )
