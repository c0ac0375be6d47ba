"""
Conditional Logic Engine for Dynamic Forms

Decides, from a form definition and a (possibly partial) answer map:
- which fields and steps are visible
- which fields are required
- which answers are rewritten by set_value / clear_value actions
- which UI effects (show, hide, enable, ...) apply to each field

Evaluation is pure: answer maps passed in are never mutated, and references
to fields that no longer exist fail closed (false / no-op) instead of raising.
"""

from typing import Any, Dict, Iterable, List, Optional
import copy
import logging

from .schema import (
    ACTION_TYPE_VALUES,
    CONDITION_LOGIC,
    CONDITION_OPERATORS,
    GROUP_OPERATORS,
    UI_ACTION_TYPES,
    ActionResult,
    ConditionalLogic,
    ConfigurationResult,
    FormState,
    normalize_logic,
    parse_conditional_logic,
    parse_fields,
    parse_steps,
)
from .values import is_empty, is_nan, to_display_string, to_number

logger = logging.getLogger(__name__)


class ConditionalLogicEngine:
    """
    Evaluates field and step logic against an answer map.

    The engine is bound to one form definition. Flat legacy logic is migrated
    to rule groups once per field and step; only the grouped model is ever
    evaluated.
    """

    # Whitelisted comparison operators, applied to lowered display strings
    COMPARISON_OPERATORS = {
        'equals': lambda a, b: a == b,
        'not_equals': lambda a, b: a != b,
        'contains': lambda a, b: b in a,
        'not_contains': lambda a, b: b not in a,
    }

    # Operators applied to Number() coerced values
    NUMERIC_OPERATORS = {
        'greater_than': lambda a, b: a > b,
        'less_than': lambda a, b: a < b,
    }

    def __init__(self, fields: Iterable[Any], steps: Optional[Iterable[Any]] = None):
        """
        Args:
            fields: Field instances or their JSON dicts
            steps: optional Step instances or their JSON dicts
        """
        self.fields = parse_fields(list(fields))
        self.steps = parse_steps(list(steps or []))
        self.field_map = {field.id: field for field in self.fields}

        self._field_logic = {
            field.id: normalize_logic(field.conditional_logic) for field in self.fields
        }
        self._step_logic = {
            step.id: normalize_logic(step.conditions) for step in self.steps
        }
        self._field_steps = {}
        for step in self.steps:
            for field_id in step.field_ids:
                self._field_steps.setdefault(field_id, []).append(step)

    # ========================================================================
    # Conditions
    # ========================================================================

    def evaluate_condition(self, condition, answers: Dict[str, Any]) -> bool:
        """Evaluate a single condition against the answer map."""
        if condition.field_id not in self.field_map:
            return False

        actual = answers.get(condition.field_id)

        if condition.operator == 'is_empty':
            return is_empty(actual)
        if condition.operator == 'is_not_empty':
            return not is_empty(actual)

        # An absent or empty answer never satisfies a comparison
        if is_empty(actual):
            return False

        if condition.operator in self.COMPARISON_OPERATORS:
            compare = self.COMPARISON_OPERATORS[condition.operator]
            return compare(
                to_display_string(actual).lower(),
                to_display_string(condition.value).lower(),
            )

        if condition.operator in self.NUMERIC_OPERATORS:
            actual_number = to_number(actual)
            expected_number = to_number(condition.value)
            if is_nan(actual_number) or is_nan(expected_number):
                return False
            return self.NUMERIC_OPERATORS[condition.operator](actual_number, expected_number)

        logger.warning(f"Unknown condition operator {condition.operator!r}, treating as false")
        return False

    def evaluate_rule_group(self, group, answers: Dict[str, Any]) -> bool:
        """
        Evaluate one rule group.

        An empty group places no constraint. Any operator other than AND
        combines as OR.
        """
        if not group.conditions:
            return True

        results = (self.evaluate_condition(c, answers) for c in group.conditions)
        if group.operator == 'AND':
            return all(results)
        return any(results)

    def evaluate_conditions(self, logic: Any, answers: Dict[str, Any]) -> bool:
        """
        Evaluate a logic block of either shape.

        Disabled logic and logic without conditions are trivially satisfied.
        """
        logic = normalize_logic(logic)
        if logic is None or not logic.enabled or not logic.rule_groups:
            return True

        results = (self.evaluate_rule_group(g, answers) for g in logic.rule_groups)
        if logic.logic_operator == 'AND':
            return all(results)
        return any(results)

    # ========================================================================
    # Actions
    # ========================================================================

    CLEARED_VALUES = {
        'checkbox': False,
        'multiselect': [],
        'number': 0,
    }

    def execute_action(self, action, answers: Dict[str, Any]) -> ActionResult:
        """Work out the effect of one action without applying it."""
        current = answers.get(action.target_field_id)
        target = self.field_map.get(action.target_field_id)

        if target is None:
            return ActionResult(target_field_id=action.target_field_id, value=current)

        if action.type in UI_ACTION_TYPES:
            return ActionResult(
                target_field_id=action.target_field_id,
                value=current,
                effect=action.type,
            )

        if action.type == 'set_value':
            if action.value is None:
                return ActionResult(target_field_id=action.target_field_id, value=current)
            return ActionResult(
                target_field_id=action.target_field_id,
                value=copy.deepcopy(action.value),
                changes_value=True,
            )

        if action.type == 'clear_value':
            return ActionResult(
                target_field_id=action.target_field_id,
                value=copy.deepcopy(self.CLEARED_VALUES.get(target.type, '')),
                changes_value=True,
            )

        logger.warning(f"Unknown action type {action.type!r} for field {action.target_field_id}")
        return ActionResult(target_field_id=action.target_field_id, value=current)

    def execute_actions(self, logic: Any, answers: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply a logic block's actions to the answer map.

        Returns the same map when the logic is disabled, has no actions or
        its conditions do not hold. Otherwise returns a new map with the
        actions applied in order, each one seeing earlier writes.
        """
        logic = normalize_logic(logic)
        if logic is None or not logic.enabled or not logic.actions:
            return answers

        if not self.evaluate_conditions(logic, answers):
            return answers

        updated = dict(answers)
        for action in logic.actions:
            result = self.execute_action(action, updated)
            if result.changes_value:
                updated[result.target_field_id] = result.value

        return updated

    # ========================================================================
    # Visibility
    # ========================================================================

    def is_step_visible(self, step, answers: Dict[str, Any]) -> bool:
        if not step.is_active:
            return False
        return self.evaluate_conditions(self._step_logic.get(step.id, step.conditions), answers)

    def is_field_visible(self, field, answers: Dict[str, Any]) -> bool:
        """
        A field is visible when its own logic holds and, when it belongs to
        steps, at least one of those steps is visible.
        """
        if not self.evaluate_conditions(self._field_logic.get(field.id, field.conditional_logic), answers):
            return False

        steps = self._field_steps.get(field.id)
        if steps:
            return any(self.is_step_visible(step, answers) for step in steps)
        return True

    def get_visible_field_ids(self, answers: Dict[str, Any]) -> List[str]:
        return [f.id for f in self.fields if self.is_field_visible(f, answers)]

    def get_required_field_ids(self, answers: Dict[str, Any]) -> List[str]:
        return [
            f.id for f in self.fields
            if f.required is True and self.is_field_visible(f, answers)
        ]

    def get_visible_step_ids(self, answers: Dict[str, Any]) -> List[str]:
        return [s.id for s in self.steps if self.is_step_visible(s, answers)]

    def collect_effects(self, answers: Dict[str, Any]) -> Dict[str, List[str]]:
        """
        Map each target field id to the UI effects triggered for it.

        Effects are listed in definition order (fields first, then steps).
        """
        effects: Dict[str, List[str]] = {}
        blocks = list(self._field_logic.values()) + list(self._step_logic.values())

        for logic in blocks:
            if logic is None or not logic.enabled or not logic.actions:
                continue
            if not self.evaluate_conditions(logic, answers):
                continue
            for action in logic.actions:
                result = self.execute_action(action, answers)
                if result.effect:
                    effects.setdefault(result.target_field_id, []).append(result.effect)

        return effects

    def evaluate_form(self, answers: Dict[str, Any]) -> FormState:
        """
        Run every field's and step's actions, then compute the form state.

        Actions are applied in definition order and thread the answer map.
        Visibility, required fields and effects are computed on the result.
        """
        current = answers
        for logic in list(self._field_logic.values()) + list(self._step_logic.values()):
            current = self.execute_actions(logic, current)

        state = FormState(
            visible_field_ids=self.get_visible_field_ids(current),
            required_field_ids=self.get_required_field_ids(current),
            visible_step_ids=self.get_visible_step_ids(current),
            answers=dict(current),
            effects=self.collect_effects(current),
        )
        logger.debug(
            f"Evaluated form: {len(state.visible_field_ids)}/{len(self.fields)} fields visible, "
            f"{len(state.required_field_ids)} required"
        )
        return state

    # ========================================================================
    # Explanation
    # ========================================================================

    def explain_evaluation(self, logic: Any, answers: Dict[str, Any]) -> Dict[str, Any]:
        """
        Evaluate logic and return a detailed explanation of each step.

        Useful for showing form authors why a field is shown or hidden.

        Returns:
            Dictionary with result and explanation tree
        """
        grouped = normalize_logic(logic)
        result = self.evaluate_conditions(grouped, answers)

        if grouped is None or not grouped.enabled:
            return {
                'result': result,
                'explanation': {'type': 'disabled', 'result': result},
            }

        groups = [self._explain_group(group, answers) for group in grouped.rule_groups]
        return {
            'result': result,
            'explanation': {
                'type': 'logical',
                'operator': grouped.logic_operator,
                'result': result,
                'conditions': groups,
            },
        }

    def _explain_group(self, group, answers: Dict[str, Any]) -> Dict[str, Any]:
        conditions = [
            {
                'type': 'comparison',
                'field': c.field_id,
                'comparison': c.operator,
                'actual_value': answers.get(c.field_id),
                'expected_value': c.value,
                'field_exists': c.field_id in self.field_map,
                'result': self.evaluate_condition(c, answers),
            }
            for c in group.conditions
        ]
        return {
            'type': 'logical',
            'id': group.id,
            'operator': group.operator,
            'result': self.evaluate_rule_group(group, answers),
            'conditions': conditions,
        }

    # ========================================================================
    # Configuration checks
    # ========================================================================

    def validate_logic_configuration(self, logic: Any) -> ConfigurationResult:
        """
        Check a logic block against the form's fields.

        Every problem is collected; nothing is raised for bad references or
        unknown enum values.
        """
        logic = parse_conditional_logic(logic)
        errors: List[str] = []
        if logic is None:
            return ConfigurationResult(errors)

        if isinstance(logic, ConditionalLogic):
            if logic.logic_operator not in GROUP_OPERATORS:
                errors.append(f"Invalid logic operator: {logic.logic_operator}")
            for group in logic.rule_groups:
                if group.operator not in GROUP_OPERATORS:
                    errors.append(f"Invalid rule group operator: {group.operator}")

        for condition in logic.conditions:
            if condition.field_id not in self.field_map:
                errors.append(f"Condition references non-existent field: {condition.field_id}")
            if condition.operator not in CONDITION_OPERATORS:
                errors.append(f"Invalid operator: {condition.operator}")
            if condition.logic not in CONDITION_LOGIC:
                errors.append(f"Invalid logic operator: {condition.logic}")

        for action in logic.actions:
            if action.target_field_id not in self.field_map:
                errors.append(f"Action targets non-existent field: {action.target_field_id}")
            if action.type not in ACTION_TYPE_VALUES:
                errors.append(f"Invalid action type: {action.type}")

        return ConfigurationResult(errors)


# ============================================================================
# Module-level helpers
# ============================================================================

def evaluate_condition(condition, answers: Dict[str, Any], fields) -> bool:
    return ConditionalLogicEngine(fields).evaluate_condition(condition, answers)


def evaluate_conditions(logic, answers: Dict[str, Any], fields) -> bool:
    """True when the logic block's conditions hold (or it places no constraint)."""
    return ConditionalLogicEngine(fields).evaluate_conditions(logic, answers)


def execute_actions(logic, answers: Dict[str, Any], fields) -> Dict[str, Any]:
    return ConditionalLogicEngine(fields).execute_actions(logic, answers)


def get_visible_field_ids(fields, answers: Dict[str, Any], steps=None) -> List[str]:
    return ConditionalLogicEngine(fields, steps).get_visible_field_ids(answers)


def get_required_field_ids(fields, answers: Dict[str, Any], steps=None) -> List[str]:
    return ConditionalLogicEngine(fields, steps).get_required_field_ids(answers)


def get_visible_step_ids(steps, answers: Dict[str, Any], fields) -> List[str]:
    return ConditionalLogicEngine(fields, steps).get_visible_step_ids(answers)


def evaluate_form(fields, answers: Dict[str, Any], steps=None) -> FormState:
    return ConditionalLogicEngine(fields, steps).evaluate_form(answers)


def validate_logic_configuration(logic, fields) -> ConfigurationResult:
    """Check a logic block's references and enum values against ``fields``."""
    return ConditionalLogicEngine(fields).validate_logic_configuration(logic)
