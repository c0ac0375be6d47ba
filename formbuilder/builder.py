"""
Helpers for authoring conditional logic.

``LogicBuilder`` creates conditions and rule groups with a fluent API.
``DraftConditionalLogic`` holds an in-progress edit of one field's or step's
logic; nothing is applied to the form until ``commit`` succeeds.
"""

from typing import Any, List, Optional
import copy
import secrets

from .exceptions import InvalidLogicError
from .logic_engine import validate_logic_configuration
from .schema import (
    Action,
    Condition,
    ConditionalLogic,
    ConfigurationResult,
    Field,
    RuleGroup,
    Step,
    normalize_logic,
)


def generate_id(prefix: str) -> str:
    return f"{prefix}-{secrets.token_hex(4)}"


class LogicBuilder:
    """
    Helper class to build logic programmatically.

    Example:
        group = LogicBuilder.all_of(
            LogicBuilder.field('student_type').equals('international'),
            LogicBuilder.field('age').greater_than(17),
        )
    """

    @staticmethod
    def field(field_id: str) -> 'FieldConditionBuilder':
        """Start building a field condition."""
        return FieldConditionBuilder(field_id)

    @staticmethod
    def all_of(*conditions: Condition) -> RuleGroup:
        """Create an AND rule group."""
        return RuleGroup(id=generate_id('group'), operator='AND', conditions=list(conditions))

    @staticmethod
    def any_of(*conditions: Condition) -> RuleGroup:
        """Create an OR rule group."""
        return RuleGroup(id=generate_id('group'), operator='OR', conditions=list(conditions))

    @staticmethod
    def action(action_type: str, target_field_id: str, value: Any = None) -> Action:
        return Action(
            id=generate_id('action'),
            type=action_type,
            target_field_id=target_field_id,
            value=value,
        )


class FieldConditionBuilder:
    """Builder for field conditions."""

    def __init__(self, field_id: str):
        self.field_id = field_id

    def _condition(self, operator: str, value: Any = None) -> Condition:
        return Condition(
            id=generate_id('condition'),
            field_id=self.field_id,
            operator=operator,
            value=value,
        )

    def equals(self, value: Any) -> Condition:
        """Field equals value."""
        return self._condition('equals', value)

    def not_equals(self, value: Any) -> Condition:
        """Field does not equal value."""
        return self._condition('not_equals', value)

    def contains(self, value: Any) -> Condition:
        """Field contains value."""
        return self._condition('contains', value)

    def not_contains(self, value: Any) -> Condition:
        return self._condition('not_contains', value)

    def greater_than(self, value: Any) -> Condition:
        """Field is greater than value."""
        return self._condition('greater_than', value)

    def less_than(self, value: Any) -> Condition:
        """Field is less than value."""
        return self._condition('less_than', value)

    def is_empty(self) -> Condition:
        """Field is empty."""
        return self._condition('is_empty')

    def is_not_empty(self) -> Condition:
        """Field is not empty."""
        return self._condition('is_not_empty')


class DraftConditionalLogic:
    """
    Caller-owned draft of a logic block.

    The draft starts from a deep copy of existing logic (legacy flat logic is
    migrated to rule groups), so edits never leak into the form until
    ``commit`` returns the updated field or step.

    Example:
        draft = DraftConditionalLogic(field.conditional_logic)
        group = draft.add_rule_group('OR')
        draft.add_condition(group.id, LogicBuilder.field('country').equals('FR'))
        draft.add_action(LogicBuilder.action('show', field.id))
        field = draft.commit(field, fields)
    """

    def __init__(self, base: Any = None):
        logic = normalize_logic(copy.deepcopy(base))
        self.logic = logic if logic is not None else ConditionalLogic(enabled=True)

    def enable(self) -> 'DraftConditionalLogic':
        self.logic.enabled = True
        return self

    def disable(self) -> 'DraftConditionalLogic':
        self.logic.enabled = False
        return self

    def set_logic_operator(self, operator: str) -> 'DraftConditionalLogic':
        self.logic.logic_operator = operator
        return self

    def _get_group(self, group_id: str) -> RuleGroup:
        for group in self.logic.rule_groups:
            if group.id == group_id:
                return group
        raise KeyError(f"Rule group not found: {group_id}")

    def add_rule_group(self, operator: str = 'AND', conditions: Optional[List[Condition]] = None) -> RuleGroup:
        group = RuleGroup(id=generate_id('group'), operator=operator, conditions=list(conditions or []))
        self.logic.rule_groups.append(group)
        return group

    def remove_rule_group(self, group_id: str) -> None:
        group = self._get_group(group_id)
        self.logic.rule_groups.remove(group)

    def add_condition(self, group_id: str, condition: Condition) -> Condition:
        if not condition.id:
            condition.id = generate_id('condition')
        self._get_group(group_id).conditions.append(condition)
        return condition

    def remove_condition(self, condition_id: str) -> None:
        for group in self.logic.rule_groups:
            for condition in group.conditions:
                if condition.id == condition_id:
                    group.conditions.remove(condition)
                    return
        raise KeyError(f"Condition not found: {condition_id}")

    def add_action(self, action: Action) -> Action:
        if not action.id:
            action.id = generate_id('action')
        self.logic.actions.append(action)
        return action

    def remove_action(self, action_id: str) -> None:
        for action in self.logic.actions:
            if action.id == action_id:
                self.logic.actions.remove(action)
                return
        raise KeyError(f"Action not found: {action_id}")

    def validate(self, fields) -> ConfigurationResult:
        return validate_logic_configuration(self.logic, fields)

    def build(self) -> ConditionalLogic:
        """Return an independent copy of the drafted logic."""
        return copy.deepcopy(self.logic)

    def commit(self, target, fields):
        """
        Apply the draft to a field or step.

        Returns:
            A new Field or Step carrying the drafted logic

        Raises:
            InvalidLogicError: if the draft fails configuration checks
        """
        result = self.validate(fields)
        if not result.is_valid:
            raise InvalidLogicError(
                f"Cannot apply invalid logic to {target.id}: {'; '.join(result.errors)}",
                errors=result.errors,
            )

        if isinstance(target, (Field, Step)):
            return target.with_logic(self.logic)
        raise TypeError(f"Cannot apply logic to {type(target).__name__}")
