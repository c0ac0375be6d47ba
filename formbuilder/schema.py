"""
Form Definition Schema

Plain data structures for fields, steps and conditional logic as the engine
sees them. Instances are built from the JSON stored by the form builder
(camelCase keys) and are treated as read-only configuration.

Conditional logic comes in two shapes:
- grouped: rule groups combined by a top-level AND/OR (current builder)
- flat: one condition list where each condition carries its own and/or
  (records authored before rule groups existed)

Both load into the ``LogicConfig`` tagged union. The engine only evaluates
the grouped shape; flat records are converted by ``migrate_flat_logic``.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Union
import copy
import logging

from .exceptions import InvalidLogicError

logger = logging.getLogger(__name__)


FIELD_TYPES = [
    ('text', 'Text'),
    ('textarea', 'Text Area'),
    ('email', 'Email'),
    ('phone', 'Phone'),
    ('number', 'Number'),
    ('date', 'Date'),
    ('time', 'Time'),
    ('datetime', 'Date & Time'),
    ('select', 'Dropdown'),
    ('multiselect', 'Multi Select'),
    ('radio', 'Radio'),
    ('checkbox', 'Checkbox'),
    ('file', 'File Upload'),
    ('signature', 'Signature'),
    ('rating', 'Rating'),
    ('slider', 'Slider'),
    ('address', 'Address'),
    ('url', 'URL'),
    ('password', 'Password'),
    ('hidden', 'Hidden'),
    ('divider', 'Divider'),
    ('heading', 'Heading'),
    ('paragraph', 'Paragraph'),
    ('calculation', 'Calculation'),
    ('payment', 'Payment'),
]

FIELD_TYPE_VALUES = [choice[0] for choice in FIELD_TYPES]

CHOICE_FIELD_TYPES = ['select', 'radio', 'multiselect', 'checkbox']

CONDITION_OPERATORS = [
    'equals', 'not_equals', 'contains', 'not_contains',
    'greater_than', 'less_than', 'is_empty', 'is_not_empty',
]

CONDITION_LOGIC = ['and', 'or']

GROUP_OPERATORS = ['AND', 'OR']

ACTION_TYPES = [
    ('show', 'Show Field'),
    ('hide', 'Hide Field'),
    ('require', 'Make Required'),
    ('make_optional', 'Make Optional'),
    ('enable', 'Enable Field'),
    ('disable', 'Disable Field'),
    ('set_value', 'Set Value'),
    ('clear_value', 'Clear Value'),
]

ACTION_TYPE_VALUES = [choice[0] for choice in ACTION_TYPES]

# Actions that only signal the renderer and never touch answers
UI_ACTION_TYPES = ['show', 'hide', 'require', 'make_optional', 'enable', 'disable']

VALIDATION_ERROR_TYPES = [
    'required', 'email', 'phone', 'number', 'min', 'max', 'url', 'date',
    'file', 'select', 'multiselect', 'minLength', 'maxLength', 'pattern', 'custom',
]


def _require_mapping(data: Any, what: str) -> Mapping:
    if not isinstance(data, Mapping):
        raise InvalidLogicError(f"{what} must be an object, got {type(data).__name__}")
    return data


def _require_list(data: Any, what: str) -> list:
    if data is None:
        return []
    if not isinstance(data, (list, tuple)):
        raise InvalidLogicError(f"{what} must be a list, got {type(data).__name__}")
    return list(data)


def _text(value: Any) -> str:
    return '' if value is None else str(value)


# ============================================================================
# Conditional logic
# ============================================================================

@dataclass
class Condition:
    """One comparison between a trigger field's answer and a literal."""

    field_id: str
    operator: str
    value: Any = None
    logic: str = 'and'
    id: str = ''

    @classmethod
    def from_dict(cls, data: Mapping) -> 'Condition':
        data = _require_mapping(data, 'Condition')
        return cls(
            id=_text(data.get('id')),
            field_id=_text(data.get('fieldId')),
            operator=_text(data.get('operator')),
            value=data.get('value'),
            logic=_text(data.get('logic', 'and')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'fieldId': self.field_id,
            'operator': self.operator,
            'value': self.value,
            'logic': self.logic,
        }


@dataclass
class RuleGroup:
    """Conditions combined by a single AND/OR operator."""

    conditions: List[Condition] = field(default_factory=list)
    operator: str = 'AND'
    id: str = ''

    @classmethod
    def from_dict(cls, data: Mapping) -> 'RuleGroup':
        data = _require_mapping(data, 'Rule group')
        conditions = _require_list(data.get('conditions'), 'Rule group conditions')
        return cls(
            id=_text(data.get('id')),
            operator=_text(data.get('operator', 'AND')),
            conditions=[Condition.from_dict(c) for c in conditions],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'operator': self.operator,
            'conditions': [c.to_dict() for c in self.conditions],
        }


@dataclass
class Action:
    """Effect applied to a target field when its logic block holds."""

    type: str
    target_field_id: str
    value: Any = None
    id: str = ''

    @classmethod
    def from_dict(cls, data: Mapping) -> 'Action':
        data = _require_mapping(data, 'Action')
        return cls(
            id=_text(data.get('id')),
            type=_text(data.get('type')),
            target_field_id=_text(data.get('targetFieldId')),
            value=data.get('value'),
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'id': self.id,
            'type': self.type,
            'targetFieldId': self.target_field_id,
        }
        if self.value is not None:
            result['value'] = self.value
        return result


@dataclass
class ConditionalLogic:
    """Grouped logic: rule groups combined by ``logic_operator``."""

    enabled: bool = False
    logic_operator: str = 'AND'
    rule_groups: List[RuleGroup] = field(default_factory=list)
    actions: List[Action] = field(default_factory=list)

    shape = 'grouped'

    @property
    def conditions(self) -> List[Condition]:
        """All conditions across rule groups, in order."""
        return [c for group in self.rule_groups for c in group.conditions]

    @property
    def has_conditions(self) -> bool:
        return bool(self.rule_groups)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'enabled': self.enabled,
            'logicOperator': self.logic_operator,
            'ruleGroups': [g.to_dict() for g in self.rule_groups],
            'actions': [a.to_dict() for a in self.actions],
        }


@dataclass
class LegacyConditionalLogic:
    """Flat logic: each condition carries its own and/or."""

    enabled: bool = False
    conditions: List[Condition] = field(default_factory=list)
    actions: List[Action] = field(default_factory=list)

    shape = 'flat'

    @property
    def has_conditions(self) -> bool:
        return bool(self.conditions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'enabled': self.enabled,
            'conditions': [c.to_dict() for c in self.conditions],
            'actions': [a.to_dict() for a in self.actions],
        }


LogicConfig = Union[ConditionalLogic, LegacyConditionalLogic]


def parse_conditional_logic(data: Any) -> Optional[LogicConfig]:
    """
    Load a logic block from its JSON form.

    Payloads with ``ruleGroups`` load as grouped logic, payloads with only
    ``conditions`` as legacy flat logic. Enum values are kept verbatim so
    that configuration validation can report them.

    Raises:
        InvalidLogicError: if the payload is structurally malformed
    """
    if data is None:
        return None
    if isinstance(data, (ConditionalLogic, LegacyConditionalLogic)):
        return data

    data = _require_mapping(data, 'Conditional logic')
    enabled = data.get('enabled') is True
    actions = [Action.from_dict(a) for a in _require_list(data.get('actions'), 'Actions')]

    if 'ruleGroups' in data or 'conditions' not in data:
        groups = _require_list(data.get('ruleGroups'), 'Rule groups')
        return ConditionalLogic(
            enabled=enabled,
            logic_operator=_text(data.get('logicOperator', 'AND')),
            rule_groups=[RuleGroup.from_dict(g) for g in groups],
            actions=actions,
        )

    conditions = _require_list(data.get('conditions'), 'Conditions')
    return LegacyConditionalLogic(
        enabled=enabled,
        conditions=[Condition.from_dict(c) for c in conditions],
        actions=actions,
    )


def migrate_flat_logic(logic: LegacyConditionalLogic, block_prefix: str = 'block') -> ConditionalLogic:
    """
    Convert flat logic into the equivalent grouped logic.

    The flat list is cut before every ``and`` condition once the current
    block holds at least one condition. Inside a block every condition after
    the first is therefore an ``or``, so each block becomes an OR rule group
    and the blocks are ANDed together.

    A non-leading condition whose logic is neither ``and`` nor ``or`` never
    affected the flat result and is dropped.
    """
    blocks: List[List[Condition]] = []
    current: List[Condition] = []

    for condition in logic.conditions:
        if condition.logic == 'and' and current:
            blocks.append(current)
            current = [condition]
        elif not current or condition.logic == 'or':
            current.append(condition)
        else:
            logger.warning(
                f"Dropping condition {condition.id or condition.field_id!r} with "
                f"unknown logic {condition.logic!r} while migrating flat logic"
            )

    if current:
        blocks.append(current)

    return ConditionalLogic(
        enabled=logic.enabled,
        logic_operator='AND',
        rule_groups=[
            RuleGroup(id=f"{block_prefix}-{index}", operator='OR', conditions=list(block))
            for index, block in enumerate(blocks, start=1)
        ],
        actions=list(logic.actions),
    )


def normalize_logic(logic: Any) -> Optional[ConditionalLogic]:
    """Return grouped logic for any supported shape (or None)."""
    logic = parse_conditional_logic(logic)
    if logic is None or isinstance(logic, ConditionalLogic):
        return logic
    return migrate_flat_logic(logic)


# ============================================================================
# Fields and steps
# ============================================================================

@dataclass
class FieldValidation:
    required: bool = False
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[str] = None
    custom_validation: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> 'FieldValidation':
        if data is None:
            return cls()
        data = _require_mapping(data, 'Field validation')
        return cls(
            required=data.get('required') is True,
            min_length=data.get('minLength'),
            max_length=data.get('maxLength'),
            min=data.get('min'),
            max=data.get('max'),
            pattern=data.get('pattern') or None,
            custom_validation=data.get('customValidation') or None,
            error_message=data.get('errorMessage') or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        keys = [
            ('minLength', self.min_length), ('maxLength', self.max_length),
            ('min', self.min), ('max', self.max), ('pattern', self.pattern),
            ('customValidation', self.custom_validation),
            ('errorMessage', self.error_message),
        ]
        result = {'required': self.required}
        result.update({key: value for key, value in keys if value is not None})
        return result


@dataclass
class ChoiceOption:
    value: Any
    label: str = ''
    id: str = ''
    is_default: bool = False
    is_disabled: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> 'ChoiceOption':
        data = _require_mapping(data, 'Choice')
        return cls(
            id=_text(data.get('id')),
            label=_text(data.get('label')),
            value=data.get('value'),
            is_default=bool(data.get('isDefault', False)),
            is_disabled=bool(data.get('isDisabled', False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'label': self.label,
            'value': self.value,
            'isDefault': self.is_default,
            'isDisabled': self.is_disabled,
        }


@dataclass
class FieldOptions:
    choices: Optional[List[ChoiceOption]] = None
    allowed_types: Optional[List[str]] = None
    max_file_size: Optional[float] = None
    max_files: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    KNOWN_KEYS = ('choices', 'allowedTypes', 'maxFileSize', 'maxFiles')

    @classmethod
    def from_dict(cls, data: Any) -> 'FieldOptions':
        if data is None:
            return cls()
        data = _require_mapping(data, 'Field options')
        choices = data.get('choices')
        return cls(
            choices=None if choices is None else [
                ChoiceOption.from_dict(c) for c in _require_list(choices, 'Choices')
            ],
            allowed_types=data.get('allowedTypes'),
            max_file_size=data.get('maxFileSize'),
            max_files=data.get('maxFiles'),
            extra={k: v for k, v in data.items() if k not in cls.KNOWN_KEYS},
        )

    @property
    def choice_values(self) -> Optional[List[Any]]:
        if self.choices is None:
            return None
        return [choice.value for choice in self.choices]

    def to_dict(self) -> Dict[str, Any]:
        result = dict(self.extra)
        if self.choices is not None:
            result['choices'] = [c.to_dict() for c in self.choices]
        if self.allowed_types is not None:
            result['allowedTypes'] = list(self.allowed_types)
        if self.max_file_size is not None:
            result['maxFileSize'] = self.max_file_size
        if self.max_files is not None:
            result['maxFiles'] = self.max_files
        return result


@dataclass
class Field:
    """A form field definition."""

    id: str
    type: str
    label: str = ''
    required: bool = False
    order: Optional[int] = None
    validation: FieldValidation = field(default_factory=FieldValidation)
    conditional_logic: Optional[LogicConfig] = None
    options: FieldOptions = field(default_factory=FieldOptions)

    @classmethod
    def from_dict(cls, data: Mapping) -> 'Field':
        data = _require_mapping(data, 'Field')
        return cls(
            id=_text(data.get('id')),
            type=_text(data.get('type')),
            label=_text(data.get('label')),
            required=data.get('required') is True,
            order=data.get('order'),
            validation=FieldValidation.from_dict(data.get('validation')),
            conditional_logic=parse_conditional_logic(data.get('conditionalLogic')),
            options=FieldOptions.from_dict(data.get('options')),
        )

    def with_logic(self, logic: Optional[LogicConfig]) -> 'Field':
        return replace(self, conditional_logic=copy.deepcopy(logic))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type,
            'label': self.label,
            'required': self.required,
            'order': self.order,
            'validation': self.validation.to_dict(),
            'conditionalLogic': self.conditional_logic.to_dict() if self.conditional_logic else None,
            'options': self.options.to_dict(),
        }


@dataclass
class Step:
    """A page of a multi-step form; its logic controls the fields it holds."""

    id: str
    title: str = ''
    order: Optional[int] = None
    field_ids: List[str] = field(default_factory=list)
    conditions: Optional[LogicConfig] = None
    is_active: bool = True

    @classmethod
    def from_dict(cls, data: Mapping) -> 'Step':
        data = _require_mapping(data, 'Step')
        return cls(
            id=_text(data.get('id')),
            title=_text(data.get('title')),
            order=data.get('order'),
            field_ids=[_text(f) for f in _require_list(data.get('fields'), 'Step fields')],
            conditions=parse_conditional_logic(data.get('conditions')),
            is_active=bool(data.get('isActive', True)),
        )

    def with_logic(self, logic: Optional[LogicConfig]) -> 'Step':
        return replace(self, conditions=copy.deepcopy(logic))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'order': self.order,
            'fields': list(self.field_ids),
            'conditions': self.conditions.to_dict() if self.conditions else None,
            'isActive': self.is_active,
        }


@dataclass
class FormDefinition:
    fields: List[Field] = field(default_factory=list)
    steps: List[Step] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping) -> 'FormDefinition':
        data = _require_mapping(data, 'Form definition')
        return cls(
            fields=parse_fields(data.get('fields')),
            steps=parse_steps(data.get('steps')),
        )


def parse_fields(data: Any) -> List[Field]:
    return [f if isinstance(f, Field) else Field.from_dict(f) for f in _require_list(data, 'Fields')]


def parse_steps(data: Any) -> List[Step]:
    return [s if isinstance(s, Step) else Step.from_dict(s) for s in _require_list(data, 'Steps')]


# ============================================================================
# Results
# ============================================================================

@dataclass
class ValidationError:
    """One rule violation found in an answer map."""

    field_id: str
    field_label: str
    type: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {
            'fieldId': self.field_id,
            'fieldLabel': self.field_label,
            'type': self.type,
            'message': self.message,
        }


@dataclass
class ConfigurationResult:
    """Outcome of a static configuration check."""

    errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def to_dict(self) -> Dict[str, Any]:
        return {'isValid': self.is_valid, 'errors': list(self.errors)}


@dataclass
class FormValidationResult:
    """Outcome of validating an answer map."""

    errors: List[ValidationError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def errors_for(self, field_id: str) -> List[ValidationError]:
        return [e for e in self.errors if e.field_id == field_id]

    def to_dict(self) -> Dict[str, Any]:
        return {'isValid': self.is_valid, 'errors': [e.to_dict() for e in self.errors]}


@dataclass
class ActionResult:
    """
    Result of executing one action.

    ``effect`` is the UI token for show/hide/require/... actions; ``value``
    is the target's resulting answer, written back only when
    ``changes_value`` is set.
    """

    target_field_id: str
    value: Any = None
    effect: Optional[str] = None
    changes_value: bool = False


@dataclass
class FormState:
    """Everything the renderer needs after one evaluation pass."""

    visible_field_ids: List[str]
    required_field_ids: List[str]
    visible_step_ids: List[str]
    answers: Dict[str, Any]
    effects: Dict[str, List[str]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'visibleFieldIds': list(self.visible_field_ids),
            'requiredFieldIds': list(self.required_field_ids),
            'visibleStepIds': list(self.visible_step_ids),
            'answers': dict(self.answers),
            'effects': {k: list(v) for k, v in self.effects.items()},
        }
