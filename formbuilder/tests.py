"""
Unit Tests for the Form Logic Engine

Covers condition operators, rule groups, legacy flat logic, actions,
visibility, configuration checks, the draft builder, custom validation
expressions and the logic API.
"""

import itertools

import pytest
from rest_framework.test import APIClient

from formbuilder.builder import DraftConditionalLogic, LogicBuilder
from formbuilder.configuration import validate_form_configuration
from formbuilder.exceptions import ExpressionError, InvalidLogicError, UnsafeExpressionError
from formbuilder.expressions import check_expression, evaluate_expression
from formbuilder.logic_engine import (
    ConditionalLogicEngine,
    evaluate_conditions,
    evaluate_form,
    execute_actions,
    get_required_field_ids,
    get_visible_field_ids,
    get_visible_step_ids,
    validate_logic_configuration,
)
from formbuilder.logic_examples import run_all_examples
from formbuilder.schema import (
    Condition,
    ConditionalLogic,
    Field,
    LegacyConditionalLogic,
    Step,
    ValidationError,
    migrate_flat_logic,
    parse_conditional_logic,
)
from formbuilder.values import is_empty, is_nan, to_display_string, to_number


def make_field(field_id, field_type='text', **extra):
    data = {'id': field_id, 'type': field_type, 'label': field_id.replace('_', ' ').title()}
    data.update(extra)
    return Field.from_dict(data)


def cond(field_id, operator, value=None, logic='and'):
    return {'fieldId': field_id, 'operator': operator, 'value': value, 'logic': logic}


def group(*conditions, operator='AND'):
    return {'operator': operator, 'conditions': list(conditions)}


def grouped(*groups, operator='AND', actions=None, enabled=True):
    return {
        'enabled': enabled,
        'logicOperator': operator,
        'ruleGroups': list(groups),
        'actions': actions or [],
    }


def flat(*conditions, actions=None, enabled=True):
    return {'enabled': enabled, 'conditions': list(conditions), 'actions': actions or []}


@pytest.fixture
def fields():
    return [
        make_field('name'),
        make_field('age', 'number'),
        make_field('role', 'select', options={'choices': [{'label': 'Admin', 'value': 'admin'}]}),
        make_field('tags', 'multiselect'),
        make_field('agree', 'checkbox'),
    ]


@pytest.fixture
def engine(fields):
    return ConditionalLogicEngine(fields)


class TestValues:
    """Test cases for answer value helpers."""

    def test_is_empty_truth_table(self):
        assert is_empty(None) is True
        assert is_empty('') is True
        assert is_empty('   ') is True
        assert is_empty([]) is True

        assert is_empty(False) is False
        assert is_empty(True) is False
        assert is_empty(0) is False
        assert is_empty('x') is False
        assert is_empty(['a']) is False
        assert is_empty({}) is False

    def test_to_number(self):
        assert to_number(True) == 1
        assert to_number('  42 ') == 42
        assert to_number('1e3') == 1000
        assert to_number('0x1A') == 26
        assert to_number('') == 0
        assert is_nan(to_number('abc'))
        assert is_nan(to_number(None))
        assert is_nan(to_number(['1']))

    def test_to_display_string(self):
        assert to_display_string(True) == 'true'
        assert to_display_string(25.0) == '25'
        assert to_display_string(2.5) == '2.5'
        assert to_display_string(None) == 'null'
        assert to_display_string(['a', 'b']) == 'a,b'
        assert to_display_string({'a': 1}) == '[object Object]'


class TestSchema:
    """Test cases for loading form definitions."""

    def test_field_from_camel_case(self):
        field = Field.from_dict({
            'id': 'email',
            'type': 'email',
            'label': 'Email',
            'required': True,
            'order': 2,
            'validation': {'minLength': 5, 'errorMessage': 'Bad email'},
            'options': {'choices': [{'label': 'A', 'value': 'a'}], 'placeholder': 'you@example.com'},
        })

        assert field.required is True
        assert field.validation.min_length == 5
        assert field.validation.error_message == 'Bad email'
        assert field.options.choice_values == ['a']
        assert field.options.extra == {'placeholder': 'you@example.com'}
        assert field.to_dict()['validation']['minLength'] == 5

    def test_parse_grouped_logic(self):
        logic = parse_conditional_logic(grouped(group(cond('age', 'greater_than', 18))))

        assert isinstance(logic, ConditionalLogic)
        assert logic.shape == 'grouped'
        assert logic.rule_groups[0].conditions[0].field_id == 'age'

    def test_parse_flat_logic(self):
        logic = parse_conditional_logic(flat(cond('age', 'greater_than', 18)))

        assert isinstance(logic, LegacyConditionalLogic)
        assert logic.shape == 'flat'

    def test_unknown_enum_values_load(self):
        logic = parse_conditional_logic(grouped(group(cond('age', 'bogus', 1)), operator='XOR'))
        assert logic.logic_operator == 'XOR'
        assert logic.conditions[0].operator == 'bogus'

    def test_enabled_must_be_true(self):
        assert parse_conditional_logic({'enabled': 'false', 'ruleGroups': []}).enabled is False
        assert parse_conditional_logic({'enabled': 1, 'ruleGroups': []}).enabled is False
        assert parse_conditional_logic({'enabled': True, 'ruleGroups': []}).enabled is True

    def test_malformed_logic_raises(self):
        with pytest.raises(InvalidLogicError):
            parse_conditional_logic({'enabled': True, 'conditions': 'age > 18'})

        with pytest.raises(InvalidLogicError):
            parse_conditional_logic(['not', 'an', 'object'])

    def test_validation_error_to_dict(self):
        error = ValidationError(field_id='f1', field_label='Name', type='required', message='Name is required')
        assert error.to_dict() == {
            'fieldId': 'f1',
            'fieldLabel': 'Name',
            'type': 'required',
            'message': 'Name is required',
        }


class TestConditionEvaluation:
    """Test cases for single conditions."""

    # ========================================================================
    # Comparison Operators Tests
    # ========================================================================

    def test_equals_is_case_insensitive(self, engine):
        condition = Condition(field_id='name', operator='equals', value='john')

        assert engine.evaluate_condition(condition, {'name': 'John'}) is True
        assert engine.evaluate_condition(condition, {'name': 'Jane'}) is False

    def test_equals_compares_text(self, engine):
        assert engine.evaluate_condition(Condition('age', 'equals', '25'), {'age': 25}) is True
        assert engine.evaluate_condition(Condition('age', 'equals', 25), {'age': 25.0}) is True
        assert engine.evaluate_condition(Condition('agree', 'equals', 'true'), {'agree': True}) is True

    def test_not_equals_operator(self, engine):
        condition = Condition('name', 'not_equals', 'completed')

        assert engine.evaluate_condition(condition, {'name': 'pending'}) is True
        assert engine.evaluate_condition(condition, {'name': 'Completed'}) is False

    def test_contains_operators(self, engine):
        assert engine.evaluate_condition(Condition('name', 'contains', 'GREAT'), {'name': 'This is great!'}) is True
        assert engine.evaluate_condition(Condition('name', 'contains', 'great'), {'name': 'okay'}) is False
        assert engine.evaluate_condition(Condition('name', 'not_contains', 'bad'), {'name': 'okay'}) is True
        assert engine.evaluate_condition(Condition('tags', 'contains', 'b'), {'tags': ['a', 'b']}) is True

    def test_greater_than_operator(self, engine):
        condition = Condition('age', 'greater_than', 18)

        assert engine.evaluate_condition(condition, {'age': 25}) is True
        assert engine.evaluate_condition(condition, {'age': '25'}) is True
        assert engine.evaluate_condition(condition, {'age': 15}) is False
        assert engine.evaluate_condition(condition, {'age': 18}) is False  # Not strictly greater

    def test_less_than_operator(self, engine):
        condition = Condition('age', 'less_than', '100')

        assert engine.evaluate_condition(condition, {'age': 50}) is True
        assert engine.evaluate_condition(condition, {'age': 150}) is False

    def test_non_numeric_comparison_is_false(self, engine):
        assert engine.evaluate_condition(Condition('age', 'greater_than', 1), {'age': 'abc'}) is False
        assert engine.evaluate_condition(Condition('age', 'less_than', 'abc'), {'age': 1}) is False

    def test_is_empty_operators(self, engine):
        is_empty_condition = Condition('name', 'is_empty')
        is_not_empty_condition = Condition('name', 'is_not_empty')

        for value in (None, '', '   ', []):
            assert engine.evaluate_condition(is_empty_condition, {'name': value}) is True
            assert engine.evaluate_condition(is_not_empty_condition, {'name': value}) is False

        for value in ('x', 0, False, ['a']):
            assert engine.evaluate_condition(is_empty_condition, {'name': value}) is False
            assert engine.evaluate_condition(is_not_empty_condition, {'name': value}) is True

        assert engine.evaluate_condition(is_empty_condition, {}) is True

    # ========================================================================
    # Edge Cases Tests
    # ========================================================================

    def test_absent_value_fails_every_comparison(self, engine):
        for operator in ('equals', 'not_equals', 'contains', 'not_contains', 'greater_than', 'less_than'):
            assert engine.evaluate_condition(Condition('name', operator, ''), {}) is False
            assert engine.evaluate_condition(Condition('name', operator, ''), {'name': ''}) is False

    def test_missing_trigger_field(self, engine):
        assert engine.evaluate_condition(Condition('deleted', 'equals', 'x'), {'deleted': 'x'}) is False
        assert engine.evaluate_condition(Condition('deleted', 'is_empty'), {}) is False

    def test_unknown_operator_is_false(self, engine):
        assert engine.evaluate_condition(Condition('name', 'sounds_like', 'jon'), {'name': 'john'}) is False


class TestRuleGroups:
    """Test cases for grouped and legacy logic."""

    def test_disabled_logic_is_true(self, fields):
        logic = grouped(group(cond('name', 'equals', 'nobody')), enabled=False)
        assert evaluate_conditions(logic, {'name': 'someone'}, fields) is True

    def test_empty_logic_is_true(self, fields):
        assert evaluate_conditions(grouped(), {}, fields) is True
        assert evaluate_conditions(flat(), {}, fields) is True
        assert evaluate_conditions(None, {}, fields) is True

    def test_empty_group_is_true(self, engine):
        assert engine.evaluate_conditions(grouped(group()), {}) is True

    def test_and_group(self, engine):
        logic = grouped(group(cond('name', 'equals', 'ann'), cond('age', 'greater_than', 18)))

        assert engine.evaluate_conditions(logic, {'name': 'Ann', 'age': 30}) is True
        assert engine.evaluate_conditions(logic, {'name': 'Ann', 'age': 10}) is False

    def test_or_group(self, engine):
        logic = grouped(group(cond('name', 'equals', 'ann'), cond('age', 'greater_than', 18), operator='OR'))

        assert engine.evaluate_conditions(logic, {'name': 'Bob', 'age': 30}) is True
        assert engine.evaluate_conditions(logic, {'name': 'Bob', 'age': 10}) is False

    def test_groups_combined_with_or(self, engine):
        logic = grouped(
            group(cond('name', 'equals', 'ann')),
            group(cond('age', 'greater_than', 18)),
            operator='OR',
        )

        assert engine.evaluate_conditions(logic, {'name': 'Bob', 'age': 30}) is True
        assert engine.evaluate_conditions(logic, {'name': 'Bob', 'age': 10}) is False

    def test_non_and_operator_means_or(self, engine):
        logic = grouped(group(cond('name', 'equals', 'ann'), cond('age', 'greater_than', 18), operator='or'))
        assert engine.evaluate_conditions(logic, {'name': 'Ann'}) is True

    def test_scenario_flat_conditions(self):
        fields = [make_field('student_type', 'select'), make_field('age', 'number')]
        logic = flat(
            cond('student_type', 'equals', 'international', 'and'),
            cond('age', 'greater_than', 18, 'and'),
        )

        assert evaluate_conditions(logic, {'student_type': 'international', 'age': 25}, fields) is True

    # ========================================================================
    # Legacy Migration Tests
    # ========================================================================

    def test_migration_cuts_before_and(self):
        legacy = parse_conditional_logic(flat(
            cond('a', 'is_empty', logic='and'),
            cond('b', 'is_empty', logic='or'),
            cond('c', 'is_empty', logic='and'),
            cond('d', 'is_empty', logic='or'),
        ))

        migrated = migrate_flat_logic(legacy)

        assert migrated.logic_operator == 'AND'
        assert [[c.field_id for c in g.conditions] for g in migrated.rule_groups] == [['a', 'b'], ['c', 'd']]
        assert all(g.operator == 'OR' for g in migrated.rule_groups)

    def test_migration_keeps_leading_condition(self):
        legacy = parse_conditional_logic(flat(cond('a', 'is_empty', logic='or'), cond('b', 'is_empty', logic='and')))
        migrated = migrate_flat_logic(legacy)
        assert [[c.field_id for c in g.conditions] for g in migrated.rule_groups] == [['a'], ['b']]

    def test_migration_drops_unknown_logic(self):
        legacy = parse_conditional_logic(flat(cond('a', 'is_empty', logic='and'), cond('b', 'is_empty', logic='xor')))
        migrated = migrate_flat_logic(legacy)
        assert [[c.field_id for c in g.conditions] for g in migrated.rule_groups] == [['a']]

    def test_migration_matches_flat_evaluation(self):
        """Migrated logic agrees with left-to-right flat evaluation for every combination."""
        field_ids = ['f1', 'f2', 'f3', 'f4']
        fields = [make_field(field_id) for field_id in field_ids]
        engine = ConditionalLogicEngine(fields)

        def flat_reference(logics, truths):
            blocks = []
            for logic, truth in zip(logics, truths):
                if logic == 'and' and blocks and blocks[-1]:
                    blocks.append([(logic, truth)])
                elif blocks:
                    blocks[-1].append((logic, truth))
                else:
                    blocks.append([(logic, truth)])

            results = []
            for block in blocks:
                result = block[0][1]
                for logic, truth in block[1:]:
                    if logic == 'and':
                        result = result and truth
                    elif logic == 'or':
                        result = result or truth
                results.append(result)
            return all(results)

        for logics in itertools.product(['and', 'or'], repeat=4):
            logic = flat(*[cond(f, 'equals', 'y', l) for f, l in zip(field_ids, logics)])
            for truths in itertools.product([True, False], repeat=4):
                answers = {f: 'y' if t else 'n' for f, t in zip(field_ids, truths)}
                assert engine.evaluate_conditions(logic, answers) is flat_reference(logics, truths)


class TestActions:
    """Test cases for action execution."""

    def test_set_value(self, fields):
        logic = grouped(
            group(cond('age', 'greater_than', 17)),
            actions=[{'type': 'set_value', 'targetFieldId': 'role', 'value': 'admin'}],
        )
        assert execute_actions(logic, {'age': 20}, fields) == {'age': 20, 'role': 'admin'}

    def test_set_value_without_value_keeps_current(self, engine):
        action = LogicBuilder.action('set_value', 'name')
        result = engine.execute_action(action, {'name': 'Ann'})

        assert result.value == 'Ann'
        assert result.changes_value is False

    def test_clear_value_depends_on_type(self, fields):
        logic = grouped(actions=[
            {'type': 'clear_value', 'targetFieldId': 'agree'},
            {'type': 'clear_value', 'targetFieldId': 'tags'},
            {'type': 'clear_value', 'targetFieldId': 'age'},
            {'type': 'clear_value', 'targetFieldId': 'name'},
        ])
        answers = {'agree': True, 'tags': ['a'], 'age': 30, 'name': 'Ann'}

        assert execute_actions(logic, answers, fields) == {'agree': False, 'tags': [], 'age': 0, 'name': ''}

    def test_ui_actions_do_not_change_answers(self, engine):
        for action_type in ('show', 'hide', 'require', 'make_optional', 'enable', 'disable'):
            result = engine.execute_action(LogicBuilder.action(action_type, 'name'), {'name': 'Ann'})
            assert result.effect == action_type
            assert result.value == 'Ann'
            assert result.changes_value is False

    def test_missing_target_is_noop(self, fields):
        logic = grouped(actions=[{'type': 'set_value', 'targetFieldId': 'deleted', 'value': 'x'}])
        assert execute_actions(logic, {'name': 'Ann'}, fields) == {'name': 'Ann'}

    def test_unknown_action_type_is_noop(self, fields):
        logic = grouped(actions=[{'type': 'explode', 'targetFieldId': 'name', 'value': 'x'}])
        assert execute_actions(logic, {'name': 'Ann'}, fields) == {'name': 'Ann'}

    def test_false_conditions_return_same_map(self, fields):
        answers = {'age': 10}
        logic = grouped(
            group(cond('age', 'greater_than', 17)),
            actions=[{'type': 'set_value', 'targetFieldId': 'role', 'value': 'admin'}],
        )

        assert execute_actions(logic, answers, fields) is answers
        assert execute_actions(dict(logic, enabled=False), answers, fields) is answers

    def test_does_not_mutate_input(self, fields):
        answers = {'name': 'Ann', 'tags': ['a']}
        snapshot = {'name': 'Ann', 'tags': ['a']}
        logic = grouped(actions=[
            {'type': 'clear_value', 'targetFieldId': 'name'},
            {'type': 'set_value', 'targetFieldId': 'tags', 'value': ['b']},
        ])

        updated = execute_actions(logic, answers, fields)
        updated['tags'].append('c')

        assert answers == snapshot
        assert logic['actions'][1]['value'] == ['b']

    def test_actions_see_earlier_writes(self, fields):
        logic = grouped(actions=[
            {'type': 'set_value', 'targetFieldId': 'name', 'value': 'Ann'},
            {'type': 'set_value', 'targetFieldId': 'name'},
        ])
        assert execute_actions(logic, {}, fields) == {'name': 'Ann'}


class TestVisibility:
    """Test cases for visible and required fields."""

    @pytest.fixture
    def form_fields(self):
        return [
            make_field('student_type', 'select', required=True),
            make_field('passport', required=True, conditionalLogic=grouped(
                group(cond('student_type', 'equals', 'international')),
                actions=[{'type': 'show', 'targetFieldId': 'passport'}],
            )),
            make_field('notes'),
            make_field('visa', conditionalLogic=grouped(group(cond('passport', 'is_not_empty')))),
        ]

    def test_visible_fields_keep_input_order(self, form_fields):
        answers = {'student_type': 'international', 'passport': 'X1'}
        assert get_visible_field_ids(form_fields, answers) == ['student_type', 'passport', 'notes', 'visa']
        assert get_visible_field_ids(form_fields, {'student_type': 'domestic'}) == ['student_type', 'notes']

    def test_required_fields_are_visible_and_flagged(self, form_fields):
        for answers in ({}, {'student_type': 'international'}, {'student_type': 'domestic', 'passport': 'X'}):
            visible = get_visible_field_ids(form_fields, answers)
            required = get_required_field_ids(form_fields, answers)
            flagged = [f.id for f in form_fields if f.required]
            assert set(required) <= set(visible) & set(flagged)

        assert get_required_field_ids(form_fields, {'student_type': 'international'}) == ['student_type', 'passport']

    def test_visibility_is_idempotent(self, form_fields):
        answers = {'student_type': 'international'}
        assert get_visible_field_ids(form_fields, answers) == get_visible_field_ids(form_fields, answers)

    def test_hidden_field_value_still_counts(self, form_fields):
        # passport is hidden for domestic students but its stale value still drives visa
        answers = {'student_type': 'domestic', 'passport': 'X1'}
        visible = get_visible_field_ids(form_fields, answers)

        assert 'passport' not in visible
        assert 'visa' in visible

    def test_steps_hide_their_fields(self, form_fields):
        steps = [
            Step.from_dict({'id': 'basics', 'order': 0, 'fields': ['student_type']}),
            Step.from_dict({
                'id': 'extra', 'order': 1, 'fields': ['notes'],
                'conditions': grouped(group(cond('student_type', 'equals', 'international'))),
            }),
            Step.from_dict({'id': 'archived', 'order': 2, 'fields': [], 'isActive': False}),
        ]

        assert get_visible_step_ids(steps, {'student_type': 'domestic'}, form_fields) == ['basics']
        assert 'notes' not in get_visible_field_ids(form_fields, {'student_type': 'domestic'}, steps)
        assert get_visible_step_ids(steps, {'student_type': 'international'}, form_fields) == ['basics', 'extra']

    def test_evaluate_form_uses_rewritten_answers(self):
        fields = [
            make_field('age', 'number'),
            make_field('status', conditionalLogic=grouped(
                group(cond('age', 'greater_than', 17)),
                actions=[{'type': 'set_value', 'targetFieldId': 'status', 'value': 'adult'}],
            )),
            make_field('perks', conditionalLogic=grouped(
                group(cond('status', 'equals', 'adult')),
                actions=[{'type': 'show', 'targetFieldId': 'perks'}],
            )),
        ]

        state = evaluate_form(fields, {'age': 20})
        assert state.answers == {'age': 20, 'status': 'adult'}
        assert state.visible_field_ids == ['age', 'status', 'perks']
        assert state.effects == {'perks': ['show']}

        state = evaluate_form(fields, {'age': 10})
        assert state.answers == {'age': 10}
        assert state.visible_field_ids == ['age']
        assert state.effects == {}

    def test_form_state_to_dict(self, form_fields):
        state = evaluate_form(form_fields, {'student_type': 'international'})
        data = state.to_dict()

        assert data['visibleFieldIds'] == ['student_type', 'passport', 'notes']
        assert data['requiredFieldIds'] == ['student_type', 'passport']
        assert data['effects'] == {'passport': ['show']}

    def test_explanation(self, engine):
        logic = grouped(group(cond('age', 'greater_than', 18), cond('name', 'equals', 'US')))
        explanation = engine.explain_evaluation(logic, {'age': 25, 'name': 'UK'})

        assert explanation['result'] is False
        comparisons = explanation['explanation']['conditions'][0]['conditions']
        assert comparisons[0]['result'] is True
        assert comparisons[0]['actual_value'] == 25
        assert comparisons[1]['result'] is False


class TestConfiguration:
    """Test cases for logic and form configuration checks."""

    def test_dangling_condition_reference(self, fields):
        logic = flat(cond('deleted_field', 'equals', 'x'))
        result = validate_logic_configuration(logic, fields)

        assert result.is_valid is False
        assert any('deleted_field' in error for error in result.errors)

    def test_all_problems_reported(self, fields):
        logic = flat(
            cond('name', 'sounds_like', 'x', logic='xor'),
            actions=[{'type': 'explode', 'targetFieldId': 'ghost'}],
        )
        errors = validate_logic_configuration(logic, fields).errors

        assert errors == [
            'Invalid operator: sounds_like',
            'Invalid logic operator: xor',
            'Action targets non-existent field: ghost',
            'Invalid action type: explode',
        ]

    def test_grouped_operators_checked(self, fields):
        logic = grouped(group(cond('name', 'is_empty'), operator='XOR'), operator='NAND')
        errors = validate_logic_configuration(logic, fields).errors

        assert 'Invalid logic operator: NAND' in errors
        assert 'Invalid rule group operator: XOR' in errors

    def test_valid_logic(self, fields):
        logic = grouped(
            group(cond('age', 'greater_than', 18)),
            actions=[{'type': 'show', 'targetFieldId': 'name'}],
        )
        assert validate_logic_configuration(logic, fields).is_valid is True

    def test_form_configuration_problems(self):
        fields = [
            make_field('email', 'email', order=0),
            make_field('email', 'text', order=0),
            Field.from_dict({'id': 'nolabel', 'type': 'text', 'order': -1}),
            make_field('country', 'select', order=3),
            make_field('bio', 'textarea', order=4, validation={'minLength': 10, 'maxLength': 5}),
            make_field('score', 'number', order=5, validation={'min': 10, 'max': 1}),
            make_field('code', 'barcode', order=6),
            make_field('zip', order=7, validation={'pattern': '([0-9'}),
            make_field('nick', order=8, validation={'customValidation': 'value.upper()'}),
        ]

        errors = validate_form_configuration(fields).errors

        assert 'Duplicate field IDs found: email' in errors
        assert 'Duplicate field orders found: 0' in errors
        assert 'Field nolabel: Label is required' in errors
        assert 'Field nolabel: Order must be non-negative' in errors
        assert 'Field country: Choices are required for select fields' in errors
        assert 'Field bio: minLength cannot be greater than maxLength' in errors
        assert 'Field score: min cannot be greater than max' in errors
        assert 'Field code: Unknown field type barcode' in errors
        assert any(e.startswith('Field zip: Invalid pattern') for e in errors)
        assert any(e.startswith('Field nick: Invalid custom validation') for e in errors)

    def test_missing_id_and_type(self):
        errors = validate_form_configuration([Field.from_dict({'label': 'Anonymous'})]).errors

        assert 'Field unknown: ID is required' in errors
        assert 'Field : Type is required' in errors

    def test_non_numeric_limits_are_reported(self):
        fields = [
            Field.from_dict({'id': 'a', 'type': 'text', 'label': 'A', 'order': '1'}),
            make_field('b', order=1, validation={'minLength': '2', 'maxLength': 5}),
            make_field('c', 'number', order=2, validation={'min': 'low', 'max': 10}),
            make_field('d', 'file', order=3, options={'maxFiles': 2.5, 'maxFileSize': 'big'}),
            make_field('e', order=4, required=True, validation={'maxLength': True}),
        ]

        result = validate_form_configuration(fields)
        errors = result.errors

        assert result.is_valid is False
        assert 'Field a: order must be an integer' in errors
        assert 'Field b: minLength must be an integer' in errors
        assert 'Field c: min must be a number' in errors
        assert 'Field d: maxFiles must be an integer' in errors
        assert 'Field d: maxFileSize must be a number' in errors
        assert 'Field e: maxLength must be an integer' in errors
        assert not any('Order must be non-negative' in e for e in errors)
        assert not any('cannot be greater than' in e for e in errors)

    def test_field_and_step_logic_checked(self):
        fields = [
            make_field('name', order=0, conditionalLogic=flat(cond('ghost', 'equals', 'x'))),
        ]
        steps = [
            Step.from_dict({'id': 's1', 'fields': ['name', 'missing']}),
            Step.from_dict({'id': 's1', 'fields': [], 'conditions': flat(cond('phantom', 'is_empty'))}),
        ]

        errors = validate_form_configuration(fields, steps).errors

        assert 'Field name: Condition references non-existent field: ghost' in errors
        assert 'Duplicate step IDs found: s1' in errors
        assert 'Step s1: references non-existent field: missing' in errors
        assert 'Step s1: Condition references non-existent field: phantom' in errors

    def test_valid_configuration(self):
        fields = [
            make_field('name', order=0, required=True, validation={'minLength': 2, 'maxLength': 50}),
            make_field('role', 'radio', order=1, options={'choices': [{'label': 'A', 'value': 'a'}]}),
            make_field('age', 'number', order=2, validation={'min': 0, 'max': 120},
                       conditionalLogic=grouped(group(cond('role', 'equals', 'a')))),
        ]
        result = validate_form_configuration(fields)

        assert result.is_valid is True
        assert result.errors == []


class TestBuilder:
    """Test cases for LogicBuilder and draft logic."""

    def test_field_conditions(self):
        condition = LogicBuilder.field('age').greater_than(18)

        assert condition.field_id == 'age'
        assert condition.operator == 'greater_than'
        assert condition.value == 18
        assert condition.id

        assert LogicBuilder.field('age').is_empty().operator == 'is_empty'
        assert LogicBuilder.field('age').not_contains('x').operator == 'not_contains'

    def test_groups(self):
        assert LogicBuilder.all_of(LogicBuilder.field('a').equals(1)).operator == 'AND'
        assert LogicBuilder.any_of(LogicBuilder.field('a').equals(1)).operator == 'OR'

    def test_draft_migrates_legacy_logic_without_touching_it(self, fields):
        field = make_field('notes', conditionalLogic=flat(cond('name', 'is_not_empty')))
        original = field.conditional_logic

        draft = DraftConditionalLogic(field.conditional_logic)
        draft.add_rule_group('AND', [LogicBuilder.field('age').greater_than(18)])

        assert isinstance(draft.logic, ConditionalLogic)
        assert len(draft.logic.rule_groups) == 2
        assert isinstance(field.conditional_logic, LegacyConditionalLogic)
        assert field.conditional_logic is original
        assert len(original.conditions) == 1

    def test_commit_returns_new_field(self, fields):
        target = fields[0]
        draft = DraftConditionalLogic()
        group_ = draft.add_rule_group('OR')
        draft.add_condition(group_.id, LogicBuilder.field('age').less_than(18))
        draft.add_action(LogicBuilder.action('hide', 'name'))

        updated = draft.commit(target, fields)

        assert updated is not target
        assert target.conditional_logic is None
        assert updated.conditional_logic.rule_groups[0].operator == 'OR'
        assert ConditionalLogicEngine(fields).evaluate_conditions(updated.conditional_logic, {'age': 10}) is True

    def test_commit_rejects_invalid_draft(self, fields):
        draft = DraftConditionalLogic()
        draft.add_rule_group('AND', [LogicBuilder.field('ghost').equals('x')])
        draft.add_action(LogicBuilder.action('teleport', 'name'))

        with pytest.raises(InvalidLogicError) as exc_info:
            draft.commit(fields[0], fields)

        assert 'Condition references non-existent field: ghost' in exc_info.value.errors
        assert 'Invalid action type: teleport' in exc_info.value.errors

    def test_remove_items(self):
        draft = DraftConditionalLogic()
        group_ = draft.add_rule_group()
        condition = draft.add_condition(group_.id, LogicBuilder.field('a').equals(1))
        action = draft.add_action(LogicBuilder.action('show', 'a'))

        draft.remove_condition(condition.id)
        draft.remove_action(action.id)
        assert draft.build().rule_groups[0].conditions == []
        assert draft.build().actions == []

        draft.remove_rule_group(group_.id)
        assert draft.build().rule_groups == []

        with pytest.raises(KeyError):
            draft.remove_rule_group('missing')

    def test_build_returns_copy(self):
        draft = DraftConditionalLogic().disable()
        built = draft.build()
        built.enabled = True

        assert draft.logic.enabled is False


class TestExpressions:
    """Test cases for custom validation expressions."""

    def test_basic_expressions(self):
        assert evaluate_expression('len(value) >= 3', 'abcd', {}) is True
        assert evaluate_expression('len(trim(value)) >= 3', '  a  ', {}) is False
        assert evaluate_expression('number(value) % 2 == 0', '10', {}) is True
        assert evaluate_expression('value in ["a", "b"]', 'b', {}) is True
        assert evaluate_expression('0 < number(value) <= 10', 5, {}) is True
        assert evaluate_expression('"yes" if value else "no"', '', {}) == 'no'

    def test_cross_field_expressions(self):
        answers = {'password': 'secret', 'budget': '100'}

        assert evaluate_expression('value == answers["password"]', 'secret', answers) is True
        assert evaluate_expression('value == allData["password"]', 'other', answers) is False
        assert evaluate_expression('number(value) <= number(allAnswers["budget"])', 50, answers) is True
        assert evaluate_expression('is_empty(answers["missing"])', 'x', answers) is True

    def test_string_functions(self):
        assert evaluate_expression('matches(value, "^[A-Z]{2}[0-9]+$")', 'FR123', {}) is True
        assert evaluate_expression('contains(lower(value), "test")', 'A TEST', {}) is True
        assert evaluate_expression('starts_with(value, "+33")', '+33 6 12', {}) is True
        assert evaluate_expression('not ends_with(value, ".exe")', 'cv.pdf', {}) is True
        assert evaluate_expression('value != null and value != false', True, {}) is True

    def test_no_code_injection(self):
        """Ensure no arbitrary code can run."""
        with pytest.raises(UnsafeExpressionError):
            evaluate_expression("__import__('os').system('echo hacked')", 'x', {})

        with pytest.raises(UnsafeExpressionError):
            evaluate_expression('value.__class__', 'x', {})

        with pytest.raises(UnsafeExpressionError):
            evaluate_expression('[c for c in value]', 'x', {})

        with pytest.raises(UnsafeExpressionError):
            evaluate_expression('lambda: 1', 'x', {})

    def test_resource_limits(self, settings):
        with pytest.raises(UnsafeExpressionError):
            evaluate_expression('9 ** 9 ** 9', 1, {})

        with pytest.raises(UnsafeExpressionError):
            evaluate_expression('value * 1000000', 'ab', {})

        settings.FORM_ENGINE = {'MAX_EXPRESSION_LENGTH': 10}
        with pytest.raises(ExpressionError):
            evaluate_expression('len(value) > 100000', 'x', {})

    def test_string_formatting_is_rejected(self):
        with pytest.raises(UnsafeExpressionError):
            evaluate_expression('len("%099999999d" % 1) > 0', 'x', {})

        with pytest.raises(UnsafeExpressionError):
            evaluate_expression('value % 2', 'abc', {})

        assert evaluate_expression('number(value) % 2 == 0', '14', {}) is True

    def test_deep_nesting_is_rejected(self):
        with pytest.raises(UnsafeExpressionError):
            evaluate_expression('-' * 495 + '1', 'x', {})

        assert evaluate_expression('-' * 10 + '1', 'x', {}) == 1
        assert 'nested' in check_expression('not ' * 99 + 'value')

    def test_errors(self):
        with pytest.raises(ExpressionError):
            evaluate_expression('len(value) >', 'x', {})

        with pytest.raises(ExpressionError):
            evaluate_expression('secret == 1', 'x', {})

        with pytest.raises(ExpressionError):
            evaluate_expression('1 / 0', 'x', {})

        with pytest.raises(ExpressionError):
            evaluate_expression('value < 3', 'abc', {})

    def test_check_expression(self):
        assert check_expression('len(value) > 2') is None
        assert 'Unsupported syntax' in check_expression('value.upper()')
        assert check_expression('') is not None


class TestExamples:
    """The bundled examples run and produce the documented results."""

    def test_run_all_examples(self):
        results = run_all_examples()

        assert results['Simple Comparison'] == {'international': True, 'domestic': False}
        assert results['Rule Groups'] == {'minor': True, 'adult': False}
        assert results['Legacy Flat Logic'] == {'adult_international': True, 'minor_international': False}
        assert results['LogicBuilder (Fluent API)'] == {'minor': True, 'adult': False}
        assert results['Value Actions'] == {'student_type': 'domestic', 'passport': '', 'interests': []}
        assert results['Real-Time Evaluation']['before'] == ['student_type', 'age']
        assert results['Real-Time Evaluation']['after'] == ['student_type', 'age', 'passport']
        assert results['Validation'] == [
            'Condition references non-existent field: deleted_field',
            'Invalid operator: unknown_operator',
        ]
        assert results['Explanation']['result'] is False
        assert results['Multiple Choice'] is True


class TestLogicAPI:
    """Test cases for the logic endpoints."""

    @pytest.fixture
    def client(self):
        return APIClient()

    @pytest.fixture
    def payload_fields(self):
        return [
            {'id': 'student_type', 'type': 'select', 'label': 'Student type', 'order': 0, 'required': True,
             'options': {'choices': [{'label': 'International', 'value': 'international'}]}},
            {'id': 'passport', 'type': 'text', 'label': 'Passport', 'order': 1, 'required': True,
             'conditionalLogic': grouped(
                 group(cond('student_type', 'equals', 'international')),
                 actions=[{'type': 'show', 'targetFieldId': 'passport'}],
             )},
        ]

    def test_evaluate(self, client, payload_fields):
        response = client.post('/api/logic/evaluate/', {
            'fields': payload_fields,
            'answers': {'student_type': 'international'},
        }, format='json')

        assert response.status_code == 200
        assert response.data['visibleFieldIds'] == ['student_type', 'passport']
        assert response.data['requiredFieldIds'] == ['student_type', 'passport']
        assert response.data['effects'] == {'passport': ['show']}

    def test_evaluate_rejects_non_dict_answers(self, client, payload_fields):
        response = client.post('/api/logic/evaluate/', {
            'fields': payload_fields,
            'answers': ['international'],
        }, format='json')

        assert response.status_code == 400
        assert 'answers' in response.data

    def test_explain(self, client, payload_fields):
        response = client.post('/api/logic/explain/', {
            'fields': payload_fields,
            'logic': payload_fields[1]['conditionalLogic'],
            'answers': {'student_type': 'domestic'},
        }, format='json')

        assert response.status_code == 200
        assert response.data['result'] is False

    def test_validate_logic(self, client, payload_fields):
        response = client.post('/api/logic/validate-logic/', {
            'fields': payload_fields,
            'logic': flat(cond('deleted_field', 'equals', 'x')),
        }, format='json')

        assert response.status_code == 400
        assert response.data['isValid'] is False
        assert response.data['errors'] == ['Condition references non-existent field: deleted_field']

        response = client.post('/api/logic/validate-logic/', {
            'fields': payload_fields,
            'logic': payload_fields[1]['conditionalLogic'],
        }, format='json')

        assert response.status_code == 200
        assert response.data['isValid'] is True

    def test_validate_configuration(self, client, payload_fields):
        response = client.post('/api/logic/validate-configuration/', {'fields': payload_fields}, format='json')
        assert response.status_code == 200

        payload_fields[1]['order'] = 0
        response = client.post('/api/logic/validate-configuration/', {'fields': payload_fields}, format='json')
        assert response.status_code == 400
        assert 'Duplicate field orders found: 0' in response.data['errors']

    def test_malformed_definition(self, client):
        response = client.post('/api/logic/validate-configuration/', {'fields': 'nope'}, format='json')
        assert response.status_code == 400
        assert response.data['isValid'] is False
