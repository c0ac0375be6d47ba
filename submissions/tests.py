"""
Unit Tests for Submission Validation

Tests field type checks, custom rules, sanitization and the submit-time
pipeline.
"""

from datetime import date

import pytest
from rest_framework.test import APIClient

from formbuilder.schema import Field
from submissions.pipeline import prepare_submission
from submissions.sanitization import sanitize_form_data
from submissions.validation import FieldValidator, FormValidator, validate_field, validate_form_data


def make_field(field_id, field_type='text', **extra):
    data = {'id': field_id, 'type': field_type, 'label': field_id.replace('_', ' ').title()}
    data.update(extra)
    return Field.from_dict(data)


def error_types(errors):
    return [error.type for error in errors]


class TestFieldValidator:
    """Test cases for single field validation."""

    # ========================================================================
    # Required Tests
    # ========================================================================

    def test_required_empty_yields_single_error(self):
        field = make_field('f1', required=True, validation={'minLength': 3, 'pattern': '^x$'})

        errors = validate_field(field, '', {})

        assert len(errors) == 1
        assert errors[0].type == 'required'
        assert errors[0].message == 'F1 is required'
        assert errors[0].field_id == 'f1'

    def test_required_uses_custom_message(self):
        field = make_field('name', required=True, validation={'errorMessage': 'Tell us your name'})
        assert validate_field(field, '   ', {})[0].message == 'Tell us your name'

    def test_required_accepts_false_and_zero(self):
        assert validate_field(make_field('count', 'number', required=True), 0, {}) == []
        assert error_types(validate_field(make_field('agree', 'radio', required=True), False, {})) == []

    def test_optional_empty_has_no_errors(self):
        assert validate_field(make_field('email', 'email'), '', {}) == []
        assert validate_field(make_field('email', 'email'), None, {}) == []

    # ========================================================================
    # Type Tests
    # ========================================================================

    def test_email(self):
        field = make_field('email', 'email', required=True)

        errors = validate_field(field, 'invalid-email', {})
        assert error_types(errors) == ['email']
        assert errors[0].message == 'Please enter a valid email address'

        assert validate_field(field, 'test@example.com', {}) == []

    def test_phone(self, settings):
        field = make_field('phone', 'phone')

        assert validate_field(field, '+33 6 12 34 56 78', {}) == []
        assert validate_field(field, '(555) 123-4567', {}) == []
        assert error_types(validate_field(field, '123', {})) == ['phone']
        assert error_types(validate_field(field, '1' * 16, {})) == ['phone']

        settings.FORM_ENGINE = {'PHONE_MIN_DIGITS': 3}
        assert validate_field(field, '123', {}) == []

    def test_number(self):
        field = make_field('age', 'number', validation={'min': 18, 'max': 99})

        assert validate_field(field, 30, {}) == []
        assert validate_field(field, '30', {}) == []
        assert error_types(validate_field(field, 'thirty', {})) == ['number']
        assert error_types(validate_field(field, True, {})) == ['number']

        errors = validate_field(field, 12, {})
        assert error_types(errors) == ['min']
        assert errors[0].message == 'Value must be at least 18'

        errors = validate_field(field, '120', {})
        assert error_types(errors) == ['max']
        assert errors[0].message == 'Value must be at most 99'

    def test_number_min_and_max_both_fire(self):
        field = make_field('score', 'number', validation={'min': 10, 'max': 5})
        assert error_types(validate_field(field, 7, {})) == ['min', 'max']

    def test_url(self):
        field = make_field('website', 'url')

        assert validate_field(field, 'https://example.com/path?q=1', {}) == []
        assert error_types(validate_field(field, 'not a url', {})) == ['url']

    def test_date(self):
        field = make_field('start', 'date')

        assert validate_field(field, '2024-01-15', {}) == []
        assert validate_field(field, '2024-01-15T10:30:00Z', {}) == []
        assert validate_field(field, date(2024, 1, 15), {}) == []
        assert error_types(validate_field(field, '2024-02-30', {})) == ['date']
        assert error_types(validate_field(field, 'tomorrow', {})) == ['date']
        assert error_types(validate_field(field, 20240115, {})) == ['date']

    def test_file(self):
        field = make_field('cv', 'file', options={
            'maxFiles': 2,
            'maxFileSize': 1000,
            'allowedTypes': ['application/pdf'],
        })
        upload = {'fileName': 'cv.pdf', 'fileSize': 500, 'fileType': 'application/pdf'}

        assert validate_field(field, [upload], {}) == []
        assert error_types(validate_field(field, 'cv.pdf', {})) == ['file']
        assert error_types(validate_field(field, [upload, upload, upload], {})) == ['file']
        assert error_types(validate_field(field, [dict(upload, fileSize=5000)], {})) == ['file']
        assert error_types(validate_field(field, [dict(upload, fileType='image/png')], {})) == ['file']

    def test_select(self):
        field = make_field('role', 'select', options={'choices': [
            {'label': 'Admin', 'value': 'admin'},
            {'label': 'User', 'value': 'user'},
        ]})

        assert validate_field(field, 'admin', {}) == []
        errors = validate_field(field, 'root', {})
        assert error_types(errors) == ['select']
        assert errors[0].message == 'Please select a valid option'

        assert validate_field(make_field('free', 'radio'), 'anything', {}) == []

    def test_multiselect(self):
        field = make_field('tags', 'multiselect', options={'choices': [
            {'label': 'A', 'value': 'a'},
            {'label': 'B', 'value': 'b'},
        ]})

        assert validate_field(field, ['a', 'b'], {}) == []
        assert error_types(validate_field(field, ['a', 'z'], {})) == ['multiselect']
        assert error_types(validate_field(field, 'a', {})) == ['multiselect']
        assert validate_field(make_field('extras', 'checkbox'), ['x'], {}) == []

    # ========================================================================
    # Rule Tests
    # ========================================================================

    def test_length_rules(self):
        field = make_field('bio', 'textarea', validation={'minLength': 5, 'maxLength': 10})

        errors = validate_field(field, 'abc', {})
        assert error_types(errors) == ['minLength']
        assert errors[0].message == 'Must be at least 5 characters'

        errors = validate_field(field, 'a' * 11, {})
        assert error_types(errors) == ['maxLength']
        assert errors[0].message == 'Must be no more than 10 characters'

    def test_length_rules_ignore_non_strings(self):
        field = make_field('age', 'number', validation={'minLength': 5})
        assert validate_field(field, 7, {}) == []

    def test_pattern(self):
        field = make_field('zip', validation={'pattern': r'^\d{5}$', 'errorMessage': 'Five digits please'})

        assert validate_field(field, '75001', {}) == []
        errors = validate_field(field, '7500', {})
        assert error_types(errors) == ['pattern']
        assert errors[0].message == 'Five digits please'

    def test_invalid_pattern_is_reported(self):
        field = make_field('zip', validation={'pattern': '([0-9'})
        errors = validate_field(field, '75001', {})

        assert error_types(errors) == ['pattern']
        assert errors[0].message == 'Invalid format'

    def test_custom_expression(self):
        field = make_field('confirm', validation={'customValidation': 'value == answers["password"]'})

        assert validate_field(field, 'secret', {'password': 'secret'}) == []
        errors = validate_field(field, 'oops', {'password': 'secret'})
        assert error_types(errors) == ['custom']
        assert errors[0].message == 'Invalid value'

    def test_custom_expression_failure(self):
        for expression in ('value < 3', 'value.upper()', '__import__("os")', 'len(value) >'):
            field = make_field('name', validation={'customValidation': expression})
            errors = validate_field(field, 'abc', {})

            assert error_types(errors) == ['custom']
            assert errors[0].message == 'Validation error occurred'

    def test_deeply_nested_custom_expression(self):
        field = make_field('name', validation={'customValidation': '-' * 495 + '1'})
        errors = validate_field(field, 'abc', {})

        assert error_types(errors) == ['custom']
        assert errors[0].message == 'Validation error occurred'

    def test_custom_string_formatting(self):
        field = make_field('name', validation={'customValidation': 'len("%099999999d" % 1) > 0'})
        assert error_types(validate_field(field, 'abc', {})) == ['custom']

    def test_limits_given_as_strings(self):
        field = make_field('age', 'number', validation={'min': '5', 'max': 'ten'})
        assert error_types(validate_field(field, 3, {})) == ['min']
        assert validate_field(field, 300, {}) == []

        field = make_field('bio', validation={'minLength': '3', 'maxLength': 'long'})
        assert error_types(validate_field(field, 'ab', {})) == ['minLength']
        assert validate_field(field, 'a' * 100, {}) == []

        field = make_field('cv', 'file', options={'maxFiles': '1', 'maxFileSize': 'huge'})
        upload = {'fileName': 'cv.pdf', 'fileSize': 10 ** 9}
        assert validate_field(field, [upload], {}) == []
        assert error_types(validate_field(field, [upload, upload], {})) == ['file']

    def test_form_with_string_limits_still_reports(self):
        fields = [
            make_field('age', 'number', required=True, validation={'min': '18'}),
            make_field('name', required=True),
        ]
        result = validate_form_data(fields, {'age': 12})

        assert result.is_valid is False
        assert error_types(result.errors) == ['min', 'required']

    def test_errors_accumulate(self):
        field = make_field('code', validation={
            'minLength': 5,
            'pattern': '^[a-z]+$',
            'customValidation': 'starts_with(value, "x")',
            'errorMessage': 'Bad code',
        })

        errors = validate_field(field, 'AB', {})
        assert error_types(errors) == ['minLength', 'pattern', 'custom']
        assert [e.message for e in errors][1:] == ['Bad code', 'Bad code']

    def test_validator_accepts_dict_field(self):
        errors = validate_field({'id': 'email', 'type': 'email', 'label': 'Email'}, 'nope', {})
        assert errors[0].field_label == 'Email'

    def test_validator_class(self):
        validator = FieldValidator(make_field('email', 'email'))
        assert error_types(validator.validate('nope')) == ['email']


class TestFormValidator:
    """Test cases for whole-form validation."""

    def test_errors_in_field_order(self):
        fields = [
            make_field('name', required=True),
            make_field('email', 'email', required=True),
            make_field('age', 'number', validation={'min': 18}),
        ]

        result = validate_form_data(fields, {'email': 'bad', 'age': 10})

        assert result.is_valid is False
        assert [(e.field_id, e.type) for e in result.errors] == [
            ('name', 'required'),
            ('email', 'email'),
            ('age', 'min'),
        ]
        assert result.to_dict()['errors'][0]['fieldId'] == 'name'

    def test_valid_form(self):
        fields = [make_field('name', required=True), make_field('email', 'email')]
        result = validate_form_data(fields, {'name': 'Ann'})

        assert result.is_valid is True
        assert result.errors == []

    def test_restrict_to_field_ids(self):
        fields = [make_field('name', required=True), make_field('email', 'email', required=True)]
        result = FormValidator(fields).validate({}, field_ids=['email'])

        assert [e.field_id for e in result.errors] == ['email']
        assert len(result.errors_for('email')) == 1


class TestSanitization:
    """Test cases for XSS stripping."""

    def test_script_block_removed(self):
        sanitized = sanitize_form_data({'name': '<script>alert(1)</script>John', 'age': 30})

        assert sanitized['name'] == 'John'
        assert 'alert' not in sanitized['name']
        assert sanitized['age'] == 30

    def test_common_payloads(self):
        data = {
            'name': '<script>alert("xss")</script>John Doe',
            'email': 'test@example.com',
            'message': 'Hello <img src=x onerror=alert("xss")>',
        }

        sanitized = sanitize_form_data(data)

        assert sanitized['name'] == 'John Doe'
        assert sanitized['email'] == 'test@example.com'
        assert 'onerror' not in sanitized['message']
        assert sanitized['message'].startswith('Hello <img src=x ')

    def test_javascript_urls_and_case(self):
        sanitized = sanitize_form_data({'link': 'JavaScript:alert(1)', 'html': '<SCRIPT>bad()</SCRIPT>ok'})

        assert sanitized['link'] == 'alert(1)'
        assert sanitized['html'] == 'ok'

    def test_lists_and_non_strings(self):
        data = {'tags': ['<script>x</script>a', 1], 'agree': True, 'files': [{'fileName': 'a.pdf'}]}
        sanitized = sanitize_form_data(data)

        assert sanitized['tags'] == ['a', 1]
        assert sanitized['agree'] is True
        assert sanitized['files'] == [{'fileName': 'a.pdf'}]

    def test_input_not_mutated(self):
        data = {'name': '<script>x</script>John', 'tags': ['<script>x</script>a']}
        sanitize_form_data(data)

        assert data == {'name': '<script>x</script>John', 'tags': ['<script>x</script>a']}


class TestSubmissionPipeline:
    """Test cases for the submit-time pipeline."""

    @pytest.fixture
    def fields(self):
        return [
            make_field('student_type', 'select', required=True, options={'choices': [
                {'label': 'Domestic', 'value': 'domestic'},
                {'label': 'International', 'value': 'international'},
            ]}),
            make_field('passport', required=True, conditionalLogic={
                'enabled': True,
                'ruleGroups': [{'operator': 'AND', 'conditions': [
                    {'fieldId': 'student_type', 'operator': 'equals', 'value': 'international'},
                ]}],
                'actions': [{'type': 'show', 'targetFieldId': 'passport'}],
            }),
            make_field('notes', conditionalLogic={
                'enabled': True,
                'ruleGroups': [{'operator': 'AND', 'conditions': [
                    {'fieldId': 'student_type', 'operator': 'equals', 'value': 'domestic'},
                ]}],
                'actions': [{'type': 'clear_value', 'targetFieldId': 'passport'}],
            }),
        ]

    def test_hidden_required_field_does_not_block(self, fields):
        result = prepare_submission(fields, {'student_type': 'domestic', 'passport': 'X1'})

        assert result.is_valid is True
        assert result.visible_field_ids == ['student_type', 'notes']
        assert result.answers['passport'] == ''

    def test_visible_required_field_is_checked(self, fields):
        result = prepare_submission(fields, {'student_type': 'international'})

        assert result.is_valid is False
        assert [(e.field_id, e.type) for e in result.errors] == [('passport', 'required')]

    def test_answers_sanitized_by_default(self, fields):
        answers = {'student_type': 'international', 'passport': '<script>x</script>P123'}

        assert prepare_submission(fields, answers).answers['passport'] == 'P123'
        assert prepare_submission(fields, answers, sanitize=False).answers['passport'] == answers['passport']

    def test_validate_hidden_fields_setting(self, fields, settings):
        settings.FORM_ENGINE = {'VALIDATE_HIDDEN_FIELDS': True}
        result = prepare_submission(fields, {'student_type': 'domestic'})

        # clear_value leaves an empty passport which is still required
        assert [(e.field_id, e.type) for e in result.errors] == [('passport', 'required')]

    def test_to_dict(self, fields):
        data = prepare_submission(fields, {'student_type': 'international', 'passport': 'P1'}).to_dict()

        assert data == {
            'isValid': True,
            'errors': [],
            'answers': {'student_type': 'international', 'passport': 'P1'},
            'visibleFieldIds': ['student_type', 'passport'],
        }


class TestSubmissionAPI:
    """Test cases for the submission endpoints."""

    @pytest.fixture
    def client(self):
        return APIClient()

    @pytest.fixture
    def payload_fields(self):
        return [
            {'id': 'email', 'type': 'email', 'label': 'Email', 'order': 0, 'required': True},
            {'id': 'age', 'type': 'number', 'label': 'Age', 'order': 1, 'validation': {'min': 18}},
        ]

    def test_valid_submission(self, client, payload_fields):
        response = client.post('/api/submissions/validate/', {
            'fields': payload_fields,
            'answers': {'email': 'test@example.com', 'age': 30},
        }, format='json')

        assert response.status_code == 200
        assert response.data['isValid'] is True
        assert response.data['visibleFieldIds'] == ['email', 'age']

    def test_invalid_submission(self, client, payload_fields):
        response = client.post('/api/submissions/validate/', {
            'fields': payload_fields,
            'answers': {'email': 'invalid-email', 'age': 12},
        }, format='json')

        assert response.status_code == 400
        assert response.data['isValid'] is False
        assert [e['type'] for e in response.data['errors']] == ['email', 'min']
        assert response.data['errors'][1]['message'] == 'Value must be at least 18'

    def test_malformed_answers(self, client, payload_fields):
        response = client.post('/api/submissions/validate/', {
            'fields': payload_fields,
            'answers': 'email=test@example.com',
        }, format='json')

        assert response.status_code == 400
        assert 'answers' in response.data['errors']

    def test_sanitize(self, client):
        response = client.post('/api/submissions/sanitize/', {
            'data': {'name': '<script>alert(1)</script>John', 'age': 30},
        }, format='json')

        assert response.status_code == 200
        assert response.data['data'] == {'name': 'John', 'age': 30}
