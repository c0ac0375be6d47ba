"""
Form Logic Views

Stateless endpoints for renderers that are not written in Python:
- POST /logic/evaluate/ - Visible/required fields, steps and rewritten answers
- POST /logic/explain/ - Why a logic block holds or not
- POST /logic/validate-logic/ - Check one logic block against the form
- POST /logic/validate-configuration/ - Check a whole form definition

Nothing is stored; the form definition travels with every request.
"""

import logging

from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, OpenApiExample

from .configuration import validate_form_configuration
from .exceptions import InvalidLogicError
from .logic_engine import ConditionalLogicEngine
from .schema import FormDefinition, parse_conditional_logic, parse_fields
from .serializers import (
    EvaluateFormSerializer,
    ExplainLogicSerializer,
    FormDefinitionSerializer,
    ValidateLogicSerializer,
)

logger = logging.getLogger(__name__)


class FormLogicViewSet(viewsets.ViewSet):
    """
    ViewSet for evaluating and checking form logic.
    """

    permission_classes = [AllowAny]

    def _invalid(self, errors):
        return Response(
            {'isValid': False, 'errors': errors},
            status=status.HTTP_400_BAD_REQUEST
        )

    @extend_schema(
        summary="Evaluate Form Logic",
        description="Apply every field and step logic block to the answers and return the resulting form state",
        request=EvaluateFormSerializer,
        responses={
            200: {
                'description': 'Form state',
                'content': {
                    'application/json': {
                        'example': {
                            'visibleFieldIds': ['student_type', 'age', 'passport'],
                            'requiredFieldIds': ['student_type', 'passport'],
                            'visibleStepIds': [],
                            'answers': {'student_type': 'international', 'age': 25},
                            'effects': {'passport': ['show', 'require']}
                        }
                    }
                }
            },
            400: {'description': 'Malformed form definition'}
        },
        examples=[
            OpenApiExample(
                'Show passport field for international students',
                value={
                    'fields': [
                        {'id': 'student_type', 'type': 'select', 'label': 'Student type', 'order': 0,
                         'options': {'choices': [{'label': 'Domestic', 'value': 'domestic'},
                                                 {'label': 'International', 'value': 'international'}]}},
                        {'id': 'passport', 'type': 'text', 'label': 'Passport number', 'order': 1, 'required': True,
                         'conditionalLogic': {
                             'enabled': True,
                             'logicOperator': 'AND',
                             'ruleGroups': [{'operator': 'AND', 'conditions': [
                                 {'fieldId': 'student_type', 'operator': 'equals', 'value': 'international'}
                             ]}],
                             'actions': [{'type': 'show', 'targetFieldId': 'passport'}]
                         }}
                    ],
                    'answers': {'student_type': 'international'}
                },
                request_only=True
            )
        ],
        tags=['Form Logic']
    )
    @action(detail=False, methods=['post'], url_path='evaluate')
    def evaluate(self, request):
        """Evaluate all logic in a form against the answers."""
        serializer = EvaluateFormSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            definition = FormDefinition.from_dict(serializer.validated_data)
        except InvalidLogicError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        engine = ConditionalLogicEngine(definition.fields, definition.steps)
        state = engine.evaluate_form(serializer.validated_data['answers'])
        return Response(state.to_dict(), status=status.HTTP_200_OK)

    @extend_schema(
        summary="Explain Logic Evaluation",
        description="Evaluate one logic block and return the result of every group and condition",
        request=ExplainLogicSerializer,
        responses={
            200: {
                'description': 'Explanation tree',
                'content': {
                    'application/json': {
                        'example': {
                            'result': False,
                            'explanation': {
                                'type': 'logical',
                                'operator': 'AND',
                                'result': False,
                                'conditions': [{
                                    'type': 'logical',
                                    'id': 'group-1',
                                    'operator': 'AND',
                                    'result': False,
                                    'conditions': [{
                                        'type': 'comparison',
                                        'field': 'age',
                                        'comparison': 'greater_than',
                                        'actual_value': 16,
                                        'expected_value': 18,
                                        'field_exists': True,
                                        'result': False
                                    }]
                                }]
                            }
                        }
                    }
                }
            },
            400: {'description': 'Malformed request'}
        },
        tags=['Form Logic']
    )
    @action(detail=False, methods=['post'], url_path='explain')
    def explain(self, request):
        """Explain why a logic block holds or not."""
        serializer = ExplainLogicSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            fields = parse_fields(serializer.validated_data['fields'])
            logic = parse_conditional_logic(serializer.validated_data['logic'])
        except InvalidLogicError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        engine = ConditionalLogicEngine(fields)
        explanation = engine.explain_evaluation(logic, serializer.validated_data['answers'])
        return Response(explanation, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Validate Logic Block",
        description="Check a logic block for dangling field references and unknown operators or action types",
        request=ValidateLogicSerializer,
        responses={
            200: {'description': 'Logic is valid'},
            400: {
                'description': 'Logic is invalid',
                'content': {
                    'application/json': {
                        'example': {
                            'isValid': False,
                            'errors': ['Condition references non-existent field: deleted_field']
                        }
                    }
                }
            }
        },
        tags=['Form Logic']
    )
    @action(detail=False, methods=['post'], url_path='validate-logic')
    def validate_logic(self, request):
        """Validate a logic block against the form fields."""
        serializer = ValidateLogicSerializer(data=request.data)
        if not serializer.is_valid():
            return self._invalid(serializer.errors)

        try:
            fields = parse_fields(serializer.validated_data['fields'])
            logic = parse_conditional_logic(serializer.validated_data['logic'])
        except InvalidLogicError as e:
            return self._invalid([str(e)])

        result = ConditionalLogicEngine(fields).validate_logic_configuration(logic)
        if not result.is_valid:
            return self._invalid(result.errors)
        return Response(result.to_dict(), status=status.HTTP_200_OK)

    @extend_schema(
        summary="Validate Form Configuration",
        description="Check a form definition for duplicate ids and orders, missing attributes, inconsistent rules and broken logic",
        request=FormDefinitionSerializer,
        responses={
            200: {'description': 'Configuration is valid'},
            400: {
                'description': 'Configuration is invalid',
                'content': {
                    'application/json': {
                        'example': {
                            'isValid': False,
                            'errors': [
                                'Duplicate field IDs found: email',
                                'Field country: Choices are required for select fields'
                            ]
                        }
                    }
                }
            }
        },
        tags=['Form Logic']
    )
    @action(detail=False, methods=['post'], url_path='validate-configuration')
    def validate_configuration(self, request):
        """Validate a complete form definition."""
        serializer = FormDefinitionSerializer(data=request.data)
        if not serializer.is_valid():
            return self._invalid(serializer.errors)

        try:
            definition = serializer.save()
        except InvalidLogicError as e:
            return self._invalid([str(e)])

        result = validate_form_configuration(definition.fields, definition.steps)
        if not result.is_valid:
            logger.info(f"Rejected form configuration with {len(result.errors)} error(s)")
            return self._invalid(result.errors)
        return Response(result.to_dict(), status=status.HTTP_200_OK)
