"""
Submission Validation Views

Handles answer checking without persistence:
- POST /submissions/validate/ - Run logic and validation over a submission
- POST /submissions/sanitize/ - Strip XSS payloads from answers
"""

from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema

from formbuilder.exceptions import InvalidLogicError
from formbuilder.schema import FormDefinition

from .pipeline import prepare_submission
from .sanitization import sanitize_form_data
from .serializers import SanitizeSerializer, SubmissionValidationSerializer


class SubmissionValidationViewSet(viewsets.ViewSet):
    """
    ViewSet for validating form submissions.
    """

    permission_classes = [AllowAny]  # Public forms accept anonymous submissions

    @extend_schema(
        summary="Validate Submission",
        description="Sanitize the answers, apply conditional logic and validate every visible field",
        request=SubmissionValidationSerializer,
        responses={
            200: {
                'description': 'Submission is valid',
                'content': {
                    'application/json': {
                        'example': {
                            'isValid': True,
                            'errors': [],
                            'answers': {'email': 'jane@example.com'},
                            'visibleFieldIds': ['email']
                        }
                    }
                }
            },
            400: {
                'description': 'Submission is invalid',
                'content': {
                    'application/json': {
                        'example': {
                            'isValid': False,
                            'errors': [{
                                'fieldId': 'email',
                                'fieldLabel': 'Email',
                                'type': 'email',
                                'message': 'Please enter a valid email address'
                            }],
                            'answers': {'email': 'invalid-email'},
                            'visibleFieldIds': ['email']
                        }
                    }
                }
            }
        },
        tags=['Submission Validation']
    )
    @action(detail=False, methods=['post'], url_path='validate')
    def validate_submission(self, request):
        """Validate a submission without saving."""
        serializer = SubmissionValidationSerializer(data=request.data)

        if not serializer.is_valid():
            return Response({
                'isValid': False,
                'errors': serializer.errors
            }, status=status.HTTP_400_BAD_REQUEST)

        try:
            definition = FormDefinition.from_dict(serializer.validated_data)
        except InvalidLogicError as e:
            return Response({
                'isValid': False,
                'errors': [str(e)]
            }, status=status.HTTP_400_BAD_REQUEST)

        result = prepare_submission(
            definition.fields,
            serializer.validated_data['answers'],
            steps=definition.steps,
            sanitize=serializer.validated_data.get('sanitize'),
        )

        response_status = status.HTTP_200_OK if result.is_valid else status.HTTP_400_BAD_REQUEST
        return Response(result.to_dict(), status=response_status)

    @extend_schema(
        summary="Sanitize Answers",
        description="Remove script blocks, javascript: URLs and inline event handlers from string answers",
        request=SanitizeSerializer,
        responses={
            200: {
                'description': 'Sanitized answers',
                'content': {
                    'application/json': {
                        'example': {'data': {'name': 'John', 'age': 30}}
                    }
                }
            },
            400: {'description': 'Malformed request'}
        },
        tags=['Submission Validation']
    )
    @action(detail=False, methods=['post'], url_path='sanitize')
    def sanitize(self, request):
        """Sanitize answers."""
        serializer = SanitizeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        return Response({
            'data': sanitize_form_data(serializer.validated_data['data'])
        }, status=status.HTTP_200_OK)
