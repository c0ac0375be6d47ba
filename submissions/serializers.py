"""
Submission Serializers

Validate the structure of submission validation and sanitization requests.
"""

from rest_framework import serializers

from formbuilder.serializers import FormDefinitionSerializer, validate_answer_map


class SubmissionValidationSerializer(FormDefinitionSerializer):
    """
    Serializer for validating a submission without saving it.

    ``sanitize`` overrides the SANITIZE_SUBMISSIONS setting for this request.
    """

    answers = serializers.JSONField()
    sanitize = serializers.BooleanField(required=False, allow_null=True)

    def validate_answers(self, value):
        return validate_answer_map(value)


class SanitizeSerializer(serializers.Serializer):
    data = serializers.JSONField()

    def validate_data(self, value):
        """Validate data structure."""
        if not isinstance(value, dict):
            raise serializers.ValidationError("Data must be a dictionary")
        return value
