"""
Form Definition Serializers

Validate the structure of form definitions posted to the logic API. Payloads
use the form builder's camelCase keys. Enum values (operators, action types,
field types) are accepted as plain strings here so that configuration checks
can report them with their own messages.
"""

from rest_framework import serializers

from .exceptions import InvalidLogicError
from .schema import Field, FieldOptions, FormDefinition, parse_conditional_logic


class ConditionSerializer(serializers.Serializer):
    """Serializer for a single condition"""

    id = serializers.CharField(required=False, allow_blank=True)
    fieldId = serializers.CharField(allow_blank=True)
    operator = serializers.CharField(allow_blank=True)
    value = serializers.JSONField(required=False, allow_null=True)
    logic = serializers.CharField(default='and', allow_blank=True)


class RuleGroupSerializer(serializers.Serializer):
    id = serializers.CharField(required=False, allow_blank=True)
    operator = serializers.CharField(default='AND', allow_blank=True)
    conditions = ConditionSerializer(many=True, required=False)


class ActionSerializer(serializers.Serializer):
    """Serializer for an action run when conditions hold"""

    id = serializers.CharField(required=False, allow_blank=True)
    type = serializers.CharField(allow_blank=True)
    targetFieldId = serializers.CharField(allow_blank=True)
    value = serializers.JSONField(required=False, allow_null=True)


class ConditionalLogicSerializer(serializers.Serializer):
    """
    Serializer for a logic block in either shape.

    Grouped:
    {
        "enabled": true,
        "logicOperator": "AND" | "OR",
        "ruleGroups": [{"operator": "AND" | "OR", "conditions": [...]}],
        "actions": [...]
    }

    Legacy flat:
    {
        "enabled": true,
        "conditions": [{"fieldId": ..., "operator": ..., "value": ..., "logic": "and" | "or"}],
        "actions": [...]
    }
    """

    enabled = serializers.BooleanField(default=False)
    logicOperator = serializers.CharField(required=False, allow_blank=True)
    ruleGroups = RuleGroupSerializer(many=True, required=False)
    conditions = ConditionSerializer(many=True, required=False)
    actions = ActionSerializer(many=True, required=False)

    def create(self, validated_data):
        return parse_conditional_logic(validated_data)


class FieldValidationSerializer(serializers.Serializer):
    required = serializers.BooleanField(default=False)
    minLength = serializers.IntegerField(required=False, allow_null=True)
    maxLength = serializers.IntegerField(required=False, allow_null=True)
    min = serializers.FloatField(required=False, allow_null=True)
    max = serializers.FloatField(required=False, allow_null=True)
    pattern = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    customValidation = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    errorMessage = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class FieldSerializer(serializers.Serializer):
    """Serializer for a form field definition"""

    id = serializers.CharField(allow_blank=True)
    type = serializers.CharField(allow_blank=True)
    label = serializers.CharField(default='', allow_blank=True)
    required = serializers.BooleanField(default=False)
    order = serializers.IntegerField(required=False, allow_null=True)
    validation = FieldValidationSerializer(required=False)
    conditionalLogic = ConditionalLogicSerializer(required=False, allow_null=True)
    options = serializers.JSONField(required=False, allow_null=True)

    def validate_options(self, value):
        """Ensure options is an object with well-formed choices."""
        try:
            FieldOptions.from_dict(value)
        except InvalidLogicError as e:
            raise serializers.ValidationError(str(e))
        return value

    def create(self, validated_data):
        return Field.from_dict(validated_data)


class StepSerializer(serializers.Serializer):
    """Serializer for a step of a multi-step form"""

    id = serializers.CharField(allow_blank=True)
    title = serializers.CharField(default='', allow_blank=True)
    order = serializers.IntegerField(required=False, allow_null=True)
    fields = serializers.ListField(child=serializers.CharField(), required=False)
    conditions = ConditionalLogicSerializer(required=False, allow_null=True)
    isActive = serializers.BooleanField(default=True)


class FormDefinitionSerializer(serializers.Serializer):
    """Serializer for a complete form: fields plus optional steps"""

    fields = FieldSerializer(many=True)
    steps = StepSerializer(many=True, required=False)

    def create(self, validated_data):
        return FormDefinition.from_dict(validated_data)


def validate_answer_map(value):
    """Validate answers structure."""
    if not isinstance(value, dict):
        raise serializers.ValidationError("Answers must be a dictionary")
    return value


class EvaluateFormSerializer(FormDefinitionSerializer):
    """Form definition plus the answers to evaluate against."""

    answers = serializers.JSONField(default=dict)

    def validate_answers(self, value):
        return validate_answer_map(value)


class ExplainLogicSerializer(serializers.Serializer):
    fields = FieldSerializer(many=True)
    logic = ConditionalLogicSerializer()
    answers = serializers.JSONField(default=dict)

    def validate_answers(self, value):
        return validate_answer_map(value)


class ValidateLogicSerializer(serializers.Serializer):
    fields = FieldSerializer(many=True)
    logic = ConditionalLogicSerializer()
