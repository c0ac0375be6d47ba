"""
Examples for the Conditional Logic Engine

Demonstrates common patterns on an admission form. Each example returns its
results so it can double as a smoke test; run the module to print them.
"""

from formbuilder.builder import DraftConditionalLogic, LogicBuilder
from formbuilder.logic_engine import ConditionalLogicEngine
from formbuilder.schema import Field


def admission_fields():
    """Fields shared by the examples below."""
    return [
        Field.from_dict({
            "id": "student_type", "type": "select", "label": "Student type", "order": 0,
            "required": True,
            "options": {"choices": [
                {"label": "Domestic", "value": "domestic"},
                {"label": "International", "value": "international"},
            ]},
        }),
        Field.from_dict({"id": "age", "type": "number", "label": "Age", "order": 1, "required": True}),
        Field.from_dict({
            "id": "passport", "type": "text", "label": "Passport number", "order": 2, "required": True,
            "conditionalLogic": {
                "enabled": True,
                "logicOperator": "AND",
                "ruleGroups": [{"id": "g1", "operator": "AND", "conditions": [
                    {"id": "c1", "fieldId": "student_type", "operator": "equals", "value": "international"},
                ]}],
                "actions": [{"id": "a1", "type": "show", "targetFieldId": "passport"}],
            },
        }),
        Field.from_dict({"id": "guardian", "type": "text", "label": "Guardian name", "order": 3}),
        Field.from_dict({
            "id": "interests", "type": "multiselect", "label": "Interests", "order": 4,
            "options": {"choices": [
                {"label": "Sports", "value": "Sports"},
                {"label": "Music", "value": "Music"},
                {"label": "Other", "value": "Other"},
            ]},
        }),
    ]


# ============================================================================
# EXAMPLE 1: Simple Comparison
# ============================================================================

def example_simple_comparison():
    """Show the passport field only for international students."""
    engine = ConditionalLogicEngine(admission_fields())

    return {
        "international": "passport" in engine.get_visible_field_ids({"student_type": "International"}),  # True
        "domestic": "passport" in engine.get_visible_field_ids({"student_type": "domestic"}),  # False
    }


# ============================================================================
# EXAMPLE 2: Rule Groups
# ============================================================================

def example_rule_groups():
    """Guardian is needed for minors, whatever their student type."""
    engine = ConditionalLogicEngine(admission_fields())

    # (age < 18) AND (domestic OR international)
    logic = {
        "enabled": True,
        "logicOperator": "AND",
        "ruleGroups": [
            {"operator": "AND", "conditions": [
                {"fieldId": "age", "operator": "less_than", "value": 18},
            ]},
            {"operator": "OR", "conditions": [
                {"fieldId": "student_type", "operator": "equals", "value": "domestic"},
                {"fieldId": "student_type", "operator": "equals", "value": "international"},
            ]},
        ],
        "actions": [{"type": "require", "targetFieldId": "guardian"}],
    }

    return {
        "minor": engine.evaluate_conditions(logic, {"age": 16, "student_type": "domestic"}),  # True
        "adult": engine.evaluate_conditions(logic, {"age": 25, "student_type": "domestic"}),  # False
    }


# ============================================================================
# EXAMPLE 3: Legacy Flat Logic
# ============================================================================

def example_legacy_logic():
    """Flat conditions stored before rule groups existed still evaluate."""
    engine = ConditionalLogicEngine(admission_fields())

    logic = {
        "enabled": True,
        "conditions": [
            {"fieldId": "student_type", "operator": "equals", "value": "international", "logic": "and"},
            {"fieldId": "age", "operator": "greater_than", "value": 18, "logic": "and"},
        ],
        "actions": [],
    }

    return {
        "adult_international": engine.evaluate_conditions(
            logic, {"student_type": "international", "age": 25}),  # True
        "minor_international": engine.evaluate_conditions(
            logic, {"student_type": "international", "age": 16}),  # False
    }


# ============================================================================
# EXAMPLE 4: Using LogicBuilder (Fluent API)
# ============================================================================

def example_logic_builder():
    """Draft logic with the builder and apply it to a field."""
    fields = admission_fields()
    guardian = fields[3]

    draft = DraftConditionalLogic()
    draft.add_rule_group('AND', [LogicBuilder.field('age').less_than(18)])
    draft.add_action(LogicBuilder.action('show', 'guardian'))
    guardian = draft.commit(guardian, fields)
    fields[3] = guardian

    engine = ConditionalLogicEngine(fields)
    return {
        "minor": "guardian" in engine.get_visible_field_ids({"age": 16}),  # True
        "adult": "guardian" in engine.get_visible_field_ids({"age": 30}),  # False
    }


# ============================================================================
# EXAMPLE 5: Value Actions
# ============================================================================

def example_value_actions():
    """Clear the passport number when a student switches to domestic."""
    fields = admission_fields()
    engine = ConditionalLogicEngine(fields)

    logic = {
        "enabled": True,
        "ruleGroups": [{"operator": "AND", "conditions": [
            {"fieldId": "student_type", "operator": "equals", "value": "domestic"},
        ]}],
        "actions": [
            {"type": "clear_value", "targetFieldId": "passport"},
            {"type": "clear_value", "targetFieldId": "interests"},
        ],
    }

    answers = {"student_type": "domestic", "passport": "X1234567", "interests": ["Music"]}
    return engine.execute_actions(logic, answers)  # passport "", interests []


# ============================================================================
# EXAMPLE 6: Real-Time Evaluation While Filling
# ============================================================================

def example_realtime_evaluation():
    """Visibility and required fields update as answers arrive."""
    engine = ConditionalLogicEngine(admission_fields())

    # Step 1: nothing answered yet
    first = engine.evaluate_form({})

    # Step 2: the student picks a type
    second = engine.evaluate_form({"student_type": "international"})

    return {
        "before": first.required_field_ids,  # student_type, age
        "after": second.required_field_ids,  # student_type, age, passport
        "effects": second.effects,  # {'passport': ['show']}
    }


# ============================================================================
# EXAMPLE 7: Validation
# ============================================================================

def example_validation():
    """Check logic before saving the form."""
    engine = ConditionalLogicEngine(admission_fields())

    invalid_logic = {
        "enabled": True,
        "ruleGroups": [{"operator": "AND", "conditions": [
            {"fieldId": "deleted_field", "operator": "equals", "value": "x"},
            {"fieldId": "age", "operator": "unknown_operator", "value": 18},
        ]}],
        "actions": [{"type": "show", "targetFieldId": "passport"}],
    }

    return engine.validate_logic_configuration(invalid_logic).errors


# ============================================================================
# EXAMPLE 8: Explanation (Debugging)
# ============================================================================

def example_explanation():
    """Get a detailed explanation of an evaluation."""
    engine = ConditionalLogicEngine(admission_fields())
    logic = engine.field_map["passport"].conditional_logic

    return engine.explain_evaluation(logic, {"student_type": "domestic"})


# ============================================================================
# EXAMPLE 9: Multiple Choice Logic
# ============================================================================

def example_multiple_choice():
    """Selections are matched against their comma-joined text."""
    engine = ConditionalLogicEngine(admission_fields())
    condition = LogicBuilder.field("interests").contains("other")

    return engine.evaluate_condition(condition, {"interests": ["Sports", "Music", "Other"]})  # True


EXAMPLES = [
    ("Simple Comparison", example_simple_comparison),
    ("Rule Groups", example_rule_groups),
    ("Legacy Flat Logic", example_legacy_logic),
    ("LogicBuilder (Fluent API)", example_logic_builder),
    ("Value Actions", example_value_actions),
    ("Real-Time Evaluation", example_realtime_evaluation),
    ("Validation", example_validation),
    ("Explanation", example_explanation),
    ("Multiple Choice", example_multiple_choice),
]


def run_all_examples():
    return {title: example() for title, example in EXAMPLES}


# ============================================================================
# RUN ALL EXAMPLES
# ============================================================================

if __name__ == "__main__":
    print("=" * 80)
    print("CONDITIONAL LOGIC ENGINE EXAMPLES")
    print("=" * 80)

    for index, (title, example) in enumerate(EXAMPLES, start=1):
        print(f"\n{index}. {title}")
        print("-" * 80)
        print(example())
