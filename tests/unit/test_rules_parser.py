"""Unit tests for the YAML auto-transition rule parser"""
import pytest
from pathlib import Path

from brokerage.utils.rules_parser import (
    RuleDefinitionError,
    load_rules_file,
    parse_yaml_rules,
)
from shared.enums import ConditionOperator, OrderStatus

VALID_RULES = """
auto_transitions:
  submitted:
    - target: pending_review
      delay_ms: 1000
      description: "Incoming order with proof goes to review"
      conditions:
        - field: type
          operator: equals
          value: incoming
        - field: screenshot_count
          operator: greater_than
          value: 0
  approved:
    - target: processing
      delay_ms: 5000
"""


@pytest.mark.unit
def test_parse_valid_rules() -> None:
    rules = parse_yaml_rules(VALID_RULES)

    [review] = rules[OrderStatus.SUBMITTED]
    assert review.target_status == OrderStatus.PENDING_REVIEW
    assert review.delay_ms == 1000
    assert review.description == "Incoming order with proof goes to review"
    assert [c.operator for c in review.conditions] == [
        ConditionOperator.EQUALS, ConditionOperator.GREATER_THAN
    ]
    assert review.predicate is None

    [processing] = rules[OrderStatus.APPROVED]
    assert processing.conditions == []


@pytest.mark.unit
def test_empty_rule_table() -> None:
    assert parse_yaml_rules("auto_transitions:\n") == {}


@pytest.mark.unit
@pytest.mark.parametrize("content,message", [
    ("auto_transitions: [unclosed", "Invalid YAML"),
    ("rules: {}", "must contain 'auto_transitions'"),
    ("auto_transitions: [1, 2]", "must map statuses"),
    ("auto_transitions:\n  archived: []", "Unknown status 'archived'"),
    ("auto_transitions:\n  submitted: {target: processing}", "must be a list"),
    ("auto_transitions:\n  submitted:\n    - delay_ms: 5", "must have a 'target'"),
    ("auto_transitions:\n  submitted:\n    - target: done", "invalid target 'done'"),
    ("auto_transitions:\n  submitted:\n    - target: processing\n      delay_ms: -1",
     "non-negative integer"),
    ("auto_transitions:\n  submitted:\n    - target: processing\n"
     "      conditions:\n        - field: amount\n          operator: between\n"
     "          value: 1", "invalid condition"),
])
def test_invalid_definitions(content: str, message: str) -> None:
    with pytest.raises(RuleDefinitionError, match=message):
        parse_yaml_rules(content)


@pytest.mark.unit
def test_load_rules_file(tmp_path) -> None:
    path = tmp_path / "rules.yaml"
    path.write_text(VALID_RULES, encoding="utf-8")

    rules = load_rules_file(str(path))

    assert set(rules) == {OrderStatus.SUBMITTED, OrderStatus.APPROVED}


@pytest.mark.unit
def test_example_rule_file_is_valid() -> None:
    path = Path(__file__).parents[2] / "examples" / "auto_transitions.yaml"

    rules = load_rules_file(str(path))

    assert [r.target_status for r in rules[OrderStatus.SUBMITTED]
            ] == [OrderStatus.PENDING_REVIEW]
    assert [r.delay_ms for r in rules[OrderStatus.APPROVED]] == [5000]
    [small] = rules[OrderStatus.PROCESSING]
    assert small.target_status == OrderStatus.COMPLETED
    assert small.delay_ms == 30000
    assert small.conditions[0].operator == ConditionOperator.LESS_THAN
