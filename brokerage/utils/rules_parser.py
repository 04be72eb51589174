"""Auto-transition rule parser for YAML format"""
from typing import Any, Dict, List

import yaml
from pydantic import ValidationError

from shared.enums import OrderStatus
from shared.models import WorkflowCondition
from brokerage.core.auto_transitions import AutoTransitionRule, RuleTable


class RuleDefinitionError(Exception):
    """Raised when a rule definition is invalid"""
    pass


def parse_yaml_rules(yaml_content: str) -> RuleTable:
    """Parse YAML auto-transition rules into a rule table.

    Expected YAML format:
    ```yaml
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
    ```

    Args:
        yaml_content: YAML string containing rule definitions

    Returns:
        RuleTable: Rules keyed by the status they fire from, in file order

    Raises:
        RuleDefinitionError: If YAML is invalid or a rule is malformed
    """
    try:
        data = yaml.safe_load(yaml_content)
    except yaml.YAMLError as e:
        raise RuleDefinitionError(f"Invalid YAML: {e}")

    if not isinstance(data, dict) or "auto_transitions" not in data:
        raise RuleDefinitionError("YAML must contain 'auto_transitions' key")

    definitions = data["auto_transitions"] or {}
    if not isinstance(definitions, dict):
        raise RuleDefinitionError(
            "'auto_transitions' must map statuses to rule lists")

    rules: RuleTable = {}
    for status_name, rule_defs in definitions.items():
        try:
            status = OrderStatus(status_name)
        except ValueError:
            valid = [s.value for s in OrderStatus]
            raise RuleDefinitionError(
                f"Unknown status '{status_name}'. Valid statuses: {valid}")

        if not isinstance(rule_defs, list):
            raise RuleDefinitionError(
                f"Rules for '{status_name}' must be a list")

        rules[status] = [
            _parse_rule(rule_def, status_name, idx)
            for idx, rule_def in enumerate(rule_defs)
        ]

    return rules


def load_rules_file(path: str) -> RuleTable:
    with open(path, encoding="utf-8") as f:
        return parse_yaml_rules(f.read())


def _parse_rule(rule_def: Dict[str, Any], status_name: str,
                index: int) -> AutoTransitionRule:
    where = f"Rule {index} for '{status_name}'"
    if not isinstance(rule_def, dict):
        raise RuleDefinitionError(f"{where} must be a dictionary")

    if "target" not in rule_def:
        raise RuleDefinitionError(f"{where} must have a 'target'")
    try:
        target = OrderStatus(rule_def["target"])
    except ValueError:
        raise RuleDefinitionError(
            f"{where} has invalid target '{rule_def['target']}'")

    delay_ms = rule_def.get("delay_ms", 0)
    if not isinstance(delay_ms, int) or delay_ms < 0:
        raise RuleDefinitionError(
            f"{where} delay_ms must be a non-negative integer")

    return AutoTransitionRule(
        target_status=target,
        conditions=_parse_conditions(rule_def.get("conditions", []), where),
        delay_ms=delay_ms,
        description=str(rule_def.get("description", "")),
    )


def _parse_conditions(condition_defs: Any,
                      where: str) -> List[WorkflowCondition]:
    if not isinstance(condition_defs, list):
        raise RuleDefinitionError(f"{where} conditions must be a list")
    conditions = []
    for condition_def in condition_defs:
        try:
            conditions.append(WorkflowCondition.model_validate(condition_def))
        except ValidationError as e:
            raise RuleDefinitionError(f"{where} has an invalid condition: {e}")
    return conditions
