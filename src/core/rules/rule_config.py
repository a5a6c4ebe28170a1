"""
Rule configuration management.

Loads validation rules from YAML files and provides a builder for the
default rule sets.
"""

from pathlib import Path
from typing import Any, Callable

import yaml


class RuleConfigLoader:
    """
    Loads validation rules from YAML configuration files.

    Expected YAML format (one section per record type):
    ```yaml
    rules:
      card:
        card_number:
          - type: required_field
          - type: regex
            params:
              pattern: "[0-9]{16}"
          - type: luhn
      transaction:
        amount:
          - type: legacy_amount
          - type: range
            params:
              max: 999999999.99
              abs: true
    ```
    """

    def __init__(self, config_path: str | Path):
        """
        Initialize the rule config loader.

        Args:
            config_path: Path to the YAML configuration file
        """
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise FileNotFoundError(f"Rule configuration file not found: {config_path}")

    def load_rules(self, record_type: str) -> list[dict[str, Any]] | None:
        """
        Load and parse the validation rules for one record type.

        Returns:
            List of rule dictionaries suitable for RuleEngine, or None when
            the file has no section for this record type

        Raises:
            ValueError: If YAML is invalid or missing required fields
        """
        with open(self.config_path) as f:
            config = yaml.safe_load(f)

        if not config or "rules" not in config:
            raise ValueError("Configuration file must contain 'rules' section")

        field_rules = config["rules"].get(record_type)
        if field_rules is None:
            return None
        if not isinstance(field_rules, dict):
            raise ValueError(f"Rules for record type '{record_type}' must be a mapping of field -> rules")

        rules = []
        for field_name, field_rule_list in field_rules.items():
            if not isinstance(field_rule_list, list):
                raise ValueError(f"Rules for field '{field_name}' must be a list")

            for idx, rule_def in enumerate(field_rule_list):
                rules.append(self._parse_rule(field_name, rule_def, idx))

        return rules

    def _parse_rule(self, field_name: str, rule_def: dict[str, Any], idx: int) -> dict[str, Any]:
        """
        Parse a single rule definition.

        Args:
            field_name: The field this rule applies to
            rule_def: The rule definition from YAML
            idx: Index of this rule for the field (for naming)

        Returns:
            Parsed rule dictionary

        Raises:
            ValueError: If rule definition is invalid
        """
        if "type" not in rule_def:
            raise ValueError(f"Rule for field '{field_name}' is missing 'type'")

        rule_type = rule_def["type"]
        rule_name = rule_def.get("name", f"{field_name}_{rule_type}_{idx}")
        parameters = rule_def.get("params", rule_def.get("parameters", {}))

        severity = rule_def.get("severity", "error")
        if severity not in ("error", "warning"):
            raise ValueError(f"Invalid severity '{severity}' for rule '{rule_name}'. Must be 'error' or 'warning'")

        return {
            "rule_name": rule_name,
            "rule_type": rule_type,
            "field_name": field_name,
            "parameters": parameters,
            "severity": severity,
            "enabled": rule_def.get("enabled", True),
        }


class RuleConfigBuilder:
    """
    Programmatically build rule configurations (default rule sets, tests).
    """

    def __init__(self):
        """Initialize empty rule configuration."""
        self.rules: list[dict[str, Any]] = []

    def _add(
        self,
        rule_name: str,
        rule_type: str,
        field_name: str,
        parameters: dict[str, Any] | None = None,
        severity: str = "error",
    ) -> "RuleConfigBuilder":
        self.rules.append({
            "rule_name": rule_name,
            "rule_type": rule_type,
            "field_name": field_name,
            "parameters": parameters or {},
            "severity": severity,
            "enabled": True,
        })
        return self

    def add_required_field(self, field_name: str) -> "RuleConfigBuilder":
        """Add a required field rule."""
        return self._add(f"{field_name}_required", "required_field", field_name)

    def add_length(self, field_name: str, max_length: int, min_length: int = 0) -> "RuleConfigBuilder":
        return self._add(
            f"{field_name}_length",
            "string_length",
            field_name,
            {"min_length": min_length, "max_length": max_length},
        )

    def add_regex(self, field_name: str, pattern: str, description: str | None = None) -> "RuleConfigBuilder":
        """Add a regex validation rule."""
        params = {"pattern": pattern}
        if description:
            params["description"] = description
        return self._add(f"{field_name}_regex", "regex", field_name, params)

    def add_range(
        self,
        field_name: str,
        min_value: Any = None,
        max_value: Any = None,
        use_abs: bool = False,
    ) -> "RuleConfigBuilder":
        """Add a range validation rule."""
        params: dict[str, Any] = {"abs": use_abs}
        if min_value is not None:
            params["min"] = min_value
        if max_value is not None:
            params["max"] = max_value
        return self._add(f"{field_name}_range", "range", field_name, params)

    def add_luhn(self, field_name: str) -> "RuleConfigBuilder":
        return self._add(f"{field_name}_luhn", "luhn", field_name)

    def add_date(self, field_name: str, **params: Any) -> "RuleConfigBuilder":
        """Add a date rule; params as accepted by DateValidator."""
        return self._add(f"{field_name}_date", "date", field_name, params)

    def add_timestamp(self, field_name: str, required: bool = True) -> "RuleConfigBuilder":
        return self._add(f"{field_name}_timestamp", "timestamp", field_name, {"required": required})

    def add_flag(self, field_name: str) -> "RuleConfigBuilder":
        return self._add(f"{field_name}_flag", "flag", field_name)

    def add_legacy_amount(self, field_name: str) -> "RuleConfigBuilder":
        return self._add(f"{field_name}_amount", "legacy_amount", field_name)

    def add_reference_code(self, field_name: str, code_set: str | None = None) -> "RuleConfigBuilder":
        return self._add(
            f"{field_name}_reference",
            "reference_code",
            field_name,
            {"code_set": code_set or field_name},
        )

    def add_custom(
        self,
        rule_name: str,
        field_name: str,
        check: str | Callable[[Any, dict[str, Any]], None],
        depends_on: list[str] | None = None,
        severity: str = "error",
    ) -> "RuleConfigBuilder":
        """Add a cross-field rule, by registered check name or callable."""
        params: dict[str, Any] = {"depends_on": depends_on or []}
        if callable(check):
            params["validator_func"] = check
        else:
            params["check"] = check
        return self._add(rule_name, "custom", field_name, params, severity)

    def build(self) -> list[dict[str, Any]]:
        """Build and return the rule configuration."""
        return self.rules
