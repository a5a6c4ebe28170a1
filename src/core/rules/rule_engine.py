"""
Rule engine for orchestrating validation rules on decoded legacy records.

The rule engine builds validators from rule configurations, applies them to
a RawRecord in order, collects every failure, and builds the typed entity
when the record passes.
"""

from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError

from src.core.errors import FormatError, RecordValidationError
from src.core.models import (
    ErrorKind,
    PipelineStage,
    RawRecord,
    ValidationOutcome,
    ValidationResult,
    ValidationRule,
)
from src.core.validators import (
    BaseValidator,
    CustomValidator,
    DateValidator,
    FlagValidator,
    LegacyAmountValidator,
    LuhnValidator,
    RangeValidator,
    ReferenceCodeValidator,
    RegexValidator,
    RequiredFieldValidator,
    StringLengthValidator,
    TimestampValidator,
    ValidationError,
)


class RuleEngine:
    """
    Orchestrates validation rules on decoded records.

    Rules run in configuration order. Once a rule fails for a field, the
    remaining rules for that field are skipped, as are custom rules that
    depend on it. Every failure becomes a ValidationOutcome; the record
    passes only when no error-severity rule failed.
    """

    VALIDATOR_REGISTRY: dict[str, type[BaseValidator]] = {
        "required_field": RequiredFieldValidator,
        "string_length": StringLengthValidator,
        "regex": RegexValidator,
        "range": RangeValidator,
        "luhn": LuhnValidator,
        "date": DateValidator,
        "timestamp": TimestampValidator,
        "flag": FlagValidator,
        "legacy_amount": LegacyAmountValidator,
        "reference_code": ReferenceCodeValidator,
        "custom": CustomValidator,
    }

    def __init__(
        self,
        rules: list[dict[str, Any]],
        model: type[BaseModel] | None = None,
        context: dict[str, Any] | None = None,
    ):
        """
        Initialize the rule engine with validation rules.

        Args:
            rules: List of rule configurations, each containing:
                   - rule_name: str
                   - rule_type: str (a VALIDATOR_REGISTRY key)
                   - field_name: str
                   - parameters: Dict[str, Any] (optional)
                   - severity: str (error or warning)
                   - enabled: bool (default True)
            model: Typed entity built by build() from the coerced values
            context: Shared objects merged under every rule's parameters
                     (codec, reference_codes, today, date window)
        """
        self.rules = rules
        self.model = model
        self.context = context or {}
        self.validators: list[tuple[str, str, BaseValidator]] = []
        self._build_validators()

    def _build_validators(self) -> None:
        """Build validator instances from rule configurations."""
        for rule in self.rules:
            if not rule.get("enabled", True):
                continue

            if rule.get("rule_type") not in self.VALIDATOR_REGISTRY:
                raise ValueError(f"Unknown rule type: {rule.get('rule_type')}")

            # pydantic rejects bad severities and malformed names here
            spec = ValidationRule(
                rule_name=rule["rule_name"],
                rule_type=rule["rule_type"],
                field_name=rule["field_name"],
                parameters=rule.get("parameters") or {},
                severity=rule.get("severity", "error"),
            )

            validator_class = self.VALIDATOR_REGISTRY[spec.rule_type]
            parameters = {**self.context, **(spec.parameters or {})}

            try:
                validator = validator_class(spec.field_name, parameters)
            except (ValueError, TypeError) as e:
                raise ValueError(f"Failed to create validator for rule '{spec.rule_name}': {e}")
            self.validators.append((spec.rule_name, spec.severity, validator))

    def validate_record(self, record: RawRecord) -> ValidationResult:
        """
        Validate a decoded record against all rules.

        Args:
            record: The RawRecord to validate

        Returns:
            ValidationResult with every outcome and the coerced field values
        """
        payload: dict[str, Any] = dict(record.fields)
        passed_rules: list[str] = []
        failed_rules: list[str] = []
        outcomes: list[ValidationOutcome] = []
        warnings: list[ValidationOutcome] = []
        failed_fields: set[str] = set()

        for rule_name, severity, validator in self.validators:
            field_name = validator.field_name
            if field_name in failed_fields:
                continue
            if isinstance(validator, CustomValidator) and failed_fields.intersection(validator.depends_on):
                continue

            value = payload.get(field_name)

            try:
                validator.validate(value, payload)
                payload[field_name] = validator.coerce(value)
                passed_rules.append(rule_name)

            except FormatError as e:
                failed_fields.add(field_name)
                outcome = self._outcome(record, rule_name, field_name, ErrorKind.FORMAT, e.message, severity)
                self._collect(outcome, severity, rule_name, failed_rules, outcomes, warnings)

            except ValidationError as e:
                if severity == "error":
                    failed_fields.add(field_name)
                outcome = self._outcome(record, rule_name, field_name, ErrorKind.VALIDATION, e.message, severity)
                self._collect(outcome, severity, rule_name, failed_rules, outcomes, warnings)

        return ValidationResult(
            record_ref=record.record_ref,
            passed=len(failed_rules) == 0,
            passed_rules=passed_rules,
            failed_rules=failed_rules,
            outcomes=outcomes,
            warnings=warnings,
            values=payload,
        )

    @staticmethod
    def _outcome(
        record: RawRecord,
        rule_name: str,
        field_name: str,
        kind: ErrorKind,
        message: str,
        severity: str,
    ) -> ValidationOutcome:
        return ValidationOutcome(
            record_ref=record.record_ref,
            stage=PipelineStage.VALIDATE,
            error_kind=kind,
            message=f"{field_name}: {message}",
            field_name=field_name,
            rule_name=rule_name,
            severity=severity,
        )

    @staticmethod
    def _collect(
        outcome: ValidationOutcome,
        severity: str,
        rule_name: str,
        failed_rules: list[str],
        outcomes: list[ValidationOutcome],
        warnings: list[ValidationOutcome],
    ) -> None:
        if severity == "error":
            failed_rules.append(rule_name)
            outcomes.append(outcome)
        else:
            warnings.append(outcome)

    def build(self, record: RawRecord) -> tuple[BaseModel, ValidationResult]:
        """
        Validate a record and build its typed entity.

        Returns:
            (entity, result); result carries any warning outcomes

        Raises:
            RecordValidationError: If any error-severity rule failed, or the
                                   entity model rejected the coerced values
        """
        if self.model is None:
            raise ValueError("RuleEngine.build() requires a model")

        result = self.validate_record(record)
        if not result.passed:
            raise RecordValidationError(result.outcomes)

        values = {k: (None if v == "" else v) for k, v in result.values.items()}
        try:
            entity = self.model.model_validate(values)
        except ModelValidationError as e:
            outcomes = [
                ValidationOutcome(
                    record_ref=record.record_ref,
                    stage=PipelineStage.VALIDATE,
                    error_kind=ErrorKind.VALIDATION,
                    message=f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}",
                    field_name=str(err["loc"][0]) if err["loc"] else None,
                    rule_name="model",
                )
                for err in e.errors()
            ]
            raise RecordValidationError(outcomes)
        return entity, result

    def get_rule_summary(self) -> dict[str, Any]:
        """
        Get summary of loaded rules.

        Returns:
            Dictionary with rule counts and types
        """
        return {
            "total_rules": len(self.validators),
            "rules_by_type": self._count_by_type(),
            "rules_by_severity": self._count_by_severity(),
        }

    def _count_by_type(self) -> dict[str, int]:
        """Count validators by rule type."""
        counts: dict[str, int] = {}
        for _, _, validator in self.validators:
            rule_type = validator.rule_type
            counts[rule_type] = counts.get(rule_type, 0) + 1
        return counts

    def _count_by_severity(self) -> dict[str, int]:
        """Count validators by severity."""
        counts: dict[str, int] = {}
        for _, severity, _ in self.validators:
            counts[severity] = counts.get(severity, 0) + 1
        return counts
