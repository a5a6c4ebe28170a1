"""
Validation rule engine, configuration management and default rule sets.
"""

from .defaults import PRIMARY_KEY_FIELDS, RECORD_MODELS, build_rule_engine
from .rule_config import RuleConfigBuilder, RuleConfigLoader
from .rule_engine import RuleEngine

__all__ = [
    "RuleEngine",
    "RuleConfigLoader",
    "RuleConfigBuilder",
    "build_rule_engine",
    "RECORD_MODELS",
    "PRIMARY_KEY_FIELDS",
]
