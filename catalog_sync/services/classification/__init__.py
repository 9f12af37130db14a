"""Product classification service.

This module provides rule-based product categorization:
- Keyword and regex rules evaluated in file order
- Tag and SEO synthesis from product text
- An implicit catch-all so classification always produces a result

Key Components:
    - RuleStore: loads, validates and edits the rule file
    - RuleClassifier: first-match-wins classifier
"""
from catalog_sync.services.classification.classifier import (
    CATCH_ALL_CONFIDENCE,
    RuleClassifier,
)
from catalog_sync.services.classification.rules import (
    CompiledRule,
    RuleSet,
    RuleStore,
    validate_rule,
)

__all__ = [
    "CATCH_ALL_CONFIDENCE",
    "CompiledRule",
    "RuleClassifier",
    "RuleSet",
    "RuleStore",
    "validate_rule",
]
