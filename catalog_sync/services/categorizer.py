"""
Categorizer
===========

Rule classification with a confidence-gated model fallback.
"""

from catalog_sync.schemas.domain import Classification, Product
from catalog_sync.services.classification.classifier import RuleClassifier
from catalog_sync.services.llm.fallback_classifier import FallbackClassifier
from catalog_sync.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_FALLBACK_THRESHOLD = 0.8


class Categorizer:
    """
    Combines the rule classifier and the optional model fallback.

    The fallback runs only when the rule confidence is below ``threshold``
    and a fallback is configured. A failed fallback returns the rule guess.
    """

    def __init__(
        self,
        rule_classifier: RuleClassifier,
        fallback: FallbackClassifier | None = None,
        threshold: float = DEFAULT_FALLBACK_THRESHOLD,
    ) -> None:
        self.rule_classifier = rule_classifier
        self.fallback = fallback
        self.threshold = threshold
        self._log = logger.bind(component="Categorizer")

    async def categorize(self, product: Product) -> Classification:
        rule_guess = self.rule_classifier.classify(product)
        if self.fallback is None or rule_guess.confidence >= self.threshold:
            return rule_guess

        self._log.info(
            "fallback_requested",
            product_id=product.id,
            rule_category=rule_guess.category_path,
            rule_confidence=rule_guess.confidence,
        )
        suggestion = await self.fallback.classify(product, rule_guess)
        if suggestion is None:
            self._log.info("fallback_degraded_to_rules", product_id=product.id)
            return rule_guess

        # Tags are re-derived around the suggested category
        return self.rule_classifier.finalize(
            product,
            category_path=suggestion.category_path,
            extra_tags=suggestion.tags,
            confidence=suggestion.confidence,
            method=suggestion.method,
            seo_title=suggestion.seo_title,
            seo_description=suggestion.seo_description,
        )
