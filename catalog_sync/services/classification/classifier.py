"""Product category classifier using keyword and regex rules.

Strategy:
1. Build a lower-cased haystack from title, vendor and stripped description
2. Evaluate rules in file order; the first match wins
3. Nothing matched → implicit catch-all with low confidence

The classifier never fails: at worst it returns the catch-all category.
Whether the confidence is good enough is decided by the Categorizer.

Example:
    classifier = RuleClassifier(RuleStore("rules.json"))
    result = classifier.classify(product)
    # result.category_path = "Beauty > Skincare > Face Serums"
    # result.confidence = 0.92
    # result.method = "rules"
"""
from typing import List, Optional

from catalog_sync.schemas.domain import Classification, ClassificationMethod, Product
from catalog_sync.services.classification.rules import RuleStore
from catalog_sync.services.classification.text import (
    build_haystack,
    build_seo,
    compose_tags,
)
from catalog_sync.utils.logger import get_logger

logger = get_logger(__name__)

CATCH_ALL_CONFIDENCE = 0.4
CATCH_ALL_NAME = "catch-all"


class RuleClassifier:
    """Rule-based product classifier.

    Attributes:
        store: Injected rule store; reloading it changes the rules used
            by the next ``classify`` call
    """

    def __init__(self, store: RuleStore):
        self.store = store
        self._log = logger.bind(component="RuleClassifier")

    def classify(self, product: Product) -> Classification:
        """Classify a product into a category.

        Args:
            product: Product to classify

        Returns:
            Classification with category, tags, SEO copy and confidence
        """
        rule_set = self.store.load()
        haystack = build_haystack(product.title, product.vendor, product.body_html)

        for compiled in rule_set.rules:
            if compiled.matches(haystack):
                rule = compiled.rule
                self._log.debug(
                    "classified_by_rule",
                    product_id=product.id,
                    rule=rule.name,
                    category=rule.category,
                    confidence=rule.confidence,
                )
                return self.finalize(
                    product,
                    category_path=rule.category,
                    extra_tags=rule.tags,
                    confidence=rule.confidence,
                    rule_name=rule.name,
                )

        self._log.debug(
            "classified_by_catch_all",
            product_id=product.id,
            category=rule_set.fallback_category,
        )
        return self.finalize(
            product,
            category_path=rule_set.fallback_category,
            confidence=CATCH_ALL_CONFIDENCE,
            rule_name=CATCH_ALL_NAME,
        )

    def finalize(
        self,
        product: Product,
        category_path: Optional[str],
        extra_tags: Optional[List[str]] = None,
        confidence: float = CATCH_ALL_CONFIDENCE,
        method: ClassificationMethod = ClassificationMethod.RULES,
        seo_title: Optional[str] = None,
        seo_description: Optional[str] = None,
        rule_name: Optional[str] = None,
    ) -> Classification:
        """Fill tags and SEO copy for a category decision.

        SEO fields already supplied are kept; missing ones are synthesized.
        An empty category falls back to the rule set's catch-all label.
        """
        category = (category_path or "").strip() or self.store.load().fallback_category
        tags = compose_tags(product.vendor, product.title, category, extra_tags)
        default_title, default_description = build_seo(product.vendor, product.title, category)
        return Classification(
            category_path=category,
            tags=tags,
            seo_title=seo_title or default_title,
            seo_description=seo_description or default_description,
            confidence=max(0.0, min(confidence, 1.0)),
            method=method,
            rule_name=rule_name,
        )
