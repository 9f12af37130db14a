"""LLM-based fallback classifier for low-confidence rule results.

Asks the model to confirm or improve the rule classifier's guess and
returns a Classification, or None when the model is unreachable or its
answer cannot be used. It never raises into the processing pipeline.

Example:
    fallback = FallbackClassifier(client, lang="en")
    result = await fallback.classify(product, rule_guess)
    if result is None:
        result = rule_guess
"""

from typing import Any, Dict, List, Optional

import structlog

from catalog_sync.schemas.domain import Classification, ClassificationMethod, Product, split_tags
from catalog_sync.services.classification.text import normalize_text
from catalog_sync.services.llm.client import LLMClient, extract_json_object
from catalog_sync.utils.errors import LLMError

logger = structlog.get_logger(__name__)

BODY_LIMIT = 2000
DEFAULT_MODEL_CONFIDENCE = 0.85

CLASSIFICATION_SYSTEM_PROMPT = (
    "You are a senior US e-commerce merchandiser and SEO specialist. "
    "Given a Shopify product, respond with JSON only."
)

CLASSIFICATION_PROMPT_TEMPLATE = """LANG: {lang}
Rule category guess: {rule_category}

Product:
- Title: {title}
- Brand: {vendor}
- Tags: {tags}
- Type: {product_type}
- Options: {options}
- Variants: {variants}
- Body: {body}

If rule category looks correct, keep it. Otherwise, suggest better.
Return JSON only with category_path, ai_tags (array or comma string), seo_title, seo_description."""


def _describe_options(options: List[Dict[str, Any]]) -> str:
    parts = []
    for option in options:
        values = [str(v) for v in (option.get("values") or [])[:5]]
        parts.append(f"{option.get('name', '')}:{'/'.join(values)}")
    return ", ".join(parts)


def _describe_variants(variants: List[Dict[str, Any]]) -> str:
    return " ; ".join(str(v.get("title") or "") for v in variants[:3])


def build_prompt(product: Product, rule_guess: Classification, lang: str) -> str:
    """Render the user prompt; the description is cut to BODY_LIMIT characters."""
    return CLASSIFICATION_PROMPT_TEMPLATE.format(
        lang=lang,
        rule_category=rule_guess.category_path,
        title=product.title,
        vendor=product.vendor,
        tags=product.tags,
        product_type=product.product_type,
        options=_describe_options(product.options),
        variants=_describe_variants(product.variants),
        body=normalize_text(product.body_html)[:BODY_LIMIT],
    )


def _as_confidence(value: Any) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_MODEL_CONFIDENCE
    if confidence <= 0:
        return DEFAULT_MODEL_CONFIDENCE
    return min(confidence, 1.0)


class FallbackClassifier:
    """
    Generative fallback classifier.

    Attributes:
        client: LLM backend
        lang: Content language passed in the prompt
    """

    def __init__(self, client: LLMClient, lang: str = "en"):
        self.client = client
        self.lang = lang
        self._log = logger.bind(component="FallbackClassifier")

    async def classify(
        self,
        product: Product,
        rule_guess: Classification,
    ) -> Optional[Classification]:
        """
        Ask the model to confirm or improve ``rule_guess``.

        Fields the model leaves out are taken from the rule guess.

        Returns:
            Classification with method "fallback-model", or None on failure
        """
        prompt = build_prompt(product, rule_guess, self.lang)
        try:
            response = await self.client.complete(
                prompt,
                system_prompt=CLASSIFICATION_SYSTEM_PROMPT,
            )
            parsed = extract_json_object(response.content)
        except LLMError as e:
            self._log.warning("fallback_model_failed", product_id=product.id, error=e.message)
            return None
        except Exception as e:
            # The rule guess stands whatever the backend does
            self._log.exception(
                "fallback_model_crashed",
                product_id=product.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        if parsed is None:
            self._log.warning(
                "fallback_model_unparseable",
                product_id=product.id,
                preview=response.content[:200],
            )
            return None

        try:
            return self._to_classification(parsed, rule_guess)
        except ValueError as e:
            # pydantic.ValidationError is a ValueError
            self._log.warning("fallback_model_invalid", product_id=product.id, error=str(e))
            return None

    @staticmethod
    def _to_classification(parsed: Dict[str, Any], rule_guess: Classification) -> Classification:
        category = str(parsed.get("category_path") or parsed.get("category") or "").strip()
        raw_tags = parsed.get("ai_tags", parsed.get("tags"))
        tags = split_tags(raw_tags) if isinstance(raw_tags, (str, list)) else []

        return Classification(
            category_path=category or rule_guess.category_path,
            tags=tags or rule_guess.tags,
            seo_title=str(parsed.get("seo_title") or "") or rule_guess.seo_title,
            seo_description=str(parsed.get("seo_description") or "") or rule_guess.seo_description,
            confidence=_as_confidence(parsed.get("confidence")),
            method=ClassificationMethod.FALLBACK_MODEL,
        )
