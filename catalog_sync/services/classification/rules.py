"""Rule store backed by a JSON rule file.

The file is loaded once and cached; ``reload`` re-reads it in place.
Every entry is validated into a keyword rule or a regex rule at load
time, so a bad pattern is reported when the file is read rather than
when a product is classified.

File format:
    {
      "fallback_category": "Miscellaneous",
      "rules": [
        {"name": "serums", "category": "Beauty > Skincare > Face Serums",
         "keywords": ["serum", "ampoule"], "tags": ["skincare"], "confidence": 0.92},
        {"category": "Beauty > Makeup > Lips", "regex": "lipstick|lip gloss"}
      ]
    }
"""
import json
import os
import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from catalog_sync.schemas.domain import Rule
from catalog_sync.utils.errors import ConfigurationError, RuleValidationError
from catalog_sync.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_FALLBACK_CATEGORY = "Miscellaneous"


@dataclass
class CompiledRule:
    """A validated rule with its matcher prepared."""
    rule: Rule
    pattern: Optional[re.Pattern] = None

    @classmethod
    def compile(cls, rule: Rule) -> "CompiledRule":
        pattern = re.compile(rule.regex, re.IGNORECASE) if rule.regex else None
        return cls(rule=rule, pattern=pattern)

    def matches(self, haystack: str) -> bool:
        """Regex search, or any keyword as a substring of the lower-cased haystack."""
        if self.pattern is not None:
            return self.pattern.search(haystack) is not None
        return any(keyword in haystack for keyword in self.rule.keywords or [])


@dataclass
class RuleSet:
    """Ordered rules plus the catch-all category."""
    rules: List[CompiledRule] = field(default_factory=list)
    fallback_category: str = DEFAULT_FALLBACK_CATEGORY

    def __len__(self) -> int:
        return len(self.rules)


def validate_rule(data: Dict[str, Any], index: Optional[int] = None) -> Rule:
    """Validate one raw rule entry.

    Raises:
        RuleValidationError: If the entry is not a valid keyword/regex rule
    """
    try:
        return Rule.model_validate(data)
    except PydanticValidationError as e:
        where = f"rule #{index}" if index is not None else "rule"
        raise RuleValidationError(
            f"Invalid {where}: {e.errors()[0]['msg']}",
            details={"rule": data, "errors": e.errors(include_url=False, include_context=False)},
        ) from e


class RuleStore:
    """Explicit, injectable holder of the active rule set.

    Attributes:
        path: Rule file location
        default_fallback: Catch-all category when the file names none
    """

    def __init__(self, path: Union[Path, str], default_fallback: str = DEFAULT_FALLBACK_CATEGORY):
        self.path = Path(path)
        self.default_fallback = default_fallback
        self._cache: Optional[RuleSet] = None
        self._log = logger.bind(component="RuleStore", path=str(self.path))

    def load(self) -> RuleSet:
        """Return the cached rule set, reading the file on first use."""
        if self._cache is None:
            self._cache = self._build(self._read())
            self._log.info("rules_loaded", count=len(self._cache))
        return self._cache

    def reload(self) -> RuleSet:
        """Drop the cache and re-read the rule file."""
        self._cache = None
        return self.load()

    def raw_rules(self) -> List[Dict[str, Any]]:
        """Rule entries as stored on disk."""
        return self.raw_rules_from(self._read())

    def add_rule(self, data: Dict[str, Any]) -> Rule:
        """Validate, append and persist a rule; the cache is refreshed."""
        rule = validate_rule(data)
        document = self._read()
        document["rules"] = [*self.raw_rules_from(document), rule.to_storage()]
        self._write(document)
        self._log.info("rule_added", name=rule.name, category=rule.category)
        return rule

    def remove_rules(self, name: Optional[str] = None, category: Optional[str] = None) -> int:
        """Remove rules matching ``name`` or ``category`` (case-insensitive).

        Returns:
            Number of rules removed
        """
        if not name and not category:
            raise RuleValidationError("name or category is required to remove a rule")
        target_name = name.lower() if name else None
        target_category = category.lower() if category else None

        document = self._read()
        rules = self.raw_rules_from(document)
        kept = [
            rule for rule in rules
            if not (
                (target_name and str(rule.get("name") or "").lower() == target_name)
                or (target_category and str(rule.get("category") or "").lower() == target_category)
            )
        ]
        removed = len(rules) - len(kept)
        if removed:
            document["rules"] = kept
            self._write(document)
            self._log.info("rules_removed", removed=removed, name=name, category=category)
        return removed

    @staticmethod
    def raw_rules_from(document: Dict[str, Any]) -> List[Dict[str, Any]]:
        rules = document.get("rules") or []
        return list(rules) if isinstance(rules, list) else []

    def _build(self, document: Dict[str, Any]) -> RuleSet:
        compiled = [
            CompiledRule.compile(validate_rule(entry, index))
            for index, entry in enumerate(self.raw_rules_from(document))
        ]
        fallback = str(document.get("fallback_category") or "").strip() or self.default_fallback
        return RuleSet(rules=compiled, fallback_category=fallback)

    def _read(self) -> Dict[str, Any]:
        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise ConfigurationError(f"Rule file not found: {self.path}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Rule file is not valid JSON: {e}") from e
        if not isinstance(document, dict):
            raise ConfigurationError("Rule file must contain a JSON object")
        return document

    def _write(self, document: Dict[str, Any]) -> None:
        # Validated before the file is replaced
        rule_set = self._build(document)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(f"{json.dumps(document, indent=2, ensure_ascii=False)}\n")
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise
        self._cache = rule_set
