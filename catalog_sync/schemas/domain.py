"""
Domain Models
=============

Pydantic models shared by the classifier, processor and job queue.

Product mirrors the Admin API product resource; extra fields returned by
the API (variants, options, images...) are kept so they can feed the
model prompt.
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_RULE_CONFIDENCE = 0.92


class ClassificationMethod(str, Enum):
    """How the classification was produced."""

    RULES = "rules"
    FALLBACK_MODEL = "fallback-model"
    MANUAL = "manual"


def split_tags(value: str | list[str] | None) -> list[str]:
    """Split a comma-joined tag string (or list) into trimmed, non-empty tags."""
    if value is None:
        return []
    items = value.split(",") if isinstance(value, str) else value
    return [str(tag).strip() for tag in items if str(tag).strip()]


class Product(BaseModel):
    """Admin API product resource."""

    model_config = ConfigDict(extra="allow")

    id: int | str | None = None
    title: str = ""
    body_html: str = ""
    vendor: str = ""
    product_type: str = ""
    tags: str = ""
    updated_at: str | None = None
    metafields_global_title_tag: str = ""
    metafields_global_description_tag: str = ""
    options: list[dict[str, Any]] = Field(default_factory=list)
    variants: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator(
        "title",
        "body_html",
        "vendor",
        "product_type",
        "metafields_global_title_tag",
        "metafields_global_description_tag",
        mode="before",
    )
    @classmethod
    def none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("tags", mode="before")
    @classmethod
    def join_tag_list(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, list):
            return ", ".join(split_tags(value))
        return value

    @field_validator("options", "variants", mode="before")
    @classmethod
    def none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def tag_list(self) -> list[str]:
        """Existing tags as an ordered list."""
        return split_tags(self.tags)


class Rule(BaseModel):
    """
    Classification rule.

    A rule is either a keyword rule (substring match on any keyword) or a
    regex rule (case-insensitive search). Exactly one matcher is required.

    Attributes:
        name: Display name (defaults to the category)
        category: Category path, ">"-delimited
        keywords: Keywords for a keyword rule
        regex: Pattern for a regex rule
        tags: Extra tags added on match
        confidence: Confidence reported on match
    """

    name: str = ""
    category: Annotated[str, Field(min_length=1)]
    keywords: list[str] | None = None
    regex: str | None = None
    tags: list[str] = Field(default_factory=list)
    confidence: Annotated[float, Field(ge=0.0, le=1.0)] = DEFAULT_RULE_CONFIDENCE

    @field_validator("category")
    @classmethod
    def strip_category(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("category must not be empty")
        return value

    @field_validator("keywords", mode="before")
    @classmethod
    def clean_keywords(cls, value: Any) -> Any:
        if value is None:
            return None
        cleaned = [str(k).strip().lower() for k in split_tags(value)]
        return cleaned or None

    @field_validator("tags", mode="before")
    @classmethod
    def clean_tags(cls, value: Any) -> Any:
        return split_tags(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def default_confidence(cls, value: Any) -> Any:
        return DEFAULT_RULE_CONFIDENCE if value in (None, "") else value

    @model_validator(mode="after")
    def check_matcher(self) -> Self:
        if self.keywords and self.regex:
            raise ValueError("rule must define keywords or regex, not both")
        if not self.keywords and not self.regex:
            raise ValueError("rule must define keywords or regex")
        if self.regex:
            try:
                re.compile(self.regex, re.IGNORECASE)
            except re.error as e:
                raise ValueError(f"invalid regex: {e}") from e
        if not self.name:
            self.name = self.category
        return self

    @property
    def kind(self) -> Literal["keywords", "regex"]:
        return "regex" if self.regex else "keywords"

    def to_storage(self) -> dict[str, Any]:
        """Serialize for the rule file, omitting unset optional fields."""
        data: dict[str, Any] = {"name": self.name, "category": self.category}
        if self.keywords:
            data["keywords"] = self.keywords
        if self.regex:
            data["regex"] = self.regex
        if self.tags:
            data["tags"] = self.tags
        data["confidence"] = self.confidence
        return data


class Classification(BaseModel):
    """Result of classifying one product."""

    category_path: str
    tags: list[str] = Field(default_factory=list)
    seo_title: str = ""
    seo_description: str = ""
    confidence: Annotated[float, Field(ge=0.0, le=1.0)] = 0.0
    method: ClassificationMethod = ClassificationMethod.RULES
    rule_name: str | None = None

    @field_validator("category_path")
    @classmethod
    def require_category(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("category_path must not be empty")
        return value

    @field_validator("seo_title", "seo_description", mode="before")
    @classmethod
    def none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, value: Any) -> Any:
        return split_tags(value)

    @property
    def category_leaf(self) -> str:
        return self.category_path.split(">")[-1].strip()


class ProcessOptions(BaseModel):
    """Options accepted by ProductProcessor.process."""

    force: bool = False
    dry_run: bool = False
    replace_tags: bool = False
    replace_seo: bool = False
    classification: Classification | None = None
    body_html: str | None = None


class ProcessStatus(str, Enum):
    SKIPPED = "skipped"
    PROCESSED = "processed"
    DRY_RUN = "dry_run"


class ProcessResult(BaseModel):
    """Outcome of processing one product."""

    product_id: int | str
    status: ProcessStatus
    reason: str | None = None
    classification: Classification | None = None
    payload: dict[str, Any] | None = None
    tags: list[str] = Field(default_factory=list)

    @property
    def skipped(self) -> bool:
        return self.status == ProcessStatus.SKIPPED


class JobStatus(str, Enum):
    """Job processing states."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class Job(BaseModel):
    """
    In-memory job record.

    Attributes:
        id: Job identifier
        kind: Operation kind (e.g. "backfill")
        params: Parameters the job was started with
        status: Current status
        started_at: Start time
        finished_at: Completion time
        result: Runner result on success
        error: Error message on failure
    """

    id: str
    kind: str
    params: dict[str, Any] = Field(default_factory=dict)
    status: JobStatus = JobStatus.RUNNING
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None
    result: dict[str, Any] | None = None
    error: str | None = None

    @property
    def is_finished(self) -> bool:
        return self.status != JobStatus.RUNNING
