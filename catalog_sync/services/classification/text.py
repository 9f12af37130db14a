"""Text helpers for haystack building, tag synthesis and SEO copy."""
import html
import re

STOPWORDS = frozenset({"the", "and", "with", "for", "gift", "size", "set", "kit", "new"})

MAX_TITLE_TOKENS = 10
MAX_RULE_TAGS = 12
SEO_TITLE_LIMIT = 62
SEO_DESCRIPTION_LIMIT = 155
ELLIPSIS = "…"

_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")
_TOKEN_SPLIT_RE = re.compile(r"[^a-z0-9&]+")


def normalize_text(value: str | None) -> str:
    """Strip HTML tags and entities, collapse whitespace."""
    text = _TAG_RE.sub(" ", value or "")
    text = html.unescape(text)
    return _SPACE_RE.sub(" ", text).strip()


def build_haystack(title: str | None, vendor: str | None, body_html: str | None) -> str:
    """Lower-cased title + vendor + stripped description."""
    parts = (normalize_text(title), normalize_text(vendor), normalize_text(body_html))
    return " ".join(p for p in parts if p).lower()


def tokenize(text: str) -> list[str]:
    """Lower-case word tokens with stop words removed."""
    return [
        token
        for token in _TOKEN_SPLIT_RE.split(text.lower())
        if token and token not in STOPWORDS
    ]


def category_leaf(category_path: str) -> str:
    """Last ">"-delimited segment of a category path."""
    return category_path.split(">")[-1].strip()


def clip(text: str, limit: int) -> str:
    """Truncate to ``limit`` characters, ending with an ellipsis when cut."""
    if len(text) <= limit:
        return text
    return f"{text[: limit - 3].strip()}{ELLIPSIS}"


def dedupe_tags(tags: list[str], limit: int | None = None) -> list[str]:
    """Case-insensitive de-duplication keeping the first-seen casing and order."""
    seen: set[str] = set()
    unique: list[str] = []
    for tag in tags:
        value = str(tag or "").strip()
        key = value.lower()
        if not value or key in seen:
            continue
        seen.add(key)
        unique.append(value)
    return unique[:limit] if limit is not None else unique


def title_core(title: str | None, category_path: str) -> str:
    """Cleaned title (first 80 chars), or the category leaf when the title is empty."""
    return normalize_text(title)[:80] or category_leaf(category_path)


def build_seo(vendor: str | None, title: str | None, category_path: str) -> tuple[str, str]:
    """
    Templated SEO title and description.

    Returns:
        (seo_title, seo_description)
    """
    brand = (vendor or "").strip() or "Brand"
    core = title_core(title, category_path)
    leaf = category_leaf(category_path)
    seo_title = clip(f"{brand} {core}".strip(), SEO_TITLE_LIMIT)
    description = (
        f"Discover {core} from {brand}. "
        f"Shop authentic {leaf.lower()} with fast shipping and easy returns."
    )
    return seo_title, clip(description, SEO_DESCRIPTION_LIMIT)


def compose_tags(
    vendor: str | None,
    title: str | None,
    category_path: str,
    extra_tags: list[str] | None = None,
) -> list[str]:
    """Vendor, category leaf, rule tags and title tokens; capped at 12."""
    core = title_core(title, category_path)
    candidates = [
        (vendor or "").strip().lower(),
        category_leaf(category_path).lower(),
        *(extra_tags or []),
        *tokenize(core)[:MAX_TITLE_TOKENS],
    ]
    return dedupe_tags(candidates, MAX_RULE_TAGS)
