"""
Command Interpreter
===================

Maps structured commands (or a natural-language prompt translated into
them) onto processor, rule store and job queue operations.

Each command runs independently: a failing command produces an error
entry in the results and the remaining commands still run.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from catalog_sync.schemas.domain import (
    Classification,
    ClassificationMethod,
    Job,
    ProcessOptions,
    ProcessStatus,
    split_tags,
)
from catalog_sync.schemas.requests import Command, CommandRequest
from catalog_sync.schemas.responses import CommandResponse
from catalog_sync.services.backfill import BackfillService
from catalog_sync.services.categorizer import Categorizer
from catalog_sync.services.classification.rules import RuleStore
from catalog_sync.services.classification.text import build_seo
from catalog_sync.services.job_queue import JobQueue
from catalog_sync.services.llm.command_translator import CommandTranslator
from catalog_sync.services.processor import SEO_DESCRIPTION_MAX, SEO_TITLE_MAX, ProductProcessor
from catalog_sync.services.shopify.client import ShopifyClient
from catalog_sync.utils.errors import CatalogSyncError, ValidationError
from catalog_sync.utils.logger import get_logger

logger = get_logger(__name__)

MANUAL_CONFIDENCE = 0.99
DEFAULT_JOB_LIST_LIMIT = 10

Handler = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


def require_param(params: dict[str, Any], name: str) -> Any:
    value = params.get(name)
    if value is None or value == "":
        raise ValidationError(f"{name} is required", details={"param": name})
    return value


def as_bool(value: Any, default: bool = False) -> bool:
    """Accept true/"true" (any case); None means ``default``."""
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


def as_int(value: Any, name: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be a number", details={"param": name}) from e


def _job_dict(job: Job) -> dict[str, Any]:
    return job.model_dump(mode="json")


class CommandInterpreter:
    """
    Executes command batches.

    Attributes:
        translator: Prompt translator; without a model, prompts are rejected
    """

    def __init__(
        self,
        shopify: ShopifyClient,
        processor: ProductProcessor,
        categorizer: Categorizer,
        rule_store: RuleStore,
        job_queue: JobQueue,
        backfill: BackfillService,
        translator: CommandTranslator,
    ) -> None:
        self.shopify = shopify
        self.processor = processor
        self.categorizer = categorizer
        self.rule_store = rule_store
        self.job_queue = job_queue
        self.backfill = backfill
        self.translator = translator
        self._handlers: dict[str, Handler] = {
            "backfill": self._backfill,
            "reprocess_product": self._reprocess_product,
            "manual_set": self._manual_set,
            "update_seo": self._update_seo,
            "preview": self._preview,
            "list_rules": self._list_rules,
            "add_rule": self._add_rule,
            "remove_rule": self._remove_rule,
            "refresh_rules": self._refresh_rules,
            "job_status": self._job_status,
            "list_jobs": self._list_jobs,
        }
        self._log = logger.bind(component="CommandInterpreter")

    async def handle(self, request: CommandRequest) -> CommandResponse:
        """
        Run every command in the request, in order.

        Raises:
            CommandTranslationError: The prompt could not be translated
            ValidationError: Nothing to execute
        """
        commands = request.commands
        notes = None
        used_ai = False
        if not commands and request.prompt:
            commands, notes = await self.translator.translate(request.prompt)
            used_ai = True

        if not commands:
            raise ValidationError("No commands provided", details={"notes": notes})

        results = []
        for command in commands:
            results.append(await self.execute(command, dry_run=request.dry_run))
        return CommandResponse(ok=True, used_ai=used_ai, notes=notes, results=results)

    async def execute(self, command: Command, dry_run: bool = False) -> dict[str, Any]:
        """Run one command; failures become ``{"action", "error"}`` entries."""
        action = command.action
        if dry_run and not command.is_read_only:
            return {"action": action, "skipped": True, "reason": "dry_run"}

        try:
            handler = self._handlers.get(action)
            if handler is None:
                raise ValidationError(f"Unsupported action: {action}", details={"action": action})
            result = await handler(command.params)
        except CatalogSyncError as e:
            self._log.error("command_failed", action=action, error=e.message)
            return {"action": action, "error": e.message}
        except Exception as e:
            self._log.exception("command_crashed", action=action, error=str(e))
            return {"action": action, "error": str(e) or type(e).__name__}
        return {"action": action, **result}

    # -------------------------------------------------------------------------
    # Processing actions
    # -------------------------------------------------------------------------

    async def _backfill(self, params: dict[str, Any]) -> dict[str, Any]:
        since = params.get("since") or None
        limit = as_int(params.get("limit"), "limit")
        if limit is not None and limit < 1:
            raise ValidationError("limit must be a positive integer", details={"param": "limit"})

        async def runner(job: Job) -> dict[str, Any]:
            return await self.backfill.run(since=since, limit=limit, source="command_backfill")

        job = self.job_queue.enqueue("backfill", {"since": since, "limit": limit}, runner)
        return {"status": "queued", "job_id": job.id}

    async def _reprocess_product(self, params: dict[str, Any]) -> dict[str, Any]:
        product = await self.shopify.get_product(require_param(params, "id"))
        options = ProcessOptions(force=as_bool(params.get("force"), default=True))
        result = await self.processor.process(product, "command_reprocess", options)
        if result.status == ProcessStatus.SKIPPED:
            return {"status": "skipped", "id": product.id, "reason": result.reason or "no_change"}
        return {
            "status": "processed",
            "id": product.id,
            "category": result.classification.category_path if result.classification else None,
            "method": result.classification.method.value if result.classification else None,
        }

    async def _manual_set(self, params: dict[str, Any]) -> dict[str, Any]:
        product_id = require_param(params, "id")
        category_path = require_param(params, "category_path")
        product = await self.shopify.get_product(product_id)

        tags = params.get("tags")
        default_title, default_description = build_seo(product.vendor, product.title, str(category_path))
        classification = Classification(
            category_path=category_path,
            tags=tags if isinstance(tags, (str, list)) else [],
            seo_title=params.get("seo_title") or default_title,
            seo_description=params.get("seo_description") or default_description,
            confidence=MANUAL_CONFIDENCE,
            method=ClassificationMethod.MANUAL,
        )
        replace_seo = as_bool(params.get("replace_seo")) or bool(
            params.get("seo_title") or params.get("seo_description")
        )
        result = await self.processor.process(
            product,
            "command_manual",
            ProcessOptions(
                force=True,
                classification=classification,
                replace_tags=as_bool(params.get("replace_tags")),
                replace_seo=replace_seo,
                body_html=params.get("body_html") or None,
            ),
        )
        return {
            "status": "updated",
            "id": product.id,
            "category": classification.category_path,
            "tags": result.tags,
        }

    async def _update_seo(self, params: dict[str, Any]) -> dict[str, Any]:
        product_id = require_param(params, "id")
        payload: dict[str, Any] = {}
        if params.get("seo_title"):
            payload["metafields_global_title_tag"] = str(params["seo_title"])[:SEO_TITLE_MAX]
        if params.get("seo_description"):
            payload["metafields_global_description_tag"] = str(params["seo_description"])[
                :SEO_DESCRIPTION_MAX
            ]
        if params.get("body_html"):
            payload["body_html"] = params["body_html"]
        if not payload:
            raise ValidationError(
                "At least one of seo_title, seo_description or body_html must be provided"
            )

        await self.shopify.update_product(product_id, payload)
        if "metafields_global_title_tag" in payload:
            await self.shopify.set_metafield(
                product_id, "seo_title", payload["metafields_global_title_tag"]
            )
        if "metafields_global_description_tag" in payload:
            await self.shopify.set_metafield(
                product_id, "seo_description", payload["metafields_global_description_tag"]
            )
        return {"status": "updated", "id": product_id}

    async def _preview(self, params: dict[str, Any]) -> dict[str, Any]:
        product = await self.shopify.get_product(require_param(params, "id"))
        classification = await self.categorizer.categorize(product)
        return {
            "status": "preview",
            "id": product.id,
            "classification": classification.model_dump(mode="json"),
        }

    # -------------------------------------------------------------------------
    # Rule actions
    # -------------------------------------------------------------------------

    async def _list_rules(self, params: dict[str, Any]) -> dict[str, Any]:
        rules = self.rule_store.raw_rules()
        limit = as_int(params.get("limit"), "limit")
        if limit:
            rules = rules[:limit]
        return {"status": "rules", "count": len(rules), "rules": rules}

    async def _add_rule(self, params: dict[str, Any]) -> dict[str, Any]:
        require_param(params, "category")
        data = {
            key: params[key]
            for key in ("name", "category", "keywords", "regex", "tags", "confidence")
            if params.get(key) not in (None, "")
        }
        rule = self.rule_store.add_rule(data)
        return {"status": "rule_added", "rule": rule.to_storage()}

    async def _remove_rule(self, params: dict[str, Any]) -> dict[str, Any]:
        removed = self.rule_store.remove_rules(
            name=params.get("name") or None,
            category=params.get("category") or None,
        )
        if not removed:
            raise ValidationError("No matching rule found to remove")
        return {"status": "rule_removed", "removed": removed}

    async def _refresh_rules(self, params: dict[str, Any]) -> dict[str, Any]:
        rule_set = self.rule_store.reload()
        return {"status": "rules_refreshed", "count": len(rule_set)}

    # -------------------------------------------------------------------------
    # Job actions
    # -------------------------------------------------------------------------

    async def _job_status(self, params: dict[str, Any]) -> dict[str, Any]:
        job = self.job_queue.status(require_param(params, "id"))
        return {"status": "job_status", "job": _job_dict(job)}

    async def _list_jobs(self, params: dict[str, Any]) -> dict[str, Any]:
        limit = as_int(params.get("limit"), "limit") or DEFAULT_JOB_LIST_LIMIT
        return {"status": "jobs", "jobs": [_job_dict(job) for job in self.job_queue.list(limit)]}
