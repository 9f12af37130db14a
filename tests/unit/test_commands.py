"""Unit tests for the CommandInterpreter.

Tests cover:
- Every action in the command vocabulary
- Dry-run skipping of mutating actions
- Per-command error isolation
- Prompt translation through the model client
"""
import pytest

from catalog_sync.schemas.requests import Command, CommandRequest
from catalog_sync.services.backfill import BackfillService
from catalog_sync.services.commands import CommandInterpreter, as_bool, as_int
from catalog_sync.services.job_queue import JobQueue
from catalog_sync.services.llm import CommandTranslator, MockLLMClient
from catalog_sync.services.processor import ProductProcessor
from catalog_sync.services.shopify.pager import ResourcePager
from catalog_sync.utils.errors import CommandTranslationError, ValidationError


def make_interpreter(shop, categorizer, rule_store, llm_client=None):
    processor = ProductProcessor(shop, categorizer)
    return CommandInterpreter(
        shopify=shop,
        processor=processor,
        categorizer=categorizer,
        rule_store=rule_store,
        job_queue=JobQueue(),
        backfill=BackfillService(ResourcePager(shop), processor),
        translator=CommandTranslator(llm_client),
    )


@pytest.fixture
def interpreter(fake_shopify, categorizer, rule_store):
    return make_interpreter(fake_shopify, categorizer, rule_store)


def run(interpreter, action, dry_run=False, **params):
    return interpreter.execute(Command(action=action, params=params), dry_run=dry_run)


class TestParamHelpers:
    """Test loose parameter coercion."""

    @pytest.mark.parametrize("value,expected", [
        (True, True),
        ("true", True),
        ("TRUE", True),
        ("yes", False),
        (False, False),
        (1, False),
    ])
    def test_as_bool(self, value, expected):
        assert as_bool(value) is expected

    def test_as_bool_default(self):
        assert as_bool(None, default=True) is True

    def test_as_int(self):
        assert as_int("25", "limit") == 25
        assert as_int(None, "limit") is None
        with pytest.raises(ValidationError):
            as_int("many", "limit")


class TestProcessingActions:
    """Test actions that touch products."""

    @pytest.mark.asyncio
    async def test_preview_does_not_write(self, interpreter, fake_shopify):
        result = await run(interpreter, "preview", id=1001)

        assert result["action"] == "preview"
        assert result["classification"]["category_path"] == "Beauty > Skincare > Face Serums"
        assert result["classification"]["method"] == "rules"
        assert fake_shopify.updates == []

    @pytest.mark.asyncio
    async def test_reprocess_forces_by_default(self, interpreter, fake_shopify):
        await run(interpreter, "reprocess_product", id=1001)
        result = await run(interpreter, "reprocess_product", id=1001)

        assert result["status"] == "processed"
        assert result["method"] == "rules"
        assert len(fake_shopify.updates) == 2

    @pytest.mark.asyncio
    async def test_reprocess_without_force_respects_stamp(self, interpreter, fake_shopify):
        await run(interpreter, "reprocess_product", id=1001)
        result = await run(interpreter, "reprocess_product", id=1001, force="false")

        assert result["status"] == "skipped"
        assert len(fake_shopify.updates) == 1

    @pytest.mark.asyncio
    async def test_manual_set(self, interpreter, fake_shopify):
        result = await run(
            interpreter,
            "manual_set",
            id=1001,
            category_path="Gifts > For Her",
            tags="holiday, Gift",
            seo_title="Perfect Gift Serum",
        )

        assert result["status"] == "updated"
        assert result["category"] == "Gifts > For Her"
        payload = fake_shopify.updates[0][1]
        assert payload["product_type"] == "Gifts > For Her"
        assert payload["metafields_global_title_tag"] == "Perfect Gift Serum"
        assert fake_shopify.metafields[("1001", "method")] == "manual"
        assert fake_shopify.metafields[("1001", "confidence")] == "0.99"

    @pytest.mark.asyncio
    async def test_manual_set_without_seo_fills_weak_title(self, interpreter, fake_shopify, serum_product):
        fake_shopify.products["1001"] = serum_product.model_copy(
            update={"metafields_global_title_tag": "Short title"}
        )

        await run(interpreter, "manual_set", id=1001, category_path="Gifts > For Her")

        payload = fake_shopify.updates[0][1]
        assert payload["metafields_global_title_tag"].startswith("Acme ")
        assert payload["metafields_global_description_tag"].startswith("Discover ")
        assert fake_shopify.metafields[("1001", "seo_title")] == payload["metafields_global_title_tag"]

    @pytest.mark.asyncio
    async def test_manual_set_requires_category(self, interpreter, fake_shopify):
        result = await run(interpreter, "manual_set", id=1001)

        assert result == {"action": "manual_set", "error": "category_path is required"}
        assert fake_shopify.updates == []

    @pytest.mark.asyncio
    async def test_update_seo_clips(self, interpreter, fake_shopify):
        result = await run(interpreter, "update_seo", id=1001, seo_title="t" * 90, seo_description="d" * 400)

        assert result["status"] == "updated"
        payload = fake_shopify.updates[0][1]
        assert len(payload["metafields_global_title_tag"]) == 70
        assert len(payload["metafields_global_description_tag"]) == 320
        assert fake_shopify.metafields[("1001", "seo_title")] == "t" * 70

    @pytest.mark.asyncio
    async def test_update_seo_requires_a_field(self, interpreter):
        result = await run(interpreter, "update_seo", id=1001)
        assert "error" in result

    @pytest.mark.asyncio
    async def test_unknown_product(self, interpreter):
        result = await run(interpreter, "preview", id=404)
        assert result["error"] == "Product 404 not found"

    @pytest.mark.asyncio
    async def test_backfill_is_queued(self, interpreter):
        result = await run(interpreter, "backfill", since="2024-06-01T00:00:00Z", limit="1")

        assert result["status"] == "queued"
        job = await interpreter.job_queue.wait(result["job_id"])
        assert job.params == {"since": "2024-06-01T00:00:00Z", "limit": 1}
        assert job.result["processed"] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", ["-1", "0"])
    async def test_backfill_rejects_non_positive_limit(self, interpreter, limit):
        result = await run(interpreter, "backfill", limit=limit)

        assert result == {"action": "backfill", "error": "limit must be a positive integer"}
        assert len(interpreter.job_queue) == 0


class TestRuleActions:
    """Test rule management actions."""

    @pytest.mark.asyncio
    async def test_list_rules(self, interpreter):
        result = await run(interpreter, "list_rules", limit=2)

        assert result["count"] == 2
        assert result["rules"][0]["name"] == "serums"

    @pytest.mark.asyncio
    async def test_add_rule_takes_effect(self, interpreter, fake_shopify):
        added = await run(
            interpreter,
            "add_rule",
            name="wax melts",
            category="Home & Kitchen > Home Fragrance > Wax Melts",
            keywords="lavender, wax melt",
            confidence=0.95,
        )
        assert added["status"] == "rule_added"

        # Appended rules are evaluated after the existing ones
        preview = await run(interpreter, "preview", id=1002)
        assert preview["classification"]["category_path"] == "Home & Kitchen > Home Fragrance > Candles"

        listed = await run(interpreter, "list_rules")
        assert listed["rules"][-1]["name"] == "wax melts"

    @pytest.mark.asyncio
    async def test_add_rule_invalid(self, interpreter):
        result = await run(interpreter, "add_rule", category="Nowhere")
        assert "error" in result

    @pytest.mark.asyncio
    async def test_remove_rule(self, interpreter):
        result = await run(interpreter, "remove_rule", name="LIPS")

        assert result == {"action": "remove_rule", "status": "rule_removed", "removed": 1}
        missing = await run(interpreter, "remove_rule", name="lips")
        assert missing["error"] == "No matching rule found to remove"

    @pytest.mark.asyncio
    async def test_refresh_rules(self, interpreter):
        result = await run(interpreter, "refresh_rules")
        assert result == {"action": "refresh_rules", "status": "rules_refreshed", "count": 3}


class TestJobActions:
    """Test job inspection actions."""

    @pytest.mark.asyncio
    async def test_job_status_and_list(self, interpreter):
        queued = await run(interpreter, "backfill")
        await interpreter.job_queue.wait(queued["job_id"])

        status = await run(interpreter, "job_status", id=queued["job_id"])
        listed = await run(interpreter, "list_jobs")

        assert status["job"]["status"] == "completed"
        assert [job["id"] for job in listed["jobs"]] == [queued["job_id"]]

    @pytest.mark.asyncio
    async def test_unknown_job(self, interpreter):
        result = await run(interpreter, "job_status", id="job-0-missing")
        assert result["error"] == "Job job-0-missing not found"


class TestHandle:
    """Test batch handling."""

    @pytest.mark.asyncio
    async def test_errors_are_isolated(self, interpreter):
        request = CommandRequest(commands=[
            Command(action="explode"),
            Command(action="list_rules"),
        ])

        response = await interpreter.handle(request)

        assert response.ok is True
        assert response.results[0] == {"action": "explode", "error": "Unsupported action: explode"}
        assert response.results[1]["status"] == "rules"

    @pytest.mark.asyncio
    async def test_dry_run_skips_mutations(self, interpreter, fake_shopify):
        request = CommandRequest.model_validate({
            "commands": [
                {"action": "manual_set", "params": {"id": 1001, "category_path": "Gifts"}},
                {"action": "preview", "params": {"id": 1001}},
            ],
            "dryRun": True,
        })

        response = await interpreter.handle(request)

        assert response.results[0] == {"action": "manual_set", "skipped": True, "reason": "dry_run"}
        assert response.results[1]["status"] == "preview"
        assert fake_shopify.updates == []

    @pytest.mark.asyncio
    async def test_prompt_translated(self, fake_shopify, categorizer, rule_store):
        client = MockLLMClient(responses=[
            '{"commands": [{"action": "list_rules", "params": {}}], "notes": "listing rules"}'
        ])
        interpreter = make_interpreter(fake_shopify, categorizer, rule_store, llm_client=client)

        response = await interpreter.handle(CommandRequest(prompt="what rules do we have?"))

        assert response.used_ai is True
        assert response.notes == "listing rules"
        assert response.results[0]["count"] == 3

    @pytest.mark.asyncio
    async def test_prompt_without_model(self, interpreter):
        with pytest.raises(CommandTranslationError):
            await interpreter.handle(CommandRequest(prompt="backfill everything"))

    @pytest.mark.asyncio
    async def test_prompt_translated_to_nothing(self, fake_shopify, categorizer, rule_store):
        client = MockLLMClient(responses=['{"commands": [], "notes": "nothing to do"}'])
        interpreter = make_interpreter(fake_shopify, categorizer, rule_store, llm_client=client)

        with pytest.raises(ValidationError):
            await interpreter.handle(CommandRequest(prompt="hello"))
