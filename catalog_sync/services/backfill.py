"""
Backfill Service
================

Bulk re-classification over the product catalog: fetch the working set
once through the pager, then feed every product through the processor
sequentially. A per-product ProcessingError is recorded and the pass
continues; any other error aborts the pass.
"""

from collections.abc import Callable
from typing import Any

from catalog_sync.schemas.domain import ProcessOptions, ProcessStatus
from catalog_sync.services.processor import ProductProcessor
from catalog_sync.services.shopify.pager import ResourcePager
from catalog_sync.utils.errors import ProcessingError, ValidationError
from catalog_sync.utils.logger import get_logger

logger = get_logger(__name__)

PROGRESS_EVERY = 25
MAX_RECORDED_FAILURES = 50

ProgressCallback = Callable[[int, int], None]


class BackfillService:
    """
    Runs backfill passes.

    Example:
        service = BackfillService(pager, processor)
        result = await service.run(since="2024-06-01T00:00:00Z", limit=500)
        # {"processed": 480, "skipped": 15, "failed": 5, "failures": [...]}
    """

    def __init__(self, pager: ResourcePager, processor: ProductProcessor) -> None:
        self.pager = pager
        self.processor = processor
        self._log = logger.bind(component="BackfillService")

    async def run(
        self,
        since: str | None = None,
        limit: int | None = None,
        source: str = "backfill",
        dry_run: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> dict[str, Any]:
        """
        Process every product updated at/after ``since``.

        Args:
            since: Optional ISO timestamp filter
            limit: Maximum number of products examined
            source: Source label recorded on each product
            dry_run: Classify and build payloads without writing
            on_progress: Called with (examined, total) every PROGRESS_EVERY items

        Returns:
            Counts of processed, skipped and failed products plus failure details

        Raises:
            ValidationError: ``limit`` is below 1
        """
        if limit is not None and limit < 1:
            raise ValidationError("limit must be a positive integer", details={"limit": limit})
        products = await self.pager.fetch_all(since=since)
        if limit is not None:
            products = products[:limit]
        total = len(products)
        self._log.info("backfill_started", since=since, limit=limit, total=total, dry_run=dry_run)

        counts = {"processed": 0, "skipped": 0, "failed": 0}
        failures: list[dict[str, Any]] = []
        options = ProcessOptions(dry_run=dry_run)

        for examined, product in enumerate(products, start=1):
            try:
                result = await self.processor.process(product, source, options)
            except (ProcessingError, ValidationError) as e:
                counts["failed"] += 1
                if len(failures) < MAX_RECORDED_FAILURES:
                    failures.append({"id": product.id, "error": e.message})
            else:
                if result.status == ProcessStatus.SKIPPED:
                    counts["skipped"] += 1
                else:
                    counts["processed"] += 1
                    if dry_run and result.classification is not None:
                        self._log.info(
                            "dry_run_classification",
                            product_id=product.id,
                            category=result.classification.category_path,
                            method=result.classification.method.value,
                        )

            if examined % PROGRESS_EVERY == 0:
                self._log.info("backfill_progress", processed=examined, total=total)
                if on_progress is not None:
                    on_progress(examined, total)

        self._log.info("backfill_complete", total=total, **counts)
        return {**counts, "failures": failures}
