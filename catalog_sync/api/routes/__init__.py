"""
API Routes
==========

Route modules for the catalog sync service.
"""

from catalog_sync.api.routes.backfill import router as backfill_router
from catalog_sync.api.routes.commands import router as commands_router
from catalog_sync.api.routes.jobs import router as jobs_router
from catalog_sync.api.routes.webhooks import router as webhooks_router

__all__ = ["backfill_router", "commands_router", "jobs_router", "webhooks_router"]
