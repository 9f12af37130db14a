"""
Catalog Sync Service
====================

Keeps Shopify product classification (category path, tags, SEO copy)
in sync with a rule file and an optional generative model.

Features:
- Webhook-driven and bulk backfill processing
- Single-lane throttled Admin API client
- Keyword/regex rule classifier with model fallback
- Idempotent writes keyed off the product revision stamp
- Detached, pollable backfill jobs

"""

__version__ = "1.0.0"
