"""
Schemas
=======

Pydantic models for the domain and the HTTP surface.
"""

from catalog_sync.schemas.domain import (
    Classification,
    ClassificationMethod,
    Job,
    JobStatus,
    ProcessOptions,
    ProcessResult,
    ProcessStatus,
    Product,
    Rule,
)

__all__ = [
    "Classification",
    "ClassificationMethod",
    "Job",
    "JobStatus",
    "ProcessOptions",
    "ProcessResult",
    "ProcessStatus",
    "Product",
    "Rule",
]
