"""
Pydantic Request Models
=======================

Request schemas for the command endpoint.
"""

from typing import Any, Literal, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

CommandAction = Literal[
    "backfill",
    "reprocess_product",
    "manual_set",
    "update_seo",
    "preview",
    "list_rules",
    "add_rule",
    "remove_rule",
    "refresh_rules",
    "job_status",
    "list_jobs",
]

READ_ONLY_ACTIONS: frozenset[str] = frozenset(
    {"preview", "list_rules", "list_jobs", "job_status"}
)


class Command(BaseModel):
    """A single structured command."""

    action: str = Field(description="Action name from the command vocabulary")
    params: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_read_only(self) -> bool:
        return self.action in READ_ONLY_ACTIONS


class CommandRequest(BaseModel):
    """
    Request body for POST /commands.

    Either an explicit ``commands`` list or a natural-language ``prompt``
    must be supplied. Explicit commands take precedence.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "commands": [
                    {"action": "preview", "params": {"id": 123456789}},
                    {"action": "backfill", "params": {"since": "2024-06-01T00:00:00Z"}},
                ],
                "dryRun": False,
            }
        },
    )

    commands: list[Command] | None = None
    prompt: str | None = None
    dry_run: bool = Field(default=False, alias="dryRun")
    token: str | None = Field(default=None, description="Alternative to X-Command-Token")

    @model_validator(mode="after")
    def require_commands_or_prompt(self) -> Self:
        if not self.commands and not (self.prompt and self.prompt.strip()):
            raise ValueError("Either commands or prompt must be provided")
        return self
