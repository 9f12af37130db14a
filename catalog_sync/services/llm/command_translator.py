"""Natural-language prompt to structured command translation."""

from typing import List, Optional, Tuple

import structlog
from pydantic import ValidationError as PydanticValidationError

from catalog_sync.schemas.requests import Command
from catalog_sync.services.llm.client import LLMClient, extract_json_object
from catalog_sync.utils.errors import CommandTranslationError, LLMError

logger = structlog.get_logger(__name__)

COMMAND_SYSTEM_PROMPT = """You turn user requests into JSON commands for a Shopify automation service.
Only respond with JSON. Use the schema: {"commands":[{"action":"<action>","params":{}}],"notes":"optional context"}.
Supported actions:
- backfill {"since"?: string ISO date, "limit"?: number}
- reprocess_product {"id": number|string}
- manual_set {"id": number|string, "category_path": string, "tags"?: string[], "seo_title"?: string, "seo_description"?: string, "body_html"?: string, "replace_tags"?: boolean}
- update_seo {"id": number|string, "seo_title"?: string, "seo_description"?: string, "body_html"?: string}
- preview {"id": number|string}
- list_rules {}
- add_rule {"name"?: string, "category": string, "keywords"?: string[], "regex"?: string, "tags"?: string[], "confidence"?: number}
- remove_rule {"name"?: string, "category"?: string}
- refresh_rules {}
- job_status {"id": string}
- list_jobs {"limit"?: number}
Prefer explicit IDs. When unsure, return an explanatory notes field asking for clarification."""


class CommandTranslator:
    """Turns a free-text request into the command vocabulary via the LLM."""

    def __init__(self, client: Optional[LLMClient]):
        self.client = client
        self._log = logger.bind(component="CommandTranslator")

    async def translate(self, prompt: str) -> Tuple[List[Command], Optional[str]]:
        """
        Translate ``prompt`` into commands.

        Returns:
            (commands, notes)

        Raises:
            CommandTranslationError: No model configured, or its answer is unusable
        """
        if self.client is None:
            raise CommandTranslationError(
                "A language model is required to translate natural language prompts. "
                "Provide structured commands instead."
            )

        try:
            response = await self.client.complete(
                prompt,
                system_prompt=COMMAND_SYSTEM_PROMPT,
                temperature=0,
            )
        except LLMError as e:
            raise CommandTranslationError(f"Command interpreter failed: {e.message}") from e

        content = response.content.strip()
        if not content:
            raise CommandTranslationError("No response from command interpreter")

        parsed = extract_json_object(content)
        if parsed is None:
            raise CommandTranslationError(
                "Command interpreter returned no JSON object",
                details={"response": content[:500]},
            )

        raw_commands = parsed.get("commands")
        notes = parsed.get("notes") if isinstance(parsed.get("notes"), str) else None
        try:
            commands = [
                Command.model_validate(item)
                for item in (raw_commands if isinstance(raw_commands, list) else [])
            ]
        except PydanticValidationError as e:
            raise CommandTranslationError(
                "Command interpreter returned malformed commands",
                details={"errors": e.errors(include_url=False, include_context=False)},
            ) from e

        self._log.info(
            "prompt_translated",
            actions=[c.action for c in commands],
            has_notes=notes is not None,
        )
        return commands, notes
