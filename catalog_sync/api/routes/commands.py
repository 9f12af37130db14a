"""
Command Routes
==============

Endpoints:
- POST /commands - run structured commands or a natural-language prompt
"""

from typing import Any

from fastapi import APIRouter, Request
from pydantic import ValidationError as PydanticValidationError

from catalog_sync.api.security import ContainerDep, check_command_token
from catalog_sync.schemas.requests import CommandRequest
from catalog_sync.utils.errors import ValidationError
from catalog_sync.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "",
    summary="Run commands",
    description=(
        "Accepts either {commands: [...]} or {prompt: '...'}. The token is read "
        "from X-Command-Token or the body's token field."
    ),
    responses={
        200: {"description": "Per-command results"},
        400: {"description": "Invalid request or untranslatable prompt"},
        401: {"description": "Missing or invalid token"},
        503: {"description": "Command token not configured"},
    },
)
async def run_commands(request: Request, container: ContainerDep) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        body = {}

    token = request.headers.get("X-Command-Token") or body.get("token")
    check_command_token(container, token)

    try:
        command_request = CommandRequest.model_validate(body)
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid command request",
            details={"errors": e.errors(include_url=False, include_context=False)},
        ) from e

    response = await container.commands.handle(command_request)
    logger.info(
        "commands_handled",
        count=len(response.results),
        used_ai=response.used_ai,
        dry_run=command_request.dry_run,
    )
    return response.model_dump(by_alias=True, exclude_none=True)
