"""
Job submission for leonardo-tool.

Sends one creation call to POST /generations and extracts the generation id
that keys every later status query.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import BaseModel, Field, ValidationError

from leonardo_tool.errors import MalformedResponseError
from leonardo_tool.request import GenerationRequest
from leonardo_tool.transport import DEFAULT_TIMEOUT_SECONDS, read_json, send

logger = logging.getLogger(__name__)

NO_GENERATION_ID = "Leonardo: no generationId in response"


class GenerationJob(BaseModel):
    generation_id: str = Field(..., alias="generationId", min_length=1)


class GenerationResponse(BaseModel):
    """Body of POST /generations."""

    sd_generation_job: GenerationJob = Field(..., alias="sdGenerationJob")


def parse_generation_id(data: dict) -> str:
    """
    Extract the job identifier from a creation response.

    Expected shape: {"sdGenerationJob": {"generationId": "..."}}

    Raises:
        MalformedResponseError: If the identifier is missing or empty
    """
    try:
        response = GenerationResponse.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(NO_GENERATION_ID) from e
    return response.sd_generation_job.generation_id


async def submit_generation(
    client: httpx.AsyncClient,
    request: GenerationRequest,
    api_key: str,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> str:
    """
    Submit a generation job.

    Args:
        client: Client whose base URL points at the Leonardo REST API
        request: Validated generation request
        api_key: Bearer credential
        timeout: Timeout for the creation call in seconds

    Returns:
        The generation id of the new job

    Raises:
        LeonardoHTTPError: Non-success HTTP status (not retried)
        LeonardoTransportError: The call produced no response
        MalformedResponseError: The response carries no generation id
    """
    logger.info(
        "Submitting generation: %d image(s) %dx%d preset=%s",
        request.num_images,
        request.width,
        request.height,
        request.preset_style.value,
    )
    response = await send(
        client,
        "POST",
        "/generations",
        api_key=api_key,
        timeout=timeout,
        error_context="Leonardo generation request failed",
        json_body=request.to_body(),
    )
    generation_id = parse_generation_id(read_json(response, NO_GENERATION_ID))
    logger.info("Generation submitted: %s", generation_id)
    return generation_id
