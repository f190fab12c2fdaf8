"""
The `generate_image` capability.

Composes submission and polling into one workflow and converts every failure
into a structured result, so the host framework never sees an exception from
a failed generation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from leonardo_tool.config import Config, resolve_api_key
from leonardo_tool.errors import LeonardoError
from leonardo_tool.poller import StatusPoller
from leonardo_tool.request import GenerationRequest
from leonardo_tool.submitter import submit_generation

logger = logging.getLogger(__name__)

TOOL_NAME = "generate_image"
TOOL_LABEL = "Generate Image"
TOOL_DESCRIPTION = (
    "Generate reference images using Leonardo.ai. Use this to create mood board "
    "images, visual references for shoots, or creative concept images. Returns "
    "image URLs that can be sent to chat."
)

PARAMETERS_SCHEMA: dict[str, Any] = GenerationRequest.model_json_schema()


class GenerationResult(BaseModel):
    """Outcome of one workflow run: image URLs, or an error message."""

    model_config = ConfigDict(frozen=True)

    image_urls: list[str] = Field(default_factory=list)
    generation_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, message: str) -> GenerationResult:
        return cls(image_urls=[], error=message)

    def to_dict(self) -> dict[str, Any]:
        """Tool-call payload handed back to the host framework."""
        if self.error is not None:
            return {"error": self.error, "imageUrls": []}
        return {
            "generationId": self.generation_id,
            "imageUrls": list(self.image_urls),
            "count": len(self.image_urls),
        }


async def run_generation(
    client: httpx.AsyncClient,
    request: GenerationRequest,
    api_key: str,
    timeout_seconds: float,
    request_timeout: float,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> GenerationResult:
    """
    Submit a request and wait for its images.

    Raises:
        LeonardoError: On any submission or polling failure
    """
    generation_id = await submit_generation(
        client, request, api_key, timeout=request_timeout
    )
    poller = StatusPoller(client, api_key, sleep=sleep)
    image_urls = await poller.poll(generation_id, timeout_seconds)
    return GenerationResult(image_urls=image_urls, generation_id=generation_id)


class LeonardoImageTool:
    """
    Agent tool wrapping the Leonardo submit-then-poll workflow.

    Attributes:
        name: Tool name exposed to the model
        label: Human-readable label
        description: Tool description exposed to the model
        parameters: JSON schema of the tool arguments
    """

    name = TOOL_NAME
    label = TOOL_LABEL
    description = TOOL_DESCRIPTION
    parameters = PARAMETERS_SCHEMA

    def __init__(
        self,
        api_key: str,
        config: Optional[Config] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the tool.

        Args:
            api_key: Resolved Leonardo credential
            config: Base URL and timing settings (defaults when omitted)
            transport: Optional httpx transport, mainly for tests
            sleep: Coroutine used to wait between status queries
        """
        self.api_key = api_key
        self.config = config or Config()
        self.transport = transport
        self.sleep = sleep

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Run the workflow for a built request, never raising LeonardoError."""
        try:
            async with httpx.AsyncClient(
                base_url=self.config.base_url, transport=self.transport
            ) as client:
                return await run_generation(
                    client,
                    request,
                    self.api_key,
                    timeout_seconds=self.config.timeout_seconds,
                    request_timeout=self.config.request_timeout,
                    sleep=self.sleep,
                )
        except LeonardoError as e:
            logger.warning("Image generation failed: %s", e)
            return GenerationResult.failure(str(e))

    async def execute(
        self, tool_call_id: str, args: Mapping[str, Any]
    ) -> dict[str, Any]:
        """
        Handle one tool call.

        Returns:
            {"generationId", "imageUrls", "count"} on success,
            {"error", "imageUrls": []} on any failure
        """
        logger.debug("Tool call %s: %s", tool_call_id, TOOL_NAME)
        try:
            request = GenerationRequest.from_args(args)
        except LeonardoError as e:
            logger.warning("Rejected image request: %s", e)
            return GenerationResult.failure(str(e)).to_dict()

        result = await self.generate(request)
        return result.to_dict()


def create_leonardo_tool(
    config: Optional[Config] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[LeonardoImageTool]:
    """
    Build the tool if a credential is available.

    Returns:
        LeonardoImageTool, or None when no API key is configured (the
        capability is simply not offered)
    """
    api_key = resolve_api_key(config)
    if not api_key:
        logger.debug("No Leonardo API key configured, tool not offered")
        return None
    return LeonardoImageTool(api_key, config=config, transport=transport)
