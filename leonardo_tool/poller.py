"""
Status polling for leonardo-tool.

Queries GET /generations/{id} at a fixed interval until the job reaches a
terminal status or the attempt budget runs out.
"""

from __future__ import annotations

import asyncio
import logging
import math
from enum import Enum
from typing import Awaitable, Callable, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from leonardo_tool.errors import (
    GenerationFailedError,
    InvalidRequestError,
    LeonardoError,
    MalformedResponseError,
    NoImagesError,
    PollTimeoutError,
)
from leonardo_tool.transport import read_json, send

logger = logging.getLogger(__name__)

POLL_INTERVAL_MS = 2_000
POLL_MAX_ATTEMPTS = 30  # 60 seconds total
POLL_REQUEST_TIMEOUT_SECONDS = 15.0

UNEXPECTED_SHAPE = "Leonardo: unexpected poll response shape"

STATUS_PENDING = "PENDING"
STATUS_COMPLETE = "COMPLETE"
STATUS_FAILED = "FAILED"


class PollState(Enum):
    """Local state of a poll sequence."""

    WAITING = "waiting"
    DONE = "done"
    FAILED_TERMINAL = "failed_terminal"
    TIMED_OUT = "timed_out"


class GeneratedImage(BaseModel):
    """One image produced by a completed job."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    url: Optional[str] = None


class JobStatus(BaseModel):
    """Remote job status as reported by a single poll."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    status: Optional[str] = None
    images: list[GeneratedImage] = Field(
        default_factory=list, alias="generated_images"
    )

    @field_validator("images", mode="before")
    @classmethod
    def none_as_empty(cls, value):
        return [] if value is None else value

    @property
    def image_urls(self) -> list[str]:
        """URLs of produced images, empty values dropped, order kept."""
        return [image.url for image in self.images if image.url]


class StatusResponse(BaseModel):
    """Body of GET /generations/{id}."""

    generations_by_pk: JobStatus


def parse_job_status(data: dict) -> JobStatus:
    """
    Parse a status response.

    Expected shape:
        {"generations_by_pk": {"status": "...",
                               "generated_images": [{"id": ..., "url": ...}]}}

    Raises:
        MalformedResponseError: If the body does not match that shape
    """
    try:
        return StatusResponse.model_validate(data).generations_by_pk
    except ValidationError as e:
        raise MalformedResponseError(UNEXPECTED_SHAPE) from e


def max_poll_attempts(
    timeout_seconds: float,
    interval_ms: int = POLL_INTERVAL_MS,
    hard_cap: int = POLL_MAX_ATTEMPTS,
) -> int:
    """
    Number of status queries allowed for a caller timeout.

    The lesser of the hard cap and the timeout divided by the poll interval,
    floored. An infinite timeout gets the hard cap.

    Raises:
        InvalidRequestError: If the timeout is NaN
    """
    if math.isnan(timeout_seconds):
        raise InvalidRequestError("timeout must be a number, got nan")
    if math.isinf(timeout_seconds):
        return hard_cap if timeout_seconds > 0 else 0
    return max(0, min(hard_cap, int((timeout_seconds * 1_000) // interval_ms)))


class StatusPoller:
    """
    Polls one generation job until it finishes.

    A poller serves a single job; create a new one per workflow run.

    Attributes:
        attempt: Number of status queries issued so far
        state: Current PollState
        max_attempts: Attempt budget of the current run (set by `poll`)
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        interval_ms: int = POLL_INTERVAL_MS,
        hard_cap: int = POLL_MAX_ATTEMPTS,
        request_timeout: float = POLL_REQUEST_TIMEOUT_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the poller.

        Args:
            client: Client whose base URL points at the Leonardo REST API
            api_key: Bearer credential
            interval_ms: Fixed wait before each status query
            hard_cap: Upper bound on status queries regardless of timeout
            request_timeout: Timeout of each status call in seconds
            sleep: Coroutine used to wait between queries
        """
        self.client = client
        self.api_key = api_key
        self.interval_ms = interval_ms
        self.hard_cap = hard_cap
        self.request_timeout = request_timeout
        self.sleep = sleep

        self.attempt = 0
        self.max_attempts = 0
        self.state = PollState.WAITING

    async def fetch_status(self, generation_id: str) -> JobStatus:
        """Issue one status query."""
        response = await send(
            self.client,
            "GET",
            f"/generations/{generation_id}",
            api_key=self.api_key,
            timeout=self.request_timeout,
            error_context="Leonardo poll error",
        )
        return parse_job_status(read_json(response, UNEXPECTED_SHAPE))

    async def poll(self, generation_id: str, timeout_seconds: float) -> list[str]:
        """
        Wait for the job to finish and return its image URLs.

        Args:
            generation_id: Identifier returned on submission
            timeout_seconds: Caller time budget

        Returns:
            Non-empty list of image URLs, in the order reported

        Raises:
            GenerationFailedError: Remote status FAILED
            NoImagesError: COMPLETE without any usable URL
            PollTimeoutError: Budget exhausted while still pending
            LeonardoHTTPError: Non-success status on a query
            LeonardoTransportError: A query produced no response
            MalformedResponseError: Unexpected response shape
        """
        self.max_attempts = max_poll_attempts(
            timeout_seconds, self.interval_ms, self.hard_cap
        )
        interval_seconds = self.interval_ms / 1_000

        while self.attempt < self.max_attempts:
            await self.sleep(interval_seconds)
            self.attempt += 1

            try:
                job = await self.fetch_status(generation_id)
            except LeonardoError:
                self.state = PollState.FAILED_TERMINAL
                raise

            logger.debug(
                "Poll %d/%d for %s: %s",
                self.attempt,
                self.max_attempts,
                generation_id,
                job.status,
            )

            if job.status == STATUS_FAILED:
                self.state = PollState.FAILED_TERMINAL
                raise GenerationFailedError(generation_id)

            if job.status == STATUS_COMPLETE:
                urls = job.image_urls
                if not urls:
                    self.state = PollState.FAILED_TERMINAL
                    raise NoImagesError()
                self.state = PollState.DONE
                logger.info(
                    "Generation %s complete with %d image(s)",
                    generation_id,
                    len(urls),
                )
                return urls

            if job.status != STATUS_PENDING:
                # TODO: confirm whether unknown statuses should fail fast
                logger.debug("Unknown status %r, still waiting", job.status)

        self.state = PollState.TIMED_OUT
        raise PollTimeoutError(self.max_attempts * interval_seconds)

    def __str__(self) -> str:
        return (
            f"StatusPoller(state={self.state.value}, "
            f"attempt={self.attempt}/{self.max_attempts})"
        )
