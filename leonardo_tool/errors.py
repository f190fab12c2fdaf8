"""
Failure taxonomy for leonardo-tool.

Every failure the workflow can hit is a LeonardoError subclass, so the tool
boundary can turn all of them into one structured result.
"""

from __future__ import annotations

from typing import Optional


class LeonardoError(Exception):
    """Base class for all workflow failures."""


class InvalidRequestError(LeonardoError, ValueError):
    """Caller arguments could not be turned into a GenerationRequest."""


class LeonardoHTTPError(LeonardoError):
    """
    The API answered with a non-success HTTP status.

    Attributes:
        status_code: HTTP status returned by the API
        detail: Truncated response body (or reason phrase when empty)
    """

    def __init__(self, context: str, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{context} ({status_code}): {detail}")


class LeonardoTransportError(LeonardoError):
    """The call never produced a response (connect error, timeout, ...)."""


class MalformedResponseError(LeonardoError):
    """The response JSON is missing the fields the workflow relies on."""


class GenerationFailedError(LeonardoError):
    """The API reported the generation job as FAILED."""

    def __init__(self, generation_id: Optional[str] = None):
        self.generation_id = generation_id
        super().__init__("Leonardo generation failed")


class NoImagesError(LeonardoError):
    """The job completed but produced no usable image URL."""

    def __init__(self) -> None:
        super().__init__("Leonardo generation complete but no image URLs returned")


class PollTimeoutError(LeonardoError):
    """The attempt budget ran out before a terminal status was observed."""

    def __init__(self, elapsed_seconds: float):
        self.elapsed_seconds = elapsed_seconds
        super().__init__(
            f"Leonardo generation timed out after {elapsed_seconds:g} seconds"
        )
