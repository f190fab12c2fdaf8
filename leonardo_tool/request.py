"""
Generation request model for leonardo-tool.

Turns loosely-typed caller arguments into a validated, immutable request and
serializes it to the body the generations endpoint expects.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from leonardo_tool.errors import InvalidRequestError

DEFAULT_NUM_IMAGES = 1
MAX_NUM_IMAGES = 4
DEFAULT_DIMENSION = 1024
MAX_DIMENSION = 1536
DIMENSION_STEP = 8


class PresetStyle(str, Enum):
    """Visual style presets offered to callers."""

    FASHION = "FASHION"
    PHOTOGRAPHY = "PHOTOGRAPHY"
    PORTRAIT = "PORTRAIT"
    CINEMATIC = "CINEMATIC"
    CREATIVE = "CREATIVE"


DEFAULT_PRESET_STYLE = PresetStyle.FASHION
PRESET_OPTIONS = ", ".join(style.value for style in PresetStyle)


class GenerationRequest(BaseModel):
    """A single image-generation request, defaults already applied."""

    model_config = ConfigDict(frozen=True)

    prompt: str = Field(
        ...,
        min_length=1,
        description=(
            "Image generation prompt. Be specific about style, mood, "
            "lighting, composition, and subject."
        ),
    )
    num_images: int = Field(
        DEFAULT_NUM_IMAGES,
        ge=1,
        le=MAX_NUM_IMAGES,
        description=(
            f"Number of images to generate (1-{MAX_NUM_IMAGES}). "
            f"Default: {DEFAULT_NUM_IMAGES}."
        ),
    )
    width: int = Field(
        DEFAULT_DIMENSION,
        gt=0,
        le=MAX_DIMENSION,
        description=(
            f"Image width in pixels (must be divisible by {DIMENSION_STEP}, "
            f"max {MAX_DIMENSION}). Default: {DEFAULT_DIMENSION}."
        ),
    )
    height: int = Field(
        DEFAULT_DIMENSION,
        gt=0,
        le=MAX_DIMENSION,
        description=(
            f"Image height in pixels (must be divisible by {DIMENSION_STEP}, "
            f"max {MAX_DIMENSION}). Default: {DEFAULT_DIMENSION}."
        ),
    )
    preset_style: PresetStyle = Field(
        DEFAULT_PRESET_STYLE,
        serialization_alias="presetStyle",
        description=(
            f"Visual style preset. Options: {PRESET_OPTIONS}. "
            f"Default: {DEFAULT_PRESET_STYLE.value}."
        ),
    )

    @model_validator(mode="before")
    @classmethod
    def drop_unset(cls, data: Any) -> Any:
        # None means "use the default", as tool frameworks pass it through
        if isinstance(data, Mapping):
            return {key: value for key, value in data.items() if value is not None}
        return data

    @field_validator("prompt", mode="before")
    @classmethod
    def validate_prompt(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            if not value:
                raise ValueError("prompt required")
        return value

    @field_validator("num_images", "width", "height", mode="before")
    @classmethod
    def reject_bool(cls, value: Any, info: ValidationInfo) -> Any:
        # lax int coercion would otherwise turn True into 1
        if isinstance(value, bool):
            raise ValueError(f"{info.field_name} must be an integer, got {value}")
        return value

    @field_validator("width", "height")
    @classmethod
    def validate_dimension(cls, value: int, info: ValidationInfo) -> int:
        if value % DIMENSION_STEP:
            raise ValueError(
                f"{info.field_name} must be divisible by {DIMENSION_STEP}, "
                f"got {value}"
            )
        return value

    @field_validator("preset_style", mode="before")
    @classmethod
    def validate_preset_style(cls, value: Any) -> PresetStyle:
        return parse_preset_style(value)

    @classmethod
    def from_args(cls, params: Mapping[str, Any]) -> GenerationRequest:
        """
        Build a request from tool-call arguments.

        Missing or None values fall back to the defaults: one image,
        1024x1024, FASHION preset.

        Raises:
            InvalidRequestError: If any argument is missing or out of range
        """
        try:
            return cls.model_validate(params)
        except ValidationError as e:
            raise InvalidRequestError(describe_validation_error(e)) from None

    def to_body(self) -> dict[str, Any]:
        """Serialize to the JSON body of POST /generations."""
        return self.model_dump(mode="json", by_alias=True)


def parse_preset_style(value: Any) -> PresetStyle:
    """Parse a preset label case-insensitively, defaulting when blank."""
    if value is None:
        return DEFAULT_PRESET_STYLE
    if isinstance(value, PresetStyle):
        return value
    if not isinstance(value, str):
        raise InvalidRequestError(f"preset_style must be a string, got {value!r}")

    label = value.strip().upper()
    if not label:
        return DEFAULT_PRESET_STYLE
    try:
        return PresetStyle(label)
    except ValueError:
        raise InvalidRequestError(
            f"Unknown preset_style {value!r} (options: {PRESET_OPTIONS})"
        ) from None


def describe_validation_error(error: ValidationError) -> str:
    """Flatten a pydantic error into one caller-readable line."""
    messages = []
    for detail in error.errors():
        field = ".".join(str(part) for part in detail["loc"])
        if detail["type"] == "missing":
            messages.append(f"{field} required")
        elif detail["type"] == "value_error":
            messages.append(str(detail["ctx"]["error"]))
        else:
            messages.append(f"{field}: {detail['msg']}")
    return "; ".join(messages)
