"""
Pydantic schemas for vision service replies.

Replies are untrusted model output: these schemas define the only shapes
the pipeline accepts. Anything else is a ParseError.
"""
import json
import re
from typing import List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from closet_vision.core.exceptions import ParseError

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class _VisionSchema(BaseModel):
    """Base schema: accepts camelCase or snake_case keys, rejects NaN/inf."""
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)


def _clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, value))


class VisionBoundingBox(_VisionSchema):
    """Normalized box as reported. Bounds are not enforced: the cropper clamps."""
    x: float
    y: float
    width: float
    height: float


class VisionDetectedItem(_VisionSchema):
    """One garment in a detection reply."""
    name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    bounding_box: VisionBoundingBox = Field(..., alias="boundingBox")
    confidence: float = 0.0

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        return value.strip()

    @field_validator("category")
    @classmethod
    def _normalize_category(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, value: float) -> float:
        return _clamp_unit(value)


class VisionDetectionResponse(_VisionSchema):
    """Detection reply: {"hasMultipleItems": bool, "items": [...]}."""
    has_multiple_items: bool = Field(False, alias="hasMultipleItems")
    items: List[VisionDetectedItem] = Field(default_factory=list)


class VisionScannedItem(_VisionSchema):
    """One garment in an outfit scan reply."""
    name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    color: str = ""
    description: str = ""
    confidence: float = 0.0
    bounding_box: Optional[VisionBoundingBox] = Field(None, alias="boundingBox")

    @field_validator("category", "color")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, value: float) -> float:
        return _clamp_unit(value)


class OutfitScanResponse(_VisionSchema):
    """Outfit scan reply: {"items": [...]}."""
    items: List[VisionScannedItem] = Field(default_factory=list)


class CropValidationResponse(_VisionSchema):
    """Crop validation reply."""
    detected_item: str = Field("unknown", alias="detectedItem")
    matches_expected: bool = Field(..., alias="matchesExpected")
    confidence: float = 0.0
    issues: List[str] = Field(default_factory=list)

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, value: float) -> float:
        return _clamp_unit(value)


def extract_json_object(text: str) -> dict:
    """
    Pull the JSON object out of a free-text model reply.

    Raises:
        ParseError: If no JSON object is present or it does not decode
    """
    match = _JSON_OBJECT.search(text or "")
    if not match:
        raise ParseError("No JSON found in vision response")

    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON in vision response: {e}")

    if not isinstance(payload, dict):
        raise ParseError("Vision response JSON is not an object")

    return payload


def parse_vision_reply(text: str, schema: Type[SchemaT]) -> SchemaT:
    """
    Parse a model reply into the given schema.

    Raises:
        ParseError: If the reply cannot be parsed into the schema
    """
    payload = extract_json_object(text)
    try:
        return schema.model_validate(payload)
    except ValidationError as e:
        raise ParseError(f"Vision response does not match {schema.__name__}: {e.error_count()} error(s)")
