"""Highlight Pydantic schemas.

Contains request and response models for highlight endpoints.
Request validation happens here, before storage is touched.
"""

from datetime import datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from marginalia.db.models import DEFAULT_HIGHLIGHT_COLOR, HighlightColor


# =============================================================================
# Output Schemas
# =============================================================================


class HighlightOut(BaseModel):
    """Response schema for a highlight anchor.

    Offsets are selection hints from the viewer, not a stable locator;
    `text` is what the viewer re-locates on each render.
    """

    id: UUID
    document_id: UUID
    text: str
    color: str
    comment: str | None
    page: int
    start_offset: int
    end_offset: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# Request Schemas
# =============================================================================


class CreateHighlightRequest(BaseModel):
    """Request schema for creating a highlight.

    Color defaults to yellow when omitted. Offsets are sent as `start` and
    `end` (`start_offset`/`end_offset` are accepted too); start may exceed
    end (selections made backwards).
    """

    model_config = ConfigDict(use_enum_values=True)

    text: str = Field(..., min_length=1, description="Selected text (re-location key)")
    page: int = Field(..., ge=1, description="1-based page number")
    start_offset: int = Field(
        ...,
        ge=0,
        validation_alias=AliasChoices("start", "start_offset"),
        description="Selection start hint",
    )
    end_offset: int = Field(
        ...,
        ge=0,
        validation_alias=AliasChoices("end", "end_offset"),
        description="Selection end hint",
    )
    color: HighlightColor = Field(
        DEFAULT_HIGHLIGHT_COLOR.value, description="Highlight color from palette"
    )
    comment: str | None = Field(None, description="Optional note")

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("text must not be blank")
        return v


class UpdateHighlightRequest(BaseModel):
    """Request schema for updating a highlight.

    Only fields present in the body change. An empty comment is stored as
    given; an explicit null comment clears it. Color cannot be cleared.
    """

    model_config = ConfigDict(use_enum_values=True)

    color: HighlightColor | None = Field(None, description="New highlight color from palette")
    comment: str | None = Field(None, description="New note, or null to clear")

    @model_validator(mode="after")
    def color_not_null(self) -> "UpdateHighlightRequest":
        if "color" in self.model_fields_set and self.color is None:
            raise ValueError("color cannot be null")
        return self
