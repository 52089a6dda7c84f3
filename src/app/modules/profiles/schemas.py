"""Pydantic schemas for immigration profiles."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ProfileSections(BaseModel):
    """The form sections of a profile.

    Every field is optional so partial saves only touch what was sent.
    """

    personal_details: dict[str, Any] | None = None
    educational_details: list[Any] | None = None
    employment_details: list[Any] | None = None
    travel_history: list[Any] | None = None
    personal_history: list[Any] | None = None
    visa_history: list[Any] | None = None
    language_assessment: dict[str, Any] | None = None
    spouse: dict[str, Any] | None = None
    family_info: dict[str, Any] | None = None
    other_factors: dict[str, Any] | None = None
    documents_checklist: dict[str, Any] | None = None


class ProfileSave(ProfileSections):
    pass


class ProfileUpdate(ProfileSections):
    pass


class CrsResult(BaseModel):
    """A CRS score computed by the client or a scoring service."""

    inputs: dict[str, Any] = Field(default_factory=dict)
    score: int = Field(..., ge=0, le=1200)
    breakdown: dict[str, Any] = Field(default_factory=dict)


class ProfileResponse(BaseModel):
    id: UUID
    user_id: UUID
    tenant_id: UUID
    personal_details: dict[str, Any]
    educational_details: list[Any]
    employment_details: list[Any]
    travel_history: list[Any]
    personal_history: list[Any]
    visa_history: list[Any]
    language_assessment: dict[str, Any]
    spouse: dict[str, Any]
    family_info: dict[str, Any]
    other_factors: dict[str, Any]
    documents_checklist: dict[str, Any]
    crs_inputs: dict[str, Any] | None = None
    crs_current_score: int | None = None
    crs_breakdown: dict[str, Any] | None = None
    crs_history: list[dict[str, Any]]
    is_complete: bool
    completion_percentage: int
    last_updated: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProfileListResponse(BaseModel):
    items: list[ProfileResponse]
    total: int
    page: int
    page_size: int


class ProfileProgress(BaseModel):
    """Completion of the fixed profile sections."""

    completed_sections: list[str]
    missing_sections: list[str]
    total_sections: int
    completion_percentage: int
    is_complete: bool
