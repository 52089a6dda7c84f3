"""Immigration profile database model."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TenantMixin, TimestampMixin, UUIDMixin
from app.core.utils.time import utcnow


# Sections tracked for profile completion, in form order
PROFILE_SECTIONS: tuple[str, ...] = (
    "personal_details",
    "educational_details",
    "employment_details",
    "travel_history",
    "personal_history",
    "visa_history",
    "language_assessment",
    "spouse",
    "family_info",
    "other_factors",
)


class Profile(Base, UUIDMixin, TimestampMixin, TenantMixin):
    """Immigration assessment data for one user.

    Each section is a free-form JSON document filled in by the
    user-facing forms. CRS fields hold the last computed result and
    its history.
    """

    __tablename__ = "profiles"
    __table_args__ = (UniqueConstraint("user_id", "tenant_id", name="uq_profiles_user_tenant"),)

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    personal_details: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    educational_details: Mapped[list[Any]] = mapped_column(JSON, default=list, nullable=False)
    employment_details: Mapped[list[Any]] = mapped_column(JSON, default=list, nullable=False)
    travel_history: Mapped[list[Any]] = mapped_column(JSON, default=list, nullable=False)
    personal_history: Mapped[list[Any]] = mapped_column(JSON, default=list, nullable=False)
    visa_history: Mapped[list[Any]] = mapped_column(JSON, default=list, nullable=False)
    language_assessment: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    spouse: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    family_info: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    other_factors: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    documents_checklist: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    crs_inputs: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    crs_current_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    crs_breakdown: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    crs_history: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)

    is_complete: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    def section_filled(self, section: str) -> bool:
        return bool(getattr(self, section, None))

    @property
    def completed_sections(self) -> list[str]:
        return [section for section in PROFILE_SECTIONS if self.section_filled(section)]

    @property
    def completion_percentage(self) -> int:
        return round(len(self.completed_sections) * 100 / len(PROFILE_SECTIONS))

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, user_id={self.user_id}, tenant_id={self.tenant_id})>"
