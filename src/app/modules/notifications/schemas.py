"""Pydantic schemas for notifications."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.constants import MAX_NOTIFICATION_MESSAGE_LENGTH, MAX_NOTIFICATION_TITLE_LENGTH
from app.modules.notifications.models import (
    NotificationCategory,
    NotificationPriority,
    NotificationType,
)


class NotificationAction(BaseModel):
    label: str
    action: str
    url: str | None = None


class NotificationCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=MAX_NOTIFICATION_TITLE_LENGTH)
    message: str = Field(..., min_length=1, max_length=MAX_NOTIFICATION_MESSAGE_LENGTH)
    type: NotificationType = NotificationType.INFO
    category: NotificationCategory = NotificationCategory.SYSTEM
    priority: NotificationPriority = NotificationPriority.MEDIUM
    target_users: list[UUID] = Field(default_factory=list)
    target_roles: list[str] = Field(default_factory=list)
    target_tenants: list[UUID] = Field(default_factory=list)
    is_global: bool = False
    related_entity_type: str | None = None
    related_entity_id: str | None = None
    actions: list[NotificationAction] = Field(default_factory=list)
    scheduled_for: datetime | None = None
    expires_at: datetime | None = None
    metadata: dict[str, Any] | None = None


class NotificationResponse(BaseModel):
    """A notification as seen by one recipient; ``status`` is theirs."""

    id: UUID
    title: str
    message: str
    type: str
    category: str
    priority: str
    status: str
    related_entity_type: str | None = None
    related_entity_id: str | None = None
    actions: list[dict[str, Any]]
    scheduled_for: datetime | None = None
    expires_at: datetime | None = None
    created_at: datetime


class NotificationDetail(NotificationResponse):
    """Full notification for super admins, including targeting."""

    target_users: list[str]
    target_roles: list[str]
    target_tenants: list[str]
    is_global: bool
    read_by: list[dict[str, str]]
    metadata: dict[str, Any] | None = Field(None, validation_alias="metadata_")
    created_by: UUID | None = None

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class NotificationListResponse(BaseModel):
    items: list[NotificationResponse]
    total: int
    unread: int
    page: int
    page_size: int


class NotificationAdminListResponse(BaseModel):
    items: list[NotificationDetail]
    total: int
    page: int
    page_size: int


class UnreadCount(BaseModel):
    unread: int


class TrialCheckResult(BaseModel):
    expiring_soon: int
    expiring_later: int


class PaymentCheckResult(BaseModel):
    payment_failures: int
