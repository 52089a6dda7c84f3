"""Notification API routes."""

from datetime import datetime
from uuid import UUID

from fastapi import Query, status

from app.api.dependencies import Pagination
from app.core.auth.dependencies import CurrentSuperAdmin, CurrentUser
from app.modules.notifications import router
from app.modules.notifications.models import (
    Notification,
    NotificationCategory,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
)
from app.modules.notifications.schemas import (
    NotificationAdminListResponse,
    NotificationCreate,
    NotificationDetail,
    NotificationListResponse,
    NotificationResponse,
    PaymentCheckResult,
    TrialCheckResult,
    UnreadCount,
)
from app.modules.notifications.services import NotificationSvc
from app.modules.users.models import User


def _for_user(notification: Notification, user: User) -> NotificationResponse:
    return NotificationResponse(
        id=notification.id,
        title=notification.title,
        message=notification.message,
        type=notification.type,
        category=notification.category,
        priority=notification.priority,
        status=notification.status_for(user.id),
        related_entity_type=notification.related_entity_type,
        related_entity_id=notification.related_entity_id,
        actions=notification.actions or [],
        scheduled_for=notification.scheduled_for,
        expires_at=notification.expires_at,
        created_at=notification.created_at,
    )


@router.get("", response_model=NotificationListResponse, summary="My notifications")
async def list_my_notifications(
    current_user: CurrentUser,
    service: NotificationSvc,
    pagination: Pagination,
    notification_status: NotificationStatus | None = Query(None, alias="status"),
    category: NotificationCategory | None = None,
    priority: NotificationPriority | None = None,
) -> NotificationListResponse:
    items, total, unread = await service.list_for_user(
        current_user,
        pagination.page,
        pagination.page_size,
        status=notification_status,
        category=category,
        priority=priority,
    )
    return NotificationListResponse(
        items=[_for_user(n, current_user) for n in items],
        total=total,
        unread=unread,
        page=pagination.page,
        page_size=pagination.page_size,
    )


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(current_user: CurrentUser, service: NotificationSvc) -> UnreadCount:
    return UnreadCount(unread=await service.unread_count(current_user))


@router.post("/read-all", response_model=UnreadCount, summary="Mark everything as read")
async def mark_all_read(current_user: CurrentUser, service: NotificationSvc) -> UnreadCount:
    await service.mark_all_read(current_user)
    return UnreadCount(unread=0)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: UUID,
    current_user: CurrentUser,
    service: NotificationSvc,
) -> NotificationResponse:
    return _for_user(await service.mark_read(notification_id, current_user), current_user)


@router.post("/{notification_id}/dismiss", response_model=NotificationResponse)
async def dismiss(
    notification_id: UUID,
    current_user: CurrentUser,
    service: NotificationSvc,
) -> NotificationResponse:
    return _for_user(await service.dismiss(notification_id, current_user), current_user)


@router.post("/{notification_id}/archive", response_model=NotificationResponse)
async def archive(
    notification_id: UUID,
    current_user: CurrentUser,
    service: NotificationSvc,
) -> NotificationResponse:
    return _for_user(await service.archive(notification_id, current_user), current_user)


# Super admin endpoints


@router.post(
    "/admin",
    response_model=NotificationDetail,
    status_code=status.HTTP_201_CREATED,
    summary="Create a notification",
)
async def create_notification(
    data: NotificationCreate,
    current_user: CurrentSuperAdmin,
    service: NotificationSvc,
) -> NotificationDetail:
    return NotificationDetail.model_validate(await service.create(current_user, data))


@router.get("/admin", response_model=NotificationAdminListResponse, summary="All notifications")
async def list_all_notifications(
    current_user: CurrentSuperAdmin,
    service: NotificationSvc,
    pagination: Pagination,
    notification_status: NotificationStatus | None = Query(None, alias="status"),
    category: NotificationCategory | None = None,
    priority: NotificationPriority | None = None,
    notification_type: NotificationType | None = Query(None, alias="type"),
    created_after: datetime | None = None,
    created_before: datetime | None = None,
) -> NotificationAdminListResponse:
    items, total = await service.list_all(
        current_user,
        pagination.page,
        pagination.page_size,
        status=notification_status,
        category=category,
        priority=priority,
        type_=notification_type,
        created_after=created_after,
        created_before=created_before,
    )
    return NotificationAdminListResponse(
        items=[NotificationDetail.model_validate(n) for n in items],
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
    )


@router.put("/admin/{notification_id}/status", response_model=NotificationDetail)
async def set_notification_status(
    notification_id: UUID,
    new_status: NotificationStatus,
    current_user: CurrentSuperAdmin,
    service: NotificationSvc,
) -> NotificationDetail:
    notification = await service.set_status(current_user, notification_id, new_status)
    return NotificationDetail.model_validate(notification)


@router.post(
    "/admin/check-trials",
    response_model=TrialCheckResult,
    summary="Run the trial expiry check",
)
async def check_trials(
    current_user: CurrentSuperAdmin,  # noqa: ARG001 - restricts access
    service: NotificationSvc,
) -> TrialCheckResult:
    return await service.check_trial_expirations()


@router.post(
    "/admin/check-payments",
    response_model=PaymentCheckResult,
    summary="Run the payment failure check",
)
async def check_payments(
    current_user: CurrentSuperAdmin,  # noqa: ARG001 - restricts access
    service: NotificationSvc,
) -> PaymentCheckResult:
    return await service.check_payment_failures()
