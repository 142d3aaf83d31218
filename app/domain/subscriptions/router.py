"""Subscription router - FastAPI endpoints for recurring deliveries"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import (
    ApiResponse,
    CancelRequest,
    PauseRequest,
    SubscriptionCreate,
    SubscriptionPreviewResponse,
    SubscriptionResponse,
    SubscriptionUpdate,
)
from .service import SubscriptionService, to_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])


def get_subscription_service(db: Session = Depends(get_db)) -> SubscriptionService:
    """Dependency injection for SubscriptionService"""
    return SubscriptionService(db)


# ============================================================================
# CORE CRUD OPERATIONS
# ============================================================================


@router.get("", response_model=ApiResponse[list[SubscriptionResponse]])
async def get_subscriptions(
    status: Optional[str] = Query(None, pattern="^(active|paused|cancelled|all)$"),
    current_user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Get the current user's subscriptions, optionally filtered by status"""
    subscriptions = service.get_subscriptions(current_user, status)
    return ApiResponse(
        message=f"Found {len(subscriptions)} subscription(s)",
        data=[to_response(s) for s in subscriptions],
    )


@router.post("/preview", response_model=ApiResponse[SubscriptionPreviewResponse])
async def preview_subscription(
    data: SubscriptionCreate,
    current_user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Validate a subscription and show its upcoming deliveries and price"""
    return ApiResponse(
        message="Subscription preview", data=service.preview_subscription(data, current_user)
    )


@router.get("/{subscription_id}", response_model=ApiResponse[SubscriptionResponse])
async def get_subscription(
    subscription_id: str,
    current_user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Get a specific subscription"""
    subscription = service.get_subscription(subscription_id, current_user)
    return ApiResponse(message="Subscription retrieved", data=to_response(subscription))


@router.post("", response_model=ApiResponse[SubscriptionResponse], status_code=201)
async def create_subscription(
    data: SubscriptionCreate,
    current_user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Create a new subscription"""
    subscription = service.create_subscription(data, current_user)
    return ApiResponse(message="Subscription created", data=to_response(subscription))


@router.put("/{subscription_id}", response_model=ApiResponse[SubscriptionResponse])
async def update_subscription(
    subscription_id: str,
    data: SubscriptionUpdate,
    current_user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Update the delivery schedule or notes of a subscription"""
    subscription = service.update_subscription(subscription_id, data, current_user)
    return ApiResponse(message="Subscription updated", data=to_response(subscription))


# ============================================================================
# LIFECYCLE
# ============================================================================


@router.post("/{subscription_id}/pause", response_model=ApiResponse[SubscriptionResponse])
async def pause_subscription(
    subscription_id: str,
    data: Optional[PauseRequest] = None,
    current_user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Pause an active subscription"""
    subscription = service.pause_subscription(subscription_id, data, current_user)
    return ApiResponse(message="Subscription paused", data=to_response(subscription))


@router.post("/{subscription_id}/resume", response_model=ApiResponse[SubscriptionResponse])
async def resume_subscription(
    subscription_id: str,
    current_user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Resume a paused subscription"""
    subscription = service.resume_subscription(subscription_id, current_user)
    return ApiResponse(message="Subscription resumed", data=to_response(subscription))


@router.post("/{subscription_id}/cancel", response_model=ApiResponse[SubscriptionResponse])
async def cancel_subscription(
    subscription_id: str,
    data: Optional[CancelRequest] = None,
    current_user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Cancel a subscription"""
    subscription = service.cancel_subscription(subscription_id, data, current_user)
    return ApiResponse(message="Subscription cancelled", data=to_response(subscription))
