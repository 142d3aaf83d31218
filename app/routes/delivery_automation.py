"""
API endpoint for subscription delivery automation
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..domain.subscriptions.schemas import ApiResponse, DeliveryAutomationResult
from ..models import User
from ..services.delivery_automation import advance_due_deliveries

router = APIRouter(prefix="/automation", tags=["automation"])


@router.post("/deliveries/run", response_model=ApiResponse[DeliveryAutomationResult])
async def run_delivery_automation(
    current_user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    """
    Manually trigger delivery roll-forward for the current user's subscriptions
    (In production, this should be run via scheduled job/cron)
    """
    result = advance_due_deliveries(db, user_id=current_user.id)
    return ApiResponse(
        message=f"Advanced {result['advanced']} subscription(s)",
        data=DeliveryAutomationResult(**result),
    )
