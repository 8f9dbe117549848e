from fastapi import APIRouter, HTTPException, Depends, Request
from pydantic import BaseModel
from typing import Optional
from app.api.deps import get_billing_service
from app.api.v1.auth import get_current_user
from app.core.exceptions import DatabaseError, PaymentError
from app.providers.auth import User
from app.providers.payment import CheckoutSession, PortalSession
from app.services.billing_service import BillingService
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


class CheckoutSessionRequest(BaseModel):
    priceId: str
    successUrl: Optional[str] = None
    cancelUrl: Optional[str] = None


class PortalSessionRequest(BaseModel):
    returnUrl: Optional[str] = None


@router.post("/checkout", response_model=CheckoutSession)
async def create_checkout_session(
    request: CheckoutSessionRequest,
    user: User = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service)
):
    try:
        return await billing.create_checkout_session(
            user,
            request.priceId,
            success_url=request.successUrl,
            cancel_url=request.cancelUrl,
        )
    except PaymentError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/portal", response_model=PortalSession)
async def create_portal_session(
    request: PortalSessionRequest,
    user: User = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service)
):
    try:
        return await billing.create_portal_session(user, request.returnUrl)
    except PaymentError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/webhook", include_in_schema=False)
async def payment_webhook(request: Request, billing: BillingService = Depends(get_billing_service)):
    """
    Handle payment provider webhook events.
    Called by the provider when events occur (e.g., successful checkout).
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    if not sig_header:
        raise HTTPException(status_code=400, detail="Missing signature")

    try:
        event = await billing.handle_webhook(payload, sig_header)
    except PaymentError as e:
        logger.warning(f"Rejected webhook: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except DatabaseError as e:
        logger.error(f"Error applying webhook: {e}")
        raise HTTPException(status_code=500, detail="Failed to apply webhook")

    return {"status": "success", "event": event.type}
