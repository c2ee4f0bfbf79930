# jobboard/api/v1/plans.py
"""
Subscription purchase flow.

purchasePlan creates a Razorpay order and a Pending plan record; the client
pays through Razorpay checkout and posts the returned ids to verifyPayment,
which checks the signature and activates the plan.
"""
import logging
import time
from datetime import datetime

from beanie import PydanticObjectId
from fastapi import APIRouter, Depends, HTTPException

from jobboard.api.v1.auth import get_current_user
from jobboard.api.v1.schemas import (
    MessageOut,
    OrderOut,
    PurchaseIn,
    UpdatePlanIn,
    UpdatePremiumIn,
    VerifyPaymentIn,
)
from jobboard.db.documents import PaymentStatus, Plan, PlanTier, User
from jobboard.db.encoding import to_json
from jobboard.services import payments, plans

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["plans"])


def _own(user: User, user_id) -> None:
    if str(user.id) != str(user_id):
        raise HTTPException(status_code=403, detail="You can only access your own plan")


@router.post("/purchasePlan", response_model=OrderOut)
async def purchase_plan(payload: PurchaseIn, user: User = Depends(get_current_user)):
    if payload.plan == PlanTier.FREE:
        raise HTTPException(status_code=400, detail="The Free plan needs no payment")
    tier = plans.tier_for(user.type, payload.plan)
    receipt = payments.build_receipt(str(user.id), int(time.time() * 1000))
    try:
        order = await payments.create_order(tier.amount, receipt)
    except payments.PaymentGatewayNotConfigured:
        raise HTTPException(status_code=503, detail="Payments are not available")
    except payments.PaymentGatewayError:
        raise HTTPException(status_code=502, detail="Could not create the payment order")

    now = datetime.utcnow()
    plan = await Plan.find_one({"user_id": user.id})
    if plan is None:
        plan = Plan(user_id=user.id, user_type=user.type)
    plan.order_id = order["id"]
    plan.plan = payload.plan
    plan.amount = tier.amount
    plan.payment_status = PaymentStatus.PENDING
    plan.payment_id = ""
    plan.updated_at = now
    await plan.save()
    return {"order_id": order["id"], "order_amount": order["amount"]}


@router.post("/verifyPayment")
async def verify_payment(payload: VerifyPaymentIn, user: User = Depends(get_current_user)):
    plan = await Plan.find_one({"user_id": user.id, "order_id": payload.razorpay_order_id})
    if plan is None:
        raise HTTPException(status_code=404, detail="No order found for this payment")
    if plan.payment_status != PaymentStatus.PENDING or plan.payment_id:
        raise HTTPException(status_code=409, detail="This order has already been processed")
    if await Plan.find_one({"payment_id": payload.razorpay_payment_id}):
        raise HTTPException(status_code=409, detail="This payment has already been used")
    try:
        valid = payments.signature_valid(
            payload.razorpay_order_id, payload.razorpay_payment_id, payload.razorpay_signature
        )
    except payments.PaymentGatewayNotConfigured:
        raise HTTPException(status_code=503, detail="Payments are not available")
    if not valid:
        logger.warning("Signature mismatch for order %s of user %s", payload.razorpay_order_id, user.id)
        raise HTTPException(status_code=400, detail="Payment verification failed")

    activated = await plans.activate(plan, payload.razorpay_payment_id)
    if activated is None:
        raise HTTPException(status_code=409, detail="This order has already been processed")
    return {"message": "Payment verified successfully", "plan": to_json(activated)}


@router.put("/updatePlan", response_model=MessageOut)
async def update_plan(payload: UpdatePlanIn, user: User = Depends(get_current_user)):
    if payload.payment_status == PaymentStatus.PAID and payload.plan != PlanTier.FREE:
        raise HTTPException(status_code=400, detail="Paid plans are activated through verifyPayment")

    now = datetime.utcnow()
    plan = await Plan.find_one({"user_id": user.id})
    if plan is None:
        plan = Plan(user_id=user.id, user_type=user.type)
    elif payload.order_id is not None and payload.order_id == plan.order_id and plan.payment_status != PaymentStatus.PENDING:
        # a settled order cannot be reopened for verifyPayment
        raise HTTPException(status_code=409, detail="This order has already been processed")
    elif payload.order_id is None and plan.payment_status != PaymentStatus.PENDING:
        plan.order_id = None
    plan.plan = payload.plan
    plan.payment_status = payload.payment_status
    plan.payment_id = payload.payment_id
    if payload.order_id is not None:
        plan.order_id = payload.order_id
    plan.amount = plans.tier_for(user.type, payload.plan).amount
    plan.expireon = None if payload.plan == PlanTier.FREE else plans.compute_expiry(user.type, payload.plan, now)
    plan.updated_at = now
    await plan.save()
    await plans.set_premium(user.id, user.type, False)
    return {"message": "Plan updated successfully"}


@router.put("/updatePremium", response_model=MessageOut)
async def update_premium(payload: UpdatePremiumIn, user: User = Depends(get_current_user)):
    _own(user, payload.user_id)
    premium = payload.payment_status == PaymentStatus.PAID
    if premium and await plans.active_tier(user) == PlanTier.FREE:
        raise HTTPException(status_code=400, detail="No active paid plan on record")
    if not await plans.set_premium(user.id, user.type, premium):
        raise HTTPException(status_code=404, detail="User does not exist")
    return {"message": "Premium status updated successfully"}


@router.get("/userPlanData/{user_id}")
async def user_plan_data(user_id: PydanticObjectId, user: User = Depends(get_current_user)):
    _own(user, user_id)
    plan = await Plan.find_one({"user_id": user.id})
    if plan is None:
        raise HTTPException(status_code=404, detail="No plan data found")
    if await plans.expire_if_due(plan):
        return {"message": "Plan data expired", "plan": to_json(plan)}
    return to_json(plan)


@router.delete("/userPlanData/{user_id}", response_model=MessageOut)
async def delete_plan_data(user_id: PydanticObjectId, user: User = Depends(get_current_user)):
    _own(user, user_id)
    plan = await Plan.find_one({"user_id": user.id})
    if plan is None:
        raise HTTPException(status_code=404, detail="No plan data found")
    await plan.delete()
    await plans.set_premium(user.id, user.type, False)
    return {"message": "Plan data deleted successfully"}
