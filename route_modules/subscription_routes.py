"""
Subscription Routes - employee subscriptions, renewals and the expiration check.
"""
from fastapi import APIRouter, Depends
from auth import get_current_user, require_admin, require_employee
from models import CurrentUser, RenewSubscriptionRequest
from service_modules.subscription_service import SubscriptionService, get_subscription_service

router = APIRouter()


@router.get("/api/subscriptions")
def list_subscriptions(
    admin: CurrentUser = Depends(require_admin),
    service: SubscriptionService = Depends(get_subscription_service)
):
    """All subscriptions, newest first."""
    return {"success": True, "data": service.list_subscriptions()}


@router.get("/api/subscriptions/plans")
def list_plans(
    user: CurrentUser = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service)
):
    return {"success": True, "data": service.list_plans()}


@router.get("/api/subscriptions/employee/{employee_id}")
def get_employee_subscription(
    employee_id: str,
    user: CurrentUser = Depends(require_employee),
    service: SubscriptionService = Depends(get_subscription_service)
):
    return {"success": True, "data": service.get_employee_subscription(user, employee_id)}


@router.post("/api/subscriptions/renew")
def renew_subscription(
    body: RenewSubscriptionRequest,
    user: CurrentUser = Depends(require_employee),
    service: SubscriptionService = Depends(get_subscription_service)
):
    """Renew a subscription for the employee themselves, or for any employee as admin."""
    result = service.renew(user, body.employee_id, body.plan)
    return {"success": True, "message": "Subscription renewed successfully", "data": result}


@router.post("/api/subscriptions/check-expirations")
def check_expirations(
    admin: CurrentUser = Depends(require_admin),
    service: SubscriptionService = Depends(get_subscription_service)
):
    """Run the reminder/expiration scan now."""
    return {"success": True, "message": "Subscription check completed", "data": service.scan_and_notify()}


# --- PAYMENTS ---

@router.get("/api/subscription-payments")
def list_payments(
    admin: CurrentUser = Depends(require_admin),
    service: SubscriptionService = Depends(get_subscription_service)
):
    return {"success": True, "data": service.list_payments()}


@router.get("/api/subscription-payments/stats")
def payment_stats(
    admin: CurrentUser = Depends(require_admin),
    service: SubscriptionService = Depends(get_subscription_service)
):
    return {"success": True, "data": service.payment_stats()}
