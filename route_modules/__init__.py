"""
Routes package - organized API routes.

Import the combined router for use in main.py.
"""
from fastapi import APIRouter

from .auth_routes import router as auth_router
from .subscription_routes import router as subscription_router
from .chat_routes import router as chat_router
from .employee_request_routes import router as employee_request_router
from .employee_payment_routes import router as employee_payment_router
from .account_routes import router as account_router
from .notification_routes import router as notification_router

# Combined router that includes all sub-routers
combined_router = APIRouter()
combined_router.include_router(auth_router, tags=["auth"])
combined_router.include_router(subscription_router, tags=["subscriptions"])
combined_router.include_router(chat_router, tags=["chat"])
combined_router.include_router(employee_request_router, tags=["employee-requests"])
combined_router.include_router(employee_payment_router, tags=["employee-payments"])
combined_router.include_router(account_router, tags=["accounts"])
combined_router.include_router(notification_router, tags=["notifications"])

__all__ = [
    'combined_router', 'auth_router', 'subscription_router', 'chat_router', 'employee_request_router',
    'employee_payment_router', 'account_router', 'notification_router',
]
