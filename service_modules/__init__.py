"""
Services package - subscription, chat, employee request, employee payment, account and notifier services.
"""
from .base import *
from .subscription_service import SubscriptionService, subscription_service, get_subscription_service
from .chat_service import ChatService, chat_service, get_chat_service
from .employee_request_service import EmployeeRequestService, employee_request_service, get_employee_request_service
from .employee_payment_service import EmployeePaymentService, employee_payment_service, get_employee_payment_service
from .account_service import AccountService, account_service, get_account_service
from .notification_service import NotificationService, notification_service, get_notification_service
from .email_service import EmailService, get_email_service

__all__ = [
    'SubscriptionService',
    'subscription_service',
    'get_subscription_service',
    'ChatService',
    'chat_service',
    'get_chat_service',
    'EmployeeRequestService',
    'employee_request_service',
    'get_employee_request_service',
    'EmployeePaymentService',
    'employee_payment_service',
    'get_employee_payment_service',
    'AccountService',
    'account_service',
    'get_account_service',
    'NotificationService',
    'notification_service',
    'get_notification_service',
    'EmailService',
    'get_email_service',
]
