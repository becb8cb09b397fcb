"""
Email Service - handles sending emails via SMTP.
"""
import re
import smtplib
import socket
import ssl
import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from config import get_settings
from errors import DependencyError

logger = logging.getLogger("fitfix")


def format_date(value) -> str:
    return value.strftime("%B %d, %Y").replace(" 0", " ") if value else "N/A"


def _wrap(header_color: str, title: str, subtitle: str, body: str) -> str:
    return f"""
        <div style="max-width:600px;margin:30px auto;font-family:'Segoe UI',Arial,sans-serif;background:white;border-radius:16px;overflow:hidden;box-shadow:0 4px 20px rgba(0,0,0,0.1);">
            <div style="background:{header_color};color:white;padding:40px 30px;text-align:center;">
                <h1 style="margin:0;font-size:28px;">{title}</h1>
                <p style="margin:10px 0 0 0;font-size:16px;">{subtitle}</p>
            </div>
            <div style="padding:40px 30px;color:#333;line-height:1.6;">
                {body}
                <p style="margin-top:20px;">Best regards,<br><strong>FitFix Admin Team</strong></p>
            </div>
            <div style="background:#f8f9fa;padding:30px;text-align:center;color:#666;font-size:14px;">
                <p style="margin:0;"><strong>FitFix Health &amp; Fitness</strong></p>
            </div>
        </div>
        """


def _details(rows: dict) -> str:
    items = "".join(
        f'<div style="margin:10px 0;"><div style="font-weight:600;color:#666;font-size:12px;text-transform:uppercase;">{label}</div>'
        f'<div style="font-size:18px;font-weight:bold;margin-top:5px;">{value}</div></div>'
        for label, value in rows.items()
    )
    return f'<div style="background:#f8f9fa;padding:20px;margin:25px 0;border-radius:8px;">{items}</div>'


class EmailService:
    """Service for sending transactional emails via SMTP."""

    def __init__(self, settings=None):
        settings = settings or get_settings()
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_user = settings.smtp_user
        self.smtp_password = settings.smtp_password
        self.from_email = settings.smtp_from_email or settings.smtp_user
        self.from_name = settings.smtp_from_name
        self.timeout = settings.smtp_timeout_seconds
        self.frontend_url = settings.frontend_url

    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)

    def send_email(self, to_email: str, subject: str, html_body: str) -> bool:
        """Send one email. Raises DependencyError when SMTP is unavailable."""
        if not self.is_configured():
            raise DependencyError("SMTP is not configured")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to_email

        # Plain text fallback
        text_body = html_body.replace("<br>", "\n").replace("</p>", "\n")
        text_body = re.sub(r"<[^>]+>", "", text_body)

        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        try:
            context = ssl.create_default_context()
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                server.starttls(context=context)
                server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.from_email, to_email, msg.as_string())
        except socket.timeout as e:
            logger.error(f"SMTP timeout sending to {to_email}: {e}")
            raise DependencyError("Email service timed out") from e
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            raise DependencyError("Email service unavailable") from e

        logger.info(f"Email sent to {to_email}: {subject}")
        return True

    def send_employee_credentials(self, to_email: str, name: str, temp_password: str,
                                  plan_label: str = None, amount: float = None) -> bool:
        subject = "Welcome to FitFix - Your Employee Account"
        rows = {"Login Email": to_email, "Temporary Password": temp_password}
        if plan_label:
            rows["Plan"] = plan_label
            rows["Amount Paid"] = f"${amount}"
        body = f"""
            <p>Hi <strong>{name}</strong>,</p>
            <p>Your coach account has been approved. Use the credentials below to sign in and change your password.</p>
            {_details(rows)}
            <p style="text-align:center;"><a href="{self.frontend_url}/login">Sign in</a></p>
        """
        html = _wrap("linear-gradient(135deg,#10b981,#059669)", "Welcome to FitFix", "Your account is ready", body)
        return self.send_email(to_email, subject, html)

    def send_subscription_confirmation(self, to_email: str, name: str, plan_label: str,
                                       amount: float, expiration_date) -> bool:
        subject = "Your FitFix Subscription Is Confirmed"
        body = f"""
            <p>Hi <strong>{name}</strong>,</p>
            <p>Thank you for your payment. Your subscription is active.</p>
            {_details({"Plan": plan_label, "Amount": f"${amount}", "Valid Until": format_date(expiration_date)})}
        """
        html = _wrap("linear-gradient(135deg,#6366f1,#4f46e5)", "Subscription Confirmed", "Payment received", body)
        return self.send_email(to_email, subject, html)

    def send_user_welcome(self, to_email: str, name: str, temp_password: str,
                          coach_name: str = "Your Trainer") -> bool:
        subject = "Welcome to FitFix - Your Fitness Journey Starts Here!"
        body = f"""
            <p>Hi <strong>{name}</strong>,</p>
            <p><strong>{coach_name}</strong> has created a FitFix account for you. Sign in with the details below and change your password.</p>
            {_details({"Login Email": to_email, "Temporary Password": temp_password, "Your Coach": coach_name})}
            <p style="text-align:center;"><a href="{self.frontend_url}/login">Sign in</a></p>
        """
        html = _wrap("linear-gradient(135deg,#10b981,#059669)", "Welcome to FitFix", "Your coach is ready for you", body)
        return self.send_email(to_email, subject, html)

    def send_subscription_reminder(self, to_email: str, name: str, plan_label: str, expiration_date) -> bool:
        subject = "Your FitFix Subscription Expires Soon"
        body = f"""
            <p>Hi <strong>{name}</strong>,</p>
            <div style="background:#fef3c7;border-left:4px solid #f59e0b;padding:20px;border-radius:8px;color:#92400e;">
                <strong>Important Notice</strong><br>
                Your FitFix subscription will expire soon. Renew now to continue enjoying all features.
            </div>
            {_details({"Current Plan": plan_label, "Expires On": format_date(expiration_date)})}
            <p style="text-align:center;"><a href="{self.frontend_url}/contact-admin">Renew Subscription</a></p>
        """
        html = _wrap("linear-gradient(135deg,#f59e0b,#d97706)", "Subscription Reminder", "Your subscription expires soon", body)
        return self.send_email(to_email, subject, html)

    def send_subscription_expiration(self, to_email: str, name: str, plan_label: str, expiration_date) -> bool:
        subject = "Your FitFix Subscription Has Expired"
        body = f"""
            <p>Hi <strong>{name}</strong>,</p>
            <div style="background:#fee2e2;border-left:4px solid #ef4444;padding:20px;border-radius:8px;color:#991b1b;">
                Your FitFix subscription has expired and your account has been deactivated.
                Renew your subscription to regain access.
            </div>
            {_details({"Plan": plan_label, "Expired On": format_date(expiration_date)})}
            <p style="text-align:center;"><a href="{self.frontend_url}/contact-admin">Renew Subscription</a></p>
        """
        html = _wrap("linear-gradient(135deg,#ef4444,#dc2626)", "Subscription Expired", "Your access has been paused", body)
        return self.send_email(to_email, subject, html)


# Singleton
_email_service = None


def get_email_service() -> EmailService:
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
