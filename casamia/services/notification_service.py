import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import NamedTuple, Optional

from casamia.config import config
from casamia.database.models import User, TenantInfo, UtilityBill
from casamia.utils.ui import (
    DIVIDER_FULL, DIVIDER_HALF, format_amount, format_date, format_period, get_utility_label
)


class EmailMessage(NamedTuple):
    to: str
    subject: str
    body: str


class NotificationService:
    """Best-effort SMTP email. Sending never raises; the result tells whether it went out."""

    def __init__(
        self,
        host: Optional[str],
        port: int = 587,
        user: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        sender: str = config.EMAIL_FROM
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.use_tls = use_tls
        self.sender = sender

    @property
    def enabled(self) -> bool:
        return bool(self.host)

    def _deliver(self, message: EmailMessage):
        msg = MIMEMultipart()
        msg["From"] = self.sender
        msg["To"] = message.to
        msg["Subject"] = message.subject
        msg.attach(MIMEText(message.body, "plain"))

        with smtplib.SMTP(self.host, self.port, timeout=30) as server:
            if self.use_tls:
                server.starttls()
            if self.user and self.password:
                server.login(self.user, self.password)
            server.send_message(msg)

    async def send_email(self, message: EmailMessage) -> bool:
        if not self.enabled:
            logging.warning(f"SMTP not configured, skipping email '{message.subject}' to {message.to}")
            return False
        try:
            # smtplib is blocking, keep it off the event loop
            await asyncio.to_thread(self._deliver, message)
            logging.info(f"Email '{message.subject}' sent to {message.to}")
            return True
        except Exception as e:
            logging.warning(f"Failed to send email to {message.to}: {e}")
            return False

    async def send_welcome_email(self, user: User) -> bool:
        body = (
            f"Dear {user.name},\n\n"
            f"Welcome to Casamia Apartment! Your tenant account has been created.\n"
            f"You can log in with this email address: {user.email}\n\n"
            f"Best regards,\nCasamia Management"
        )
        return await self.send_email(EmailMessage(user.email, "Welcome to Casamia Apartment", body))

    async def send_bill_email(self, tenant: User, bill: UtilityBill) -> bool:
        lines = [
            f"Dear {tenant.name},",
            "",
            f"Your utility bill {bill.bill_number} is ready.",
            f"Billing period: {format_period(bill.billing_period_start, bill.billing_period_end)}",
            DIVIDER_FULL,
        ]
        for utility in bill.utilities or []:
            lines.append(
                f"{get_utility_label(utility['utility_type'])}: "
                f"{utility['consumption']} x {utility['rate']} = {format_amount(utility['amount'])}"
            )
        for charge in bill.additional_charges or []:
            lines.append(f"{charge['description']}: {format_amount(charge['amount'])}")
        for discount in bill.discounts or []:
            lines.append(f"{discount['description']}: -{format_amount(discount['amount'])}")
        if bill.beverage_items:
            lines.append(f"Rooftop beverages ({len(bill.beverage_items)} items): {format_amount(bill.beverage_total)}")
        lines += [
            DIVIDER_HALF,
            f"Subtotal: {format_amount(bill.subtotal)}",
            f"Tax: {format_amount(bill.tax)}",
            f"Total due: {format_amount(bill.total_amount)}",
            f"Due date: {format_date(bill.due_date)}",
            "",
            "Best regards,",
            "Casamia Management",
        ]
        subject = f"Utility Bill {bill.bill_number} - Casamia Apartment"
        return await self.send_email(EmailMessage(tenant.email, subject, "\n".join(lines)))

    async def send_lease_expiry_warning(self, tenant: User, tenant_info: TenantInfo, days_left: int) -> bool:
        body = (
            f"Dear {tenant.name},\n\n"
            f"Your lease for room {tenant_info.room_number or '—'} ends on "
            f"{format_date(tenant_info.lease_end_date)} ({days_left} days from today).\n"
            f"Please contact the management office to renew or plan your move-out.\n\n"
            f"Best regards,\nCasamia Management"
        )
        return await self.send_email(EmailMessage(tenant.email, "Lease Expiry Reminder - Casamia Apartment", body))


notification_service = NotificationService(
    host=config.SMTP_HOST,
    port=config.SMTP_PORT,
    user=config.SMTP_USER,
    password=config.SMTP_PASSWORD,
    use_tls=config.SMTP_USE_TLS,
)

def get_notification_service() -> NotificationService:
    return notification_service

def setup_notifications(service: NotificationService):
    global notification_service
    notification_service = service
