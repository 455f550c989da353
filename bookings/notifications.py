"""
Booking notifications.

Two channels are driven for an approval:

* email: a JSON payload queued for the mail relay. Issuing the task is all we
  wait for; the relay's answer is never awaited.
* operator alert: a messaging deep link pre-filled with a summary. Building it
  is pure string work; a human decides whether to send it.

An approval email is sent at most once per booking for the life of the
process. The guard lives in the ``notifications`` cache so it can be swapped
for a shared backend without touching this module.
"""
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from django.conf import settings
from django.core.cache import caches
from django.db import models

from common.exceptions import NotificationDeliveryFailed
from .tasks import send_booking_email_task

logger = logging.getLogger(__name__)


class BookingEvent(models.TextChoices):
    APPROVED = 'booking.approved', 'Booking approved'


class DeliveryStatus(models.TextChoices):
    ISSUED = 'issued', 'Issued'
    SKIPPED_DUPLICATE = 'skipped_duplicate', 'Skipped (duplicate)'
    FAILED = 'failed', 'Failed'


# Events whose email may only go out once per booking
GUARDED_EVENTS = {BookingEvent.APPROVED}


@dataclass
class DeliveryOutcome:
    event: str
    booking_id: str
    email: str
    alert_link: Optional[str] = None
    failure: Optional[NotificationDeliveryFailed] = None
    alert_failure: Optional[NotificationDeliveryFailed] = None

    @property
    def warnings(self):
        return [failure.message for failure in (self.failure, self.alert_failure) if failure is not None]

    def as_dict(self):
        return {
            'event': str(self.event),
            'email': str(self.email),
            'alert_link': self.alert_link,
            'warnings': self.warnings,
        }


class NotificationGuard:
    """
    Remembers which (event, booking) pairs already produced an email.
    ``claim`` is an atomic add, so two concurrent approvals of one booking
    cannot both win.
    """
    key_prefix = 'booking-notified'

    def __init__(self, cache=None, timeout=None):
        self.cache = cache if cache is not None else caches['notifications']
        self.timeout = timeout if timeout is not None else settings.NOTIFICATION_GUARD_TIMEOUT

    def key(self, event, booking_id):
        return f"{self.key_prefix}:{event}:{booking_id}"

    def claim(self, event, booking_id):
        return self.cache.add(self.key(event, booking_id), True, timeout=self.timeout)

    def release(self, event, booking_id):
        self.cache.delete(self.key(event, booking_id))


def format_money(amount):
    return f"{settings.CURRENCY_SYMBOL}{amount or 0:,.2f}"


def reference_id(booking):
    return booking.transaction_id or str(booking.pk)


def format_alert_message(booking, recipient='owner'):
    """Human readable booking summary for the messaging app."""
    footer = (
        "*Action:* Verify KYC & hand over keys."
        if recipient == 'owner'
        else "Please bring your ID. Safe travels!"
    )
    lines = [
        f"*{settings.BRAND_NAME} - Booking Alert*",
        "--------------------------------",
        f"*Ref ID:* {reference_id(booking)}",
        "*Status:* Confirmed",
        "",
        f"*Vehicle:* {booking.vehicle_name}",
        f"*Dates:* {booking.start_date:%d/%m/%Y} to {booking.end_date:%d/%m/%Y}",
        f"*Pickup:* {booking.pickup_location or 'N/A'}",
        "",
        f"*Customer:* {booking.customer_name}",
        f"*Phone:* {booking.customer_phone}",
        f"*Total:* {format_money(booking.total_cost)}",
        f"*Advance:* {format_money(booking.advance_amount)}",
        "--------------------------------",
        footer,
    ]
    return "\n".join(lines)


def build_alert_link(booking, recipient_number=None, template=None):
    """
    Deep link into the messaging app, pre-filled with the summary.
    :param template: URI template with ``{recipient}`` and ``{text}`` placeholders
    """
    template = template or settings.OPERATOR_ALERT_URL
    recipient_number = recipient_number or settings.OWNER_PHONE_NUMBER
    message = format_alert_message(booking, recipient='owner')
    return template.format(recipient=quote(str(recipient_number), safe=''), text=quote(message, safe=''))


def build_email_payload(booking):
    return {
        'booking_id': str(booking.pk),
        'to_email': booking.email,
        'customer_name': booking.customer_name,
        'ref_id': reference_id(booking),
        'car_name': booking.vehicle_name,
        'start_date': booking.start_date.isoformat(),
        'end_date': booking.end_date.isoformat(),
        'pickup_location': booking.pickup_location,
        'total_cost': format_money(booking.total_cost),
        'advance_amount': format_money(booking.advance_amount),
        'owner_phone': settings.OWNER_PHONE_NUMBER,
    }


class NotificationDispatcher:
    """
    Delivers booking events over the email and operator-alert channels.
    Never raises because of a transport problem; failures come back on the
    outcome.
    """

    def __init__(self, guard=None, email_task=None):
        self.guard = guard if guard is not None else NotificationGuard()
        self.email_task = email_task if email_task is not None else send_booking_email_task

    def dispatch(self, event, booking):
        alert_link, alert_failure = self._build_alert(booking)

        guarded = event in GUARDED_EVENTS
        if guarded and not self.guard.claim(event, booking.pk):
            logger.info("Skipped duplicate %s email for booking %s", event, booking.pk)
            return DeliveryOutcome(
                event=event,
                booking_id=str(booking.pk),
                email=DeliveryStatus.SKIPPED_DUPLICATE,
                alert_link=alert_link,
                alert_failure=alert_failure,
            )

        failure = self._issue_email(booking)
        if failure is not None:
            if guarded:
                # Let a later retry through
                self.guard.release(event, booking.pk)
            return DeliveryOutcome(
                event=event,
                booking_id=str(booking.pk),
                email=DeliveryStatus.FAILED,
                alert_link=alert_link,
                alert_failure=alert_failure,
                failure=failure,
            )

        return DeliveryOutcome(
            event=event,
            booking_id=str(booking.pk),
            email=DeliveryStatus.ISSUED,
            alert_link=alert_link,
            alert_failure=alert_failure,
        )

    def _build_alert(self, booking):
        try:
            return build_alert_link(booking), None
        except (KeyError, IndexError, ValueError):
            logger.exception("Operator alert link could not be built for booking %s", booking.pk)
            return None, NotificationDeliveryFailed("Operator alert link could not be built.")

    def _issue_email(self, booking):
        if not settings.MAIL_RELAY_URL:
            logger.error("Mail relay URL is missing; approval email for booking %s not sent", booking.pk)
            return NotificationDeliveryFailed("Mail relay is not configured.")
        if not booking.email:
            logger.warning("Booking %s has no email address; approval email not sent", booking.pk)
            return NotificationDeliveryFailed("Booking has no email address.")

        try:
            self.email_task.delay(build_email_payload(booking))
        except Exception:
            logger.exception("Could not queue approval email for booking %s", booking.pk)
            return NotificationDeliveryFailed("Approval email could not be queued.")

        logger.info("Queued approval email for booking %s to %s", booking.pk, booking.email)
        return None
