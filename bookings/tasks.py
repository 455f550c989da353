import logging

import requests
from celery import shared_task
from django.conf import settings

logger = logging.getLogger(__name__)


@shared_task
def send_booking_email_task(payload):
    """
    Post a booking confirmation to the mail relay.
    Delivery is best effort: failures are logged and never retried.
    :param payload: JSON-serialisable email payload
    """
    url = settings.MAIL_RELAY_URL
    if not url:
        logger.error("Mail relay URL is not configured; dropped email for booking %s", payload.get('booking_id'))
        return False

    try:
        response = requests.post(url, json=payload, timeout=settings.MAIL_RELAY_TIMEOUT)
        response.raise_for_status()
    except requests.exceptions.HTTPError as http_err:
        logger.error("Mail relay rejected booking %s: %s", payload.get('booking_id'), http_err)
        return False
    except requests.exceptions.RequestException as err:
        logger.error("Mail relay unreachable for booking %s: %s", payload.get('booking_id'), err)
        return False

    logger.info("Mail relay accepted email for booking %s to %s", payload.get('booking_id'), payload.get('to_email'))
    return True
