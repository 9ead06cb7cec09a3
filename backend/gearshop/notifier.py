"""
New-product notification.

The pipeline hands every newly stored product to a Notifier. LogNotifier
only logs (local mode); WebhookNotifier POSTs the event plus a rendered
HTML alert to a configured endpoint, which owns delivery (mail, chat, bus).

handle_change_events() is the entry point for store change feeds: it turns
INSERT events back into NewProductEvents and notifies for each one.
"""

import html
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional
from urllib.parse import urljoin

import requests

from .config import DEFAULT_GEARSHOP_HOSTNAME
from .errors import NotificationError
from .models import NewProductEvent, ProductChangeEvent


logger = logging.getLogger(__name__)


ALERT_SUBJECT = "[Gear Shop] New Product Alert"
PROJECT_URL = "https://github.com/tmack8001/rivian-gear-shop-notifier"


def product_link(url: str, hostname: str = DEFAULT_GEARSHOP_HOSTNAME) -> str:
    """Absolute product URL for a listing href."""
    return urljoin(hostname.rstrip('/') + '/', url or '')


def alert_text(event: NewProductEvent, hostname: str = DEFAULT_GEARSHOP_HOSTNAME) -> str:
    return (f"New gear shop product added: {event.name}, "
            f"Url: {product_link(event.url, hostname)}, Price: {event.price}")


def render_alert_html(product_name: str, link: str, referral_code: Optional[str] = None,
                      year: Optional[int] = None) -> str:
    """
    Render the HTML body of a new-product alert.

    Values are HTML-escaped. The referral block is left out when no
    referral code is configured.
    """
    name = html.escape(product_name or "")
    href = html.escape(link or "", quote=True)
    year = year or datetime.now().year

    referral = ""
    if referral_code:
        code = html.escape(referral_code, quote=True)
        referral = (
            '<div class="referral">'
            f'<p><a href="https://rivian.com/configurations/list?reprCode={code}">'
            f'Interested in a Rivian? Use code "{code}" to help support this project.</a></p>'
            '</div>'
        )

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>New Gear Alert!</title>
<style>
  body {{ font-family: Helvetica, Arial, sans-serif; background-color: #f4f4f4; color: #333; padding: 20px; }}
  .container {{ background-color: #ffffff; border-radius: 5px; padding: 20px; max-width: 600px; margin: auto; }}
  h1 {{ color: rgba(248,193,28,0.9); }}
  .footer {{ margin-top: 20px; font-size: 12px; color: #aaa; text-align: center; }}
  .referral {{ background-color: rgba(248,193,28,0.9); padding: 10px; text-align: center; }}
</style>
</head>
<body>
<div class="container">
  <h1>New Product Alert!</h1>
  <p>A new product has been seen in the Gear Shop:</p>
  <h2>{name}</h2>
  <p>Check it out <a href="{href}">here</a>.</p>
  <div class="footer">
    <p>Check out the <a href="{PROJECT_URL}">project on GitHub</a>.</p>
    <p>&copy;{year} Gear Shop Notifier. Not affiliated with Rivian Automotive.</p>
  </div>
  {referral}
</div>
</body>
</html>
"""


# =============================================================================
# Notifiers
# =============================================================================

class Notifier:
    """Receives one NewProductEvent per newly stored product."""

    def notify(self, event: NewProductEvent) -> None:
        raise NotImplementedError


class LogNotifier(Notifier):
    """Logs events instead of sending them. Used in local mode."""

    def __init__(self, hostname: str = DEFAULT_GEARSHOP_HOSTNAME):
        self.hostname = hostname
        self.sent: List[NewProductEvent] = []

    def notify(self, event: NewProductEvent) -> None:
        logger.info("%s (not sent: local mode)", alert_text(event, self.hostname))
        self.sent.append(event)


class WebhookNotifier(Notifier):
    """POSTs each event as JSON to a webhook."""

    def __init__(self, webhook_url: str, session: Optional[requests.Session] = None,
                 timeout: float = 10.0, hostname: str = DEFAULT_GEARSHOP_HOSTNAME,
                 referral_code: Optional[str] = None):
        self.webhook_url = webhook_url
        self.session = session or requests.Session()
        self.timeout = timeout
        self.hostname = hostname
        self.referral_code = referral_code

    def build_payload(self, event: NewProductEvent) -> Dict:
        link = product_link(event.url, self.hostname)
        return {
            'subject': ALERT_SUBJECT,
            'text': alert_text(event, self.hostname),
            'html': render_alert_html(event.name, link, self.referral_code),
            'product': {
                'id': event.id,
                'name': event.name,
                'price': event.price,
                'url': event.url,
                'link': link,
            },
        }

    def notify(self, event: NewProductEvent) -> None:
        """
        Raises:
            NotificationError: If the webhook cannot be reached or rejects the event.
        """
        try:
            response = self.session.post(self.webhook_url, json=self.build_payload(event),
                                         timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise NotificationError(f"Webhook delivery for {event.id} failed: {e}") from e
        logger.info("Sent new product alert for %s", event.id)


# =============================================================================
# Change Feed Handling
# =============================================================================

def event_from_image(image: Dict[str, str]) -> NewProductEvent:
    """Build an event from a stored item image (keys Id, Name, Price, GearShopUrl)."""
    return NewProductEvent(
        id=image.get('Id', '') or '',
        name=image.get('Name', '') or '',
        price=image.get('Price', '') or '',
        url=image.get('GearShopUrl', '') or '',
    )


def handle_change_events(events: Iterable[ProductChangeEvent], notifier: Notifier) -> Dict:
    """
    Notify for every INSERT in a batch of product change events.

    MODIFY and REMOVE events are ignored. An INSERT whose image has no Id,
    Name or GearShopUrl stops processing of the rest of the batch.
    Notifier errors propagate so the feed can redeliver the batch.

    Returns:
        {'message': str, 'products': [{'id': str}, ...]}
    """
    events = list(events)
    products = []

    for change in events:
        logger.info("Change event %s: %s", change.event_name, change.change_image)
        if change.event_name != "INSERT":
            continue

        event = event_from_image(change.change_image)
        if not (event.id or event.name or event.url):
            logger.warning("Failed to parse change event image: %s", change.change_image)
            break

        products.append({'id': event.id})
        notifier.notify(event)

    return {
        'message': f"Successfully processed {len(events)} change event(s)",
        'products': products,
    }
