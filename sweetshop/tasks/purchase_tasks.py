"""
Background work triggered by committed purchases.

Nothing here changes stock or purchase records: the purchase is final once
its transaction commits, so task failures are retried or logged but never
roll anything back.
"""
import logging

from kombu.exceptions import OperationalError

from sweetshop.config import get_settings
from sweetshop.schemas.purchase import PurchaseResponse
from sweetshop.security import Principal
from sweetshop.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="send_purchase_receipt")
def send_purchase_receipt(self, receipt: dict) -> dict:
    """
    Send a purchase receipt to the buyer.

    The receipt is delivered through the notification gateway (simulated by
    a log line here).

    Args:
        receipt: Serialized purchase plus the buyer's email

    Returns:
        Dictionary with delivery result
    """
    purchase_id = receipt["purchase_id"]
    logger.info(
        f"Receipt for purchase {purchase_id} sent to {receipt['email']}: "
        f"{receipt['quantity']} x sweet {receipt['sweet_id']} = {receipt['total_price']}"
    )
    return {"status": "sent", "purchase_id": purchase_id}


@celery_app.task(bind=True, name="notify_low_stock")
def notify_low_stock(self, sweet_id: str, remaining: int) -> dict:
    """Alert administrators that a sweet is running out."""
    logger.warning(f"Sweet {sweet_id} is low on stock: {remaining} left")
    return {"status": "sent", "sweet_id": sweet_id, "remaining": remaining}


def queue_purchase_notifications(purchase: PurchaseResponse, buyer: Principal, remaining: int) -> None:
    """
    Queue receipt and low-stock tasks for a committed purchase.

    A broker outage is logged and swallowed: the purchase has already been
    committed and must still be reported as successful.
    """
    settings = get_settings()
    receipt = {
        "purchase_id": str(purchase.id),
        "sweet_id": str(purchase.sweet_id),
        "email": buyer.email,
        "quantity": purchase.quantity,
        "total_price": str(purchase.total_price),
    }
    try:
        send_purchase_receipt.delay(receipt)
        if remaining <= settings.LOW_STOCK_THRESHOLD:
            notify_low_stock.delay(str(purchase.sweet_id), remaining)
    except OperationalError as e:
        logger.error(f"Could not queue notifications for purchase {purchase.id}: {e}")
