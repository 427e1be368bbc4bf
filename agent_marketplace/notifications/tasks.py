from celery import shared_task

from agent_marketplace.notifications.services import broadcast_promotion


@shared_task(name="notifications.broadcast_promotion")
def broadcast_promotion_task(title: str, message: str, data: dict | None = None) -> dict:
    """Celery task wrapper to fan a promotion out to all active users."""
    return broadcast_promotion(title, message, data).as_dict()
