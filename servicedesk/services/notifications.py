# servicedesk/services/notifications.py
import logging
from typing import Any, Mapping

import redis
from rq import Queue
from rq import Retry

from servicedesk.core.config import settings

log = logging.getLogger(__name__)

_queue: Queue | None = None


def _get_queue() -> Queue:
    global _queue
    if _queue is None:
        _queue = Queue(settings.notifications_queue, connection=redis.from_url(settings.redis_url))
    return _queue


def enqueue(event_type: str, payload: Mapping[str, Any]) -> str | None:
    """
    Кладемо подію в чергу: handle_event виконається у воркері.
    Fire-and-forget: повертає job.id або None у разі помилки (мутацію не валимо).
    """
    if not settings.notifications_enabled:
        log.debug("notification_skipped", extra={"event_type": event_type})
        return None

    try:
        job = _get_queue().enqueue(
            "servicedesk.workers.rq_worker.handle_event",
            event_type,
            dict(payload),
            job_timeout=60,
            retry=Retry(max=3, interval=[5, 15, 30]),
        )
        return getattr(job, "id", None)
    except Exception as e:
        # Логуємо й не піднімаємо виняток: мутація вже закомічена
        log.exception("Failed to enqueue event '%s': %s", event_type, e)
        return None


def ticket_payload(ticket: Mapping[str, Any]) -> dict[str, Any]:
    requester = ticket.get("requester") or {}
    return {
        "id": ticket.get("id"),
        "ticket_number": ticket.get("ticket_number"),
        "title": ticket.get("title"),
        "status": ticket.get("status"),
        "priority": ticket.get("priority"),
        "requester_id": ticket.get("requester_id"),
        "requester_email": requester.get("email"),
        "assignee_id": ticket.get("assignee_id"),
    }
