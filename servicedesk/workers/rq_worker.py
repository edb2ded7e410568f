# servicedesk/workers/rq_worker.py
import logging
import json
import hmac, hashlib
from typing import Any, Callable, Mapping

import redis
import requests
from rq import Queue, Worker

from servicedesk.core.config import settings
from servicedesk.core.logging import setup_logging

logger = logging.getLogger("worker.notifications")


def _sign(payload: Mapping[str, Any]) -> str | None:
    if not settings.webhook_secret:
        return None
    body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return hmac.new(settings.webhook_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def _post(event_type: str, payload: Mapping[str, Any]) -> None:
    url = settings.webhook_url
    if not url:
        logger.debug("webhook_url_missing", extra={"event_type": event_type})
        return
    headers = {"Content-Type": "application/json", "X-ServiceDesk-Event": event_type}
    sig = _sign(payload)
    if sig:
        headers["X-ServiceDesk-Signature"] = f"sha256={sig}"
    r = requests.post(url, json=payload, headers=headers, timeout=10)
    logger.info("webhook_sent", extra={"event_type": event_type, "status": r.status_code})


def send_mail_mock(to: str, subject: str, body: str) -> None:
    logger.info("SEND_MAIL", extra={"to": to, "subject": subject, "body_len": len(body)})


def on_ticket_created(payload: Mapping[str, Any]) -> None:
    ticket = payload.get("ticket", {})
    logger.info("ticket_created", extra={"ticket_id": ticket.get("id")})
    if ticket.get("requester_email"):
        send_mail_mock(
            ticket["requester_email"],
            f"Ticket #{ticket.get('ticket_number')} created",
            "Your request was registered.",
        )


def on_status_changed(payload: Mapping[str, Any]) -> None:
    ticket = payload.get("ticket", {})
    logger.info("status_changed", extra={"ticket_id": ticket.get("id"), "from": payload.get("from"), "to": payload.get("to")})
    if ticket.get("requester_email") and payload.get("to") in ("resolved", "closed"):
        send_mail_mock(
            ticket["requester_email"],
            f"Ticket #{ticket.get('ticket_number')} {payload.get('to')}",
            "Your request has been processed.",
        )


def on_ticket_assigned(payload: Mapping[str, Any]) -> None:
    ticket = payload.get("ticket", {})
    logger.info("ticket_assigned", extra={"ticket_id": ticket.get("id"), "assignee_id": payload.get("assignee_id")})


def on_comment_added(payload: Mapping[str, Any]) -> None:
    ticket = payload.get("ticket", {})
    logger.info("comment_added", extra={"ticket_id": ticket.get("id"), "is_internal": payload.get("is_internal")})
    # внутрішні коментарі заявнику не надсилаємо
    if payload.get("is_internal"):
        return
    email = ticket.get("requester_email")
    if email and payload.get("author_id") != ticket.get("requester_id"):
        send_mail_mock(email, f"New reply on ticket #{ticket.get('ticket_number')}", "Open the portal to read it.")


def on_role_changed(payload: Mapping[str, Any]) -> None:
    logger.info("role_changed", extra=dict(payload))


EVENT_HANDLERS: dict[str, Callable[[Mapping[str, Any]], None]] = {
    "ticket_created": on_ticket_created,
    "status_changed": on_status_changed,
    "ticket_assigned": on_ticket_assigned,
    "comment_added": on_comment_added,
    "role_changed": on_role_changed,
}


def handle_event(event_type: str, payload: Mapping[str, Any] | None = None) -> None:
    handler = EVENT_HANDLERS.get(event_type)
    if not handler:
        logger.warning("unknown_event", extra={"event_type": event_type})
        return
    handler(payload or {})
    _post(event_type, payload or {})


def main() -> None:
    setup_logging(settings.log_level, json_output=settings.env == "prod")
    logger.info("worker_starting", extra={"queue": settings.notifications_queue, "redis": settings.redis_url})
    conn = redis.from_url(settings.redis_url)
    queue = Queue(settings.notifications_queue, connection=conn)
    worker = Worker([queue], connection=conn, name="notifications-worker")
    worker.work(logging_level=logging.INFO)


if __name__ == "__main__":
    main()
