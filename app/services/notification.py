"""
DJT Quest Platform
Notification Dispatcher.

Receives "evaluator assigned" and "scope changed" signals from the core and
persists them as in-app Notification rows. Delivery beyond the row (push,
e-mail) belongs to other consumers of the table.

Callers treat the dispatcher as fire-and-forget: any failure here is logged by
the caller and never undoes the change that triggered it.
"""

import logging

from app.models import db
from app.models.notification import Notification

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Default dispatcher: one committed Notification row per signal."""

    def _create(self, *, recipient_id, title, message="", category="system",
                entity_type="", entity_id=None):
        notif = Notification(
            recipient_id=recipient_id,
            title=title,
            message=message,
            category=category,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        db.session.add(notif)
        db.session.commit()
        return notif

    # ── Signals ───────────────────────────────────────────────────────────

    def evaluator_assigned(self, event_id, evaluator_id):
        """An event was queued for ``evaluator_id``."""
        logger.info("notify_evaluator_assigned event_id=%s evaluator_id=%s", event_id, evaluator_id)
        return self._create(
            recipient_id=evaluator_id,
            title="Nova ação para avaliar",
            message="Uma ação de outra área foi atribuída a você para avaliação.",
            category="evaluation",
            entity_type="event",
            entity_id=str(event_id),
        )

    def scope_changed(self, user_id, placement: dict | None = None, reason: str = ""):
        """The organizational placement (or role) of ``user_id`` changed."""
        logger.info("notify_scope_changed user_id=%s reason=%s", user_id, reason)
        where = ", ".join(f"{k}={v}" for k, v in (placement or {}).items() if v)
        return self._create(
            recipient_id=user_id,
            title="Seu escopo organizacional foi atualizado",
            message=where or reason,
            category="scope",
            entity_type="profile",
            entity_id=str(user_id),
        )
