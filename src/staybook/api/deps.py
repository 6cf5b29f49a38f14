"""Collaborators injected into routes (overridable in tests)."""

from __future__ import annotations

from staybook.notifications.dispatcher import NotificationDispatcher, get_dispatcher
from staybook.payments.gateway import PaymentGateway, get_gateway


def get_payment_gateway() -> PaymentGateway:
    return get_gateway()


def get_notifier() -> NotificationDispatcher:
    return get_dispatcher()
