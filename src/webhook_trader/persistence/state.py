"""Durable admin state document: users, strategies and the webhook binding."""

from __future__ import annotations

import copy
from typing import Any

EMPTY_STATE: dict[str, Any] = {"users": [], "strategies": [], "webhook": None}

_WEBHOOK_FIELDS = ("url", "secret", "createdAt", "updatedAt")


def empty_state() -> dict[str, Any]:
    return copy.deepcopy(EMPTY_STATE)


def normalize_state(data: Any) -> dict[str, Any]:
    """Coerce a loaded document into the state shape.

    Missing or malformed fields become empty defaults; unknown top-level
    keys are dropped.
    """
    if not isinstance(data, dict):
        return empty_state()

    webhook = data.get("webhook")
    if isinstance(webhook, dict):
        routes = webhook.get("routes")
        webhook = {field: webhook.get(field) for field in _WEBHOOK_FIELDS}
        webhook["routes"] = routes if isinstance(routes, list) else []
    else:
        webhook = None

    users = data.get("users")
    strategies = data.get("strategies")
    return {
        "users": users if isinstance(users, list) else [],
        "strategies": strategies if isinstance(strategies, list) else [],
        "webhook": webhook,
    }
