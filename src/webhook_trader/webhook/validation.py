"""Inbound webhook checks: source IP allow-list and shared secret."""

from __future__ import annotations

import hmac
from collections.abc import Mapping
from typing import Any

import structlog

from webhook_trader.config.schema import WebhookConfig

log = structlog.get_logger("webhook_validation")


class WebhookRejected(Exception):
    """The request failed validation; carries the HTTP status to answer with."""

    def __init__(self, status_code: int, error: str, **extra: Any) -> None:
        self.status_code = status_code
        self.error = error
        self.extra = extra
        super().__init__(error)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error, **self.extra}


def _normalize_ip(ip: str) -> str:
    ip = ip.strip()
    return ip[len("::ffff:"):] if ip.startswith("::ffff:") else ip


def client_ip(peer: str | None, headers: Mapping[str, str]) -> str:
    """The peer address, or the first X-Forwarded-For hop when there is no peer."""
    if peer:
        return _normalize_ip(peer)
    forwarded = headers.get("x-forwarded-for", "")
    return _normalize_ip(forwarded.split(",")[0]) if forwarded else ""


def check_ip(ip: str, allowed: list[str]) -> None:
    if not allowed:
        return
    if _normalize_ip(ip) not in {_normalize_ip(a) for a in allowed}:
        log.warning("webhook_ip_rejected", ip=ip)
        raise WebhookRejected(403, "Unauthorized IP address", yourIP=ip)


def provided_secret(
    headers: Mapping[str, str],
    query: Mapping[str, str],
    payload: Mapping[str, Any] | None,
) -> str | None:
    """First of: X-Webhook-Secret, Authorization, ?secret=, body "secret"."""
    for candidate in (
        headers.get("x-webhook-secret"),
        headers.get("authorization"),
        query.get("secret"),
        (payload or {}).get("secret"),
    ):
        if candidate:
            return str(candidate)
    return None


def check_secret(expected: str, provided: str | None) -> None:
    if not expected:
        return
    if provided is None or not hmac.compare_digest(provided.encode(), expected.encode()):
        log.warning("webhook_secret_rejected")
        raise WebhookRejected(401, "Invalid webhook secret")


def validate_request(
    config: WebhookConfig,
    *,
    peer: str | None,
    headers: Mapping[str, str],
    query: Mapping[str, str],
    payload: Mapping[str, Any] | None,
) -> str:
    """Run the IP then the secret check. Returns the client IP on success."""
    ip = client_ip(peer, headers)
    check_ip(ip, config.allowed_ips)
    check_secret(config.secret, provided_secret(headers, query, payload))
    return ip
