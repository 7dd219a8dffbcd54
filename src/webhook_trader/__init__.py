"""Webhook-driven signal validation and Gate.io order execution."""

__version__ = "0.1.0"
