"""Webhook relay service: route matching, queued delivery and retries."""

__version__ = "1.0.0"
