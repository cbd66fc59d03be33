"""Nostr relay building blocks: subscription filters, protocol messages, metrics, sign-up pages and HTTP endpoints."""

__version__ = "0.1.0"

__all__ = ["metrics", "pages", "protocol", "subscription", "utils", "web"]