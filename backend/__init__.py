"""Webhook Toolkit: capture inbound HTTP calls on localhost and keep a bounded history."""

__version__ = "1.0.0"
