"""ASGI integration for content negotiation."""
