"""Shared event model, queue client, configuration and logging."""
