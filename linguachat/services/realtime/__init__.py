"""Realtime fan-out: change feed, subscriptions and the client view."""
