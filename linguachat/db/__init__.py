"""Database clients and connections.

Not imported eagerly: postgres.py builds its engine at import time. Use
explicit imports, e.g. ``from linguachat.db.postgres import async_session_factory``.
"""
