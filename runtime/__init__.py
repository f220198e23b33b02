"""Runtime wiring for the bracket platform.

Configuration, Discord announcements and the compliance schedule live here so
the core packages stay free of Discord and environment lookups.
"""

__all__ = ["announcer", "app", "config", "scheduler"]
