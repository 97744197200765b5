"""Models package — re-export all ORM classes for Alembic auto-detection."""
from snaptrack.models.snapshot import Snapshot  # noqa: F401
